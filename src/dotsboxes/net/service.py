"""Single-writer actors that own an engine.

Connection threads and the local UI never touch game state directly:
they put events on one inbound queue, and a single actor thread feeds
them to the engine in arrival order. Everything an engine sends goes
out through per-connection outbound queues.
"""

from __future__ import annotations

import logging
import queue
import threading
from collections.abc import Callable
from typing import Any

from dotsboxes.net.directory import DirectoryClient
from dotsboxes.net.transport import Connection, Listener, open_connection
from dotsboxes.protocol.host import HostEngine
from dotsboxes.protocol.replica import ReplicaEngine

logger = logging.getLogger(__name__)

_SENTINEL = object()


class _Actor:
    """Drains an event queue on one daemon thread."""

    def __init__(self, name: str) -> None:
        self._inbox: queue.Queue = queue.Queue()
        self._thread = threading.Thread(target=self._run, daemon=True, name=name)
        self._stopped = threading.Event()

    def submit(self, action: Callable[..., Any], *args: Any) -> None:
        """Run ``action(*args)`` on the actor thread."""
        if not self._stopped.is_set():
            self._inbox.put((action, args))

    def start_actor(self) -> None:
        self._thread.start()

    def stop_actor(self, timeout: float = 5.0) -> None:
        if self._stopped.is_set():
            return
        self._stopped.set()
        self._inbox.put(_SENTINEL)
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)

    def drain(self) -> None:
        """Process everything queued so far on the calling thread."""
        while True:
            try:
                item = self._inbox.get_nowait()
            except queue.Empty:
                return
            if item is _SENTINEL:
                return
            self._dispatch(item)

    def _run(self) -> None:
        while True:
            item = self._inbox.get()
            if item is _SENTINEL:
                return
            self._dispatch(item)

    def _dispatch(self, item: tuple) -> None:
        action, args = item
        try:
            action(*args)
        except Exception:
            logger.exception("Unhandled error processing %s", getattr(action, "__name__", action))


class HostService(_Actor):
    """Accepts clients and serializes everything through a HostEngine."""

    def __init__(
        self,
        engine: HostEngine,
        *,
        bind: str = "0.0.0.0",
        port: int = 1234,
        directory: DirectoryClient | None = None,
    ) -> None:
        super().__init__("host-actor")
        self.engine = engine
        self.directory = directory
        self._listener = Listener(bind, port, self._accepted)

    @property
    def port(self) -> int:
        return self._listener.port

    def start(self) -> None:
        self.start_actor()
        self._listener.start()
        if self.directory is not None:
            self.directory.start()

    def stop(self) -> None:
        self._listener.close()
        self.submit(self.engine.shutdown)
        if self.directory is not None:
            self.submit(self.directory.close)
        self.stop_actor()

    def _accepted(self, conn: Connection) -> None:
        self.submit(self.engine.connected, conn)
        conn.start(
            lambda link, line: self.submit(self.engine.client_message, link, line),
            lambda link: self.submit(self.engine.disconnected, link),
        )


class ReplicaService(_Actor):
    """Connects to a host and serializes everything through a ReplicaEngine."""

    def __init__(self, engine: ReplicaEngine, host: str, port: int = 1234) -> None:
        super().__init__("replica-actor")
        self.engine = engine
        self._host = host
        self._port = port

    def start(self) -> None:
        conn = open_connection(self._host, self._port)
        self.engine.attach(conn)
        self.start_actor()
        self.submit(self.engine.connected)
        conn.start(
            lambda _link, line: self.submit(self.engine.server_message, line),
            lambda _link: self.submit(self.engine.disconnected),
        )

    def stop(self) -> None:
        self.submit(self.engine.disconnect)
        self.stop_actor()
