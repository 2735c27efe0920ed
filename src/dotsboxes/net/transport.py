"""Line-framed TCP connections.

Each Connection owns two daemon threads: a reader that turns the byte
stream into lines and hands them to a callback, and a writer that
drains an outbound queue so ``send`` never blocks the caller.
"""

from __future__ import annotations

import logging
import queue
import socket
import threading
from collections.abc import Callable

from dotsboxes.protocol.base import Link

logger = logging.getLogger(__name__)

DEFAULT_PORT = 1234
_SENTINEL = object()

LineCallback = Callable[["Connection", str], None]
CloseCallback = Callable[["Connection"], None]


def split_address(address: str, default_port: int = DEFAULT_PORT) -> tuple[str, int]:
    """``host[:port]`` to ``(host, port)``."""
    host, sep, port = address.rpartition(":")
    if not sep:
        return address, default_port
    try:
        return host, int(port)
    except ValueError:
        raise ValueError(f"Invalid port in address {address!r}") from None


class Connection(Link):
    """A socket speaking newline-delimited UTF-8."""

    def __init__(self, sock: socket.socket, peer: str) -> None:
        self._sock = sock
        self._peer = peer
        self._outbound: queue.Queue = queue.Queue()
        self._closed = threading.Event()
        self._on_line: LineCallback | None = None
        self._on_close: CloseCallback | None = None
        self._reader: threading.Thread | None = None
        self._writer: threading.Thread | None = None

    @property
    def label(self) -> str:
        return self._peer

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def start(self, on_line: LineCallback, on_close: CloseCallback) -> None:
        self._on_line = on_line
        self._on_close = on_close
        self._reader = threading.Thread(
            target=self._read_loop, daemon=True, name=f"read-{self._peer}",
        )
        self._writer = threading.Thread(
            target=self._write_loop, daemon=True, name=f"write-{self._peer}",
        )
        self._writer.start()
        self._reader.start()

    def send(self, line: str) -> None:
        if self.closed:
            return
        self._outbound.put(line)

    def close(self) -> None:
        """Flush queued lines, then shut the socket down."""
        if self.closed:
            return
        self._closed.set()
        self._outbound.put(_SENTINEL)

    # ------------------------------------------------------------------
    # Internal: threads
    # ------------------------------------------------------------------

    def _read_loop(self) -> None:
        try:
            with self._sock.makefile("r", encoding="utf-8", newline="\n") as stream:
                for line in stream:
                    line = line.rstrip("\r\n")
                    if line:
                        self._on_line(self, line)
        except (OSError, UnicodeDecodeError, ValueError) as exc:
            if not self.closed:
                logger.info("Connection to %s lost: %s", self._peer, exc)
        finally:
            self.close()
            self._on_close(self)

    def _write_loop(self) -> None:
        while True:
            item = self._outbound.get()
            if item is _SENTINEL:
                break
            try:
                self._sock.sendall((item + "\n").encode("utf-8"))
            except OSError as exc:
                logger.info("Could not write to %s: %s", self._peer, exc)
                self._closed.set()
                break
        self._shutdown()

    def _shutdown(self) -> None:
        try:
            self._sock.shutdown(socket.SHUT_RDWR)
        except OSError:
            # Already reset by the peer.
            pass
        self._sock.close()


class Listener:
    """Accepts connections on a background thread."""

    def __init__(self, bind: str, port: int, on_accept: Callable[[Connection], None]) -> None:
        self._on_accept = on_accept
        self._server = socket.socket(socket.AF_INET, socket.SOCK_STREAM)
        self._server.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
        self._server.bind((bind, port))
        self._server.listen()
        self._stopped = threading.Event()
        self._thread = threading.Thread(target=self._accept_loop, daemon=True, name="accept")

    @property
    def port(self) -> int:
        return self._server.getsockname()[1]

    def start(self) -> None:
        logger.info("Listening on port %d", self.port)
        self._thread.start()

    def close(self) -> None:
        self._stopped.set()
        self._server.close()

    def _accept_loop(self) -> None:
        while not self._stopped.is_set():
            try:
                sock, addr = self._server.accept()
            except OSError:
                if not self._stopped.is_set():
                    logger.exception("Accept failed")
                break
            self._on_accept(Connection(sock, f"{addr[0]}:{addr[1]}"))


def open_connection(host: str, port: int = DEFAULT_PORT, timeout: float = 10.0) -> Connection:
    """Connect to a host; raises OSError when it cannot be reached."""
    sock = socket.create_connection((host, port), timeout=timeout)
    sock.settimeout(None)
    return Connection(sock, f"{host}:{port}")
