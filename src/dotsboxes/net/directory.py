"""Client for the presence-listing directory ("master server").

Hosts advertise their name, capacity and head count; browsers send
``list`` and get one ``<address> <current> <max> [name]`` line per
advertised server. The directory is best effort: failures are logged
and never stop a game.
"""

from __future__ import annotations

import logging
import queue
from dataclasses import dataclass

from dotsboxes.net.transport import Connection, open_connection

logger = logging.getLogger(__name__)

DEFAULT_DIRECTORY = "matthewrease.net"
DEFAULT_DIRECTORY_PORT = 4321


@dataclass(frozen=True)
class ServerListing:
    """One advertised server."""

    address: str
    current: int
    max_players: int
    name: str = ""

    @property
    def label(self) -> str:
        current = str(self.current) if self.current >= 0 else "?"
        limit = str(self.max_players) if self.max_players > 0 else "∞"
        return f"{self.name} | {current}/{limit}"


def parse_listing(line: str) -> ServerListing | None:
    """Parse one listing line; None (and a log line) when it is malformed."""
    words = line.split(" ", 3)
    if len(words) < 3:
        logger.warning("Ignoring malformed directory line: %s", line)
        return None
    address = words[0]
    try:
        current = int(words[1])
    except ValueError:
        logger.warning("Could not parse current players value from directory: %s", words[1])
        return None
    try:
        max_players = int(words[2])
    except ValueError:
        logger.warning("Could not parse max players value from directory: %s", words[2])
        return None
    name = words[3] if len(words) > 3 else ""
    return ServerListing(address, current, max_players, name)


class DirectoryClient:
    """Line connection to the directory service."""

    def __init__(
        self,
        host: str = DEFAULT_DIRECTORY,
        port: int = DEFAULT_DIRECTORY_PORT,
        *,
        name: str = "Server",
        max_players: int = 0,
    ) -> None:
        self.host = host
        self.port = port
        self.name = name
        self.max_players = max_players
        self._conn: Connection | None = None
        self._lines: queue.Queue[str] = queue.Queue()

    @property
    def connected(self) -> bool:
        return self._conn is not None and not self._conn.closed

    def start(self) -> bool:
        """Connect and advertise. Returns False when the directory is unreachable."""
        if not self._connect():
            return False
        self.advertise()
        return True

    def _connect(self) -> bool:
        if self.connected:
            return True
        try:
            self._conn = open_connection(self.host, self.port)
        except OSError as exc:
            logger.warning("Could not reach directory %s:%d: %s", self.host, self.port, exc)
            return False
        self._conn.start(self._received, self._lost)
        logger.info("Connected to directory %s:%d", self.host, self.port)
        return True

    def _received(self, _conn: Connection, line: str) -> None:
        self._lines.put(line)

    def _lost(self, _conn: Connection) -> None:
        logger.info("Directory connection closed")

    def _send(self, line: str) -> None:
        if self.connected:
            logger.debug("--> directory: %s", line)
            self._conn.send(line)

    def advertise(self) -> None:
        self._send(f"name {self.name}")
        self._send(f"max {self.max_players}")

    def update_current(self, current: int) -> None:
        self._send(f"current {current}")

    def withdraw(self) -> None:
        self._send("reset")

    def fetch_listings(self, wait: float = 2.0) -> list[ServerListing]:
        """Ask for the listing and collect replies until ``wait`` seconds of silence."""
        if not self._connect():
            return []
        self._send("list")
        listings = []
        while True:
            try:
                line = self._lines.get(timeout=wait)
            except queue.Empty:
                break
            listing = parse_listing(line)
            if listing is not None:
                listings.append(listing)
        return listings

    def close(self) -> None:
        if self._conn is not None:
            self.withdraw()
            self._conn.close()
            self._conn = None
