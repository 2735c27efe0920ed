"""Shared test fixtures for dotsboxes."""

import pytest

from dotsboxes.core.grid import Grid
from dotsboxes.core.players import QUEUED_ID
from dotsboxes.core.session import GameSession
from dotsboxes.protocol.base import Hooks, Link
from dotsboxes.protocol.host import HostEngine


class RecordingLink(Link):
    """In-memory peer that records every line sent to it."""

    def __init__(self, name: str = "peer"):
        self.name = name
        self.sent: list[str] = []
        self.closed = False
        self.client_id = QUEUED_ID
        self.validated = False

    @property
    def label(self) -> str:
        return self.name

    def send(self, line: str) -> None:
        if not self.closed:
            self.sent.append(line)

    def close(self) -> None:
        self.closed = True

    def take(self) -> list[str]:
        lines, self.sent = self.sent, []
        return lines


class RecordingHooks:
    """Collects everything an engine reports to its UI."""

    def __init__(self):
        self.chat: list[str] = []
        self.status: list[str] = []
        self.warnings: list[str] = []
        self.refreshes = 0
        self.closed = False

    def _refresh(self):
        self.refreshes += 1

    def _closed(self):
        self.closed = True

    def hooks(self) -> Hooks:
        return Hooks(
            on_refresh=self._refresh,
            on_chat=self.chat.append,
            on_status=self.status.append,
            on_warning=self.warnings.append,
            on_closed=self._closed,
        )


@pytest.fixture
def recorder():
    return RecordingHooks()


@pytest.fixture
def make_host(recorder):
    """Build a HostEngine on a fresh session."""
    def _make(width=3, height=3, **kwargs):
        return HostEngine(
            GameSession(Grid(width, height)),
            host_name="Host",
            hooks=recorder.hooks(),
            **kwargs,
        )
    return _make


@pytest.fixture
def host(make_host):
    return make_host()


def connect(host: HostEngine, name: str = "peer", validate: bool = True) -> RecordingLink:
    """Open a connection to ``host`` and optionally complete the handshake."""
    link = RecordingLink(name)
    host.connected(link)
    if validate:
        host.client_message(link, "info-version 2 0")
    link.take()
    return link


def join(host: HostEngine, name: str = "peer") -> RecordingLink:
    """Connect, validate and join the lobby as a player."""
    link = connect(host, name)
    host.client_message(link, "request-join")
    link.take()
    return link


@pytest.fixture
def tmp_output(tmp_path):
    """Provide a temporary output directory for test runs."""
    return tmp_path / "output"
