"""ReplicaEngine: a non-host party's view of the game.

The host is trusted. Every broadcast is applied to the local session
without re-checking the rules; the only things a replica refuses are
lines it cannot parse (answered with ``info-malformed``) and a host
whose major protocol version differs (the connection is closed).
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from dotsboxes.core.board import orientation_name
from dotsboxes.core.grid import Grid, GridPoint, MalformedCommand
from dotsboxes.core.players import HOST_ID, QUEUED_ID, SYSTEM_ID
from dotsboxes.core.session import GameSession
from dotsboxes.protocol import commands as cmd
from dotsboxes.protocol.base import Engine, Hooks, Link
from dotsboxes.protocol.commands import Command, parse_line

logger = logging.getLogger(__name__)

Handler = Callable[[Command], None]


class ReplicaEngine(Engine):
    """Applies host broadcasts verbatim and forwards local intents."""

    def __init__(
        self,
        session: GameSession,
        link: Link | None = None,
        hooks: Hooks | None = None,
    ) -> None:
        super().__init__(session, hooks)
        self.link = link
        self.closed = False

        self._groups: dict[str, dict[str, Handler]] = {
            "player": {
                "add": self._player_add,
                "rename": self._player_rename,
                "color": self._player_color,
                "remove": self._player_remove,
                "line": self._player_line,
                "box": self._player_box,
            },
            "network": {
                "assign": self._network_assign,
                "chat": self._network_chat,
                "disconnect": self._network_disconnect,
                "full": self._network_refused,
                "busy": self._network_refused,
            },
            "game": {
                "play": self._game_play,
                "start": self._game_start,
                "restart": self._game_start,
                "stop": self._game_stop,
                "current": self._game_current,
            },
            "grid": {
                "size": self._grid_size,
                "reset": self._grid_reset,
            },
            "info": {
                "version": self._info_version,
                "warn": self._info_warn,
                "malformed": self._info_malformed,
            },
            "request": {
                "deny": self._request_deny,
                "info": self._request_info,
            },
        }

    # ------------------------------------------------------------------
    # Connection events
    # ------------------------------------------------------------------

    def attach(self, link: Link) -> None:
        self.link = link

    def connected(self) -> None:
        """Open the handshake and ask for a seat."""
        logger.info("Connected to host %s", self.link.label if self.link else "?")
        self._send(cmd.info_version())
        self._send("request-join")

    def disconnected(self) -> None:
        """The transport lost the host."""
        if self.closed:
            return
        logger.info("Lost connection to the host")
        self._close()

    def server_message(self, line: str) -> None:
        """Process one line from the host."""
        logger.debug("<-- host: %s", line)
        if self.closed:
            return
        try:
            command = parse_line(line)
        except MalformedCommand as exc:
            self._malformed(str(exc))
            return

        if command.group == "unknown":
            logger.info("Host did not recognize a command: %s", line)
            return
        handler = self._groups.get(command.group, {}).get(command.verb)
        if handler is None:
            logger.info("Unrecognized command from host: %s", line)
            return
        try:
            handler(command)
        except MalformedCommand as exc:
            self._malformed(str(exc))
            return
        self.refresh()

    # ------------------------------------------------------------------
    # Outgoing
    # ------------------------------------------------------------------

    def _send(self, line: str) -> None:
        if self.link is None or self.closed:
            logger.warning("Not connected, dropping: %s", line)
            return
        logger.debug("--> host: %s", line)
        self.link.send(line)

    def _malformed(self, reason: str) -> None:
        logger.warning("Malformed command from host: %s", reason)
        self._send(cmd.info_malformed(reason))

    def _close(self) -> None:
        self.closed = True
        if self.link is not None:
            self.link.close()
        self.hooks.on_closed()

    # ------------------------------------------------------------------
    # player-*
    # ------------------------------------------------------------------

    def _player_add(self, command: Command) -> None:
        player_id = command.int_arg(0, "player ID")
        name = command.rest(1) or f"Client {player_id}"
        self.session.players.add(player_id, name)
        logger.info("Player %d (%s) joined", player_id, name)

    def _player_rename(self, command: Command) -> None:
        player = self._known(command.int_arg(0, "player ID"))
        if player is not None:
            player.name = command.rest(1)

    def _player_color(self, command: Command) -> None:
        player = self._known(command.int_arg(0, "player ID"))
        rgb = command.int_arg(1, "RGB color")
        if player is not None:
            player.color = rgb

    def _player_remove(self, command: Command) -> None:
        player_id = command.int_arg(0, "player ID")
        if player_id in (self.client_id, HOST_ID):
            logger.info("Removed from the game by the host")
            self._close()
            return
        self.session.remove_player(player_id)

    def _player_line(self, command: Command) -> None:
        owner = command.int_arg(0, "player ID")
        vertical = cmd.parse_orientation(command.arg(1, "line direction"))
        point = GridPoint.parse(command.arg(2, "GridPoint"))
        if not self.session.set_line(owner, vertical, point):
            logger.warning("Could not replay line %s %s for %d", point, orientation_name(vertical), owner)

    def _player_box(self, command: Command) -> None:
        owner = command.int_arg(0, "player ID")
        point = GridPoint.parse(command.arg(1, "GridPoint"))
        if not self.session.set_box(owner, point):
            logger.warning("Could not replay box %s for %d", point, owner)

    def _known(self, player_id: int):
        player = self.session.players.get(player_id)
        if player is None:
            logger.warning("Host referred to unknown player %d", player_id)
        return player

    # ------------------------------------------------------------------
    # network-*
    # ------------------------------------------------------------------

    def _network_assign(self, command: Command) -> None:
        self.client_id = command.int_arg(0, "player ID")
        logger.info("Assigned id %d", self.client_id)

    def _network_chat(self, command: Command) -> None:
        sender = command.int_arg(0, "player ID")
        text = command.rest(1)
        if sender == SYSTEM_ID:
            self._chat(text)
        else:
            self._chat(f"{self.peer_name(sender)}: {text}")

    def _network_disconnect(self, command: Command) -> None:
        logger.info("Host closed the connection")
        self._close()

    def _network_refused(self, command: Command) -> None:
        if self.client_id == QUEUED_ID:
            self._send("request-spectate")

    # ------------------------------------------------------------------
    # game-* and grid-*
    # ------------------------------------------------------------------

    def _game_play(self, command: Command) -> None:
        player_id = command.int_arg(0, "player ID")
        point = GridPoint.parse(command.arg(1, "GridPoint"))
        vertical = cmd.parse_orientation(command.arg(2, "line direction"))
        result = self.session.apply_move(player_id, point, vertical)
        if not result.accepted:
            logger.warning("Host move %s could not be applied: %s", command.raw, result.reason)

    def _game_start(self, command: Command) -> None:
        self.session.restart()

    def _game_stop(self, command: Command) -> None:
        self.session.stop()

    def _game_current(self, command: Command) -> None:
        self.session.set_current(command.int_arg(0, "player ID"))

    def _grid_size(self, command: Command) -> None:
        grid = Grid.parse(command.arg(0, "grid size"))
        self.session.resize(grid.width, grid.height)

    def _grid_reset(self, command: Command) -> None:
        self.session.reset_board()

    # ------------------------------------------------------------------
    # info-* and request-*
    # ------------------------------------------------------------------

    def _info_version(self, command: Command) -> None:
        major = command.int_arg(0, "version numbers")
        minor = command.int_arg(1, "version numbers")
        logger.info("Host is running version %d.%d", major, minor)
        if not cmd.compatible(major, minor):
            reason = (
                f"Server version {major}.{minor} is incompatible with"
                f" client version {cmd.PROTOCOL_VERSION[0]}.{cmd.PROTOCOL_VERSION[1]}"
            )
            logger.warning(reason)
            self.hooks.on_warning(reason)
            self._close()

    def _info_warn(self, command: Command) -> None:
        text = command.rest(0)
        logger.warning("Host: %s", text)
        self.hooks.on_warning(text)

    def _info_malformed(self, command: Command) -> None:
        logger.warning("Host could not parse a command: %s", command.rest(0))

    def _request_deny(self, command: Command) -> None:
        text = command.rest(0)
        logger.info("Request denied: %s", text)
        self.hooks.on_warning(text)

    def _request_info(self, command: Command) -> None:
        self._send(cmd.info_version())

    # ------------------------------------------------------------------
    # UI entry points
    # ------------------------------------------------------------------

    def on_move_attempt(self, point: GridPoint, vertical: bool) -> None:
        reason = self._local_move_check()
        if reason is not None:
            self.hooks.on_warning(reason)
            return
        self._send(cmd.format_command("game-play", point, orientation_name(vertical)))

    def on_rename_request(self, name: str) -> None:
        name = self._clean_name(name)
        if name:
            self._send(cmd.format_command("player-rename", name))

    def on_color_change_request(self, rgb: int) -> None:
        self._send(cmd.format_command("player-color", rgb))

    def send_chat(self, text: str) -> None:
        self._send(cmd.format_command("network-chat", self._clean_text(text)))

    def request_start(self) -> None:
        self._send("request-start")

    def request_restart(self) -> None:
        self._send("request-restart")

    def request_stop(self) -> None:
        self._send("request-stop")

    def disconnect(self) -> None:
        """Leave gracefully."""
        if self.closed:
            return
        self._send("network-disconnect")
        self._close()
