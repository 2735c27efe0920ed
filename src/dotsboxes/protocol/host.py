"""HostEngine: the authoritative side of the protocol.

Every command from a client is parsed, checked against the current
session, applied, and then rebroadcast in canonical form so that every
replica converges on the host's state. The host's own UI actions go
through the same path with ``link=None`` (player id 0, always
validated).
"""

from __future__ import annotations

import itertools
import logging
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from dotsboxes.core.board import orientation_name
from dotsboxes.core.grid import GridPoint, MalformedCommand
from dotsboxes.core.players import HOST_ID, SYSTEM_ID
from dotsboxes.core.referee import Referee, ViolationKind
from dotsboxes.core.session import GameSession
from dotsboxes.core.telemetry import TelemetryEntry, TelemetryLogger, TelemetrySink
from dotsboxes.protocol import commands as cmd
from dotsboxes.protocol.base import Engine, Hooks, Link, sender_id
from dotsboxes.protocol.commands import AUTHORIZED_GROUPS, Command, parse_line
from dotsboxes.protocol.lobby import SessionManager

logger = logging.getLogger(__name__)

_game_counter = itertools.count(1)

Handler = Callable[[Link | None, Command], None]


class HostEngine(Engine):
    """Validates client input and keeps every replica in sync."""

    is_host = True

    def __init__(
        self,
        session: GameSession,
        *,
        host_name: str = "Server",
        max_players: int = 0,
        hooks: Hooks | None = None,
        telemetry_dir: Path | None = None,
        on_population: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(session, hooks)
        self.client_id = HOST_ID
        self.lobby = SessionManager(session, max_players, on_population)
        self.referee = Referee()
        self._telemetry_dir = telemetry_dir
        self._telemetry: TelemetryLogger | None = None
        self.telemetry_sink = TelemetrySink() if telemetry_dir is not None else None

        session.stop()
        session.board.reconcile()
        session.players.add(HOST_ID, host_name)

        self._groups: dict[str, dict[str, Handler]] = {
            "player": {
                "rename": self._player_rename,
                "color": self._player_color,
            },
            "network": {
                "disconnect": self._network_disconnect,
                "chat": self._network_chat,
            },
            "game": {
                "play": self._game_play,
                "start": self._game_host_only,
                "restart": self._game_host_only,
                "stop": self._game_host_only,
            },
            "request": {
                "start": self._request_lifecycle,
                "restart": self._request_lifecycle,
                "stop": self._request_lifecycle,
                "join": self._request_join,
                "spectate": self._request_spectate,
            },
            "info": {
                "version": self._info_version,
                "malformed": self._info_malformed,
                "warn": self._info_warn,
            },
        }

    # ------------------------------------------------------------------
    # Connection events
    # ------------------------------------------------------------------

    def connected(self, link: Link) -> None:
        logger.info("New connection from %s", link.label)
        self.lobby.connect(link)

    def disconnected(self, link: Link) -> None:
        """The transport lost the connection; same as a graceful leave."""
        logger.debug("Connection to %s lost", link.label)
        self._leave(link)

    def client_message(self, link: Link | None, line: str) -> None:
        """Process one line from a client (``None`` = the host itself)."""
        if link is not None and link.closed:
            logger.debug("Ignoring line from closed %s: %s", link.label, line)
            return
        logger.debug("<-- %s: %s", self._label(link), line)
        try:
            command = parse_line(line)
        except MalformedCommand as exc:
            self._malformed(link, str(exc))
            return

        if command.group == "unknown":
            logger.info("%s did not recognize a command: %s", self._label(link), line)
            return
        verbs = self._groups.get(command.group)
        if verbs is None:
            self._unknown(link, command.group, line)
            return
        if command.group in AUTHORIZED_GROUPS and not self._validated(link):
            self._refuse_unvalidated(link, command)
            return
        handler = verbs.get(command.verb)
        if handler is None:
            self._unknown(link, command.group, line)
            return
        try:
            handler(link, command)
        except MalformedCommand as exc:
            self._malformed(link, str(exc))

    # ------------------------------------------------------------------
    # Replies
    # ------------------------------------------------------------------

    def _label(self, link: Link | None) -> str:
        if link is None:
            return "self"
        return f"{self.peer_name(link.client_id)} [{link.label}]"

    def _reply(self, link: Link | None, line: str) -> None:
        if link is not None:
            self.lobby.send(link, line)

    def _warn(self, link: Link | None, reason: str, kind: ViolationKind) -> None:
        logger.warning("Refused %s: %s", self._label(link), reason)
        if link is None:
            self.hooks.on_warning(reason)
            return
        self.referee.record_violation(link.label, kind, reason)
        self._reply(link, cmd.info_warn(reason))

    def _deny(self, link: Link | None, reason: str, companion: str | None = None) -> None:
        logger.info("Denied request from %s: %s", self._label(link), reason)
        if link is None:
            self.hooks.on_warning(reason)
            return
        self.referee.record_violation(link.label, ViolationKind.CAPACITY, reason)
        self._reply(link, cmd.request_deny(reason))
        if companion:
            self._reply(link, companion)

    def _malformed(self, link: Link | None, reason: str) -> None:
        logger.warning("Malformed command from %s: %s", self._label(link), reason)
        if link is None:
            self.hooks.on_warning(reason)
            return
        self.referee.record_violation(link.label, ViolationKind.MALFORMED, reason)
        self._reply(link, cmd.info_malformed(reason))

    def _unknown(self, link: Link | None, group: str, line: str) -> None:
        logger.info("Unrecognized command from %s: %s", self._label(link), line)
        if link is not None:
            self.referee.record_violation(link.label, ViolationKind.UNKNOWN_COMMAND, line)
        self._reply(link, cmd.unknown(group))

    def _validated(self, link: Link | None) -> bool:
        return link is None or link.validated

    def _refuse_unvalidated(self, link: Link | None, command: Command) -> None:
        reason = "Server has not validated you yet!"
        if link is not None:
            self.referee.record_violation(link.label, ViolationKind.NOT_VALIDATED, command.raw)
        if command.group == "request":
            self._reply(link, cmd.request_deny(reason))
        else:
            self._reply(link, cmd.info_warn(reason))
        self._reply(link, "request-info")

    # ------------------------------------------------------------------
    # player-*
    # ------------------------------------------------------------------

    def _require_player(self, link: Link | None) -> int | None:
        player_id = sender_id(link)
        if player_id < HOST_ID or player_id not in self.session.players:
            self._warn(link, "You aren't a player yet!", ViolationKind.ILLEGAL_MOVE)
            return None
        return player_id

    def _player_rename(self, link: Link | None, command: Command) -> None:
        player_id = self._require_player(link)
        if player_id is None:
            return
        name = self._clean_name(command.rest(0))
        if not name:
            raise MalformedCommand("Missing player name!")
        self.lobby.broadcast(cmd.player_rename(player_id, name))
        self.session.players.get(player_id).name = name
        self.refresh()

    def _player_color(self, link: Link | None, command: Command) -> None:
        player_id = self._require_player(link)
        if player_id is None:
            return
        rgb = command.int_arg(0, "RGB color")
        self.lobby.broadcast(cmd.player_color(player_id, rgb))
        self.session.players.get(player_id).color = rgb
        self.refresh()

    # ------------------------------------------------------------------
    # network-*
    # ------------------------------------------------------------------

    def _network_disconnect(self, link: Link | None, command: Command) -> None:
        if link is None:
            return
        self._leave(link)

    def _leave(self, link: Link) -> None:
        self._reply(link, "network-disconnect")
        player_id = link.client_id
        player = self.session.players.get(player_id) if player_id > HOST_ID else None
        if player is None or player.link is not link or player.disconnected:
            self.lobby.forget(link)
        else:
            logger.info("Player %d (%s) disconnected", player_id, player.name)
            self.lobby.broadcast(cmd.player_remove(player_id))
            self.lobby.remove_player(player_id)
            if not self.session.started:
                self.lobby.backfill()
        link.close()
        self.refresh()

    def _network_chat(self, link: Link | None, command: Command) -> None:
        player_id = sender_id(link)
        text = self._clean_text(command.rest(0))
        self.lobby.broadcast(cmd.network_chat(player_id, text))
        self._chat(f"{self.peer_name(player_id)}: {text}")

    # ------------------------------------------------------------------
    # game-*
    # ------------------------------------------------------------------

    def _game_play(self, link: Link | None, command: Command) -> None:
        player_id = sender_id(link)
        args = 0
        if len(command.args) >= 3:
            if command.int_arg(0, "player ID") != player_id:
                self._warn(link, "You can only move for yourself!", ViolationKind.ILLEGAL_MOVE)
                return
            args = 1

        check = self.session.check_move(player_id)
        if not check.legal:
            self._warn(link, check.reason, ViolationKind.ILLEGAL_MOVE)
            return

        point = GridPoint.parse(command.arg(args, "GridPoint"))
        vertical = cmd.parse_orientation(command.arg(args + 1, "line direction"))
        result = self.session.apply_move(player_id, point, vertical)
        if not result.accepted:
            self._warn(link, f"Invalid move! {result.reason}", ViolationKind.ILLEGAL_MOVE)
            return

        self.lobby.broadcast(cmd.game_play(player_id, point, vertical))
        self._log_move(player_id, point, vertical, result.boxes_claimed)
        if self.session.finished:
            self._finish()
        self.refresh()

    def _game_host_only(self, link: Link | None, command: Command) -> None:
        if link is None:
            {"start": self.start_game, "restart": self.restart_game, "stop": self.stop_game}[
                command.verb
            ]()
            return
        self._warn(
            link,
            f"Only the host can do that, send request-{command.verb} instead.",
            ViolationKind.ILLEGAL_MOVE,
        )

    # ------------------------------------------------------------------
    # request-*
    # ------------------------------------------------------------------

    def _request_lifecycle(self, link: Link | None, command: Command) -> None:
        name = self.peer_name(sender_id(link))
        if command.verb == "stop":
            notice = f"{name} wants to return to the lobby."
        else:
            notice = f"{name} wants to {command.verb} the game."
        self.lobby.broadcast(cmd.network_chat(SYSTEM_ID, notice))
        self._chat(notice)

    def _request_join(self, link: Link | None, command: Command) -> None:
        if link is None:
            self._deny(link, "Already joined.")
            return
        check, companion = self.lobby.check_join(link)
        if not check.legal:
            self._deny(link, check.reason, companion)
            return
        self.lobby.join(link)
        self.refresh()

    def _request_spectate(self, link: Link | None, command: Command) -> None:
        if link is None:
            self._deny(link, "Already joined.")
            return
        check = self.lobby.check_spectate(link)
        if not check.legal:
            self._deny(link, check.reason)
            return
        self.lobby.spectate(link)

    # ------------------------------------------------------------------
    # info-*
    # ------------------------------------------------------------------

    def _info_version(self, link: Link | None, command: Command) -> None:
        if link is None:
            return
        if link.validated:
            self._warn(
                link, "Server has already received your version info.",
                ViolationKind.ILLEGAL_MOVE,
            )
            return
        try:
            major = command.int_arg(0, "version numbers")
            minor = command.int_arg(1, "version numbers")
        except MalformedCommand as exc:
            # A handshake that cannot be read is fatal.
            self._malformed(link, str(exc))
            self._drop(link)
            return
        logger.info("%s is running version %d.%d", link.label, major, minor)
        if not cmd.compatible(major, minor):
            logger.warning(
                "Client version %d.%d is incompatible with server version %d.%d",
                major, minor, *cmd.PROTOCOL_VERSION,
            )
            self.referee.record_violation(
                link.label, ViolationKind.VERSION_MISMATCH, f"{major}.{minor}"
            )
            self._drop(link)
            return
        link.validated = True

    def _info_malformed(self, link: Link | None, command: Command) -> None:
        logger.warning("%s reported a malformed command: %s", self._label(link), command.rest(0))

    def _info_warn(self, link: Link | None, command: Command) -> None:
        logger.warning("%s warned: %s", self._label(link), command.rest(0))

    def _drop(self, link: Link) -> None:
        self.lobby.forget(link)
        link.close()

    # ------------------------------------------------------------------
    # Host UI entry points
    # ------------------------------------------------------------------

    def on_move_attempt(self, point: GridPoint, vertical: bool) -> None:
        reason = self._local_move_check()
        if reason is not None:
            self.hooks.on_warning(reason)
            return
        self.client_message(None, f"game-play {point} {orientation_name(vertical)}")

    def on_rename_request(self, name: str) -> None:
        self.client_message(None, f"player-rename {name}")

    def on_color_change_request(self, rgb: int) -> None:
        self.client_message(None, cmd.format_command("player-color", rgb))

    def send_chat(self, text: str) -> None:
        self.client_message(None, cmd.format_command("network-chat", self._clean_text(text)))

    def start_game(self) -> None:
        """Start (or restart) a game with everyone currently seated."""
        self.lobby.broadcast("game-restart" if self.session.started else "game-start")
        self.session.stop()
        self.lobby.backfill()
        self.session.restart()
        self._open_telemetry()
        self.refresh()

    def restart_game(self) -> None:
        self.start_game()

    def stop_game(self) -> None:
        """Return everyone to the lobby."""
        self.lobby.broadcast("game-stop")
        self.session.stop()
        self.lobby.backfill()
        self._telemetry = None
        logger.info("Returned to the lobby")
        self.refresh()

    def resize_grid(self, width: int, height: int) -> None:
        if self.session.started:
            self.hooks.on_warning("The grid can only be resized in the lobby.")
            return
        if width < 2 or height < 2:
            self.hooks.on_warning("The grid must be at least 2x2.")
            return
        self.session.resize(width, height)
        self.session.reset_board()
        self.lobby.broadcast(cmd.grid_size(self.session.grid))
        self.lobby.broadcast("grid-reset")
        self.refresh()

    def shutdown(self) -> None:
        """Tell everyone the host is leaving and close every connection."""
        links = list(self.lobby.recipients()) + list(self.lobby.queue)
        for link in links:
            self.lobby.send(link, "network-disconnect")
            link.close()
        self.lobby.queue.clear()
        self.lobby.spectators.clear()
        if self.telemetry_sink is not None:
            self.telemetry_sink.close()
        self.hooks.on_closed()

    # ------------------------------------------------------------------
    # Telemetry
    # ------------------------------------------------------------------

    def _open_telemetry(self) -> None:
        if self._telemetry_dir is None:
            return
        stamp = datetime.now(timezone.utc).strftime("%Y%m%d-%H%M%S")
        game_id = f"game-{stamp}-{next(_game_counter)}"
        self._telemetry = TelemetryLogger(self._telemetry_dir, game_id, self.telemetry_sink)

    def _log_move(self, player_id: int, point: GridPoint, vertical: bool, boxes: int) -> None:
        if self._telemetry is None:
            return
        self._telemetry.log_move(TelemetryEntry(
            turn_number=self.session.turn_number,
            player_id=player_id,
            player_name=self.session.player_name(player_id),
            point=str(point),
            orientation=orientation_name(vertical),
            boxes_claimed=boxes,
            scores=self.session.players.scores(),
            current_player=self.session.current_player,
            finished=self.session.finished,
        ))

    def _finish(self) -> None:
        if self._telemetry is not None:
            outcome = self.session.outcome
            self._telemetry.finalize_game(
                scores=self.session.players.scores(),
                winners=list(outcome.winners) if outcome else [],
                violations=self.referee.get_violation_report(),
                extra={"grid": str(self.session.grid), "turns": self.session.turn_number},
            )
            self._telemetry = None
