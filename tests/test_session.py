"""Tests for GameSession: rules, scoring, lifecycle."""

from dotsboxes.core.grid import Grid, GridPoint
from dotsboxes.core.session import GameSession


def P(x, y):
    return GridPoint(x, y)


def _session(*ids, width=3, height=3):
    session = GameSession(Grid(width, height))
    for pid in ids:
        session.players.add(pid, "Host" if pid == 0 else f"Client {pid}")
    return session


# Lines around box (0,0), the last one closes it.
BOX_00 = [(P(0, 0), False), (P(0, 0), True), (P(1, 0), True), (P(0, 1), False)]


class TestPlaythroughs:
    def test_single_player_first_box(self):
        session = _session(0)
        session.restart()
        for point, vertical in BOX_00:
            assert session.apply_move(0, point, vertical).accepted
        assert session.players.get(0).score == 1
        assert not session.finished

    def test_scorer_moves_again(self):
        session = _session(1, 2)
        session.restart()
        assert session.current_player == 1
        moves = [
            (1, P(0, 0), False),
            (2, P(0, 0), True),
            (1, P(1, 0), True),
            (2, P(1, 1), False),
        ]
        for pid, point, vertical in moves:
            session.apply_move(pid, point, vertical)
        assert session.current_player == 1
        result = session.apply_move(1, P(0, 1), False)
        assert result.boxes_claimed == 1
        assert session.current_player == 1
        session.apply_move(1, P(2, 1), True)
        assert session.current_player == 2


class TestCheckMove:
    def test_before_start(self):
        check = _session(0).check_move(0)
        assert not check.legal
        assert check.reason == "The game hasn't started yet!"

    def test_non_player(self):
        session = _session(0)
        session.restart()
        assert session.check_move(-2).reason == "You aren't part of this game!"
        assert session.check_move(7).reason == "You aren't part of this game!"

    def test_not_your_turn(self):
        session = _session(0, 1)
        session.restart()
        assert session.check_move(1).reason == "Not your turn!"
        assert session.check_move(0).legal

    def test_after_finish(self):
        session = _session(0, width=2, height=2)
        session.restart()
        for point, vertical in BOX_00:
            session.apply_move(0, point, vertical)
        assert session.finished
        assert session.check_move(0).reason == "The game is over!"


class TestFinish:
    def test_last_box_finishes_game(self):
        session = _session(0, 1, width=2, height=2)
        session.restart()
        for point, vertical in BOX_00[:3]:
            session.apply_move(session.current_player, point, vertical)
        mover = session.current_player
        session.apply_move(mover, *BOX_00[3])
        assert session.finished
        assert session.outcome.winners == (mover,)
        assert session.players.total_score() == session.grid.max_spaces
        assert session.result_text() == f"{session.player_name(mover)} wins!"

    def test_score_never_exceeds_max_spaces(self):
        session = _session(0, 1)
        session.restart()
        for point in session.grid.all_points():
            for vertical in (False, True):
                if session.finished:
                    break
                session.apply_move(session.current_player, point, vertical)
                assert session.players.total_score() <= session.grid.max_spaces
        assert session.finished
        assert session.players.total_score() == 4

    def test_moves_rejected_once_finished(self):
        session = _session(0, width=2, height=2)
        session.restart()
        for point, vertical in BOX_00:
            session.apply_move(0, point, vertical)
        assert not session.apply_move(0, P(0, 0), False).accepted


class TestPopulation:
    def test_lobby_removal_drops_player(self):
        session = _session(0, 1)
        session.remove_player(1)
        assert 1 not in session.players

    def test_midgame_removal_marks_disconnected_and_passes_turn(self):
        session = _session(0, 1, 2)
        session.restart()
        session.apply_move(0, P(0, 0), False)
        assert session.current_player == 1
        session.remove_player(1)
        assert session.players.get(1).name == "Disconnected"
        assert session.current_player == 2

    def test_stop_purges_disconnected_and_resets(self):
        session = _session(0, 1)
        session.restart()
        session.apply_move(0, P(0, 0), False)
        session.remove_player(1)
        purged = session.stop()
        assert purged == [1]
        assert not session.started
        assert list(session.board.claimed_lines()) == []

    def test_restart_resets_scores(self):
        session = _session(0)
        session.restart()
        for point, vertical in BOX_00:
            session.apply_move(0, point, vertical)
        session.restart()
        assert session.players.get(0).score == 0
        assert session.current_player == 0


class TestReplicaHelpers:
    def test_set_box_scores_and_finishes(self):
        session = _session(0, width=2, height=2)
        session.restart()
        assert session.set_box(0, P(0, 0))
        assert session.players.get(0).score == 1
        assert session.finished

    def test_set_line_requires_known_owner(self):
        session = _session(0)
        assert not session.set_line(9, True, P(0, 0))
        assert session.set_line(0, True, P(0, 0))


class TestStatusText:
    def test_lobby(self):
        session = _session(0)
        assert session.status_text(is_host=True) == "Waiting for players... press start when ready."
        assert session.status_text(is_host=False) == "Waiting for host to start the game..."

    def test_running(self):
        session = _session(0)
        session.restart()
        assert session.status_text(is_host=True) == "Your move, Host"

    def test_tie(self):
        session = _session(0, 1, width=3, height=2)
        session.restart()
        session.players.get(0).score = 1
        session.set_box(1, P(1, 0))
        assert session.finished
        assert session.status_text(is_host=True) == "Tie!"
