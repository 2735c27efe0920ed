"""Tests for the JSONL telemetry logger."""

import json

from dotsboxes.core.telemetry import TelemetryEntry, TelemetryLogger, TelemetrySink


def _entry(**overrides):
    fields = dict(
        turn_number=1,
        player_id=0,
        player_name="Host",
        point="0,0",
        orientation="hor",
        boxes_claimed=0,
        scores={0: 0, 1: 0},
        current_player=1,
        finished=False,
    )
    fields.update(overrides)
    return TelemetryEntry(**fields)


def _records(path):
    return [json.loads(line) for line in path.read_text().splitlines()]


class TestTelemetryLogger:
    def test_creates_output_dir(self, tmp_output):
        logger = TelemetryLogger(tmp_output, "game-1")
        assert tmp_output.is_dir()
        assert logger.file_path == tmp_output / "game-1.jsonl"

    def test_move_record(self, tmp_output):
        logger = TelemetryLogger(tmp_output, "game-1")
        logger.log_move(_entry())
        (record,) = _records(logger.file_path)
        assert record["schema_version"] == "1.0.0"
        assert record["game_id"] == "game-1"
        assert record["point"] == "0,0"
        assert record["scores"] == {"0": 0, "1": 0}
        assert "timestamp" in record

    def test_summary_is_last(self, tmp_output):
        logger = TelemetryLogger(tmp_output, "game-1")
        logger.log_move(_entry())
        logger.log_move(_entry(turn_number=2, player_id=1))
        logger.finalize_game(
            scores={0: 3, 1: 1},
            winners=[0],
            violations={},
            extra={"grid": "3x3"},
        )
        records = _records(logger.file_path)
        assert len(records) == 3
        summary = records[-1]
        assert summary["record_type"] == "game_summary"
        assert summary["winners"] == [0]
        assert summary["tie"] is False
        assert summary["grid"] == "3x3"
        assert summary["engine_version"]

    def test_tie_flag(self, tmp_output):
        logger = TelemetryLogger(tmp_output, "game-2")
        logger.finalize_game(scores={0: 2, 1: 2}, winners=[0, 1], violations={})
        assert _records(logger.file_path)[-1]["tie"] is True


class TestTelemetrySink:
    def test_writes_in_background(self, tmp_output):
        sink = TelemetrySink()
        logger = TelemetryLogger(tmp_output / "games", "game-3", sink)
        logger.log_move(_entry())
        logger.finalize_game(scores={0: 1}, winners=[0], violations={})
        sink.flush()
        records = _records(logger.file_path)
        assert [r.get("record_type") for r in records] == [None, "game_summary"]
        sink.close()

    def test_directory_created_by_writer(self, tmp_output):
        sink = TelemetrySink()
        logger = TelemetryLogger(tmp_output, "game-4", sink)
        assert not tmp_output.exists()
        logger.log_move(_entry())
        sink.close()
        assert logger.file_path.exists()

    def test_write_after_close_dropped(self, tmp_output):
        sink = TelemetrySink()
        sink.close()
        sink.write(tmp_output / "late.jsonl", {"x": 1})
        assert not tmp_output.exists()

    def test_write_error_does_not_stop_writer(self, tmp_path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        sink = TelemetrySink()
        sink.write(blocker / "game.jsonl", {"x": 1})
        sink.write(tmp_path / "ok.jsonl", {"x": 2})
        sink.close()
        assert json.loads((tmp_path / "ok.jsonl").read_text()) == {"x": 2}
