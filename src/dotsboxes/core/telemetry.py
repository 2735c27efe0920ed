"""TelemetryLogger: JSONL game logging for a hosted session.

One logger per game. Writes one JSONL line per accepted move plus a
game summary as the final line. All entries include schema version and
game ID.

A logger built with a ``TelemetrySink`` only builds records; the sink's
background thread creates the directory and appends the lines.
"""

import json
import logging
import queue
import threading
from dataclasses import dataclass, asdict
from datetime import datetime, timezone
from pathlib import Path

import dotsboxes

logger = logging.getLogger(__name__)

_SCHEMA_VERSION = "1.0.0"
_SENTINEL = object()


@dataclass
class TelemetryEntry:
    """One accepted move."""

    turn_number: int
    player_id: int
    player_name: str
    point: str
    orientation: str
    boxes_claimed: int
    scores: dict[int, int]
    current_player: int
    finished: bool


def _append(path: Path, record: dict) -> None:
    with open(path, "a") as f:
        f.write(json.dumps(record, default=str) + "\n")


class TelemetrySink:
    """Background JSONL writer.

    Runs a daemon thread that drains a queue of ``(path, record)`` pairs
    and appends each record to its file. Write errors are logged and the
    record is dropped; they never reach the caller.
    """

    def __init__(self) -> None:
        self._queue: queue.Queue = queue.Queue()
        self._closed = False
        self._thread = threading.Thread(
            target=self._writer_loop, daemon=True, name="telemetry-writer",
        )
        self._thread.start()

    def write(self, path: Path, record: dict) -> None:
        if self._closed:
            logger.warning("Telemetry sink closed, dropping %s record", path.name)
            return
        self._queue.put((path, record))

    def flush(self) -> None:
        """Block until every queued record has been written."""
        self._queue.join()

    def close(self) -> None:
        """Send sentinel, drain remaining items, join background thread."""
        if self._closed:
            return
        self._closed = True
        self._queue.put(_SENTINEL)
        self._thread.join(timeout=10)

    def _writer_loop(self) -> None:
        while True:
            item = self._queue.get()
            try:
                if item is _SENTINEL:
                    return
                path, record = item
                try:
                    path.parent.mkdir(parents=True, exist_ok=True)
                    _append(path, record)
                except OSError as exc:
                    logger.warning("Telemetry write to %s failed: %s", path, exc)
            finally:
                self._queue.task_done()


class TelemetryLogger:
    """Writes JSONL telemetry for a single game."""

    def __init__(self, output_dir: Path, game_id: str, sink: TelemetrySink | None = None):
        self._output_dir = Path(output_dir)
        self._game_id = game_id
        self._sink = sink
        if sink is None:
            self._output_dir.mkdir(parents=True, exist_ok=True)
        self._file_path = self._output_dir / f"{game_id}.jsonl"

    @property
    def file_path(self) -> Path:
        return self._file_path

    @property
    def game_id(self) -> str:
        return self._game_id

    def log_move(self, entry: TelemetryEntry) -> None:
        record = asdict(entry)
        record["schema_version"] = _SCHEMA_VERSION
        record["game_id"] = self._game_id
        record["timestamp"] = datetime.now(timezone.utc).isoformat()
        self._append(record)

    def finalize_game(
        self,
        scores: dict[int, int],
        winners: list[int],
        violations: dict,
        extra: dict | None = None,
    ) -> None:
        record = {
            "schema_version": _SCHEMA_VERSION,
            "record_type": "game_summary",
            "game_id": self._game_id,
            "final_scores": scores,
            "winners": winners,
            "tie": len(winners) > 1,
            "violation_report": violations,
            "engine_version": dotsboxes.__version__,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if extra:
            record.update(extra)
        self._append(record)

    def _append(self, record: dict) -> None:
        if self._sink is not None:
            self._sink.write(self._file_path, record)
        else:
            _append(self._file_path, record)
