"""Referee: per-peer violation tracking for a hosted session.

The host records every command it refused, keyed by the peer's display
label, and writes the resulting violation report into the game summary.
Violations never change game state; they only explain what was refused.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum


class ViolationKind(Enum):
    MALFORMED = "malformed"
    ILLEGAL_MOVE = "illegal_move"
    NOT_VALIDATED = "not_validated"
    CAPACITY = "capacity"
    UNKNOWN_COMMAND = "unknown_command"
    VERSION_MISMATCH = "version_mismatch"


@dataclass
class _ViolationRecord:
    kind: ViolationKind
    details: str


class Referee:
    """Tracks refused commands per peer."""

    def __init__(self) -> None:
        self._violations: dict[str, list[_ViolationRecord]] = defaultdict(list)

    def record_violation(self, peer: str, kind: ViolationKind, details: str) -> None:
        self._violations[peer].append(_ViolationRecord(kind=kind, details=details))

    def count(self, peer: str, kind: ViolationKind | None = None) -> int:
        records = self._violations.get(peer, [])
        if kind is None:
            return len(records)
        return sum(1 for r in records if r.kind == kind)

    def last(self, peer: str) -> str | None:
        records = self._violations.get(peer)
        return records[-1].details if records else None

    def reset(self) -> None:
        self._violations.clear()

    def get_violation_report(self) -> dict:
        report = {}
        for peer, violations in self._violations.items():
            counts = {"total_violations": len(violations)}
            for kind in ViolationKind:
                counts[kind.value] = 0
            for v in violations:
                counts[v.kind.value] += 1
            report[peer] = counts
        return report
