"""Tests for Referee: per-peer violation tracking."""

from dotsboxes.core.referee import Referee, ViolationKind


class TestReferee:
    def test_counts_per_peer(self):
        ref = Referee()
        ref.record_violation("a", ViolationKind.MALFORMED, "x")
        ref.record_violation("a", ViolationKind.ILLEGAL_MOVE, "y")
        ref.record_violation("b", ViolationKind.ILLEGAL_MOVE, "z")
        assert ref.count("a") == 2
        assert ref.count("a", ViolationKind.MALFORMED) == 1
        assert ref.count("b", ViolationKind.MALFORMED) == 0

    def test_last(self):
        ref = Referee()
        assert ref.last("a") is None
        ref.record_violation("a", ViolationKind.CAPACITY, "full")
        ref.record_violation("a", ViolationKind.CAPACITY, "still full")
        assert ref.last("a") == "still full"

    def test_report(self):
        ref = Referee()
        ref.record_violation("a", ViolationKind.NOT_VALIDATED, "x")
        ref.record_violation("a", ViolationKind.NOT_VALIDATED, "x")
        report = ref.get_violation_report()
        assert report["a"]["total_violations"] == 2
        assert report["a"]["not_validated"] == 2
        assert report["a"]["version_mismatch"] == 0

    def test_empty_report(self):
        assert Referee().get_violation_report() == {}

    def test_reset(self):
        ref = Referee()
        ref.record_violation("a", ViolationKind.MALFORMED, "x")
        ref.reset()
        assert ref.count("a") == 0
