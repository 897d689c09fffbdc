import pytest

from critical_path_differ import diff, diff_sequence, path_stability


# ----------------------------------------------------------------
# 1. SINGLE PERIOD
# ----------------------------------------------------------------
def test_first_cycle_marks_everything_remained(two_updates):
    first, _ = two_updates
    d = diff(None, first)
    assert d.from_update_id is None
    assert d.remained == ("A001", "A002")
    assert d.joined == () and d.left == ()
    assert d.float_delta == 0.0
    assert d.change_count == 0
    assert all(c.change_type == "remained" and c.previous_status is None for c in d.changes)


def test_activity_joining_the_path(two_updates):
    """A003 had 3 days float in U001 and 0 in U002."""
    first, second = two_updates
    d = diff(first, second)
    assert "A003" in d.joined
    assert d.joined == ("A003",)
    assert d.remained == ("A002",)
    assert d.left == ("A001",)
    assert d.change_count == 2
    assert (d.from_update_id, d.to_update_id) == ("U001", "U002")


def test_membership_sets_partition(two_updates):
    first, second = two_updates
    d = diff(first, second)
    assert not set(d.joined) & set(d.left)
    assert set(d.joined) | set(d.remained) == second.critical_ids()
    assert not set(d.joined) & set(d.remained)


def test_float_delta_uses_critical_means(two_updates):
    first, second = two_updates
    d = diff(first, second)
    # U001 critical mean: (0 + -2) / 2 = -1 ; U002 critical mean: (0 + 0) / 2 = 0
    assert d.float_delta == pytest.approx(1.0)
    assert d.average_float == pytest.approx(0.0)


def test_float_delta_zero_without_critical_activities(make_activity, make_snapshot):
    a = make_snapshot("U1", "2025-01-01", [make_activity("A", total_float=5)])
    b = make_snapshot("U2", "2025-01-15", [make_activity("A", total_float=0)])
    assert diff(a, b).float_delta == 0.0
    assert diff(a, b).joined == ("A",)


def test_new_activity_on_path_counts_as_joined(make_activity, make_snapshot):
    a = make_snapshot("U1", "2025-01-01", [make_activity("A", total_float=0)])
    b = make_snapshot("U2", "2025-01-15", [make_activity("A", total_float=0), make_activity("B", total_float=0)])
    d = diff(a, b)
    assert d.joined == ("B",)
    assert d.remained == ("A",)


def test_constraint_change_does_not_affect_membership(make_activity, make_snapshot):
    a = make_snapshot("U1", "2025-01-01", [make_activity("A", total_float=0)])
    b = make_snapshot("U2", "2025-01-15", [make_activity("A", total_float=0, constraint_type="MSO")])
    d = diff(a, b)
    assert d.remained == ("A",)
    assert d.joined == () and d.left == ()


def test_diff_is_deterministic(two_updates):
    first, second = two_updates
    assert diff(first, second) == diff(first, second)


# ----------------------------------------------------------------
# 2. SEQUENCES AND STABILITY
# ----------------------------------------------------------------
def test_diff_sequence_length(two_updates, make_activity, make_snapshot):
    first, second = two_updates
    assert diff_sequence([first]) == []
    third = make_snapshot("U003", "2025-02-15", [make_activity("A003", total_float=0)])
    diffs = diff_sequence([first, second, third])
    assert len(diffs) == 2
    assert diffs[1].left == ("A002",)
    assert diffs[1].remained == ("A003",)


def test_path_stability_summary(two_updates, make_activity, make_snapshot):
    first, second = two_updates
    third = make_snapshot("U003", "2025-02-15", [make_activity("A003", total_float=0)])
    stats = path_stability(diff_sequence([first, second, third]))

    # Period 1: joined A003, left A001 -> 2 ; Period 2: left A002 -> 1
    assert stats.total_changes == 3
    assert stats.path_change_periods == 2
    assert stats.max_changes_in_period == 2
    assert stats.most_frequent_activity == {"activity_id": "A003", "frequency": 2}

    by_id = {a.activity_id: a for a in stats.activities}
    assert by_id["A003"].stability == pytest.approx(1.0)
    assert by_id["A002"].periods_on_path == 1
    assert by_id["A001"].join_leave_count == 1
    assert by_id["A001"].periods_on_path == 0


def test_path_stability_empty():
    stats = path_stability([])
    assert stats.total_changes == 0
    assert stats.most_frequent_activity is None
    assert stats.activities == ()
