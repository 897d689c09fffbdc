import pytest

from variance_aggregator import (
    MilestoneRecord,
    activity_variance,
    aggregate,
    aggregate_snapshot,
    milestone_slippages,
)
from schedule_model import DataIntegrityError


MILESTONES = [
    MilestoneRecord("M3", "Final Completion", "2025-06-05", "2025-06-30"),
    MilestoneRecord("M1", "Foundation Complete", "2025-03-01", "2025-03-10"),
    MilestoneRecord("M2", "MEP Rough-In Complete", "2025-04-25", "2025-05-15"),
]


# ----------------------------------------------------------------
# 1. ACTIVITY VARIANCE
# ----------------------------------------------------------------
def test_complete_activity_variance(make_activity):
    a = make_activity(
        "A001",
        baseline_start="2025-01-15",
        baseline_finish="2025-01-30",
        actual_start="2025-01-15",
        actual_finish="2025-02-05",
    )
    v, issues = activity_variance(a)
    assert issues == []
    assert v.start_variance == 0
    assert v.finish_variance == 6
    assert v.finish_state == "complete"
    assert v.has_significant_delay is True


def test_early_activity_is_negative(make_activity):
    a = make_activity(
        "A002",
        baseline_start="2025-02-10",
        baseline_finish="2025-02-20",
        actual_start="2025-02-07",
        actual_finish="2025-02-19",
    )
    v, _ = activity_variance(a)
    assert (v.start_variance, v.finish_variance) == (-3, -1)
    assert v.has_significant_delay is False


def test_missing_actual_finish_is_incomplete_not_on_time(make_activity):
    a = make_activity("A003", baseline_start="2025-02-01", baseline_finish="2025-02-20", actual_start="2025-02-09")
    v, issues = activity_variance(a)
    assert v.finish_state == "incomplete"
    assert v.finish_variance is None
    assert v.start_variance == 8
    assert v.has_significant_delay is True
    assert issues == []


def test_missing_baseline_is_reported(make_activity):
    a = make_activity("A004", actual_start="2025-02-01", actual_finish="2025-02-03", baseline_finish="2025-02-01")
    v, issues = activity_variance(a, update_id="U009")
    assert v.start_state == "no_baseline"
    assert v.start_variance is None
    assert v.finish_variance == 2
    assert len(issues) == 1
    assert isinstance(issues[0], DataIntegrityError)
    assert (issues[0].activity_id, issues[0].update_id) == ("A004", "U009")


# ----------------------------------------------------------------
# 2. MILESTONE SLIPPAGE
# ----------------------------------------------------------------
def test_cumulative_slippage_follows_contract_order():
    out = milestone_slippages(MILESTONES)
    assert [m.milestone_id for m in out] == ["M1", "M2", "M3"]
    assert [m.slippage_days for m in out] == [9, 20, 25]
    assert [m.cumulative_slippage_days for m in out] == [9, 29, 54]
    assert all(m.impact == "high" for m in out)
    assert all(m.status == "delayed" for m in out)


def test_cumulative_is_monotonic_for_non_negative_slippage():
    out = milestone_slippages(MILESTONES)
    cumulative = [m.cumulative_slippage_days for m in out]
    assert cumulative == sorted(cumulative)


def test_explicit_sequence_beats_dates():
    records = [
        MilestoneRecord("LATE", "Second by contract", "2025-01-01", "2025-01-03", sequence=2),
        MilestoneRecord("EARLY", "First by contract", "2025-05-01", "2025-05-02", sequence=1),
    ]
    out = milestone_slippages(records)
    assert [m.milestone_id for m in out] == ["EARLY", "LATE"]
    assert [m.cumulative_slippage_days for m in out] == [1, 3]


@pytest.mark.parametrize(
    "current, impact, status",
    [("2025-03-01", "low", "on-track"), ("2025-03-04", "medium", "at-risk"), ("2025-03-09", "high", "delayed")],
)
def test_milestone_impact_and_status(current, impact, status):
    (m,) = milestone_slippages([MilestoneRecord("M", "M", "2025-03-01", current)])
    assert (m.impact, m.status) == (impact, status)


def test_milestone_record_requires_dates():
    with pytest.raises(DataIntegrityError):
        MilestoneRecord("M", "M", "2025-03-01", None)


# ----------------------------------------------------------------
# 3. AGGREGATE
# ----------------------------------------------------------------
def test_aggregate_summary(make_activity):
    activities = [
        make_activity("A", baseline_start="2025-01-01", baseline_finish="2025-01-10",
                      actual_start="2025-01-01", actual_finish="2025-01-20", total_float=0),
        make_activity("B", baseline_start="2025-01-05", baseline_finish="2025-01-15",
                      actual_start="2025-01-05", actual_finish="2025-01-13"),
        make_activity("C", baseline_start="2025-01-10", baseline_finish="2025-01-30"),
    ]
    result = aggregate(activities, MILESTONES)
    s = result.summary
    assert s.activity_count == 3
    assert s.finished_late == 1
    assert s.incomplete == 1
    assert s.not_started == 1
    assert s.average_finish_variance == pytest.approx(4.0)
    assert s.critical_finished_late == 1
    assert s.significant_delays == 1
    assert s.total_slippage_days == 54


def test_aggregate_snapshot_uses_milestones(make_activity, make_snapshot):
    snap = make_snapshot(
        "U002",
        "2025-02-01",
        [
            make_activity("M1", is_milestone=True, baseline_finish="2025-03-01", forecast_finish="2025-03-10"),
            make_activity("M2", is_milestone=True, baseline_finish="2025-04-01", actual_finish="2025-04-01",
                          baseline_start="2025-04-01", actual_start="2025-04-01"),
            make_activity("M3", is_milestone=True, baseline_finish="2025-05-01"),
        ],
    )
    result = aggregate_snapshot(snap)
    assert [m.milestone_id for m in result.milestone_slippages] == ["M1", "M2"]
    assert result.milestone_slippages[1].status == "complete"
    assert [e.activity_id for e in result.issues] == ["M3"]
