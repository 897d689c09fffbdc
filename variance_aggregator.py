from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Literal, Sequence

import pandas as pd

import analytics_config as cfg
from analytics_config import RiskLevel
from analytics_log import get_logger
from schedule_model import ActivityState, DataIntegrityError, ScheduleSnapshot, day_diff, to_day

FinishState = Literal["complete", "incomplete", "no_baseline"]
StartState = Literal["started", "not_started", "no_baseline"]
MilestoneStatus = Literal["complete", "on-track", "at-risk", "delayed"]


@dataclass(frozen=True)
class ActivityVariance:
    activity_id: str
    name: str
    start_state: StartState
    finish_state: FinishState
    start_variance: int | None
    finish_variance: int | None
    has_significant_delay: bool
    is_milestone: bool
    on_critical_path: bool


@dataclass(frozen=True)
class MilestoneRecord:
    milestone_id: str
    name: str
    original_date: pd.Timestamp
    current_date: pd.Timestamp
    sequence: int | None = None
    is_complete: bool = False

    def __post_init__(self) -> None:
        original = to_day(self.original_date)
        current = to_day(self.current_date)
        if original is None or current is None:
            raise DataIntegrityError("Milestone needs original and current dates", activity_id=self.milestone_id)
        object.__setattr__(self, "original_date", original)
        object.__setattr__(self, "current_date", current)


@dataclass(frozen=True)
class MilestoneSlippage:
    milestone_id: str
    name: str
    original_date: pd.Timestamp
    current_date: pd.Timestamp
    slippage_days: int
    cumulative_slippage_days: int
    impact: RiskLevel
    status: MilestoneStatus


@dataclass(frozen=True)
class VarianceSummary:
    activity_count: int
    finished_late: int
    significant_delays: int
    incomplete: int
    not_started: int
    average_finish_variance: float
    critical_finished_late: int
    total_slippage_days: int


@dataclass(frozen=True)
class VarianceResult:
    activity_variances: tuple[ActivityVariance, ...]
    milestone_slippages: tuple[MilestoneSlippage, ...]
    summary: VarianceSummary
    issues: tuple[DataIntegrityError, ...] = ()


def activity_variance(
    activity: ActivityState, *, update_id: str | None = None
) -> tuple[ActivityVariance, list[DataIntegrityError]]:
    """
    Baseline-vs-actual variance for one activity, in days (negative = early).

    An actual date without its baseline leaves that variance undefined, marks
    the side 'no_baseline' and returns a DataIntegrityError for it; the other
    side is still computed.
    """
    issues: list[DataIntegrityError] = []
    start_state: StartState = "started" if activity.actual_start is not None else "not_started"
    finish_state: FinishState = "complete" if activity.actual_finish is not None else "incomplete"

    if start_state == "started" and activity.baseline_start is None:
        start_state = "no_baseline"
        issues.append(DataIntegrityError("Missing baseline start", activity_id=activity.activity_id, update_id=update_id))
    if finish_state == "complete" and activity.baseline_finish is None:
        finish_state = "no_baseline"
        issues.append(DataIntegrityError("Missing baseline finish", activity_id=activity.activity_id, update_id=update_id))

    start_var = day_diff(activity.actual_start, activity.baseline_start) if start_state == "started" else None
    finish_var = day_diff(activity.actual_finish, activity.baseline_finish) if finish_state == "complete" else None
    limit = cfg.THRESHOLDS.significant_delay_days
    significant = any(v is not None and abs(v) > limit for v in (start_var, finish_var))

    variance = ActivityVariance(
        activity_id=activity.activity_id,
        name=activity.name,
        start_state=start_state,
        finish_state=finish_state,
        start_variance=start_var,
        finish_variance=finish_var,
        has_significant_delay=significant,
        is_milestone=activity.is_milestone,
        on_critical_path=bool(activity.on_critical_path),
    )
    return variance, issues


def milestones_from_snapshot(snapshot: ScheduleSnapshot) -> tuple[list[MilestoneRecord], list[DataIntegrityError]]:
    records: list[MilestoneRecord] = []
    issues: list[DataIntegrityError] = []
    for a in snapshot.milestones():
        if a.baseline_finish is None or a.current_finish is None:
            issues.append(
                DataIntegrityError(
                    "Milestone missing baseline finish or current finish",
                    activity_id=a.activity_id,
                    update_id=snapshot.update_id,
                )
            )
            continue
        records.append(
            MilestoneRecord(
                milestone_id=a.activity_id,
                name=a.name,
                original_date=a.baseline_finish,
                current_date=a.current_finish,
                sequence=a.sequence,
                is_complete=a.actual_finish is not None,
            )
        )
    return records, issues


def _milestone_status(record: MilestoneRecord, slippage: int) -> MilestoneStatus:
    if record.is_complete:
        return "complete"
    if slippage <= 0:
        return "on-track"
    if slippage <= cfg.THRESHOLDS.significant_delay_days:
        return "at-risk"
    return "delayed"


def milestone_slippages(milestones: Iterable[MilestoneRecord]) -> list[MilestoneSlippage]:
    """
    Slippage per milestone in contractual order, with a running cumulative sum.

    Order is the explicit sequence when given, then original date, then id;
    input order never matters.
    """
    ordered = sorted(
        milestones,
        key=lambda m: (m.sequence is None, m.sequence or 0, m.original_date, m.milestone_id),
    )
    out: list[MilestoneSlippage] = []
    running = 0
    for m in ordered:
        slip = day_diff(m.current_date, m.original_date) or 0
        running += slip
        out.append(
            MilestoneSlippage(
                milestone_id=m.milestone_id,
                name=m.name,
                original_date=m.original_date,
                current_date=m.current_date,
                slippage_days=slip,
                cumulative_slippage_days=running,
                impact=cfg.classify_slippage_impact(slip),
                status=_milestone_status(m, slip),
            )
        )
    return out


def aggregate(
    activities: Sequence[ActivityState],
    milestones: Iterable[MilestoneRecord],
    *,
    update_id: str | None = None,
) -> VarianceResult:
    logger = get_logger()
    variances: list[ActivityVariance] = []
    issues: list[DataIntegrityError] = []
    for a in activities:
        variance, found = activity_variance(a, update_id=update_id)
        variances.append(variance)
        for e in found:
            logger.warning("Integrity: %s", e)
        issues.extend(found)

    slippages = milestone_slippages(milestones)

    finish_values = [v.finish_variance for v in variances if v.finish_variance is not None]
    summary = VarianceSummary(
        activity_count=len(variances),
        finished_late=sum(1 for x in finish_values if x > 0),
        significant_delays=sum(1 for v in variances if v.has_significant_delay),
        incomplete=sum(1 for v in variances if v.finish_state == "incomplete"),
        not_started=sum(1 for v in variances if v.start_state == "not_started"),
        average_finish_variance=(sum(finish_values) / len(finish_values)) if finish_values else 0.0,
        critical_finished_late=sum(
            1 for v in variances if v.on_critical_path and v.finish_variance is not None and v.finish_variance > 0
        ),
        total_slippage_days=slippages[-1].cumulative_slippage_days if slippages else 0,
    )
    return VarianceResult(
        activity_variances=tuple(variances),
        milestone_slippages=tuple(slippages),
        summary=summary,
        issues=tuple(issues),
    )


def aggregate_snapshot(snapshot: ScheduleSnapshot) -> VarianceResult:
    milestones, milestone_issues = milestones_from_snapshot(snapshot)
    logger = get_logger()
    for e in milestone_issues:
        logger.warning("Integrity: %s", e)
    result = aggregate(snapshot.activities, milestones, update_id=snapshot.update_id)
    return VarianceResult(
        activity_variances=result.activity_variances,
        milestone_slippages=result.milestone_slippages,
        summary=result.summary,
        issues=result.issues + tuple(milestone_issues),
    )
