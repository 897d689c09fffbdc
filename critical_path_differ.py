from __future__ import annotations

from collections import Counter
from dataclasses import dataclass
from typing import Literal, Sequence

import pandas as pd

from schedule_model import ScheduleSnapshot

ChangeType = Literal["joined", "left", "remained"]


@dataclass(frozen=True)
class ActivityChange:
    activity_id: str
    change_type: ChangeType
    previous_status: bool | None
    current_status: bool


@dataclass(frozen=True)
class PeriodDiff:
    from_update_id: str | None
    to_update_id: str
    as_of_date: pd.Timestamp
    joined: tuple[str, ...]
    left: tuple[str, ...]
    remained: tuple[str, ...]
    float_delta: float
    average_float: float
    changes: tuple[ActivityChange, ...]
    change_count: int


@dataclass(frozen=True)
class ActivityStability:
    activity_id: str
    periods_on_path: int
    join_leave_count: int
    stability: float


@dataclass(frozen=True)
class PathStability:
    total_changes: int
    path_change_periods: int
    max_changes_in_period: int
    avg_float_change: float
    most_frequent_activity: dict[str, object] | None
    activities: tuple[ActivityStability, ...]


def critical_mean_float(snapshot: ScheduleSnapshot) -> float | None:
    """Mean total float over the snapshot's critical activities; None when there are none."""
    values = [a.total_float for a in snapshot.activities if a.on_critical_path]
    if not values:
        return None
    return float(pd.Series(values, dtype="float64").mean())


def diff(previous: ScheduleSnapshot | None, current: ScheduleSnapshot) -> PeriodDiff:
    """
    Classify critical-path membership between two consecutive snapshots.

    With no previous snapshot every critical activity counts as 'remained'.
    Constraint changes do not affect membership.
    """
    current_ids = current.critical_ids()
    current_mean = critical_mean_float(current)

    if previous is None:
        remained = tuple(sorted(current_ids))
        changes = tuple(ActivityChange(aid, "remained", None, True) for aid in remained)
        return PeriodDiff(
            from_update_id=None,
            to_update_id=current.update_id,
            as_of_date=current.as_of_date,
            joined=(),
            left=(),
            remained=remained,
            float_delta=0.0,
            average_float=current_mean or 0.0,
            changes=changes,
            change_count=0,
        )

    previous_ids = previous.critical_ids()
    joined = tuple(sorted(current_ids - previous_ids))
    remained = tuple(sorted(current_ids & previous_ids))
    left = tuple(sorted(previous_ids - current_ids))

    previous_mean = critical_mean_float(previous)
    if current_mean is None or previous_mean is None:
        float_delta = 0.0
    else:
        float_delta = current_mean - previous_mean

    changes: list[ActivityChange] = []
    for aid in sorted(current_ids):
        kind: ChangeType = "remained" if aid in previous_ids else "joined"
        changes.append(ActivityChange(aid, kind, aid in previous_ids, True))
    for aid in left:
        changes.append(ActivityChange(aid, "left", True, False))

    return PeriodDiff(
        from_update_id=previous.update_id,
        to_update_id=current.update_id,
        as_of_date=current.as_of_date,
        joined=joined,
        left=left,
        remained=remained,
        float_delta=float_delta,
        average_float=current_mean or 0.0,
        changes=tuple(changes),
        change_count=len(joined) + len(left),
    )


def diff_sequence(snapshots: Sequence[ScheduleSnapshot]) -> list[PeriodDiff]:
    return [diff(snapshots[i - 1], snapshots[i]) for i in range(1, len(snapshots))]


def path_stability(diffs: Sequence[PeriodDiff]) -> PathStability:
    if not diffs:
        return PathStability(
            total_changes=0,
            path_change_periods=0,
            max_changes_in_period=0,
            avg_float_change=0.0,
            most_frequent_activity=None,
            activities=(),
        )

    counts = [d.change_count for d in diffs]
    on_path: Counter[str] = Counter()
    join_leave: Counter[str] = Counter()
    for d in diffs:
        on_path.update(d.joined + d.remained)
        join_leave.update(d.joined + d.left)

    most_frequent = None
    if on_path:
        aid, freq = min(on_path.items(), key=lambda kv: (-kv[1], kv[0]))
        most_frequent = {"activity_id": aid, "frequency": freq}

    periods = len(diffs)
    activities = tuple(
        ActivityStability(
            activity_id=aid,
            periods_on_path=on_path.get(aid, 0),
            join_leave_count=join_leave.get(aid, 0),
            stability=on_path.get(aid, 0) / periods,
        )
        for aid in sorted(set(on_path) | set(join_leave))
    )

    return PathStability(
        total_changes=sum(counts),
        path_change_periods=sum(1 for c in counts if c > 0),
        max_changes_in_period=max(counts),
        avg_float_change=sum(abs(d.float_delta) for d in diffs) / periods,
        most_frequent_activity=most_frequent,
        activities=activities,
    )
