from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Sequence

import pandas as pd

from analytics_config import FLOAT_TYPES, THRESHOLDS, RiskLevel, classify_float_risk
from schedule_model import ScheduleSnapshot

BUCKET_ORDER = ("high", "medium", "low", "negative")

BUCKET_LABELS = {
    "high": f"High Float (>={THRESHOLDS.float_high_min}d)",
    "medium": f"Medium Float ({THRESHOLDS.float_medium_min}-<{THRESHOLDS.float_high_min}d)",
    "low": f"Low Float ({THRESHOLDS.float_low_min}-<{THRESHOLDS.float_medium_min}d)",
    "negative": f"Negative Float (<{THRESHOLDS.float_low_min}d)",
}


@dataclass(frozen=True)
class FloatBucket:
    name: str
    label: str
    count: int
    percentage: float


@dataclass(frozen=True)
class FloatBucketReport:
    update_id: str
    float_type: str
    total: int
    high: FloatBucket
    medium: FloatBucket
    low: FloatBucket
    negative: FloatBucket
    average_float: float
    critical_count: int
    positive_float_count: int
    critical_percentage: float
    risk_level: RiskLevel

    @property
    def buckets(self) -> tuple[FloatBucket, ...]:
        return (self.high, self.medium, self.low, self.negative)


@dataclass(frozen=True)
class FloatTrendPoint:
    update_id: str
    as_of_date: pd.Timestamp
    high: int
    medium: int
    low: int
    negative: int
    average_float: float


@dataclass(frozen=True)
class FloatTrend:
    float_type: str
    points: tuple[FloatTrendPoint, ...]
    total_erosion: float
    erosion_percentage: float
    at_risk_count: int


def _check_float_type(float_type: str) -> None:
    if float_type not in FLOAT_TYPES:
        raise ValueError(f"Unknown float type: {float_type!r} (expected one of {FLOAT_TYPES})")


def _bucket_counts(values: pd.Series) -> dict[str, int]:
    if values.empty:
        return {name: 0 for name in BUCKET_ORDER}
    t = THRESHOLDS
    # right=False: each bucket includes its lower edge, so 0 is Low and 10 is High.
    bins = [-math.inf, t.float_low_min, t.float_medium_min, t.float_high_min, math.inf]
    cut = pd.cut(values, bins=bins, labels=["negative", "low", "medium", "high"], right=False)
    counts = cut.value_counts()
    return {name: int(counts.get(name, 0)) for name in BUCKET_ORDER}


def bucket(snapshot: ScheduleSnapshot, float_type: str = "total") -> FloatBucketReport:
    """
    Bucket a snapshot's activities by total or free float.

    The two float types are never mixed in one report. An empty snapshot gives
    zero counts and percentages.
    """
    _check_float_type(float_type)
    values = pd.Series([a.float_value(float_type) for a in snapshot.activities], dtype="float64")
    total = int(len(values))
    counts = _bucket_counts(values)

    def make(name: str) -> FloatBucket:
        pct = (counts[name] / total * 100.0) if total else 0.0
        return FloatBucket(name=name, label=BUCKET_LABELS[name], count=counts[name], percentage=pct)

    negative = make("negative")
    return FloatBucketReport(
        update_id=snapshot.update_id,
        float_type=float_type,
        total=total,
        high=make("high"),
        medium=make("medium"),
        low=make("low"),
        negative=negative,
        average_float=float(values.mean()) if total else 0.0,
        critical_count=negative.count,
        positive_float_count=total - negative.count,
        critical_percentage=negative.percentage,
        risk_level=classify_float_risk(negative.percentage),
    )


def float_trend(snapshots: Sequence[ScheduleSnapshot], float_type: str = "total") -> FloatTrend:
    _check_float_type(float_type)
    points: list[FloatTrendPoint] = []
    latest: FloatBucketReport | None = None
    for snap in snapshots:
        latest = bucket(snap, float_type)
        points.append(
            FloatTrendPoint(
                update_id=snap.update_id,
                as_of_date=snap.as_of_date,
                high=latest.high.count,
                medium=latest.medium.count,
                low=latest.low.count,
                negative=latest.negative.count,
                average_float=latest.average_float,
            )
        )

    if not points:
        return FloatTrend(float_type=float_type, points=(), total_erosion=0.0, erosion_percentage=0.0, at_risk_count=0)

    first, last = points[0], points[-1]
    total_erosion = first.average_float - last.average_float
    erosion_pct = (total_erosion / first.average_float * 100.0) if first.average_float else 0.0
    return FloatTrend(
        float_type=float_type,
        points=tuple(points),
        total_erosion=total_erosion,
        erosion_percentage=erosion_pct,
        at_risk_count=latest.low.count + latest.negative.count if latest else 0,
    )
