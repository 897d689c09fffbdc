from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable

import pandas as pd


class AnalyticsError(ValueError):
    pass


class InsufficientDataError(AnalyticsError):
    pass


class DataIntegrityError(AnalyticsError):
    """
    A snapshot record that cannot take part in a computation.

    Raised when a snapshot is built strictly; collected (not raised) when a
    computation can continue without the offending record.
    """

    def __init__(self, reason: str, *, activity_id: str | None = None, update_id: str | None = None) -> None:
        self.reason = reason
        self.activity_id = activity_id
        self.update_id = update_id
        super().__init__(f"{reason} (activity_id={activity_id!r}, update_id={update_id!r})")

    def as_dict(self) -> dict[str, Any]:
        return {"activity_id": self.activity_id, "update_id": self.update_id, "reason": self.reason}


class ConstraintType(str, Enum):
    NONE = "None"
    MUST_START_ON = "MustStartOn"
    MUST_FINISH_BY = "MustFinishBy"
    START_NO_EARLIER_THAN = "StartNoEarlierThan"
    FINISH_NO_EARLIER_THAN = "FinishNoEarlierThan"
    START_NO_LATER_THAN = "StartNoLaterThan"
    AS_LATE_AS_POSSIBLE = "AsLateAsPossible"

    @property
    def code(self) -> str:
        return _CONSTRAINT_CODES[self]

    @classmethod
    def parse(cls, value: Any) -> ConstraintType:
        if value is None or isinstance(value, cls):
            return value or cls.NONE
        s = str(value).strip()
        if not s or s.lower() in ("none", "nan"):
            return cls.NONE
        key = s.replace(" ", "").replace("_", "").casefold()
        for member in cls:
            if key in (member.value.casefold(), member.code.casefold()):
                return member
        raise ValueError(f"Unknown constraint type: {value!r}")


_CONSTRAINT_CODES = {
    ConstraintType.NONE: "",
    ConstraintType.MUST_START_ON: "MSO",
    ConstraintType.MUST_FINISH_BY: "MFB",
    ConstraintType.START_NO_EARLIER_THAN: "SNET",
    ConstraintType.FINISH_NO_EARLIER_THAN: "FNET",
    ConstraintType.START_NO_LATER_THAN: "SNLT",
    ConstraintType.AS_LATE_AS_POSSIBLE: "ALAP",
}


RELATIONSHIP_TYPES = ("FS", "SS", "FF", "SF")


def to_day(value: Any) -> pd.Timestamp | None:
    """Coerce a date-like value to a midnight Timestamp, or None when absent/unparseable."""
    if value is None:
        return None
    if isinstance(value, str) and not value.strip():
        return None
    ts = pd.to_datetime(value, errors="coerce")
    if pd.isna(ts):
        return None
    return pd.Timestamp(ts).normalize()


def day_diff(a: pd.Timestamp | None, b: pd.Timestamp | None) -> int | None:
    if a is None or b is None:
        return None
    return int((a - b).days)


def iso_day(ts: pd.Timestamp | None) -> str | None:
    return None if ts is None else ts.date().isoformat()


@dataclass(frozen=True)
class Relationship:
    predecessor_id: str
    successor_id: str
    type: str = "FS"
    lag_days: float = 0.0

    def __post_init__(self) -> None:
        rel_type = str(self.type or "FS").strip().upper()
        if rel_type not in RELATIONSHIP_TYPES:
            raise DataIntegrityError(
                f"Unknown relationship type {self.type!r}",
                activity_id=str(self.successor_id),
            )
        object.__setattr__(self, "type", rel_type)
        object.__setattr__(self, "predecessor_id", str(self.predecessor_id).strip())
        object.__setattr__(self, "successor_id", str(self.successor_id).strip())


@dataclass(frozen=True)
class ActivityState:
    activity_id: str
    name: str = ""
    baseline_start: pd.Timestamp | None = None
    baseline_finish: pd.Timestamp | None = None
    actual_start: pd.Timestamp | None = None
    actual_finish: pd.Timestamp | None = None
    total_float: int = 0
    free_float: int = 0
    on_critical_path: bool | None = None
    is_milestone: bool = False
    constraint_type: ConstraintType = ConstraintType.NONE
    predecessor_count: int = 0
    successor_count: int = 0
    forecast_start: pd.Timestamp | None = None
    forecast_finish: pd.Timestamp | None = None
    sequence: int | None = None

    def __post_init__(self) -> None:
        set_ = object.__setattr__
        set_(self, "activity_id", str(self.activity_id).strip())
        for name in ("baseline_start", "baseline_finish", "actual_start", "actual_finish", "forecast_start", "forecast_finish"):
            set_(self, name, to_day(getattr(self, name)))
        set_(self, "total_float", int(self.total_float))
        set_(self, "free_float", int(self.free_float))
        if self.on_critical_path is None:
            # Convention: total float <= 0 means the activity drives the finish.
            set_(self, "on_critical_path", self.total_float <= 0)
        else:
            set_(self, "on_critical_path", bool(self.on_critical_path))
        set_(self, "is_milestone", bool(self.is_milestone))
        try:
            set_(self, "constraint_type", ConstraintType.parse(self.constraint_type))
        except ValueError as e:
            raise DataIntegrityError(str(e), activity_id=self.activity_id) from e
        if self.predecessor_count < 0 or self.successor_count < 0:
            raise DataIntegrityError("Negative predecessor/successor count", activity_id=self.activity_id)
        set_(self, "predecessor_count", int(self.predecessor_count))
        set_(self, "successor_count", int(self.successor_count))

    def float_value(self, float_type: str) -> int:
        if float_type == "total":
            return self.total_float
        if float_type == "free":
            return self.free_float
        raise ValueError(f"Unknown float type: {float_type!r} (expected 'total' or 'free')")

    @property
    def current_finish(self) -> pd.Timestamp | None:
        return self.actual_finish if self.actual_finish is not None else self.forecast_finish


@dataclass(frozen=True)
class ScheduleSnapshot:
    """
    One schedule update cycle.

    Activity ids must be unique; a duplicate raises DataIntegrityError. Use
    snapshot_loader for lenient loading that drops duplicates instead.
    """

    update_id: str
    as_of_date: pd.Timestamp
    activities: tuple[ActivityState, ...] = ()
    relationships: tuple[Relationship, ...] = ()
    integrity_issues: tuple[DataIntegrityError, ...] = field(default=(), compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "update_id", str(self.update_id))
        as_of = to_day(self.as_of_date)
        if as_of is None:
            raise DataIntegrityError("Missing or invalid as_of_date", update_id=self.update_id)
        object.__setattr__(self, "as_of_date", as_of)
        object.__setattr__(self, "activities", tuple(self.activities))
        object.__setattr__(self, "relationships", tuple(self.relationships))
        object.__setattr__(self, "integrity_issues", tuple(self.integrity_issues))

        seen: set[str] = set()
        for a in self.activities:
            if a.activity_id in seen:
                raise DataIntegrityError("Duplicate activity_id", activity_id=a.activity_id, update_id=self.update_id)
            seen.add(a.activity_id)

    def by_id(self) -> dict[str, ActivityState]:
        return {a.activity_id: a for a in self.activities}

    def activity(self, activity_id: str) -> ActivityState | None:
        return self.by_id().get(str(activity_id))

    def critical_ids(self) -> set[str]:
        return {a.activity_id for a in self.activities if a.on_critical_path}

    def milestones(self) -> list[ActivityState]:
        return [a for a in self.activities if a.is_milestone]


def check_sequence_order(snapshots: Iterable[ScheduleSnapshot]) -> None:
    prev: ScheduleSnapshot | None = None
    for snap in snapshots:
        if prev is not None and snap.as_of_date < prev.as_of_date:
            raise DataIntegrityError(
                f"as_of_date {iso_day(snap.as_of_date)} precedes {iso_day(prev.as_of_date)} of {prev.update_id}",
                update_id=snap.update_id,
            )
        prev = snap
