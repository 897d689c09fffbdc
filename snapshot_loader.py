from __future__ import annotations

import json
from collections import Counter
from pathlib import Path
from typing import Any, Iterable, Mapping

import pandas as pd

from analytics_log import get_logger
from schedule_model import (
    ActivityState,
    ConstraintType,
    DataIntegrityError,
    Relationship,
    ScheduleSnapshot,
    to_day,
)

HOURS_PER_DAY = 8.0

_ACTIVITY_COLUMNS: dict[str, list[str]] = {
    "activity_id": ["activity_id", "activityId", "task_code", "id"],
    "name": ["name", "task_name", "activity_name", "activityName"],
    "baseline_start": ["baseline_start", "baselineStart", "target_start_date"],
    "baseline_finish": ["baseline_finish", "baselineFinish", "target_end_date"],
    "actual_start": ["actual_start", "actualStart", "act_start_date"],
    "actual_finish": ["actual_finish", "actualFinish", "act_end_date"],
    "forecast_start": ["forecast_start", "forecastStart", "early_start_date"],
    "forecast_finish": ["forecast_finish", "forecastFinish", "early_end_date"],
    "total_float": ["total_float", "totalFloat", "total_float_days", "total_float_hr_cnt"],
    "free_float": ["free_float", "freeFloat", "free_float_days", "free_float_hr_cnt"],
    "on_critical_path": ["on_critical_path", "onCriticalPath", "critical", "criticalPath"],
    "is_milestone": ["is_milestone", "isMilestone"],
    "constraint_type": ["constraint_type", "constraintType", "cstr_type"],
    "predecessor_count": ["predecessor_count", "predecessorCount"],
    "successor_count": ["successor_count", "successorCount"],
    "sequence": ["sequence", "order", "milestone_sequence"],
}

_RELATIONSHIP_COLUMNS: dict[str, list[str]] = {
    "predecessor_id": ["predecessor_id", "predecessorId", "pred_task_code", "pred_task_id"],
    "successor_id": ["successor_id", "successorId", "task_code", "task_id"],
    "type": ["type", "relationship_type", "pred_type"],
    "lag_days": ["lag_days", "lag", "lag_hr_cnt"],
}

_P6_MILESTONE_TYPES = {"TT_Mile", "TT_FinMile", "TT_StartMile"}
_P6_PRED_TYPES = {"PR_FS": "FS", "PR_SS": "SS", "PR_FF": "FF", "PR_SF": "SF"}
_P6_CONSTRAINT_TYPES = {
    "CS_MSO": ConstraintType.MUST_START_ON,
    "CS_MANDSTART": ConstraintType.MUST_START_ON,
    "CS_MEO": ConstraintType.MUST_FINISH_BY,
    "CS_MEOB": ConstraintType.MUST_FINISH_BY,
    "CS_MANDFIN": ConstraintType.MUST_FINISH_BY,
    "CS_MSOA": ConstraintType.START_NO_EARLIER_THAN,
    "CS_SNET": ConstraintType.START_NO_EARLIER_THAN,
    "CS_MSOB": ConstraintType.START_NO_LATER_THAN,
    "CS_MEOA": ConstraintType.FINISH_NO_EARLIER_THAN,
    "CS_ALAP": ConstraintType.AS_LATE_AS_POSSIBLE,
}


def _pick_col(df: pd.DataFrame, candidates: list[str]) -> str | None:
    cols_lower = {c.lower(): c for c in df.columns}
    for cand in candidates:
        if cand.lower() in cols_lower:
            return cols_lower[cand.lower()]
    return None


def _to_days(col: str, values: pd.Series) -> pd.Series:
    numeric = pd.to_numeric(values, errors="coerce")
    if "hr" in col.lower():
        numeric = numeric / HOURS_PER_DAY
    return numeric


def _clean(value: Any) -> Any:
    if value is None:
        return None
    if isinstance(value, float) and pd.isna(value):
        return None
    if value is pd.NaT:
        return None
    return value


def _as_bool(value: Any) -> bool | None:
    value = _clean(value)
    if value is None:
        return None
    if isinstance(value, str):
        s = value.strip().casefold()
        if s in ("true", "yes", "y", "1"):
            return True
        if s in ("false", "no", "n", "0", ""):
            return False
        return None
    return bool(value)


def _normalize_relationships(relationships: pd.DataFrame | None) -> pd.DataFrame:
    if relationships is None or relationships.empty:
        return pd.DataFrame(columns=["predecessor_id", "successor_id", "type", "lag_days"])

    out = pd.DataFrame(index=relationships.index)
    for target, candidates in _RELATIONSHIP_COLUMNS.items():
        col = _pick_col(relationships, candidates)
        if col is None:
            out[target] = None
        elif target == "lag_days":
            out[target] = _to_days(col, relationships[col]).fillna(0.0)
        else:
            out[target] = relationships[col]
    if out["predecessor_id"].isna().all() or out["successor_id"].isna().all():
        raise ValueError("Relationship table needs predecessor and successor id columns.")

    out["predecessor_id"] = out["predecessor_id"].astype(str).str.strip()
    out["successor_id"] = out["successor_id"].astype(str).str.strip()
    out["type"] = (
        out["type"].fillna("FS").astype(str).str.strip().map(lambda t: _P6_PRED_TYPES.get(t, t.upper()))
    )
    return out


def snapshot_from_frames(
    update_id: str,
    as_of_date: Any,
    activities: pd.DataFrame,
    relationships: pd.DataFrame | None = None,
) -> ScheduleSnapshot:
    """
    Build a ScheduleSnapshot from tabular activity and relationship data.

    Column names are matched case-insensitively (e.g. 'activity_id' or
    'task_code'). Float columns named like '*_hr_cnt' are converted from hours
    to days. Duplicate activity ids are dropped (first wins) and recorded as
    integrity issues instead of failing the load.
    """
    logger = get_logger()
    update_id = str(update_id)
    issues: list[DataIntegrityError] = []

    rels = _normalize_relationships(relationships)
    rel_objects: list[Relationship] = []
    for r in rels.itertuples(index=False):
        try:
            rel = Relationship(
                predecessor_id=r.predecessor_id,
                successor_id=r.successor_id,
                type=r.type,
                lag_days=float(r.lag_days or 0.0),
            )
        except DataIntegrityError as e:
            raise DataIntegrityError(e.reason, activity_id=e.activity_id, update_id=update_id) from e
        rel_objects.append(rel)
    pred_counts = Counter(r.successor_id for r in rel_objects)
    succ_counts = Counter(r.predecessor_id for r in rel_objects)

    if activities is None or activities.empty:
        logger.info("Snapshot %s has no activities", update_id)
        return ScheduleSnapshot(update_id=update_id, as_of_date=as_of_date, relationships=tuple(rel_objects))

    id_col = _pick_col(activities, _ACTIVITY_COLUMNS["activity_id"])
    if not id_col:
        raise ValueError(f"Snapshot {update_id}: activities are missing an activity id column.")

    df = activities.copy()
    cols = {target: _pick_col(df, candidates) for target, candidates in _ACTIVITY_COLUMNS.items()}
    for target in ("total_float", "free_float"):
        col = cols[target]
        if col:
            df[col] = _to_days(col, df[col]).round()

    task_type_col = _pick_col(df, ["task_type"])

    states: list[ActivityState] = []
    seen: set[str] = set()
    for _, row in df.iterrows():
        aid = str(row[id_col]).strip()
        if aid in seen:
            err = DataIntegrityError("Duplicate activity_id dropped", activity_id=aid, update_id=update_id)
            logger.warning("Integrity: %s", err)
            issues.append(err)
            continue
        seen.add(aid)

        def get(target: str) -> Any:
            col = cols[target]
            return None if col is None else _clean(row[col])

        is_milestone = _as_bool(get("is_milestone"))
        if is_milestone is None and task_type_col:
            is_milestone = str(row[task_type_col]) in _P6_MILESTONE_TYPES

        preds = get("predecessor_count")
        succs = get("successor_count")
        total_float = get("total_float")
        free_float = get("free_float")
        sequence = get("sequence")
        constraint = get("constraint_type")
        if isinstance(constraint, str):
            constraint = _P6_CONSTRAINT_TYPES.get(constraint.strip().upper(), constraint)
        try:
            state = ActivityState(
                activity_id=aid,
                name=str(get("name") or ""),
                baseline_start=to_day(get("baseline_start")),
                baseline_finish=to_day(get("baseline_finish")),
                actual_start=to_day(get("actual_start")),
                actual_finish=to_day(get("actual_finish")),
                forecast_start=to_day(get("forecast_start")),
                forecast_finish=to_day(get("forecast_finish")),
                total_float=int(total_float) if total_float is not None else 0,
                free_float=int(free_float) if free_float is not None else 0,
                on_critical_path=_as_bool(get("on_critical_path")),
                is_milestone=bool(is_milestone),
                constraint_type=constraint,
                predecessor_count=int(preds) if preds is not None else pred_counts.get(aid, 0),
                successor_count=int(succs) if succs is not None else succ_counts.get(aid, 0),
                sequence=int(sequence) if sequence is not None else None,
            )
        except DataIntegrityError as e:
            raise DataIntegrityError(e.reason, activity_id=aid, update_id=update_id) from e
        if total_float is None:
            err = DataIntegrityError("Missing total float; treated as 0", activity_id=aid, update_id=update_id)
            logger.warning("Integrity: %s", err)
            issues.append(err)
        states.append(state)

    logger.debug(
        "Loaded snapshot %s: %s activities, %s relationships", update_id, len(states), len(rel_objects)
    )
    return ScheduleSnapshot(
        update_id=update_id,
        as_of_date=as_of_date,
        activities=tuple(states),
        relationships=tuple(rel_objects),
        integrity_issues=tuple(issues),
    )


def snapshot_from_dict(payload: Mapping[str, Any]) -> ScheduleSnapshot:
    update_id = payload.get("update_id", payload.get("updateId"))
    if update_id is None:
        raise ValueError("Snapshot is missing 'update_id'.")
    as_of_date = payload.get("as_of_date", payload.get("asOfDate"))
    activities = pd.DataFrame.from_records(list(payload.get("activities") or []))
    relationships = pd.DataFrame.from_records(list(payload.get("relationships") or []))
    return snapshot_from_frames(str(update_id), as_of_date, activities, relationships)


def order_snapshots(snapshots: Iterable[ScheduleSnapshot]) -> list[ScheduleSnapshot]:
    # sorted() is stable, so equal dates keep their input order.
    return sorted(snapshots, key=lambda s: s.as_of_date)


def load_snapshots(path: str | Path) -> list[ScheduleSnapshot]:
    """
    Read snapshots from a JSON document: {"snapshots": [...]} or a bare list.
    """
    p = Path(path)
    with p.open("r", encoding="utf-8") as f:
        doc = json.load(f)
    items = doc.get("snapshots", []) if isinstance(doc, dict) else doc
    if not isinstance(items, list):
        raise ValueError(f"{p}: expected a list of snapshots.")
    snapshots = [snapshot_from_dict(item) for item in items]
    get_logger().info("Loaded %s snapshot(s) from %s", len(snapshots), p)
    return order_snapshots(snapshots)
