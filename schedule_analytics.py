from __future__ import annotations

import argparse
import dataclasses
import json
import sys
import time
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Sequence

import pandas as pd

import analytics_config as cfg
import analytics_log
import critical_path_differ as cpd
import float_distribution as fd
import logic_scorer as ls
import snapshot_loader as sl
import variance_aggregator as va
from schedule_model import DataIntegrityError, InsufficientDataError, ScheduleSnapshot, check_sequence_order


@dataclass(frozen=True)
class Report:
    snapshot_count: int
    latest_update_id: str
    period_diffs: tuple[cpd.PeriodDiff, ...]
    path_stability: cpd.PathStability
    float_buckets: dict[str, tuple[fd.FloatBucketReport, ...]]
    float_trends: dict[str, fd.FloatTrend]
    logic_quality: tuple[ls.LogicQualityReport, ...]
    constraint_summary: ls.ConstraintSummary
    activity_variances: tuple[va.ActivityVariance, ...]
    milestone_slippages: tuple[va.MilestoneSlippage, ...]
    variance_summary: va.VarianceSummary
    integrity_issues: tuple[DataIntegrityError, ...]

    def to_dict(self) -> dict[str, Any]:
        return _plain(self)


def _plain(obj: Any) -> Any:
    if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
        return {f.name: _plain(getattr(obj, f.name)) for f in dataclasses.fields(obj)}
    if isinstance(obj, DataIntegrityError):
        return obj.as_dict()
    if isinstance(obj, pd.Timestamp):
        return obj.date().isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, dict):
        return {str(k): _plain(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple, set, frozenset)):
        items = sorted(obj) if isinstance(obj, (set, frozenset)) else obj
        return [_plain(x) for x in items]
    return obj


def analyze(snapshots: Sequence[ScheduleSnapshot], *, float_types: Sequence[str] = cfg.FLOAT_TYPES) -> Report:
    """
    Run every analyzer over an ordered sequence of snapshots.

    A single snapshot is valid (no period diffs). Milestone slippage and
    activity variances describe the latest snapshot.
    """
    if not snapshots:
        raise InsufficientDataError("At least one schedule snapshot is required.")
    for t in float_types:
        if t not in cfg.FLOAT_TYPES:
            raise ValueError(f"Unknown float type: {t!r} (expected one of {cfg.FLOAT_TYPES})")

    logger = analytics_log.get_logger()
    t0 = time.perf_counter()
    snapshots = list(snapshots)
    check_sequence_order(snapshots)
    logger.info("Analyze start snapshots=%s float_types=%s", len(snapshots), ",".join(float_types))

    diffs = cpd.diff_sequence(snapshots)
    float_buckets = {t: tuple(fd.bucket(s, t) for s in snapshots) for t in float_types}
    float_trends = {t: fd.float_trend(snapshots, t) for t in float_types}
    logic = tuple(ls.score(s) for s in snapshots)

    latest = snapshots[-1]
    variance = va.aggregate_snapshot(latest)

    issues: list[DataIntegrityError] = []
    for s in snapshots:
        issues.extend(s.integrity_issues)
    for q in logic:
        issues.extend(q.issues)
    issues.extend(variance.issues)

    report = Report(
        snapshot_count=len(snapshots),
        latest_update_id=latest.update_id,
        period_diffs=tuple(diffs),
        path_stability=cpd.path_stability(diffs),
        float_buckets=float_buckets,
        float_trends=float_trends,
        logic_quality=logic,
        constraint_summary=ls.analyze_constraints(latest),
        activity_variances=variance.activity_variances,
        milestone_slippages=variance.milestone_slippages,
        variance_summary=variance.summary,
        integrity_issues=tuple(issues),
    )
    logger.info(
        "Analyze ok snapshots=%s diffs=%s issues=%s total_s=%.3f",
        len(snapshots),
        len(diffs),
        len(issues),
        time.perf_counter() - t0,
    )
    return report


def _main(argv: Sequence[str] | None = None) -> int:
    settings = cfg.load_settings()
    p = argparse.ArgumentParser(description="Schedule analytics over an ordered series of schedule snapshots.")
    p.add_argument("snapshots_json", help="Path to a JSON file with {'snapshots': [...]}")
    p.add_argument(
        "--float-type",
        action="append",
        choices=list(cfg.FLOAT_TYPES),
        dest="float_types",
        help="Float field to bucket (repeatable; default from settings: total and free)",
    )
    p.add_argument("--indent", type=int, default=settings.indent, help="JSON indent for the report")
    p.add_argument("--out", default=None, help="Write the report here instead of stdout")
    p.add_argument("--log-level", default=settings.log_level, help="Logger level (DEBUG, INFO, WARNING, ...)")
    args = p.parse_args(argv)

    analytics_log.set_level(args.log_level)
    snapshots = sl.load_snapshots(args.snapshots_json)
    try:
        report = analyze(snapshots, float_types=tuple(args.float_types or settings.float_types))
    except InsufficientDataError as e:
        print(f"error: {e}", file=sys.stderr)
        return 2

    text = json.dumps(report.to_dict(), indent=args.indent, default=str)
    if args.out:
        Path(args.out).write_text(text + "\n", encoding="utf-8")
    else:
        print(text)
    return 0


if __name__ == "__main__":
    raise SystemExit(_main())
