from __future__ import annotations

import json
import os
import platform
from dataclasses import asdict, dataclass, fields
from pathlib import Path
from typing import Any, Literal

Status = Literal["good", "warning", "critical"]
RiskLevel = Literal["low", "medium", "high"]

FLOAT_TYPES = ("total", "free")
SETTINGS_DIR_ENV = "SCHEDULE_ANALYTICS_HOME"


@dataclass(frozen=True)
class AnalyticsThresholds:
    """
    Every fixed threshold used by the analyzers.

    Bands are written as (lower, upper) pairs, inclusive on both ends unless a
    classifier below says otherwise.
    """

    # Float buckets: negative < 0 <= low < 5 <= medium < 10 <= high
    float_low_min: int = 0
    float_medium_min: int = 5
    float_high_min: int = 10
    float_risk_medium_pct: float = 15.0
    float_risk_high_pct: float = 25.0

    logic_density_good: tuple[float, float] = (2.0, 4.0)
    logic_density_warning: tuple[float, float] = (1.5, 5.0)
    missing_ties_good_pct: float = 5.0
    missing_ties_warning_pct: float = 10.0
    relationship_mix_good_pct: tuple[float, float] = (10.0, 25.0)
    relationship_mix_warning_pct: tuple[float, float] = (5.0, 35.0)
    loops_warning_max: int = 2

    avg_successors_good_min: float = 2.0
    avg_successors_warning_min: float = 1.5
    logic_depth_good_max: int = 25
    logic_depth_warning_max: int = 35
    constrained_good_pct: float = 8.0
    constrained_warning_pct: float = 12.0
    redundant_good_max: int = 2
    redundant_warning_max: int = 4
    dangling_good_pct: float = 3.0
    dangling_warning_pct: float = 7.0

    score_good_weight: int = 100
    score_warning_weight: int = 60
    score_critical_weight: int = 20
    score_good_min: float = 80.0
    score_warning_min: float = 60.0

    constraint_risk_medium_pct: float = 15.0
    constraint_risk_high_pct: float = 30.0

    significant_delay_days: int = 5
    slippage_medium_days: int = 2
    slippage_high_days: int = 7


THRESHOLDS = AnalyticsThresholds()


def float_bucket_name(value: float, t: AnalyticsThresholds = THRESHOLDS) -> str:
    if value < t.float_low_min:
        return "negative"
    if value < t.float_medium_min:
        return "low"
    if value < t.float_high_min:
        return "medium"
    return "high"


def classify_float_risk(critical_pct: float, t: AnalyticsThresholds = THRESHOLDS) -> RiskLevel:
    if critical_pct > t.float_risk_high_pct:
        return "high"
    if critical_pct > t.float_risk_medium_pct:
        return "medium"
    return "low"


def _in(value: float, band: tuple[float, float]) -> bool:
    return band[0] <= value <= band[1]


def classify_logic_density(density: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    # warning band is [1.5, 2.0) U (4.0, 5.0]; good is checked first.
    if _in(density, t.logic_density_good):
        return "good"
    if _in(density, t.logic_density_warning):
        return "warning"
    return "critical"


def classify_missing_ties(pct: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if pct <= t.missing_ties_good_pct:
        return "good"
    if pct <= t.missing_ties_warning_pct:
        return "warning"
    return "critical"


def classify_relationship_mix(pct: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if _in(pct, t.relationship_mix_good_pct):
        return "good"
    if _in(pct, t.relationship_mix_warning_pct):
        return "warning"
    return "critical"


def classify_loops(count: int, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if count == 0:
        return "good"
    if count <= t.loops_warning_max:
        return "warning"
    return "critical"


def classify_avg_successors(avg: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if avg >= t.avg_successors_good_min:
        return "good"
    if avg >= t.avg_successors_warning_min:
        return "warning"
    return "critical"


def classify_logic_depth(depth: int, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if depth <= t.logic_depth_good_max:
        return "good"
    if depth <= t.logic_depth_warning_max:
        return "warning"
    return "critical"


def classify_constrained(pct: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if pct <= t.constrained_good_pct:
        return "good"
    if pct <= t.constrained_warning_pct:
        return "warning"
    return "critical"


def classify_redundant(count: int, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if count <= t.redundant_good_max:
        return "good"
    if count <= t.redundant_warning_max:
        return "warning"
    return "critical"


def classify_dangling(pct: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if pct <= t.dangling_good_pct:
        return "good"
    if pct <= t.dangling_warning_pct:
        return "warning"
    return "critical"


def health_score(statuses: list[Status], t: AnalyticsThresholds = THRESHOLDS) -> float:
    if not statuses:
        return 0.0
    weights = {"good": t.score_good_weight, "warning": t.score_warning_weight, "critical": t.score_critical_weight}
    return sum(weights[s] for s in statuses) / len(statuses)


def classify_score(score: float, t: AnalyticsThresholds = THRESHOLDS) -> Status:
    if score >= t.score_good_min:
        return "good"
    if score >= t.score_warning_min:
        return "warning"
    return "critical"


def classify_constraint_risk(critical_path_pct: float, t: AnalyticsThresholds = THRESHOLDS) -> RiskLevel:
    if critical_path_pct > t.constraint_risk_high_pct:
        return "high"
    if critical_path_pct > t.constraint_risk_medium_pct:
        return "medium"
    return "low"


def classify_slippage_impact(days: int, t: AnalyticsThresholds = THRESHOLDS) -> RiskLevel:
    if days > t.slippage_high_days:
        return "high"
    if days > t.slippage_medium_days:
        return "medium"
    return "low"


# ---------------------------------------------------------------------------
# Runtime settings (never thresholds)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Settings:
    log_level: str = "INFO"
    indent: int = 2
    float_types: tuple[str, ...] = FLOAT_TYPES


def app_dir() -> Path:
    override = os.getenv(SETTINGS_DIR_ENV)
    if override:
        return Path(override)
    system = platform.system()
    if system == "Windows":
        base = Path(os.getenv("APPDATA") or (Path.home() / "AppData" / "Roaming"))
        return base / "ScheduleAnalytics"
    if system == "Darwin":
        return Path.home() / "Library" / "Application Support" / "ScheduleAnalytics"
    return Path.home() / ".schedule_analytics"


def _config_path() -> Path:
    return app_dir() / "config.json"


def load_settings(path: str | Path | None = None) -> Settings:
    p = Path(path) if path else _config_path()
    try:
        if not p.exists():
            return Settings()
        raw = json.loads(p.read_text(encoding="utf-8"))
    except (OSError, ValueError):
        return Settings()
    if not isinstance(raw, dict):
        return Settings()

    known = {f.name for f in fields(Settings)}
    kwargs: dict[str, Any] = {k: v for k, v in raw.items() if k in known}
    if "float_types" in kwargs:
        types = tuple(str(x) for x in (kwargs["float_types"] or []) if str(x) in FLOAT_TYPES)
        kwargs["float_types"] = types or FLOAT_TYPES
    if "indent" in kwargs:
        try:
            kwargs["indent"] = int(kwargs["indent"])
        except (TypeError, ValueError):
            kwargs.pop("indent")
    if "log_level" in kwargs:
        kwargs["log_level"] = str(kwargs["log_level"]).upper()
    return Settings(**kwargs)


def save_settings(settings: Settings, path: str | Path | None = None) -> Path:
    p = Path(path) if path else _config_path()
    p.parent.mkdir(parents=True, exist_ok=True)
    data = asdict(settings)
    data["float_types"] = list(settings.float_types)
    p.write_text(json.dumps(data, indent=2), encoding="utf-8")
    return p
