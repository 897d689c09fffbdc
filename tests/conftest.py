"""Pytest configuration and fixtures."""
from __future__ import annotations

from typing import Any, Callable

import pytest

from schedule_model import ActivityState, Relationship, ScheduleSnapshot


@pytest.fixture(autouse=True, scope="session")
def _isolated_app_dir(tmp_path_factory: pytest.TempPathFactory):
    """Keep log files and settings out of the real home directory."""
    mp = pytest.MonkeyPatch()
    base = tmp_path_factory.mktemp("schedule_analytics_home")
    mp.setenv("SCHEDULE_ANALYTICS_HOME", str(base))
    mp.setenv("SCHEDULE_ANALYTICS_LOG_DIR", str(base))
    yield base
    mp.undo()


@pytest.fixture
def make_activity() -> Callable[..., ActivityState]:
    def _make(activity_id: str, **kwargs: Any) -> ActivityState:
        defaults: dict[str, Any] = {
            "name": f"Activity {activity_id}",
            "total_float": 10,
            "free_float": 10,
            "predecessor_count": 1,
            "successor_count": 1,
        }
        defaults.update(kwargs)
        return ActivityState(activity_id=activity_id, **defaults)

    return _make


@pytest.fixture
def make_snapshot() -> Callable[..., ScheduleSnapshot]:
    def _make(
        update_id: str,
        as_of_date: str,
        activities: list[ActivityState],
        relationships: list[tuple[str, str, str]] | None = None,
    ) -> ScheduleSnapshot:
        rels = [Relationship(p, s, t) for p, s, t in (relationships or [])]
        return ScheduleSnapshot(update_id=update_id, as_of_date=as_of_date, activities=activities, relationships=rels)

    return _make


@pytest.fixture
def two_updates(make_activity, make_snapshot) -> tuple[ScheduleSnapshot, ScheduleSnapshot]:
    """
    U001 critical: A001, A002 (A003 has 3 days float)
    U002 critical: A002, A003 (A001 now has 4 days float)
    """
    first = make_snapshot(
        "U001",
        "2025-01-15",
        [
            make_activity("A001", total_float=0),
            make_activity("A002", total_float=-2),
            make_activity("A003", total_float=3),
            make_activity("A004", total_float=12),
        ],
    )
    second = make_snapshot(
        "U002",
        "2025-02-01",
        [
            make_activity("A001", total_float=4),
            make_activity("A002", total_float=0),
            make_activity("A003", total_float=0),
            make_activity("A004", total_float=12),
        ],
    )
    return first, second


@pytest.fixture
def sample_payload() -> dict[str, Any]:
    return {
        "snapshots": [
            {
                "update_id": "U002",
                "as_of_date": "2025-02-01",
                "activities": [
                    {
                        "activity_id": "M001",
                        "name": "Foundation Complete",
                        "baseline_start": "2025-03-01",
                        "baseline_finish": "2025-03-01",
                        "forecast_finish": "2025-03-10",
                        "total_float": 0,
                        "free_float": 0,
                        "is_milestone": True,
                    },
                    {
                        "activity_id": "A001",
                        "name": "Site Preparation",
                        "baseline_start": "2025-01-15",
                        "baseline_finish": "2025-01-30",
                        "actual_start": "2025-01-15",
                        "actual_finish": "2025-02-05",
                        "total_float": 0,
                        "free_float": 0,
                        "constraint_type": "MustStartOn",
                    },
                    {
                        "activity_id": "A002",
                        "name": "Excavation",
                        "baseline_start": "2025-02-01",
                        "baseline_finish": "2025-02-20",
                        "actual_start": "2025-02-03",
                        "total_float": 6,
                        "free_float": 2,
                    },
                ],
                "relationships": [
                    {"predecessor_id": "A001", "successor_id": "A002", "type": "FS"},
                    {"predecessor_id": "A002", "successor_id": "M001", "type": "FS"},
                ],
            },
            {
                "update_id": "U001",
                "as_of_date": "2025-01-15",
                "activities": [
                    {"activity_id": "A001", "name": "Site Preparation", "total_float": 3, "free_float": 1},
                    {"activity_id": "A002", "name": "Excavation", "total_float": 8, "free_float": 8},
                ],
                "relationships": [{"predecessor_id": "A001", "successor_id": "A002"}],
            },
        ]
    }
