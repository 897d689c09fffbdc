from __future__ import annotations

from collections import Counter, defaultdict, deque
from dataclasses import dataclass
from typing import Iterable

import analytics_config as cfg
from analytics_config import RiskLevel, Status
from analytics_log import get_logger
from schedule_model import ActivityState, ConstraintType, DataIntegrityError, Relationship, ScheduleSnapshot

_START_DRIVING = {"FS", "SS"}
_FINISH_DRIVING = {"FS", "FF"}

CONSTRAINT_IMPACT: dict[ConstraintType, RiskLevel] = {
    ConstraintType.MUST_START_ON: "high",
    ConstraintType.MUST_FINISH_BY: "high",
    ConstraintType.START_NO_LATER_THAN: "high",
    ConstraintType.START_NO_EARLIER_THAN: "medium",
    ConstraintType.FINISH_NO_EARLIER_THAN: "medium",
    ConstraintType.AS_LATE_AS_POSSIBLE: "low",
}


@dataclass(frozen=True)
class LogicMetric:
    id: str
    label: str
    value: float
    unit: str
    status: Status


@dataclass(frozen=True)
class LogicQualityReport:
    update_id: str
    total_activities: int
    total_logic_links: int
    total_relationships: int
    logic_density: LogicMetric
    missing_ties_ratio: LogicMetric
    relationship_mix_ratio: LogicMetric
    loop_count: LogicMetric
    average_successors: LogicMetric
    max_logic_depth: LogicMetric
    constrained_percentage: LogicMetric
    redundant_links: LogicMetric
    dangling_percentage: LogicMetric
    missing_tie_ids: tuple[str, ...]
    dangling_ids: tuple[str, ...]
    overall_score: float
    overall_status: Status
    status_counts: dict[str, int]
    issues: tuple[DataIntegrityError, ...] = ()

    @property
    def metrics(self) -> tuple[LogicMetric, ...]:
        return (
            self.logic_density,
            self.missing_ties_ratio,
            self.relationship_mix_ratio,
            self.loop_count,
            self.average_successors,
            self.max_logic_depth,
            self.constrained_percentage,
            self.redundant_links,
            self.dangling_percentage,
        )


@dataclass(frozen=True)
class ConstraintBreakdown:
    constraint_type: str
    code: str
    count: int
    percentage: float
    impact: RiskLevel
    critical_path_affected: int


@dataclass(frozen=True)
class ConstraintSummary:
    update_id: str
    total_activities: int
    constrained_activities: int
    unconstrained_activities: int
    constrained_percentage: float
    constraint_types: tuple[ConstraintBreakdown, ...]
    critical_path_constrained: int
    critical_path_risk: float
    overall_risk: RiskLevel


# ---------------------------------------------------------------------------
# Graph helpers
# ---------------------------------------------------------------------------


def _successor_map(nodes: Iterable[str], relationships: Iterable[Relationship]) -> dict[str, list[str]]:
    succ: dict[str, set[str]] = defaultdict(set)
    for n in nodes:
        succ.setdefault(n, set())
    for r in relationships:
        succ[r.predecessor_id].add(r.successor_id)
        succ.setdefault(r.successor_id, set())
    return {n: sorted(s) for n, s in succ.items()}


def find_back_edges(succ: dict[str, list[str]]) -> list[tuple[str, str]]:
    """
    Depth-first traversal marking nodes in-progress/done; each edge that
    reaches an in-progress node closes one loop.

    Iterative, so deep chains do not hit the recursion limit.
    """
    IN_PROGRESS, DONE = 1, 2
    state: dict[str, int] = {}
    back_edges: list[tuple[str, str]] = []

    for root in sorted(succ):
        if root in state:
            continue
        state[root] = IN_PROGRESS
        stack: list[tuple[str, int]] = [(root, 0)]
        while stack:
            node, idx = stack[-1]
            children = succ.get(node, [])
            if idx >= len(children):
                state[node] = DONE
                stack.pop()
                continue
            stack[-1] = (node, idx + 1)
            child = children[idx]
            child_state = state.get(child)
            if child_state == IN_PROGRESS:
                back_edges.append((node, child))
            elif child_state is None:
                state[child] = IN_PROGRESS
                stack.append((child, 0))
    return back_edges


def count_loops(snapshot: ScheduleSnapshot) -> int:
    succ = _successor_map((a.activity_id for a in snapshot.activities), snapshot.relationships)
    return len(find_back_edges(succ))


def _max_depth(succ: dict[str, list[str]], back_edges: list[tuple[str, str]]) -> int:
    if not succ:
        return 0
    skip = set(back_edges)
    indegree: dict[str, int] = {n: 0 for n in succ}
    for n, children in succ.items():
        for c in children:
            if (n, c) not in skip:
                indegree[c] += 1

    depth = {n: 1 for n in succ}
    q: deque[str] = deque(sorted(n for n, d in indegree.items() if d == 0))
    while q:
        n = q.popleft()
        for c in succ[n]:
            if (n, c) in skip:
                continue
            depth[c] = max(depth[c], depth[n] + 1)
            indegree[c] -= 1
            if indegree[c] == 0:
                q.append(c)
    return max(depth.values())


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _pct(count: int, total: int) -> float:
    return count * 100.0 / total if total else 0.0


def _misses_tie(a: ActivityState) -> bool:
    # Start milestones may lack predecessors, finish milestones successors; never both.
    no_pred = a.predecessor_count == 0
    no_succ = a.successor_count == 0
    if a.is_milestone:
        return no_pred and no_succ
    return no_pred or no_succ


def score(snapshot: ScheduleSnapshot) -> LogicQualityReport:
    """
    Score the schedule logic of one snapshot against the fixed quality thresholds.

    Relationship-based metrics (mix, loops, depth, redundancy, dangling logic)
    use snapshot.relationships; an empty list scores as zero links.
    """
    logger = get_logger()
    activities = snapshot.activities
    rels = snapshot.relationships
    n = len(activities)
    ids = {a.activity_id for a in activities}

    issues: list[DataIntegrityError] = []
    for r in rels:
        for endpoint in (r.predecessor_id, r.successor_id):
            if endpoint not in ids:
                err = DataIntegrityError(
                    f"Relationship {r.predecessor_id}->{r.successor_id} references an unknown activity",
                    activity_id=endpoint,
                    update_id=snapshot.update_id,
                )
                logger.warning("Integrity: %s", err)
                issues.append(err)

    total_links = sum(a.predecessor_count for a in activities)
    density = total_links / n if n else 0.0

    missing_ids = tuple(sorted(a.activity_id for a in activities if _misses_tie(a)))
    missing_pct = _pct(len(missing_ids), n)

    mixed = sum(1 for r in rels if r.type in ("SS", "FF"))
    mix_pct = _pct(mixed, len(rels))

    succ = _successor_map(ids, rels)
    back_edges = find_back_edges(succ)
    loops = len(back_edges)
    depth = _max_depth(succ, back_edges) if n else 0

    avg_succ = sum(a.successor_count for a in activities) / n if n else 0.0
    constrained = sum(1 for a in activities if a.constraint_type is not ConstraintType.NONE)
    constrained_pct = _pct(constrained, n)

    pair_counts = Counter((r.predecessor_id, r.successor_id) for r in rels)
    redundant = sum(c - 1 for c in pair_counts.values() if c > 1)

    incoming: dict[str, set[str]] = defaultdict(set)
    outgoing: dict[str, set[str]] = defaultdict(set)
    for r in rels:
        incoming[r.successor_id].add(r.type)
        outgoing[r.predecessor_id].add(r.type)
    dangling_ids = tuple(
        sorted(
            a.activity_id
            for a in activities
            if not a.is_milestone
            and (
                (incoming[a.activity_id] and not incoming[a.activity_id] & _START_DRIVING)
                or (outgoing[a.activity_id] and not outgoing[a.activity_id] & _FINISH_DRIVING)
            )
        )
    )
    dangling_pct = _pct(len(dangling_ids), n)

    metrics = {
        "logic_density": LogicMetric(
            "logic-density", "Logic Density", density, "links/activity", cfg.classify_logic_density(density)
        ),
        "missing_ties_ratio": LogicMetric(
            "missing-ties",
            "Missing Ties",
            len(missing_ids) / n if n else 0.0,
            "ratio of activities",
            cfg.classify_missing_ties(missing_pct),
        ),
        "relationship_mix_ratio": LogicMetric(
            "relationship-types",
            "SS/FF Usage",
            mixed / len(rels) if rels else 0.0,
            "ratio of relationships",
            cfg.classify_relationship_mix(mix_pct),
        ),
        "loop_count": LogicMetric("loops-detected", "Logic Loops", loops, "loops", cfg.classify_loops(loops)),
        "average_successors": LogicMetric(
            "avg-successors", "Avg Successors", avg_succ, "per activity", cfg.classify_avg_successors(avg_succ)
        ),
        "max_logic_depth": LogicMetric(
            "logic-depth", "Logic Depth", depth, "max levels", cfg.classify_logic_depth(depth)
        ),
        "constrained_percentage": LogicMetric(
            "constrained-activities",
            "Constrained Activities",
            constrained_pct,
            "% with constraints",
            cfg.classify_constrained(constrained_pct),
        ),
        "redundant_links": LogicMetric(
            "redundant-links", "Redundant Links", redundant, "redundant connections", cfg.classify_redundant(redundant)
        ),
        "dangling_percentage": LogicMetric(
            "dangling-logic",
            "Dangling Logic",
            dangling_pct,
            "% of activities",
            cfg.classify_dangling(dangling_pct),
        ),
    }

    statuses = [m.status for m in metrics.values()]
    overall = cfg.health_score(statuses)
    status_counts = Counter(statuses)
    logger.debug("Logic score %s: %.1f over %s activities, %s loops", snapshot.update_id, overall, n, loops)

    return LogicQualityReport(
        update_id=snapshot.update_id,
        total_activities=n,
        total_logic_links=total_links,
        total_relationships=len(rels),
        missing_tie_ids=missing_ids,
        dangling_ids=dangling_ids,
        overall_score=overall,
        overall_status=cfg.classify_score(overall),
        status_counts={s: status_counts.get(s, 0) for s in ("good", "warning", "critical")},
        issues=tuple(issues),
        **metrics,
    )


def analyze_constraints(snapshot: ScheduleSnapshot) -> ConstraintSummary:
    activities = snapshot.activities
    n = len(activities)
    constrained = [a for a in activities if a.constraint_type is not ConstraintType.NONE]
    on_path = [a for a in constrained if a.on_critical_path]

    by_type = Counter(a.constraint_type for a in constrained)
    on_path_by_type = Counter(a.constraint_type for a in on_path)
    breakdown = tuple(
        ConstraintBreakdown(
            constraint_type=ct.value,
            code=ct.code,
            count=by_type[ct],
            percentage=_pct(by_type[ct], n),
            impact=CONSTRAINT_IMPACT[ct],
            critical_path_affected=on_path_by_type.get(ct, 0),
        )
        for ct in ConstraintType
        if ct is not ConstraintType.NONE and by_type.get(ct)
    )

    cp_risk = _pct(len(on_path), len(constrained))
    return ConstraintSummary(
        update_id=snapshot.update_id,
        total_activities=n,
        constrained_activities=len(constrained),
        unconstrained_activities=n - len(constrained),
        constrained_percentage=_pct(len(constrained), n),
        constraint_types=breakdown,
        critical_path_constrained=len(on_path),
        critical_path_risk=cp_risk,
        overall_risk=cfg.classify_constraint_risk(cp_risk),
    )
