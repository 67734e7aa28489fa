"""
Standings calculator.

Pure projection from (teams, finished results) to an ordered table. Nothing is
stored: goal difference and points are derived from the counters every time.

Ranking refines clusters of equal teams one criterion at a time in the
configured order:
- scalar criteria sort descending, goalsAgainst ascending (fewer is better)
- directComparison splits a cluster of exactly two teams, using their
  head-to-head mini table (points, goal difference, goals for); a larger
  cluster skips it, and any pair a later criterion leaves behind is split
  by head-to-head once all criteria have run
- a recorded manual tie-break order for exactly the tied teams comes last
Whatever is still tied keeps registration order and is flagged
tie_unresolved; that order is not authoritative.
"""

from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Sequence

from matchplan.utils.tournament_config import (
    CRITERION_DIRECT_COMPARISON,
    CRITERION_GOAL_DIFFERENCE,
    CRITERION_GOALS_AGAINST,
    CRITERION_GOALS_FOR,
    CRITERION_POINTS,
    CRITERION_WINS,
    PointSystem,
)


@dataclass(frozen=True)
class MatchResult:
    team_a_id: int
    team_b_id: int
    score_a: int
    score_b: int


@dataclass
class Standing:
    team_id: int
    group_label: Optional[str] = None
    played: int = 0
    won: int = 0
    drawn: int = 0
    lost: int = 0
    goals_for: int = 0
    goals_against: int = 0
    points: int = 0
    rank: int = 0
    tie_unresolved: bool = False
    tied_team_ids: List[int] = field(default_factory=list)

    @property
    def goal_difference(self) -> int:
        return self.goals_for - self.goals_against


def aggregate(team_ids: Sequence[int], results: Iterable[MatchResult], points: PointSystem,
              group_label: Optional[str] = None) -> Dict[int, Standing]:
    """Fold results into per-team counters. Results involving unknown teams are skipped."""
    table = {tid: Standing(team_id=tid, group_label=group_label) for tid in team_ids}
    for r in results:
        a = table.get(r.team_a_id)
        b = table.get(r.team_b_id)
        if a is None or b is None:
            continue
        a.played += 1
        b.played += 1
        a.goals_for += r.score_a
        a.goals_against += r.score_b
        b.goals_for += r.score_b
        b.goals_against += r.score_a
        if r.score_a > r.score_b:
            a.won += 1
            b.lost += 1
        elif r.score_a < r.score_b:
            b.won += 1
            a.lost += 1
        else:
            a.drawn += 1
            b.drawn += 1
    for s in table.values():
        s.points = s.won * points.win + s.drawn * points.draw + s.lost * points.loss
    return table


def criterion_value(standing: Standing, criterion: str) -> int:
    """Sort value for a scalar criterion; larger is better."""
    if criterion == CRITERION_POINTS:
        return standing.points
    if criterion == CRITERION_WINS:
        return standing.won
    if criterion == CRITERION_GOAL_DIFFERENCE:
        return standing.goal_difference
    if criterion == CRITERION_GOALS_FOR:
        return standing.goals_for
    if criterion == CRITERION_GOALS_AGAINST:
        return -standing.goals_against
    raise ValueError(f"Not a scalar criterion: {criterion}")


def _split_by(cluster: List[int], key) -> List[List[int]]:
    ordered = sorted(cluster, key=key)  # stable: keeps registration order inside equal keys
    groups: List[List[int]] = []
    last = object()
    for tid in ordered:
        k = key(tid)
        if groups and k == last:
            groups[-1].append(tid)
        else:
            groups.append([tid])
        last = k
    return groups


def _head_to_head(pair: List[int], results: Sequence[MatchResult], points: PointSystem) -> List[List[int]]:
    members = set(pair)
    direct = [r for r in results if r.team_a_id in members and r.team_b_id in members]
    if not direct:
        return [pair]
    mini = aggregate(pair, direct, points)
    return _split_by(
        pair, lambda tid: (-mini[tid].points, -mini[tid].goal_difference, -mini[tid].goals_for)
    )


def _apply_manual(cluster: List[int], manual_order: Optional[Sequence[int]]) -> Optional[List[List[int]]]:
    if not manual_order:
        return None
    index = {tid: i for i, tid in enumerate(manual_order)}
    if not all(tid in index for tid in cluster):
        return None
    return [[tid] for tid in sorted(cluster, key=lambda t: index[t])]


def rank_teams(table: Dict[int, Standing], team_ids: Sequence[int], results: Sequence[MatchResult],
               criteria: Sequence[str], points: PointSystem,
               manual_order: Optional[Sequence[int]] = None) -> List[Standing]:
    clusters: List[List[int]] = [list(team_ids)]
    for criterion in criteria:
        refined: List[List[int]] = []
        for cluster in clusters:
            if len(cluster) < 2:
                refined.append(cluster)
            elif criterion == CRITERION_DIRECT_COMPARISON:
                # Multi-way ties are not split by head-to-head
                refined.extend(_head_to_head(cluster, results, points) if len(cluster) == 2 else [cluster])
            else:
                refined.extend(_split_by(cluster, lambda tid: -criterion_value(table[tid], criterion)))
        clusters = refined

    if CRITERION_DIRECT_COMPARISON in criteria:
        refined = []
        for cluster in clusters:
            refined.extend(_head_to_head(cluster, results, points) if len(cluster) == 2 else [cluster])
        clusters = refined

    ordered: List[Standing] = []
    for cluster in clusters:
        if len(cluster) > 1:
            manual = _apply_manual(cluster, manual_order)
            if manual is not None:
                for single in manual:
                    ordered.append(table[single[0]])
                continue
            for tid in cluster:
                s = table[tid]
                s.tie_unresolved = True
                s.tied_team_ids = list(cluster)
                ordered.append(s)
        else:
            ordered.append(table[cluster[0]])

    for rank, s in enumerate(ordered, start=1):
        s.rank = rank
    return ordered


def compute_group_standings(team_ids: Sequence[int], results: Sequence[MatchResult],
                            criteria: Sequence[str], points: PointSystem,
                            manual_order: Optional[Sequence[int]] = None,
                            group_label: Optional[str] = None) -> List[Standing]:
    """
    Ordered standings for one group.

    team_ids are the active teams in registration order. Never mutates its
    inputs; calling it twice on the same input gives equal output.
    """
    results = list(results)
    table = aggregate(team_ids, results, points, group_label)
    return rank_teams(table, team_ids, results, criteria, points, manual_order)
