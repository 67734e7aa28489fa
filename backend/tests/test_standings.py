"""Standings calculator: aggregation, criteria order, head-to-head, unresolved ties."""

import copy

from matchplan.utils.standings import MatchResult, compute_group_standings
from matchplan.utils.tournament_config import PointSystem

DEFAULT_CRITERIA = ("points", "goalDifference", "goalsFor", "directComparison")
POINTS = PointSystem()


def _order(standings):
    return [s.team_id for s in standings]


def test_aggregation_and_points():
    results = [MatchResult(1, 2, 3, 1), MatchResult(2, 3, 2, 2), MatchResult(3, 1, 0, 1)]
    table = {s.team_id: s for s in compute_group_standings([1, 2, 3], results, DEFAULT_CRITERIA, POINTS)}

    assert (table[1].won, table[1].drawn, table[1].lost, table[1].points) == (2, 0, 0, 6)
    assert (table[2].goals_for, table[2].goals_against, table[2].goal_difference) == (3, 5, -2)
    assert table[3].points == 1
    played = sum(s.won + s.drawn + s.lost for s in table.values())
    assert played == 2 * len(results)


def test_custom_point_system():
    results = [MatchResult(1, 2, 1, 1)]
    standings = compute_group_standings([1, 2], results, ("points",), PointSystem(win=2, draw=2, loss=0))
    assert [s.points for s in standings] == [2, 2]


def test_criteria_order_is_respected():
    # 1 and 2 level on points; 1 has the better goal difference, 2 scored more
    results = [
        MatchResult(1, 3, 3, 0),
        MatchResult(2, 3, 4, 3),
        MatchResult(1, 2, 1, 1),
    ]
    by_gd = compute_group_standings([1, 2, 3], results, ("points", "goalDifference"), POINTS)
    by_goals = compute_group_standings([1, 2, 3], results, ("points", "goalsFor"), POINTS)

    assert _order(by_gd) == [1, 2, 3]
    assert _order(by_goals) == [2, 1, 3]


def test_direct_comparison_breaks_two_way_tie():
    # 1 and 2 level on points behind 4; 2 won the direct match
    results = [
        MatchResult(2, 1, 1, 0),
        MatchResult(1, 3, 3, 0),
        MatchResult(4, 2, 1, 0),
        MatchResult(4, 3, 1, 0),
    ]
    standings = compute_group_standings([1, 2, 3, 4], results, ("points", "directComparison"), POINTS)

    assert _order(standings) == [4, 2, 1, 3]
    assert not any(s.tie_unresolved for s in standings)


def test_direct_comparison_skips_three_way_tie():
    results = [MatchResult(1, 2, 1, 0), MatchResult(2, 3, 1, 0), MatchResult(3, 1, 1, 0)]
    standings = compute_group_standings([1, 2, 3], results, DEFAULT_CRITERIA, POINTS)

    assert all(s.tie_unresolved for s in standings)
    assert all(sorted(s.tied_team_ids) == [1, 2, 3] for s in standings)
    # stable registration order inside the tie
    assert _order(standings) == [1, 2, 3]


def test_direct_comparison_decides_pair_left_by_later_criterion():
    # 1, 2, 3 beat each other in a circle and all beat 4; goal difference
    # separates 1, then 2 beat 3 head-to-head
    results = [
        MatchResult(1, 2, 1, 0),
        MatchResult(2, 3, 1, 0),
        MatchResult(3, 1, 1, 0),
        MatchResult(1, 4, 5, 0),
        MatchResult(2, 4, 2, 0),
        MatchResult(3, 4, 2, 0),
    ]
    standings = compute_group_standings(
        [3, 2, 1, 4], results, ("points", "directComparison", "goalDifference"), POINTS
    )

    assert _order(standings) == [1, 2, 3, 4]
    assert [s.points for s in standings] == [6, 6, 6, 0]
    assert not any(s.tie_unresolved for s in standings)


def test_exhausted_criteria_flag_tie():
    results = [MatchResult(1, 3, 2, 0), MatchResult(2, 3, 2, 0)]
    standings = compute_group_standings([1, 2, 3], results, ("points", "goalDifference"), POINTS)

    top = standings[:2]
    assert _order(top) == [1, 2]
    assert all(s.tie_unresolved and sorted(s.tied_team_ids) == [1, 2] for s in top)
    assert not standings[2].tie_unresolved
    assert [s.rank for s in standings] == [1, 2, 3]


def test_manual_order_resolves_tie():
    results = [MatchResult(1, 3, 2, 0), MatchResult(2, 3, 2, 0)]
    standings = compute_group_standings(
        [1, 2, 3], results, ("points", "goalDifference"), POINTS, manual_order=[2, 1]
    )
    assert _order(standings) == [2, 1, 3]
    assert not any(s.tie_unresolved for s in standings)


def test_manual_order_not_covering_tie_is_ignored():
    results = [MatchResult(1, 3, 2, 0), MatchResult(2, 3, 2, 0)]
    standings = compute_group_standings(
        [1, 2, 3], results, ("points", "goalDifference"), POINTS, manual_order=[2, 3]
    )
    assert standings[0].tie_unresolved


def test_goals_against_prefers_fewer():
    results = [MatchResult(1, 3, 3, 2), MatchResult(2, 3, 2, 1)]
    standings = compute_group_standings([1, 2, 3], results, ("points", "goalsAgainst"), POINTS)
    assert _order(standings)[:2] == [2, 1]


def test_idempotent_and_inputs_untouched():
    results = [MatchResult(1, 2, 2, 1), MatchResult(2, 3, 0, 0)]
    snapshot = copy.deepcopy(results)
    first = compute_group_standings([1, 2, 3], results, DEFAULT_CRITERIA, POINTS)
    second = compute_group_standings([1, 2, 3], results, DEFAULT_CRITERIA, POINTS)

    assert first == second
    assert results == snapshot


def test_unknown_teams_are_ignored():
    results = [MatchResult(1, 99, 5, 0), MatchResult(1, 2, 1, 0)]
    table = {s.team_id: s for s in compute_group_standings([1, 2], results, DEFAULT_CRITERIA, POINTS)}
    assert table[1].played == 1
    assert table[1].goals_for == 1
