"""Group stage pairings: circle method, repetitions, partition interleaving."""

from collections import Counter
from itertools import combinations

import pytest

from matchplan.errors import ConfigurationError
from matchplan.utils.round_robin import circle_rounds, generate_group_stage, group_pairings


@pytest.mark.parametrize("team_count", [2, 3, 4, 5, 6, 7, 8])
@pytest.mark.parametrize("rounds", [1, 2, 3])
def test_every_pair_meets_exactly_rounds_times(team_count, rounds):
    team_ids = list(range(100, 100 + team_count))
    pairings = group_pairings(team_ids, rounds)

    assert len(pairings) == team_count * (team_count - 1) // 2 * rounds
    meetings = Counter(frozenset((p.home_id, p.away_id)) for p in pairings)
    for a, b in combinations(team_ids, 2):
        assert meetings[frozenset((a, b))] == rounds


@pytest.mark.parametrize("team_count", [3, 4, 5, 6])
def test_no_team_plays_twice_in_a_round(team_count):
    for pairs in circle_rounds(team_count):
        seen = [idx for pair in pairs for idx in pair]
        assert len(seen) == len(set(seen))
        assert all(idx < team_count for idx in seen)


def test_odd_partition_has_one_bye_per_round():
    rounds = circle_rounds(5)
    assert len(rounds) == 5
    assert all(len(pairs) == 2 for pairs in rounds)


def test_second_repetition_swaps_home_and_away():
    team_ids = [1, 2, 3, 4]
    pairings = group_pairings(team_ids, 2)
    first = pairings[:6]
    second = pairings[6:]

    assert [(p.home_id, p.away_id) for p in second] == [(p.away_id, p.home_id) for p in first]
    assert [p.round_number for p in second] == [p.round_number + 3 for p in first]


def test_pairings_are_deterministic():
    assert group_pairings([5, 9, 2, 7], 1) == group_pairings([5, 9, 2, 7], 1)


def test_fixed_team_alternates_home_and_away():
    pairings = group_pairings([1, 2, 3, 4], 1)
    fixed = [p for p in pairings if 1 in (p.home_id, p.away_id)]
    assert [p.home_id == 1 for p in sorted(fixed, key=lambda p: p.round_number)] == [True, False, True]


def test_partition_with_one_team_is_rejected():
    with pytest.raises(ConfigurationError, match="At least 2 teams"):
        group_pairings([1], 1, "B")


def test_generate_group_stage_interleaves_groups_by_round():
    pairings = generate_group_stage({"A": [1, 2, 3], "B": [4, 5, 6]}, 1)

    assert len(pairings) == 6
    keys = [(p.round_number, p.group_label) for p in pairings]
    assert keys == sorted(keys)
    assert [p.group_label for p in pairings[:2]] == ["A", "B"]


def test_generate_group_stage_validates_every_partition_first():
    with pytest.raises(ConfigurationError):
        generate_group_stage({"A": [1, 2, 3], "B": [4]}, 1)


def test_generate_group_stage_without_teams():
    with pytest.raises(ConfigurationError, match="No teams"):
        generate_group_stage({}, 1)
