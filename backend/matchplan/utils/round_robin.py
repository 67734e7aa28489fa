"""
Group stage pairings.

Circle method: the first team stays fixed, the others rotate one position per
round. Odd partitions get a BYE position whose pairings are dropped. Every
repetition of the full cycle swaps home and away.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

from matchplan.errors import ConfigurationError


@dataclass(frozen=True)
class Pairing:
    group_label: Optional[str]
    round_number: int  # 1-based across all repetitions
    sequence: int  # 1-based within the round
    home_id: int
    away_id: int


def circle_rounds(team_count: int) -> List[List[Tuple[int, int]]]:
    """
    One full round robin as rounds of (home_idx, away_idx), 0-based positions.

    The fixed team alternates home/away from round to round.
    """
    n2 = team_count + 1 if team_count % 2 == 1 else team_count
    bye_idx = team_count if team_count % 2 == 1 else -1
    half = n2 // 2
    positions = list(range(n2))

    rounds: List[List[Tuple[int, int]]] = []
    for round_idx in range(n2 - 1):
        pairs = []
        for i in range(half):
            a, b = positions[i], positions[n2 - 1 - i]
            if a == bye_idx or b == bye_idx:
                continue
            if i == 0 and round_idx % 2 == 1:
                a, b = b, a
            pairs.append((a, b))
        rounds.append(pairs)
        # Keep 0 fixed, move last to second, shift the rest
        positions = [positions[0]] + [positions[-1]] + positions[1:-1]
    return rounds


def group_pairings(team_ids: Sequence[int], rounds: int, group_label: Optional[str] = None) -> List[Pairing]:
    """All pairings for one partition, each pair meeting exactly `rounds` times."""
    if len(team_ids) < 2:
        label = f"group {group_label}" if group_label else "tournament"
        raise ConfigurationError(f"At least 2 teams are required in {label}, got {len(team_ids)}")
    if rounds < 1:
        raise ConfigurationError("Round count must be >= 1")

    cycle = circle_rounds(len(team_ids))
    result: List[Pairing] = []
    for repetition in range(rounds):
        for round_idx, pairs in enumerate(cycle):
            round_number = repetition * len(cycle) + round_idx + 1
            for seq, (a, b) in enumerate(pairs, start=1):
                if repetition % 2 == 1:
                    a, b = b, a
                result.append(Pairing(group_label, round_number, seq, team_ids[a], team_ids[b]))
    return result


def generate_group_stage(partitions: Dict[Optional[str], Sequence[int]], rounds: int) -> List[Pairing]:
    """
    Pairings for every partition, interleaved round by round.

    Order: (round_number, partition order, sequence). Raises ConfigurationError
    for any partition with fewer than 2 teams before anything is returned.
    """
    if not partitions:
        raise ConfigurationError("No teams to schedule")

    order = {label: idx for idx, label in enumerate(partitions)}
    pairings: List[Pairing] = []
    for label, team_ids in partitions.items():
        pairings.extend(group_pairings(team_ids, rounds, label))

    pairings.sort(key=lambda p: (p.round_number, order[p.group_label], p.sequence))
    return pairings
