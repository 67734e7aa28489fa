"""
Playoff bracket planner.

Turns the knockout depth, the enabled placement matches and the group
topology into playoff slot definitions with symbolic sources. Output is in
bracket order: quarterfinals, semifinals, 7th, 5th, 3rd place, final.

Topologies:
- no knockout, 2 groups:   final 1A-1B, 3rd 2A-2B, 5th 3A-3B, 7th 4A-4B
- semifinal, 2 groups:     semi1 2A-1B, semi2 1A-2B (5th/7th from 3rd/4th places)
- semifinal, 3 groups:     semi1 1A-bestSecond, semi2 1B-1C
- semifinal, 4 groups:     semi1 1A-1C, semi2 1B-1D
- quarterfinal, 2 groups:  qf1 1A-4B, qf2 2B-3A, qf3 1B-4A, qf4 2A-3B
- quarterfinal, 4 groups:  qf1 1A-2D, qf2 1B-2C, qf3 1C-2B, qf4 1D-2A
"""

from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from matchplan.errors import ConfigurationError
from matchplan.models.match import PARALLEL_ALLOWED, SEQUENTIAL_ONLY, MatchPhase
from matchplan.models.tournament import KnockoutDepth
from matchplan.utils.placeholders import (
    BEST_SECOND,
    group_placeholder,
    match_placeholder,
    parse_placeholder,
)
from matchplan.utils.tournament_config import TournamentSettings

BRACKET_ORDER = (
    "qf1",
    "qf2",
    "qf3",
    "qf4",
    "semi1",
    "semi2",
    "seventh_eighth",
    "fifth_sixth",
    "third_place",
    "final",
)

PHASE_BY_KEY = {
    "qf1": MatchPhase.quarterfinal.value,
    "qf2": MatchPhase.quarterfinal.value,
    "qf3": MatchPhase.quarterfinal.value,
    "qf4": MatchPhase.quarterfinal.value,
    "semi1": MatchPhase.semifinal.value,
    "semi2": MatchPhase.semifinal.value,
    "seventh_eighth": MatchPhase.seventh_eighth.value,
    "fifth_sixth": MatchPhase.fifth_sixth.value,
    "third_place": MatchPhase.third_place.value,
    "final": MatchPhase.final.value,
}


@dataclass(frozen=True)
class PlayoffSlot:
    bracket_key: str
    phase: str
    source_a: str
    source_b: str
    parallel_mode: str
    depends_on: Tuple[str, ...] = ()


def _g(labels: List[str], group_idx: int, position: int) -> str:
    return group_placeholder(labels[group_idx], position)


def _winner(key: str) -> str:
    return match_placeholder(key, "winner")


def _loser(key: str) -> str:
    return match_placeholder(key, "loser")


def _pairings(settings: TournamentSettings, labels: List[str]) -> Dict[str, Tuple[str, str]]:
    depth = settings.knockout_depth
    count = len(labels)
    pairs: Dict[str, Tuple[str, str]] = {}

    if depth == KnockoutDepth.none.value:
        if count != 2:
            raise ConfigurationError("Direct placement matches need exactly 2 groups")
        if settings.playoff_final:
            pairs["final"] = (_g(labels, 0, 1), _g(labels, 1, 1))
        if settings.playoff_third_place:
            pairs["third_place"] = (_g(labels, 0, 2), _g(labels, 1, 2))
        if settings.playoff_fifth_sixth:
            pairs["fifth_sixth"] = (_g(labels, 0, 3), _g(labels, 1, 3))
        if settings.playoff_seventh_eighth:
            pairs["seventh_eighth"] = (_g(labels, 0, 4), _g(labels, 1, 4))
        return pairs

    if depth == KnockoutDepth.semifinal.value:
        if count == 2:
            pairs["semi1"] = (_g(labels, 0, 2), _g(labels, 1, 1))
            pairs["semi2"] = (_g(labels, 0, 1), _g(labels, 1, 2))
        elif count == 3:
            pairs["semi1"] = (_g(labels, 0, 1), BEST_SECOND)
            pairs["semi2"] = (_g(labels, 1, 1), _g(labels, 2, 1))
        elif count == 4:
            pairs["semi1"] = (_g(labels, 0, 1), _g(labels, 2, 1))
            pairs["semi2"] = (_g(labels, 1, 1), _g(labels, 3, 1))
        else:
            raise ConfigurationError(f"Semifinals support 2 to 4 groups, got {count}")
        if settings.playoff_fifth_sixth or settings.playoff_seventh_eighth:
            if count != 2:
                raise ConfigurationError("5th/7th place matches after semifinals need exactly 2 groups")
            if settings.playoff_fifth_sixth:
                pairs["fifth_sixth"] = (_g(labels, 0, 3), _g(labels, 1, 3))
            if settings.playoff_seventh_eighth:
                pairs["seventh_eighth"] = (_g(labels, 0, 4), _g(labels, 1, 4))
    elif depth == KnockoutDepth.quarterfinal.value:
        if count == 2:
            pairs["qf1"] = (_g(labels, 0, 1), _g(labels, 1, 4))
            pairs["qf2"] = (_g(labels, 1, 2), _g(labels, 0, 3))
            pairs["qf3"] = (_g(labels, 1, 1), _g(labels, 0, 4))
            pairs["qf4"] = (_g(labels, 0, 2), _g(labels, 1, 3))
        elif count == 4:
            pairs["qf1"] = (_g(labels, 0, 1), _g(labels, 3, 2))
            pairs["qf2"] = (_g(labels, 1, 1), _g(labels, 2, 2))
            pairs["qf3"] = (_g(labels, 2, 1), _g(labels, 1, 2))
            pairs["qf4"] = (_g(labels, 3, 1), _g(labels, 0, 2))
        else:
            raise ConfigurationError(f"Quarterfinals support 2 or 4 groups, got {count}")
        pairs["semi1"] = (_winner("qf1"), _winner("qf2"))
        pairs["semi2"] = (_winner("qf3"), _winner("qf4"))
        if settings.playoff_fifth_sixth:
            pairs["fifth_sixth"] = (_loser("qf1"), _loser("qf2"))
        if settings.playoff_seventh_eighth:
            pairs["seventh_eighth"] = (_loser("qf3"), _loser("qf4"))
    else:
        raise ConfigurationError(f"Unsupported knockout depth: {depth}")

    if settings.playoff_third_place:
        pairs["third_place"] = (_loser("semi1"), _loser("semi2"))
    if settings.playoff_final:
        pairs["final"] = (_winner("semi1"), _winner("semi2"))
    return pairs


def effective_parallel_mode(settings: TournamentSettings, bracket_key: str) -> str:
    if bracket_key == "final" or not settings.allow_parallel_playoffs:
        return SEQUENTIAL_ONLY
    return settings.playoff_parallel_modes.get(bracket_key, PARALLEL_ALLOWED)


def _check_group_sources(sources: List[str], group_sizes: Dict[str, int]) -> None:
    by_lower = {label.lower(): size for label, size in group_sizes.items()}
    for source in sources:
        ref = parse_placeholder(source)
        if ref.kind == "group":
            size = by_lower.get(ref.group_key)
            if size is None:
                raise ConfigurationError(f"Unknown group in playoff source {source}")
            if size < ref.position:
                raise ConfigurationError(
                    f"Playoff source {source} needs at least {ref.position} teams in the group, found {size}"
                )
        elif ref.kind == "bestSecond":
            if any(size < 2 for size in group_sizes.values()):
                raise ConfigurationError("bestSecond needs at least 2 teams in every group")


def build_playoff_plan(settings: TournamentSettings, group_sizes: Dict[str, int]) -> List[PlayoffSlot]:
    """
    Playoff slot definitions in bracket order.

    group_sizes maps group label -> active team count, in group order.
    Returns [] when no playoff match is configured.
    """
    if not settings.playoffs_enabled:
        return []
    if not settings.has_groups or len(group_sizes) < 2:
        raise ConfigurationError("Playoffs need a group stage with at least 2 groups")

    labels = list(group_sizes)
    pairs = _pairings(settings, labels)
    _check_group_sources([s for pair in pairs.values() for s in pair], group_sizes)

    plan: List[PlayoffSlot] = []
    for key in BRACKET_ORDER:
        if key not in pairs:
            continue
        source_a, source_b = pairs[key]
        depends_on = tuple(
            ref.bracket_key
            for ref in (parse_placeholder(source_a), parse_placeholder(source_b))
            if ref.kind == "match"
        )
        plan.append(
            PlayoffSlot(
                bracket_key=key,
                phase=PHASE_BY_KEY[key],
                source_a=source_a,
                source_b=source_b,
                parallel_mode=effective_parallel_mode(settings, key),
                depends_on=depends_on,
            )
        )
    return plan


def bracket_position(bracket_key: Optional[str]) -> int:
    if bracket_key in BRACKET_ORDER:
        return BRACKET_ORDER.index(bracket_key)
    return len(BRACKET_ORDER)
