"""
Symbolic playoff sources and the placeholder binding table.

Sources are plain strings:
    group-a-1st     position 1 of group A (group must be complete)
    bestSecond      best second-placed team across all groups
    semi1-winner    winner of a referenced playoff match (must be finished)
    qf2-loser       loser of a referenced playoff match

The binding table maps source -> team id and is always rebuilt from the
current standings and match results; it is never stored.
"""

import re
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

from matchplan.errors import ConfigurationError, UnresolvedTieError
from matchplan.utils.standings import Standing, criterion_value
from matchplan.utils.tournament_config import BEST_SECOND_KEY, TournamentSettings

BEST_SECOND = "bestSecond"

_GROUP_RE = re.compile(r"^group-([a-z0-9]+)-(\d+)(st|nd|rd|th)$")
_MATCH_RE = re.compile(r"^(qf[1-4]|semi[12])-(winner|loser)$")


@dataclass(frozen=True)
class PlaceholderRef:
    kind: str  # "group" | "bestSecond" | "match"
    group_key: Optional[str] = None  # lower-case group label
    position: int = 0
    bracket_key: Optional[str] = None
    outcome: Optional[str] = None  # "winner" | "loser"


@dataclass
class GroupTable:
    label: str
    standings: List[Standing]
    complete: bool


@dataclass(frozen=True)
class PlayoffResult:
    bracket_key: str
    team_a_id: Optional[int]
    team_b_id: Optional[int]
    finished: bool
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    penalty_score_a: Optional[int] = None
    penalty_score_b: Optional[int] = None


@dataclass
class UnresolvedTie:
    placeholder: str
    group_label: Optional[str]
    position: int
    team_ids: List[int]


@dataclass
class BindingTable:
    bindings: Dict[str, int] = field(default_factory=dict)
    ties: List[UnresolvedTie] = field(default_factory=list)

    def get(self, placeholder: Optional[str]) -> Optional[int]:
        if placeholder is None:
            return None
        return self.bindings.get(placeholder)

    def raise_for_ties(self) -> None:
        if self.ties:
            raise UnresolvedTieError(self.ties)


def ordinal(position: int) -> str:
    if 10 <= position % 100 <= 20:
        suffix = "th"
    else:
        suffix = {1: "st", 2: "nd", 3: "rd"}.get(position % 10, "th")
    return f"{position}{suffix}"


def group_placeholder(group_label: str, position: int) -> str:
    return f"group-{group_label.lower()}-{ordinal(position)}"


def match_placeholder(bracket_key: str, outcome: str) -> str:
    return f"{bracket_key}-{outcome}"


def parse_placeholder(source: str) -> PlaceholderRef:
    if source == BEST_SECOND:
        return PlaceholderRef(kind="bestSecond", position=2)
    m = _GROUP_RE.match(source)
    if m:
        return PlaceholderRef(kind="group", group_key=m.group(1), position=int(m.group(2)))
    m = _MATCH_RE.match(source)
    if m:
        return PlaceholderRef(kind="match", bracket_key=m.group(1), outcome=m.group(2))
    raise ConfigurationError(f"Unknown placeholder: {source!r}")


def decide_outcome(result: PlayoffResult) -> Optional[Tuple[int, int]]:
    """(winner, loser) of a finished playoff match, or None while undecided."""
    if not result.finished or result.team_a_id is None or result.team_b_id is None:
        return None
    if result.score_a is None or result.score_b is None:
        return None
    a, b = result.score_a, result.score_b
    if a == b:
        if result.penalty_score_a is None or result.penalty_score_b is None:
            return None
        a, b = result.penalty_score_a, result.penalty_score_b
        if a == b:
            return None
    if a > b:
        return result.team_a_id, result.team_b_id
    return result.team_b_id, result.team_a_id


def _resolve_group(source: str, ref: PlaceholderRef, groups: Dict[str, GroupTable],
                   table: BindingTable) -> None:
    group = groups.get(ref.group_key)
    if group is None or not group.complete or len(group.standings) < ref.position:
        return
    standing = group.standings[ref.position - 1]
    if standing.tie_unresolved:
        table.ties.append(UnresolvedTie(source, group.label, ref.position, list(standing.tied_team_ids)))
        return
    table.bindings[source] = standing.team_id


def _resolve_best_second(groups: Dict[str, GroupTable], settings: TournamentSettings,
                         table: BindingTable) -> None:
    if not groups or not all(g.complete and len(g.standings) >= 2 for g in groups.values()):
        return
    seconds: List[Standing] = []
    for group in groups.values():
        second = group.standings[1]
        if second.tie_unresolved:
            table.ties.append(UnresolvedTie(BEST_SECOND, group.label, 2, list(second.tied_team_ids)))
            return
        seconds.append(second)

    def key(s: Standing):
        return tuple(-criterion_value(s, c) for c in settings.scalar_criteria)

    best_key = min(key(s) for s in seconds)
    candidates = [s.team_id for s in seconds if key(s) == best_key]
    if len(candidates) == 1:
        table.bindings[BEST_SECOND] = candidates[0]
        return

    manual = settings.manual_tiebreaks.get(BEST_SECOND_KEY)
    if manual and all(tid in manual for tid in candidates):
        table.bindings[BEST_SECOND] = min(candidates, key=manual.index)
        return
    table.ties.append(UnresolvedTie(BEST_SECOND, None, 2, candidates))


def build_binding_table(sources: Iterable[str], groups: Dict[str, GroupTable],
                        playoff_results: Dict[str, PlayoffResult],
                        settings: TournamentSettings) -> BindingTable:
    """
    Resolve every source whose preconditions hold.

    groups is keyed by lower-case group label. Unresolvable sources are simply
    absent from the table; tied qualification positions are listed in `ties`.
    """
    table = BindingTable()
    seen = set()
    for source in sources:
        if source is None or source in seen:
            continue
        seen.add(source)
        ref = parse_placeholder(source)
        if ref.kind == "group":
            _resolve_group(source, ref, groups, table)
        elif ref.kind == "bestSecond":
            _resolve_best_second(groups, settings, table)
        else:
            result = playoff_results.get(ref.bracket_key)
            outcome = decide_outcome(result) if result is not None else None
            if outcome is not None:
                winner, loser = outcome
                table.bindings[source] = winner if ref.outcome == "winner" else loser
    return table
