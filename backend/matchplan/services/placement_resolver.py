"""
Placement resolution: bind playoff participants from the current state.

The binding table is rebuilt from standings and finished playoff results on
every pass, then applied in bracket order:
- scheduled playoff matches take the bound participants (or fall back to
  unresolved when a binding disappeared)
- running and finished playoff matches are never rewritten; when their
  participants no longer match the bindings they are reported as stale
- in teams-as-referees mode, a scheduled playoff match whose participants
  changed gets a fresh referee team

Callers own the transaction: changes are added to the session, not committed.
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from matchplan.errors import ConfigurationError
from matchplan.models.match import RUNTIME_SCHEDULED, Match
from matchplan.models.tournament import RefereeMode, Tournament
from matchplan.services.standings_service import load_group_tables, playoff_result
from matchplan.services.tournament_state import (
    active_teams,
    get_tournament,
    playoff_matches,
    tournament_matches,
)
from matchplan.utils.conflicts import booking_from_match
from matchplan.utils.placeholders import BindingTable, UnresolvedTie, build_binding_table
from matchplan.utils.playoff_plan import bracket_position
from matchplan.utils.referees import choose_team_referee
from matchplan.utils.tournament_config import (
    BEST_SECOND_KEY,
    OVERALL_GROUP_KEY,
    TournamentSettings,
    settings_from_tournament,
)

logger = logging.getLogger(__name__)


@dataclass
class StaleMatch:
    match_id: int
    bracket_key: str
    current: Tuple[Optional[int], Optional[int]]
    expected: Tuple[Optional[int], Optional[int]]


@dataclass
class ResolutionResult:
    bindings: BindingTable
    updated_match_ids: List[int] = field(default_factory=list)
    stale: List[StaleMatch] = field(default_factory=list)

    @property
    def ties(self) -> List[UnresolvedTie]:
        return self.bindings.ties

    def raise_for_ties(self) -> None:
        self.bindings.raise_for_ties()


def _assign_playoff_referee(match: Match, all_matches: List[Match], team_ids: Sequence[int]) -> None:
    if match.team_a_id is None or match.team_b_id is None:
        match.referee_team_id = None
        return
    candidate = booking_from_match(match)
    others = [booking_from_match(m) for m in all_matches if m.id != match.id]
    match.referee_team_id = choose_team_referee(candidate, others, team_ids)


def resolve_placements(session: Session, tournament: Tournament,
                       settings: Optional[TournamentSettings] = None,
                       dry_run: bool = False) -> ResolutionResult:
    """
    Rebuild the binding table and apply it to the playoff matches.

    With dry_run the table is computed and stale matches are reported, but no
    playoff match is touched.
    """
    settings = settings or settings_from_tournament(tournament)
    playoffs = sorted(playoff_matches(session, tournament.id), key=lambda m: bracket_position(m.bracket_key))
    if not playoffs:
        return ResolutionResult(bindings=BindingTable())

    tables = load_group_tables(session, tournament, settings)
    groups = {(label or OVERALL_GROUP_KEY).lower(): table for label, table in tables.items()}
    results = {m.bracket_key: playoff_result(m) for m in playoffs}
    sources = [s for m in playoffs for s in (m.source_a, m.source_b)]
    bindings = build_binding_table(sources, groups, results, settings)

    result = ResolutionResult(bindings=bindings)
    changes: List[Tuple[Match, Tuple[Optional[int], Optional[int]]]] = []
    for match in playoffs:
        expected = (bindings.get(match.source_a), bindings.get(match.source_b))
        current = (match.team_a_id, match.team_b_id)
        if expected == current:
            continue
        if match.runtime_status != RUNTIME_SCHEDULED or match.correction_in_progress:
            result.stale.append(StaleMatch(match.id, match.bracket_key, current, expected))
            continue
        if dry_run:
            continue
        if expected[0] is not None and expected[0] == expected[1]:
            raise ConfigurationError(f"Playoff match {match.bracket_key} would pair a team with itself")
        changes.append((match, expected))

    referee_teams = None
    for match, expected in changes:
        match.team_a_id, match.team_b_id = expected
        if settings.referee_mode == RefereeMode.teams.value:
            if referee_teams is None:
                referee_teams = [t.id for t in active_teams(session, tournament.id)]
            _assign_playoff_referee(match, tournament_matches(session, tournament.id), referee_teams)
        session.add(match)
        result.updated_match_ids.append(match.id)

    if dry_run:
        return result
    for tie in result.ties:
        logger.warning(
            "Manual tie-break required for %s in tournament %s (teams %s)",
            tie.placeholder, tournament.id, tie.team_ids,
        )
    if result.stale:
        logger.warning(
            "Tournament %s: %s played playoff match(es) no longer match current standings",
            tournament.id, len(result.stale),
        )
    return result


def run_resolution(session: Session, tournament_id: int) -> ResolutionResult:
    """Resolve and commit; used after manual tie-breaks and for repair."""
    tournament = get_tournament(session, tournament_id)
    result = resolve_placements(session, tournament)
    session.commit()
    return result


def set_manual_tiebreak(session: Session, tournament_id: int, group_key: str,
                        team_ids: List[int]) -> ResolutionResult:
    """
    Record the organizer's order for teams tied on every criterion.

    group_key is a group label, "all" for group-less tournaments, or
    "bestSecond" for the cross-group comparison of second-placed teams.
    """
    tournament = get_tournament(session, tournament_id)
    if len(team_ids) < 2 or len(set(team_ids)) != len(team_ids):
        raise ConfigurationError("A manual tie-break needs at least two distinct teams")

    teams = {t.id: t for t in active_teams(session, tournament_id)}
    for team_id in team_ids:
        team = teams.get(team_id)
        if team is None:
            raise ConfigurationError(f"Team {team_id} is not an active team of this tournament")
        if group_key not in (OVERALL_GROUP_KEY, BEST_SECOND_KEY) and team.group_label != group_key:
            raise ConfigurationError(f"Team {team_id} is not in group {group_key}")

    manual: Dict[str, List[int]] = dict(tournament.manual_tiebreaks or {})
    manual[group_key] = list(team_ids)
    tournament.manual_tiebreaks = manual
    session.add(tournament)

    result = resolve_placements(session, tournament)
    session.commit()
    logger.info("Manual tie-break for %s recorded in tournament %s: %s", group_key, tournament_id, team_ids)
    return result
