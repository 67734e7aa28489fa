"""
Schedule generation (publish) and redraw of the unplayed remainder.

Pipeline: settings -> group pairings -> playoff plan -> slot allocation ->
Match rows. Everything is computed and validated in memory first; rows are
written and committed in one step, so a ConfigurationError leaves the
tournament untouched.
"""

import logging
from collections import Counter
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from sqlmodel import Session

from matchplan.errors import InvalidStateTransition
from matchplan.models.match import RUNTIME_SCHEDULED, Match, MatchPhase
from matchplan.models.tournament import TournamentStatus
from matchplan.services.placement_resolver import resolve_placements
from matchplan.services.tournament_state import (
    active_teams,
    get_tournament,
    group_partitions,
    tournament_matches,
)
from matchplan.utils.playoff_plan import PlayoffSlot, build_playoff_plan
from matchplan.utils.round_robin import Pairing, generate_group_stage
from matchplan.utils.slot_allocator import AllocationResult, MatchRequest, allocate
from matchplan.utils.tournament_config import TournamentSettings, settings_from_tournament

logger = logging.getLogger(__name__)


def _requests(pairings: Sequence[Pairing], plan: Sequence[PlayoffSlot]) -> Tuple[List[MatchRequest], List[MatchRequest]]:
    group = [
        MatchRequest(key=i, group_label=p.group_label, team_ids=(p.home_id, p.away_id))
        for i, p in enumerate(pairings)
    ]
    offset = len(group)
    playoff = [
        MatchRequest(
            key=offset + i,
            bracket_key=slot.bracket_key,
            parallel_mode=slot.parallel_mode,
            depends_on=slot.depends_on,
        )
        for i, slot in enumerate(plan)
    ]
    return group, playoff


def _build_rows(tournament_id: int, pairings: Sequence[Pairing], plan: Sequence[PlayoffSlot],
                allocation: AllocationResult) -> List[Match]:
    by_key = {a.key: a for a in allocation.assignments}
    rows: List[Match] = []
    for i, p in enumerate(pairings):
        a = by_key[i]
        rows.append(
            Match(
                tournament_id=tournament_id,
                match_number=0,
                phase=MatchPhase.group_stage.value,
                group_label=p.group_label,
                round_number=p.round_number,
                team_a_id=p.home_id,
                team_b_id=p.away_id,
                slot_index=a.slot_index,
                field=a.field,
                start_at=a.start,
                end_at=a.end,
                referee=a.referee,
                referee_team_id=a.referee_team_id,
            )
        )
    offset = len(pairings)
    for i, slot in enumerate(plan):
        a = by_key[offset + i]
        rows.append(
            Match(
                tournament_id=tournament_id,
                match_number=0,
                phase=slot.phase,
                bracket_key=slot.bracket_key,
                round_number=1,
                source_a=slot.source_a,
                source_b=slot.source_b,
                slot_index=a.slot_index,
                field=a.field,
                start_at=a.start,
                end_at=a.end,
                referee=a.referee,
                parallel_mode=slot.parallel_mode,
            )
        )
    return rows


def _renumber(matches: List[Match]) -> None:
    for number, match in enumerate(sorted(matches, key=lambda m: (m.start_at, m.field)), start=1):
        match.match_number = number


def plan_schedule(settings: TournamentSettings, partitions: Dict[Optional[str], List[int]],
                  referee_team_ids: Sequence[int], tournament_id: int) -> List[Match]:
    """Unsaved Match rows for a full schedule; raises ConfigurationError."""
    pairings = generate_group_stage(partitions, settings.group_rounds)
    plan = build_playoff_plan(settings, {label: len(ids) for label, ids in partitions.items()})
    group_requests, playoff_requests = _requests(pairings, plan)
    allocation = allocate(settings, group_requests, playoff_requests, referee_team_ids=referee_team_ids)
    rows = _build_rows(tournament_id, pairings, plan, allocation)
    _renumber(rows)
    return rows


def generate_schedule(session: Session, tournament_id: int) -> List[Match]:
    """Publish: create the complete match list for a draft tournament."""
    tournament = get_tournament(session, tournament_id)
    if tournament.status == TournamentStatus.published:
        raise InvalidStateTransition("Tournament is already published; use redraw", "status_draft")

    settings = settings_from_tournament(tournament)
    teams = active_teams(session, tournament_id)
    rows = plan_schedule(settings, group_partitions(teams, settings), [t.id for t in teams], tournament_id)

    session.add_all(rows)
    tournament.status = TournamentStatus.published
    tournament.published_at = datetime.utcnow()
    session.add(tournament)
    session.commit()

    matches = tournament_matches(session, tournament_id)
    logger.info(
        "Published tournament %s: %s matches (%s playoff)",
        tournament_id, len(matches), sum(1 for m in matches if m.is_playoff),
    )
    return matches


def redraw_schedule(session: Session, tournament_id: int) -> List[Match]:
    """
    Regenerate the unplayed remainder of a published schedule.

    Played and running group matches stay as they are. Pairings still owed
    between active teams are re-allocated after the last started slot;
    unplayed matches of removed teams are dropped. Playoff matches are
    re-planned, so none of them may have started.
    """
    tournament = get_tournament(session, tournament_id)
    if tournament.status != TournamentStatus.published:
        raise InvalidStateTransition("Only a published schedule can be redrawn", "status_published")

    existing = tournament_matches(session, tournament_id)
    if any(m.is_playoff and m.runtime_status != RUNTIME_SCHEDULED for m in existing):
        raise InvalidStateTransition("Cannot redraw after playoff matches have started", "playoffs_unstarted")
    if any(m.correction_in_progress for m in existing):
        raise InvalidStateTransition("Finish the open correction before redrawing", "no_open_correction")

    settings = settings_from_tournament(tournament)
    teams = active_teams(session, tournament_id)
    partitions = group_partitions(teams, settings)

    started = [m for m in existing if not m.is_playoff and m.runtime_status != RUNTIME_SCHEDULED]
    played_pairs = Counter((m.group_label, frozenset(m.team_ids())) for m in started)
    owed: List[Pairing] = []
    for p in generate_group_stage(partitions, settings.group_rounds):
        pair_key = (p.group_label, frozenset((p.home_id, p.away_id)))
        if played_pairs[pair_key] > 0:
            played_pairs[pair_key] -= 1
        else:
            owed.append(p)

    last_slot_by_team: Dict[int, int] = {}
    for m in started:
        for team_id in m.team_ids():
            last_slot_by_team[team_id] = max(last_slot_by_team.get(team_id, -1), m.slot_index)
    first_slot = max((m.slot_index for m in started), default=-1) + 1
    previous_end = max((m.end_at for m in started), default=None)

    plan = build_playoff_plan(settings, {label: len(ids) for label, ids in partitions.items()})
    group_requests, playoff_requests = _requests(owed, plan)
    allocation = allocate(
        settings,
        group_requests,
        playoff_requests,
        referee_team_ids=[t.id for t in teams],
        first_group_slot=first_slot,
        last_slot_by_team=last_slot_by_team,
        previous_group_end=previous_end,
    )
    new_rows = _build_rows(tournament_id, owed, plan, allocation)

    dropped = [m for m in existing if m.runtime_status == RUNTIME_SCHEDULED]
    for m in dropped:
        session.delete(m)
    session.flush()
    _renumber(started + new_rows)
    session.add_all(started + new_rows)
    resolve_placements(session, tournament, settings)
    session.commit()

    logger.info(
        "Redrew tournament %s: kept %s started matches, replaced %s with %s",
        tournament_id, len(started), len(dropped), len(new_rows),
    )
    return tournament_matches(session, tournament_id)
