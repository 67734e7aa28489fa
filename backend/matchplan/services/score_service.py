"""
Live results: start a match, record its final score.

Runtime status transitions: scheduled -> inProgress -> finished. A score can
be recorded from scheduled or inProgress; a finished score only changes
through the correction flow. Recording a score recomputes the affected
group's standings and re-runs placement resolution in the same transaction.
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session

from matchplan.errors import InvalidScoreError, InvalidStateTransition
from matchplan.models.match import RUNTIME_FINISHED, RUNTIME_IN_PROGRESS, RUNTIME_SCHEDULED, Match
from matchplan.models.tournament import TournamentStatus
from matchplan.services.placement_resolver import ResolutionResult, resolve_placements
from matchplan.services.standings_service import compute_standings
from matchplan.services.tournament_state import get_match, get_tournament
from matchplan.utils.standings import Standing

logger = logging.getLogger(__name__)


@dataclass
class ScoreUpdate:
    match: Match
    standings: List[Standing]
    resolution: ResolutionResult


def validate_score(match: Match, score_a: Optional[int], score_b: Optional[int],
                   penalty_score_a: Optional[int] = None, penalty_score_b: Optional[int] = None) -> None:
    """
    Scores are both present, non-negative integers. Penalties are only for
    playoff matches that end level, and must then decide the match.
    """
    for value in (score_a, score_b):
        if value is None or isinstance(value, bool) or not isinstance(value, int):
            raise InvalidScoreError("Both scores are required as integers")
        if value < 0:
            raise InvalidScoreError("Scores cannot be negative")

    penalties = (penalty_score_a, penalty_score_b)
    if (penalty_score_a is None) != (penalty_score_b is None):
        raise InvalidScoreError("Penalty scores must be given for both teams")
    has_penalties = penalty_score_a is not None
    if has_penalties and any(p < 0 for p in penalties):
        raise InvalidScoreError("Penalty scores cannot be negative")

    if not match.is_playoff:
        if has_penalties:
            raise InvalidScoreError("Group matches have no penalty shoot-out")
        return
    if score_a != score_b:
        if has_penalties:
            raise InvalidScoreError("Penalties only apply to a drawn playoff match")
        return
    if not has_penalties:
        raise InvalidScoreError("A drawn playoff match needs a penalty result")
    if penalty_score_a == penalty_score_b:
        raise InvalidScoreError("Penalty result must decide the match")


def _require_teams(match: Match) -> None:
    if match.team_a_id is None or match.team_b_id is None:
        raise InvalidStateTransition(
            f"Match {match.match_number} has unresolved participants", "participants_resolved"
        )


def _require_published(session: Session, match: Match) -> None:
    tournament = get_tournament(session, match.tournament_id)
    if tournament.status != TournamentStatus.published:
        raise InvalidStateTransition("Tournament is not published", "status_published")


def start_match(session: Session, match_id: int, tournament_id: Optional[int] = None) -> Match:
    match = get_match(session, match_id, tournament_id)
    _require_published(session, match)
    if match.runtime_status != RUNTIME_SCHEDULED:
        raise InvalidStateTransition(
            f"Only a scheduled match can start (status is {match.runtime_status})", "status_scheduled"
        )
    _require_teams(match)
    match.runtime_status = RUNTIME_IN_PROGRESS
    match.started_at = datetime.utcnow()
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Match %s started", match_id)
    return match


def group_standings_for(session: Session, match: Match) -> List[Standing]:
    if match.is_playoff:
        return []
    return compute_standings(session, match.tournament_id, match.group_label)


def record_score(session: Session, match_id: int, score_a: int, score_b: int,
                 penalty_score_a: Optional[int] = None, penalty_score_b: Optional[int] = None,
                 tournament_id: Optional[int] = None) -> ScoreUpdate:
    """Finish a match with its score; returns updated standings and placement resolution."""
    match = get_match(session, match_id, tournament_id)
    _require_published(session, match)
    if match.runtime_status == RUNTIME_FINISHED:
        raise InvalidStateTransition("Match is already finished; start a correction instead", "status_unfinished")
    _require_teams(match)
    validate_score(match, score_a, score_b, penalty_score_a, penalty_score_b)

    match.score_a = score_a
    match.score_b = score_b
    match.penalty_score_a = penalty_score_a
    match.penalty_score_b = penalty_score_b
    match.runtime_status = RUNTIME_FINISHED
    now = datetime.utcnow()
    match.started_at = match.started_at or now
    match.finished_at = now
    session.add(match)

    tournament = get_tournament(session, match.tournament_id)
    try:
        resolution = resolve_placements(session, tournament)
    except Exception:
        session.rollback()
        raise
    session.commit()
    session.refresh(match)

    logger.info("Match %s finished %s:%s", match_id, score_a, score_b)
    return ScoreUpdate(match=match, standings=group_standings_for(session, match), resolution=resolution)
