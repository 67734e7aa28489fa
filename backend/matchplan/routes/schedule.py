"""
Schedule API Routes
Publish a draft tournament, redraw the unplayed remainder, list matches,
scan the whole schedule for conflicts and report referee and rest fairness.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from matchplan.database import get_session
from matchplan.errors import MatchplanError
from matchplan.routes.errors import http_error
from matchplan.services.conflict_report_builder import build_conflict_report
from matchplan.services.schedule_fairness import build_fairness_report
from matchplan.services.schedule_generator import generate_schedule, redraw_schedule
from matchplan.services.tournament_lock import tournament_lock
from matchplan.services.tournament_state import get_match, get_tournament, tournament_matches
from matchplan.utils.conflict_report import ScheduleConflictReport
from matchplan.utils.fairness_report import ScheduleFairnessReport

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class MatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    match_number: int
    phase: str
    bracket_key: Optional[str] = None
    group_label: Optional[str] = None
    round_number: int
    team_a_id: Optional[int] = None
    team_b_id: Optional[int] = None
    source_a: Optional[str] = None
    source_b: Optional[str] = None
    slot_index: int
    field: int
    start_at: datetime
    end_at: datetime
    referee: Optional[int] = None
    referee_team_id: Optional[int] = None
    parallel_mode: Optional[str] = None
    score_a: Optional[int] = None
    score_b: Optional[int] = None
    penalty_score_a: Optional[int] = None
    penalty_score_b: Optional[int] = None
    runtime_status: str
    correction_in_progress: bool
    started_at: Optional[datetime] = None
    finished_at: Optional[datetime] = None


class ScheduleResponse(BaseModel):
    tournament_id: int
    status: str
    matches_count: int
    playoff_matches_count: int
    matches: List[MatchResponse]


def _schedule_response(session: Session, tournament_id: int) -> ScheduleResponse:
    tournament = get_tournament(session, tournament_id)
    matches = tournament_matches(session, tournament_id)
    return ScheduleResponse(
        tournament_id=tournament_id,
        status=getattr(tournament.status, "value", tournament.status),
        matches_count=len(matches),
        playoff_matches_count=sum(1 for m in matches if m.is_playoff),
        matches=[MatchResponse.model_validate(m) for m in matches],
    )


# ============================================================================
# Schedule Endpoints
# ============================================================================


@router.post("/tournaments/{tournament_id}/publish", response_model=ScheduleResponse)
def publish_schedule(tournament_id: int, session: Session = Depends(get_session)):
    """
    Generate the complete schedule and publish the tournament.

    Group stage, playoff bracket with placeholders, slots, fields and
    referees are created in one transaction; nothing is written on error.
    """
    with tournament_lock(tournament_id):
        try:
            generate_schedule(session, tournament_id)
            return _schedule_response(session, tournament_id)
        except MatchplanError as e:
            raise http_error(e)


@router.post("/tournaments/{tournament_id}/redraw", response_model=ScheduleResponse)
def redraw(tournament_id: int, session: Session = Depends(get_session)):
    """Regenerate the unplayed remainder after teams were removed or added"""
    with tournament_lock(tournament_id):
        try:
            redraw_schedule(session, tournament_id)
            return _schedule_response(session, tournament_id)
        except MatchplanError as e:
            raise http_error(e)


@router.get("/tournaments/{tournament_id}/matches", response_model=List[MatchResponse])
def list_matches(
    tournament_id: int,
    phase: Optional[str] = Query(None, description="groupStage, semifinal, final, ..."),
    group_label: Optional[str] = Query(None),
    runtime_status: Optional[str] = Query(None, description="scheduled, inProgress or finished"),
    session: Session = Depends(get_session),
):
    """Matches in schedule order"""
    try:
        get_tournament(session, tournament_id)
        matches = tournament_matches(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)
    if phase is not None:
        matches = [m for m in matches if m.phase == phase]
    if group_label is not None:
        matches = [m for m in matches if m.group_label == group_label]
    if runtime_status is not None:
        matches = [m for m in matches if m.runtime_status == runtime_status]
    return matches


@router.get("/tournaments/{tournament_id}/matches/{match_id}", response_model=MatchResponse)
def get_single_match(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    try:
        return get_match(session, match_id, tournament_id)
    except MatchplanError as e:
        raise http_error(e)


@router.get("/tournaments/{tournament_id}/schedule/conflicts", response_model=ScheduleConflictReport)
def get_conflict_report(tournament_id: int, session: Session = Depends(get_session)):
    """
    Read-only scan of the whole schedule.

    Reports team, field and referee double bookings, rest violations and
    playoff ordering problems. Deterministic for a given schedule.
    """
    try:
        return build_conflict_report(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)


@router.get("/tournaments/{tournament_id}/schedule/fairness", response_model=ScheduleFairnessReport)
def get_fairness_report(tournament_id: int, session: Session = Depends(get_session)):
    """Referee workload and per-team rest figures. Never writes."""
    try:
        return build_fairness_report(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)
