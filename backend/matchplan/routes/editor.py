"""
Manual Schedule Editor API Routes

- POST .../reassign/check : dry run, returns the ConflictReport
- POST .../reassign       : move a match to another field and/or referee
- POST .../swap           : exchange the slots of two unplayed matches

Writes never resolve a conflict on their own; a clash comes back as 409
with the structured report.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, model_validator
from sqlmodel import Session

from matchplan.database import get_session
from matchplan.errors import MatchplanError
from matchplan.routes.errors import http_error
from matchplan.routes.schedule import MatchResponse
from matchplan.services.resource_editor import apply_reassignment, check_conflict, swap_matches
from matchplan.services.tournament_lock import tournament_lock
from matchplan.utils.conflict_report import ConflictReport

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class ReassignRequest(BaseModel):
    field: Optional[int] = None
    referee: Optional[int] = None  # pool number (organizer mode) or team id (teams mode)

    @model_validator(mode="after")
    def require_change(self):
        if self.field is None and self.referee is None:
            raise ValueError("Provide a field, a referee, or both")
        return self


class SwapRequest(BaseModel):
    match_id_1: int
    match_id_2: int


class SwapResponse(BaseModel):
    match_1: MatchResponse
    match_2: MatchResponse


# ============================================================================
# Editor Endpoints
# ============================================================================


@router.post("/tournaments/{tournament_id}/matches/{match_id}/reassign/check", response_model=ConflictReport)
def check_reassignment(
    tournament_id: int, match_id: int, request: ReassignRequest, session: Session = Depends(get_session)
):
    """Would this field / referee clash with another match? Never writes."""
    try:
        return check_conflict(session, match_id, request.field, request.referee, tournament_id=tournament_id)
    except MatchplanError as e:
        raise http_error(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/reassign", response_model=MatchResponse)
def reassign(tournament_id: int, match_id: int, request: ReassignRequest, session: Session = Depends(get_session)):
    with tournament_lock(tournament_id):
        try:
            return apply_reassignment(
                session, match_id, request.field, request.referee, tournament_id=tournament_id
            )
        except MatchplanError as e:
            raise http_error(e)


@router.post("/tournaments/{tournament_id}/swap", response_model=SwapResponse)
def swap(tournament_id: int, request: SwapRequest, session: Session = Depends(get_session)):
    """Swapping the same pair twice restores the original schedule"""
    with tournament_lock(tournament_id):
        try:
            a, b = swap_matches(session, request.match_id_1, request.match_id_2, tournament_id=tournament_id)
        except MatchplanError as e:
            raise http_error(e)
    return SwapResponse(match_1=MatchResponse.model_validate(a), match_2=MatchResponse.model_validate(b))
