"""
Score Correction API Routes

finished match -> POST corrections (open) -> commit with the new score, or
cancel to keep the old one. Committing may leave already played playoff
matches with participants that no longer follow from the standings; they
are returned as stale and left untouched.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, ConfigDict, field_validator
from sqlmodel import Session

from matchplan.database import get_session
from matchplan.errors import MatchplanError
from matchplan.models.match_correction import CorrectionReason
from matchplan.routes.errors import http_error
from matchplan.routes.schedule import MatchResponse
from matchplan.routes.standings import ResolutionResponse, StandingResponse
from matchplan.services.correction_service import (
    cancel_correction,
    commit_correction,
    list_corrections,
    start_correction,
)
from matchplan.services.tournament_lock import tournament_lock

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class CorrectionStartRequest(BaseModel):
    match_id: int
    corrected_by: Optional[str] = None


class CorrectionCommitRequest(BaseModel):
    score_a: int
    score_b: int
    penalty_score_a: Optional[int] = None
    penalty_score_b: Optional[int] = None
    reason_type: Optional[CorrectionReason] = None
    note: Optional[str] = None


class CorrectionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    match_id: int
    status: str
    previous_score_a: int
    previous_score_b: int
    previous_penalty_score_a: Optional[int] = None
    previous_penalty_score_b: Optional[int] = None
    new_score_a: Optional[int] = None
    new_score_b: Optional[int] = None
    reason_type: Optional[str] = None
    note: Optional[str] = None
    corrected_by: Optional[str] = None
    bracket_stale: bool
    opened_at: datetime
    closed_at: Optional[datetime] = None

    @field_validator("status", "reason_type", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)


class CorrectionCommitResponse(BaseModel):
    correction: CorrectionResponse
    match: MatchResponse
    standings: List[StandingResponse]
    resolution: ResolutionResponse
    bracket_stale: bool
    stale_match_ids: List[int]


# ============================================================================
# Correction Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/corrections", response_model=List[CorrectionResponse])
def get_corrections(tournament_id: int, session: Session = Depends(get_session)):
    """Audit trail, oldest first"""
    try:
        return list_corrections(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)


@router.post("/tournaments/{tournament_id}/corrections", response_model=CorrectionResponse, status_code=201)
def open_correction(tournament_id: int, request: CorrectionStartRequest, session: Session = Depends(get_session)):
    with tournament_lock(tournament_id):
        try:
            return start_correction(
                session, request.match_id, corrected_by=request.corrected_by, tournament_id=tournament_id
            )
        except MatchplanError as e:
            raise http_error(e)


@router.post(
    "/tournaments/{tournament_id}/corrections/{correction_id}/commit", response_model=CorrectionCommitResponse
)
def commit(
    tournament_id: int, correction_id: int, request: CorrectionCommitRequest, session: Session = Depends(get_session)
):
    with tournament_lock(tournament_id):
        try:
            result = commit_correction(
                session,
                correction_id,
                request.score_a,
                request.score_b,
                request.penalty_score_a,
                request.penalty_score_b,
                reason_type=request.reason_type.value if request.reason_type else None,
                note=request.note,
                tournament_id=tournament_id,
            )
        except MatchplanError as e:
            raise http_error(e)
    return CorrectionCommitResponse(
        correction=CorrectionResponse.model_validate(result.correction),
        match=MatchResponse.model_validate(result.match),
        standings=[StandingResponse.model_validate(s) for s in result.standings],
        resolution=ResolutionResponse.from_result(result.resolution),
        bracket_stale=result.bracket_stale,
        stale_match_ids=result.stale_match_ids,
    )


@router.post("/tournaments/{tournament_id}/corrections/{correction_id}/cancel", response_model=CorrectionResponse)
def cancel(tournament_id: int, correction_id: int, session: Session = Depends(get_session)):
    with tournament_lock(tournament_id):
        try:
            return cancel_correction(session, correction_id, tournament_id=tournament_id)
        except MatchplanError as e:
            raise http_error(e)
