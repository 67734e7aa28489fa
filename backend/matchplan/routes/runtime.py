"""
Runtime: start a match and record its final score.

A score write recomputes the group standings and re-runs placement
resolution in the same transaction; the response carries both so the
desk sees the effect at once. Finished scores change only through the
corrections endpoints.
"""

from typing import List, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlmodel import Session

from matchplan.database import get_session
from matchplan.errors import MatchplanError
from matchplan.routes.errors import http_error
from matchplan.routes.schedule import MatchResponse
from matchplan.routes.standings import ResolutionResponse, StandingResponse
from matchplan.services.score_service import record_score, start_match
from matchplan.services.tournament_lock import tournament_lock

router = APIRouter()


class ScoreRequest(BaseModel):
    score_a: int
    score_b: int
    penalty_score_a: Optional[int] = None
    penalty_score_b: Optional[int] = None


class ScoreResponse(BaseModel):
    match: MatchResponse
    standings: List[StandingResponse]
    resolution: ResolutionResponse


@router.post("/tournaments/{tournament_id}/matches/{match_id}/start", response_model=MatchResponse)
def start(tournament_id: int, match_id: int, session: Session = Depends(get_session)):
    """scheduled -> inProgress"""
    with tournament_lock(tournament_id):
        try:
            return start_match(session, match_id, tournament_id=tournament_id)
        except MatchplanError as e:
            raise http_error(e)


@router.post("/tournaments/{tournament_id}/matches/{match_id}/score", response_model=ScoreResponse)
def score(tournament_id: int, match_id: int, request: ScoreRequest, session: Session = Depends(get_session)):
    """
    Record the final score of a scheduled or running match.

    A playoff match that ends level needs a deciding penalty result.
    """
    with tournament_lock(tournament_id):
        try:
            update = record_score(
                session,
                match_id,
                request.score_a,
                request.score_b,
                request.penalty_score_a,
                request.penalty_score_b,
                tournament_id=tournament_id,
            )
        except MatchplanError as e:
            raise http_error(e)
    return ScoreResponse(
        match=MatchResponse.model_validate(update.match),
        standings=[StandingResponse.model_validate(s) for s in update.standings],
        resolution=ResolutionResponse.from_result(update.resolution),
    )
