"""
Standings API Routes
Group tables, overall ranking, placement resolution and manual tie-breaks.

Standings are projections: every request recomputes them from the stored
matches, so they always reflect the latest scores and corrections.
"""

from typing import Dict, List, Optional, Tuple

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel, ConfigDict
from sqlmodel import Session

from matchplan.database import get_session
from matchplan.errors import MatchplanError
from matchplan.routes.errors import http_error
from matchplan.services.placement_resolver import ResolutionResult, run_resolution, set_manual_tiebreak
from matchplan.services.standings_service import compute_all_standings, compute_final_ranking, compute_standings
from matchplan.services.tournament_lock import tournament_lock
from matchplan.utils.tournament_config import OVERALL_GROUP_KEY

router = APIRouter()


# ============================================================================
# Response Models
# ============================================================================


class StandingResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    rank: int
    team_id: int
    group_label: Optional[str] = None
    played: int
    won: int
    drawn: int
    lost: int
    goals_for: int
    goals_against: int
    goal_difference: int
    points: int
    tie_unresolved: bool
    tied_team_ids: List[int]


class GroupStandingsResponse(BaseModel):
    group_label: str
    standings: List[StandingResponse]


class TieResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    placeholder: str
    group_label: Optional[str] = None
    position: int
    team_ids: List[int]


class StaleMatchResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    match_id: int
    bracket_key: str
    current: Tuple[Optional[int], Optional[int]]
    expected: Tuple[Optional[int], Optional[int]]


class ResolutionResponse(BaseModel):
    bindings: Dict[str, int]
    updated_match_ids: List[int]
    stale: List[StaleMatchResponse]
    ties: List[TieResponse]

    @classmethod
    def from_result(cls, result: ResolutionResult) -> "ResolutionResponse":
        return cls(
            bindings=dict(result.bindings.bindings),
            updated_match_ids=list(result.updated_match_ids),
            stale=[StaleMatchResponse.model_validate(s) for s in result.stale],
            ties=[TieResponse.model_validate(t) for t in result.ties],
        )


class RankingEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    place: int
    team_id: int
    decided_by: str


class FinalRankingResponse(BaseModel):
    playoff_status: str
    entries: List[RankingEntryResponse]


class ManualTiebreakRequest(BaseModel):
    team_ids: List[int]


# ============================================================================
# Standings Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/standings", response_model=List[GroupStandingsResponse])
def get_all_standings(tournament_id: int, session: Session = Depends(get_session)):
    """Standings of every group, groups in label order"""
    try:
        tables = compute_all_standings(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)
    return [
        GroupStandingsResponse(
            group_label=label or OVERALL_GROUP_KEY,
            standings=[StandingResponse.model_validate(s) for s in standings],
        )
        for label, standings in tables.items()
    ]


@router.get("/tournaments/{tournament_id}/standings/{group_label}", response_model=GroupStandingsResponse)
def get_group_standings(tournament_id: int, group_label: str, session: Session = Depends(get_session)):
    """Standings of one group; use "all" for a tournament without groups"""
    try:
        standings = compute_standings(session, tournament_id, group_label)
    except MatchplanError as e:
        raise http_error(e)
    return GroupStandingsResponse(
        group_label=group_label,
        standings=[StandingResponse.model_validate(s) for s in standings],
    )


@router.get("/tournaments/{tournament_id}/ranking", response_model=FinalRankingResponse)
def get_final_ranking(tournament_id: int, session: Session = Depends(get_session)):
    try:
        ranking = compute_final_ranking(session, tournament_id)
    except MatchplanError as e:
        raise http_error(e)
    return FinalRankingResponse(
        playoff_status=ranking.playoff_status,
        entries=[RankingEntryResponse.model_validate(e) for e in ranking.entries],
    )


@router.post("/tournaments/{tournament_id}/placements/resolve", response_model=ResolutionResponse)
def resolve(
    tournament_id: int,
    strict: bool = Query(False, description="Fail with 409 while a placement is blocked by an unresolved tie"),
    session: Session = Depends(get_session),
):
    """Re-run placement resolution against the current standings"""
    with tournament_lock(tournament_id):
        try:
            result = run_resolution(session, tournament_id)
            if strict:
                result.raise_for_ties()
        except MatchplanError as e:
            raise http_error(e)
    return ResolutionResponse.from_result(result)


@router.put("/tournaments/{tournament_id}/tiebreaks/{group_key}", response_model=ResolutionResponse)
def put_manual_tiebreak(
    tournament_id: int, group_key: str, request: ManualTiebreakRequest, session: Session = Depends(get_session)
):
    """
    Record the organizer's order for teams level on every criterion.

    group_key is the group label, "all" without groups, or "bestSecond".
    """
    with tournament_lock(tournament_id):
        try:
            result = set_manual_tiebreak(session, tournament_id, group_key, request.team_ids)
        except MatchplanError as e:
            raise http_error(e)
    return ResolutionResponse.from_result(result)
