from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, HTTPException, Response
from pydantic import BaseModel, ConfigDict, field_validator, model_validator
from sqlmodel import Session, select

from matchplan.database import get_session
from matchplan.errors import ConfigurationError
from matchplan.models.match import PARALLEL_ALLOWED, SEQUENTIAL_ONLY, Match
from matchplan.models.team import Team
from matchplan.models.tournament import (
    GroupSystem,
    KnockoutDepth,
    RefereeMode,
    Sport,
    Tournament,
    TournamentStatus,
)
from matchplan.utils.tournament_config import (
    DEFAULT_PLACEMENT_CRITERIA,
    parse_placement_criteria,
    settings_from_tournament,
)

router = APIRouter()


class PlacementCriterion(BaseModel):
    id: str
    enabled: bool
    position: int


def _check_criteria(v):
    if v is None:
        return v
    try:
        parse_placement_criteria([c.model_dump() if isinstance(c, BaseModel) else c for c in v])
    except ConfigurationError as e:
        raise ValueError(str(e))
    return v


def _check_parallel_modes(v):
    for key, mode in (v or {}).items():
        if mode not in (SEQUENTIAL_ONLY, PARALLEL_ALLOWED):
            raise ValueError(f"Invalid parallel mode for {key}: {mode}")
    return v


class TournamentCreate(BaseModel):
    name: str
    sport: Sport = Sport.football
    start_at: datetime
    number_of_fields: int = 1
    group_system: GroupSystem = GroupSystem.round_robin
    group_rounds: int = 1
    group_fields: Optional[Dict[str, List[int]]] = None
    group_match_minutes: int = 10
    group_break_minutes: int = 2
    final_match_minutes: Optional[int] = None
    final_break_minutes: Optional[int] = None
    break_between_phases_minutes: int = 0
    min_rest_slots: int = 0
    knockout_depth: KnockoutDepth = KnockoutDepth.none
    playoff_final: bool = False
    playoff_third_place: bool = False
    playoff_fifth_sixth: bool = False
    playoff_seventh_eighth: bool = False
    allow_parallel_playoffs: bool = True
    playoff_parallel_modes: Optional[Dict[str, str]] = None
    referee_mode: RefereeMode = RefereeMode.none
    referee_pool_size: int = 0
    max_consecutive_referee_slots: Optional[int] = None
    points_win: int = 3
    points_draw: int = 1
    points_loss: int = 0
    placement_criteria: Optional[List[PlacementCriterion]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("number_of_fields", "group_rounds", "group_match_minutes")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("placement_criteria")
    @classmethod
    def validate_criteria(cls, v):
        return _check_criteria(v)

    @field_validator("playoff_parallel_modes")
    @classmethod
    def validate_parallel_modes(cls, v):
        return _check_parallel_modes(v)

    @model_validator(mode="after")
    def validate_referees(self):
        if self.referee_mode == RefereeMode.organizer and self.referee_pool_size < 1:
            raise ValueError("organizer referee mode needs referee_pool_size >= 1")
        return self


class TournamentUpdate(BaseModel):
    name: Optional[str] = None
    sport: Optional[Sport] = None
    start_at: Optional[datetime] = None
    number_of_fields: Optional[int] = None
    group_system: Optional[GroupSystem] = None
    group_rounds: Optional[int] = None
    group_fields: Optional[Dict[str, List[int]]] = None
    group_match_minutes: Optional[int] = None
    group_break_minutes: Optional[int] = None
    final_match_minutes: Optional[int] = None
    final_break_minutes: Optional[int] = None
    break_between_phases_minutes: Optional[int] = None
    min_rest_slots: Optional[int] = None
    knockout_depth: Optional[KnockoutDepth] = None
    playoff_final: Optional[bool] = None
    playoff_third_place: Optional[bool] = None
    playoff_fifth_sixth: Optional[bool] = None
    playoff_seventh_eighth: Optional[bool] = None
    allow_parallel_playoffs: Optional[bool] = None
    playoff_parallel_modes: Optional[Dict[str, str]] = None
    referee_mode: Optional[RefereeMode] = None
    referee_pool_size: Optional[int] = None
    max_consecutive_referee_slots: Optional[int] = None
    points_win: Optional[int] = None
    points_draw: Optional[int] = None
    points_loss: Optional[int] = None
    placement_criteria: Optional[List[PlacementCriterion]] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("name cannot be blank")
        return v.strip() if v is not None else v

    @field_validator("number_of_fields", "group_rounds", "group_match_minutes")
    @classmethod
    def validate_positive(cls, v):
        if v is not None and v < 1:
            raise ValueError("must be >= 1")
        return v

    @field_validator("placement_criteria")
    @classmethod
    def validate_criteria(cls, v):
        return _check_criteria(v)

    @field_validator("playoff_parallel_modes")
    @classmethod
    def validate_parallel_modes(cls, v):
        return _check_parallel_modes(v)


class TournamentResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    name: str
    sport: str
    status: str
    start_at: datetime
    number_of_fields: int
    group_system: str
    group_rounds: int
    group_fields: Optional[Dict[str, List[int]]] = None
    group_match_minutes: int
    group_break_minutes: int
    final_match_minutes: Optional[int] = None
    final_break_minutes: Optional[int] = None
    break_between_phases_minutes: int
    min_rest_slots: int
    knockout_depth: str
    playoff_final: bool
    playoff_third_place: bool
    playoff_fifth_sixth: bool
    playoff_seventh_eighth: bool
    allow_parallel_playoffs: bool
    playoff_parallel_modes: Optional[Dict[str, str]] = None
    referee_mode: str
    referee_pool_size: int
    max_consecutive_referee_slots: Optional[int] = None
    points_win: int
    points_draw: int
    points_loss: int
    placement_criteria: List[Dict[str, Any]]
    manual_tiebreaks: Optional[Dict[str, List[int]]] = None
    published_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    @field_validator("sport", "status", "group_system", "knockout_depth", "referee_mode", mode="before")
    @classmethod
    def enum_value(cls, v):
        return getattr(v, "value", v)

    @field_validator("placement_criteria", mode="before")
    @classmethod
    def default_criteria(cls, v):
        return v if v is not None else DEFAULT_PLACEMENT_CRITERIA


def _dump(data: BaseModel, exclude_unset: bool = False) -> Dict[str, Any]:
    # nested criteria come out as plain dicts, ready for the JSON column
    return data.model_dump(exclude_unset=exclude_unset)


@router.get("/tournaments", response_model=List[TournamentResponse])
def list_tournaments(session: Session = Depends(get_session)):
    """List all tournaments"""
    return session.exec(select(Tournament).order_by(Tournament.id)).all()


@router.post("/tournaments", response_model=TournamentResponse, status_code=201)
def create_tournament(tournament_data: TournamentCreate, session: Session = Depends(get_session)):
    """Create a draft tournament"""
    tournament = Tournament(**_dump(tournament_data))
    try:
        settings_from_tournament(tournament)
    except ConfigurationError as e:
        raise HTTPException(status_code=422, detail=str(e))
    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.get("/tournaments/{tournament_id}", response_model=TournamentResponse)
def get_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Get a tournament by ID"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


@router.put("/tournaments/{tournament_id}", response_model=TournamentResponse)
def update_tournament(tournament_id: int, tournament_data: TournamentUpdate, session: Session = Depends(get_session)):
    """
    Update tournament configuration.

    Ranking settings (points, criteria) apply immediately since standings are
    always recomputed; structural settings take effect on the next redraw.
    """
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")

    for field, value in _dump(tournament_data, exclude_unset=True).items():
        setattr(tournament, field, value)
    try:
        settings_from_tournament(tournament)
    except ConfigurationError as e:
        # drop the pending changes; the stored configuration stays usable
        session.rollback()
        raise HTTPException(status_code=422, detail=str(e))
    tournament.updated_at = datetime.utcnow()

    session.add(tournament)
    session.commit()
    session.refresh(tournament)
    return tournament


@router.delete("/tournaments/{tournament_id}", status_code=204)
def delete_tournament(tournament_id: int, session: Session = Depends(get_session)):
    """Delete a draft tournament and its teams"""
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    if tournament.status == TournamentStatus.published:
        raise HTTPException(status_code=409, detail="Published tournaments cannot be deleted")

    for match in session.exec(select(Match).where(Match.tournament_id == tournament_id)).all():
        session.delete(match)
    for team in session.exec(select(Team).where(Team.tournament_id == tournament_id)).all():
        session.delete(team)
    session.delete(tournament)
    session.commit()
    return Response(status_code=204)
