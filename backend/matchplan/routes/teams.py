"""
Team Management API Routes
Create, rename, remove and restore teams of a tournament.

Removal is a soft delete: results stay, the team drops out of active
standings and future scheduling. Only teams without any match rows of a
draft tournament can be deleted for good.
"""

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from pydantic import BaseModel, ConfigDict, field_validator
from sqlalchemy import or_
from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from matchplan.database import get_session
from matchplan.models.match import Match
from matchplan.models.team import Team
from matchplan.models.tournament import GroupSystem, Tournament, TournamentStatus
from matchplan.services.tournament_lock import tournament_lock

router = APIRouter()


# ============================================================================
# Request/Response Models
# ============================================================================


class TeamCreateRequest(BaseModel):
    name: str
    group_label: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if not v or not v.strip():
            raise ValueError("name is required")
        return v.strip()

    @field_validator("group_label")
    @classmethod
    def normalize_group(cls, v):
        if v is None:
            return v
        v = v.strip().upper()
        if not v.isalnum():
            raise ValueError("group_label must be alphanumeric")
        return v


class TeamUpdateRequest(BaseModel):
    name: Optional[str] = None
    group_label: Optional[str] = None

    @field_validator("name")
    @classmethod
    def validate_name(cls, v):
        if v is not None and not v.strip():
            raise ValueError("name cannot be empty")
        return v.strip() if v else v

    @field_validator("group_label")
    @classmethod
    def normalize_group(cls, v):
        return TeamCreateRequest.normalize_group(v)


class TeamResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    tournament_id: int
    name: str
    group_label: Optional[str] = None
    position: int
    is_removed: bool
    removed_at: Optional[datetime] = None
    created_at: datetime


# ============================================================================
# Helpers
# ============================================================================


def _tournament_or_404(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise HTTPException(status_code=404, detail="Tournament not found")
    return tournament


def _team_or_404(session: Session, tournament_id: int, team_id: int) -> Team:
    team = session.get(Team, team_id)
    if not team or team.tournament_id != tournament_id:
        raise HTTPException(status_code=404, detail="Team not found")
    return team


def _check_group(tournament: Tournament, group_label: Optional[str]) -> None:
    has_groups = tournament.group_system == GroupSystem.groups_and_finals
    if has_groups and not group_label:
        raise HTTPException(status_code=422, detail="group_label is required for a tournament with groups")
    if not has_groups and group_label:
        raise HTTPException(status_code=422, detail="Tournament has no groups")


def _commit_team(session: Session, team: Team) -> Team:
    try:
        session.add(team)
        session.commit()
        session.refresh(team)
        return team
    except IntegrityError:
        session.rollback()
        raise HTTPException(status_code=409, detail=f"Team with name '{team.name}' already exists in this tournament")


# ============================================================================
# Team Endpoints
# ============================================================================


@router.get("/tournaments/{tournament_id}/teams", response_model=List[TeamResponse])
def get_teams(
    tournament_id: int,
    include_removed: bool = Query(False, description="Also list soft-deleted teams"),
    session: Session = Depends(get_session),
):
    """Teams in registration order"""
    _tournament_or_404(session, tournament_id)
    query = select(Team).where(Team.tournament_id == tournament_id)
    if not include_removed:
        query = query.where(Team.is_removed == False)  # noqa: E712
    return session.exec(query.order_by(Team.position, Team.id)).all()


@router.post("/tournaments/{tournament_id}/teams", response_model=TeamResponse, status_code=201)
def create_team(tournament_id: int, request: TeamCreateRequest, session: Session = Depends(get_session)):
    """
    Register a team.

    After publish the team only enters the schedule on the next redraw.
    """
    with tournament_lock(tournament_id):
        tournament = _tournament_or_404(session, tournament_id)
        _check_group(tournament, request.group_label)
        positions = session.exec(select(Team.position).where(Team.tournament_id == tournament_id)).all()
        team = Team(
            tournament_id=tournament_id,
            name=request.name,
            group_label=request.group_label,
            position=max(positions, default=-1) + 1,
        )
        return _commit_team(session, team)


@router.patch("/tournaments/{tournament_id}/teams/{team_id}", response_model=TeamResponse)
def update_team(tournament_id: int, team_id: int, request: TeamUpdateRequest, session: Session = Depends(get_session)):
    """Rename a team, or move it to another group while the tournament is a draft"""
    with tournament_lock(tournament_id):
        tournament = _tournament_or_404(session, tournament_id)
        team = _team_or_404(session, tournament_id, team_id)

        if request.name is not None:
            team.name = request.name
        if request.group_label is not None and request.group_label != team.group_label:
            if tournament.status == TournamentStatus.published:
                raise HTTPException(status_code=409, detail="Groups are fixed once the schedule is published")
            _check_group(tournament, request.group_label)
            team.group_label = request.group_label
        return _commit_team(session, team)


@router.post("/tournaments/{tournament_id}/teams/{team_id}/remove", response_model=TeamResponse)
def remove_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """Soft delete: keep results, drop the team from standings and future scheduling"""
    with tournament_lock(tournament_id):
        _tournament_or_404(session, tournament_id)
        team = _team_or_404(session, tournament_id, team_id)
        if team.is_removed:
            raise HTTPException(status_code=409, detail="Team is already removed")
        team.is_removed = True
        team.removed_at = datetime.utcnow()
        return _commit_team(session, team)


@router.post("/tournaments/{tournament_id}/teams/{team_id}/restore", response_model=TeamResponse)
def restore_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    with tournament_lock(tournament_id):
        _tournament_or_404(session, tournament_id)
        team = _team_or_404(session, tournament_id, team_id)
        if not team.is_removed:
            raise HTTPException(status_code=409, detail="Team is not removed")
        team.is_removed = False
        team.removed_at = None
        return _commit_team(session, team)


@router.delete("/tournaments/{tournament_id}/teams/{team_id}", status_code=204)
def delete_team(tournament_id: int, team_id: int, session: Session = Depends(get_session)):
    """Hard delete; only for a draft tournament and a team without matches"""
    with tournament_lock(tournament_id):
        tournament = _tournament_or_404(session, tournament_id)
        team = _team_or_404(session, tournament_id, team_id)
        if tournament.status == TournamentStatus.published:
            raise HTTPException(status_code=409, detail="Teams of a published tournament can only be removed")
        in_match = session.exec(
            select(Match.id).where(
                or_(Match.team_a_id == team_id, Match.team_b_id == team_id, Match.referee_team_id == team_id)
            )
        ).first()
        if in_match is not None:
            raise HTTPException(status_code=409, detail="Team has matches and can only be removed")

        session.delete(team)
        session.commit()
        return Response(status_code=204)
