from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from sqlalchemy import JSON, String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplan.models.match import Match
    from matchplan.models.match_correction import MatchCorrection
    from matchplan.models.team import Team


class Sport(str, Enum):
    football = "football"
    handball = "handball"
    other = "other"


class TournamentStatus(str, Enum):
    draft = "draft"
    published = "published"


class GroupSystem(str, Enum):
    round_robin = "roundRobin"
    groups_and_finals = "groupsAndFinals"


class KnockoutDepth(str, Enum):
    none = "none"
    semifinal = "semifinal"
    quarterfinal = "quarterfinal"


class RefereeMode(str, Enum):
    none = "none"
    organizer = "organizer"
    teams = "teams"


class Tournament(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    sport: Sport = Field(default=Sport.football, sa_column=Column(String, nullable=False))
    status: TournamentStatus = Field(default=TournamentStatus.draft, sa_column=Column(String, nullable=False))
    start_at: datetime  # first kickoff
    number_of_fields: int = Field(default=1)

    # Group topology
    group_system: GroupSystem = Field(default=GroupSystem.round_robin, sa_column=Column(String, nullable=False))
    group_rounds: int = Field(default=1)  # how often each pair meets
    group_fields: Optional[Dict[str, List[int]]] = Field(default=None, sa_column=Column(JSON))  # {"A": [1, 2]}

    # Timing (minutes); final_* fall back to group_* when null
    group_match_minutes: int = Field(default=10)
    group_break_minutes: int = Field(default=2)
    final_match_minutes: Optional[int] = Field(default=None)
    final_break_minutes: Optional[int] = Field(default=None)
    break_between_phases_minutes: int = Field(default=0)
    min_rest_slots: int = Field(default=0)

    # Playoffs
    knockout_depth: KnockoutDepth = Field(default=KnockoutDepth.none, sa_column=Column(String, nullable=False))
    playoff_final: bool = Field(default=False)
    playoff_third_place: bool = Field(default=False)
    playoff_fifth_sixth: bool = Field(default=False)
    playoff_seventh_eighth: bool = Field(default=False)
    allow_parallel_playoffs: bool = Field(default=True)
    playoff_parallel_modes: Optional[Dict[str, str]] = Field(default=None, sa_column=Column(JSON))

    # Referees
    referee_mode: RefereeMode = Field(default=RefereeMode.none, sa_column=Column(String, nullable=False))
    referee_pool_size: int = Field(default=0)
    max_consecutive_referee_slots: Optional[int] = Field(default=None)

    # Ranking
    points_win: int = Field(default=3)
    points_draw: int = Field(default=1)
    points_loss: int = Field(default=0)
    placement_criteria: Optional[List[Dict[str, Any]]] = Field(default=None, sa_column=Column(JSON))
    manual_tiebreaks: Optional[Dict[str, List[int]]] = Field(default=None, sa_column=Column(JSON))

    published_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)
    updated_at: datetime = Field(default_factory=datetime.utcnow, sa_column_kwargs={"onupdate": datetime.utcnow})

    # Relationships
    teams: List["Team"] = Relationship(back_populates="tournament")
    matches: List["Match"] = Relationship(back_populates="tournament")
    corrections: List["MatchCorrection"] = Relationship(back_populates="tournament")
