from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlmodel import Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplan.models.team import Team
    from matchplan.models.tournament import Tournament


class MatchPhase(str, Enum):
    group_stage = "groupStage"
    quarterfinal = "quarterfinal"
    semifinal = "semifinal"
    final = "final"
    third_place = "thirdPlace"
    fifth_sixth = "fifthSixth"
    seventh_eighth = "seventhEighth"


PLAYOFF_PHASES = {p.value for p in MatchPhase if p is not MatchPhase.group_stage}

# Runtime status transitions: scheduled -> inProgress -> finished
RUNTIME_SCHEDULED = "scheduled"
RUNTIME_IN_PROGRESS = "inProgress"
RUNTIME_FINISHED = "finished"

PARALLEL_ALLOWED = "parallelAllowed"
SEQUENTIAL_ONLY = "sequentialOnly"


class Match(SQLModel, table=True):
    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_number: int  # 1-based schedule order
    phase: str = Field(default=MatchPhase.group_stage.value)
    bracket_key: Optional[str] = Field(default=None)  # "qf1", "semi2", "final", ... (playoffs only)
    group_label: Optional[str] = Field(default=None)  # group stage only
    round_number: int = Field(default=1)

    # Either a resolved team or a symbolic source ("group-a-1st", "semi1-winner", "bestSecond")
    team_a_id: Optional[int] = Field(default=None, foreign_key="team.id")
    team_b_id: Optional[int] = Field(default=None, foreign_key="team.id")
    source_a: Optional[str] = Field(default=None)
    source_b: Optional[str] = Field(default=None)

    # Allocation
    slot_index: int = Field(default=0)
    field: int = Field(default=1)
    start_at: datetime
    end_at: datetime
    referee: Optional[int] = Field(default=None)  # organizer pool number 1..K
    referee_team_id: Optional[int] = Field(default=None, foreign_key="team.id")  # teams-as-referees mode
    parallel_mode: Optional[str] = Field(default=None)  # playoffs: sequentialOnly | parallelAllowed

    # Result
    score_a: Optional[int] = Field(default=None)
    score_b: Optional[int] = Field(default=None)
    penalty_score_a: Optional[int] = Field(default=None)
    penalty_score_b: Optional[int] = Field(default=None)
    runtime_status: str = Field(default=RUNTIME_SCHEDULED)
    correction_in_progress: bool = Field(default=False)
    started_at: Optional[datetime] = Field(default=None)
    finished_at: Optional[datetime] = Field(default=None)
    created_at: datetime = Field(default_factory=datetime.utcnow)

    tournament: "Tournament" = Relationship(back_populates="matches")
    team_a: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.team_a_id"})
    team_b: Optional["Team"] = Relationship(sa_relationship_kwargs={"foreign_keys": "Match.team_b_id"})

    @property
    def finished(self) -> bool:
        return self.runtime_status == RUNTIME_FINISHED

    @property
    def is_playoff(self) -> bool:
        return self.phase in PLAYOFF_PHASES

    def team_ids(self):
        return tuple(t for t in (self.team_a_id, self.team_b_id) if t is not None)
