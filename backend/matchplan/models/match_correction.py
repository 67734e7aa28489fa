from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING, Optional

from sqlalchemy import String
from sqlmodel import Column, Field, Relationship, SQLModel

if TYPE_CHECKING:
    from matchplan.models.tournament import Tournament


class CorrectionStatus(str, Enum):
    open = "open"
    committed = "committed"
    cancelled = "cancelled"


class CorrectionReason(str, Enum):
    input_error = "input_error"
    referee_decision = "referee_decision"
    protest_accepted = "protest_accepted"
    other = "other"


class MatchCorrection(SQLModel, table=True):
    """Correction session for a finished match; kept afterwards as the audit trail."""

    id: Optional[int] = Field(default=None, primary_key=True)
    tournament_id: int = Field(foreign_key="tournament.id", index=True)
    match_id: int = Field(foreign_key="match.id", index=True)
    status: CorrectionStatus = Field(default=CorrectionStatus.open, sa_column=Column(String, nullable=False))

    previous_score_a: int
    previous_score_b: int
    previous_penalty_score_a: Optional[int] = Field(default=None)
    previous_penalty_score_b: Optional[int] = Field(default=None)
    new_score_a: Optional[int] = Field(default=None)
    new_score_b: Optional[int] = Field(default=None)

    reason_type: Optional[CorrectionReason] = Field(default=None, sa_column=Column(String, nullable=True))
    note: Optional[str] = Field(default=None)
    corrected_by: Optional[str] = Field(default=None)
    bracket_stale: bool = Field(default=False)

    opened_at: datetime = Field(default_factory=datetime.utcnow)
    closed_at: Optional[datetime] = Field(default=None)

    tournament: "Tournament" = Relationship(back_populates="corrections")
