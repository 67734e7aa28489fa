"""
Conflict Report Response Models

Shared by:
- resource editor (dry-run check, reassignment, swap)
- ConflictReportBuilder (whole-schedule scan)
- route handlers (editor.py, schedule.py)
"""

from typing import List, Optional

from pydantic import BaseModel, computed_field

RESOURCE_FIELD = "field"
RESOURCE_REFEREE = "referee"
RESOURCE_TEAM = "team"
RESOURCE_SEQUENCE = "sequence"  # sequentialOnly playoff overlap
RESOURCE_ORDER = "order"  # playoff dependency / phase ordering


class ConflictReport(BaseModel):
    """Result of checking one match against one resource"""

    match_id: int
    resource: str
    value: Optional[int] = None
    has_conflict: bool = False
    conflicting_match_id: Optional[int] = None
    reason: Optional[str] = None


class TeamConflictDetail(BaseModel):
    """Same team in two overlapping matches"""

    match_id: int
    team_id: int
    conflicting_match_id: int
    details: str


class ResourceConflictDetail(BaseModel):
    """Field or referee booked for two overlapping matches"""

    match_id: int
    resource: str
    value: int
    conflicting_match_id: int
    details: str


class RestViolationDetail(BaseModel):
    """Group matches of one team closer together than min_rest_slots"""

    team_id: int
    match_id: int
    next_match_id: int
    free_slots: int
    required_slots: int


class OrderingViolation(BaseModel):
    """Playoff match overlapping or preceding a match it must follow"""

    type: str
    earlier_match_id: int
    later_match_id: int
    details: str


class ScheduleConflictSummary(BaseModel):
    tournament_id: int
    total_matches: int
    team_conflicts: int
    field_conflicts: int
    referee_conflicts: int
    rest_violations: int
    ordering_violations: int

    @computed_field
    @property
    def clean(self) -> bool:
        return not any(
            (
                self.team_conflicts,
                self.field_conflicts,
                self.referee_conflicts,
                self.rest_violations,
                self.ordering_violations,
            )
        )


class ScheduleConflictReport(BaseModel):
    """Complete conflict scan of a published schedule"""

    summary: ScheduleConflictSummary
    team_conflicts: List[TeamConflictDetail]
    field_conflicts: List[ResourceConflictDetail]
    referee_conflicts: List[ResourceConflictDetail]
    rest_violations: List[RestViolationDetail]
    ordering_violations: List[OrderingViolation]
