"""
Fairness Report Response Models

Referee workload and per-team rest figures for a schedule. Rest is counted
in free slots between two matches of a team, the same unit the conflict
report uses for min_rest_slots.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

REFEREE_KIND_ORGANIZER = "organizer"
REFEREE_KIND_TEAM = "team"


class RefereeLoad(BaseModel):
    """Matches assigned to one organizer referee or referee team"""

    referee: int  # pool number 1..K, or team id in teams mode
    kind: str
    assigned_matches: int
    open_matches: int  # assigned and not finished yet
    share_percent: int  # of all refereed matches


class TeamFairness(BaseModel):
    team_id: int
    matches: int
    first_slot: Optional[int] = None
    last_slot: Optional[int] = None
    min_rest_slots: Optional[int] = None
    max_rest_slots: Optional[int] = None
    avg_rest_slots: Optional[float] = None
    back_to_back: int = 0
    home: int = 0
    away: int = 0
    field_counts: Dict[int, int] = {}
    referee_duties: int = 0


class FairnessSummary(BaseModel):
    tournament_id: int
    referee_mode: str
    total_matches: int
    refereed_matches: int
    referee_load_spread: int  # busiest minus least busy referee
    min_rest_slots: Optional[int] = None
    max_rest_slots: Optional[int] = None
    avg_rest_slots: Optional[float] = None
    max_home_away_imbalance: int = 0


class ScheduleFairnessReport(BaseModel):
    """Read-only workload and rest analysis of a schedule"""

    summary: FairnessSummary
    referee_loads: List[RefereeLoad]
    teams: List[TeamFairness]
