from matchplan.models.match import Match, MatchPhase
from matchplan.models.match_correction import CorrectionReason, CorrectionStatus, MatchCorrection
from matchplan.models.team import Team
from matchplan.models.tournament import (
    GroupSystem,
    KnockoutDepth,
    RefereeMode,
    Sport,
    Tournament,
    TournamentStatus,
)

__all__ = [
    "Tournament",
    "TournamentStatus",
    "Sport",
    "GroupSystem",
    "KnockoutDepth",
    "RefereeMode",
    "Team",
    "Match",
    "MatchPhase",
    "MatchCorrection",
    "CorrectionStatus",
    "CorrectionReason",
]
