"""
Engine error taxonomy.

Every error is raised to the caller before anything is written; routes
translate them into HTTP responses (see routes/errors.py).
"""

from typing import TYPE_CHECKING, List, Optional

if TYPE_CHECKING:
    from matchplan.utils.conflict_report import ConflictReport
    from matchplan.utils.placeholders import UnresolvedTie


class MatchplanError(Exception):
    """Base exception for engine errors"""
    pass


class ConfigurationError(MatchplanError):
    """Tournament configuration cannot produce a schedule"""
    pass


class InvalidScoreError(MatchplanError):
    """Score pair rejected (negative, one-sided, undecided knockout, unchanged correction)"""
    pass


class InvalidStateTransition(MatchplanError):
    """Operation not allowed in the current match/tournament state"""

    def __init__(self, message: str, precondition: Optional[str] = None):
        super().__init__(message)
        self.precondition = precondition


class ConflictError(MatchplanError):
    """Resource double-booking; carries the structured report"""

    def __init__(self, report: "ConflictReport"):
        super().__init__(report.reason or "Resource conflict")
        self.report = report


class UnresolvedTieError(MatchplanError):
    """A ranking tie exhausted every enabled criterion and needs a manual decision"""

    def __init__(self, ties: List["UnresolvedTie"]):
        labels = ", ".join(t.placeholder for t in ties)
        super().__init__(f"Manual tie-break required for: {labels}")
        self.ties = ties


class NotFoundError(MatchplanError):
    """Unknown tournament, team, match or correction id"""
    pass
