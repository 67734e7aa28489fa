# Register every table with SQLModel metadata before any test database is created
from matchplan.models.match import Match  # noqa: F401
from matchplan.models.match_correction import MatchCorrection  # noqa: F401
from matchplan.models.team import Team  # noqa: F401
from matchplan.models.tournament import Tournament  # noqa: F401
