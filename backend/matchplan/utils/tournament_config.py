"""
Immutable engine settings.

The Tournament row is read once per engine call into a TournamentSettings
value which is then passed explicitly to every pure function (round robin,
playoff plan, allocator, standings, placeholder resolution).
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence, Tuple

from matchplan.errors import ConfigurationError
from matchplan.models.match import PARALLEL_ALLOWED, SEQUENTIAL_ONLY
from matchplan.models.tournament import GroupSystem, KnockoutDepth, RefereeMode, Tournament

CRITERION_POINTS = "points"
CRITERION_WINS = "wins"
CRITERION_GOAL_DIFFERENCE = "goalDifference"
CRITERION_GOALS_FOR = "goalsFor"
CRITERION_GOALS_AGAINST = "goalsAgainst"
CRITERION_DIRECT_COMPARISON = "directComparison"

CRITERIA_IDS = (
    CRITERION_POINTS,
    CRITERION_WINS,
    CRITERION_GOAL_DIFFERENCE,
    CRITERION_GOALS_FOR,
    CRITERION_GOALS_AGAINST,
    CRITERION_DIRECT_COMPARISON,
)

DEFAULT_PLACEMENT_CRITERIA: List[Dict[str, Any]] = [
    {"id": CRITERION_POINTS, "enabled": True, "position": 1},
    {"id": CRITERION_GOAL_DIFFERENCE, "enabled": True, "position": 2},
    {"id": CRITERION_GOALS_FOR, "enabled": True, "position": 3},
    {"id": CRITERION_DIRECT_COMPARISON, "enabled": True, "position": 4},
    {"id": CRITERION_WINS, "enabled": False, "position": 5},
    {"id": CRITERION_GOALS_AGAINST, "enabled": False, "position": 6},
]

# Key used for standings and manual tie-breaks when a tournament has no groups
OVERALL_GROUP_KEY = "all"
# Manual tie-break key for the best-second comparison across groups
BEST_SECOND_KEY = "bestSecond"


@dataclass(frozen=True)
class PointSystem:
    win: int = 3
    draw: int = 1
    loss: int = 0


@dataclass(frozen=True)
class TournamentSettings:
    start_at: datetime
    number_of_fields: int
    has_groups: bool = False
    group_rounds: int = 1
    group_fields: Dict[str, Tuple[int, ...]] = field(default_factory=dict)
    group_match_minutes: int = 10
    group_break_minutes: int = 2
    final_match_minutes: int = 10
    final_break_minutes: int = 2
    break_between_phases_minutes: int = 0
    min_rest_slots: int = 0
    knockout_depth: str = KnockoutDepth.none.value
    playoff_final: bool = False
    playoff_third_place: bool = False
    playoff_fifth_sixth: bool = False
    playoff_seventh_eighth: bool = False
    allow_parallel_playoffs: bool = True
    playoff_parallel_modes: Dict[str, str] = field(default_factory=dict)
    referee_mode: str = RefereeMode.none.value
    referee_pool_size: int = 0
    max_consecutive_referee_slots: Optional[int] = None
    points: PointSystem = field(default_factory=PointSystem)
    criteria: Tuple[str, ...] = (
        CRITERION_POINTS,
        CRITERION_GOAL_DIFFERENCE,
        CRITERION_GOALS_FOR,
        CRITERION_DIRECT_COMPARISON,
    )
    manual_tiebreaks: Dict[str, Tuple[int, ...]] = field(default_factory=dict)

    @property
    def playoffs_enabled(self) -> bool:
        return self.knockout_depth != KnockoutDepth.none.value or any(
            (self.playoff_final, self.playoff_third_place, self.playoff_fifth_sixth, self.playoff_seventh_eighth)
        )

    @property
    def scalar_criteria(self) -> Tuple[str, ...]:
        return tuple(c for c in self.criteria if c != CRITERION_DIRECT_COMPARISON)

    def allowed_fields(self, group_label: Optional[str]) -> List[int]:
        """Fields a match of this group may be placed on (all fields when unrestricted)."""
        if group_label is not None and group_label in self.group_fields:
            return list(self.group_fields[group_label])
        return list(range(1, self.number_of_fields + 1))

    def group_slot_minutes(self) -> int:
        return self.group_match_minutes + self.group_break_minutes

    def final_slot_minutes(self) -> int:
        return self.final_match_minutes + self.final_break_minutes

    def group_slot_start(self, slot_index: int) -> datetime:
        return self.start_at + timedelta(minutes=slot_index * self.group_slot_minutes())

    def manual_order(self, key: Optional[str]) -> Optional[Tuple[int, ...]]:
        return self.manual_tiebreaks.get(key or OVERALL_GROUP_KEY)


def parse_placement_criteria(raw: Optional[Sequence[Dict[str, Any]]]) -> Tuple[str, ...]:
    """
    Validate a placement-criteria list and return the enabled ids in precedence order.

    Each entry is {"id", "enabled", "position"}; ids and positions must be unique
    and at least one criterion must be enabled.
    """
    if raw is None:
        raw = DEFAULT_PLACEMENT_CRITERIA
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ConfigurationError("Placement criteria must be a non-empty list")

    seen_ids = set()
    seen_positions = set()
    entries = []
    for entry in raw:
        if not isinstance(entry, dict):
            raise ConfigurationError(f"Invalid placement criterion: {entry!r}")
        criterion_id = entry.get("id")
        if criterion_id not in CRITERIA_IDS:
            raise ConfigurationError(f"Unknown placement criterion: {criterion_id!r}")
        if criterion_id in seen_ids:
            raise ConfigurationError(f"Duplicate placement criterion: {criterion_id}")
        position = entry.get("position")
        if not isinstance(position, int) or isinstance(position, bool):
            raise ConfigurationError(f"Placement criterion {criterion_id} needs an integer position")
        if position in seen_positions:
            raise ConfigurationError(f"Duplicate placement criterion position: {position}")
        seen_ids.add(criterion_id)
        seen_positions.add(position)
        entries.append((position, criterion_id, bool(entry.get("enabled", False))))

    enabled = tuple(cid for _pos, cid, on in sorted(entries) if on)
    if not enabled:
        raise ConfigurationError("At least one placement criterion must be enabled")
    return enabled


def _choice(value: Any, allowed, label: str) -> str:
    raw = getattr(value, "value", value)
    values = {getattr(a, "value", a) for a in allowed}
    if raw not in values:
        raise ConfigurationError(f"Invalid {label}: {raw!r}")
    return raw


def settings_from_tournament(tournament: Tournament) -> TournamentSettings:
    """Validate a tournament row and freeze it into engine settings."""
    if tournament.number_of_fields is None or tournament.number_of_fields < 1:
        raise ConfigurationError("Tournament needs at least one field")
    if tournament.group_rounds is None or tournament.group_rounds < 1:
        raise ConfigurationError("group_rounds must be >= 1")
    if tournament.group_match_minutes is None or tournament.group_match_minutes <= 0:
        raise ConfigurationError("group_match_minutes must be positive")
    if (tournament.group_break_minutes or 0) < 0 or (tournament.break_between_phases_minutes or 0) < 0:
        raise ConfigurationError("Break durations cannot be negative")
    if (tournament.min_rest_slots or 0) < 0:
        raise ConfigurationError("min_rest_slots cannot be negative")

    group_system = _choice(tournament.group_system, GroupSystem, "group system")
    knockout_depth = _choice(tournament.knockout_depth, KnockoutDepth, "knockout depth")
    referee_mode = _choice(tournament.referee_mode, RefereeMode, "referee mode")

    group_fields: Dict[str, Tuple[int, ...]] = {}
    for label, fields in (tournament.group_fields or {}).items():
        if not fields:
            raise ConfigurationError(f"Group {label} has an empty field list")
        for f in fields:
            if not isinstance(f, int) or f < 1 or f > tournament.number_of_fields:
                raise ConfigurationError(f"Group {label} references unknown field {f!r}")
        group_fields[label] = tuple(sorted(set(fields)))

    parallel_modes: Dict[str, str] = {}
    for key, mode in (tournament.playoff_parallel_modes or {}).items():
        if mode not in (SEQUENTIAL_ONLY, PARALLEL_ALLOWED):
            raise ConfigurationError(f"Invalid parallel mode for {key}: {mode!r}")
        parallel_modes[key] = mode

    pool_size = tournament.referee_pool_size or 0
    if referee_mode == RefereeMode.organizer.value and pool_size < 1:
        raise ConfigurationError("Organizer referee mode needs a referee pool of at least 1")

    final_minutes = tournament.final_match_minutes or tournament.group_match_minutes
    final_break = tournament.final_break_minutes
    if final_break is None:
        final_break = tournament.group_break_minutes or 0
    if final_minutes <= 0 or final_break < 0:
        raise ConfigurationError("Final phase durations must be positive")

    manual = {
        str(key): tuple(int(t) for t in order)
        for key, order in (tournament.manual_tiebreaks or {}).items()
    }

    return TournamentSettings(
        start_at=tournament.start_at,
        number_of_fields=tournament.number_of_fields,
        has_groups=group_system == GroupSystem.groups_and_finals.value,
        group_rounds=tournament.group_rounds,
        group_fields=group_fields,
        group_match_minutes=tournament.group_match_minutes,
        group_break_minutes=tournament.group_break_minutes or 0,
        final_match_minutes=final_minutes,
        final_break_minutes=final_break,
        break_between_phases_minutes=tournament.break_between_phases_minutes or 0,
        min_rest_slots=tournament.min_rest_slots or 0,
        knockout_depth=knockout_depth,
        playoff_final=bool(tournament.playoff_final),
        playoff_third_place=bool(tournament.playoff_third_place),
        playoff_fifth_sixth=bool(tournament.playoff_fifth_sixth),
        playoff_seventh_eighth=bool(tournament.playoff_seventh_eighth),
        allow_parallel_playoffs=bool(tournament.allow_parallel_playoffs),
        playoff_parallel_modes=parallel_modes,
        referee_mode=referee_mode,
        referee_pool_size=pool_size,
        max_consecutive_referee_slots=tournament.max_consecutive_referee_slots,
        points=PointSystem(
            win=tournament.points_win,
            draw=tournament.points_draw,
            loss=tournament.points_loss,
        ),
        criteria=parse_placement_criteria(tournament.placement_criteria),
        manual_tiebreaks=manual,
    )
