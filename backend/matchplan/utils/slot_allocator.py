"""
Slot/resource allocator.

Group matches fill slots greedily in pairing order: each slot takes every
pending match whose teams are free and rested, whose group has a free
allowed field, and for which a referee is available. Slot N of a phase
starts at slot N-1's start plus match duration plus break, identical on
every field lane.

Playoff matches follow in bracket order after one break_between_phases gap,
using the final-phase duration and break:
- a match never starts before the matches it depends on have ended
- a match never starts before the previous playoff match in bracket order
- sequentialOnly matches get a slot of their own
- parallelAllowed matches share a slot only with other parallelAllowed ones
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Dict, List, Optional, Sequence, Set, Tuple

from matchplan.errors import ConfigurationError
from matchplan.models.match import SEQUENTIAL_ONLY
from matchplan.models.tournament import RefereeMode
from matchplan.utils.referees import RefereeLedger
from matchplan.utils.tournament_config import TournamentSettings

logger = logging.getLogger(__name__)

GROUP_PHASE = "group"
PLAYOFF_PHASE = "playoff"


@dataclass(frozen=True)
class MatchRequest:
    key: int  # caller's identifier, echoed back in the assignment
    group_label: Optional[str] = None
    team_ids: Tuple[int, ...] = ()
    bracket_key: Optional[str] = None
    parallel_mode: Optional[str] = None
    depends_on: Tuple[str, ...] = ()


@dataclass(frozen=True)
class SlotAssignment:
    key: int
    slot_index: int
    field: int
    start: datetime
    end: datetime
    referee: Optional[int] = None
    referee_team_id: Optional[int] = None


@dataclass
class AllocationResult:
    group: List[SlotAssignment]
    playoff: List[SlotAssignment]
    group_end: Optional[datetime]
    playoff_start: Optional[datetime]

    @property
    def assignments(self) -> List[SlotAssignment]:
        return self.group + self.playoff


def _describe(req: MatchRequest) -> str:
    if req.bracket_key:
        return req.bracket_key
    teams = " vs ".join(str(t) for t in req.team_ids)
    return f"group {req.group_label or '-'} match {teams}"


def _allocate_group(settings: TournamentSettings, requests: Sequence[MatchRequest], ledger: RefereeLedger,
                    first_slot: int, last_slot_by_team: Dict[int, int]) -> List[SlotAssignment]:
    pending = list(requests)
    assignments: List[SlotAssignment] = []
    slot = first_slot
    empty_run = 0
    rest = settings.min_rest_slots

    while pending:
        used_fields: Set[int] = set()
        playing: Set[int] = set()
        remaining: List[MatchRequest] = []
        slot_key = (GROUP_PHASE, slot)
        start = settings.group_slot_start(slot)
        end = start + timedelta(minutes=settings.group_match_minutes)

        for req in pending:
            teams = set(req.team_ids)
            referee_busy = ledger.busy.get(slot_key, set()) if ledger.mode == RefereeMode.teams.value else set()
            if teams & playing or teams & referee_busy:
                remaining.append(req)
                continue
            if any(
                t in last_slot_by_team and slot - last_slot_by_team[t] - 1 < rest for t in teams
            ):
                remaining.append(req)
                continue
            free_fields = [f for f in settings.allowed_fields(req.group_label) if f not in used_fields]
            if not free_fields:
                remaining.append(req)
                continue
            if not ledger.has_capacity(slot_key, len(used_fields)):
                remaining.append(req)
                continue
            if not ledger.can_referee(slot_key, playing | teams):
                remaining.append(req)
                continue

            field = free_fields[0]
            referee = referee_team = None
            if ledger.mode == RefereeMode.organizer.value:
                referee = ledger.pick_pool_referee(slot_key)
            elif ledger.mode == RefereeMode.teams.value:
                referee_team = ledger.pick_team_referee(slot_key, playing | teams)

            used_fields.add(field)
            playing |= teams
            for t in teams:
                last_slot_by_team[t] = slot
            assignments.append(SlotAssignment(req.key, slot, field, start, end, referee, referee_team))

        if len(remaining) == len(pending):
            empty_run += 1
            # After rest+1 empty slots nothing is blocked by rest any more
            if empty_run > rest:
                raise ConfigurationError(
                    f"Cannot place {_describe(remaining[0])}: no field or referee available"
                )
        else:
            empty_run = 0
        logger.debug("Group slot %s: placed %s, %s pending", slot, len(pending) - len(remaining), len(remaining))
        pending = remaining
        slot += 1

    return assignments


def _allocate_playoffs(settings: TournamentSettings, requests: Sequence[MatchRequest], ledger: RefereeLedger,
                       first_slot_index: int, phase_start: datetime) -> List[SlotAssignment]:
    fields = list(range(1, settings.number_of_fields + 1))
    occupants: Dict[int, List[MatchRequest]] = {}
    used_fields: Dict[int, Set[int]] = {}
    placed: Dict[str, int] = {}
    assignments: List[SlotAssignment] = []
    floor = 0

    for req in requests:
        j = floor
        for dep in req.depends_on:
            if dep in placed:
                j = max(j, placed[dep] + 1)

        while True:
            current = occupants.get(j, [])
            if req.parallel_mode == SEQUENTIAL_ONLY:
                fits = not current
            else:
                fits = (
                    all(o.parallel_mode != SEQUENTIAL_ONLY for o in current)
                    and len(current) < len(fields)
                    and ledger.has_capacity((PLAYOFF_PHASE, j), len(current))
                )
            if fits:
                break
            j += 1

        field = next(f for f in fields if f not in used_fields.get(j, set()))
        occupants.setdefault(j, []).append(req)
        used_fields.setdefault(j, set()).add(field)
        placed[req.bracket_key] = j
        floor = j

        referee = None
        if ledger.mode == RefereeMode.organizer.value:
            referee = ledger.pick_pool_referee((PLAYOFF_PHASE, j))
        start = phase_start + timedelta(minutes=j * settings.final_slot_minutes())
        end = start + timedelta(minutes=settings.final_match_minutes)
        assignments.append(SlotAssignment(req.key, first_slot_index + j, field, start, end, referee))

    return assignments


def allocate(settings: TournamentSettings, group_requests: Sequence[MatchRequest],
             playoff_requests: Sequence[MatchRequest], referee_team_ids: Sequence[int] = (),
             first_group_slot: int = 0, last_slot_by_team: Optional[Dict[int, int]] = None,
             previous_group_end: Optional[datetime] = None) -> AllocationResult:
    """
    Assign slot, time, field and referee to every request.

    Group requests are placed first in the given order, playoff requests
    after them in the given (bracket) order. first_group_slot,
    last_slot_by_team and previous_group_end carry over already played
    matches when only the remainder of a schedule is re-allocated.
    Raises ConfigurationError when a match can never be placed.
    """
    ledger = RefereeLedger(
        settings.referee_mode,
        pool_size=settings.referee_pool_size,
        max_consecutive=settings.max_consecutive_referee_slots,
        team_ids=referee_team_ids,
    )
    if settings.referee_mode == RefereeMode.teams.value and group_requests and len(referee_team_ids) < 3:
        raise ConfigurationError("Teams as referees needs at least 3 active teams")

    group = _allocate_group(settings, group_requests, ledger, first_group_slot, dict(last_slot_by_team or {}))

    group_end = previous_group_end
    last_group_slot = first_group_slot - 1
    for a in group:
        if group_end is None or a.end > group_end:
            group_end = a.end
        last_group_slot = max(last_group_slot, a.slot_index)

    playoff: List[SlotAssignment] = []
    playoff_start = None
    if playoff_requests:
        if group_end is None:
            playoff_start = settings.start_at
        else:
            playoff_start = group_end + timedelta(minutes=settings.break_between_phases_minutes)
        playoff = _allocate_playoffs(settings, playoff_requests, ledger, last_group_slot + 1, playoff_start)

    return AllocationResult(group=group, playoff=playoff, group_end=group_end, playoff_start=playoff_start)
