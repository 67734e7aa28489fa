"""
Referee assignment.

organizer: a pool of K numbered referees. At most K matches run at once;
    the least-loaded free referee is picked, preferring one who has not hit
    max_consecutive_referee_slots in a row.
teams: a non-playing active team referees. Group matches get one during
    allocation; playoff matches get one once both participants are known.
"""

from typing import Dict, Hashable, Iterable, List, Optional, Sequence, Set, Tuple

from matchplan.models.tournament import RefereeMode
from matchplan.utils.conflicts import Booking, overlaps

SlotKey = Tuple[Hashable, int]  # (phase, slot index)


class RefereeLedger:
    """Referee occupancy and load while the allocator fills slots"""

    def __init__(self, mode: str, pool_size: int = 0, max_consecutive: Optional[int] = None,
                 team_ids: Sequence[int] = ()):
        self.mode = mode
        self.pool_size = pool_size
        self.max_consecutive = max_consecutive
        self.team_ids = list(team_ids)
        self.load: Dict[int, int] = {}
        self.busy: Dict[SlotKey, Set[int]] = {}
        self._last_slot: Dict[int, SlotKey] = {}
        self._run: Dict[int, int] = {}

    @property
    def enabled(self) -> bool:
        return self.mode != RefereeMode.none.value

    def has_capacity(self, slot: SlotKey, matches_in_slot: int) -> bool:
        """Organizer pool caps how many matches can run in one slot."""
        if self.mode == RefereeMode.organizer.value:
            return matches_in_slot < self.pool_size
        return True

    def _book(self, referee: int, slot: SlotKey) -> None:
        self.busy.setdefault(slot, set()).add(referee)
        self.load[referee] = self.load.get(referee, 0) + 1
        last = self._last_slot.get(referee)
        if last is not None and last[0] == slot[0] and last[1] == slot[1] - 1:
            self._run[referee] = self._run.get(referee, 0) + 1
        else:
            self._run[referee] = 1
        self._last_slot[referee] = slot

    def _tired(self, referee: int, slot: SlotKey) -> bool:
        if not self.max_consecutive:
            return False
        last = self._last_slot.get(referee)
        if last is None or last[0] != slot[0] or last[1] != slot[1] - 1:
            return False
        return self._run.get(referee, 0) >= self.max_consecutive

    def pick_pool_referee(self, slot: SlotKey) -> Optional[int]:
        busy = self.busy.get(slot, set())
        free = [r for r in range(1, self.pool_size + 1) if r not in busy]
        if not free:
            return None
        rested = [r for r in free if not self._tired(r, slot)] or free
        choice = min(rested, key=lambda r: (self.load.get(r, 0), r))
        self._book(choice, slot)
        return choice

    def pick_team_referee(self, slot: SlotKey, playing: Set[int]) -> Optional[int]:
        busy = self.busy.get(slot, set())
        order = {tid: i for i, tid in enumerate(self.team_ids)}
        free = [t for t in self.team_ids if t not in playing and t not in busy]
        if not free:
            return None
        choice = min(free, key=lambda t: (self.load.get(t, 0), order[t]))
        self._book(choice, slot)
        return choice

    def can_referee(self, slot: SlotKey, playing: Set[int]) -> bool:
        if self.mode != RefereeMode.teams.value:
            return True
        busy = self.busy.get(slot, set())
        return any(t not in playing and t not in busy for t in self.team_ids)


def choose_team_referee(candidate: Booking, bookings: Iterable[Booking],
                        active_team_ids: Sequence[int]) -> Optional[int]:
    """
    Least-loaded active team free during the candidate match.

    Used for playoff matches once both participants are resolved. Teams
    playing in, or refereeing, an overlapping match are skipped.
    """
    bookings = [b for b in bookings if b.match_id != candidate.match_id]
    load: Dict[int, int] = {}
    for b in bookings:
        if b.referee_team_id is not None:
            load[b.referee_team_id] = load.get(b.referee_team_id, 0) + 1

    blocked: Set[int] = set(candidate.team_ids)
    for b in bookings:
        if overlaps(b, candidate):
            blocked.update(b.team_ids)
            if b.referee_team_id is not None:
                blocked.add(b.referee_team_id)

    order = {tid: i for i, tid in enumerate(active_team_ids)}
    free: List[int] = [t for t in active_team_ids if t not in blocked]
    if not free:
        return None
    return min(free, key=lambda t: (load.get(t, 0), order[t]))
