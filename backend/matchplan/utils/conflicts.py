"""
Resource overlap checks on plain bookings.

All checks use half-open intervals: [start, end) overlaps [s, e) iff
start < e and end > s. Back-to-back matches on one field do not conflict.
The checks never mutate anything and are safe to run repeatedly, as a dry
run while editing and again before an edit is persisted.
"""

from dataclasses import dataclass, replace
from datetime import datetime
from typing import Iterable, List, Optional, Tuple

from matchplan.models.match import SEQUENTIAL_ONLY, Match


@dataclass(frozen=True)
class Booking:
    match_id: int
    start: datetime
    end: datetime
    field: int
    team_ids: Tuple[int, ...] = ()
    referee: Optional[int] = None
    referee_team_id: Optional[int] = None
    group_label: Optional[str] = None
    is_playoff: bool = False
    parallel_mode: Optional[str] = None
    slot_index: int = 0


def booking_from_match(match: Match) -> Booking:
    return Booking(
        match_id=match.id,
        start=match.start_at,
        end=match.end_at,
        field=match.field,
        team_ids=match.team_ids(),
        referee=match.referee,
        referee_team_id=match.referee_team_id,
        group_label=match.group_label,
        is_playoff=match.is_playoff,
        parallel_mode=match.parallel_mode,
        slot_index=match.slot_index,
    )


def with_changes(booking: Booking, **changes) -> Booking:
    return replace(booking, **changes)


def intervals_overlap(start_a: datetime, end_a: datetime, start_b: datetime, end_b: datetime) -> bool:
    return start_a < end_b and end_a > start_b


def overlaps(a: Booking, b: Booking) -> bool:
    return intervals_overlap(a.start, a.end, b.start, b.end)


def _others(bookings: Iterable[Booking], candidate: Booking) -> List[Booking]:
    others = [b for b in bookings if b.match_id != candidate.match_id]
    others.sort(key=lambda b: (b.start, b.field, b.match_id))
    return others


def find_field_conflict(bookings: Iterable[Booking], candidate: Booking) -> Optional[Booking]:
    """First other match on the candidate's field overlapping it in time."""
    for other in _others(bookings, candidate):
        if other.field == candidate.field and overlaps(other, candidate):
            return other
    return None


def find_referee_conflict(bookings: Iterable[Booking], candidate: Booking) -> Optional[Booking]:
    """
    First match clashing with the candidate's referee.

    A referee team playing in the candidate match itself returns the
    candidate; a referee team playing or refereeing an overlapping match
    returns that match.
    """
    if candidate.referee_team_id is not None and candidate.referee_team_id in candidate.team_ids:
        return candidate
    for other in _others(bookings, candidate):
        if not overlaps(other, candidate):
            continue
        if candidate.referee is not None and other.referee == candidate.referee:
            return other
        if candidate.referee_team_id is not None and (
            other.referee_team_id == candidate.referee_team_id or candidate.referee_team_id in other.team_ids
        ):
            return other
    return None


def find_team_conflict(bookings: Iterable[Booking], candidate: Booking) -> Optional[Tuple[Booking, int]]:
    """First overlapping match sharing a team with the candidate, with the shared team."""
    if not candidate.team_ids:
        return None
    for other in _others(bookings, candidate):
        if not overlaps(other, candidate):
            continue
        for team_id in candidate.team_ids:
            if team_id in other.team_ids or team_id == other.referee_team_id:
                return other, team_id
    return None


def find_sequence_conflict(bookings: Iterable[Booking], candidate: Booking) -> Optional[Booking]:
    """Playoff overlap where either side must be played alone."""
    if not candidate.is_playoff:
        return None
    for other in _others(bookings, candidate):
        if not other.is_playoff or not overlaps(other, candidate):
            continue
        if SEQUENTIAL_ONLY in (candidate.parallel_mode, other.parallel_mode):
            return other
    return None
