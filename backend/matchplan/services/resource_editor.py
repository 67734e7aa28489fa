"""
Manual Schedule Editor: field/referee reassignment and pairwise swaps.

check_conflict is the advisory dry run; apply_reassignment and swap_matches
run the same checks again before writing and raise ConflictError with the
structured report instead of resolving anything themselves.
"""

import logging
from typing import List, Optional, Tuple

from sqlmodel import Session

from matchplan.errors import ConfigurationError, ConflictError, InvalidStateTransition
from matchplan.models.match import RUNTIME_FINISHED, RUNTIME_SCHEDULED, Match
from matchplan.models.tournament import RefereeMode, Tournament
from matchplan.services.tournament_state import active_teams, get_match, get_tournament, tournament_matches
from matchplan.utils.conflict_report import (
    RESOURCE_FIELD,
    RESOURCE_ORDER,
    RESOURCE_REFEREE,
    RESOURCE_SEQUENCE,
    RESOURCE_TEAM,
    ConflictReport,
)
from matchplan.utils.conflicts import (
    Booking,
    booking_from_match,
    find_field_conflict,
    find_referee_conflict,
    find_sequence_conflict,
    find_team_conflict,
    with_changes,
)
from matchplan.utils.placeholders import parse_placeholder
from matchplan.utils.tournament_config import TournamentSettings, settings_from_tournament

logger = logging.getLogger(__name__)


def _field_report(settings: TournamentSettings, bookings: List[Booking], candidate: Booking) -> ConflictReport:
    report = ConflictReport(match_id=candidate.match_id, resource=RESOURCE_FIELD, value=candidate.field)
    if candidate.field not in settings.allowed_fields(None):
        return report.model_copy(update={"has_conflict": True, "reason": f"Field {candidate.field} does not exist"})
    if not candidate.is_playoff and candidate.field not in settings.allowed_fields(candidate.group_label):
        return report.model_copy(
            update={"has_conflict": True, "reason": f"Field {candidate.field} is not allowed for group {candidate.group_label}"}
        )
    other = find_field_conflict(bookings, candidate)
    if other is not None:
        return report.model_copy(
            update={
                "has_conflict": True,
                "conflicting_match_id": other.match_id,
                "reason": f"Field {candidate.field} is taken by match {other.match_id}",
            }
        )
    return report


def _referee_report(settings: TournamentSettings, team_ids: List[int], bookings: List[Booking],
                    candidate: Booking) -> ConflictReport:
    value = candidate.referee if settings.referee_mode == RefereeMode.organizer.value else candidate.referee_team_id
    report = ConflictReport(match_id=candidate.match_id, resource=RESOURCE_REFEREE, value=value)
    if value is None:
        return report
    if settings.referee_mode == RefereeMode.organizer.value and not 1 <= value <= settings.referee_pool_size:
        return report.model_copy(update={"has_conflict": True, "reason": f"Referee {value} is not in the pool"})
    if settings.referee_mode == RefereeMode.teams.value and value not in team_ids:
        return report.model_copy(update={"has_conflict": True, "reason": f"Team {value} cannot referee"})
    other = find_referee_conflict(bookings, candidate)
    if other is not None:
        if other.match_id == candidate.match_id:
            reason = f"Team {value} plays in this match"
        else:
            reason = f"Referee {value} is busy in match {other.match_id}"
        return report.model_copy(
            update={"has_conflict": True, "conflicting_match_id": other.match_id, "reason": reason}
        )
    return report


def _context(session: Session, match: Match) -> Tuple[Tournament, TournamentSettings, List[Match]]:
    tournament = get_tournament(session, match.tournament_id)
    return tournament, settings_from_tournament(tournament), tournament_matches(session, match.tournament_id)


def _candidate(settings: TournamentSettings, match: Match, field: Optional[int], referee: Optional[int]) -> Booking:
    candidate = booking_from_match(match)
    if field is not None:
        candidate = with_changes(candidate, field=field)
    if referee is not None:
        if settings.referee_mode == RefereeMode.organizer.value:
            candidate = with_changes(candidate, referee=referee)
        elif settings.referee_mode == RefereeMode.teams.value:
            candidate = with_changes(candidate, referee_team_id=referee)
        else:
            raise ConfigurationError("Referees are disabled for this tournament")
    return candidate


def _check(session: Session, match: Match, field: Optional[int], referee: Optional[int]) -> ConflictReport:
    tournament, settings, matches = _context(session, match)
    candidate = _candidate(settings, match, field, referee)
    bookings = [booking_from_match(m) for m in matches if m.id != match.id]

    if field is not None:
        report = _field_report(settings, bookings, candidate)
        if report.has_conflict or referee is None:
            return report
    if referee is not None:
        team_ids = [t.id for t in active_teams(session, tournament.id)]
        return _referee_report(settings, team_ids, bookings, candidate)
    return ConflictReport(match_id=match.id, resource=RESOURCE_FIELD, value=match.field)


def check_conflict(session: Session, match_id: int, field: Optional[int] = None, referee: Optional[int] = None,
                   tournament_id: Optional[int] = None) -> ConflictReport:
    """Dry run: would moving the match to this field / referee clash with another match?"""
    return _check(session, get_match(session, match_id, tournament_id), field, referee)


def apply_reassignment(session: Session, match_id: int, field: Optional[int] = None, referee: Optional[int] = None,
                       tournament_id: Optional[int] = None) -> Match:
    match = get_match(session, match_id, tournament_id)
    if match.runtime_status == RUNTIME_FINISHED:
        raise InvalidStateTransition("A finished match cannot be moved", "status_unfinished")

    report = _check(session, match, field, referee)
    if report.has_conflict:
        raise ConflictError(report)

    tournament = get_tournament(session, match.tournament_id)
    if field is not None:
        match.field = field
    if referee is not None:
        if tournament.referee_mode == RefereeMode.organizer.value:
            match.referee = referee
        else:
            match.referee_team_id = referee
    session.add(match)
    session.commit()
    session.refresh(match)
    logger.info("Match %s reassigned (field=%s, referee=%s)", match_id, field, referee)
    return match


def _swap_candidates(a: Match, b: Match) -> Tuple[Booking, Booking]:
    ba, bb = booking_from_match(a), booking_from_match(b)
    moved_a = with_changes(
        ba, start=bb.start, end=bb.end, field=bb.field, referee=bb.referee,
        referee_team_id=bb.referee_team_id, slot_index=bb.slot_index,
    )
    moved_b = with_changes(
        bb, start=ba.start, end=ba.end, field=ba.field, referee=ba.referee,
        referee_team_id=ba.referee_team_id, slot_index=ba.slot_index,
    )
    return moved_a, moved_b


def _order_report(candidate: Booking, match: Match, by_key: dict, bookings: List[Booking]) -> Optional[ConflictReport]:
    """A playoff match must start after the matches feeding it and end before the ones it feeds."""
    if not match.is_playoff:
        return None
    by_id = {b.match_id: b for b in bookings}
    for source in (match.source_a, match.source_b):
        ref = parse_placeholder(source) if source else None
        if ref is None or ref.kind != "match" or ref.bracket_key not in by_key:
            continue
        feeder = by_id[by_key[ref.bracket_key].id]
        if feeder.end > candidate.start:
            return ConflictReport(
                match_id=candidate.match_id, resource=RESOURCE_ORDER, has_conflict=True,
                conflicting_match_id=feeder.match_id,
                reason=f"Match would start before {ref.bracket_key} has ended",
            )
    for other in by_key.values():
        for source in (other.source_a, other.source_b):
            ref = parse_placeholder(source) if source else None
            if ref is not None and ref.kind == "match" and ref.bracket_key == match.bracket_key:
                dependent = by_id[other.id]
                if dependent.start < candidate.end:
                    return ConflictReport(
                        match_id=candidate.match_id, resource=RESOURCE_ORDER, has_conflict=True,
                        conflicting_match_id=dependent.match_id,
                        reason=f"Match would end after {other.bracket_key} starts",
                    )
    return None


def _swap_report(settings: TournamentSettings, team_ids: List[int], bookings: List[Booking], candidate: Booking,
                 match: Match, by_key: dict) -> Optional[ConflictReport]:
    field_report = _field_report(settings, bookings, candidate)
    if field_report.has_conflict:
        return field_report
    referee_report = _referee_report(settings, team_ids, bookings, candidate)
    if referee_report.has_conflict:
        return referee_report
    team_clash = find_team_conflict(bookings, candidate)
    if team_clash is not None:
        other, team_id = team_clash
        return ConflictReport(
            match_id=candidate.match_id, resource=RESOURCE_TEAM, value=team_id, has_conflict=True,
            conflicting_match_id=other.match_id, reason=f"Team {team_id} also plays in match {other.match_id}",
        )
    sequence_clash = find_sequence_conflict(bookings, candidate)
    if sequence_clash is not None:
        return ConflictReport(
            match_id=candidate.match_id, resource=RESOURCE_SEQUENCE, has_conflict=True,
            conflicting_match_id=sequence_clash.match_id,
            reason="Sequential-only playoff match would overlap another playoff match",
        )
    return _order_report(candidate, match, by_key, bookings)


def swap_matches(session: Session, match_id_1: int, match_id_2: int,
                 tournament_id: Optional[int] = None) -> Tuple[Match, Match]:
    """
    Exchange slot, time, field and referee of two unplayed matches.

    Both matches must still be scheduled. Swapping the same pair again
    restores the original assignment.
    """
    if match_id_1 == match_id_2:
        raise InvalidStateTransition("Cannot swap a match with itself", "distinct_matches")
    a = get_match(session, match_id_1, tournament_id)
    b = get_match(session, match_id_2, tournament_id)
    if a.tournament_id != b.tournament_id:
        raise InvalidStateTransition("Matches belong to different tournaments", "same_tournament")
    for m in (a, b):
        if m.runtime_status != RUNTIME_SCHEDULED or m.correction_in_progress:
            raise InvalidStateTransition(
                f"Match {m.match_number} is {m.runtime_status}; only scheduled matches can be swapped",
                "status_scheduled",
            )
    if a.is_playoff != b.is_playoff:
        report = ConflictReport(
            match_id=a.id, resource=RESOURCE_ORDER, has_conflict=True, conflicting_match_id=b.id,
            reason="Group stage and playoff matches cannot be swapped",
        )
        raise ConflictError(report)

    tournament, settings, matches = _context(session, a)
    team_ids = [t.id for t in active_teams(session, tournament.id)]
    moved_a, moved_b = _swap_candidates(a, b)
    rest = [booking_from_match(m) for m in matches if m.id not in (a.id, b.id)]
    by_key = {m.bracket_key: m for m in matches if m.is_playoff}

    for candidate, match, partner in ((moved_a, a, moved_b), (moved_b, b, moved_a)):
        report = _swap_report(settings, team_ids, rest + [partner], candidate, match, by_key)
        if report is not None:
            raise ConflictError(report)

    for m, moved in ((a, moved_a), (b, moved_b)):
        m.start_at = moved.start
        m.end_at = moved.end
        m.field = moved.field
        m.referee = moved.referee
        m.referee_team_id = moved.referee_team_id
        m.slot_index = moved.slot_index
    a.match_number, b.match_number = b.match_number, a.match_number
    session.add(a)
    session.add(b)
    session.commit()
    session.refresh(a)
    session.refresh(b)
    logger.info("Swapped matches %s and %s", a.id, b.id)
    return a, b
