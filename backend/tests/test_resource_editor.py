"""Manual schedule edits: reassignment dry runs, applied moves and swaps."""

import pytest
from sqlmodel import Session

from matchplan.errors import ConflictError, InvalidStateTransition
from matchplan.models.tournament import RefereeMode
from matchplan.services.resource_editor import apply_reassignment, check_conflict, swap_matches
from matchplan.services.schedule_generator import generate_schedule
from matchplan.services.score_service import record_score, start_match
from matchplan.services.tournament_state import group_matches, playoff_matches


def _slot_pair(session, tournament_id):
    """The two matches sharing the first slot."""
    first_slot = [m for m in group_matches(session, tournament_id) if m.slot_index == 0]
    assert len(first_slot) == 2
    return first_slot


def test_dry_run_reports_busy_field_without_writing(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=2)
    generate_schedule(session, tournament.id)
    a, b = _slot_pair(session, tournament.id)

    report = check_conflict(session, a.id, field=b.field)
    assert report.has_conflict
    assert report.resource == "field"
    assert report.conflicting_match_id == b.id

    session.refresh(a)
    assert a.field != b.field

    free = check_conflict(session, a.id, field=a.field)
    assert not free.has_conflict


def test_apply_reassignment_rejects_busy_or_unknown_field(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=2)
    generate_schedule(session, tournament.id)
    a, b = _slot_pair(session, tournament.id)

    with pytest.raises(ConflictError) as exc:
        apply_reassignment(session, a.id, field=b.field)
    assert exc.value.report.conflicting_match_id == b.id

    with pytest.raises(ConflictError) as exc:
        apply_reassignment(session, a.id, field=3)
    assert "does not exist" in exc.value.report.reason


def test_reassign_field_into_a_free_slot(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C"], number_of_fields=2)
    generate_schedule(session, tournament.id)
    match = group_matches(session, tournament.id)[0]
    target = 2 if match.field == 1 else 1

    moved = apply_reassignment(session, match.id, field=target)
    assert moved.field == target


def test_organizer_referee_reassignment(session: Session, make_tournament):
    tournament = make_tournament(
        teams=["A", "B", "C", "D"], number_of_fields=2, referee_mode=RefereeMode.organizer, referee_pool_size=3
    )
    generate_schedule(session, tournament.id)
    a, b = _slot_pair(session, tournament.id)

    with pytest.raises(ConflictError) as exc:
        apply_reassignment(session, a.id, referee=b.referee)
    assert exc.value.report.resource == "referee"

    with pytest.raises(ConflictError):
        apply_reassignment(session, a.id, referee=4)

    spare = ({1, 2, 3} - {a.referee, b.referee}).pop()
    assert apply_reassignment(session, a.id, referee=spare).referee == spare


def test_finished_match_cannot_be_moved(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C"], number_of_fields=2)
    generate_schedule(session, tournament.id)
    match = group_matches(session, tournament.id)[0]
    record_score(session, match.id, 1, 0)

    with pytest.raises(InvalidStateTransition):
        apply_reassignment(session, match.id, field=2)


def test_swap_then_swap_back_restores_schedule(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=1)
    generate_schedule(session, tournament.id)
    matches = group_matches(session, tournament.id)
    first, last = matches[0], matches[-1]
    before = {m.id: (m.slot_index, m.start_at, m.field, m.match_number) for m in (first, last)}

    a, b = swap_matches(session, first.id, last.id)
    assert (a.slot_index, a.start_at) == before[last.id][:2]
    assert (b.slot_index, b.start_at) == before[first.id][:2]
    assert (a.match_number, b.match_number) == (before[last.id][3], before[first.id][3])

    a, b = swap_matches(session, first.id, last.id)
    assert {m.id: (m.slot_index, m.start_at, m.field, m.match_number) for m in (a, b)} == before


def test_swap_that_double_books_a_team_is_rejected(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=2)
    generate_schedule(session, tournament.id)
    matches = group_matches(session, tournament.id)
    a = next(m for m in matches if m.slot_index == 0)
    b = next(m for m in matches if m.slot_index == 1)

    with pytest.raises(ConflictError) as exc:
        swap_matches(session, a.id, b.id)
    assert exc.value.report.resource == "team"
    session.refresh(a)
    assert a.slot_index == 0


def test_swap_rules(session: Session, make_tournament):
    tournament = make_tournament(
        groups={"A": ["A1", "A2", "A3"], "B": ["B1", "B2", "B3"]}, number_of_fields=2, playoff_final=True
    )
    generate_schedule(session, tournament.id)
    group = group_matches(session, tournament.id)
    final = playoff_matches(session, tournament.id)[0]

    with pytest.raises(ConflictError) as exc:
        swap_matches(session, group[0].id, final.id)
    assert exc.value.report.resource == "order"

    with pytest.raises(InvalidStateTransition):
        swap_matches(session, group[0].id, group[0].id)

    start_match(session, group[0].id)
    with pytest.raises(InvalidStateTransition) as exc:
        swap_matches(session, group[0].id, group[-1].id)
    assert exc.value.precondition == "status_scheduled"
