"""Publish and redraw through the session-based services."""

from collections import Counter
from itertools import combinations

import pytest
from sqlmodel import Session, select

from matchplan.errors import ConfigurationError, InvalidStateTransition
from matchplan.models.match import SEQUENTIAL_ONLY, Match
from matchplan.models.team import Team
from matchplan.models.tournament import KnockoutDepth, RefereeMode, Tournament, TournamentStatus
from matchplan.services.conflict_report_builder import build_conflict_report
from matchplan.services.schedule_generator import generate_schedule, redraw_schedule
from matchplan.services.score_service import record_score, start_match
from matchplan.services.tournament_state import group_matches, playoff_matches
from matchplan.utils.conflicts import intervals_overlap


def test_four_teams_one_field_six_matches_in_distinct_slots(session: Session, make_tournament):
    tournament = make_tournament(teams=["Ajax", "Benfica", "Celtic", "Dynamo"])

    matches = generate_schedule(session, tournament.id)

    assert len(matches) == 6
    assert len({m.slot_index for m in matches}) == 6
    assert [m.match_number for m in matches] == [1, 2, 3, 4, 5, 6]
    assert all(m.field == 1 for m in matches)
    assert all(m.runtime_status == "scheduled" for m in matches)
    pairs = Counter(frozenset(m.team_ids()) for m in matches)
    assert len(pairs) == 6 and set(pairs.values()) == {1}

    session.refresh(tournament)
    assert tournament.status == TournamentStatus.published
    assert tournament.published_at is not None


def test_group_rounds_repeat_every_pair(session: Session, make_tournament):
    tournament = make_tournament(teams=["A1", "A2", "A3"], group_rounds=2, number_of_fields=2)
    matches = generate_schedule(session, tournament.id)

    assert len(matches) == 6
    assert set(Counter(frozenset(m.team_ids()) for m in matches).values()) == {2}


def test_final_never_overlaps_with_parallel_third_place(session: Session, make_tournament):
    tournament = make_tournament(
        groups={"A": ["A1", "A2", "A3"], "B": ["B1", "B2", "B3"]},
        number_of_fields=2,
        playoff_final=True,
        playoff_third_place=True,
        allow_parallel_playoffs=True,
        playoff_parallel_modes={"third_place": "parallelAllowed"},
    )
    generate_schedule(session, tournament.id)

    groups = group_matches(session, tournament.id)
    playoffs = {m.bracket_key: m for m in playoff_matches(session, tournament.id)}
    assert len(groups) == 6
    assert set(playoffs) == {"final", "third_place"}

    final = playoffs["final"]
    assert final.parallel_mode == SEQUENTIAL_ONLY
    assert (final.source_a, final.source_b) == ("group-a-1st", "group-b-1st")
    assert final.team_a_id is None and final.team_b_id is None
    third = playoffs["third_place"]
    assert not intervals_overlap(final.start_at, final.end_at, third.start_at, third.end_at)
    last_group_end = max(m.end_at for m in groups)
    assert min(m.start_at for m in playoffs.values()) >= last_group_end


def test_publish_is_clean_and_field_intervals_never_overlap(session: Session, make_tournament):
    tournament = make_tournament(
        groups={"A": ["A1", "A2", "A3", "A4"], "B": ["B1", "B2", "B3", "B4"]},
        number_of_fields=3,
        knockout_depth=KnockoutDepth.semifinal,
        playoff_final=True,
        playoff_third_place=True,
        playoff_fifth_sixth=True,
        referee_mode=RefereeMode.organizer,
        referee_pool_size=3,
        min_rest_slots=1,
    )
    matches = generate_schedule(session, tournament.id)

    for a, b in combinations(matches, 2):
        if intervals_overlap(a.start_at, a.end_at, b.start_at, b.end_at):
            assert a.field != b.field
            assert a.referee != b.referee
    report = build_conflict_report(session, tournament.id)
    assert report.summary.clean
    assert report.summary.total_matches == len(matches)


def test_teams_as_referees_never_referee_themselves(session: Session, make_tournament):
    tournament = make_tournament(
        teams=["T1", "T2", "T3", "T4", "T5"], number_of_fields=2, referee_mode=RefereeMode.teams
    )
    matches = generate_schedule(session, tournament.id)

    for m in matches:
        assert m.referee_team_id is not None
        assert m.referee_team_id not in m.team_ids()
    assert build_conflict_report(session, tournament.id).summary.clean


def test_configuration_error_writes_nothing(session: Session, make_tournament):
    tournament = make_tournament(groups={"A": ["A1", "A2", "A3"], "B": ["B1"]})

    with pytest.raises(ConfigurationError):
        generate_schedule(session, tournament.id)

    session.refresh(tournament)
    assert tournament.status == TournamentStatus.draft
    assert session.exec(select(Match).where(Match.tournament_id == tournament.id)).all() == []


def test_invalid_placement_criteria_rejected(session: Session, make_tournament):
    tournament = make_tournament(
        teams=["A", "B"],
        placement_criteria=[
            {"id": "points", "enabled": True, "position": 1},
            {"id": "points", "enabled": True, "position": 2},
        ],
    )
    with pytest.raises(ConfigurationError, match="Duplicate"):
        generate_schedule(session, tournament.id)


def test_publish_twice_is_rejected(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C"])
    generate_schedule(session, tournament.id)

    with pytest.raises(InvalidStateTransition) as exc:
        generate_schedule(session, tournament.id)
    assert exc.value.precondition == "status_draft"


def test_redraw_drops_removed_team_and_keeps_played_matches(session: Session, make_tournament, team_ids):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=1)
    generate_schedule(session, tournament.id)
    ids = team_ids(tournament.id)

    first = group_matches(session, tournament.id)[0]
    record_score(session, first.id, 2, 1)
    played = first.team_ids()
    running = group_matches(session, tournament.id)[1]
    start_match(session, running.id)

    removed_id = played[0]
    team = session.get(Team, removed_id)
    team.is_removed = True
    session.add(team)
    session.commit()

    matches = redraw_schedule(session, tournament.id)

    assert any(m.id == first.id and m.score_a == 2 for m in matches)
    assert any(m.id == running.id and m.runtime_status == "inProgress" for m in matches)
    assert all(removed_id not in m.team_ids() for m in matches if m.runtime_status == "scheduled")
    # three active teams: each of their three pairings exactly once
    active = set(ids.values()) - {removed_id}
    pairs = Counter(frozenset(m.team_ids()) for m in matches if set(m.team_ids()) <= active)
    assert len(pairs) == 3 and set(pairs.values()) == {1}
    kept_slots = max(first.slot_index, running.slot_index)
    assert all(m.slot_index > kept_slots for m in matches if m.runtime_status == "scheduled")
    assert [m.match_number for m in matches] == list(range(1, len(matches) + 1))


def test_redraw_requires_published(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B"])
    with pytest.raises(InvalidStateTransition):
        redraw_schedule(session, tournament.id)


def test_unknown_tournament(session: Session):
    from matchplan.errors import NotFoundError

    with pytest.raises(NotFoundError):
        generate_schedule(session, 999)
    assert session.get(Tournament, 999) is None
