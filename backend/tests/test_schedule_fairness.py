"""Referee workload and per-team rest figures."""

from datetime import datetime, timedelta

import pytest
from sqlmodel import Session

from matchplan.errors import NotFoundError
from matchplan.models.match import RUNTIME_FINISHED, Match, MatchPhase
from matchplan.models.tournament import RefereeMode
from matchplan.services.schedule_fairness import analyze_fairness, build_fairness_report
from matchplan.services.schedule_generator import generate_schedule

START = datetime(2026, 6, 13, 9, 0)


def _match(match_id, slot, field, team_a, team_b, referee=None, **extra):
    start = START + timedelta(minutes=15 * slot)
    return Match(
        id=match_id, tournament_id=1, match_number=match_id, slot_index=slot, field=field,
        start_at=start, end_at=start + timedelta(minutes=10),
        team_a_id=team_a, team_b_id=team_b, referee=referee, **extra,
    )


def _scenario():
    return [
        _match(1, 0, 1, 1, 2, referee=1),
        _match(2, 1, 1, 2, 3, referee=2),
        _match(3, 3, 2, 3, 1, referee=1, runtime_status=RUNTIME_FINISHED),
    ]


def test_organizer_referee_loads():
    report = analyze_fairness(1, _scenario(), [1, 2, 3], referee_mode="organizer", referee_pool_size=3)

    loads = [(r.referee, r.assigned_matches, r.open_matches, r.share_percent) for r in report.referee_loads]
    assert loads == [(1, 2, 1, 67), (2, 1, 1, 33), (3, 0, 0, 0)]
    assert report.summary.refereed_matches == 3
    assert report.summary.referee_load_spread == 2


def test_team_rest_and_balance():
    report = analyze_fairness(1, _scenario(), [1, 2, 3])
    teams = {t.team_id: t for t in report.teams}

    assert (teams[1].first_slot, teams[1].last_slot, teams[1].min_rest_slots) == (0, 3, 2)
    assert teams[1].field_counts == {1: 1, 2: 1}
    assert teams[2].back_to_back == 1
    assert teams[2].min_rest_slots == 0
    assert teams[3].avg_rest_slots == 1.0
    assert all((t.home, t.away) == (1, 1) for t in report.teams)

    summary = report.summary
    assert (summary.min_rest_slots, summary.max_rest_slots, summary.avg_rest_slots) == (0, 2, 1.0)
    assert summary.max_home_away_imbalance == 0
    assert report.referee_loads == []


def test_unresolved_playoff_counts_for_referee_only():
    final = _match(4, 5, 1, None, None, referee=3, phase=MatchPhase.final.value, source_a="semi1-winner")
    report = analyze_fairness(1, _scenario() + [final], [1, 2, 3], referee_mode="organizer", referee_pool_size=3)

    assert [r.assigned_matches for r in report.referee_loads] == [2, 1, 1]
    assert all(t.matches == 2 for t in report.teams)
    assert report.summary.total_matches == 4


def test_single_match_team_has_no_rest_figures():
    report = analyze_fairness(1, [_match(1, 0, 1, 1, 2)], [1, 2, 3])
    teams = {t.team_id: t for t in report.teams}

    assert teams[1].matches == 1
    assert teams[1].min_rest_slots is None
    assert teams[3].matches == 0
    assert teams[3].first_slot is None
    assert report.summary.min_rest_slots is None


def test_teams_as_referees_duties_match_loads(session: Session, make_tournament):
    tournament = make_tournament(
        teams=["T1", "T2", "T3", "T4", "T5"], number_of_fields=2, referee_mode=RefereeMode.teams
    )
    matches = generate_schedule(session, tournament.id)

    report = build_fairness_report(session, tournament.id)
    loads = {r.referee: r.assigned_matches for r in report.referee_loads}

    assert all(r.kind == "team" for r in report.referee_loads)
    assert sum(loads.values()) == len(matches)
    for team in report.teams:
        assert team.matches == 4
        assert team.referee_duties == loads[team.team_id]


def test_round_robin_on_one_field(session: Session, make_tournament):
    tournament = make_tournament(teams=["A", "B", "C", "D"], number_of_fields=1)
    matches = generate_schedule(session, tournament.id)

    report = build_fairness_report(session, tournament.id)
    assert report.summary.total_matches == len(matches) == 6
    assert report.summary.referee_mode == "none"
    assert report.summary.refereed_matches == 0
    for team in report.teams:
        assert team.matches == 3
        assert team.field_counts == {1: 3}
        assert team.min_rest_slots >= 0


def test_unknown_tournament(session: Session):
    with pytest.raises(NotFoundError):
        build_fairness_report(session, 999)
