"""Shared scenario steps for service and API tests."""

from sqlmodel import Session

from matchplan.models.team import Team
from matchplan.services.score_service import record_score
from matchplan.services.tournament_state import group_matches


def play_group_stage(session: Session, tournament_id: int, scores=None):
    """
    Finish every unplayed group match.

    scores maps frozenset({team_id, team_id}) -> {team_id: goals}; any other
    match is won 1-0 by the team registered first.
    """
    scores = scores or {}
    positions = {}
    for match in group_matches(session, tournament_id):
        if match.finished:
            continue
        for team_id in match.team_ids():
            if team_id not in positions:
                positions[team_id] = session.get(Team, team_id).position
        fixed = scores.get(frozenset(match.team_ids()))
        if fixed is not None:
            score_a, score_b = fixed[match.team_a_id], fixed[match.team_b_id]
        elif positions[match.team_a_id] < positions[match.team_b_id]:
            score_a, score_b = 1, 0
        else:
            score_a, score_b = 0, 1
        record_score(session, match.id, score_a, score_b)


def standings_snapshot(standings):
    return [
        (s.team_id, s.rank, s.played, s.won, s.drawn, s.lost, s.goals_for, s.goals_against, s.points)
        for s in standings
    ]
