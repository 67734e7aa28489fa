"""
Loaders shared by the engine services.

All ordering here is deterministic: teams by registration position then id,
matches by schedule number.
"""

from typing import Dict, List, Optional

from sqlmodel import Session, select

from matchplan.errors import ConfigurationError, NotFoundError
from matchplan.models.match import Match, MatchPhase
from matchplan.models.team import Team
from matchplan.models.tournament import Tournament
from matchplan.utils.tournament_config import TournamentSettings


def get_tournament(session: Session, tournament_id: int) -> Tournament:
    tournament = session.get(Tournament, tournament_id)
    if not tournament:
        raise NotFoundError("Tournament not found")
    return tournament


def get_match(session: Session, match_id: int, tournament_id: Optional[int] = None) -> Match:
    match = session.get(Match, match_id)
    if not match or (tournament_id is not None and match.tournament_id != tournament_id):
        raise NotFoundError("Match not found")
    return match


def active_teams(session: Session, tournament_id: int) -> List[Team]:
    return list(
        session.exec(
            select(Team)
            .where(Team.tournament_id == tournament_id, Team.is_removed == False)  # noqa: E712
            .order_by(Team.position, Team.id)
        ).all()
    )


def tournament_matches(session: Session, tournament_id: int) -> List[Match]:
    return list(
        session.exec(
            select(Match).where(Match.tournament_id == tournament_id).order_by(Match.match_number, Match.id)
        ).all()
    )


def group_matches(session: Session, tournament_id: int) -> List[Match]:
    return [m for m in tournament_matches(session, tournament_id) if m.phase == MatchPhase.group_stage.value]


def playoff_matches(session: Session, tournament_id: int) -> List[Match]:
    return [m for m in tournament_matches(session, tournament_id) if m.is_playoff]


def group_partitions(teams: List[Team], settings: TournamentSettings) -> Dict[Optional[str], List[int]]:
    """
    Active team ids per group, groups in label order.

    Without groups the whole field is one partition keyed None.
    """
    if not settings.has_groups:
        return {None: [t.id for t in teams]} if teams else {}

    partitions: Dict[Optional[str], List[int]] = {}
    for team in teams:
        if not team.group_label:
            raise ConfigurationError(f"Team {team.name} has no group")
        partitions.setdefault(team.group_label, []).append(team.id)
    return {label: partitions[label] for label in sorted(partitions)}
