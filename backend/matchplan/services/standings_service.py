"""
Standings projections over the stored match list.

Nothing here writes: standings, group tables and the final ranking are
recomputed from matches and teams on every call.
"""

from dataclasses import dataclass
from typing import Dict, List, Optional

from sqlmodel import Session

from matchplan.errors import NotFoundError
from matchplan.models.match import Match, MatchPhase
from matchplan.models.tournament import Tournament
from matchplan.services.tournament_state import (
    active_teams,
    get_tournament,
    group_matches,
    group_partitions,
    playoff_matches,
)
from matchplan.utils.placeholders import GroupTable, PlayoffResult, decide_outcome
from matchplan.utils.standings import MatchResult, Standing, compute_group_standings, criterion_value
from matchplan.utils.tournament_config import OVERALL_GROUP_KEY, TournamentSettings, settings_from_tournament

PLAYOFF_NOT_STARTED = "not-started"
PLAYOFF_IN_PROGRESS = "in-progress"
PLAYOFF_COMPLETED = "completed"

# Upper place decided by each placement match; the loser takes the next one
PLACE_BY_BRACKET_KEY = {"final": 1, "third_place": 3, "fifth_sixth": 5, "seventh_eighth": 7}


@dataclass
class RankingEntry:
    place: int
    team_id: int
    decided_by: str  # bracket key of the deciding match, or "groupStage"


@dataclass
class FinalRanking:
    entries: List[RankingEntry]
    playoff_status: str


def _results(matches: List[Match], team_ids: List[int]) -> List[MatchResult]:
    members = set(team_ids)
    return [
        MatchResult(m.team_a_id, m.team_b_id, m.score_a, m.score_b)
        for m in matches
        if m.finished
        and m.score_a is not None
        and m.team_a_id in members
        and m.team_b_id in members
    ]


def _is_complete(matches: List[Match], team_ids: List[int]) -> bool:
    members = set(team_ids)
    relevant = [m for m in matches if m.team_a_id in members and m.team_b_id in members]
    return bool(relevant) and all(m.finished for m in relevant)


def load_group_tables(session: Session, tournament: Tournament,
                      settings: TournamentSettings) -> Dict[Optional[str], GroupTable]:
    """
    Standings and completion state per group, keyed by group label (None without groups).

    Matches involving removed teams are left out of both the aggregation
    and the completion check.
    """
    partitions = group_partitions(active_teams(session, tournament.id), settings)
    matches = group_matches(session, tournament.id)
    tables: Dict[Optional[str], GroupTable] = {}
    for label, team_ids in partitions.items():
        in_group = [m for m in matches if m.group_label == label]
        standings = compute_group_standings(
            team_ids,
            _results(in_group, team_ids),
            settings.criteria,
            settings.points,
            manual_order=settings.manual_order(label),
            group_label=label,
        )
        tables[label] = GroupTable(
            label=label or OVERALL_GROUP_KEY,
            standings=standings,
            complete=_is_complete(in_group, team_ids),
        )
    return tables


def compute_standings(session: Session, tournament_id: int, group_label: Optional[str] = None) -> List[Standing]:
    """Ordered standings of one group; group_label None (or "all") for group-less tournaments."""
    tournament = get_tournament(session, tournament_id)
    settings = settings_from_tournament(tournament)
    tables = load_group_tables(session, tournament, settings)
    key = None if group_label == OVERALL_GROUP_KEY and None in tables else group_label
    if key not in tables:
        raise NotFoundError(f"Group {group_label} not found")
    return tables[key].standings


def compute_all_standings(session: Session, tournament_id: int) -> Dict[Optional[str], List[Standing]]:
    tournament = get_tournament(session, tournament_id)
    settings = settings_from_tournament(tournament)
    return {label: table.standings for label, table in load_group_tables(session, tournament, settings).items()}


def playoff_result(match: Match) -> PlayoffResult:
    return PlayoffResult(
        bracket_key=match.bracket_key,
        team_a_id=match.team_a_id,
        team_b_id=match.team_b_id,
        finished=match.finished,
        score_a=match.score_a,
        score_b=match.score_b,
        penalty_score_a=match.penalty_score_a,
        penalty_score_b=match.penalty_score_b,
    )


def compute_final_ranking(session: Session, tournament_id: int) -> FinalRanking:
    """
    Overall ranking: placement matches decide their places, every other
    active team follows by group position, then by the scalar criteria.
    """
    tournament = get_tournament(session, tournament_id)
    settings = settings_from_tournament(tournament)
    tables = load_group_tables(session, tournament, settings)
    playoffs = playoff_matches(session, tournament_id)

    placed: List[RankingEntry] = []
    placed_ids = set()
    for match in playoffs:
        place = PLACE_BY_BRACKET_KEY.get(match.bracket_key)
        if place is None:
            continue
        outcome = decide_outcome(playoff_result(match))
        if outcome is None:
            continue
        winner, loser = outcome
        placed.append(RankingEntry(place, winner, match.bracket_key))
        placed.append(RankingEntry(place + 1, loser, match.bracket_key))
        placed_ids.update(outcome)
    placed.sort(key=lambda e: e.place)

    group_order = {label: idx for idx, label in enumerate(tables)}
    rest = [
        s for table in tables.values()
        for s in table.standings
        if s.team_id not in placed_ids
    ]
    rest.sort(
        key=lambda s: (
            s.rank,
            tuple(-criterion_value(s, c) for c in settings.scalar_criteria),
            group_order[s.group_label],
        )
    )
    next_place = (placed[-1].place + 1) if placed else 1
    entries = list(placed)
    for offset, standing in enumerate(rest):
        entries.append(RankingEntry(next_place + offset, standing.team_id, MatchPhase.group_stage.value))

    if not playoffs or not any(m.finished for m in playoffs):
        status = PLAYOFF_NOT_STARTED
    elif all(m.finished for m in playoffs):
        status = PLAYOFF_COMPLETED
    else:
        status = PLAYOFF_IN_PROGRESS
    return FinalRanking(entries=entries, playoff_status=status)
