"""
Schedule Fairness Service

Read-only analysis of how evenly a schedule treats its participants:
- matches per organizer referee (pool 1..K) or per referee team
- per team: slots played, rest between consecutive matches, back-to-back
  matches, home/away balance and field usage

Matches without two resolved teams (unresolved playoff placeholders) are
left out of the team figures but still count for referee load.
"""

import logging
from typing import Dict, Iterable, List, Optional

from sqlmodel import Session

from matchplan.models.match import Match
from matchplan.models.tournament import RefereeMode
from matchplan.services.tournament_state import active_teams, get_tournament, tournament_matches
from matchplan.utils.fairness_report import (
    REFEREE_KIND_ORGANIZER,
    REFEREE_KIND_TEAM,
    FairnessSummary,
    RefereeLoad,
    ScheduleFairnessReport,
    TeamFairness,
)
from matchplan.utils.tournament_config import settings_from_tournament

logger = logging.getLogger(__name__)


def _referee_loads(matches: List[Match], referee_mode: str, pool_size: int,
                   team_ids: List[int]) -> List[RefereeLoad]:
    if referee_mode == RefereeMode.organizer.value:
        kind = REFEREE_KIND_ORGANIZER
        referees = list(range(1, pool_size + 1))
        attr = "referee"
    elif referee_mode == RefereeMode.teams.value:
        kind = REFEREE_KIND_TEAM
        referees = list(team_ids)
        attr = "referee_team_id"
    else:
        return []

    assigned: Dict[int, int] = {r: 0 for r in referees}
    open_: Dict[int, int] = {r: 0 for r in referees}
    for m in matches:
        referee = getattr(m, attr)
        if referee is None:
            continue
        # a removed team keeps the duties it was given
        assigned[referee] = assigned.get(referee, 0) + 1
        open_.setdefault(referee, 0)
        if not m.finished:
            open_[referee] += 1

    total = sum(assigned.values())
    return [
        RefereeLoad(
            referee=referee,
            kind=kind,
            assigned_matches=count,
            open_matches=open_[referee],
            share_percent=round(100 * count / total) if total else 0,
        )
        for referee, count in sorted(assigned.items())
    ]


def _team_fairness(team_id: int, played: List[Match], referee_duties: int) -> TeamFairness:
    played = sorted(played, key=lambda m: (m.slot_index, m.id))
    stats = TeamFairness(team_id=team_id, matches=len(played), referee_duties=referee_duties)
    if not played:
        return stats

    rests = [nxt.slot_index - prev.slot_index - 1 for prev, nxt in zip(played, played[1:])]
    stats.first_slot = played[0].slot_index
    stats.last_slot = played[-1].slot_index
    if rests:
        stats.min_rest_slots = min(rests)
        stats.max_rest_slots = max(rests)
        stats.avg_rest_slots = round(sum(rests) / len(rests), 2)
        stats.back_to_back = sum(1 for r in rests if r == 0)
    stats.home = sum(1 for m in played if m.team_a_id == team_id)
    stats.away = len(played) - stats.home
    counts: Dict[int, int] = {}
    for m in played:
        counts[m.field] = counts.get(m.field, 0) + 1
    stats.field_counts = dict(sorted(counts.items()))
    return stats


def analyze_fairness(tournament_id: int, matches: Iterable[Match], team_ids: List[int],
                     referee_mode: str = RefereeMode.none.value,
                     referee_pool_size: int = 0) -> ScheduleFairnessReport:
    """Pure analysis over already loaded matches; never writes."""
    matches = sorted(matches, key=lambda m: (m.slot_index, m.match_number, m.id))
    loads = _referee_loads(matches, referee_mode, referee_pool_size, team_ids)

    by_team: Dict[int, List[Match]] = {t: [] for t in team_ids}
    for m in matches:
        if m.team_a_id is None or m.team_b_id is None:
            continue
        for team_id in m.team_ids():
            if team_id in by_team:
                by_team[team_id].append(m)

    duties = {load.referee: load.assigned_matches for load in loads if load.kind == REFEREE_KIND_TEAM}
    teams = [_team_fairness(t, by_team[t], duties.get(t, 0)) for t in team_ids]

    with_rest = [t for t in teams if t.min_rest_slots is not None]
    counts = [load.assigned_matches for load in loads]
    avg_rest: Optional[float] = None
    if with_rest:
        avg_rest = round(sum(t.avg_rest_slots for t in with_rest) / len(with_rest), 2)

    summary = FairnessSummary(
        tournament_id=tournament_id,
        referee_mode=referee_mode,
        total_matches=len(matches),
        refereed_matches=sum(counts),
        referee_load_spread=max(counts) - min(counts) if counts else 0,
        min_rest_slots=min((t.min_rest_slots for t in with_rest), default=None),
        max_rest_slots=max((t.max_rest_slots for t in with_rest), default=None),
        avg_rest_slots=avg_rest,
        max_home_away_imbalance=max((abs(t.home - t.away) for t in teams), default=0),
    )
    return ScheduleFairnessReport(summary=summary, referee_loads=loads, teams=teams)


class ScheduleFairnessBuilder:
    """Loads a tournament's schedule and runs the fairness analysis."""

    def compute(self, session: Session, *, tournament_id: int) -> ScheduleFairnessReport:
        tournament = get_tournament(session, tournament_id)
        settings = settings_from_tournament(tournament)
        report = analyze_fairness(
            tournament_id,
            tournament_matches(session, tournament_id),
            [t.id for t in active_teams(session, tournament_id)],
            referee_mode=settings.referee_mode,
            referee_pool_size=settings.referee_pool_size,
        )
        if report.summary.referee_load_spread > 1:
            logger.info(
                "Tournament %s: referee load spread is %s matches",
                tournament_id, report.summary.referee_load_spread,
            )
        return report


def build_fairness_report(session: Session, tournament_id: int) -> ScheduleFairnessReport:
    return ScheduleFairnessBuilder().compute(session, tournament_id=tournament_id)
