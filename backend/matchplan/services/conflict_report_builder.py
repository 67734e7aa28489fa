"""
Conflict Report Builder Service

Read-only scan of a whole schedule:
- same team in two overlapping matches
- field or referee booked twice at overlapping times
- group matches of one team closer than min_rest_slots
- playoff matches overlapping a sequential-only match, or starting before a feeder ends

Each unordered pair is reported once (lower match id first). Output is
sorted so the same schedule always yields the same report.
"""

from typing import Dict, List

from sqlmodel import Session

from matchplan.models.match import SEQUENTIAL_ONLY, Match
from matchplan.services.tournament_state import get_tournament, tournament_matches
from matchplan.utils.conflict_report import (
    RESOURCE_FIELD,
    RESOURCE_REFEREE,
    OrderingViolation,
    ResourceConflictDetail,
    RestViolationDetail,
    ScheduleConflictReport,
    ScheduleConflictSummary,
    TeamConflictDetail,
)
from matchplan.utils.conflicts import booking_from_match, overlaps
from matchplan.utils.placeholders import parse_placeholder
from matchplan.utils.tournament_config import settings_from_tournament


class ConflictReportBuilder:
    """Deterministic whole-schedule conflict scan. Never writes."""

    def compute(self, session: Session, *, tournament_id: int) -> ScheduleConflictReport:
        tournament = get_tournament(session, tournament_id)
        settings = settings_from_tournament(tournament)
        matches = sorted(tournament_matches(session, tournament_id), key=lambda m: m.id)
        bookings = {m.id: booking_from_match(m) for m in matches}

        team_conflicts: List[TeamConflictDetail] = []
        field_conflicts: List[ResourceConflictDetail] = []
        referee_conflicts: List[ResourceConflictDetail] = []
        ordering: List[OrderingViolation] = []

        for i, first in enumerate(matches):
            a = bookings[first.id]
            for second in matches[i + 1:]:
                b = bookings[second.id]
                if not overlaps(a, b):
                    continue
                for team_id in sorted(set(a.team_ids) & set(b.team_ids)):
                    team_conflicts.append(
                        TeamConflictDetail(
                            match_id=a.match_id, team_id=team_id, conflicting_match_id=b.match_id,
                            details=f"Team {team_id} plays matches {a.match_id} and {b.match_id} at the same time",
                        )
                    )
                if a.field == b.field:
                    field_conflicts.append(
                        ResourceConflictDetail(
                            match_id=a.match_id, resource=RESOURCE_FIELD, value=a.field,
                            conflicting_match_id=b.match_id,
                            details=f"Field {a.field} double-booked",
                        )
                    )
                if a.referee is not None and a.referee == b.referee:
                    referee_conflicts.append(
                        ResourceConflictDetail(
                            match_id=a.match_id, resource=RESOURCE_REFEREE, value=a.referee,
                            conflicting_match_id=b.match_id,
                            details=f"Referee {a.referee} double-booked",
                        )
                    )
                for ref_team, other in ((a.referee_team_id, b), (b.referee_team_id, a)):
                    if ref_team is not None and (ref_team in other.team_ids or ref_team == other.referee_team_id):
                        referee_conflicts.append(
                            ResourceConflictDetail(
                                match_id=a.match_id, resource=RESOURCE_REFEREE, value=ref_team,
                                conflicting_match_id=b.match_id,
                                details=f"Referee team {ref_team} is busy in both matches",
                            )
                        )
                if a.is_playoff and b.is_playoff and SEQUENTIAL_ONLY in (a.parallel_mode, b.parallel_mode):
                    ordering.append(
                        OrderingViolation(
                            type="SEQUENTIAL_OVERLAP", earlier_match_id=a.match_id, later_match_id=b.match_id,
                            details="Sequential-only playoff match overlaps another playoff match",
                        )
                    )

        for m in matches:
            b = bookings[m.id]
            if b.referee_team_id is not None and b.referee_team_id in b.team_ids:
                referee_conflicts.append(
                    ResourceConflictDetail(
                        match_id=m.id, resource=RESOURCE_REFEREE, value=b.referee_team_id,
                        conflicting_match_id=m.id, details="Team referees its own match",
                    )
                )

        ordering.extend(self._feeder_violations(matches))
        rest = self._rest_violations(matches, settings.min_rest_slots)

        summary = ScheduleConflictSummary(
            tournament_id=tournament_id,
            total_matches=len(matches),
            team_conflicts=len(team_conflicts),
            field_conflicts=len(field_conflicts),
            referee_conflicts=len(referee_conflicts),
            rest_violations=len(rest),
            ordering_violations=len(ordering),
        )
        return ScheduleConflictReport(
            summary=summary,
            team_conflicts=team_conflicts,
            field_conflicts=field_conflicts,
            referee_conflicts=referee_conflicts,
            rest_violations=rest,
            ordering_violations=ordering,
        )

    def _feeder_violations(self, matches: List[Match]) -> List[OrderingViolation]:
        by_key: Dict[str, Match] = {m.bracket_key: m for m in matches if m.is_playoff}
        violations: List[OrderingViolation] = []
        for m in matches:
            if not m.is_playoff:
                continue
            for source in (m.source_a, m.source_b):
                if not source:
                    continue
                ref = parse_placeholder(source)
                feeder = by_key.get(ref.bracket_key) if ref.kind == "match" else None
                if feeder is not None and feeder.end_at > m.start_at:
                    violations.append(
                        OrderingViolation(
                            type="FEEDER_ORDER", earlier_match_id=feeder.id, later_match_id=m.id,
                            details=f"{m.bracket_key} starts before {feeder.bracket_key} ends",
                        )
                    )
        return violations

    def _rest_violations(self, matches: List[Match], min_rest_slots: int) -> List[RestViolationDetail]:
        if min_rest_slots <= 0:
            return []
        by_team: Dict[int, List[Match]] = {}
        for m in matches:
            if m.is_playoff:
                continue
            for team_id in m.team_ids():
                by_team.setdefault(team_id, []).append(m)

        violations: List[RestViolationDetail] = []
        for team_id in sorted(by_team):
            played = sorted(by_team[team_id], key=lambda m: (m.slot_index, m.id))
            for prev, nxt in zip(played, played[1:]):
                free = nxt.slot_index - prev.slot_index - 1
                if free < min_rest_slots:
                    violations.append(
                        RestViolationDetail(
                            team_id=team_id, match_id=prev.id, next_match_id=nxt.id,
                            free_slots=free, required_slots=min_rest_slots,
                        )
                    )
        return violations


def build_conflict_report(session: Session, tournament_id: int) -> ScheduleConflictReport:
    return ConflictReportBuilder().compute(session, tournament_id=tournament_id)
