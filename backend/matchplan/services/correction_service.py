"""
Score correction for finished matches.

finished -> (correction open) -> finished with the new score, or back to the
untouched old score on cancel. Only one correction may be open per
tournament. Committing recomputes standings and re-runs placement
resolution; playoff matches already running or played keep their
participants and are reported as a stale bracket instead.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import List, Optional

from sqlmodel import Session, select

from matchplan.errors import InvalidScoreError, InvalidStateTransition, NotFoundError
from matchplan.models.match import Match
from matchplan.models.match_correction import CorrectionReason, CorrectionStatus, MatchCorrection
from matchplan.services.placement_resolver import ResolutionResult, resolve_placements
from matchplan.services.score_service import group_standings_for, validate_score
from matchplan.services.tournament_state import get_match, get_tournament
from matchplan.utils.standings import Standing

logger = logging.getLogger(__name__)


@dataclass
class CorrectionResult:
    correction: MatchCorrection
    match: Match
    standings: List[Standing]
    resolution: ResolutionResult
    stale_match_ids: List[int] = field(default_factory=list)

    @property
    def bracket_stale(self) -> bool:
        return bool(self.stale_match_ids)


def open_correction(session: Session, tournament_id: int) -> Optional[MatchCorrection]:
    return session.exec(
        select(MatchCorrection).where(
            MatchCorrection.tournament_id == tournament_id,
            MatchCorrection.status == CorrectionStatus.open.value,
        )
    ).first()


def get_correction(session: Session, correction_id: int, tournament_id: Optional[int] = None) -> MatchCorrection:
    correction = session.get(MatchCorrection, correction_id)
    if not correction or (tournament_id is not None and correction.tournament_id != tournament_id):
        raise NotFoundError("Correction not found")
    return correction


def start_correction(session: Session, match_id: int, corrected_by: Optional[str] = None,
                     tournament_id: Optional[int] = None) -> MatchCorrection:
    match = get_match(session, match_id, tournament_id)
    if not match.finished:
        raise InvalidStateTransition("Only a finished match can be corrected", "status_finished")
    if match.correction_in_progress:
        raise InvalidStateTransition("Match already has an open correction", "no_open_correction")
    existing = open_correction(session, match.tournament_id)
    if existing is not None:
        raise InvalidStateTransition(
            f"Correction {existing.id} for match {existing.match_id} is still open", "single_open_correction"
        )

    correction = MatchCorrection(
        tournament_id=match.tournament_id,
        match_id=match.id,
        previous_score_a=match.score_a,
        previous_score_b=match.score_b,
        previous_penalty_score_a=match.penalty_score_a,
        previous_penalty_score_b=match.penalty_score_b,
        corrected_by=corrected_by,
    )
    match.correction_in_progress = True
    session.add(correction)
    session.add(match)
    session.commit()
    session.refresh(correction)
    logger.info("Correction %s opened for match %s", correction.id, match.id)
    return correction


def _require_open(correction: MatchCorrection) -> None:
    if correction.status != CorrectionStatus.open.value:
        raise InvalidStateTransition(f"Correction is {correction.status}", "correction_open")


def commit_correction(session: Session, correction_id: int, new_score_a: int, new_score_b: int,
                      penalty_score_a: Optional[int] = None, penalty_score_b: Optional[int] = None,
                      reason_type: Optional[str] = None, note: Optional[str] = None,
                      tournament_id: Optional[int] = None) -> CorrectionResult:
    correction = get_correction(session, correction_id, tournament_id)
    _require_open(correction)
    match = get_match(session, correction.match_id)
    validate_score(match, new_score_a, new_score_b, penalty_score_a, penalty_score_b)
    if (new_score_a, new_score_b, penalty_score_a, penalty_score_b) == (
        match.score_a, match.score_b, match.penalty_score_a, match.penalty_score_b
    ):
        raise InvalidScoreError("Corrected score must differ from the current score")
    if reason_type is not None and reason_type not in {r.value for r in CorrectionReason}:
        raise InvalidScoreError(f"Unknown correction reason: {reason_type}")

    tournament = get_tournament(session, match.tournament_id)
    # matches already out of line before this correction are not its doing
    previously_stale = {s.match_id for s in resolve_placements(session, tournament, dry_run=True).stale}

    match.score_a = new_score_a
    match.score_b = new_score_b
    match.penalty_score_a = penalty_score_a
    match.penalty_score_b = penalty_score_b
    match.correction_in_progress = False
    session.add(match)

    try:
        resolution = resolve_placements(session, tournament)
    except Exception:
        session.rollback()
        raise
    stale_ids = [s.match_id for s in resolution.stale if s.match_id not in previously_stale]

    correction.new_score_a = new_score_a
    correction.new_score_b = new_score_b
    correction.reason_type = reason_type
    correction.note = note
    correction.status = CorrectionStatus.committed
    correction.bracket_stale = bool(stale_ids)
    correction.closed_at = datetime.utcnow()
    session.add(correction)
    session.commit()
    session.refresh(match)
    session.refresh(correction)

    logger.info(
        "Correction %s committed: match %s %s:%s -> %s:%s",
        correction.id, match.id, correction.previous_score_a, correction.previous_score_b,
        new_score_a, new_score_b,
    )
    if stale_ids:
        logger.warning("Correction %s left played playoff matches stale: %s", correction.id, stale_ids)

    return CorrectionResult(
        correction=correction,
        match=match,
        standings=group_standings_for(session, match),
        resolution=resolution,
        stale_match_ids=stale_ids,
    )


def cancel_correction(session: Session, correction_id: int, tournament_id: Optional[int] = None) -> MatchCorrection:
    """Discard an open correction; the match keeps its score."""
    correction = get_correction(session, correction_id, tournament_id)
    _require_open(correction)
    match = get_match(session, correction.match_id)
    match.correction_in_progress = False
    correction.status = CorrectionStatus.cancelled
    correction.closed_at = datetime.utcnow()
    session.add(match)
    session.add(correction)
    session.commit()
    session.refresh(correction)
    logger.info("Correction %s cancelled", correction.id)
    return correction


def list_corrections(session: Session, tournament_id: int) -> List[MatchCorrection]:
    get_tournament(session, tournament_id)
    return list(
        session.exec(
            select(MatchCorrection)
            .where(MatchCorrection.tournament_id == tournament_id)
            .order_by(MatchCorrection.opened_at, MatchCorrection.id)
        ).all()
    )
