"""Translate engine errors into HTTP responses."""

from fastapi import HTTPException

from matchplan.errors import (
    ConfigurationError,
    ConflictError,
    InvalidScoreError,
    InvalidStateTransition,
    MatchplanError,
    NotFoundError,
    UnresolvedTieError,
)


def http_error(exc: MatchplanError) -> HTTPException:
    if isinstance(exc, NotFoundError):
        return HTTPException(status_code=404, detail=str(exc))
    if isinstance(exc, (ConfigurationError, InvalidScoreError)):
        return HTTPException(status_code=422, detail=str(exc))
    if isinstance(exc, InvalidStateTransition):
        return HTTPException(status_code=409, detail={"message": str(exc), "precondition": exc.precondition})
    if isinstance(exc, ConflictError):
        return HTTPException(status_code=409, detail={"message": str(exc), "report": exc.report.model_dump()})
    if isinstance(exc, UnresolvedTieError):
        return HTTPException(
            status_code=409,
            detail={
                "message": str(exc),
                "ties": [
                    {"placeholder": t.placeholder, "group_label": t.group_label, "position": t.position,
                     "team_ids": t.team_ids}
                    for t in exc.ties
                ],
            },
        )
    return HTTPException(status_code=400, detail=str(exc))
