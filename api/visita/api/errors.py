"""Translate workflow errors into HTTP errors."""
from fastapi import HTTPException, status

from visita.core.errors import (
    ChurchAlreadyExists,
    ChurchNotFound,
    ChurchValidationError,
    EditNotPermitted,
    InvalidTransition,
    PendingChangeSetNotFound,
    PendingChangeSetStateError,
    PersistenceFailure,
    ReviewNotPermitted,
    TransitionConditionFailed,
    TransitionNotPermitted,
    VisitaError,
)

_STATUS_CODES = (
    ((ChurchNotFound, PendingChangeSetNotFound), status.HTTP_404_NOT_FOUND),
    ((EditNotPermitted, ReviewNotPermitted, TransitionNotPermitted), status.HTTP_403_FORBIDDEN),
    ((InvalidTransition, TransitionConditionFailed, PendingChangeSetStateError), status.HTTP_400_BAD_REQUEST),
    ((ChurchAlreadyExists,), status.HTTP_409_CONFLICT),
    ((PersistenceFailure,), status.HTTP_503_SERVICE_UNAVAILABLE),
)


def http_error(exc: VisitaError) -> HTTPException:
    if isinstance(exc, ChurchValidationError):
        return HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail={"message": str(exc), "errors": exc.errors},
        )
    for error_types, status_code in _STATUS_CODES:
        if isinstance(exc, error_types):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
