from fastapi import HTTPException, status

from helpdesk.tickets.errors import (
    InvalidTransition,
    NotFound,
    TicketServiceError,
    Unauthorized,
    ValidationError,
)

_STATUS_BY_ERROR: dict[type[TicketServiceError], int] = {
    ValidationError: status.HTTP_422_UNPROCESSABLE_ENTITY,
    Unauthorized: status.HTTP_403_FORBIDDEN,
    InvalidTransition: status.HTTP_409_CONFLICT,
    NotFound: status.HTTP_404_NOT_FOUND,
}


def to_http_exception(exc: TicketServiceError) -> HTTPException:
    """Translate an engine error into the matching HTTP response."""

    for error_type, status_code in _STATUS_BY_ERROR.items():
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail=str(exc))
    return HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail=str(exc))
