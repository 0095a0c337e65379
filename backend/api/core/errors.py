"""Map slot-board errors onto HTTP responses"""

from fastapi import HTTPException

from shared.exceptions import (
    AuthorizationError,
    ConcurrencyConflictError,
    InvalidCredentials,
    SlotBoardError,
    SlotNotFoundError,
    StateConflictError,
    TransportError,
    ValidationError,
)

# Checked in order: subclasses before their bases
_STATUS_MAP: list[tuple[type[SlotBoardError], int]] = [
    (InvalidCredentials, 401),
    (ValidationError, 422),
    (AuthorizationError, 403),
    (SlotNotFoundError, 404),
    (ConcurrencyConflictError, 409),
    (StateConflictError, 409),
    (TransportError, 503),
]


def http_error(error: SlotBoardError) -> HTTPException:
    status = next((code for cls, code in _STATUS_MAP if isinstance(error, cls)), 400)
    return HTTPException(status_code=status, detail={"code": error.code, "message": error.message})
