"""Error taxonomy for slot-board operations.

Every rejection carries a stable ``code`` so API clients and the bot can
branch on it without parsing messages.
"""

from __future__ import annotations


class SlotBoardError(Exception):
    """Base class for all slot-board errors."""

    code: str = "slot_board_error"
    default_message: str = "Slot operation failed"

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.default_message)
        self.message = message or self.default_message


# ============================================
# Validation
# ============================================


class ValidationError(SlotBoardError):
    code = "validation_error"
    default_message = "Invalid input"


class InvalidIdentity(ValidationError):
    code = "invalid_identity"
    default_message = "Identity must not be empty"


class InvalidStartTime(ValidationError):
    code = "invalid_start_time"
    default_message = "Start time must be a valid time of day (HH:MM)"


class InvalidSeat(ValidationError):
    code = "invalid_seat"
    default_message = "Seat must be one of player1..player4"


class FeatureDisabled(ValidationError):
    code = "feature_disabled"
    default_message = "This slot feature is disabled"


# ============================================
# Authorization
# ============================================


class AuthorizationError(SlotBoardError):
    code = "authorization_error"
    default_message = "Not allowed"


class NotCreator(AuthorizationError):
    code = "not_creator"
    default_message = "Only the slot creator can do this"


class NotSeatOccupant(AuthorizationError):
    code = "not_seat_occupant"
    default_message = "Only the occupant of this seat can do this"


class IdentityBlocked(AuthorizationError):
    code = "identity_blocked"
    default_message = "This identity is not allowed to use the slot board"


# ============================================
# State conflicts
# ============================================


class StateConflictError(SlotBoardError):
    code = "state_conflict"
    default_message = "Slot state does not allow this"


class SlotFull(StateConflictError):
    code = "slot_full"
    default_message = "This slot is full"


class AlreadyInSlot(StateConflictError):
    code = "already_in_slot"
    default_message = "You are already in this slot"


class AlreadyQueued(StateConflictError):
    code = "already_queued"
    default_message = "You are already in the waiting queue"


class SlotNotActive(StateConflictError):
    code = "slot_not_active"
    default_message = "This slot is no longer active"


class CreatorCannotLeave(StateConflictError):
    code = "creator_cannot_leave"
    default_message = "The creator cannot leave; remove yourself as player 1 or cancel"


class AlreadyHasActiveSlot(StateConflictError):
    code = "already_has_active_slot"
    default_message = "You already have an active slot; cancel it first"


class SubstituteTaken(StateConflictError):
    code = "substitute_taken"
    default_message = "The substitute position is already taken"


# ============================================
# Store / transport
# ============================================


class ConcurrencyConflictError(SlotBoardError):
    code = "concurrency_conflict"
    default_message = "Slot was modified concurrently; refresh and retry"


class SlotNotFoundError(SlotBoardError):
    code = "slot_not_found"
    default_message = "Slot not found"


class TransportError(SlotBoardError):
    code = "transport_error"
    default_message = "Backend unavailable"


# ============================================
# Accounts
# ============================================


class UsernameTaken(StateConflictError):
    code = "username_taken"
    default_message = "Username already taken. Please choose another."


class InvalidCredentials(AuthorizationError):
    code = "invalid_credentials"
    default_message = "Invalid username or password"
