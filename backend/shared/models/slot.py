"""Data model for the slots table."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime

ACTIVE = "active"
CANCELLED = "cancelled"

# Seat columns in fixed order; player1 belongs to the creator.
SEATS = ("player1", "player2", "player3", "player4")
JOINABLE_SEATS = SEATS[1:]


def note_field(seat: str) -> str:
    """Column holding the note for a seat, e.g. ``player2`` -> ``player2_comment``."""
    return f"{seat}_comment"


@dataclass
class Slot:
    """Slot record. Empty seats and notes are stored as empty strings."""

    id: str | None
    creator_name: str
    start_time: datetime
    player1: str = ""
    player2: str = ""
    player3: str = ""
    player4: str = ""
    player1_comment: str = ""
    player2_comment: str = ""
    player3_comment: str = ""
    player4_comment: str = ""
    substitute: str = ""
    waiting_queue: list[str] = field(default_factory=list)
    status: str = ACTIVE  # 'active' | 'cancelled'
    notification_sent: bool = False
    created_at: datetime | None = None
    version: int = 0

    @property
    def is_active(self) -> bool:
        return self.status == ACTIVE

    @property
    def reminder_sent(self) -> bool:
        return self.notification_sent
