"""Data model for the user_credentials table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class UserCredential:
    """Stored login credential. ``password_hash`` is a salted scrypt digest."""

    id: int
    username: str
    password_hash: str
    created_at: datetime | None = None
