"""Data model for the slot_access_rules table."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class AccessRule:
    """Access rule record."""

    id: int
    identity: str
    rule: str  # 'block' | 'allow'
    created_at: datetime | None = None
