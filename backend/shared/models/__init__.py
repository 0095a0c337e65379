"""Shared data models for the slot board services."""

from .access_rule import AccessRule
from .credential import UserCredential
from .slot import ACTIVE, CANCELLED, JOINABLE_SEATS, SEATS, Slot, note_field

__all__ = [
    "ACTIVE",
    "CANCELLED",
    "JOINABLE_SEATS",
    "SEATS",
    "AccessRule",
    "Slot",
    "UserCredential",
    "note_field",
]
