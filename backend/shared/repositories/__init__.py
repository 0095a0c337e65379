"""Shared repository layer for the slot board services."""

from .access_rule import AccessRuleRepository
from .credential import CredentialRepository
from .slot import SlotRepository, SlotStore

__all__ = [
    "AccessRuleRepository",
    "CredentialRepository",
    "SlotRepository",
    "SlotStore",
]
