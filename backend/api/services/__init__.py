"""Services layer - Business logic

Services are initialized with their dependencies and accessed through
dependency injection.
"""

from .account_service import AccountService
from .auth_service import AuthService
from .slot_service import SlotService

__all__ = [
    "AccountService",
    "AuthService",
    "SlotService",
]
