"""API Routers package

Routers are organized by feature domain.
"""

from . import auth_router, slots_router

__all__ = [
    "auth_router",
    "slots_router",
]
