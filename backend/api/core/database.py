"""Process-wide database manager for the API service."""

from shared.database import DatabaseManager, PoolConfig

_db_manager: DatabaseManager | None = None


def get_database_manager() -> DatabaseManager:
    """Get the global database manager instance"""
    if _db_manager is None:
        raise RuntimeError("Database manager not initialized")
    return _db_manager


def init_database_manager(database_url: str) -> DatabaseManager:
    """Create the global database manager with the API pool preset"""
    global _db_manager
    _db_manager = DatabaseManager(database_url, PoolConfig.for_service("api"))
    return _db_manager
