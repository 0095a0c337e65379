"""SQL migrations for the slot board schema."""

from .runner import VERSIONS_DIR, MigrationRunner

__all__ = ["VERSIONS_DIR", "MigrationRunner"]
