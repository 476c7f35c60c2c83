"""Schema migration system for the marginalia store.

Migrations are numbered Python steps registered in ``versions``; the runner
applies the ones newer than the version recorded in ``schema_version``.
"""

from .runner import MigrationRunner, MigrationStatus
from .versions import MIGRATIONS, Migration

__all__ = ["MIGRATIONS", "Migration", "MigrationRunner", "MigrationStatus"]
