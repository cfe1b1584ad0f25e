"""
Schema migrations for threadstore.

Migration steps live in the ``versions`` package as ``vNNN_<slug>.py`` modules
and are applied by :func:`apply_migrations`.
"""

from threadstore.db.migrations.engine import (
    Migration,
    applied_versions,
    apply_migrations,
    current_version,
    discover_migrations,
    pending_migrations,
    validate_migrations,
)
from threadstore.db.migrations.operations import (
    AddColumn,
    CreateIndex,
    CreateSearchIndex,
    CreateTable,
    Operation,
)

__all__ = [
    "AddColumn",
    "CreateIndex",
    "CreateSearchIndex",
    "CreateTable",
    "Migration",
    "Operation",
    "applied_versions",
    "apply_migrations",
    "current_version",
    "discover_migrations",
    "pending_migrations",
    "validate_migrations",
]
