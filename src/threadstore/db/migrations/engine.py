"""
Forward-only schema migration engine.

Brings a store from whatever version its ledger records up to the newest
discovered migration. Each migration's operations and its ledger row are
committed as one transaction; the first failure stops the run and leaves the
store at the last committed version.
"""

import importlib
import logging
import pkgutil
import re
from dataclasses import dataclass, field
from types import ModuleType
from typing import Iterable, Optional, Sequence

import sqlalchemy as sa
from sqlalchemy import Engine
from sqlalchemy.engine import Connection

from threadstore.db.migrations.operations import Operation
from threadstore.exceptions import MigrationError
from threadstore.models.db import SchemaVersion

logger = logging.getLogger(__name__)

LEDGER = SchemaVersion.__table__

_MODULE_PATTERN = re.compile(r"^v(\d+)_\w+$")


@dataclass(frozen=True)
class Migration:
    """One versioned, ordered set of idempotent schema operations."""

    version: int
    description: str
    operations: Sequence[Operation] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"v{self.version}: {self.description}"


def _ledger_exists(connection: Connection) -> bool:
    return sa.inspect(connection).has_table(LEDGER.name)


def current_version(connectable: Engine | Connection) -> int:
    """
    Highest version recorded in the ledger.

    Returns:
        The max applied version, or 0 if the ledger does not exist yet
    """
    if isinstance(connectable, Engine):
        with connectable.connect() as connection:
            return current_version(connection)

    if not _ledger_exists(connectable):
        return 0
    version = connectable.execute(
        sa.select(sa.func.coalesce(sa.func.max(LEDGER.c.version), 0))
    ).scalar_one()
    return int(version)


def applied_versions(engine: Engine) -> list[int]:
    """All versions recorded in the ledger, ascending."""
    with engine.connect() as connection:
        if not _ledger_exists(connection):
            return []
        rows = connection.execute(
            sa.select(LEDGER.c.version).order_by(LEDGER.c.version)
        ).scalars()
        return [int(v) for v in rows]


def validate_migrations(migrations: Sequence[Migration]) -> None:
    """
    Check ordering preconditions.

    Raises:
        MigrationError: If versions are not positive and strictly increasing
    """
    previous = 0
    for migration in migrations:
        if migration.version <= 0:
            raise MigrationError(
                f"migration versions must be positive, got {migration.version}"
            )
        if migration.version <= previous:
            raise MigrationError(
                f"migrations must be strictly increasing by version: "
                f"v{migration.version} follows v{previous}"
            )
        previous = migration.version


def _load_migration(module: ModuleType) -> Migration:
    missing = [
        attr
        for attr in ("version", "description", "operations")
        if not hasattr(module, attr)
    ]
    if missing:
        raise MigrationError(
            f"migration module {module.__name__} is missing {', '.join(missing)}"
        )
    return Migration(
        version=int(module.version),
        description=str(module.description),
        operations=tuple(module.operations()),
    )


def discover_migrations(package: str = "threadstore.db.migrations.versions") -> list[Migration]:
    """
    Load migration steps from ``vNNN_<slug>`` modules in a package.

    Each module defines ``version``, ``description`` and an ``operations()``
    function returning fresh operation objects.

    Returns:
        Migrations sorted by version
    """
    pkg = importlib.import_module(package)
    migrations = []
    for module_info in pkgutil.iter_modules(pkg.__path__):
        match = _MODULE_PATTERN.match(module_info.name)
        if not match:
            continue
        module = importlib.import_module(f"{package}.{module_info.name}")
        migration = _load_migration(module)
        if migration.version != int(match.group(1)):
            raise MigrationError(
                f"module {module_info.name} declares version {migration.version}"
            )
        migrations.append(migration)

    migrations.sort(key=lambda m: m.version)
    validate_migrations(migrations)
    return migrations


def pending_migrations(
    engine: Engine, migrations: Optional[Sequence[Migration]] = None
) -> list[Migration]:
    """Migrations newer than the ledger's current version."""
    if migrations is None:
        migrations = discover_migrations()
    current = current_version(engine)
    return [m for m in migrations if m.version > current]


def _apply_one(connection: Connection, migration: Migration) -> None:
    # The ledger belongs to the engine, not to any migration step
    LEDGER.create(connection, checkfirst=True)

    for operation in migration.operations:
        if operation.run(connection):
            logger.debug("  applied %s", operation)
        else:
            logger.debug("  skipped %s (already present)", operation)

    # Primary key on version rejects a second append of the same version
    connection.execute(sa.insert(LEDGER).values(version=migration.version))


def apply_migrations(
    engine: Engine, migrations: Optional[Iterable[Migration]] = None
) -> list[int]:
    """
    Apply every migration newer than the ledger, in ascending order.

    Must run before the store admits readers or writers.

    Args:
        engine: Engine for the store
        migrations: Steps to consider (defaults to the discovered set)

    Returns:
        Versions applied by this run (empty if already current)

    Raises:
        MigrationError: If a step fails; nothing after it is attempted
    """
    migrations = (
        discover_migrations() if migrations is None else list(migrations)
    )
    validate_migrations(migrations)

    current = current_version(engine)
    pending = [m for m in migrations if m.version > current]
    if not pending:
        logger.info("Schema is current at v%d", current)
        return []

    logger.info(
        "Migrating schema from v%d to v%d (%d step(s))",
        current,
        pending[-1].version,
        len(pending),
    )

    applied = []
    for migration in pending:
        try:
            with engine.begin() as connection:
                _apply_one(connection, migration)
        except Exception as e:
            last_applied = applied[-1] if applied else current
            logger.error(
                "Migration %s failed; schema left at v%d",
                migration,
                last_applied,
                exc_info=True,
            )
            raise MigrationError(
                str(e), version=migration.version, last_applied=last_applied
            ) from e
        applied.append(migration.version)
        logger.info("Applied migration %s", migration)

    return applied
