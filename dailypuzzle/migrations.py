"""Versioned schema migrations.

Each migration runs once and is recorded in schema_version. Migration 2 is
destructive: it deletes every activity row. Records written before the
synced flag became an integer cannot be told apart from fresh ones, so the
table is wiped and players restore their history from the remote store
(see sync.restore_from_remote).
"""
import logging
from dataclasses import dataclass
from typing import Awaitable, Callable

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncConnection, AsyncEngine

from dailypuzzle.db import Base
from dailypuzzle.models import Activity, SchemaVersion

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Migration:
    version: int
    description: str
    apply: Callable[[AsyncConnection], Awaitable[None]]
    destructive: bool = False


async def _baseline(conn: AsyncConnection) -> None:
    await conn.run_sync(Base.metadata.create_all)


async def _reset_activities(conn: AsyncConnection) -> None:
    result = await conn.execute(delete(Activity))
    logger.warning(f"Cleared {result.rowcount} activity records from the old schema")


MIGRATIONS = (
    Migration(1, "baseline schema", _baseline),
    Migration(2, "clear activities with non-integer synced flags", _reset_activities, destructive=True),
)


async def applied_versions(conn: AsyncConnection) -> set[int]:
    result = await conn.execute(select(SchemaVersion.version))
    return set(result.scalars().all())


async def run_migrations(engine: AsyncEngine) -> list[Migration]:
    """Apply every pending migration in order and return the ones applied."""
    applied = []
    async with engine.begin() as conn:
        # schema_version itself has to exist before we can read it
        await conn.run_sync(SchemaVersion.__table__.create, checkfirst=True)
        done = await applied_versions(conn)
        for migration in MIGRATIONS:
            if migration.version in done:
                continue
            logger.info(f"Applying migration {migration.version}: {migration.description}")
            await migration.apply(conn)
            await conn.execute(
                SchemaVersion.__table__.insert().values(
                    version=migration.version, description=migration.description
                )
            )
            applied.append(migration)
    return applied


def needs_resync(applied: list[Migration]) -> bool:
    return any(m.destructive for m in applied)
