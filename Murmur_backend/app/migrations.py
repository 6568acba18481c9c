"""Idempotent SQLite upgrades for the snapshot store.

``create_all`` only adds missing tables. Anything that alters an existing
table goes in ``MIGRATIONS`` and is recorded in ``store_migrations``.
"""
from datetime import datetime, timezone

from sqlalchemy import text

MIGRATIONS_TABLE = "store_migrations"


async def applied_migrations(conn) -> set[str]:
    await conn.execute(text(
        f"CREATE TABLE IF NOT EXISTS {MIGRATIONS_TABLE} (name TEXT PRIMARY KEY, applied_at TEXT NOT NULL)"
    ))
    result = await conn.execute(text(f"SELECT name FROM {MIGRATIONS_TABLE}"))
    return {row[0] for row in result}


async def record_migration(conn, name: str):
    await conn.execute(
        text(f"INSERT INTO {MIGRATIONS_TABLE}(name, applied_at) VALUES (:name, :applied_at)"),
        {"name": name, "applied_at": datetime.now(timezone.utc).isoformat()},
    )


async def index_spaces_by_host(conn):
    await conn.execute(text("CREATE INDEX IF NOT EXISTS ix_spaces_host_active ON spaces (host_id, active)"))


MIGRATIONS = [
    ("202410_index_spaces_by_host", index_spaces_by_host),
]


async def run_migrations(conn):
    done = await applied_migrations(conn)
    for name, handler in MIGRATIONS:
        if name in done:
            continue
        await handler(conn)
        await record_migration(conn, name)
