"""SQLite connection management.

Each repository call opens its own short-lived connection; SQLite's writer
lock serialises concurrent writes. WAL journaling lets the daily scan read
while a command is writing.
"""

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from pathlib import Path

import aiosqlite

logger = logging.getLogger(__name__)

SCHEMA = """
CREATE TABLE IF NOT EXISTS birthdays (
    user_id    TEXT NOT NULL,
    username   TEXT,
    birth_date TEXT NOT NULL CHECK (birth_date GLOB '[0-9][0-9].[0-9][0-9]'),
    scope_id   TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (user_id, scope_id)
);

CREATE TABLE IF NOT EXISTS scheduler_state (
    scope_id        TEXT PRIMARY KEY,
    last_fired_date TEXT NOT NULL
);
"""

REBUILD_TABLE = """
CREATE TABLE birthdays_new (
    user_id    TEXT NOT NULL,
    username   TEXT,
    birth_date TEXT NOT NULL CHECK (birth_date GLOB '[0-9][0-9].[0-9][0-9]'),
    scope_id   TEXT NOT NULL DEFAULT '',
    PRIMARY KEY (user_id, scope_id)
)
"""

INDEXES = """
CREATE INDEX IF NOT EXISTS idx_birthdays_date ON birthdays (birth_date, scope_id);
"""


class Database:
    """Owns the SQLite file backing the birthday store."""

    def __init__(self, path: Path | str, busy_timeout: float = 5.0) -> None:
        self.path = Path(path)
        self.busy_timeout = busy_timeout

    @asynccontextmanager
    async def acquire(self) -> AsyncIterator[aiosqlite.Connection]:
        """Open a connection for a single operation."""
        async with aiosqlite.connect(self.path, timeout=self.busy_timeout) as conn:
            conn.row_factory = aiosqlite.Row
            await conn.execute(f"PRAGMA busy_timeout = {int(self.busy_timeout * 1000)}")
            yield conn

    async def initialize(self) -> None:
        """Create the schema and enable WAL. Errors propagate: startup is fatal."""
        if not self.path.parent.exists():
            self.path.parent.mkdir(parents=True, exist_ok=True)

        async with self.acquire() as conn:
            async with conn.execute("PRAGMA journal_mode = WAL") as cursor:
                row = await cursor.fetchone()
                if row and str(row[0]).lower() != "wal":
                    logger.warning(f"WAL journal mode unavailable, using {row[0]}")

            await conn.executescript(SCHEMA)
            await self._upgrade_legacy_table(conn)
            await conn.executescript(INDEXES)
            await conn.commit()

        logger.info(f"Database ready: {self.path}")

    @staticmethod
    async def _upgrade_legacy_table(conn: aiosqlite.Connection) -> None:
        """Rebuild a `birthdays` table keyed on user_id alone.

        Existing rows become unscoped (scope_id = '').
        """
        async with conn.execute("PRAGMA table_info(birthdays)") as cursor:
            rows = await cursor.fetchall()

        columns = {row["name"] for row in rows}
        key = {row["name"] for row in rows if row["pk"]}
        if key == {"user_id", "scope_id"}:
            return

        scope_expr = "COALESCE(scope_id, '')" if "scope_id" in columns else "''"
        await conn.execute("BEGIN")
        try:
            await conn.execute("DROP TABLE IF EXISTS birthdays_new")
            await conn.execute(REBUILD_TABLE)
            await conn.execute(
                f"""
                INSERT OR REPLACE INTO birthdays_new (user_id, username, birth_date, scope_id)
                SELECT user_id, username, birth_date, {scope_expr} FROM birthdays
                WHERE user_id IS NOT NULL AND birth_date IS NOT NULL
                """
            )
            await conn.execute("DROP TABLE birthdays")
            await conn.execute("ALTER TABLE birthdays_new RENAME TO birthdays")
            await conn.commit()
        except aiosqlite.Error:
            await conn.rollback()
            raise

        logger.info("Rebuilt legacy birthdays table with a (user_id, scope_id) key")
