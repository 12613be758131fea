"""Repository for the birthdays and scheduler_state tables.

Unscoped rows are stored with ``scope_id = ''`` and are visible to every
scope on reads. A member never has an unscoped row and scoped rows at the
same time: each upsert clears the other kind for that member.
"""

from __future__ import annotations

import logging
import re

import aiosqlite

from .connection import Database
from .models import BirthdayMatch, BirthdayRecord, ListResult, WriteResult, WriteStatus

logger = logging.getLogger(__name__)

DATE_PATTERN = re.compile(r"[0-9]{2}\.[0-9]{2}")
DATE_FORMAT_HINT = "DD.MM"

UNSCOPED = ""

STORAGE_ERRORS = (aiosqlite.Error, OSError)


def validate_date(text: str) -> tuple[int, int] | None:
    """Return (day, month) for a "DD.MM" string, or None if it is malformed.

    Only field ranges are checked; "31.02" passes.
    """
    if not isinstance(text, str) or not DATE_PATTERN.fullmatch(text):
        return None
    day, month = int(text[:2]), int(text[3:])
    if not (1 <= day <= 31 and 1 <= month <= 12):
        return None
    return day, month


def _scope_key(scope_id: str | None) -> str:
    return scope_id if scope_id else UNSCOPED


def _row_to_record(row: aiosqlite.Row) -> BirthdayRecord:
    return BirthdayRecord(
        member_id=row["user_id"],
        display_name=row["username"] or "",
        birth_date=row["birth_date"],
        scope_id=row["scope_id"] or None,
    )


class BirthdayRepository:
    """CRUD over birthday records. Storage exceptions never escape."""

    def __init__(self, database: Database) -> None:
        self.db = database

    # ==================== Writes ====================

    async def upsert(
        self,
        member_id: str,
        display_name: str,
        date_text: str,
        scope_id: str | None = None,
    ) -> WriteResult:
        """Insert or fully overwrite the record for (member, scope)."""
        if validate_date(date_text) is None:
            return WriteResult(WriteStatus.INVALID_FORMAT)

        scope = _scope_key(scope_id)
        try:
            async with self.db.acquire() as conn:
                if scope == UNSCOPED:
                    await conn.execute(
                        "DELETE FROM birthdays WHERE user_id = ? AND scope_id != ''",
                        (member_id,),
                    )
                else:
                    await conn.execute(
                        "DELETE FROM birthdays WHERE user_id = ? AND scope_id = ''",
                        (member_id,),
                    )
                await conn.execute(
                    """
                    INSERT OR REPLACE INTO birthdays (user_id, username, birth_date, scope_id)
                    VALUES (?, ?, ?, ?)
                    """,
                    (member_id, display_name, date_text, scope),
                )
                await conn.commit()
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to save birthday for {member_id}: {type(e).__name__}: {e}")
            return WriteResult(WriteStatus.STORAGE_ERROR, error=str(e))

        logger.info(f"Saved birthday {date_text} for {display_name} ({member_id})")
        return WriteResult(WriteStatus.OK, affected=1)

    async def remove(self, member_id: str, scope_id: str | None = None) -> WriteResult:
        """Delete the record for (member, scope). Zero rows is NOT_FOUND."""
        scope = _scope_key(scope_id)
        try:
            async with self.db.acquire() as conn:
                cursor = await conn.execute(
                    "DELETE FROM birthdays WHERE user_id = ? AND scope_id IN (?, '')",
                    (member_id, scope),
                )
                affected = cursor.rowcount
                await cursor.close()
                await conn.commit()
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to remove birthday for {member_id}: {type(e).__name__}: {e}")
            return WriteResult(WriteStatus.STORAGE_ERROR, error=str(e))

        if affected > 0:
            logger.info(f"Removed birthday for {member_id}")
            return WriteResult(WriteStatus.OK, affected=affected)
        return WriteResult(WriteStatus.NOT_FOUND)

    # ==================== Reads ====================

    async def list_all(self, scope_id: str | None = None) -> ListResult:
        """All records, ordered by the "DD.MM" text (not calendar order)."""
        if scope_id:
            query = """
                SELECT user_id, username, birth_date, scope_id FROM birthdays
                WHERE scope_id IN (?, '')
                ORDER BY birth_date, user_id
            """
            params: tuple[str, ...] = (scope_id,)
        else:
            query = """
                SELECT user_id, username, birth_date, scope_id FROM birthdays
                ORDER BY birth_date, user_id
            """
            params = ()

        try:
            async with self.db.acquire() as conn:
                async with conn.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to list birthdays: {type(e).__name__}: {e}")
            return ListResult(error=str(e))

        return ListResult(records=[_row_to_record(row) for row in rows])

    async def find_by_date(
        self, date_text: str, scope_id: str | None = None
    ) -> list[BirthdayMatch]:
        """Exact match on the stored date. Storage errors degrade to []."""
        if scope_id:
            query = """
                SELECT user_id, username FROM birthdays
                WHERE birth_date = ? AND scope_id IN (?, '')
                ORDER BY user_id
            """
            params: tuple[str, ...] = (date_text, scope_id)
        else:
            query = "SELECT user_id, username FROM birthdays WHERE birth_date = ? ORDER BY user_id"
            params = (date_text,)

        try:
            async with self.db.acquire() as conn:
                async with conn.execute(query, params) as cursor:
                    rows = await cursor.fetchall()
        except STORAGE_ERRORS as e:
            logger.error(
                f"Birthday lookup for {date_text} failed, skipping today's "
                f"congratulations: {type(e).__name__}: {e}"
            )
            return []

        return [BirthdayMatch(member_id=row["user_id"], display_name=row["username"] or "") for row in rows]

    # ==================== Scheduler state ====================

    async def get_last_fired(self, scope_id: str | None = None) -> str | None:
        """Last ISO date the daily check ran for this scope, None if unknown."""
        try:
            async with self.db.acquire() as conn:
                async with conn.execute(
                    "SELECT last_fired_date FROM scheduler_state WHERE scope_id = ?",
                    (_scope_key(scope_id),),
                ) as cursor:
                    row = await cursor.fetchone()
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to read scheduler state: {type(e).__name__}: {e}")
            return None

        return row["last_fired_date"] if row else None

    async def set_last_fired(self, day: str, scope_id: str | None = None) -> WriteResult:
        """Record that the daily check ran on `day` (ISO date)."""
        try:
            async with self.db.acquire() as conn:
                await conn.execute(
                    """
                    INSERT INTO scheduler_state (scope_id, last_fired_date)
                    VALUES (?, ?)
                    ON CONFLICT (scope_id) DO UPDATE SET
                        last_fired_date = excluded.last_fired_date
                    """,
                    (_scope_key(scope_id), day),
                )
                await conn.commit()
        except STORAGE_ERRORS as e:
            logger.error(f"Failed to save scheduler state: {type(e).__name__}: {e}")
            return WriteResult(WriteStatus.STORAGE_ERROR, error=str(e))

        return WriteResult(WriteStatus.OK, affected=1)
