"""SQLite call log using aiosqlite."""

import asyncio
from datetime import date
from pathlib import Path

import aiosqlite

from parceltrace.models.calls import ApiCallRecord, ApiKeyType, CallRecord
from parceltrace.sinks.base import CallLogSink


class SQLiteCallLog(CallLogSink):
    """Local call log with per-day API counters."""

    def __init__(self, db_path: str = ".parceltrace.db"):
        """
        Initialize SQLite call log.

        Args:
            db_path: Path to SQLite database file
        """
        self.db_path = Path(db_path)
        self._db: aiosqlite.Connection | None = None
        self._connect_lock = asyncio.Lock()

    async def _ensure_db(self) -> aiosqlite.Connection:
        """
        Ensure database connection and schema exist.

        Concurrent first callers share one connection; it is published only
        once the schema is in place.
        """
        if self._db is not None:
            return self._db
        async with self._connect_lock:
            if self._db is None:
                self._db = await self._connect()
        return self._db

    async def _connect(self) -> aiosqlite.Connection:
        db = await aiosqlite.connect(self.db_path)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS tracking_calls (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                tracking_code TEXT NOT NULL,
                record_json TEXT NOT NULL,
                recorded_at TEXT NOT NULL
            )
        """)
        await db.execute(
            "CREATE INDEX IF NOT EXISTS idx_tracking_code ON tracking_calls(tracking_code)"
        )
        await db.execute("""
            CREATE TABLE IF NOT EXISTS api_calls (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                key_type TEXT NOT NULL,
                call_date TEXT NOT NULL,
                record_json TEXT NOT NULL
            )
        """)
        await db.execute("""
            CREATE TABLE IF NOT EXISTS daily_counters (
                counter_date TEXT NOT NULL,
                key_type TEXT NOT NULL,
                value INTEGER NOT NULL DEFAULT 0,
                PRIMARY KEY (counter_date, key_type)
            )
        """)
        await db.commit()
        return db

    async def record_call(self, record: CallRecord) -> None:
        db = await self._ensure_db()
        await db.execute(
            "INSERT INTO tracking_calls (tracking_code, record_json, recorded_at) VALUES (?, ?, ?)",
            (record.tracking_code, record.model_dump_json(), record.recorded_at.isoformat()),
        )
        await db.commit()

    async def record_api_call(self, record: ApiCallRecord) -> None:
        db = await self._ensure_db()
        call_date = record.recorded_at.date().isoformat()
        await db.execute(
            "INSERT INTO api_calls (key_type, call_date, record_json) VALUES (?, ?, ?)",
            (record.key_type.value, call_date, record.model_dump_json()),
        )
        await db.execute(
            """
            INSERT INTO daily_counters (counter_date, key_type, value) VALUES (?, ?, 1)
            ON CONFLICT(counter_date, key_type) DO UPDATE SET value = value + 1
            """,
            (call_date, record.key_type.value),
        )
        await db.commit()

    async def api_calls_on(self, day: date) -> dict[ApiKeyType, int]:
        db = await self._ensure_db()
        async with db.execute(
            "SELECT key_type, value FROM daily_counters WHERE counter_date = ?",
            (day.isoformat(),),
        ) as cursor:
            rows = await cursor.fetchall()
        return {ApiKeyType(key_type): value for key_type, value in rows}

    async def recent_calls(self, tracking_code: str, limit: int = 20) -> list[CallRecord]:
        db = await self._ensure_db()
        async with db.execute(
            "SELECT record_json FROM tracking_calls WHERE tracking_code = ? ORDER BY id DESC LIMIT ?",
            (tracking_code, limit),
        ) as cursor:
            rows = await cursor.fetchall()
        return [CallRecord.model_validate_json(row[0]) for row in rows]

    async def reset_counters(self, day: date) -> None:
        """Zero the API counters for one day."""
        db = await self._ensure_db()
        await db.execute("DELETE FROM daily_counters WHERE counter_date = ?", (day.isoformat(),))
        await db.commit()

    async def close(self) -> None:
        """Close database connection."""
        if self._db is not None:
            await self._db.close()
            self._db = None
