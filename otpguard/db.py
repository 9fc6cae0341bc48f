"""
SQLite OTP repository using aiosqlite.

Stores one row per issued code. Tables are created automatically on
first connect. A partial unique index keeps at most one unused code per
phone number at the storage layer as well.
"""

from __future__ import annotations

import asyncio
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite

from otpguard.models import OTPRecord

logger = logging.getLogger(__name__)


# ── Schema ────────────────────────────────────────────────────────────────

_SCHEMA = """
CREATE TABLE IF NOT EXISTS otp_records (
    id              TEXT PRIMARY KEY,
    identity        TEXT NOT NULL,
    code            TEXT NOT NULL,
    created_at      TEXT NOT NULL,  -- UTC ISO-8601, microsecond precision
    expires_at      TEXT NOT NULL,
    is_used         INTEGER NOT NULL DEFAULT 0,
    attempts        INTEGER NOT NULL DEFAULT 0,
    verified_at     TEXT
);

CREATE INDEX IF NOT EXISTS idx_otp_identity ON otp_records(identity, created_at);
CREATE INDEX IF NOT EXISTS idx_otp_created ON otp_records(created_at);
CREATE UNIQUE INDEX IF NOT EXISTS idx_otp_one_unused
    ON otp_records(identity) WHERE is_used = 0;
"""


# ── Helpers ───────────────────────────────────────────────────────────────


def _iso(dt: datetime | None) -> str | None:
    """UTC ISO string with a fixed layout so text order equals time order."""
    if dt is None:
        return None
    return dt.astimezone(timezone.utc).isoformat(timespec="microseconds")


def _parse(raw: str | None) -> datetime | None:
    if raw is None:
        return None
    return datetime.fromisoformat(raw)


def _row_to_record(row: aiosqlite.Row) -> OTPRecord:
    """Convert a database row to an OTPRecord model."""
    return OTPRecord(
        id=row["id"],
        identity=row["identity"],
        code=row["code"],
        created_at=_parse(row["created_at"]),
        expires_at=_parse(row["expires_at"]),
        is_used=bool(row["is_used"]),
        attempts=row["attempts"],
        verified_at=_parse(row["verified_at"]),
    )


async def _insert(db: aiosqlite.Connection, record: OTPRecord) -> None:
    await db.execute(
        """
        INSERT INTO otp_records
            (id, identity, code, created_at, expires_at, is_used, attempts, verified_at)
        VALUES (?, ?, ?, ?, ?, ?, ?, ?)
        """,
        (
            record.id, record.identity, record.code,
            _iso(record.created_at), _iso(record.expires_at),
            int(record.is_used), record.attempts, _iso(record.verified_at),
        ),
    )


class SQLiteOTPRepository:
    """OTPRepository backed by a single aiosqlite connection."""

    def __init__(self, db_path: str) -> None:
        self._db_path = db_path
        self._db: aiosqlite.Connection | None = None
        # One connection is shared by every request; writers must not
        # interleave inside each other's transactions.
        self._write_lock = asyncio.Lock()

    async def connect(self) -> None:
        """Open the database and create tables if they don't exist."""
        path = Path(self._db_path)
        path.parent.mkdir(parents=True, exist_ok=True)

        self._db = await aiosqlite.connect(str(path))
        self._db.row_factory = aiosqlite.Row  # dict-like rows
        await self._db.execute("PRAGMA journal_mode=WAL")

        await self._db.executescript(_SCHEMA)
        await self._db.commit()
        logger.info("OTP database initialized at %s", path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("OTP database connection closed")

    def _conn(self) -> aiosqlite.Connection:
        assert self._db is not None, "Database not initialized, call connect() first"
        return self._db

    # ── Reads ─────────────────────────────────────────────────────────

    async def find_latest(self, identity: str) -> OTPRecord | None:
        async with self._conn().execute(
            "SELECT * FROM otp_records WHERE identity = ? ORDER BY created_at DESC LIMIT 1",
            (identity,),
        ) as cur:
            row = await cur.fetchone()
        return _row_to_record(row) if row else None

    async def find_active(self, identity: str, now: datetime) -> OTPRecord | None:
        async with self._conn().execute(
            """
            SELECT * FROM otp_records
            WHERE identity = ? AND is_used = 0 AND expires_at > ?
            ORDER BY created_at DESC LIMIT 1
            """,
            (identity, _iso(now)),
        ) as cur:
            row = await cur.fetchone()
        return _row_to_record(row) if row else None

    async def count_since(self, identity: str, since: datetime) -> int:
        async with self._conn().execute(
            "SELECT COUNT(*) FROM otp_records WHERE identity = ? AND created_at >= ?",
            (identity, _iso(since)),
        ) as cur:
            row = await cur.fetchone()
        return row[0]

    # ── Writes ────────────────────────────────────────────────────────

    async def supersede_and_insert(self, record: OTPRecord) -> int:
        """
        Mark every unused record for ``record.identity`` as used and insert
        *record*, in one transaction. Returns how many records were superseded.
        On any failure the transaction is rolled back and earlier codes stay
        valid.
        """
        db = self._conn()
        async with self._write_lock:
            try:
                cur = await db.execute(
                    "UPDATE otp_records SET is_used = 1 WHERE identity = ? AND is_used = 0",
                    (record.identity,),
                )
                superseded = cur.rowcount
                await _insert(db, record)
                await db.commit()
            except BaseException:
                await db.rollback()
                raise
        return superseded

    async def update_attempts(self, record_id: str, attempts: int) -> None:
        db = self._conn()
        async with self._write_lock:
            await db.execute(
                "UPDATE otp_records SET attempts = ? WHERE id = ?",
                (attempts, record_id),
            )
            await db.commit()

    async def mark_used(self, record_id: str, verified_at: datetime | None = None) -> None:
        db = self._conn()
        async with self._write_lock:
            await db.execute(
                "UPDATE otp_records SET is_used = 1, verified_at = COALESCE(?, verified_at) WHERE id = ?",
                (_iso(verified_at), record_id),
            )
            await db.commit()
