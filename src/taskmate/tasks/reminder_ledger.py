# src/taskmate/tasks/reminder_ledger.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from datetime import date, datetime
from pathlib import Path

from .task_models import DATE_FORMAT, format_ts

logger = logging.getLogger(__name__)


class ReminderLedger:
    """
    Append-only record of "end-of-day reminder sent to user U for date D".

    UNIQUE(user_id, reminder_date) makes the claim an atomic insert-if-absent,
    safe across overlapping ticks and across processes sharing the database.
    Rows are never updated or deleted here.
    """

    def __init__(self, db_path: str | Path = "taskmate.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")
        return conn

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS end_of_day_reminders (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL,
                    reminder_date TEXT NOT NULL,
                    sent_at TEXT NOT NULL,
                    UNIQUE(user_id, reminder_date)
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def try_claim(self, user_id: int, day: date, *, now: datetime | None = None) -> bool:
        """Returns True iff this call created the (user, day) row."""
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT OR IGNORE INTO end_of_day_reminders(user_id, reminder_date, sent_at)
                VALUES (?, ?, ?)
                """,
                (int(user_id), day.strftime(DATE_FORMAT), format_ts(now or datetime.now())),
            )
            conn.commit()
            claimed = cur.rowcount == 1
            logger.debug("Ledger claim user=%s date=%s claimed=%s", user_id, day, claimed)
            return claimed
        finally:
            conn.close()

    def has_claim(self, user_id: int, day: date) -> bool:
        conn = self._get_conn()
        try:
            row = conn.execute(
                "SELECT 1 FROM end_of_day_reminders WHERE user_id = ? AND reminder_date = ? LIMIT 1",
                (int(user_id), day.strftime(DATE_FORMAT)),
            ).fetchone()
            return row is not None
        finally:
            conn.close()
