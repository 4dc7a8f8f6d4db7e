# src/taskmate/tasks/task_store.py

from __future__ import annotations

import contextlib
import logging
import sqlite3
from collections.abc import Mapping
from datetime import date, datetime, time, timedelta
from enum import Enum
from pathlib import Path
from typing import Any

from .task_models import (
    DATE_FORMAT,
    MAX_ALERT_COUNT,
    TIME_FORMAT,
    AlertStage,
    Task,
    TaskStatus,
    User,
    format_ts,
    parse_ts,
)

logger = logging.getLogger(__name__)

# Columns a conditional write may compare against or change.
_WRITABLE_COLUMNS = frozenset(
    {
        "user_id",
        "name",
        "description",
        "task_date",
        "task_time",
        "status",
        "alert_count",
        "first_sent_at",
        "second_sent_at",
        "third_sent_at",
        "completed_at",
    }
)


def _to_db(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return format_ts(value)
    if isinstance(value, date):
        return value.strftime(DATE_FORMAT)
    if isinstance(value, time):
        return value.strftime(TIME_FORMAT)
    return value


class TaskStore:
    """
    SQLite store for users and tasks.

    The schema is intentionally simple and migration-safe:
    - create table if missing
    - use PRAGMA table_info to detect missing columns
    - add columns with ALTER TABLE only when needed

    Every state advance is a single conditional UPDATE that re-checks the
    predicate which selected the row and reports whether it applied
    (rowcount == 1). Readers never assume a row is still eligible.

    Thread-safety:
    - each method opens its own SQLite connection
    """

    def __init__(self, db_path: str | Path = "taskmate.sqlite3") -> None:
        self._db_path = Path(db_path)
        self._db_path.parent.mkdir(parents=True, exist_ok=True)
        self._ensure_schema()
        logger.info("TaskStore ready db=%s total=%s", self._db_path, self.count_tasks())

    @property
    def db_path(self) -> Path:
        return self._db_path

    # ---- low-level helpers ----

    def _get_conn(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self._db_path), timeout=30.0)
        conn.row_factory = sqlite3.Row
        self._configure_conn(conn)
        return conn

    @staticmethod
    def _configure_conn(conn: sqlite3.Connection) -> None:
        with contextlib.suppress(sqlite3.Error):
            conn.execute("PRAGMA journal_mode=WAL")

    def _ensure_schema(self) -> None:
        conn = self._get_conn()
        try:
            cur = conn.cursor()

            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS users (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    phone TEXT NOT NULL,
                    created_at TEXT NOT NULL
                )
                """
            )
            cur.execute(
                """
                CREATE TABLE IF NOT EXISTS tasks (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    user_id INTEGER NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                    name TEXT NOT NULL,
                    description TEXT NOT NULL DEFAULT '',
                    task_date TEXT NOT NULL,
                    task_time TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'pending',
                    alert_count INTEGER NOT NULL DEFAULT 0,
                    first_sent_at TEXT,
                    second_sent_at TEXT,
                    third_sent_at TEXT,
                    completed_at TEXT,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """
            )

            # Migrations (safe): add missing columns.
            cur.execute("PRAGMA table_info(tasks)")
            cols = {row["name"] for row in cur.fetchall()}

            def add_col(name: str, decl: str) -> None:
                if name in cols:
                    return
                cur.execute(f"ALTER TABLE tasks ADD COLUMN {name} {decl}")
                logger.info("TaskStore migration: added column %s", name)

            add_col("description", "TEXT NOT NULL DEFAULT ''")
            add_col("alert_count", "INTEGER NOT NULL DEFAULT 0")
            add_col("first_sent_at", "TEXT")
            add_col("second_sent_at", "TEXT")
            add_col("third_sent_at", "TEXT")
            add_col("completed_at", "TEXT")

            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_alert ON tasks(status, alert_count)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_user_date ON tasks(user_id, task_date)")
            cur.execute("CREATE INDEX IF NOT EXISTS idx_tasks_due ON tasks(task_date, task_time)")

            conn.commit()
        finally:
            conn.close()

    @staticmethod
    def _row_to_task(row: sqlite3.Row) -> Task:
        return Task(
            id=int(row["id"]),
            user_id=int(row["user_id"]),
            name=str(row["name"]),
            description=str(row["description"] or ""),
            task_date=datetime.strptime(row["task_date"], DATE_FORMAT).date(),
            task_time=datetime.strptime(row["task_time"], TIME_FORMAT).time(),
            status=TaskStatus.from_db(row["status"]),
            alert_count=int(row["alert_count"] or 0),
            first_sent_at=parse_ts(row["first_sent_at"]),
            second_sent_at=parse_ts(row["second_sent_at"]),
            third_sent_at=parse_ts(row["third_sent_at"]),
            completed_at=parse_ts(row["completed_at"]),
            created_at=parse_ts(row["created_at"]) or datetime.min,
            updated_at=parse_ts(row["updated_at"]) or datetime.min,
        )

    @staticmethod
    def _row_to_user(row: sqlite3.Row, prefix: str = "") -> User:
        return User(
            id=int(row[f"{prefix}id"]),
            name=str(row[f"{prefix}name"]),
            phone=str(row[f"{prefix}phone"]),
        )

    @staticmethod
    def _stage_predicate(
        stage: AlertStage,
        at: datetime,
        dwell: timedelta,
        alias: str = "",
    ) -> tuple[str, list[Any]]:
        """
        Eligibility predicate for an escalation stage, as SQL over the tasks row.

        The same predicate is used to select candidates and to guard the
        conditional write, so a row that changed in between is never advanced.
        """
        p = f"{alias}." if alias else ""
        if stage is AlertStage.FIRST:
            return (
                f"{p}status = 'pending' AND {p}alert_count = 0 "
                f"AND ({p}task_date || ' ' || {p}task_time) <= ?",
                [format_ts(at)],
            )

        prev = stage.previous
        assert prev is not None
        col = f"{p}{prev.sent_at_column}"
        return (
            f"{p}status = 'pending' AND {p}alert_count = ? AND {col} IS NOT NULL AND {col} <= ?",
            [int(prev), format_ts(at - dwell)],
        )

    # ---- users ----

    def add_user(self, *, name: str, phone: str, now: datetime | None = None) -> int:
        if not name or not name.strip():
            raise ValueError("name is required")
        if not phone or not phone.strip():
            raise ValueError("phone is required")

        now = now or datetime.now()
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "INSERT INTO users(name, phone, created_at) VALUES (?, ?, ?)",
                (name.strip(), phone.strip(), format_ts(now)),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for users insert")
            return int(rowid)
        finally:
            conn.close()

    def get_user(self, user_id: int) -> User | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM users WHERE id = ?", (int(user_id),)).fetchone()
            return self._row_to_user(row) if row else None
        finally:
            conn.close()

    # ---- tasks: plain reads / CRUD ----

    def count_tasks(self) -> int:
        conn = self._get_conn()
        try:
            (n,) = conn.execute("SELECT COUNT(*) FROM tasks").fetchone()
            return int(n)
        finally:
            conn.close()

    def add_task(
        self,
        *,
        user_id: int,
        name: str,
        task_date: date,
        task_time: time,
        description: str = "",
        now: datetime | None = None,
    ) -> int:
        if not name or not name.strip():
            raise ValueError("name is required")

        now_s = format_ts(now or datetime.now())
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                INSERT INTO tasks(
                    user_id, name, description, task_date, task_time,
                    status, alert_count, created_at, updated_at
                )
                VALUES (?, ?, ?, ?, ?, 'pending', 0, ?, ?)
                """,
                (
                    int(user_id),
                    name.strip(),
                    (description or "").strip(),
                    _to_db(task_date),
                    _to_db(task_time.replace(microsecond=0)),
                    now_s,
                    now_s,
                ),
            )
            conn.commit()
            rowid = cur.lastrowid
            if rowid is None:
                raise RuntimeError("SQLite did not return lastrowid for tasks insert")
            task_id = int(rowid)
            logger.debug("Task added id=%s user=%s due=%s %s", task_id, user_id, task_date, task_time)
            return task_id
        finally:
            conn.close()

    def get_task(self, task_id: int) -> Task | None:
        conn = self._get_conn()
        try:
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            return self._row_to_task(row) if row else None
        finally:
            conn.close()

    def list_tasks_for_user(self, user_id: int, day: date | None = None) -> list[Task]:
        sql = "SELECT * FROM tasks WHERE user_id = ?"
        params: list[Any] = [int(user_id)]
        if day is not None:
            sql += " AND task_date = ?"
            params.append(_to_db(day))
        sql += " ORDER BY task_date DESC, task_time ASC, id ASC"

        conn = self._get_conn()
        try:
            return [self._row_to_task(r) for r in conn.execute(sql, params).fetchall()]
        finally:
            conn.close()

    def conditional_update(
        self,
        task_id: int,
        *,
        expected: Mapping[str, Any],
        changes: Mapping[str, Any],
        now: datetime | None = None,
    ) -> bool:
        """
        Apply `changes` only if every column in `expected` still holds the given
        value. Returns True iff the row was actually updated.
        """
        bad = (set(expected) | set(changes)) - _WRITABLE_COLUMNS
        if bad:
            raise ValueError(f"unknown task columns: {sorted(bad)}")
        if not changes:
            return False

        sets = [f"{col} = ?" for col in changes]
        params: list[Any] = [_to_db(v) for v in changes.values()]
        sets.append("updated_at = ?")
        params.append(format_ts(now or datetime.now()))

        where = ["id = ?"]
        params.append(int(task_id))
        for col, value in expected.items():
            if value is None:
                where.append(f"{col} IS NULL")
            else:
                where.append(f"{col} = ?")
                params.append(_to_db(value))

        sql = f"UPDATE tasks SET {', '.join(sets)} WHERE {' AND '.join(where)}"

        conn = self._get_conn()
        try:
            cur = conn.execute(sql, params)
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    def delete_task(self, task_id: int, *, user_id: int) -> bool:
        conn = self._get_conn()
        try:
            cur = conn.execute(
                "DELETE FROM tasks WHERE id = ? AND user_id = ?",
                (int(task_id), int(user_id)),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- escalation ----

    def find_stage_candidates(
        self,
        stage: AlertStage,
        *,
        now: datetime,
        dwell: timedelta,
        limit: int = 500,
    ) -> list[tuple[Task, User]]:
        """
        Tasks eligible for `stage` at `now`, joined with their owner.

        Stage 1: pending, alert_count=0, due instant <= now.
        Stage n>1: pending, alert_count=n-1, previous stage stamped at least
        `dwell` ago.
        """
        pred, params = self._stage_predicate(stage, now, dwell, alias="t")

        conn = self._get_conn()
        try:
            rows = conn.execute(
                f"""
                SELECT t.*, u.id AS u_id, u.name AS u_name, u.phone AS u_phone
                FROM tasks t
                JOIN users u ON u.id = t.user_id
                WHERE {pred}
                ORDER BY t.task_date ASC, t.task_time ASC, t.id ASC
                LIMIT ?
                """,
                (*params, int(limit)),
            ).fetchall()
            return [(self._row_to_task(r), self._row_to_user(r, prefix="u_")) for r in rows]
        finally:
            conn.close()

    def advance_alert(
        self,
        task_id: int,
        stage: AlertStage,
        *,
        at: datetime,
        dwell: timedelta,
    ) -> bool:
        """
        Atomically move a task to `stage`: alert_count = stage and the stage's
        sent-at stamp = `at` (the commit-time clock reading).

        The write re-checks the eligibility predicate, evaluated at `at`.
        Returns False when the row no longer qualifies (completed, deleted,
        already advanced by another tick or process).
        """
        pred, params = self._stage_predicate(stage, at, dwell)
        at_s = format_ts(at)

        conn = self._get_conn()
        try:
            cur = conn.execute(
                f"""
                UPDATE tasks
                SET alert_count = ?, {stage.sent_at_column} = ?, updated_at = ?
                WHERE id = ? AND {pred}
                """,
                (int(stage), at_s, at_s, int(task_id), *params),
            )
            conn.commit()
            return cur.rowcount == 1
        finally:
            conn.close()

    # ---- completion ----

    def complete_task(self, task_id: int, *, user_id: int, at: datetime) -> Task | None:
        """
        pending -> done | late, decided inside the UPDATE from the alert_count
        the row holds at that instant. Returns the updated task, or None when
        there is no pending task with that id owned by that user.
        """
        at_s = format_ts(at)
        conn = self._get_conn()
        try:
            cur = conn.execute(
                """
                UPDATE tasks
                SET status = CASE WHEN alert_count >= ? THEN 'late' ELSE 'done' END,
                    completed_at = ?,
                    updated_at = ?
                WHERE id = ? AND user_id = ? AND status = 'pending'
                """,
                (MAX_ALERT_COUNT, at_s, at_s, int(task_id), int(user_id)),
            )
            if cur.rowcount != 1:
                conn.rollback()
                return None
            # Same transaction: we read our own write, not a later one.
            row = conn.execute("SELECT * FROM tasks WHERE id = ?", (int(task_id),)).fetchone()
            conn.commit()
            return self._row_to_task(row)
        finally:
            conn.close()

    # ---- end of day ----

    def list_users_all_resolved(self, day: date) -> list[User]:
        """Users with at least one task on `day` and none of them pending."""
        day_s = _to_db(day)
        conn = self._get_conn()
        try:
            rows = conn.execute(
                """
                SELECT u.*
                FROM users u
                WHERE EXISTS (
                    SELECT 1 FROM tasks t1
                    WHERE t1.user_id = u.id AND t1.task_date = ?
                )
                AND NOT EXISTS (
                    SELECT 1 FROM tasks t2
                    WHERE t2.user_id = u.id AND t2.task_date = ? AND t2.status = 'pending'
                )
                ORDER BY u.id ASC
                """,
                (day_s, day_s),
            ).fetchall()
            return [self._row_to_user(r) for r in rows]
        finally:
            conn.close()
