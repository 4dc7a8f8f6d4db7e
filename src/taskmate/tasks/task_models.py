# src/taskmate/tasks/task_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from enum import IntEnum, StrEnum

# Naive local timestamps; every comparison is against one process-wide clock.
TS_FORMAT = "%Y-%m-%d %H:%M:%S"
DATE_FORMAT = "%Y-%m-%d"
TIME_FORMAT = "%H:%M:%S"


class TaskStatus(StrEnum):
    """
    Task lifecycle status.

    Notes:
    - pending -> done | late happens exactly once (completion handler only).
    - "late" is never set by escalation; it is decided from alert_count at
      completion time.
    """

    PENDING = "pending"
    DONE = "done"
    LATE = "late"

    @classmethod
    def from_db(cls, raw: str | None) -> TaskStatus:
        if not raw:
            return cls.PENDING
        return cls(raw)


class AlertStage(IntEnum):
    """Escalation stages; the value is the alert_count reached after the send."""

    FIRST = 1
    SECOND = 2
    THIRD = 3

    @property
    def sent_at_column(self) -> str:
        return _SENT_AT_COLUMNS[self]

    @property
    def previous(self) -> AlertStage | None:
        return None if self is AlertStage.FIRST else AlertStage(self.value - 1)


_SENT_AT_COLUMNS = {
    AlertStage.FIRST: "first_sent_at",
    AlertStage.SECOND: "second_sent_at",
    AlertStage.THIRD: "third_sent_at",
}

MAX_ALERT_COUNT = int(AlertStage.THIRD)


@dataclass(slots=True, frozen=True)
class User:
    id: int
    name: str
    phone: str


@dataclass(slots=True)
class Task:
    id: int
    user_id: int
    name: str
    description: str

    task_date: date
    task_time: time

    status: TaskStatus
    alert_count: int
    first_sent_at: datetime | None
    second_sent_at: datetime | None
    third_sent_at: datetime | None
    completed_at: datetime | None

    created_at: datetime
    updated_at: datetime

    @property
    def due_at(self) -> datetime:
        return datetime.combine(self.task_date, self.task_time)

    def sent_at(self, stage: AlertStage) -> datetime | None:
        return getattr(self, stage.sent_at_column)


def is_overdue(task: Task, now: datetime, grace: timedelta) -> bool:
    """
    Display-only lateness hint: a pending task whose due instant plus the grace
    window has passed.

    This never feeds back into the persisted status; final lateness is decided
    at completion time from alert_count.
    """
    return task.status is TaskStatus.PENDING and now > task.due_at + grace


def format_ts(value: datetime) -> str:
    return value.strftime(TS_FORMAT)


def parse_ts(raw: str | None) -> datetime | None:
    if not raw:
        return None
    return datetime.strptime(raw, TS_FORMAT)


def parse_day(raw: str | date) -> date:
    if isinstance(raw, date):
        return raw
    return datetime.strptime(raw.strip(), DATE_FORMAT).date()


def parse_time_of_day(raw: str | time) -> time:
    """Accept HH:MM or HH:MM:SS."""
    if isinstance(raw, time):
        return raw.replace(microsecond=0)
    s = raw.strip()
    fmt = TIME_FORMAT if s.count(":") == 2 else "%H:%M"
    return datetime.strptime(s, fmt).time()
