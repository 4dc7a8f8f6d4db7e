# src/taskmate/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The escalation engine depends on Protocols instead of concrete implementations.
This keeps the gateway/storage swappable and makes testing easier.
"""

from collections.abc import Awaitable, Mapping
from dataclasses import dataclass
from datetime import date, datetime, time, timedelta
from typing import Any, Protocol


@dataclass(slots=True, frozen=True)
class SendResult:
    """Normalized gateway outcome: success, or failure with a reason."""

    success: bool
    reason: str | None = None
    message_id: str | None = None

    @classmethod
    def ok(cls, message_id: str | None = None) -> SendResult:
        return cls(success=True, message_id=message_id)

    @classmethod
    def failed(cls, reason: str) -> SendResult:
        return cls(success=False, reason=reason)


class NotificationGateway(Protocol):
    """
    Outbound text transport (SMS or similar).

    One synchronous attempt per call: no retries, no queuing. Retry policy lives
    in the engine's next-tick re-evaluation.
    """

    def send(self, address: str, text: str) -> Awaitable[SendResult]: ...


class Clock(Protocol):
    def __call__(self) -> datetime: ...


class TaskRepo(Protocol):
    # Escalation API
    def find_stage_candidates(
            self,
            stage: Any,
            *,
            now: datetime,
            dwell: timedelta,
            limit: int = 500,
    ) -> list[tuple[Any, Any]]: ...
    def advance_alert(self, task_id: int, stage: Any, *, at: datetime, dwell: timedelta) -> bool: ...

    # End-of-day API
    def list_users_all_resolved(self, day: date) -> list[Any]: ...

    # Completion / CRUD API
    def complete_task(self, task_id: int, *, user_id: int, at: datetime) -> Any | None: ...
    def get_task(self, task_id: int) -> Any | None: ...
    def get_user(self, user_id: int) -> Any | None: ...
    def add_user(self, *, name: str, phone: str, now: datetime | None = None) -> int: ...
    def add_task(
            self,
            *,
            user_id: int,
            name: str,
            task_date: date,
            task_time: time,
            description: str = "",
            now: datetime | None = None,
    ) -> int: ...
    def list_tasks_for_user(self, user_id: int, day: date | None = None) -> list[Any]: ...
    def conditional_update(
            self,
            task_id: int,
            *,
            expected: Mapping[str, Any],
            changes: Mapping[str, Any],
            now: datetime | None = None,
    ) -> bool: ...
    def delete_task(self, task_id: int, *, user_id: int) -> bool: ...


class ReminderRepo(Protocol):
    def try_claim(self, user_id: int, day: date, *, now: datetime | None = None) -> bool: ...
    def has_claim(self, user_id: int, day: date) -> bool: ...
