# src/taskmate/tasks/task_api.py

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, datetime, time, timedelta

from ..core.errors import TaskNotFound, Unauthorized
from ..core.ports import Clock
from ..core.state import AppState
from .completion import CompletionResult, complete
from .task_models import Task, TaskStatus, is_overdue, parse_day, parse_time_of_day

logger = logging.getLogger(__name__)


def register_user(state: AppState, *, name: str, phone: str) -> int:
    user_id = state.task_store.add_user(name=name, phone=phone)
    logger.info("User registered id=%s", user_id)
    return user_id


def schedule_task(
    state: AppState,
    *,
    user_id: int,
    name: str,
    task_date: str | date,
    task_time: str | time,
    description: str = "",
) -> int:
    """
    Create a pending task (alert_count=0, no stamps).
    Accepts YYYY-MM-DD / HH:MM[:SS] strings or date/time objects.
    """
    if not name or not name.strip():
        raise ValueError("Task name, date, and time are required")
    if state.task_store.get_user(user_id) is None:
        raise ValueError(f"unknown user {user_id}")

    task_id = state.task_store.add_task(
        user_id=user_id,
        name=name,
        description=description,
        task_date=parse_day(task_date),
        task_time=parse_time_of_day(task_time),
    )
    logger.info("Task scheduled id=%s user=%s", task_id, user_id)
    return task_id


def _owned_task(state: AppState, task_id: int, user_id: int) -> Task:
    task = state.task_store.get_task(task_id)
    if task is None:
        raise TaskNotFound(task_id, user_id)
    if task.user_id != user_id:
        raise Unauthorized(task_id, user_id)
    return task


def edit_task(
    state: AppState,
    task_id: int,
    *,
    user_id: int,
    name: str | None = None,
    description: str | None = None,
    task_date: str | date | None = None,
    task_time: str | time | None = None,
) -> Task:
    """
    Edit content/schedule fields. Status is not editable here (see mark_done),
    and escalation fields are never reset.
    """
    _owned_task(state, task_id, user_id)

    changes: dict[str, object] = {}
    if name is not None:
        if not name.strip():
            raise ValueError("name cannot be empty")
        changes["name"] = name.strip()
    if description is not None:
        changes["description"] = description.strip()
    if task_date is not None:
        changes["task_date"] = parse_day(task_date)
    if task_time is not None:
        changes["task_time"] = parse_time_of_day(task_time)

    if changes and not state.task_store.conditional_update(
        task_id, expected={"user_id": user_id}, changes=changes
    ):
        # Deleted between the ownership check and the write.
        raise TaskNotFound(task_id, user_id)

    task = state.task_store.get_task(task_id)
    if task is None:
        raise TaskNotFound(task_id, user_id)
    return task


def remove_task(state: AppState, task_id: int, *, user_id: int) -> None:
    _owned_task(state, task_id, user_id)
    if not state.task_store.delete_task(task_id, user_id=user_id):
        raise TaskNotFound(task_id, user_id)
    logger.info("Task deleted id=%s user=%s", task_id, user_id)


def mark_done(
    state: AppState,
    task_id: int,
    *,
    user_id: int,
    clock: Clock = datetime.now,
) -> CompletionResult:
    return complete(state.task_store, task_id, user_id, clock=clock)


@dataclass(slots=True)
class DayBoard:
    """Per-day view for presentation layers. `overdue` is advisory only."""

    day: date
    pending: list[Task] = field(default_factory=list)
    overdue: list[Task] = field(default_factory=list)
    done: list[Task] = field(default_factory=list)
    late: list[Task] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.pending) + len(self.overdue) + len(self.done) + len(self.late)


def day_board(
    state: AppState,
    *,
    user_id: int,
    day: str | date,
    now: datetime | None = None,
) -> DayBoard:
    now = now or datetime.now()
    grace = timedelta(minutes=int(getattr(state.settings, "overdue_grace_minutes", 30)))
    board = DayBoard(day=parse_day(day))

    for task in sorted(state.task_store.list_tasks_for_user(user_id, board.day), key=lambda t: t.task_time):
        if task.status is TaskStatus.DONE:
            board.done.append(task)
        elif task.status is TaskStatus.LATE:
            board.late.append(task)
        elif is_overdue(task, now, grace):
            board.overdue.append(task)
        else:
            board.pending.append(task)
    return board
