# src/taskmate/tasks/completion.py

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from ..core.errors import TaskNotFound
from ..core.ports import Clock, TaskRepo
from .task_models import MAX_ALERT_COUNT, TaskStatus

logger = logging.getLogger(__name__)


@dataclass(slots=True, frozen=True)
class CompletionResult:
    task_id: int
    status: TaskStatus
    completed_at: datetime
    alert_count: int

    @property
    def is_late(self) -> bool:
        return self.status is TaskStatus.LATE


def derive_final_status(alert_count: int) -> TaskStatus:
    """Completed after the final (third) alert -> late; otherwise done."""
    return TaskStatus.LATE if alert_count >= MAX_ALERT_COUNT else TaskStatus.DONE


def complete(
    store: TaskRepo,
    task_id: int,
    user_id: int,
    *,
    clock: Clock = datetime.now,
) -> CompletionResult:
    """
    Mark a pending task as finished, irreversibly.

    The store applies derive_final_status inside one conditional UPDATE, so an
    in-flight third alert either lands before (-> late) or is rejected after
    (the escalation write no longer matches status='pending').

    Raises TaskNotFound if no pending task with that id belongs to the user.
    """
    task = store.complete_task(task_id, user_id=user_id, at=clock())
    if task is None:
        raise TaskNotFound(task_id, user_id)

    logger.info("Task %s -> %s (alert_count=%s)", task.id, task.status.value, task.alert_count)
    return CompletionResult(
        task_id=task.id,
        status=task.status,
        completed_at=task.completed_at or clock(),
        alert_count=task.alert_count,
    )
