# src/taskmate/core/errors.py

"""
Exceptions that cross module boundaries.

Delivery failures and stale conditional writes are NOT exceptions: the engine
receives them as values (SendResult / bool) and branches on them.
"""

from __future__ import annotations


class TaskmateError(Exception):
    """Base class for taskmate errors."""


class ConfigurationError(TaskmateError):
    """Missing or invalid configuration (fatal at start-up)."""


class TaskNotFound(TaskmateError):
    """No matching task for this caller (or, for completion, no pending one)."""

    def __init__(self, task_id: int, user_id: int | None = None) -> None:
        self.task_id = task_id
        self.user_id = user_id
        super().__init__(f"task {task_id} not found")


class Unauthorized(TaskmateError):
    """The task exists but belongs to another user."""

    def __init__(self, task_id: int, user_id: int) -> None:
        self.task_id = task_id
        self.user_id = user_id
        super().__init__(f"task {task_id} is not owned by user {user_id}")
