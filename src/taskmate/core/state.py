# src/taskmate/core/state.py

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from ..tasks.escalation import EscalationEngine
from ..tasks.reminder_ledger import ReminderLedger
from ..tasks.task_store import TaskStore
from .ports import NotificationGateway


@dataclass
class AppState:
    # Store Settings on the state for easy access in other modules later.
    settings: Any

    task_store: TaskStore
    ledger: ReminderLedger
    gateway: NotificationGateway
    engine: EscalationEngine
