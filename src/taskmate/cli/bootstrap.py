# src/taskmate/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- builds and validates the notification gateway (fails fast),
- wires stores, gateway and engine into AppState.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from ..config import get_settings
from ..core.ports import Clock, NotificationGateway
from ..core.state import AppState
from ..notify.gateway import build_gateway
from ..tasks.escalation import EscalationEngine
from ..tasks.reminder_ledger import ReminderLedger
from ..tasks.task_store import TaskStore

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    gateway: NotificationGateway | None = None,
    clock: Clock = datetime.now,
) -> AppState:
    """
    Create AppState from the provided settings.

    Keeping settings/gateway injectable makes the app easier to test and avoids
    hidden global config reads. If settings is None, falls back to get_settings().

    Raises ConfigurationError when no usable gateway can be built.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    if gateway is None:
        gateway = build_gateway(settings)

    task_store = TaskStore(settings.db_path)
    ledger = ReminderLedger(settings.db_path)

    engine = EscalationEngine(
        task_store,
        ledger,
        gateway,
        clock=clock,
        stage_dwell=timedelta(minutes=settings.stage_dwell_minutes),
        send_timeout_seconds=settings.send_timeout_seconds,
        max_concurrent_sends=settings.max_concurrent_sends,
        app_name=settings.app_name,
    )

    return AppState(
        settings=settings,
        task_store=task_store,
        ledger=ledger,
        gateway=gateway,
        engine=engine,
    )
