# tests/conftest.py

from __future__ import annotations

from datetime import datetime
from pathlib import Path
from types import SimpleNamespace

import pytest

from taskmate.cli.bootstrap import create_initial_state
from taskmate.core.state import AppState
from taskmate.tasks.task_store import TaskStore

from .fakes import FakeClock, FakeGateway

# A fixed "today" keeps date-dependent queries deterministic.
T0 = datetime(2024, 3, 14, 9, 0, 0)


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with AppState and core modules.

    We intentionally use a SimpleNamespace rather than importing real config,
    to keep unit tests isolated and deterministic.
    """
    return SimpleNamespace(
        app_name="TaskMate Pro",
        log_level="DEBUG",
        # Paths (tmp per test run)
        data_dir=tmp_path,
        db_path=tmp_path / "taskmate.sqlite3",
        # Cadence / windows
        alert_tick_seconds=60.0,
        end_of_day_tick_seconds=1800.0,
        stage_dwell_minutes=10,
        overdue_grace_minutes=30,
        # Dispatch
        send_timeout_seconds=2.0,
        max_concurrent_sends=4,
        # Connectors
        console_enabled=False,
        gateway="console",
        twilio_account_sid="",
        twilio_auth_token="",
        twilio_from_number="",
        twilio_base_url="https://api.twilio.test",
    )


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock(T0)


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def state(settings: SimpleNamespace, gateway: FakeGateway, clock: FakeClock) -> AppState:
    """
    AppState wired with deterministic fakes.

    NOTE: We keep the real SQLite stores here (TaskStore/ReminderLedger) because
    their conditional writes are part of what we want to test.
    """
    return create_initial_state(settings=settings, gateway=gateway, clock=clock)


@pytest.fixture()
def store(state: AppState) -> TaskStore:
    return state.task_store
