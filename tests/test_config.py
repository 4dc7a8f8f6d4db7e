# tests/test_config.py

from __future__ import annotations

from pathlib import Path

from taskmate.config import Settings


def test_settings_defaults(monkeypatch) -> None:
    for name in (
        "TASKMATE_ALERT_TICK_SECONDS",
        "TASKMATE_END_OF_DAY_TICK_SECONDS",
        "TASKMATE_STAGE_DWELL_MINUTES",
        "TASKMATE_DATA_DIR",
        "TASKMATE_DB_PATH",
    ):
        monkeypatch.delenv(name, raising=False)

    s = Settings.from_env()

    assert s.alert_tick_seconds == 60.0
    assert s.end_of_day_tick_seconds == 1800.0
    assert s.stage_dwell_minutes == 10
    assert s.db_path == Path(".local/taskmate") / "taskmate.sqlite3"


def test_settings_env_overrides_and_twilio_fallback(monkeypatch, tmp_path: Path) -> None:
    monkeypatch.setenv("TASKMATE_DATA_DIR", str(tmp_path))
    monkeypatch.delenv("TASKMATE_DB_PATH", raising=False)
    monkeypatch.setenv("TASKMATE_STAGE_DWELL_MINUTES", "5")
    monkeypatch.setenv("TASKMATE_ALERT_TICK_SECONDS", "not-a-number")
    monkeypatch.setenv("TASKMATE_GATEWAY", "Console")
    monkeypatch.setenv("TASKMATE_CONSOLE_ENABLED", "no")
    monkeypatch.delenv("TASKMATE_TWILIO_ACCOUNT_SID", raising=False)
    monkeypatch.setenv("TWILIO_ACCOUNT_SID", "AC999")

    s = Settings.from_env()

    assert s.db_path == tmp_path / "taskmate.sqlite3"
    assert s.stage_dwell_minutes == 5
    assert s.alert_tick_seconds == 60.0
    assert s.gateway == "console"
    assert s.console_enabled is False
    assert s.twilio_account_sid == "AC999"
