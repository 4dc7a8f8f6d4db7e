# src/taskmate/config.py

"""Centralized settings loaded from environment variables (+ optional .env).

Design goals:
- One Settings object for the whole app (normal "settings layer").
- No secrets required at import time: the gateway validates its own credentials
  when it is built (see notify.gateway.build_gateway).
- Tick periods and dwell/grace windows are configuration, not business logic.
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

ENV_PREFIX = "TASKMATE"


def _k(suffix: str) -> str:
    """Build env var name with the project prefix."""
    return f"{ENV_PREFIX}_{suffix}"


def _env(name: str, default: str = "") -> str:
    v = os.getenv(name)
    return default if v is None else v


def _first_env(*names: str, default: str | None = None) -> str | None:
    for n in names:
        v = os.getenv(n)
        if v is not None and v.strip() != "":
            return v
    return default


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "y", "on"}


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw)
    except ValueError:
        return default


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


def _env_path(name: str, default: Path) -> Path:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    return Path(raw).expanduser()


@dataclass(frozen=True, slots=True)
class Settings:
    # ---- App / logging ----
    app_name: str
    log_level: str

    # ---- Local data paths (ignored by git) ----
    data_dir: Path
    db_path: Path

    # ---- Poller cadence ----
    alert_tick_seconds: float
    end_of_day_tick_seconds: float

    # ---- Escalation windows ----
    stage_dwell_minutes: int
    overdue_grace_minutes: int

    # ---- Dispatch ----
    send_timeout_seconds: float
    max_concurrent_sends: int

    # ---- Connectors ----
    console_enabled: bool
    gateway: str

    # ---- Twilio ----
    twilio_account_sid: str
    twilio_auth_token: str
    twilio_from_number: str
    twilio_base_url: str

    @staticmethod
    def from_env() -> "Settings":
        load_dotenv(override=False)

        app_name = _env(_k("APP_NAME"), "TaskMate Pro")
        log_level = _env(_k("LOG_LEVEL"), "INFO")

        data_dir = _env_path(_k("DATA_DIR"), Path(".local/taskmate"))
        db_path = _env_path(_k("DB_PATH"), data_dir / "taskmate.sqlite3")

        alert_tick_seconds = max(1.0, _env_float(_k("ALERT_TICK_SECONDS"), 60.0))
        end_of_day_tick_seconds = max(1.0, _env_float(_k("END_OF_DAY_TICK_SECONDS"), 1800.0))

        stage_dwell_minutes = max(0, _env_int(_k("STAGE_DWELL_MINUTES"), 10))
        overdue_grace_minutes = max(0, _env_int(_k("OVERDUE_GRACE_MINUTES"), 30))

        send_timeout_seconds = max(1.0, _env_float(_k("SEND_TIMEOUT_SECONDS"), 15.0))
        max_concurrent_sends = max(1, _env_int(_k("MAX_CONCURRENT_SENDS"), 8))

        console_enabled = _env_bool(_k("CONSOLE_ENABLED"), True)
        gateway = _env(_k("GATEWAY"), "twilio").strip().lower()

        # Accept Twilio's own variable names as a fallback.
        twilio_account_sid = (_first_env(_k("TWILIO_ACCOUNT_SID"), "TWILIO_ACCOUNT_SID", default="") or "").strip()
        twilio_auth_token = (_first_env(_k("TWILIO_AUTH_TOKEN"), "TWILIO_AUTH_TOKEN", default="") or "").strip()
        twilio_from_number = (_first_env(_k("TWILIO_PHONE_NUMBER"), "TWILIO_PHONE_NUMBER", default="") or "").strip()
        twilio_base_url = _env(_k("TWILIO_BASE_URL"), "https://api.twilio.com").rstrip("/")

        return Settings(
            app_name=app_name,
            log_level=log_level,
            data_dir=data_dir,
            db_path=db_path,
            alert_tick_seconds=alert_tick_seconds,
            end_of_day_tick_seconds=end_of_day_tick_seconds,
            stage_dwell_minutes=stage_dwell_minutes,
            overdue_grace_minutes=overdue_grace_minutes,
            send_timeout_seconds=send_timeout_seconds,
            max_concurrent_sends=max_concurrent_sends,
            console_enabled=console_enabled,
            gateway=gateway,
            twilio_account_sid=twilio_account_sid,
            twilio_auth_token=twilio_auth_token,
            twilio_from_number=twilio_from_number,
            twilio_base_url=twilio_base_url,
        )


_SETTINGS: Settings | None = None


def get_settings() -> Settings:
    global _SETTINGS
    if _SETTINGS is None:
        _SETTINGS = Settings.from_env()
    return _SETTINGS
