# src/taskmate/cli/commands.py

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass
from datetime import date

from ..core.errors import TaskmateError
from ..core.state import AppState
from ..tasks import task_api
from ..tasks.task_models import Task, parse_day
from .runner import SchedulerBackgroundRunner

CommandEmitter = Callable[[str], None]

logger = logging.getLogger(__name__)

_TICK_TIMEOUT_SECONDS = 120.0


@dataclass
class CommandContext:
    state: AppState
    runner: SchedulerBackgroundRunner | None = None
    emit: CommandEmitter | None = None


CommandHandler = Callable[[CommandContext, list[str]], str]


class CommandRegistry:
    """Simple slash-command registry used by the operator console (/help, /task, ...)."""

    def __init__(self) -> None:
        self._handlers: dict[str, CommandHandler] = {}
        self._help: dict[str, str] = {}

    def register(
        self,
        name: str,
        handler: CommandHandler,
        help_text: str,
        aliases: list[str] | None = None,
    ) -> None:
        aliases = aliases or []
        key = name.lower()
        self._handlers[key] = handler
        self._help[key] = help_text
        for alias in aliases:
            self._handlers[alias.lower()] = handler

    def handle(self, ctx: CommandContext, line: str) -> str | None:
        """
        Handle a string like "/command args".
        Returns a reply string or None if not a command.
        """
        if not line.startswith("/"):
            return None

        parts = line[1:].split()
        if not parts:
            return "Empty command. Use /help to list available commands."

        name = parts[0].lower()
        args = parts[1:]

        handler = self._handlers.get(name)
        if not handler:
            return f"Unknown command: /{name}. Use /help to list available commands."

        try:
            return handler(ctx, args)
        except (TaskmateError, ValueError) as e:
            return f"Error: {e}"

    def build_help(self) -> str:
        lines = ["Available commands:"]
        for name, help_text in self._help.items():
            lines.append(f"  /{name} - {help_text}")
        return "\n".join(lines)


registry = CommandRegistry()


def _int_arg(raw: str, what: str) -> int:
    try:
        return int(raw)
    except ValueError:
        raise ValueError(f"{what} must be an integer, got {raw!r}") from None


def _task_line(task: Task) -> str:
    stamps = "/".join(
        s.strftime("%H:%M") if s else "-"
        for s in (task.first_sent_at, task.second_sent_at, task.third_sent_at)
    )
    return (
        f"#{task.id} {task.task_date} {task.task_time.strftime('%H:%M')} "
        f"[{task.status.value}] alerts={task.alert_count} ({stamps}) {task.name}"
    )


def cmd_help(ctx: CommandContext, args: list[str]) -> str:
    return registry.build_help()


def cmd_status(ctx: CommandContext, args: list[str]) -> str:
    s = ctx.state.settings
    running = ctx.runner is not None and ctx.runner.thread.is_alive()
    return (
        "Status:\n"
        f"  Gateway: {getattr(s, 'gateway', '?')}\n"
        f"  Database: {ctx.state.task_store.db_path} ({ctx.state.task_store.count_tasks()} tasks)\n"
        f"  Alert tick: {s.alert_tick_seconds:.0f}s, end-of-day tick: {s.end_of_day_tick_seconds:.0f}s\n"
        f"  Stage dwell: {s.stage_dwell_minutes}min, overdue grace: {s.overdue_grace_minutes}min\n"
        f"  Scheduler: {'running' if running else 'stopped'}"
    )


def cmd_user(ctx: CommandContext, args: list[str]) -> str:
    """
    /user add <phone> <name...>
    """
    if len(args) < 3 or args[0].lower() != "add":
        return "Usage: /user add <phone> <name...>"
    user_id = task_api.register_user(ctx.state, phone=args[1], name=" ".join(args[2:]))
    return f"User #{user_id} added."


def cmd_task(ctx: CommandContext, args: list[str]) -> str:
    """
    /task add <user_id> <YYYY-MM-DD> <HH:MM> <name...>
    /task list <user_id> [YYYY-MM-DD]
    /task rm <user_id> <task_id>
    """
    usage = (
        "Usage:\n"
        "  /task add <user_id> <YYYY-MM-DD> <HH:MM> <name...>\n"
        "  /task list <user_id> [YYYY-MM-DD]\n"
        "  /task rm <user_id> <task_id>"
    )
    if not args:
        return usage

    sub = args[0].lower()

    if sub == "add" and len(args) >= 5:
        task_id = task_api.schedule_task(
            ctx.state,
            user_id=_int_arg(args[1], "user_id"),
            task_date=args[2],
            task_time=args[3],
            name=" ".join(args[4:]),
        )
        return f"Task #{task_id} scheduled."

    if sub == "list" and len(args) >= 2:
        user_id = _int_arg(args[1], "user_id")
        day = parse_day(args[2]) if len(args) >= 3 else None
        tasks = ctx.state.task_store.list_tasks_for_user(user_id, day)
        if not tasks:
            return f"No tasks for user #{user_id}."
        return "\n".join(_task_line(t) for t in tasks)

    if sub in ("rm", "del", "delete") and len(args) >= 3:
        task_api.remove_task(
            ctx.state,
            _int_arg(args[2], "task_id"),
            user_id=_int_arg(args[1], "user_id"),
        )
        return "Task deleted."

    return usage


def cmd_done(ctx: CommandContext, args: list[str]) -> str:
    if len(args) != 2:
        return "Usage: /done <user_id> <task_id>"
    result = task_api.mark_done(
        ctx.state,
        _int_arg(args[1], "task_id"),
        user_id=_int_arg(args[0], "user_id"),
    )
    if result.is_late:
        return f"Task #{result.task_id} completed but marked as late."
    return f"Task #{result.task_id} marked as done on time."


def cmd_board(ctx: CommandContext, args: list[str]) -> str:
    if not args:
        return "Usage: /board <user_id> [YYYY-MM-DD]"
    user_id = _int_arg(args[0], "user_id")
    day = args[1] if len(args) >= 2 else date.today()
    board = task_api.day_board(ctx.state, user_id=user_id, day=day)

    lines = [f"Board for user #{user_id} on {board.day} ({board.total} tasks):"]
    for title, tasks in (
        ("Pending", board.pending),
        ("Overdue", board.overdue),
        ("Done", board.done),
        ("Late", board.late),
    ):
        lines.append(f"  {title}: {len(tasks)}")
        lines.extend(f"    {_task_line(t)}" for t in tasks)
    return "\n".join(lines)


def cmd_tick(ctx: CommandContext, args: list[str]) -> str:
    """Run one alert tick and one end-of-day tick on the scheduler loop."""
    if ctx.runner is None:
        return "Scheduler is not running."

    engine = ctx.state.engine
    alerts = ctx.runner.submit(engine.run_alert_tick(), timeout=_TICK_TIMEOUT_SECONDS)
    eod = ctx.runner.submit(engine.run_end_of_day_tick(), timeout=_TICK_TIMEOUT_SECONDS)
    logger.debug("Manual tick alerts=%s eod=%s", alerts, eod)
    return (
        f"Alerts: candidates={alerts.candidates} sent={alerts.sent} "
        f"stale={alerts.stale} failed={alerts.failed}\n"
        f"End-of-day: candidates={eod.candidates} sent={eod.sent} "
        f"already={eod.stale} failed={eod.failed}"
    )


registry.register("help", cmd_help, help_text="Show available commands.", aliases=["h", "?"])
registry.register("status", cmd_status, help_text="Show gateway, database and tick settings.")
registry.register("user", cmd_user, help_text="Register a user: /user add <phone> <name...>.")
registry.register("task", cmd_task, help_text="Tasks: /task add | /task list | /task rm.")
registry.register("done", cmd_done, help_text="Complete a task: /done <user_id> <task_id>.")
registry.register("board", cmd_board, help_text="Day view: /board <user_id> [YYYY-MM-DD].")
registry.register("tick", cmd_tick, help_text="Run one alert tick and one end-of-day tick now.")
