# tests/test_commands.py

from __future__ import annotations

from taskmate.cli.commands import CommandContext, CommandRegistry, registry
from taskmate.core.state import AppState
from taskmate.tasks.task_models import TaskStatus

from .conftest import T0


def test_command_registry_routes_and_aliases(state: AppState) -> None:
    reg = CommandRegistry()
    called: list[list[str]] = []

    def handler(ctx, args):
        called.append(args)
        if ctx.emit is not None:
            ctx.emit("note")
        return "ok"

    reg.register("a", handler, "a", aliases=["alpha"])
    ctx = CommandContext(state=state, emit=lambda _: None)

    assert reg.handle(ctx, "/a x y") == "ok"
    assert reg.handle(ctx, "/ALPHA") == "ok"
    assert called == [["x", "y"], []]
    assert "/a - a" in reg.build_help()


def test_command_registry_unknown_and_non_command(state: AppState) -> None:
    reg = CommandRegistry()
    ctx = CommandContext(state=state)
    assert reg.handle(ctx, "hello") is None
    assert "Unknown command" in (reg.handle(ctx, "/nope") or "")
    assert "Empty command" in (reg.handle(ctx, "/") or "")


def test_operator_flow(state: AppState) -> None:
    ctx = CommandContext(state=state)

    assert registry.handle(ctx, "/user add +15550001 Ana Lopez") == "User #1 added."
    day = T0.date().isoformat()
    assert registry.handle(ctx, f"/task add 1 {day} 09:00 Take vitamins") == "Task #1 scheduled."

    listing = registry.handle(ctx, f"/task list 1 {day}") or ""
    assert "#1" in listing and "Take vitamins" in listing and "[pending]" in listing

    assert registry.handle(ctx, "/done 1 1") == "Task #1 marked as done on time."
    assert state.task_store.get_task(1).status is TaskStatus.DONE

    board = registry.handle(ctx, f"/board 1 {day}") or ""
    assert "Done: 1" in board


def test_errors_become_replies(state: AppState) -> None:
    ctx = CommandContext(state=state)
    registry.handle(ctx, "/user add +1 Ana")

    assert (registry.handle(ctx, "/done 1 99") or "").startswith("Error: task 99 not found")
    assert (registry.handle(ctx, "/task add x 2024-03-14 09:00 a") or "").startswith("Error: user_id must be an integer")
    assert (registry.handle(ctx, "/task add 1 2024-13-40 09:00 a") or "").startswith("Error:")
    assert (registry.handle(ctx, "/task") or "").startswith("Usage:")


def test_tick_requires_runner(state: AppState) -> None:
    assert registry.handle(CommandContext(state=state), "/tick") == "Scheduler is not running."
