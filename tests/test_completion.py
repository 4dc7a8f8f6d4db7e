# tests/test_completion.py

from __future__ import annotations

from datetime import time

import pytest

from taskmate.core.errors import TaskNotFound
from taskmate.core.state import AppState
from taskmate.tasks.completion import complete, derive_final_status
from taskmate.tasks.task_models import TaskStatus

from .conftest import T0
from .fakes import FakeClock, FakeGateway


@pytest.mark.parametrize(
    ("alert_count", "expected"),
    [(0, TaskStatus.DONE), (1, TaskStatus.DONE), (2, TaskStatus.DONE), (3, TaskStatus.LATE)],
)
def test_derive_final_status(alert_count: int, expected: TaskStatus) -> None:
    assert derive_final_status(alert_count) is expected


def _task(state: AppState) -> tuple[int, int]:
    user_id = state.task_store.add_user(name="Ana", phone="+1")
    task_id = state.task_store.add_task(user_id=user_id, name="Walk", task_date=T0.date(), task_time=time(9, 0))
    return user_id, task_id


@pytest.mark.asyncio
async def test_completed_after_second_alert_is_done(state: AppState, clock: FakeClock) -> None:
    user_id, task_id = _task(state)
    await state.engine.run_alert_tick()
    clock.advance(minutes=10)
    await state.engine.run_alert_tick()

    result = complete(state.task_store, task_id, user_id, clock=clock)

    assert result.status is TaskStatus.DONE
    assert result.alert_count == 2
    assert result.is_late is False
    assert result.completed_at == clock.now


@pytest.mark.asyncio
async def test_completed_after_third_alert_is_late(state: AppState, clock: FakeClock) -> None:
    user_id, task_id = _task(state)
    for _ in range(3):
        await state.engine.run_alert_tick()
        clock.advance(minutes=10)

    result = complete(state.task_store, task_id, user_id, clock=clock)

    assert result.is_late
    assert state.task_store.get_task(task_id).status is TaskStatus.LATE


@pytest.mark.asyncio
async def test_no_alerts_after_completion(state: AppState, gateway: FakeGateway, clock: FakeClock) -> None:
    user_id, task_id = _task(state)
    await state.engine.run_alert_tick()
    complete(state.task_store, task_id, user_id, clock=clock)

    clock.advance(hours=1)
    report = await state.engine.run_alert_tick()

    assert report.candidates == 0
    assert len(gateway.sent) == 1
    assert state.task_store.get_task(task_id).alert_count == 1


def test_completion_is_irreversible(state: AppState, clock: FakeClock) -> None:
    user_id, task_id = _task(state)
    complete(state.task_store, task_id, user_id, clock=clock)

    with pytest.raises(TaskNotFound):
        complete(state.task_store, task_id, user_id, clock=clock)
    assert state.task_store.get_task(task_id).status is TaskStatus.DONE


def test_completion_unknown_or_foreign_task(state: AppState, clock: FakeClock) -> None:
    user_id, task_id = _task(state)

    with pytest.raises(TaskNotFound):
        complete(state.task_store, task_id + 999, user_id, clock=clock)
    with pytest.raises(TaskNotFound):
        complete(state.task_store, task_id, user_id + 1, clock=clock)
