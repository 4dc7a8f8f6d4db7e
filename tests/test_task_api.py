# tests/test_task_api.py

from __future__ import annotations

from datetime import date, time, timedelta

import pytest

from taskmate.core.errors import TaskNotFound, Unauthorized
from taskmate.core.state import AppState
from taskmate.tasks import task_api
from taskmate.tasks.task_models import AlertStage, TaskStatus

from .conftest import T0
from .fakes import FakeClock


def test_schedule_task_parses_strings(state: AppState) -> None:
    user_id = task_api.register_user(state, name="Ana", phone="+1")
    task_id = task_api.schedule_task(
        state, user_id=user_id, name="  Pay rent ", task_date="2024-03-14", task_time="17:30"
    )

    task = state.task_store.get_task(task_id)
    assert task.name == "Pay rent"
    assert task.task_date == date(2024, 3, 14)
    assert task.task_time == time(17, 30)
    assert task.status is TaskStatus.PENDING


def test_schedule_task_validates_input(state: AppState) -> None:
    user_id = task_api.register_user(state, name="Ana", phone="+1")

    with pytest.raises(ValueError):
        task_api.schedule_task(state, user_id=user_id, name=" ", task_date="2024-03-14", task_time="10:00")
    with pytest.raises(ValueError):
        task_api.schedule_task(state, user_id=user_id + 50, name="x", task_date="2024-03-14", task_time="10:00")
    with pytest.raises(ValueError):
        task_api.schedule_task(state, user_id=user_id, name="x", task_date="14/03/2024", task_time="10:00")


def test_edit_task_keeps_escalation_fields(state: AppState) -> None:
    user_id = task_api.register_user(state, name="Ana", phone="+1")
    task_id = task_api.schedule_task(state, user_id=user_id, name="Call mom", task_date=T0.date(), task_time=time(9, 0))
    state.task_store.advance_alert(task_id, AlertStage.FIRST, at=T0, dwell=timedelta(minutes=10))

    task = task_api.edit_task(state, task_id, user_id=user_id, name="Call dad", task_time="11:00")

    assert task.name == "Call dad"
    assert task.task_time == time(11, 0)
    assert task.alert_count == 1
    assert task.first_sent_at == T0


def test_edit_and_remove_check_ownership(state: AppState) -> None:
    owner = task_api.register_user(state, name="Ana", phone="+1")
    other = task_api.register_user(state, name="Ben", phone="+2")
    task_id = task_api.schedule_task(state, user_id=owner, name="x", task_date=T0.date(), task_time="10:00")

    with pytest.raises(Unauthorized):
        task_api.edit_task(state, task_id, user_id=other, name="y")
    with pytest.raises(Unauthorized):
        task_api.remove_task(state, task_id, user_id=other)
    with pytest.raises(TaskNotFound):
        task_api.remove_task(state, task_id + 1, user_id=owner)

    task_api.remove_task(state, task_id, user_id=owner)
    assert state.task_store.get_task(task_id) is None


def test_mark_done_uses_clock(state: AppState, clock: FakeClock) -> None:
    user_id = task_api.register_user(state, name="Ana", phone="+1")
    task_id = task_api.schedule_task(state, user_id=user_id, name="x", task_date=T0.date(), task_time="10:00")

    result = task_api.mark_done(state, task_id, user_id=user_id, clock=clock)
    assert result.status is TaskStatus.DONE
    assert result.completed_at == T0


def test_day_board_groups_tasks(state: AppState, clock: FakeClock) -> None:
    user_id = task_api.register_user(state, name="Ana", phone="+1")
    day = T0.date()
    done_id = task_api.schedule_task(state, user_id=user_id, name="done", task_date=day, task_time="07:00")
    late_id = task_api.schedule_task(state, user_id=user_id, name="late", task_date=day, task_time="07:30")
    task_api.schedule_task(state, user_id=user_id, name="overdue", task_date=day, task_time="08:00")
    task_api.schedule_task(state, user_id=user_id, name="soon", task_date=day, task_time="08:45")
    task_api.schedule_task(state, user_id=user_id, name="later", task_date=day, task_time="18:00")
    task_api.schedule_task(state, user_id=user_id, name="other day", task_date=day + timedelta(days=1), task_time="08:00")

    task_api.mark_done(state, done_id, user_id=user_id, clock=clock)
    state.task_store.conditional_update(late_id, expected={}, changes={"alert_count": 3})
    task_api.mark_done(state, late_id, user_id=user_id, clock=clock)

    board = task_api.day_board(state, user_id=user_id, day=day, now=T0)

    assert [t.name for t in board.done] == ["done"]
    assert [t.name for t in board.late] == ["late"]
    # 08:00 + 30 min grace < 09:00; 08:45 + 30 min is still ahead.
    assert [t.name for t in board.overdue] == ["overdue"]
    assert [t.name for t in board.pending] == ["soon", "later"]
    assert board.total == 5

    # Overdue is display-only: nothing persisted.
    assert all(t.status is TaskStatus.PENDING for t in board.overdue)
