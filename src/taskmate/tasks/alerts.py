# src/taskmate/tasks/alerts.py

"""
Fixed message templates.

The engine only chooses a slot (stage 1/2/3 or end-of-day); the copy lives here.
"""

from __future__ import annotations

from datetime import time

from .task_models import AlertStage

_STAGE_TEMPLATES: dict[AlertStage, str] = {
    AlertStage.FIRST: (
        "⏰ {app} - Alert 1/3\n\n"
        "Hi {user}!\n\n"
        'It\'s time for: "{task}"\n'
        "Scheduled at: {due}\n\n"
        "Complete it now to stay on track!\n\n"
        "- {app}"
    ),
    AlertStage.SECOND: (
        "⚠️ {app} - Reminder 2/3\n\n"
        "Hi {user}!\n\n"
        'You have a pending task: "{task}"\n\n'
        "This is your second reminder. Please complete it soon to avoid it counting as late.\n\n"
        "- {app}"
    ),
    AlertStage.THIRD: (
        "\U0001f6a8 {app} - Final Reminder 3/3\n\n"
        "Hi {user}!\n\n"
        'Task: "{task}"\n\n'
        "This is your final reminder. If you complete it after this, it will be marked as late.\n\n"
        "- {app}"
    ),
}

_END_OF_DAY_TEMPLATE = (
    "\U0001f389 Great job {user}!\n\n"
    "You've completed all your tasks for today!\n\n"
    "Let's build tomorrow's list and keep the momentum going!\n\n"
    "- {app}"
)


def format_due_time(value: time) -> str:
    """14:05:00 -> '2:05 PM'."""
    return value.strftime("%I:%M %p").lstrip("0")


def stage_message(
    stage: AlertStage,
    *,
    user_name: str,
    task_name: str,
    due_time: time,
    app_name: str = "TaskMate Pro",
) -> str:
    # Only stage 1 shows the due time; the others ignore the extra key.
    return _STAGE_TEMPLATES[stage].format(
        app=app_name,
        user=user_name,
        task=task_name,
        due=format_due_time(due_time),
    )


def end_of_day_message(*, user_name: str, app_name: str = "TaskMate Pro") -> str:
    return _END_OF_DAY_TEMPLATE.format(app=app_name, user=user_name)
