# src/taskmate/tasks/escalation.py

from __future__ import annotations

"""
Escalation engine.

One evaluation pass ("tick") per cadence:
- alert tick: for stages 1..3, select eligible tasks, send the stage message,
  then commit the stage with a conditional write;
- end-of-day tick: for users whose tasks for today are all resolved, claim the
  (user, date) ledger row first and only then send the congratulation.

Failures are per row: one task's delivery failure or crash never aborts the
rest of the batch. A failed send leaves the row untouched, so the next tick
retries it.
"""

import asyncio
import logging
from collections.abc import Awaitable
from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import Enum

from ..core.ports import Clock, NotificationGateway, ReminderRepo, TaskRepo
from ..notify.gateway import deliver
from .alerts import end_of_day_message, stage_message
from .task_models import AlertStage, Task, User

logger = logging.getLogger(__name__)


class StageOutcome(str, Enum):
    SENT = "sent"
    STALE = "stale"  # conditional write not applied / ledger already claimed
    DELIVERY_FAILED = "delivery_failed"


@dataclass(slots=True)
class TickReport:
    """What a tick did: candidates seen, sends attempted and per-row outcomes."""

    candidates: int = 0
    attempted: int = 0
    sent: int = 0
    stale: int = 0
    failed: int = 0

    def record(self, outcome: StageOutcome, *, attempted_send: bool = True) -> None:
        if attempted_send:
            self.attempted += 1
        if outcome is StageOutcome.SENT:
            self.sent += 1
        elif outcome is StageOutcome.STALE:
            self.stale += 1
        else:
            self.failed += 1

    def merge(self, other: TickReport) -> TickReport:
        self.candidates += other.candidates
        self.attempted += other.attempted
        self.sent += other.sent
        self.stale += other.stale
        self.failed += other.failed
        return self


class EscalationEngine:
    """
    Alert-escalation and end-of-day state machine.

    The engine reads through `task_store`, sends through `gateway`, and commits
    every state advance as an atomic conditional write. It never changes a
    task's status; lateness is decided at completion time.
    """

    def __init__(
        self,
        task_store: TaskRepo,
        ledger: ReminderRepo,
        gateway: NotificationGateway,
        *,
        clock: Clock = datetime.now,
        stage_dwell: timedelta = timedelta(minutes=10),
        send_timeout_seconds: float = 15.0,
        max_concurrent_sends: int = 8,
        batch_limit: int = 500,
        app_name: str = "TaskMate Pro",
    ) -> None:
        self._store = task_store
        self._ledger = ledger
        self._gateway = gateway
        self._clock = clock
        self._dwell = stage_dwell
        self._send_timeout = float(send_timeout_seconds)
        self._max_concurrent = max(1, int(max_concurrent_sends))
        self._batch_limit = int(batch_limit)
        self._app_name = app_name

    @property
    def gateway(self) -> NotificationGateway:
        return self._gateway

    # ---- alert stages ----

    async def run_alert_tick(self) -> TickReport:
        """Evaluate stages 1, 2 and 3 once."""
        report = TickReport()
        for stage in AlertStage:
            report.merge(await self.run_stage(stage))
        return report

    async def run_stage(self, stage: AlertStage) -> TickReport:
        report = TickReport()
        now = self._clock()

        try:
            candidates = self._store.find_stage_candidates(
                stage, now=now, dwell=self._dwell, limit=self._batch_limit
            )
        except Exception:
            logger.exception("find_stage_candidates failed stage=%s", int(stage))
            return report

        report.candidates = len(candidates)
        if not candidates:
            return report

        sem = asyncio.Semaphore(self._max_concurrent)

        async def one(task: Task, user: User) -> StageOutcome:
            async with sem:
                return await self._isolated(
                    self._advance_one(stage, task, user),
                    f"stage={int(stage)} task_id={task.id}",
                )

        outcomes = await asyncio.gather(*(one(t, u) for t, u in candidates))
        for outcome in outcomes:
            report.record(outcome)

        if report.sent or report.failed:
            logger.info(
                "Stage %s tick: candidates=%s sent=%s stale=%s failed=%s",
                int(stage),
                report.candidates,
                report.sent,
                report.stale,
                report.failed,
            )
        return report

    async def _advance_one(self, stage: AlertStage, task: Task, user: User) -> StageOutcome:
        text = stage_message(
            stage,
            user_name=user.name,
            task_name=task.name,
            due_time=task.task_time,
            app_name=self._app_name,
        )
        result = await deliver(self._gateway, user.phone, text, timeout_seconds=self._send_timeout)
        if not result.success:
            logger.warning(
                "Stage %s delivery failed task_id=%s user=%s: %s (retry next tick)",
                int(stage),
                task.id,
                user.id,
                result.reason,
            )
            return StageOutcome.DELIVERY_FAILED

        applied = self._store.advance_alert(task.id, stage, at=self._clock(), dwell=self._dwell)
        if not applied:
            logger.debug("Stage %s not applied task_id=%s (row changed since selection)", int(stage), task.id)
            return StageOutcome.STALE

        logger.info('Stage %s sent task_id=%s "%s"', int(stage), task.id, task.name)
        return StageOutcome.SENT

    # ---- end of day ----

    async def run_end_of_day_tick(self) -> TickReport:
        """
        Congratulate each user whose tasks for today are all resolved, at most
        once per (user, date).

        Claim before send: a send that fails after a successful claim is a
        missed reminder for that day, never a duplicate.
        """
        report = TickReport()
        now = self._clock()
        day = now.date()

        try:
            users = self._store.list_users_all_resolved(day)
        except Exception:
            logger.exception("list_users_all_resolved failed date=%s", day)
            return report

        report.candidates = len(users)
        for user in users:
            outcome, attempted = await self._end_of_day_one(user, now)
            report.record(outcome, attempted_send=attempted)

        if report.sent or report.failed:
            logger.info(
                "End-of-day tick %s: candidates=%s sent=%s already=%s failed=%s",
                day,
                report.candidates,
                report.sent,
                report.stale,
                report.failed,
            )
        return report

    async def _end_of_day_one(self, user: User, now: datetime) -> tuple[StageOutcome, bool]:
        day = now.date()
        try:
            if not self._ledger.try_claim(user.id, day, now=now):
                logger.debug("End-of-day reminder already claimed user=%s date=%s", user.id, day)
                return StageOutcome.STALE, False
        except Exception:
            logger.exception("Ledger claim failed user=%s date=%s", user.id, day)
            return StageOutcome.DELIVERY_FAILED, False

        text = end_of_day_message(user_name=user.name, app_name=self._app_name)
        result = await deliver(self._gateway, user.phone, text, timeout_seconds=self._send_timeout)
        if not result.success:
            logger.warning(
                "End-of-day reminder lost user=%s date=%s: %s (claimed, not retried)",
                user.id,
                day,
                result.reason,
            )
            return StageOutcome.DELIVERY_FAILED, True

        logger.info("End-of-day reminder sent user=%s date=%s", user.id, day)
        return StageOutcome.SENT, True

    @staticmethod
    async def _isolated(coro: Awaitable[StageOutcome], what: str) -> StageOutcome:
        try:
            return await coro
        except Exception:
            logger.exception("Escalation step crashed (%s)", what)
            return StageOutcome.DELIVERY_FAILED
