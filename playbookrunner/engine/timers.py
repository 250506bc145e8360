"""Schedule timer manager: one live timer per active schedule.

Each armed schedule owns a single asyncio task that sleeps until the
schedule's ``next_run`` and then fires it. Firing appends a system update
to the run's ledger, persists the recomputed ``next_run`` and re-arms.

Timers are volatile, so ``next_run`` is always persisted and a periodic
reconciliation pass re-arms every active schedule that is due soon and has
no live timer. That pass also runs on ``start()``, which recovers pending
fires after a process restart.

Per-run locks serialize "read run -> append -> persist -> re-arm" against
step completion, archival and deletion of the same run.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta

from playbookrunner.clock import Clock, SystemClock
from playbookrunner.engine.prompts import PromptResolver
from playbookrunner.engine.recurrence import next_after_fire
from playbookrunner.infra.db.runs import RunRepo
from playbookrunner.infra.db.schedules import ScheduleRepo
from playbookrunner.infra.signal.client import NotificationSink
from playbookrunner.models.playbook import (
    SYSTEM_ACTOR,
    PlaybookRun,
    PlaybookSchedule,
    PlaybookUpdate,
)
from playbookrunner.services.ledger import UpdateLedger

logger = logging.getLogger(__name__)


@dataclass
class _TimerHandle:
    run_id: str
    schedule_id: str
    due: datetime
    task: asyncio.Task | None = None
    firing: bool = False


class ScheduleTimerManager:
    """Owns the timer lifecycle for recurring update schedules."""

    def __init__(
        self,
        run_repo: RunRepo,
        schedule_repo: ScheduleRepo,
        ledger: UpdateLedger,
        prompts: PromptResolver,
        notifier: NotificationSink | None = None,
        clock: Clock | None = None,
        poll_interval: float = 30.0,
    ) -> None:
        self._runs = run_repo
        self._schedules = schedule_repo
        self._ledger = ledger
        self._prompts = prompts
        self._notifier = notifier
        self._clock = clock or SystemClock()
        self._poll_interval = poll_interval
        self._handles: dict[str, _TimerHandle] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._reconcile_task: asyncio.Task | None = None

    # --- Introspection ---

    def run_lock(self, run_id: str) -> asyncio.Lock:
        """Lock guarding all mutations of one run."""
        lock = self._locks.get(run_id)
        if lock is None:
            lock = self._locks[run_id] = asyncio.Lock()
        return lock

    def is_armed(self, schedule_id: str) -> bool:
        return schedule_id in self._handles

    def armed_schedule_ids(self, run_id: str | None = None) -> set[str]:
        return {
            sid for sid, handle in self._handles.items()
            if run_id is None or handle.run_id == run_id
        }

    @property
    def is_running(self) -> bool:
        return self._reconcile_task is not None and not self._reconcile_task.done()

    # --- Arm / disarm ---

    def arm(self, run_id: str, schedule: PlaybookSchedule) -> bool:
        """Register a single-shot timer for *schedule*, replacing any existing one."""
        if not schedule.id or schedule.next_run is None or not schedule.active:
            return False
        self.disarm(schedule.id)

        delay = max(0.0, (schedule.next_run - self._clock.now()).total_seconds())
        handle = _TimerHandle(run_id=run_id, schedule_id=schedule.id, due=schedule.next_run)
        handle.task = asyncio.create_task(
            self._wait_and_fire(handle, delay), name=f"playbook-schedule-{schedule.id}"
        )
        self._handles[schedule.id] = handle
        logger.debug(
            "Armed schedule %s for run %s (due %s, in %.1fs)",
            schedule.id, run_id, schedule.next_run.isoformat(), delay,
        )
        return True

    def disarm(self, schedule_id: str) -> bool:
        """Cancel a schedule's timer.

        A timer that is already firing is not cancelled; it loses its armed
        status and the fire path drops its result.
        """
        handle = self._handles.pop(schedule_id, None)
        if handle is None:
            return False
        task = handle.task
        if task is not None and not handle.firing and task is not asyncio.current_task():
            task.cancel()
        logger.debug("Disarmed schedule %s", schedule_id)
        return True

    def disarm_all(self, run_id: str) -> int:
        """Cancel every timer belonging to *run_id*. Schedule records are untouched."""
        schedule_ids = self.armed_schedule_ids(run_id)
        for schedule_id in schedule_ids:
            self.disarm(schedule_id)
        if schedule_ids:
            logger.info("Disarmed %d schedule(s) for run %s", len(schedule_ids), run_id)
        return len(schedule_ids)

    async def _wait_and_fire(self, handle: _TimerHandle, delay: float) -> None:
        try:
            if delay > 0:
                await asyncio.sleep(delay)
            if self._handles.get(handle.schedule_id) is not handle:
                return
            handle.firing = True
            await self.fire_scheduled_update(handle.run_id, handle.schedule_id, handle=handle)
        except asyncio.CancelledError:
            pass
        except Exception:
            logger.exception("Scheduled update %s failed", handle.schedule_id)
        finally:
            if self._handles.get(handle.schedule_id) is handle:
                del self._handles[handle.schedule_id]

    # --- Firing ---

    async def fire_scheduled_update(
        self,
        run_id: str,
        schedule_id: str,
        handle: _TimerHandle | None = None,
    ) -> PlaybookUpdate | None:
        """Fire one schedule: record an update, reschedule and notify.

        Returns the recorded update, or None when the fire was stale (run no
        longer active, schedule gone or disarmed meanwhile).
        """
        schedule = await self._schedules.find_by_id(schedule_id)
        run = await self._runs.find_by_id(run_id)
        if schedule is None or not schedule.active or run is None or not run.is_active:
            logger.debug("Stale fire for schedule %s on run %s", schedule_id, run_id)
            return None

        # Lookup happens outside the lock so archival never waits on it
        content = await self._prompts.resolve(schedule.update_prompt)

        async with self.run_lock(run_id):
            if handle is not None and self._handles.get(schedule_id) is not handle:
                logger.debug("Schedule %s was disarmed while firing", schedule_id)
                return None
            run = await self._runs.find_by_id(run_id)
            schedule = await self._schedules.find_by_id(schedule_id)
            if schedule is None or not schedule.active or run is None or not run.is_active:
                logger.debug("Stale fire for schedule %s on run %s", schedule_id, run_id)
                return None

            fired_at = self._clock.now()
            update = await self._ledger.append(
                run_id=run_id,
                step_id=run.current_step_id,
                content=content,
                created_by=SYSTEM_ACTOR,
                created_at=fired_at,
            )

            next_run = next_after_fire(schedule, fired_at)
            schedule = replace(
                schedule,
                last_run=fired_at,
                next_run=next_run if next_run is not None else schedule.next_run,
                active=next_run is not None,
            )
            await self._schedules.save(schedule)
            if next_run is not None:
                self.arm(run_id, schedule)
                logger.info(
                    "Fired schedule %s for run %s, next at %s",
                    schedule_id, run_id, next_run.isoformat(),
                )
            else:
                logger.info("Fired schedule %s for run %s, no further occurrence", schedule_id, run_id)

        if schedule.notify_participants:
            await self._notify_participants(run, update)
        return update

    async def _notify_participants(self, run: PlaybookRun, update: PlaybookUpdate) -> None:
        if self._notifier is None or not run.participants:
            return
        message = f"[{run.name}] {update.content}"
        for participant in run.participants:
            try:
                ok = await self._notifier.notify(participant, message)
            except Exception:
                logger.warning("Notification to %s failed", participant, exc_info=True)
                continue
            if not ok:
                logger.warning("Notification to %s was not delivered", participant)

    # --- Reconciliation ---

    async def reconcile(self) -> int:
        """Arm every active schedule due within the next poll interval.

        Schedules whose run is gone or no longer active are deactivated.
        Returns the number of timers armed.
        """
        horizon = self._clock.now() + timedelta(seconds=self._poll_interval)
        armed = 0
        for schedule in await self._schedules.find_active(before=horizon):
            if schedule.id is None or schedule.id in self._handles:
                continue
            async with self.run_lock(schedule.run_id):
                run = await self._runs.find_by_id(schedule.run_id)
                if run is None or not run.is_active:
                    await self._schedules.deactivate(schedule.id)
                    logger.debug("Deactivated orphan schedule %s", schedule.id)
                    continue
                if schedule.id not in self._handles and self.arm(schedule.run_id, schedule):
                    armed += 1
        if armed:
            logger.info("Reconciliation armed %d schedule(s)", armed)
        return armed

    async def _reconcile_loop(self) -> None:
        try:
            while True:
                try:
                    await self.reconcile()
                except Exception:
                    logger.warning("Schedule reconciliation failed", exc_info=True)
                await asyncio.sleep(self._poll_interval)
        except asyncio.CancelledError:
            pass

    def start(self) -> None:
        """Start the background reconciliation loop."""
        if self._reconcile_task is not None:
            return
        self._reconcile_task = asyncio.create_task(
            self._reconcile_loop(), name="playbook-schedule-reconcile"
        )
        logger.info("Schedule timer manager started (poll=%ss)", self._poll_interval)

    async def stop(self) -> None:
        """Stop reconciliation and cancel every live timer."""
        tasks: list[asyncio.Task] = []
        if self._reconcile_task is not None:
            self._reconcile_task.cancel()
            tasks.append(self._reconcile_task)
            self._reconcile_task = None
        for handle in list(self._handles.values()):
            if handle.task is not None:
                handle.task.cancel()
                tasks.append(handle.task)
        self._handles.clear()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        logger.info("Schedule timer manager stopped")
