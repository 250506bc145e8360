"""Run lifecycle: the public entry points for playbook runs."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from playbookrunner.clock import Clock, SystemClock
from playbookrunner.engine import steps as step_machine
from playbookrunner.engine.recurrence import next_occurrence
from playbookrunner.engine.snapshot import snapshot_template
from playbookrunner.engine.steps import StepNotFoundError, StepTransition
from playbookrunner.engine.timers import ScheduleTimerManager
from playbookrunner.infra.db.runs import RunRepo
from playbookrunner.infra.db.schedules import ScheduleRepo
from playbookrunner.infra.db.templates import TemplateRepo
from playbookrunner.models.playbook import (
    Frequency,
    PlaybookRun,
    PlaybookSchedule,
    PlaybookUpdate,
    RunStatus,
)
from playbookrunner.services.ledger import UpdateLedger

logger = logging.getLogger(__name__)


class RunLifecycleService:
    """Starts runs, moves them through their steps and manages schedules.

    Step operations are applied synchronously to the stored run; everything
    time-based is delegated to the ``ScheduleTimerManager``. Lookups that
    find nothing return ``None`` (or ``False``).
    """

    def __init__(
        self,
        template_repo: TemplateRepo,
        run_repo: RunRepo,
        schedule_repo: ScheduleRepo,
        ledger: UpdateLedger,
        timers: ScheduleTimerManager,
        clock: Clock | None = None,
        default_timezone: str = "UTC",
    ) -> None:
        self._templates = template_repo
        self._runs = run_repo
        self._schedules = schedule_repo
        self._ledger = ledger
        self._timers = timers
        self._clock = clock or SystemClock()
        self._default_timezone = default_timezone

    # --- Runs ---

    async def start_run(
        self,
        template_id: str,
        name: str,
        description: str = "",
        owner: str = "",
        participants: tuple[str, ...] | list[str] = (),
    ) -> PlaybookRun | None:
        """Start a run from a snapshot of the template's current steps."""
        template = await self._templates.find_by_id(template_id)
        if template is None:
            logger.debug("Template not found: %s", template_id)
            return None

        snapshot = snapshot_template(template)
        run = PlaybookRun(
            template_id=snapshot.template_id,
            template_version=snapshot.template_version,
            name=name or template.name,
            description=description,
            owner=owner,
            participants=tuple(participants),
            steps=snapshot.steps,
            current_step_index=0,
            status=RunStatus.ACTIVE,
            started_at=self._clock.now(),
        )
        created = await self._runs.insert(run)
        logger.info(
            "Started run %s (%s) from template %s v%d",
            created.id, created.name, template_id, snapshot.template_version,
        )
        return created

    async def get_run(self, run_id: str) -> PlaybookRun | None:
        """Run with its schedules and ledger attached."""
        run = await self._runs.find_by_id(run_id)
        if run is None:
            return None
        schedules = await self._schedules.list_by_run(run_id)
        updates = await self._ledger.list_for_run(run_id)
        return replace(run, schedules=tuple(schedules), updates=tuple(updates))

    async def list_runs(self, status: RunStatus | None = None) -> list[PlaybookRun]:
        return await self._runs.list_runs(status=status)

    async def archive_run(self, run_id: str) -> bool:
        """Archive a run in any status and stop all of its timers."""
        async with self._timers.run_lock(run_id):
            run = await self._runs.find_by_id(run_id)
            if run is None:
                return False
            await self._runs.save(replace(run, status=RunStatus.ARCHIVED))
            await self._teardown(run_id)
        logger.info("Archived run %s", run_id)
        return True

    async def delete_run(self, run_id: str) -> bool:
        """Delete a run together with its schedules and ledger."""
        async with self._timers.run_lock(run_id):
            run = await self._runs.find_by_id(run_id)
            if run is None:
                return False
            self._timers.disarm_all(run_id)
            await self._schedules.delete_for_run(run_id)
            await self._ledger.purge_run(run_id)
            deleted = await self._runs.delete(run_id)
        if deleted:
            logger.info("Deleted run %s", run_id)
        return deleted

    async def _teardown(self, run_id: str) -> None:
        self._timers.disarm_all(run_id)
        await self._schedules.deactivate_for_run(run_id)

    # --- Steps ---

    async def _apply(self, run_id: str, step_id: str, transition) -> PlaybookRun | None:
        async with self._timers.run_lock(run_id):
            run = await self._runs.find_by_id(run_id)
            if run is None:
                return None
            try:
                result: StepTransition = transition(run)
            except StepNotFoundError:
                logger.debug("Step %s not found in run %s", step_id, run_id)
                return None
            if not result.changed:
                return result.run
            saved = await self._runs.save(result.run)
            if saved is None:
                return None
            if result.run_completed:
                await self._teardown(run_id)
                logger.info("Run %s completed", run_id)
            return saved

    async def complete_step(self, run_id: str, step_id: str) -> PlaybookRun | None:
        """Complete a step. Repeating the call leaves the run unchanged."""
        now = self._clock.now()
        return await self._apply(
            run_id, step_id, lambda run: step_machine.complete_step(run, step_id, now)
        )

    async def skip_step(self, run_id: str, step_id: str) -> PlaybookRun | None:
        now = self._clock.now()
        return await self._apply(
            run_id, step_id, lambda run: step_machine.skip_step(run, step_id, now)
        )

    async def start_step(self, run_id: str, step_id: str) -> PlaybookRun | None:
        return await self._apply(
            run_id, step_id, lambda run: step_machine.start_step(run, step_id)
        )

    async def toggle_checklist_item(
        self, run_id: str, step_id: str, item_id: str
    ) -> PlaybookRun | None:
        return await self._apply(
            run_id, step_id,
            lambda run: step_machine.toggle_checklist_item(run, step_id, item_id),
        )

    # --- Schedules ---

    async def add_scheduled_update(
        self,
        run_id: str,
        frequency: Frequency | str,
        time: str,
        update_prompt: str,
        timezone: str | None = None,
        days: tuple[int, ...] | list[int] = (),
        day_of_month: int | None = None,
        notify_participants: bool = False,
        next_run: datetime | None = None,
    ) -> PlaybookSchedule | None:
        """Attach a recurring update request to an active run and arm it.

        ``next_run`` is only honoured for custom schedules, where it is
        required and must lie in the future.
        """
        frequency = Frequency(frequency)
        async with self._timers.run_lock(run_id):
            run = await self._runs.find_by_id(run_id)
            if run is None:
                return None
            if not run.is_active:
                raise ValueError(f"Run {run_id} is {run.status.value}; cannot add schedules")

            now = self._clock.now()
            schedule = PlaybookSchedule(
                run_id=run_id,
                frequency=frequency,
                time=time,
                timezone=timezone or self._default_timezone,
                days=tuple(sorted(set(days))),
                day_of_month=day_of_month,
                update_prompt=update_prompt,
                notify_participants=notify_participants,
                next_run=next_run if frequency == Frequency.CUSTOM else None,
                created_at=now,
            )
            if frequency == Frequency.MONTHLY and schedule.day_of_month is None:
                schedule = replace(schedule, day_of_month=now.astimezone(schedule.zone).day)
            if frequency == Frequency.WEEKLY and not schedule.days:
                logger.warning("Weekly schedule on run %s has no days; firing daily", run_id)

            first = next_occurrence(schedule, now)
            if first is None:
                raise ValueError("Custom schedules need a next_run in the future")
            stored = await self._schedules.insert(replace(schedule, next_run=first))
            self._timers.arm(run_id, stored)

        logger.info(
            "Added %s schedule %s to run %s (next %s)",
            frequency.value, stored.id, run_id, first.isoformat(),
        )
        return stored

    async def remove_scheduled_update(self, run_id: str, schedule_id: str) -> bool:
        async with self._timers.run_lock(run_id):
            schedule = await self._schedules.find_by_id(schedule_id)
            if schedule is None or schedule.run_id != run_id:
                return False
            self._timers.disarm(schedule_id)
            return await self._schedules.deactivate(schedule_id)

    # --- Updates ---

    async def add_update(
        self, run_id: str, step_id: str, content: str, author: str
    ) -> PlaybookUpdate | None:
        """Record a manual update against a step of the run."""
        run = await self._runs.find_by_id(run_id)
        if run is None:
            return None
        return await self._ledger.append(
            run_id=run_id,
            step_id=step_id,
            content=content,
            created_by=author,
            created_at=self._clock.now(),
        )

    async def resume(self) -> int:
        """Re-arm schedules after a restart."""
        return await self._timers.reconcile()
