"""Shared fixtures: in-memory repositories and a manual clock."""

from __future__ import annotations

import asyncio
from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest
from bson import ObjectId

from playbookrunner.engine.prompts import PromptResolver
from playbookrunner.engine.timers import ScheduleTimerManager
from playbookrunner.models.playbook import (
    PlaybookRun,
    PlaybookSchedule,
    PlaybookStep,
    PlaybookTemplate,
    PlaybookUpdate,
    RunStatus,
)
from playbookrunner.services.ledger import UpdateLedger
from playbookrunner.services.run_service import RunLifecycleService

START = datetime(2024, 1, 31, 10, 0, tzinfo=timezone.utc)


class ManualClock:
    def __init__(self, start: datetime = START) -> None:
        self.current = start

    def now(self) -> datetime:
        return self.current

    def advance(self, **kwargs) -> None:
        self.current = self.current + timedelta(**kwargs)


class _MemoryRepo:
    def __init__(self) -> None:
        self.items: dict[str, object] = {}

    def _new_id(self) -> str:
        return str(ObjectId())


class MemoryTemplateRepo(_MemoryRepo):
    async def insert(self, template: PlaybookTemplate) -> PlaybookTemplate:
        stored = replace(template, id=self._new_id())
        self.items[stored.id] = stored
        return stored

    async def find_by_id(self, template_id: str) -> PlaybookTemplate | None:
        return self.items.get(template_id)

    async def find_by_name(self, name: str) -> PlaybookTemplate | None:
        return next((t for t in self.items.values() if t.name == name), None)

    async def list_all(self) -> list[PlaybookTemplate]:
        return list(self.items.values())

    async def replace(self, template: PlaybookTemplate) -> PlaybookTemplate | None:
        if template.id not in self.items:
            return None
        updated = replace(template, version=template.version + 1)
        self.items[template.id] = updated
        return updated

    async def delete(self, template_id: str) -> bool:
        return self.items.pop(template_id, None) is not None


class MemoryRunRepo(_MemoryRepo):
    async def insert(self, run: PlaybookRun) -> PlaybookRun:
        stored = replace(run, id=self._new_id())
        self.items[stored.id] = stored
        return stored

    async def find_by_id(self, run_id: str) -> PlaybookRun | None:
        return self.items.get(run_id)

    async def list_runs(self, status: RunStatus | None = None) -> list[PlaybookRun]:
        return [r for r in self.items.values() if status is None or r.status == status]

    async def save(self, run: PlaybookRun) -> PlaybookRun | None:
        if run.id not in self.items:
            return None
        stored = replace(run, schedules=(), updates=())
        self.items[run.id] = stored
        return stored

    async def delete(self, run_id: str) -> bool:
        return self.items.pop(run_id, None) is not None


class MemoryScheduleRepo(_MemoryRepo):
    async def insert(self, schedule: PlaybookSchedule) -> PlaybookSchedule:
        stored = replace(schedule, id=self._new_id())
        self.items[stored.id] = stored
        return stored

    async def find_by_id(self, schedule_id: str) -> PlaybookSchedule | None:
        return self.items.get(schedule_id)

    async def list_by_run(self, run_id: str) -> list[PlaybookSchedule]:
        return [s for s in self.items.values() if s.run_id == run_id]

    async def find_active(self, before: datetime | None = None) -> list[PlaybookSchedule]:
        found = [
            s for s in self.items.values()
            if s.active and (before is None or (s.next_run is not None and s.next_run <= before))
        ]
        return sorted(found, key=lambda s: s.next_run)

    async def save(self, schedule: PlaybookSchedule) -> PlaybookSchedule | None:
        if schedule.id not in self.items:
            return None
        self.items[schedule.id] = schedule
        return schedule

    async def deactivate(self, schedule_id: str) -> bool:
        schedule = self.items.get(schedule_id)
        if schedule is None:
            return False
        self.items[schedule_id] = replace(schedule, active=False)
        return True

    async def deactivate_for_run(self, run_id: str) -> int:
        count = 0
        for sid, schedule in list(self.items.items()):
            if schedule.run_id == run_id and schedule.active:
                self.items[sid] = replace(schedule, active=False)
                count += 1
        return count

    async def delete_for_run(self, run_id: str) -> int:
        doomed = [sid for sid, s in self.items.items() if s.run_id == run_id]
        for sid in doomed:
            del self.items[sid]
        return len(doomed)


class MemoryUpdateRepo(_MemoryRepo):
    def __init__(self) -> None:
        super().__init__()
        self.entries: list[PlaybookUpdate] = []

    async def insert(self, update: PlaybookUpdate) -> PlaybookUpdate:
        stored = replace(update, id=self._new_id())
        self.entries.append(stored)
        return stored

    async def list_by_run(self, run_id: str, step_id: str | None = None) -> list[PlaybookUpdate]:
        found = [
            u for u in self.entries
            if u.run_id == run_id and (step_id is None or u.step_id == step_id)
        ]
        return sorted(found, key=lambda u: u.created_at)

    async def count_by_run(self, run_id: str) -> int:
        return sum(1 for u in self.entries if u.run_id == run_id)

    async def delete_for_run(self, run_id: str) -> int:
        before = len(self.entries)
        self.entries = [u for u in self.entries if u.run_id != run_id]
        return before - len(self.entries)


class RecordingLookup:
    """Knowledge lookup returning a fixed answer, optionally gated on an event."""

    def __init__(self, answer: str | None = None, gate: asyncio.Event | None = None) -> None:
        self.answer = answer
        self.gate = gate
        self.calls: list[tuple[str, list[str]]] = []

    async def search(self, query: str, tags: list[str]) -> str | None:
        self.calls.append((query, tags))
        if self.gate is not None:
            await self.gate.wait()
        return self.answer


class RecordingNotifier:
    def __init__(self, fail_for: tuple[str, ...] = ()) -> None:
        self.fail_for = fail_for
        self.sent: list[tuple[str, str]] = []

    async def notify(self, participant_id: str, message: str) -> bool:
        if participant_id in self.fail_for:
            raise ConnectionError(f"cannot reach {participant_id}")
        self.sent.append((participant_id, message))
        return True


async def drain(rounds: int = 50) -> None:
    """Let pending timer tasks run to completion."""
    for _ in range(rounds):
        await asyncio.sleep(0)


def make_template(step_count: int = 3, name: str = "Standup") -> PlaybookTemplate:
    return PlaybookTemplate(
        name=name,
        steps=tuple(
            PlaybookStep(id=f"step-{i}", title=f"Step {i}", update_prompt=f"Prompt {i}")
            for i in range(1, step_count + 1)
        ),
    )


class Harness:
    """Fully wired service over in-memory repositories."""

    def __init__(self, lookup=None, notifier=None, clock: ManualClock | None = None) -> None:
        self.clock = clock or ManualClock()
        self.templates = MemoryTemplateRepo()
        self.runs = MemoryRunRepo()
        self.schedules = MemoryScheduleRepo()
        self.updates = MemoryUpdateRepo()
        self.ledger = UpdateLedger(self.updates)
        self.lookup = lookup
        self.notifier = notifier
        self.timers = ScheduleTimerManager(
            run_repo=self.runs,
            schedule_repo=self.schedules,
            ledger=self.ledger,
            prompts=PromptResolver(lookup, marker="[KNOWLEDGE]", tags=["playbooks"]),
            notifier=notifier,
            clock=self.clock,
            poll_interval=60,
        )
        self.service = RunLifecycleService(
            template_repo=self.templates,
            run_repo=self.runs,
            schedule_repo=self.schedules,
            ledger=self.ledger,
            timers=self.timers,
            clock=self.clock,
        )

    async def start_run(self, step_count: int = 3, participants=("alice", "bob")) -> PlaybookRun:
        template = await self.templates.insert(make_template(step_count))
        return await self.service.start_run(
            template.id, "Weekly sync", owner="owner-1", participants=participants
        )


@pytest.fixture
def clock():
    return ManualClock()


@pytest.fixture
def harness(clock):
    return Harness(lookup=RecordingLookup(), notifier=RecordingNotifier(), clock=clock)
