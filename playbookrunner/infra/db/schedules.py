"""Playbook schedule repository - MongoDB CRUD plus the due-schedule query."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime

from playbookrunner.infra.db._ids import to_object_id
from playbookrunner.models.playbook import PlaybookSchedule

logger = logging.getLogger(__name__)


class ScheduleRepo:
    """Persistence for recurring update schedules.

    ``next_run`` is stored per schedule so pending fires survive restarts.
    """

    COLLECTION = "playbook_schedules"

    def __init__(self, db) -> None:
        self._col = db[self.COLLECTION]

    async def insert(self, schedule: PlaybookSchedule) -> PlaybookSchedule:
        doc = schedule.to_doc()
        doc.pop("_id", None)
        result = await self._col.insert_one(doc)
        return replace(schedule, id=str(result.inserted_id))

    async def find_by_id(self, schedule_id: str) -> PlaybookSchedule | None:
        oid = to_object_id(schedule_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return PlaybookSchedule.from_doc(doc) if doc else None

    async def list_by_run(self, run_id: str) -> list[PlaybookSchedule]:
        cursor = self._col.find({"run_id": run_id}).sort("created_at", 1)
        return [PlaybookSchedule.from_doc(doc) async for doc in cursor]

    async def find_active(self, before: datetime | None = None) -> list[PlaybookSchedule]:
        """Active schedules, soonest first; only those due by *before* if given."""
        query: dict = {"active": True}
        if before is not None:
            query["next_run"] = {"$lte": before}
        cursor = self._col.find(query).sort("next_run", 1)
        return [PlaybookSchedule.from_doc(doc) async for doc in cursor]

    async def save(self, schedule: PlaybookSchedule) -> PlaybookSchedule | None:
        oid = to_object_id(schedule.id or "")
        if oid is None:
            return None
        doc = schedule.to_doc()
        doc.pop("_id", None)
        result = await self._col.replace_one({"_id": oid}, doc)
        return schedule if result.matched_count else None

    async def deactivate(self, schedule_id: str) -> bool:
        oid = to_object_id(schedule_id)
        if oid is None:
            return False
        result = await self._col.update_one({"_id": oid}, {"$set": {"active": False}})
        return result.matched_count > 0

    async def deactivate_for_run(self, run_id: str) -> int:
        """Freeze every schedule of a run. Records are kept for audit."""
        result = await self._col.update_many(
            {"run_id": run_id, "active": True},
            {"$set": {"active": False}},
        )
        return result.modified_count

    async def delete_for_run(self, run_id: str) -> int:
        result = await self._col.delete_many({"run_id": run_id})
        return result.deleted_count
