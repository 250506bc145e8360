"""Playbook run repository - MongoDB CRUD."""

from __future__ import annotations

import logging
from dataclasses import replace

from playbookrunner.infra.db._ids import to_object_id
from playbookrunner.models.playbook import PlaybookRun, RunStatus

logger = logging.getLogger(__name__)


class RunRepo:
    """CRUD operations for playbook runs in MongoDB.

    Schedules and updates are stored in their own collections.
    """

    COLLECTION = "playbook_runs"

    def __init__(self, db) -> None:
        self._col = db[self.COLLECTION]

    async def insert(self, run: PlaybookRun) -> PlaybookRun:
        """Insert a new run. Returns run with assigned id."""
        doc = run.to_doc()
        doc.pop("_id", None)
        result = await self._col.insert_one(doc)
        return replace(run, id=str(result.inserted_id))

    async def find_by_id(self, run_id: str) -> PlaybookRun | None:
        oid = to_object_id(run_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return PlaybookRun.from_doc(doc) if doc else None

    async def list_runs(self, status: RunStatus | None = None) -> list[PlaybookRun]:
        """List runs, newest first, optionally filtered by status."""
        query: dict = {}
        if status:
            query["status"] = status.value
        cursor = self._col.find(query).sort("started_at", -1)
        return [PlaybookRun.from_doc(doc) async for doc in cursor]

    async def save(self, run: PlaybookRun) -> PlaybookRun | None:
        """Overwrite the stored run with *run*. Returns None if it vanished."""
        oid = to_object_id(run.id or "")
        if oid is None:
            return None
        doc = run.to_doc()
        doc.pop("_id", None)
        result = await self._col.replace_one({"_id": oid}, doc)
        return run if result.matched_count else None

    async def delete(self, run_id: str) -> bool:
        oid = to_object_id(run_id)
        if oid is None:
            return False
        result = await self._col.delete_one({"_id": oid})
        return result.deleted_count > 0
