"""Playbook update repository - append-only ledger storage."""

from __future__ import annotations

import logging
from dataclasses import replace

from playbookrunner.models.playbook import PlaybookUpdate

logger = logging.getLogger(__name__)


class UpdateRepo:
    """Insert and read back run updates. Entries are never modified."""

    COLLECTION = "playbook_updates"

    def __init__(self, db) -> None:
        self._col = db[self.COLLECTION]

    async def insert(self, update: PlaybookUpdate) -> PlaybookUpdate:
        doc = update.to_doc()
        doc.pop("_id", None)
        result = await self._col.insert_one(doc)
        return replace(update, id=str(result.inserted_id))

    async def list_by_run(self, run_id: str, step_id: str | None = None) -> list[PlaybookUpdate]:
        """Updates for a run in the order they were recorded."""
        query: dict = {"run_id": run_id}
        if step_id is not None:
            query["step_id"] = step_id
        cursor = self._col.find(query).sort("created_at", 1)
        return [PlaybookUpdate.from_doc(doc) async for doc in cursor]

    async def count_by_run(self, run_id: str) -> int:
        return await self._col.count_documents({"run_id": run_id})

    async def delete_for_run(self, run_id: str) -> int:
        """Drop a deleted run's ledger."""
        result = await self._col.delete_many({"run_id": run_id})
        return result.deleted_count
