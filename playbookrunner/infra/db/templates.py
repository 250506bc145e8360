"""Playbook template repository - MongoDB CRUD."""

from __future__ import annotations

import logging
from dataclasses import replace
from datetime import datetime, timezone

from playbookrunner.infra.db._ids import to_object_id
from playbookrunner.models.playbook import PlaybookTemplate

logger = logging.getLogger(__name__)


class TemplateRepo:
    """CRUD operations for playbook templates in MongoDB."""

    COLLECTION = "playbook_templates"

    def __init__(self, db) -> None:
        self._col = db[self.COLLECTION]

    async def insert(self, template: PlaybookTemplate) -> PlaybookTemplate:
        """Insert a new template. Returns it with the assigned id."""
        doc = template.to_doc()
        doc.pop("_id", None)
        result = await self._col.insert_one(doc)
        return replace(template, id=str(result.inserted_id))

    async def find_by_id(self, template_id: str) -> PlaybookTemplate | None:
        oid = to_object_id(template_id)
        if oid is None:
            return None
        doc = await self._col.find_one({"_id": oid})
        return PlaybookTemplate.from_doc(doc) if doc else None

    async def find_by_name(self, name: str) -> PlaybookTemplate | None:
        doc = await self._col.find_one({"name": name})
        return PlaybookTemplate.from_doc(doc) if doc else None

    async def list_all(self) -> list[PlaybookTemplate]:
        """List all templates, most recent first."""
        cursor = self._col.find().sort("created_at", -1)
        return [PlaybookTemplate.from_doc(doc) async for doc in cursor]

    async def replace(self, template: PlaybookTemplate) -> PlaybookTemplate | None:
        """Store a new version of an existing template."""
        oid = to_object_id(template.id or "")
        if oid is None:
            return None
        updated = replace(
            template,
            version=template.version + 1,
            updated_at=datetime.now(timezone.utc),
        )
        doc = updated.to_doc()
        doc.pop("_id", None)
        result = await self._col.replace_one({"_id": oid}, doc)
        return updated if result.matched_count else None

    async def delete(self, template_id: str) -> bool:
        oid = to_object_id(template_id)
        if oid is None:
            return False
        result = await self._col.delete_one({"_id": oid})
        return result.deleted_count > 0
