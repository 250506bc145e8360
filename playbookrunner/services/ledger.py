"""Update ledger: append-only record of updates per run and step."""

from __future__ import annotations

import logging
from datetime import datetime

from playbookrunner.infra.db.updates import UpdateRepo
from playbookrunner.models.playbook import GENERAL_STEP_ID, PlaybookUpdate

logger = logging.getLogger(__name__)


class UpdateLedger:
    """Appends updates and reads them back for display and audit."""

    def __init__(self, update_repo: UpdateRepo) -> None:
        self._repo = update_repo

    async def append(
        self,
        run_id: str,
        step_id: str,
        content: str,
        created_by: str,
        created_at: datetime,
    ) -> PlaybookUpdate:
        update = PlaybookUpdate(
            run_id=run_id,
            step_id=step_id or GENERAL_STEP_ID,
            content=content,
            created_by=created_by,
            created_at=created_at,
        )
        stored = await self._repo.insert(update)
        logger.debug("Recorded update %s on %s/%s by %s", stored.id, run_id, stored.step_id, created_by)
        return stored

    async def list_for_run(self, run_id: str) -> list[PlaybookUpdate]:
        return await self._repo.list_by_run(run_id)

    async def list_for_step(self, run_id: str, step_id: str) -> list[PlaybookUpdate]:
        return await self._repo.list_by_run(run_id, step_id=step_id)

    async def count(self, run_id: str) -> int:
        return await self._repo.count_by_run(run_id)

    async def purge_run(self, run_id: str) -> int:
        """Remove a deleted run's entries."""
        return await self._repo.delete_for_run(run_id)
