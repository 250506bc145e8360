"""MongoDB index creation."""

from __future__ import annotations

import logging

import pymongo

logger = logging.getLogger(__name__)


async def run_migrations(db) -> None:
    """Create indexes on startup."""
    logger.info("Running MongoDB migrations...")

    templates = db["playbook_templates"]
    await templates.create_index([("name", pymongo.ASCENDING)], unique=True)

    runs = db["playbook_runs"]
    await runs.create_index([("status", pymongo.ASCENDING), ("started_at", pymongo.DESCENDING)])
    await runs.create_index([("template_id", pymongo.ASCENDING)])

    # Due-schedule scan used by the reconciliation pass
    schedules = db["playbook_schedules"]
    await schedules.create_index([("active", pymongo.ASCENDING), ("next_run", pymongo.ASCENDING)])
    await schedules.create_index([("run_id", pymongo.ASCENDING)])

    updates = db["playbook_updates"]
    await updates.create_index([("run_id", pymongo.ASCENDING), ("created_at", pymongo.ASCENDING)])
    await updates.create_index([("run_id", pymongo.ASCENDING), ("step_id", pymongo.ASCENDING)])

    logger.info("MongoDB migrations complete")
