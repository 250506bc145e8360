"""Tests for the MongoDB repositories with a mocked Motor collection."""

from __future__ import annotations

from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock

import pytest
from bson import ObjectId

from playbookrunner.infra.db.runs import RunRepo
from playbookrunner.infra.db.schedules import ScheduleRepo
from playbookrunner.infra.db.templates import TemplateRepo
from playbookrunner.models.playbook import (
    Frequency,
    PlaybookRun,
    PlaybookSchedule,
    PlaybookStep,
    PlaybookTemplate,
    RunStatus,
)

DUE = datetime(2024, 2, 1, 9, 0, tzinfo=timezone.utc)


class _Cursor:
    def __init__(self, docs):
        self.docs = docs
        self.sorted_by = None

    def sort(self, key, direction):
        self.sorted_by = (key, direction)
        return self

    def __aiter__(self):
        self._iter = iter(self.docs)
        return self

    async def __anext__(self):
        try:
            return next(self._iter)
        except StopIteration:
            raise StopAsyncIteration from None


@pytest.fixture
def collection():
    return AsyncMock()


@pytest.fixture
def db(collection):
    db = MagicMock()
    db.__getitem__.return_value = collection
    return db


def _schedule_doc(**overrides):
    doc = {
        "_id": ObjectId(),
        "run_id": "run-1",
        "frequency": "daily",
        "time": "09:00",
        "timezone": "UTC",
        "days": [],
        "next_run": DUE,
        "active": True,
    }
    doc.update(overrides)
    return doc


class TestScheduleRepo:
    @pytest.mark.asyncio
    async def test_insert_assigns_id(self, db, collection):
        oid = ObjectId()
        collection.insert_one.return_value = MagicMock(inserted_id=oid)
        schedule = PlaybookSchedule(run_id="run-1", frequency=Frequency.DAILY, time="09:00", next_run=DUE)

        stored = await ScheduleRepo(db).insert(schedule)

        assert stored.id == str(oid)
        doc = collection.insert_one.call_args.args[0]
        assert "_id" not in doc
        assert doc["next_run"] == DUE
        db.__getitem__.assert_called_with("playbook_schedules")

    @pytest.mark.asyncio
    async def test_invalid_id_is_not_queried(self, db, collection):
        repo = ScheduleRepo(db)
        assert await repo.find_by_id("not-an-object-id") is None
        assert await repo.deactivate("not-an-object-id") is False
        collection.find_one.assert_not_called()
        collection.update_one.assert_not_called()

    @pytest.mark.asyncio
    async def test_find_active_before(self, db, collection):
        cursor = _Cursor([_schedule_doc()])
        collection.find = MagicMock(return_value=cursor)

        found = await ScheduleRepo(db).find_active(before=DUE)

        assert [s.next_run for s in found] == [DUE]
        collection.find.assert_called_once_with({"active": True, "next_run": {"$lte": DUE}})
        assert cursor.sorted_by == ("next_run", 1)

    @pytest.mark.asyncio
    async def test_save_missing_returns_none(self, db, collection):
        collection.replace_one.return_value = MagicMock(matched_count=0)
        schedule = PlaybookSchedule.from_doc(_schedule_doc())
        assert await ScheduleRepo(db).save(schedule) is None

    @pytest.mark.asyncio
    async def test_deactivate_for_run(self, db, collection):
        collection.update_many.return_value = MagicMock(modified_count=2)
        assert await ScheduleRepo(db).deactivate_for_run("run-1") == 2
        collection.update_many.assert_called_once_with(
            {"run_id": "run-1", "active": True}, {"$set": {"active": False}}
        )


class TestRunRepo:
    @pytest.mark.asyncio
    async def test_save_replaces_document(self, db, collection):
        collection.replace_one.return_value = MagicMock(matched_count=1)
        oid = ObjectId()
        run = PlaybookRun(
            template_id="tpl-1", name="Sprint", owner="o",
            steps=(PlaybookStep(id="s1", title="Plan"),), id=str(oid),
        )

        saved = await RunRepo(db).save(run)

        assert saved == run
        query, doc = collection.replace_one.call_args.args
        assert query == {"_id": oid}
        assert "_id" not in doc
        assert "updates" not in doc

    @pytest.mark.asyncio
    async def test_list_runs_by_status(self, db, collection):
        collection.find = MagicMock(return_value=_Cursor([]))
        assert await RunRepo(db).list_runs(RunStatus.ACTIVE) == []
        collection.find.assert_called_once_with({"status": "active"})


class TestTemplateRepo:
    @pytest.mark.asyncio
    async def test_replace_bumps_version(self, db, collection):
        collection.replace_one.return_value = MagicMock(matched_count=1)
        template = PlaybookTemplate(name="Standup", id=str(ObjectId()), version=2)

        updated = await TemplateRepo(db).replace(template)

        assert updated.version == 3
        assert collection.replace_one.call_args.args[1]["version"] == 3
