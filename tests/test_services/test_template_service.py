"""Tests for TemplateService and the default templates."""

from dataclasses import replace

import pytest
from conftest import MemoryTemplateRepo, make_template

from playbookrunner.models.playbook import StepKind, TemplateCategory
from playbookrunner.services.template_service import KB, TemplateService, default_templates


@pytest.fixture
def service():
    return TemplateService(MemoryTemplateRepo())


def test_default_templates():
    templates = {t.name: t for t in default_templates()}
    assert set(templates) == {
        "Daily Standup",
        "Sprint Planning",
        "Weekly Status Report",
        "Feature Development Lifecycle",
        "Bug Triage Process",
    }
    assert len(templates["Feature Development Lifecycle"].steps) == 6
    assert templates["Bug Triage Process"].category == TemplateCategory.DEVELOPMENT
    testing = templates["Feature Development Lifecycle"].steps[3]
    assert testing.kind == StepKind.CHECKLIST
    assert len(testing.checklist_items) == 4
    for template in templates.values():
        assert all(step.update_prompt.startswith(KB) for step in template.steps)


class TestTemplateService:
    @pytest.mark.asyncio
    async def test_create_and_get(self, service):
        created = await service.create_template(make_template())
        assert created.id is not None
        assert await service.get_template(created.id) == created
        assert len(await service.list_templates()) == 1

    @pytest.mark.asyncio
    async def test_duplicate_name_rejected(self, service):
        await service.create_template(make_template())
        with pytest.raises(ValueError, match="already exists"):
            await service.create_template(make_template())

    @pytest.mark.asyncio
    async def test_update_bumps_version(self, service):
        created = await service.create_template(make_template())
        updated = await service.update_template(replace(created, description="Revised"))
        assert updated.version == created.version + 1
        assert updated.description == "Revised"

    @pytest.mark.asyncio
    async def test_update_missing(self, service):
        assert await service.update_template(replace(make_template(), id="missing")) is None

    @pytest.mark.asyncio
    async def test_delete(self, service):
        created = await service.create_template(make_template())
        assert await service.delete_template(created.id) is True
        assert await service.get_template(created.id) is None

    @pytest.mark.asyncio
    async def test_seed_defaults_is_idempotent(self, service):
        first = await service.seed_defaults()
        second = await service.seed_defaults()
        assert len(first) == 5
        assert second == []
        assert len(await service.list_templates()) == 5

    @pytest.mark.asyncio
    async def test_seed_uses_configured_marker(self):
        service = TemplateService(MemoryTemplateRepo(), marker="[KB]")
        seeded = await service.seed_defaults()
        prompts = [step.update_prompt for t in seeded for step in t.steps]
        assert all(p.startswith("[KB] ") for p in prompts)
        assert not any(KB in p for p in prompts)
