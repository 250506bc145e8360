"""Template access and the built-in default templates."""

from __future__ import annotations

import logging
from dataclasses import replace

from playbookrunner.infra.db.templates import TemplateRepo
from playbookrunner.models.playbook import (
    ChecklistItem,
    PlaybookStep,
    PlaybookTemplate,
    StepKind,
    TemplateCategory,
)

logger = logging.getLogger(__name__)

KB = "[KNOWLEDGE]"


def _step(n: int, title: str, description: str, kind: StepKind, prompt: str, checklist=()) -> PlaybookStep:
    return PlaybookStep(
        id=f"step-{n}",
        title=title,
        description=description,
        kind=kind,
        update_prompt=f"{KB} {prompt}",
        checklist_items=tuple(
            ChecklistItem(id=f"check-{i}", text=text) for i, text in enumerate(checklist, start=1)
        ),
    )


def default_templates() -> list[PlaybookTemplate]:
    """Standard playbooks offered out of the box."""
    U, T, C = StepKind.UPDATE, StepKind.TASK, StepKind.CHECKLIST
    return [
        PlaybookTemplate(
            name="Daily Standup",
            description="Track daily progress and blockers with a structured standup process",
            category=TemplateCategory.PROJECT_MANAGEMENT,
            tags=("standup", "daily", "agile"),
            created_by="system",
            steps=(
                _step(1, "What did you accomplish yesterday?", "List your completed tasks from yesterday", U,
                      "What are good questions for daily standup accomplishments?"),
                _step(2, "What will you work on today?", "List your planned tasks for today", U,
                      "What are good questions for daily standup plans?"),
                _step(3, "Any blockers or impediments?", "List any issues blocking your progress", U,
                      "What are good questions for identifying blockers in daily standups?"),
            ),
        ),
        PlaybookTemplate(
            name="Sprint Planning",
            description="Organize and plan your sprint with this structured template",
            category=TemplateCategory.PROJECT_MANAGEMENT,
            tags=("sprint", "planning", "agile"),
            created_by="system",
            steps=(
                _step(1, "Review Sprint Goals", "Define and document the goals for this sprint", T,
                      "What are effective sprint goals examples?"),
                _step(2, "Capacity Planning", "Determine team capacity for the sprint", T,
                      "How to calculate team capacity for sprint planning?"),
                _step(3, "Backlog Refinement", "Review and refine the backlog items", T,
                      "What are best practices for backlog refinement?"),
                _step(4, "Sprint Commitment", "Finalize the sprint backlog and commit to deliverables", T,
                      "How to make realistic sprint commitments?"),
            ),
        ),
        PlaybookTemplate(
            name="Weekly Status Report",
            description="Generate consistent weekly status reports for stakeholders",
            category=TemplateCategory.PROJECT_MANAGEMENT,
            tags=("status", "weekly", "report"),
            created_by="system",
            steps=(
                _step(1, "Accomplishments", "List key accomplishments from the past week", U,
                      "What should be included in weekly status report accomplishments?"),
                _step(2, "Upcoming Work", "Outline planned work for the next week", U,
                      "How to effectively communicate upcoming work in status reports?"),
                _step(3, "Risks and Issues", "Document any risks, issues, or blockers", U,
                      "How to identify and communicate project risks in status reports?"),
                _step(4, "Metrics and KPIs", "Report on key metrics and KPIs", U,
                      "What metrics should be included in project status reports?"),
            ),
        ),
        PlaybookTemplate(
            name="Feature Development Lifecycle",
            description="Guide the development of a new feature from planning to release",
            category=TemplateCategory.DEVELOPMENT,
            tags=("development", "feature", "lifecycle"),
            created_by="system",
            steps=(
                _step(1, "Feature Specification", "Create detailed specifications for the feature", T,
                      "What should be included in a feature specification document?"),
                _step(2, "Design Review", "Review and approve the design approach", T,
                      "What are key questions to ask during a design review?"),
                _step(3, "Implementation", "Develop the feature according to specifications", T,
                      "What are best practices for feature implementation?"),
                _step(4, "Testing", "Test the feature thoroughly", C,
                      "What testing strategies should be used for new features?",
                      checklist=("Unit tests written and passing", "Integration tests completed",
                                 "Manual testing performed", "Edge cases verified")),
                _step(5, "Documentation", "Create or update documentation for the feature", T,
                      "What should be included in feature documentation?"),
                _step(6, "Release", "Deploy the feature to production", T,
                      "What are best practices for feature releases?"),
            ),
        ),
        PlaybookTemplate(
            name="Bug Triage Process",
            description="Standardized process for triaging and resolving bugs",
            category=TemplateCategory.DEVELOPMENT,
            tags=("bug", "triage", "fix"),
            created_by="system",
            steps=(
                _step(1, "Bug Verification", "Verify the bug and collect necessary information", C,
                      "What information should be collected when verifying bugs?",
                      checklist=("Reproduce the bug", "Document steps to reproduce",
                                 "Capture screenshots/logs", "Identify affected versions")),
                _step(2, "Impact Assessment", "Assess the impact and priority of the bug", T,
                      "How to assess bug severity and priority?"),
                _step(3, "Root Cause Analysis", "Identify the root cause of the bug", T,
                      "What techniques are effective for root cause analysis?"),
                _step(4, "Fix Implementation", "Implement and test the fix", T,
                      "What are best practices for implementing bug fixes?"),
                _step(5, "Regression Testing", "Perform regression testing to ensure no new issues", T,
                      "How to perform effective regression testing?"),
                _step(6, "Release Planning", "Plan the release of the fix", T,
                      "What factors should be considered when planning bug fix releases?"),
            ),
        ),
    ]


class TemplateService:
    """Store access for templates needed to start runs."""

    def __init__(self, template_repo: TemplateRepo, marker: str = KB) -> None:
        self._repo = template_repo
        self._marker = marker

    async def create_template(self, template: PlaybookTemplate) -> PlaybookTemplate:
        existing = await self._repo.find_by_name(template.name)
        if existing:
            raise ValueError(f"Template with name '{template.name}' already exists")
        created = await self._repo.insert(template)
        logger.info("Created template: %s (%s)", created.name, created.id)
        return created

    async def get_template(self, template_id: str) -> PlaybookTemplate | None:
        return await self._repo.find_by_id(template_id)

    async def list_templates(self) -> list[PlaybookTemplate]:
        return await self._repo.list_all()

    async def update_template(self, template: PlaybookTemplate) -> PlaybookTemplate | None:
        """Store an edited template as a new version. Running runs keep their snapshot."""
        updated = await self._repo.replace(template)
        if updated:
            logger.info("Updated template %s to v%d", updated.id, updated.version)
        return updated

    async def delete_template(self, template_id: str) -> bool:
        return await self._repo.delete(template_id)

    async def seed_defaults(self) -> list[PlaybookTemplate]:
        """Insert any default template that is missing, matched by name."""
        created = []
        for template in default_templates():
            if await self._repo.find_by_name(template.name):
                continue
            if self._marker != KB:
                template = replace(template, steps=tuple(
                    replace(s, update_prompt=s.update_prompt.replace(KB, self._marker))
                    for s in template.steps
                ))
            created.append(await self._repo.insert(template))
        if created:
            logger.info("Seeded %d default template(s)", len(created))
        return created
