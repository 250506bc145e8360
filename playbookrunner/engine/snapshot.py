"""Template -> run step snapshot taken when a run starts."""

from __future__ import annotations

from dataclasses import dataclass

from playbookrunner.models.playbook import PlaybookStep, PlaybookTemplate, StepStatus


@dataclass(frozen=True)
class StepSnapshot:
    template_id: str
    template_version: int
    steps: tuple[PlaybookStep, ...]


def snapshot_template(template: PlaybookTemplate) -> StepSnapshot:
    """Copy a template's steps into independent run steps.

    Steps are rebuilt from their serialized form so the run shares no
    objects with the template, and every step starts pending.
    """
    if not template.id:
        raise ValueError(f"Template {template.name!r} has not been stored yet")
    if not template.steps:
        raise ValueError(f"Template {template.name!r} has no steps")
    steps = []
    for step in template.steps:
        doc = step.to_doc()
        doc["status"] = StepStatus.PENDING.value
        doc["completed_at"] = None
        steps.append(PlaybookStep.from_doc(doc))
    return StepSnapshot(
        template_id=template.id,
        template_version=template.version,
        steps=tuple(steps),
    )
