"""Step state machine: pure transitions over a run's step list.

Every function takes a frozen ``PlaybookRun`` and returns a
``StepTransition`` carrying the new run. Nothing here touches the store or
the timers; callers persist the result and react to ``run_completed``.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from playbookrunner.models.playbook import PlaybookRun, PlaybookStep, RunStatus, StepStatus


class StepNotFoundError(KeyError):
    """Raised when a step id is not part of the run."""

    def __init__(self, run_id: str | None, step_id: str) -> None:
        super().__init__(step_id)
        self.run_id = run_id
        self.step_id = step_id

    def __str__(self) -> str:
        return f"Step {self.step_id!r} not found in run {self.run_id}"


class RunNotActiveError(ValueError):
    """Raised when a step transition is attempted on a finished run."""


@dataclass(frozen=True)
class StepTransition:
    run: PlaybookRun
    changed: bool = False
    run_completed: bool = False


def _locate(run: PlaybookRun, step_id: str) -> int:
    index = run.step_index(step_id)
    if index is None:
        raise StepNotFoundError(run.id, step_id)
    return index


def _require_active(run: PlaybookRun) -> None:
    if not run.is_active:
        raise RunNotActiveError(f"Run {run.id} is {run.status.value}")


def _resolve(run: PlaybookRun, step_id: str, status: StepStatus, now: datetime) -> StepTransition:
    index = _locate(run, step_id)
    step = run.steps[index]
    if step.status.is_resolved:
        return StepTransition(run=run)
    _require_active(run)

    completed_at = now if status == StepStatus.COMPLETED else None
    steps = list(run.steps)
    steps[index] = step.with_status(status, completed_at=completed_at)

    current = run.current_step_index
    if index == current and current < len(steps) - 1:
        current += 1

    updated = replace(run, steps=tuple(steps), current_step_index=current)
    if updated.all_steps_resolved:
        updated = replace(updated, status=RunStatus.COMPLETED, completed_at=now)
        return StepTransition(run=updated, changed=True, run_completed=True)
    return StepTransition(run=updated, changed=True)


def complete_step(run: PlaybookRun, step_id: str, now: datetime) -> StepTransition:
    """Mark a step completed and advance the current index if it was current.

    Completing an already completed or skipped step is a no-op.
    """
    return _resolve(run, step_id, StepStatus.COMPLETED, now)


def skip_step(run: PlaybookRun, step_id: str, now: datetime) -> StepTransition:
    """Mark a step skipped. Same advance and completion rules as completion."""
    return _resolve(run, step_id, StepStatus.SKIPPED, now)


def start_step(run: PlaybookRun, step_id: str) -> StepTransition:
    """Move a pending step to in_progress. Any other status is left alone."""
    index = _locate(run, step_id)
    step = run.steps[index]
    if step.status != StepStatus.PENDING:
        return StepTransition(run=run)
    _require_active(run)
    steps = list(run.steps)
    steps[index] = step.with_status(StepStatus.IN_PROGRESS)
    return StepTransition(run=replace(run, steps=tuple(steps)), changed=True)


def toggle_checklist_item(run: PlaybookRun, step_id: str, item_id: str) -> StepTransition:
    """Flip one checklist item. Step status is never affected."""
    index = _locate(run, step_id)
    _require_active(run)
    step: PlaybookStep = run.steps[index]
    items = list(step.checklist_items)
    for pos, item in enumerate(items):
        if item.id == item_id:
            items[pos] = replace(item, checked=not item.checked)
            break
    else:
        raise StepNotFoundError(run.id, f"{step_id}/{item_id}")
    steps = list(run.steps)
    steps[index] = replace(step, checklist_items=tuple(items))
    return StepTransition(run=replace(run, steps=tuple(steps)), changed=True)
