"""Playbook domain model: templates, runs, schedules and updates."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

GENERAL_STEP_ID = "general"
SYSTEM_ACTOR = "system"

_TIME_RE = re.compile(r"^(\d{1,2}):(\d{2})$")


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _as_utc(value: datetime | None) -> datetime | None:
    """Normalize datetimes read back from the store to aware UTC."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def parse_time_of_day(value: str) -> tuple[int, int]:
    """Parse an ``HH:MM`` string into ``(hour, minute)``."""
    match = _TIME_RE.match(value.strip()) if value else None
    if not match:
        raise ValueError(f"Invalid time of day: {value!r} (expected HH:MM)")
    hour, minute = int(match.group(1)), int(match.group(2))
    if hour > 23 or minute > 59:
        raise ValueError(f"Invalid time of day: {value!r}")
    return hour, minute


class StepKind(str, Enum):
    TASK = "task"
    CHECKLIST = "checklist"
    UPDATE = "update"
    NOTIFICATION = "notification"


class StepStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    SKIPPED = "skipped"

    @property
    def is_resolved(self) -> bool:
        return self in (StepStatus.COMPLETED, StepStatus.SKIPPED)


class RunStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ARCHIVED = "archived"


class Frequency(str, Enum):
    DAILY = "daily"
    WEEKLY = "weekly"
    BIWEEKLY = "biweekly"
    MONTHLY = "monthly"
    CUSTOM = "custom"


class TemplateCategory(str, Enum):
    PROJECT_MANAGEMENT = "project_management"
    DEVELOPMENT = "development"
    DESIGN = "design"
    MARKETING = "marketing"
    OTHER = "other"


@dataclass(frozen=True)
class ChecklistItem:
    id: str
    text: str
    checked: bool = False

    def to_doc(self) -> dict:
        return {"id": self.id, "text": self.text, "checked": self.checked}

    @classmethod
    def from_doc(cls, doc: dict) -> ChecklistItem:
        return cls(id=doc["id"], text=doc.get("text", ""), checked=doc.get("checked", False))


@dataclass(frozen=True)
class PlaybookStep:
    """One unit of work inside a template or a run."""

    id: str
    title: str
    description: str = ""
    kind: StepKind = StepKind.TASK
    status: StepStatus = StepStatus.PENDING
    checklist_items: tuple[ChecklistItem, ...] = ()
    assignee: str = ""
    due_at: datetime | None = None
    completed_at: datetime | None = None
    update_prompt: str = ""
    notification_channel: str = ""

    def __post_init__(self) -> None:
        if not self.id:
            raise ValueError("Step id cannot be empty")

    def with_status(self, status: StepStatus, completed_at: datetime | None = None) -> PlaybookStep:
        """Return a copy in *status*.

        Status never moves back to pending, and a resolved step never changes.
        """
        if self.status.is_resolved and status != self.status:
            raise ValueError(f"Step {self.id} is already {self.status.value}")
        if status == StepStatus.PENDING and self.status != StepStatus.PENDING:
            raise ValueError(f"Step {self.id} cannot return to pending")
        return replace(self, status=status, completed_at=completed_at)

    def to_doc(self) -> dict:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "kind": self.kind.value,
            "status": self.status.value,
            "checklist_items": [item.to_doc() for item in self.checklist_items],
            "assignee": self.assignee,
            "due_at": self.due_at,
            "completed_at": self.completed_at,
            "update_prompt": self.update_prompt,
            "notification_channel": self.notification_channel,
        }

    @classmethod
    def from_doc(cls, doc: dict) -> PlaybookStep:
        return cls(
            id=doc["id"],
            title=doc.get("title", ""),
            description=doc.get("description", ""),
            kind=StepKind(doc.get("kind", StepKind.TASK.value)),
            status=StepStatus(doc.get("status", StepStatus.PENDING.value)),
            checklist_items=tuple(
                ChecklistItem.from_doc(item) for item in doc.get("checklist_items", [])
            ),
            assignee=doc.get("assignee", ""),
            due_at=_as_utc(doc.get("due_at")),
            completed_at=_as_utc(doc.get("completed_at")),
            update_prompt=doc.get("update_prompt", ""),
            notification_channel=doc.get("notification_channel", ""),
        )


@dataclass(frozen=True)
class PlaybookTemplate:
    """Reusable ordered sequence of steps. Steps are always pending here."""

    name: str
    description: str = ""
    category: TemplateCategory = TemplateCategory.OTHER
    steps: tuple[PlaybookStep, ...] = ()
    tags: tuple[str, ...] = ()
    created_by: str = ""
    version: int = 1
    created_at: datetime = field(default_factory=_utcnow)
    updated_at: datetime = field(default_factory=_utcnow)
    id: str | None = None

    def __post_init__(self) -> None:
        if not self.name:
            raise ValueError("Template name cannot be empty")
        ids = [step.id for step in self.steps]
        if len(ids) != len(set(ids)):
            raise ValueError(f"Template {self.name!r} has duplicate step ids")
        for step in self.steps:
            if step.status != StepStatus.PENDING:
                raise ValueError(f"Template step {step.id} must be pending")

    def to_doc(self) -> dict:
        doc: dict = {
            "name": self.name,
            "description": self.description,
            "category": self.category.value,
            "steps": [s.to_doc() for s in self.steps],
            "tags": list(self.tags),
            "created_by": self.created_by,
            "version": self.version,
            "created_at": self.created_at,
            "updated_at": self.updated_at,
        }
        if self.id:
            doc["_id"] = self.id
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> PlaybookTemplate:
        return cls(
            id=str(doc["_id"]),
            name=doc["name"],
            description=doc.get("description", ""),
            category=TemplateCategory(doc.get("category", TemplateCategory.OTHER.value)),
            steps=tuple(PlaybookStep.from_doc(s) for s in doc.get("steps", [])),
            tags=tuple(doc.get("tags", [])),
            created_by=doc.get("created_by", ""),
            version=doc.get("version", 1),
            created_at=_as_utc(doc.get("created_at")) or _utcnow(),
            updated_at=_as_utc(doc.get("updated_at")) or _utcnow(),
        )


@dataclass(frozen=True)
class PlaybookSchedule:
    """Recurrence rule attached to a run that periodically requests an update."""

    run_id: str
    frequency: Frequency
    time: str
    timezone: str = "UTC"
    days: tuple[int, ...] = ()  # 0=Sunday .. 6=Saturday, weekly only
    day_of_month: int | None = None  # monthly only
    update_prompt: str = ""
    notify_participants: bool = False
    next_run: datetime | None = None
    last_run: datetime | None = None
    active: bool = True
    created_at: datetime = field(default_factory=_utcnow)
    id: str | None = None

    def __post_init__(self) -> None:
        if not self.run_id:
            raise ValueError("Schedule must have a run_id")
        parse_time_of_day(self.time)
        try:
            ZoneInfo(self.timezone)
        except (ZoneInfoNotFoundError, ValueError) as e:
            raise ValueError(f"Unknown timezone: {self.timezone!r}") from e
        if any(not 0 <= d <= 6 for d in self.days):
            raise ValueError(f"Days of week must be in 0..6, got {list(self.days)}")
        if self.day_of_month is not None and not 1 <= self.day_of_month <= 31:
            raise ValueError(f"Day of month must be in 1..31, got {self.day_of_month}")

    @property
    def zone(self) -> ZoneInfo:
        return ZoneInfo(self.timezone)

    @property
    def time_of_day(self) -> tuple[int, int]:
        return parse_time_of_day(self.time)

    def to_doc(self) -> dict:
        doc: dict = {
            "run_id": self.run_id,
            "frequency": self.frequency.value,
            "time": self.time,
            "timezone": self.timezone,
            "days": sorted(self.days),
            "day_of_month": self.day_of_month,
            "update_prompt": self.update_prompt,
            "notify_participants": self.notify_participants,
            "next_run": self.next_run,
            "last_run": self.last_run,
            "active": self.active,
            "created_at": self.created_at,
        }
        if self.id:
            doc["_id"] = self.id
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> PlaybookSchedule:
        return cls(
            id=str(doc["_id"]),
            run_id=doc["run_id"],
            frequency=Frequency(doc["frequency"]),
            time=doc["time"],
            timezone=doc.get("timezone", "UTC"),
            days=tuple(doc.get("days", [])),
            day_of_month=doc.get("day_of_month"),
            update_prompt=doc.get("update_prompt", ""),
            notify_participants=doc.get("notify_participants", False),
            next_run=_as_utc(doc.get("next_run")),
            last_run=_as_utc(doc.get("last_run")),
            active=doc.get("active", True),
            created_at=_as_utc(doc.get("created_at")) or _utcnow(),
        )


@dataclass(frozen=True)
class PlaybookUpdate:
    """Free-form update recorded against a run, append-only."""

    run_id: str
    step_id: str
    content: str
    created_by: str
    created_at: datetime = field(default_factory=_utcnow)
    id: str | None = None

    def to_doc(self) -> dict:
        doc: dict = {
            "run_id": self.run_id,
            "step_id": self.step_id,
            "content": self.content,
            "created_by": self.created_by,
            "created_at": self.created_at,
        }
        if self.id:
            doc["_id"] = self.id
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> PlaybookUpdate:
        return cls(
            id=str(doc["_id"]),
            run_id=doc["run_id"],
            step_id=doc.get("step_id", GENERAL_STEP_ID),
            content=doc.get("content", ""),
            created_by=doc.get("created_by", ""),
            created_at=_as_utc(doc.get("created_at")) or _utcnow(),
        )


@dataclass(frozen=True)
class PlaybookRun:
    """Live instantiation of a template.

    ``schedules`` and ``updates`` live in their own collections and are only
    attached when a run is read through the lifecycle service.
    """

    template_id: str
    name: str
    owner: str
    steps: tuple[PlaybookStep, ...]
    description: str = ""
    status: RunStatus = RunStatus.ACTIVE
    current_step_index: int = 0
    participants: tuple[str, ...] = ()
    template_version: int = 1
    started_at: datetime = field(default_factory=_utcnow)
    completed_at: datetime | None = None
    schedules: tuple[PlaybookSchedule, ...] = ()
    updates: tuple[PlaybookUpdate, ...] = ()
    id: str | None = None

    def __post_init__(self) -> None:
        if not self.template_id:
            raise ValueError("Run must have a template_id")
        if not self.steps:
            raise ValueError("Run must have at least one step")
        if not 0 <= self.current_step_index < len(self.steps):
            raise ValueError(
                f"current_step_index {self.current_step_index} out of range "
                f"for {len(self.steps)} steps"
            )

    @property
    def is_active(self) -> bool:
        return self.status == RunStatus.ACTIVE

    @property
    def current_step(self) -> PlaybookStep:
        return self.steps[self.current_step_index]

    @property
    def current_step_id(self) -> str:
        """Step that scheduled updates target, or the general sentinel."""
        if self.status != RunStatus.ACTIVE:
            return GENERAL_STEP_ID
        return self.current_step.id

    @property
    def all_steps_resolved(self) -> bool:
        return all(step.status.is_resolved for step in self.steps)

    def step_index(self, step_id: str) -> int | None:
        for index, step in enumerate(self.steps):
            if step.id == step_id:
                return index
        return None

    def to_doc(self) -> dict:
        doc: dict = {
            "template_id": self.template_id,
            "template_version": self.template_version,
            "name": self.name,
            "description": self.description,
            "status": self.status.value,
            "current_step_index": self.current_step_index,
            "steps": [s.to_doc() for s in self.steps],
            "participants": list(self.participants),
            "owner": self.owner,
            "started_at": self.started_at,
            "completed_at": self.completed_at,
        }
        if self.id:
            doc["_id"] = self.id
        return doc

    @classmethod
    def from_doc(cls, doc: dict) -> PlaybookRun:
        return cls(
            id=str(doc["_id"]),
            template_id=doc["template_id"],
            template_version=doc.get("template_version", 1),
            name=doc["name"],
            description=doc.get("description", ""),
            status=RunStatus(doc.get("status", RunStatus.ACTIVE.value)),
            current_step_index=doc.get("current_step_index", 0),
            steps=tuple(PlaybookStep.from_doc(s) for s in doc.get("steps", [])),
            participants=tuple(doc.get("participants", [])),
            owner=doc.get("owner", ""),
            started_at=_as_utc(doc.get("started_at")) or _utcnow(),
            completed_at=_as_utc(doc.get("completed_at")),
        )
