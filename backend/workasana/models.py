"""Task tracker entity models.

All entities are owned by the remote service and only live for the
duration of a fetch/derive cycle. Relationship fields are canonical
``Reference`` values produced by ``workasana.normalize``.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

TaskStatus = Literal["To Do", "In Progress", "Completed", "Blocked"]
Priority = Literal["High", "Medium", "Low"]
GroupBy = Literal["team", "owners", "project"]

TASK_STATUSES: tuple[str, ...] = ("To Do", "In Progress", "Completed", "Blocked")
PRIORITIES: tuple[str, ...] = ("High", "Medium", "Low")
GROUP_BY_DIMENSIONS: tuple[str, ...] = ("team", "owners", "project")

# Placeholder labels for references that arrived empty or malformed
UNASSIGNED = "Unassigned"
NO_PROJECT = "No project"
NO_TEAM = "No team"


def _as_utc(value: datetime | None) -> datetime | None:
    """Naive datetimes are taken as UTC so every stored timestamp is comparable."""
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class Reference(BaseModel):
    """Canonical relationship value. Two references are equal iff their ids are.

    ``resolved`` is False when ``display_name`` was synthesized (a
    "User {id}" style label or an empty-reference placeholder) rather than
    taken from the embedded object or a known-entity index.
    """

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    resolved: bool = True

    @property
    def is_placeholder(self) -> bool:
        return not self.id

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Reference):
            return self.id == other.id
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.id)


class TagRef(BaseModel):
    """Canonical tag: ``value`` is what filters compare, ``label`` is shown."""

    model_config = ConfigDict(frozen=True)

    value: str
    label: str

    def __eq__(self, other: object) -> bool:
        if isinstance(other, TagRef):
            return self.value == other.value
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.value)


class User(BaseModel):
    id: str
    name: str
    email: str = ""

    def as_reference(self) -> Reference:
        return Reference(id=self.id, display_name=self.name or self.id)


class Project(BaseModel):
    """A project grouping tasks."""

    id: str
    name: str
    description: str = ""
    created_at: datetime | None = None

    @field_validator("created_at")
    @classmethod
    def created_as_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)


class Team(BaseModel):
    """A team and its member roster."""

    id: str
    name: str
    description: str = ""
    members: list[Reference] = Field(default_factory=list)


class Task(BaseModel):
    """A task with normalized owners, tags, project and team."""

    id: str
    name: str
    description: str = ""
    status: str = ""  # one of TASK_STATUSES, or "" when unset
    priority: str | None = None  # one of PRIORITIES, or None
    owners: list[Reference] = Field(default_factory=list)
    tags: list[TagRef] = Field(default_factory=list)
    project: Reference = Field(default_factory=lambda: Reference(id="", display_name=NO_PROJECT, resolved=False))
    team: Reference = Field(default_factory=lambda: Reference(id="", display_name=NO_TEAM, resolved=False))
    due_date: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None
    time_to_complete: int | None = None  # days

    @field_validator("due_date", "created_at", "updated_at")
    @classmethod
    def dates_as_utc(cls, v: datetime | None) -> datetime | None:
        return _as_utc(v)

    @property
    def owner_ids(self) -> set[str]:
        return {o.id for o in self.owners}

    @property
    def tag_values(self) -> set[str]:
        return {t.value for t in self.tags}


class ReportBucket(BaseModel):
    """One bar/slice of a summary chart."""

    label: str  # YYYY-MM-DD for day buckets, group name otherwise
    count: int = 0


class PendingWork(BaseModel):
    """Pending-work totals from ``GET /report/pending``."""

    total_days_pending: int = 0
    pending_tasks_count: int = 0

    def estimated_completion(self, factor: float) -> float:
        """Estimated days to completion as a share of pending days."""
        return max(0.0, self.total_days_pending * factor)
