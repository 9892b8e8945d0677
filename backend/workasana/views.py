"""View derivation — filter, sort and group normalized tasks and projects.

Everything here is a pure function of its inputs: no fetching, no hidden
state, no mutation of the records passed in. Derived lists hold the same
objects as the input, in a new order.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Sequence
from datetime import datetime, timezone
from typing import Literal

from pydantic import BaseModel

from workasana.models import Project, Task

Predicate = Callable[[Task], bool]
SortKey = Literal["dueDate", "priority", "status"]
GroupKey = Literal["status", "project", "team", "owner"]

ALL = "all"

PRIORITY_RANK: dict[str, int] = {"High": 3, "Medium": 2, "Low": 1}
STATUS_RANK: dict[str, int] = {"Completed": 4, "In Progress": 3, "Blocked": 2, "To Do": 1}

_NO_DATE = datetime.max.replace(tzinfo=timezone.utc)


def _is_unset(value: str | None) -> bool:
    return value is None or value == "" or value == ALL


# === Predicates ===


def status_is(status: str) -> Predicate:
    return lambda task: task.status == status


def owner_is(owner_id: str) -> Predicate:
    """Owner equality on canonical ids, whatever shape the owner arrived in."""
    return lambda task: owner_id in task.owner_ids


def has_tag(tag: str) -> Predicate:
    return lambda task: tag in task.tag_values


def text_matches(term: str) -> Predicate:
    """Case-insensitive substring match on name, description or a resolved project name."""
    needle = term.lower()

    def _match(task: Task) -> bool:
        return (
            needle in task.name.lower()
            or needle in task.description.lower()
            or (task.project.resolved and needle in task.project.display_name.lower())
        )

    return _match


def owned_by(user_id: str | None) -> Predicate:
    """Tasks whose owner set contains the session user. No user → nothing."""
    if not user_id:
        return lambda task: False
    return lambda task: user_id in task.owner_ids


class TaskFilters(BaseModel):
    """Filter controls shared by the list screens. ``"all"`` disables one."""

    status: str = ALL
    owner: str = ALL
    tag: str = ALL
    search: str = ""
    mine_only: bool = False
    current_user_id: str | None = None

    def predicates(self) -> list[Predicate]:
        preds: list[Predicate] = []
        if self.mine_only:
            preds.append(owned_by(self.current_user_id))
        if not _is_unset(self.status):
            preds.append(status_is(self.status))
        if not _is_unset(self.owner):
            preds.append(owner_is(self.owner))
        if not _is_unset(self.tag):
            preds.append(has_tag(self.tag))
        if self.search.strip():
            preds.append(text_matches(self.search.strip()))
        return preds


# === Sorting ===


def _due_key(task: Task) -> datetime:
    return task.due_date or task.created_at or _NO_DATE


def _priority_key(task: Task) -> int:
    return -PRIORITY_RANK.get(task.priority or "", 0)


def _status_key(task: Task) -> int:
    return -STATUS_RANK.get(task.status, 0)


SORT_KEYS: dict[str, Callable[[Task], object]] = {
    "dueDate": _due_key,
    "priority": _priority_key,
    "status": _status_key,
}


def sort_tasks(tasks: Iterable[Task], sort_key: str | None) -> list[Task]:
    """Stable sort by a named key. Unknown keys keep input order.

    dueDate   ascending, falling back to createdAt; undated tasks last
    priority  High → Medium → Low → unset
    status    Completed → In Progress → Blocked → To Do → unset
    """
    items = list(tasks)
    key = SORT_KEYS.get(sort_key or "")
    if key is None:
        return items
    return sorted(items, key=key)


def derive(
    items: Iterable[Task],
    filters: TaskFilters | Iterable[Predicate] = (),
    sort_key: str | None = None,
) -> list[Task]:
    """Filter (logical AND) then stable-sort. Same inputs, same output."""
    preds = filters.predicates() if isinstance(filters, TaskFilters) else list(filters)
    kept = [t for t in items if all(p(t) for p in preds)]
    return sort_tasks(kept, sort_key)


# === Grouping ===


def group_tasks(tasks: Iterable[Task], by: str) -> dict[str, list[Task]]:
    """Group tasks under display labels, groups in first-appearance order.

    ``owner`` places a task under each of its owners; ownerless tasks go
    under "Unassigned". Unknown ``by`` values yield a single "All" group.
    """
    groups: dict[str, list[Task]] = {}
    for task in tasks:
        if by == "status":
            labels = [task.status or "No status"]
        elif by == "project":
            labels = [task.project.display_name]
        elif by == "team":
            labels = [task.team.display_name]
        elif by == "owner":
            labels = [o.display_name for o in task.owners] or ["Unassigned"]
        else:
            labels = ["All"]
        for label in dict.fromkeys(labels):
            groups.setdefault(label, []).append(task)
    return groups


# === Screen helpers ===


def tasks_for_project(tasks: Iterable[Task], project_id: str) -> list[Task]:
    if not project_id:
        return []
    return [t for t in tasks if t.project.id == project_id]


def available_owners(tasks: Iterable[Task]) -> list[str]:
    """Distinct owner ids in first-appearance order (owner filter options)."""
    seen: dict[str, None] = {}
    for task in tasks:
        for owner in task.owners:
            if owner.id:
                seen.setdefault(owner.id, None)
    return list(seen)


def available_tags(tasks: Iterable[Task]) -> list[str]:
    seen: dict[str, None] = {}
    for task in tasks:
        for tag in task.tags:
            if tag.value:
                seen.setdefault(tag.value, None)
    return list(seen)


def project_task_counts(tasks: Iterable[Task], project_id: str) -> dict[str, int]:
    project_tasks = tasks_for_project(tasks, project_id)
    return {
        "total": len(project_tasks),
        "todo": sum(1 for t in project_tasks if t.status == "To Do"),
        "in_progress": sum(1 for t in project_tasks if t.status == "In Progress"),
        "completed": sum(1 for t in project_tasks if t.status == "Completed"),
        "blocked": sum(1 for t in project_tasks if t.status == "Blocked"),
    }


def filter_projects(
    projects: Sequence[Project],
    tasks: Sequence[Task],
    status: str = ALL,
    search: str = "",
) -> list[Project]:
    """Project list filter.

    A project matches a status when any of its tasks has that status; the
    search term matches name or description, case-insensitively.
    """
    result = list(projects)
    if not _is_unset(status):
        with_status = {t.project.id for t in tasks if t.status == status and t.project.id}
        result = [p for p in result if p.id in with_status]
    term = search.strip().lower()
    if term:
        result = [p for p in result if term in p.name.lower() or term in p.description.lower()]
    return result
