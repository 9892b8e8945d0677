"""Reference normalization at the data boundary.

Relationship fields (owners, project, team, team members) arrive either as
bare identifiers or as embedded objects. Everything here resolves both
shapes to a canonical ``Reference`` before filters, sorts or equality
checks see them. Nothing in this module raises on malformed input:
unknown or broken references degrade to placeholders.

Usage:
    known = user_index(users)
    tasks = normalize_tasks(raw_tasks, known_users=known)
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timezone
from typing import Any, Literal

from workasana.models import (
    NO_PROJECT,
    NO_TEAM,
    UNASSIGNED,
    Project,
    Reference,
    TagRef,
    Task,
    Team,
    User,
)

logger = logging.getLogger(__name__)

RefKind = Literal["user", "project", "team"]

_UNKNOWN_LABELS: dict[str, str] = {"user": "User {id}", "project": "Project {id}", "team": "Team {id}"}
_EMPTY_LABELS: dict[str, str] = {"user": UNASSIGNED, "project": NO_PROJECT, "team": NO_TEAM}


def _extract_id(obj: Mapping) -> str:
    raw = obj.get("_id", obj.get("id"))
    if raw is None or isinstance(raw, (dict, list)):
        return ""
    return str(raw).strip()


def _lookup(known: Mapping[str, Any] | None, ref_id: str) -> str:
    if not known or ref_id not in known:
        return ""
    entry = known[ref_id]
    if isinstance(entry, str):
        return entry
    if isinstance(entry, (User, Reference)):
        return entry.name if isinstance(entry, User) else entry.display_name
    if isinstance(entry, Mapping):
        return str(entry.get("name") or "")
    return ""


def normalize_reference(
    value: Any,
    known: Mapping[str, Any] | None = None,
    kind: RefKind = "user",
) -> Reference:
    """Canonicalize a relationship value to ``Reference(id, display_name)``.

    Args:
        value: Bare identifier (str/int), embedded object, or junk.
        known: Optional index of id → display name (or User/Reference/dict).
        kind: Which placeholder vocabulary to use.

    Returns:
        A Reference. Bare ids missing from ``known`` get "User {id}" style
        names; objects without a name fall back to their id; empty or
        malformed values become an id-less placeholder. Synthesized names
        carry ``resolved=False``.
    """
    if isinstance(value, Reference):
        return value
    if isinstance(value, bool):
        value = None
    if isinstance(value, (str, int)):
        ref_id = str(value).strip()
        if ref_id:
            name = _lookup(known, ref_id)
            if name:
                return Reference(id=ref_id, display_name=name)
            return Reference(id=ref_id, display_name=_UNKNOWN_LABELS[kind].format(id=ref_id), resolved=False)
    elif isinstance(value, Mapping):
        ref_id = _extract_id(value)
        if ref_id:
            name = value.get("name")
            if isinstance(name, str) and name.strip():
                return Reference(id=ref_id, display_name=name)
            name = _lookup(known, ref_id)
            return Reference(id=ref_id, display_name=name or ref_id, resolved=bool(name))
    elif value is not None:
        logger.debug("Unrecognized %s reference shape: %r", kind, type(value).__name__)
    return Reference(id="", display_name=_EMPTY_LABELS[kind], resolved=False)


def normalize_references(
    values: Any,
    known: Mapping[str, Any] | None = None,
    kind: RefKind = "user",
) -> list[Reference]:
    """Normalize a reference list. A non-list becomes a one-element list."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        values = [values]
    return [normalize_reference(v, known, kind) for v in values]


def normalize_tag(value: Any) -> TagRef:
    """String tags pass through; object tags expose (id-or-name, name)."""
    if isinstance(value, TagRef):
        return value
    if isinstance(value, Mapping):
        name = value.get("name")
        label = name.strip() if isinstance(name, str) else ""
        tag_value = _extract_id(value) or label
        return TagRef(value=tag_value, label=label or tag_value)
    text = "" if value is None else str(value)
    return TagRef(value=text, label=text)


def parse_timestamp(value: Any) -> datetime | None:
    """Lenient ISO date/datetime parsing; naive values are taken as UTC."""
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            dt = datetime.fromisoformat(text)
        except ValueError:
            logger.debug("Unparseable timestamp: %r", value)
            return None
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError:
            return None
    return None


def _text(raw: Mapping, key: str) -> str:
    value = raw.get(key)
    return value if isinstance(value, str) else ""


def _as_mapping(raw: Any) -> Mapping:
    if isinstance(raw, Mapping):
        return raw
    logger.debug("Expected an object, got %s", type(raw).__name__)
    return {}


def normalize_task(raw: Any, known_users: Mapping[str, Any] | None = None) -> Task:
    """Build a Task with canonical owners, tags, project and team."""
    raw = _as_mapping(raw)
    priority = raw.get("priority")
    tags = raw.get("tags") or []
    if not isinstance(tags, (list, tuple)):
        tags = [tags]
    return Task(
        id=_extract_id(raw),
        name=_text(raw, "name"),
        description=_text(raw, "description"),
        status=_text(raw, "status"),
        priority=priority if isinstance(priority, str) and priority else None,
        owners=normalize_references(raw.get("owners"), known_users, "user"),
        tags=[normalize_tag(t) for t in tags],
        project=normalize_reference(raw.get("project"), kind="project"),
        team=normalize_reference(raw.get("team"), kind="team"),
        due_date=parse_timestamp(raw.get("dueDate")),
        created_at=parse_timestamp(raw.get("createdAt")),
        updated_at=parse_timestamp(raw.get("updatedAt")),
        time_to_complete=_as_int(raw.get("timeToComplete")),
    )


def normalize_project(raw: Any) -> Project:
    raw = _as_mapping(raw)
    return Project(
        id=_extract_id(raw),
        name=_text(raw, "name"),
        description=_text(raw, "description"),
        created_at=parse_timestamp(raw.get("createdAt")),
    )


def normalize_team(raw: Any, known_users: Mapping[str, Any] | None = None) -> Team:
    raw = _as_mapping(raw)
    return Team(
        id=_extract_id(raw),
        name=_text(raw, "name"),
        description=_text(raw, "description"),
        members=normalize_references(raw.get("members"), known_users, "user"),
    )


def normalize_user(raw: Any) -> User:
    raw = _as_mapping(raw)
    user_id = _extract_id(raw)
    return User(id=user_id, name=_text(raw, "name") or user_id, email=_text(raw, "email"))


def normalize_tasks(raws: Any, known_users: Mapping[str, Any] | None = None) -> list[Task]:
    return [normalize_task(r, known_users) for r in _as_list(raws)]


def normalize_projects(raws: Any) -> list[Project]:
    return [normalize_project(r) for r in _as_list(raws)]


def normalize_teams(raws: Any, known_users: Mapping[str, Any] | None = None) -> list[Team]:
    return [normalize_team(r, known_users) for r in _as_list(raws)]


def _as_list(raws: Any) -> list:
    if isinstance(raws, list):
        return raws
    if raws is not None:
        logger.warning("Expected a list payload, got %s", type(raws).__name__)
    return []


def user_index(users: Iterable[Any]) -> dict[str, str]:
    """Build an id → display name index from users, references or raw dicts."""
    index: dict[str, str] = {}
    for u in users:
        if isinstance(u, User):
            ref = u.as_reference()
        else:
            ref = normalize_reference(u)
        if ref.id and ref.id not in index:
            index[ref.id] = ref.display_name
    return index


def collect_known_users(
    tasks: Iterable[Task] = (),
    teams: Iterable[Team] = (),
    current_user: Mapping | User | None = None,
) -> list[Reference]:
    """Derive a deduplicated user roster from what the screens already hold.

    Order: current user first, then team members, then task owners. The
    first occurrence of an id wins, so an embedded name beats a later
    "User {id}" placeholder only if it was seen first.
    """
    roster: dict[str, Reference] = {}

    if current_user is not None:
        if isinstance(current_user, User):
            me = current_user.as_reference()
        else:
            me = normalize_reference(current_user)
        if me.id:
            if me.display_name == me.id:
                me = Reference(id=me.id, display_name="You")
            roster[me.id] = me

    for team in teams:
        for member in team.members:
            if member.id and member.id not in roster:
                roster[member.id] = member
    for task in tasks:
        for owner in task.owners:
            if owner.id and owner.id not in roster:
                roster[owner.id] = owner
    return list(roster.values())


def primary_owner_label(task: Task) -> str:
    """Display label for a task's first owner."""
    if not task.owners:
        return UNASSIGNED
    return task.owners[0].display_name
