"""Typed wrappers over the task tracker REST endpoints.

Results come back normalized (canonical references, parsed dates).
Client-side checks raise ValidationError before any request is issued.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Mapping
from datetime import date
from typing import Any

from pydantic import BaseModel, Field

from workasana.config import get_fallback_tags, settings
from workasana.errors import RequestFailed, ValidationError
from workasana.gateway import AuthenticatedGateway
from workasana.models import GROUP_BY_DIMENSIONS, PendingWork, Project, Task, Team
from workasana.normalize import (
    normalize_project,
    normalize_projects,
    normalize_reference,
    normalize_task,
    normalize_tasks,
    normalize_teams,
)

logger = logging.getLogger(__name__)


def _ref_id(value: Any) -> str:
    """Accept an id or an embedded object and return the id."""
    return normalize_reference(value).id


def _require(value: Any, field: str, message: str) -> None:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise ValidationError(field, message)


class TaskDraft(BaseModel):
    """Task form payload for ``POST /tasks`` and ``PUT /tasks/{id}``."""

    name: str = ""
    team: Any = ""
    project: Any = ""
    owners: list[Any] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    time_to_complete: Any = 1
    status: str = "To Do"

    @classmethod
    def from_task(cls, task: Task) -> "TaskDraft":
        """Pre-fill a draft from an existing task (edit mode)."""
        return cls(
            name=task.name,
            team=task.team.id,
            project=task.project.id,
            owners=[o.id for o in task.owners],
            tags=[t.value for t in task.tags],
            time_to_complete=task.time_to_complete or 1,
            status=task.status or "To Do",
        )

    def validate_required(self) -> None:
        _require(self.name, "name", "Task name is required")
        _require(_ref_id(self.team), "team", "Please select a team")
        _require(_ref_id(self.project), "project", "Please select a project")
        if not [o for o in self.owners if _ref_id(o)]:
            raise ValidationError("owners", "Please select at least one owner")

    def to_payload(self) -> dict:
        """Validated wire payload. ``timeToComplete`` falls back to 1."""
        self.validate_required()
        try:
            days = int(self.time_to_complete)
        except (TypeError, ValueError):
            days = 1
        return {
            "name": self.name.strip(),
            "team": _ref_id(self.team),
            "project": _ref_id(self.project),
            "owners": [_ref_id(o) for o in self.owners if _ref_id(o)],
            "tags": list(self.tags),
            "timeToComplete": days if days > 0 else 1,
            "status": self.status or "To Do",
        }


class WorkasanaClient:
    """Endpoint wrappers sharing one AuthenticatedGateway.

    Usage:
        client = WorkasanaClient(AuthenticatedGateway(session))
        await client.login("a@b.c", "secret")
        tasks = await client.list_tasks()
    """

    def __init__(self, gateway: AuthenticatedGateway) -> None:
        self.gateway = gateway

    @property
    def session(self):
        return self.gateway.session

    # === Auth ===

    async def login(self, email: str, password: str) -> dict:
        """POST /auth/login and store the returned token and profile."""
        if not email or not password:
            raise ValidationError("credentials", "Please enter both email and password")
        data = await self.gateway.post("/auth/login", json={"email": email, "password": password})
        return self._store_credentials(data)

    async def signup(
        self,
        name: str,
        email: str,
        password: str,
        confirm_password: str | None = None,
    ) -> dict:
        """POST /auth/signup and store the returned token and profile."""
        confirm = password if confirm_password is None else confirm_password
        if not name or not email or not password or not confirm:
            raise ValidationError("credentials", "All fields are required")
        if password != confirm:
            raise ValidationError("confirm_password", "Passwords do not match")
        if len(password) < settings.min_password_length:
            raise ValidationError(
                "password",
                f"Password must be at least {settings.min_password_length} characters long",
            )
        data = await self.gateway.post(
            "/auth/signup", json={"name": name, "email": email, "password": password}
        )
        return self._store_credentials(data)

    def logout(self) -> None:
        self.session.sign_out()

    # === Account ===

    async def current_user(self) -> dict:
        """GET /auth/me and refresh the cached profile."""
        data = await self.gateway.get("/auth/me")
        if not isinstance(data, dict):
            raise RequestFailed("Profile response was not an object.")
        self.session.update_user(data)
        return data

    async def update_profile(self, name: str | None = None, email: str | None = None) -> dict:
        """PUT /auth/me with only the fields that differ from the cached profile.

        Returns the updated profile, which also replaces the cached one. No
        request is sent when nothing changed.
        """
        current = self.session.user or {}
        changes: dict[str, str] = {}
        if name is not None and name != current.get("name"):
            _require(name, "name", "Name is required")
            changes["name"] = name.strip()
        if email is not None and email != current.get("email"):
            _require(email, "email", "Email is required")
            changes["email"] = email.strip()
        if not changes:
            return current
        data = await self.gateway.put("/auth/me", json=changes)
        profile = data if isinstance(data, dict) else {**current, **changes}
        self.session.update_user(profile)
        return profile

    async def change_password(
        self,
        current_password: str,
        new_password: str,
        confirm_password: str | None = None,
    ) -> Any:
        """PUT /auth/change-password after the same checks as signup."""
        confirm = new_password if confirm_password is None else confirm_password
        if not current_password or not new_password:
            raise ValidationError("password", "Please enter your current and new password")
        if new_password != confirm:
            raise ValidationError("confirm_password", "New passwords do not match")
        if len(new_password) < settings.min_password_length:
            raise ValidationError(
                "new_password",
                f"New password must be at least {settings.min_password_length} characters long",
            )
        return await self.gateway.put(
            "/auth/change-password",
            json={"currentPassword": current_password, "newPassword": new_password},
        )

    async def export_data(self) -> Any:
        """GET /user/data-export: everything the service holds for this user."""
        return await self.gateway.get("/user/data-export")

    async def delete_account(self) -> None:
        """DELETE /auth/account, then drop the credential and cached profile."""
        await self.gateway.delete("/auth/account")
        self.session.sign_out()

    def _store_credentials(self, data: Any) -> dict:
        if not isinstance(data, Mapping) or not data.get("token"):
            raise RequestFailed("Authentication response did not include a token.")
        user = data.get("user") if isinstance(data.get("user"), dict) else {}
        self.session.sign_in(str(data["token"]), user)
        return user

    # === Collections ===

    async def list_tasks(self, known_users: Mapping[str, Any] | None = None) -> list[Task]:
        return normalize_tasks(await self.gateway.get("/tasks"), known_users)

    async def list_projects(self) -> list[Project]:
        return normalize_projects(await self.gateway.get("/projects"))

    async def list_teams(self, known_users: Mapping[str, Any] | None = None) -> list[Team]:
        return normalize_teams(await self.gateway.get("/teams"), known_users)

    async def get_project(self, project_id: str) -> Project:
        _require(project_id, "project_id", "Project id is required")
        return normalize_project(await self.gateway.get(f"/projects/{project_id}"))

    async def list_tags(self) -> list[str]:
        """GET /tags, falling back to the configured default tag list."""
        try:
            data = await self.gateway.get("/tags")
        except RequestFailed as e:
            logger.warning("Tag list unavailable, using defaults: %s", e.message)
            return get_fallback_tags()
        if not isinstance(data, list):
            return get_fallback_tags()
        return [str(t.get("name", "")) if isinstance(t, dict) else str(t) for t in data]

    # === Tasks / projects ===

    async def create_task(self, draft: TaskDraft) -> Task:
        payload = draft.to_payload()
        return normalize_task(await self.gateway.post("/tasks", json=payload))

    async def update_task(self, task_id: str, draft: TaskDraft) -> Task:
        _require(task_id, "task_id", "Task id is required")
        payload = draft.to_payload()
        return normalize_task(await self.gateway.put(f"/tasks/{task_id}", json=payload))

    async def create_project(self, name: str, description: str = "") -> Project:
        _require(name, "name", "Project name is required")
        data = await self.gateway.post(
            "/projects", json={"name": name.strip(), "description": (description or "").strip()}
        )
        return normalize_project(data)

    # === Teams ===

    async def create_team(self, name: str, description: str = "") -> Any:
        _require(name, "name", "Team name is required")
        return await self.gateway.post("/teams", json={"name": name.strip(), "description": description})

    async def update_team(self, team_id: str, name: str, description: str = "") -> Any:
        _require(team_id, "team_id", "Team id is required")
        _require(name, "name", "Team name is required")
        return await self.gateway.put(
            f"/teams/{team_id}", json={"name": name.strip(), "description": description}
        )

    async def delete_team(self, team_id: str) -> Any:
        _require(team_id, "team_id", "Team id is required")
        return await self.gateway.delete(f"/teams/{team_id}")

    async def add_member(self, team_id: str, user_id: str) -> Any:
        _require(team_id, "team_id", "Team id is required")
        _require(user_id, "userId", "Please select a user to add")
        return await self.gateway.post(f"/teams/{team_id}/members", json={"userId": user_id})

    async def remove_member(self, team_id: str, user_id: str) -> Any:
        _require(team_id, "team_id", "Team id is required")
        _require(user_id, "userId", "User id is required")
        return await self.gateway.delete(f"/teams/{team_id}/members/{user_id}")

    # === Reports ===

    async def completed_tasks(self, start: date | str, end: date | str) -> list[Task]:
        params = {"startDate": str(start), "endDate": str(end)}
        return normalize_tasks(await self.gateway.get("/report/completed-tasks", params=params))

    async def pending_work(self) -> PendingWork:
        data = await self.gateway.get("/report/pending")
        if not isinstance(data, Mapping):
            return PendingWork()
        return PendingWork(
            total_days_pending=_count(data.get("totalDaysPending")),
            pending_tasks_count=_count(data.get("pendingTasksCount")),
        )

    async def grouped_tasks(self, group_by: str, status: str = "Completed") -> list[dict]:
        """Raw grouped rows (``{name, count}``) in the server's order."""
        if group_by not in GROUP_BY_DIMENSIONS:
            raise ValidationError("groupBy", f"groupBy must be one of {', '.join(GROUP_BY_DIMENSIONS)}")
        data = await self.gateway.get(
            "/report/grouped-tasks", params={"groupBy": group_by, "status": status}
        )
        return data if isinstance(data, list) else []


def _count(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if math.isfinite(value) else 0
    try:
        return int(str(value))
    except (TypeError, ValueError):
        return 0
