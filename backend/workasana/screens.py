"""Screen batches — which resources each screen needs and how it derives views.

Screens differ only in their resource set, roles and the filters/sort keys
they request; fetching goes through fetcher.ScreenLoader and derivation
through views/reports.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import date

from workasana.client import WorkasanaClient
from workasana.errors import WorkasanaError
from workasana.fetcher import BatchOutcome, ResourceRequest, ResourceRole
from workasana.models import PendingWork, Project, Reference, Task, Team
from workasana.normalize import collect_known_users
from workasana.reports import (
    UNKNOWN_OWNER,
    UNKNOWN_PROJECT,
    UNKNOWN_TEAM,
    ReportData,
    grouped_buckets,
)
from workasana.session import SessionContext
from workasana.views import (
    ALL,
    TaskFilters,
    available_owners,
    available_tags,
    derive,
    filter_projects,
    tasks_for_project,
)

# === Batches ===


def dashboard_requests(client: WorkasanaClient) -> list[ResourceRequest]:
    return [
        ResourceRequest("tasks", client.list_tasks, ResourceRole.PRIMARY),
        ResourceRequest("projects", client.list_projects, ResourceRole.PRIMARY),
        ResourceRequest("teams", client.list_teams, ResourceRole.AUXILIARY),
    ]


def project_detail_requests(client: WorkasanaClient, project_id: str) -> list[ResourceRequest]:
    return [
        ResourceRequest("project", lambda: client.get_project(project_id), ResourceRole.PRIMARY),
        ResourceRequest("tasks", client.list_tasks, ResourceRole.PRIMARY),
    ]


def teams_requests(client: WorkasanaClient) -> list[ResourceRequest]:
    return [
        ResourceRequest("teams", client.list_teams, ResourceRole.PRIMARY),
        ResourceRequest("tasks", client.list_tasks, ResourceRole.AUXILIARY),
    ]


def report_requests(client: WorkasanaClient, start: date | str, end: date | str) -> list[ResourceRequest]:
    return [
        ResourceRequest("completed", lambda: client.completed_tasks(start, end), ResourceRole.REPORT, []),
        ResourceRequest("pending", client.pending_work, ResourceRole.REPORT, PendingWork()),
        ResourceRequest("by_team", lambda: client.grouped_tasks("team"), ResourceRole.REPORT, []),
        ResourceRequest("by_owner", lambda: client.grouped_tasks("owners"), ResourceRole.REPORT, []),
        ResourceRequest("by_project", lambda: client.grouped_tasks("project"), ResourceRole.REPORT, []),
    ]


# === Derived views ===


@dataclass
class DashboardView:
    my_tasks: list[Task] = field(default_factory=list)
    projects: list[Project] = field(default_factory=list)
    teams: list[Team] = field(default_factory=list)
    errors: dict[str, WorkasanaError] = field(default_factory=dict)
    degraded: list[str] = field(default_factory=list)

    @property
    def retryable(self) -> bool:
        return bool(self.errors)


def build_dashboard(
    outcome: BatchOutcome,
    session: SessionContext,
    task_status: str = ALL,
    project_status: str = ALL,
    search: str = "",
    sort_key: str | None = None,
) -> DashboardView:
    """The signed-in user's tasks plus the filtered project list."""
    tasks: list[Task] = outcome.get("tasks", [])
    projects: list[Project] = outcome.get("projects", [])
    filters = TaskFilters(
        status=task_status,
        search=search,
        mine_only=True,
        current_user_id=session.current_user_id,
    )
    return DashboardView(
        my_tasks=derive(tasks, filters, sort_key),
        projects=filter_projects(projects, tasks, project_status, search),
        teams=outcome.get("teams", []),
        errors=dict(outcome.errors),
        degraded=list(outcome.degraded),
    )


@dataclass
class ProjectDetailView:
    project: Project | None = None
    tasks: list[Task] = field(default_factory=list)
    owner_options: list[str] = field(default_factory=list)
    tag_options: list[str] = field(default_factory=list)
    errors: dict[str, WorkasanaError] = field(default_factory=dict)

    @property
    def retryable(self) -> bool:
        return bool(self.errors)


def build_project_detail(
    outcome: BatchOutcome,
    project_id: str,
    filters: TaskFilters | None = None,
    sort_key: str | None = "dueDate",
) -> ProjectDetailView:
    """Tasks of one project, filtered by owner/tag and sorted."""
    project_tasks = tasks_for_project(outcome.get("tasks", []), project_id)
    return ProjectDetailView(
        project=outcome.get("project"),
        tasks=derive(project_tasks, filters or TaskFilters(), sort_key),
        owner_options=available_owners(project_tasks),
        tag_options=available_tags(project_tasks),
        errors=dict(outcome.errors),
    )


@dataclass
class TeamRosterView:
    teams: list[Team] = field(default_factory=list)
    known_users: list[Reference] = field(default_factory=list)
    errors: dict[str, WorkasanaError] = field(default_factory=dict)


def build_team_roster(outcome: BatchOutcome, session: SessionContext) -> TeamRosterView:
    """Teams plus the users that can be added to them.

    The roster comes from the current user, team members and task owners;
    if the task list degraded, it is just the current user and members.
    """
    teams: list[Team] = outcome.get("teams", [])
    return TeamRosterView(
        teams=teams,
        known_users=collect_known_users(outcome.get("tasks", []), teams, session.user),
        errors=dict(outcome.errors),
    )


def build_report(outcome: BatchOutcome) -> ReportData:
    """Report data with every failed sub-query already at its zero value."""
    return ReportData(
        completed_tasks=outcome.get("completed", []),
        pending=outcome.get("pending") or PendingWork(),
        by_team=grouped_buckets(outcome.get("by_team", []), UNKNOWN_TEAM),
        by_owner=grouped_buckets(outcome.get("by_owner", []), UNKNOWN_OWNER),
        by_project=grouped_buckets(outcome.get("by_project", []), UNKNOWN_PROJECT),
    )
