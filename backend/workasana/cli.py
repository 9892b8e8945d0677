"""CLI entry point for the Workasana data layer.

Usage:
    cd backend && python -m workasana.cli login --email me@example.com --password secret
    python -m workasana.cli dashboard --status "In Progress" --search api
    python -m workasana.cli project 64f1c0 --sort priority --tag Bug
    python -m workasana.cli report --start 2024-01-01 --end 2024-01-07 -o report.json
    python -m workasana.cli export

Session state (token, profile, preferences) persists in a JSON file between
invocations; see --state.
"""

from __future__ import annotations

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path

from workasana.client import WorkasanaClient
from workasana.errors import RequestFailed, SessionExpired, ValidationError
from workasana.fetcher import ScreenLoader
from workasana.gateway import AuthenticatedGateway
from workasana.normalize import primary_owner_label
from workasana.reports import data_export_filename, default_date_range
from workasana.screens import (
    build_dashboard,
    build_project_detail,
    build_report,
    dashboard_requests,
    project_detail_requests,
    report_requests,
)
from workasana.session import JsonFileStore, SessionContext
from workasana.views import TaskFilters

logging.basicConfig(level=logging.INFO, format="%(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)

_DEFAULT_STATE = Path.home() / ".workasana" / "session.json"


def _task_row(task) -> dict:
    when = task.due_date or task.created_at
    return {
        "id": task.id,
        "name": task.name,
        "status": task.status,
        "priority": task.priority,
        "project": task.project.display_name,
        "owner": primary_owner_label(task),
        "due": when.date().isoformat() if when else None,
        "tags": [t.label for t in task.tags],
    }


async def run_dashboard(client: WorkasanaClient, status: str, search: str, sort: str | None) -> dict:
    loader = ScreenLoader(lambda: dashboard_requests(client))
    outcome = await loader.load()
    view = build_dashboard(outcome, client.session, task_status=status, search=search, sort_key=sort)
    return {
        "tasks": [_task_row(t) for t in view.my_tasks],
        "projects": [{"id": p.id, "name": p.name, "description": p.description} for p in view.projects],
        "errors": {name: str(err) for name, err in view.errors.items()},
    }


async def run_project(client: WorkasanaClient, project_id: str, filters: TaskFilters, sort: str) -> dict:
    loader = ScreenLoader(lambda: project_detail_requests(client, project_id))
    outcome = await loader.load()
    view = build_project_detail(outcome, project_id, filters, sort)
    return {
        "project": view.project.model_dump(mode="json") if view.project else None,
        "tasks": [_task_row(t) for t in view.tasks],
        "owners": view.owner_options,
        "tags": view.tag_options,
        "errors": {name: str(err) for name, err in view.errors.items()},
    }


async def run_report(client: WorkasanaClient, start: str, end: str, top: int | None) -> dict:
    loader = ScreenLoader(lambda: report_requests(client, start, end))
    outcome = await loader.load()
    data = build_report(outcome)
    return {
        "range": {"start": start, "end": end},
        "by_day": [b.model_dump() for b in data.by_day()],
        "top_owners": [b.model_dump() for b in data.top_owners(top)],
        "by_team": [b.model_dump() for b in data.by_team],
        "by_project": [b.model_dump() for b in data.by_project],
        "summary": data.summary().model_dump(),
        "degraded": sorted(outcome.degraded),
    }


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Workasana task tracker data layer")
    parser.add_argument("--state", default=str(_DEFAULT_STATE), help="Session state JSON file")
    parser.add_argument("--base-url", default="", help="Override the API base URL")
    parser.add_argument("--output", "-o", help="Output JSON file path")
    sub = parser.add_subparsers(dest="command", required=True)

    login = sub.add_parser("login", help="Sign in and store the session token")
    login.add_argument("--email", required=True)
    login.add_argument("--password", required=True)

    sub.add_parser("logout", help="Clear the stored session")
    sub.add_parser("me", help="Fetch and cache the signed-in profile")
    sub.add_parser("export", help="Download all account data (default file: workasana-data-<date>.json)")

    dash = sub.add_parser("dashboard", help="My tasks and the project list")
    dash.add_argument("--status", default="all")
    dash.add_argument("--search", default="")
    dash.add_argument("--sort", choices=["dueDate", "priority", "status"])

    proj = sub.add_parser("project", help="Tasks of one project")
    proj.add_argument("project_id")
    proj.add_argument("--owner", default="all")
    proj.add_argument("--tag", default="all")
    proj.add_argument("--sort", default="dueDate", choices=["dueDate", "priority", "status"])

    rep = sub.add_parser("report", help="Completed/pending/grouped report")
    rep.add_argument("--start", help="YYYY-MM-DD (default: a week ago)")
    rep.add_argument("--end", help="YYYY-MM-DD (default: today)")
    rep.add_argument("--top", type=int, help="Owner ranking window")
    return parser


async def _dispatch(args: argparse.Namespace, client: WorkasanaClient) -> dict:
    if args.command == "login":
        user = await client.login(args.email, args.password)
        return {"signed_in": True, "user": user}
    if args.command == "logout":
        client.logout()
        return {"signed_in": False}
    if args.command == "me":
        return await client.current_user()
    if args.command == "export":
        return await client.export_data()
    if args.command == "dashboard":
        return await run_dashboard(client, args.status, args.search, args.sort)
    if args.command == "project":
        filters = TaskFilters(owner=args.owner, tag=args.tag)
        return await run_project(client, args.project_id, filters, args.sort)
    start, end = default_date_range()
    return await run_report(client, args.start or start.isoformat(), args.end or end.isoformat(), args.top)


def main(argv: list[str] | None = None) -> None:
    args = _build_parser().parse_args(argv)
    session = SessionContext(JsonFileStore(args.state))
    client = WorkasanaClient(AuthenticatedGateway(session, base_url=args.base_url))

    if args.command not in ("login", "logout") and not session.is_authenticated:
        logger.error("Not signed in. Run: python -m workasana.cli login --email ... --password ...")
        sys.exit(2)

    try:
        result = asyncio.run(_dispatch(args, client))
    except SessionExpired:
        logger.error("Your session has expired. Please log in again.")
        sys.exit(2)
    except ValidationError as e:
        logger.error("%s", e.message)
        sys.exit(2)
    except RequestFailed as e:
        logger.error("%s", e.message)
        sys.exit(1)

    output = args.output or (data_export_filename() if args.command == "export" else None)
    if output:
        with open(output, "w") as f:
            json.dump(result, f, indent=2, default=str)
        logger.info("Results written to %s", output)
    else:
        print(json.dumps(result, indent=2, default=str))


if __name__ == "__main__":
    main()
