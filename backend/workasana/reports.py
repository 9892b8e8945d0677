"""Report aggregation for the summary screen.

GET /report/completed-tasks → day buckets (aggregated here)
GET /report/pending         → PendingWork totals
GET /report/grouped-tasks   → team/owner/project buckets (server-sorted,
                              only windowed here, never re-sorted)
"""

from __future__ import annotations

import json
from collections import defaultdict
from collections.abc import Iterable, Sequence
from datetime import date, datetime, timedelta, tzinfo
from typing import Any

from pydantic import BaseModel, Field

from workasana.config import settings
from workasana.models import PendingWork, ReportBucket, Task

UNKNOWN_TEAM = "Unknown Team"
UNKNOWN_OWNER = "Unknown Owner"
UNKNOWN_PROJECT = "Unknown Project"


def _completion_time(task: Task) -> datetime | None:
    return task.updated_at or task.created_at


def aggregate_by_day(tasks: Iterable[Task], tz: tzinfo | None = None) -> list[ReportBucket]:
    """Count completed tasks per local calendar day, ascending by day.

    Args:
        tasks: Tasks from the completed-tasks report. Tasks carrying any
            other explicit status, or no timestamp at all, are skipped.
        tz: Viewer's timezone. Defaults to the local system zone.

    Returns:
        ReportBuckets labelled YYYY-MM-DD. Empty input → empty list.
    """
    daily: dict[str, int] = defaultdict(int)
    for task in tasks:
        if task.status and task.status != "Completed":
            continue
        ts = _completion_time(task)
        if ts is None:
            continue
        local = ts.astimezone(tz) if tz is not None else ts.astimezone()
        daily[local.strftime("%Y-%m-%d")] += 1
    return [ReportBucket(label=day, count=daily[day]) for day in sorted(daily)]


def top_n(grouped: Sequence[ReportBucket], n: int) -> list[ReportBucket]:
    """First ``n`` buckets in received order."""
    if n <= 0:
        return []
    return list(grouped[:n])


def grouped_buckets(rows: Any, unknown_label: str) -> list[ReportBucket]:
    """Normalize remote ``{name, count}`` rows into buckets, order preserved."""
    if not isinstance(rows, list):
        return []
    buckets: list[ReportBucket] = []
    for row in rows:
        if isinstance(row, ReportBucket):
            buckets.append(row)
            continue
        if not isinstance(row, dict):
            continue
        name = row.get("name") or row.get("label")
        count = row.get("count", 0)
        buckets.append(
            ReportBucket(
                label=str(name) if name else unknown_label,
                count=count if isinstance(count, int) and not isinstance(count, bool) else 0,
            )
        )
    return buckets


def default_date_range(today: date | None = None, days: int | None = None) -> tuple[date, date]:
    """(start, end) covering the last ``days`` days up to today."""
    end = today or date.today()
    span = settings.report_window_days if days is None else days
    return end - timedelta(days=span), end


def export_filename(today: date | None = None) -> str:
    return f"workasana-reports-{(today or date.today()).isoformat()}.json"


def data_export_filename(today: date | None = None) -> str:
    return f"workasana-data-{(today or date.today()).isoformat()}.json"


class ReportSummary(BaseModel):
    total_completed: int
    pending_tasks: int
    total_days_pending: int
    estimated_completion: float
    teams_active: int
    active_users: int


class ReportData(BaseModel):
    """Everything the summary screen renders, after degradation."""

    completed_tasks: list[Task] = Field(default_factory=list)
    pending: PendingWork = Field(default_factory=PendingWork)
    by_team: list[ReportBucket] = Field(default_factory=list)
    by_owner: list[ReportBucket] = Field(default_factory=list)
    by_project: list[ReportBucket] = Field(default_factory=list)

    def by_day(self, tz: tzinfo | None = None) -> list[ReportBucket]:
        return aggregate_by_day(self.completed_tasks, tz)

    def top_owners(self, n: int | None = None) -> list[ReportBucket]:
        return top_n(self.by_owner, settings.report_top_n if n is None else n)

    def summary(self, factor: float | None = None) -> ReportSummary:
        factor = settings.pending_estimate_factor if factor is None else factor
        return ReportSummary(
            total_completed=len(self.completed_tasks),
            pending_tasks=self.pending.pending_tasks_count,
            total_days_pending=self.pending.total_days_pending,
            estimated_completion=self.pending.estimated_completion(factor),
            teams_active=len(self.by_team),
            active_users=len(self.by_owner),
        )

    def to_json(self) -> str:
        """JSON export of the raw report data."""
        return json.dumps(self.model_dump(mode="json"), indent=2)
