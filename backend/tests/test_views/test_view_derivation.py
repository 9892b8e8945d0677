"""Tests for task filtering, sorting and grouping."""

from datetime import datetime

import pytest

from workasana.models import Project, Task
from workasana.normalize import normalize_task, normalize_tasks
from workasana.views import (
    ALL,
    TaskFilters,
    available_owners,
    available_tags,
    derive,
    filter_projects,
    group_tasks,
    has_tag,
    owned_by,
    owner_is,
    project_task_counts,
    sort_tasks,
    status_is,
    tasks_for_project,
    text_matches,
)


def _task(task_id: str, **fields):
    return normalize_task({"_id": task_id, "name": task_id, **fields})


@pytest.fixture
def tasks(raw_tasks):
    return normalize_tasks(raw_tasks)


# === Sorting ===


def test_due_date_ascending():
    items = [_task("late", dueDate="2024-01-03"), _task("early", dueDate="2024-01-01")]
    assert [t.id for t in sort_tasks(items, "dueDate")] == ["early", "late"]


def test_due_date_falls_back_to_created_and_undated_last():
    items = [
        _task("undated"),
        _task("due", dueDate="2024-02-01"),
        _task("created", createdAt="2024-01-15T00:00:00Z"),
    ]
    assert [t.id for t in sort_tasks(items, "dueDate")] == ["created", "due", "undated"]


def test_priority_descending_with_unset_last():
    items = [_task("a", priority="Low"), _task("b", priority="High"), _task("c", priority=None)]
    assert [t.priority for t in sort_tasks(items, "priority")] == ["High", "Low", None]


def test_status_ranking():
    items = [
        _task("a", status="To Do"),
        _task("b", status="Completed"),
        _task("c", status="Blocked"),
        _task("d", status="In Progress"),
        _task("e"),
    ]
    assert [t.id for t in sort_tasks(items, "status")] == ["b", "d", "c", "a", "e"]


def test_sort_is_stable_for_ties():
    items = [_task("x", priority="High"), _task("y", priority="High"), _task("z", priority="High")]
    assert [t.id for t in sort_tasks(items, "priority")] == ["x", "y", "z"]


@pytest.mark.parametrize("key", [None, "", "name", "createdAt"])
def test_unknown_sort_key_keeps_input_order(tasks, key):
    assert [t.id for t in sort_tasks(tasks, key)] == ["t1", "t2", "t3"]


def test_sort_does_not_mutate_input(tasks):
    before = list(tasks)
    sort_tasks(tasks, "priority")
    assert tasks == before


@pytest.mark.parametrize("key", ["dueDate", "priority", "status"])
def test_sort_is_idempotent(tasks, key):
    once = sort_tasks(tasks, key)
    assert sort_tasks(once, key) == once


def test_naive_dates_sort_with_undated_and_aware_tasks():
    items = [
        Task(id="naive", name="naive", due_date=datetime(2024, 1, 3)),
        Task(id="undated", name="undated"),
        _task("aware", dueDate="2024-01-01T00:00:00Z"),
    ]
    assert [t.id for t in sort_tasks(items, "dueDate")] == ["aware", "naive", "undated"]
    assert [t.id for t in derive(items, TaskFilters(), "dueDate")] == ["aware", "naive", "undated"]


# === Predicates ===


def test_owner_filter_matches_both_reference_shapes(tasks):
    """t1 embeds u1 as an object, t3 lists u1 as a bare id."""
    assert [t.id for t in derive(tasks, [owner_is("u1")])] == ["t1", "t3"]


def test_tag_filter_uses_tag_value(tasks):
    assert [t.id for t in derive(tasks, [has_tag("tag-ui")])] == ["t2"]


def test_text_search_is_case_insensitive(tasks):
    assert [t.id for t in derive(tasks, [text_matches("LOGIN")])] == ["t2"]


def test_text_search_covers_description_and_project_name(tasks):
    assert [t.id for t in derive(tasks, [text_matches("zephyr")])] == ["t3"]
    assert [t.id for t in derive(tasks, [text_matches("apollo")])] == ["t1"]


def test_text_search_ignores_placeholder_project_names(tasks):
    # t2's project is a bare id, so its display name is a placeholder
    assert [t.id for t in derive(tasks, [text_matches("project p1")])] == []


def test_text_search_ignores_synthesized_project_names():
    tasks = [_task("a", project="p1"), _task("b", project={"_id": "p2", "name": "Project Atlas"})]
    assert [t.id for t in derive(tasks, [text_matches("project")])] == ["b"]


def test_owned_by_without_user_matches_nothing(tasks):
    assert derive(tasks, [owned_by(None)]) == []


def test_filters_combine_with_and(tasks):
    filters = TaskFilters(owner="u1", status="In Progress")
    assert [t.id for t in derive(tasks, filters)] == ["t3"]


def test_adding_a_predicate_never_grows_the_result(tasks):
    base = derive(tasks, [owner_is("u1")])
    narrowed = derive(tasks, [owner_is("u1"), status_is("Completed")])
    assert len(narrowed) <= len(base)
    assert all(t in base for t in narrowed)


def test_filter_value_not_present_gives_empty(tasks):
    assert derive(tasks, TaskFilters(tag="Nonexistent")) == []


def test_all_sentinel_disables_filter(tasks):
    assert len(derive(tasks, TaskFilters(status=ALL, owner=ALL, tag=ALL))) == 3


def test_empty_input():
    assert derive([], TaskFilters(status="Completed"), "dueDate") == []


def test_mine_only_uses_current_user(tasks):
    filters = TaskFilters(mine_only=True, current_user_id="u1")
    assert [t.id for t in derive(tasks, filters, "dueDate")] == ["t3", "t1"]


def test_derive_filters_then_sorts(tasks):
    result = derive(tasks, TaskFilters(owner="u1"), "status")
    assert [t.id for t in result] == ["t1", "t3"]


def test_derive_is_deterministic(tasks):
    filters = TaskFilters(search="a")
    assert derive(tasks, filters, "priority") == derive(tasks, filters, "priority")


# === Grouping and helpers ===


def test_group_by_owner_places_task_under_each_owner(tasks):
    groups = group_tasks(tasks, "owner")
    assert list(groups) == ["Alice", "User u2", "User u1", "u3"]
    assert [t.id for t in groups["Alice"]] == ["t1"]
    assert [t.id for t in groups["User u1"]] == ["t3"]


def test_group_by_owner_ownerless():
    groups = group_tasks([_task("x", owners=[])], "owner")
    assert list(groups) == ["Unassigned"]


def test_group_by_project_and_team(tasks):
    assert list(group_tasks(tasks, "project")) == ["Apollo", "Project p1", "Zephyr"]
    assert list(group_tasks(tasks, "team")) == ["Core", "Team tm1", "No team"]


def test_group_by_unknown_dimension(tasks):
    assert list(group_tasks(tasks, "priority")) == ["All"]


def test_tasks_for_project_matches_both_shapes(tasks):
    assert [t.id for t in tasks_for_project(tasks, "p1")] == ["t1", "t2"]
    assert tasks_for_project(tasks, "") == []


def test_project_task_counts(tasks):
    assert project_task_counts(tasks, "p1") == {
        "total": 2,
        "todo": 1,
        "in_progress": 0,
        "completed": 1,
        "blocked": 0,
    }


def test_available_owners_and_tags(tasks):
    assert available_owners(tasks) == ["u1", "u2", "u3"]
    assert available_tags(tasks) == ["Docs", "Bug", "tag-ui"]


def test_filter_projects(tasks):
    projects = [
        Project(id="p1", name="Apollo", description="Moonshot"),
        Project(id="p2", name="Zephyr", description="Planning"),
        Project(id="p3", name="Idle"),
    ]
    assert [p.id for p in filter_projects(projects, tasks, status="Completed")] == ["p1"]
    assert [p.id for p in filter_projects(projects, tasks, search="plan")] == ["p2"]
    assert [p.id for p in filter_projects(projects, tasks)] == ["p1", "p2", "p3"]
