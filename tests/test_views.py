# tests/test_views.py

from __future__ import annotations

from datetime import UTC, date, datetime, timedelta

import pytest

from agrilot.views.calendar import (
    DEFAULT_DOT_COLOR,
    PRIORITY_COLORS,
    build_calendar_marks,
    tasks_for_date,
)
from agrilot.views.dashboard import build_dashboard_stats
from agrilot.views.lists import (
    InfrastructureFilters,
    InspectionStatus,
    TaskFilters,
    infrastructure_list,
    inspection_status,
    maintenance_summary,
    task_list,
)

from .builders import NOW, infra_data, task_data


def _d(y: int, m: int, d: int) -> datetime:
    return datetime(y, m, d, tzinfo=UTC)


# ---- dashboard ----


def test_dashboard_counts_and_seven_day_boundary() -> None:
    lots = [{"status": "active"}, {"status": "fallow"}, {"status": "active"}]
    tasks = [{"status": "pending"}, {"status": "completed"}, {"status": "in_progress"}]
    treatments = [
        {"applicationDate": NOW - timedelta(days=7)},
        {"applicationDate": NOW - timedelta(days=7, seconds=1)},
        {"applicationDate": NOW},
    ]
    health = [{"status": "under_treatment"}, {"status": "resolved"}]

    s = build_dashboard_stats(lots, tasks, treatments, health, now=NOW)

    assert (s.total_lots, s.active_lots) == (3, 2)
    assert (s.total_tasks, s.pending_tasks, s.completed_tasks) == (3, 1, 1)
    assert (s.total_treatments, s.recent_treatments) == (3, 2)
    assert (s.total_health_records, s.active_health_issues) == (2, 1)


def test_dashboard_on_empty_store_is_all_zero() -> None:
    s = build_dashboard_stats([], [], [], [], now=NOW)
    assert s.total_lots == s.recent_treatments == s.active_health_issues == 0


# ---- calendar ----


def test_calendar_marks_one_dot_per_task() -> None:
    tasks = [
        task_data(id="a", dueDate=_d(2024, 1, 5), priority="high"),
        task_data(id="b", dueDate=_d(2024, 1, 5), priority="low"),
        task_data(id="c", dueDate=_d(2024, 1, 9), priority="bogus"),
    ]

    marks = build_calendar_marks(tasks, date(2024, 1, 2))

    assert marks["2024-01-02"].selected and not marks["2024-01-02"].marked
    assert marks["2024-01-05"].dots == [PRIORITY_COLORS["high"], PRIORITY_COLORS["low"]]
    assert marks["2024-01-09"].dots == [DEFAULT_DOT_COLOR]


def test_calendar_selected_day_with_tasks_is_both_selected_and_marked() -> None:
    marks = build_calendar_marks([task_data(dueDate=_d(2024, 1, 5))], "2024-01-05")

    assert marks["2024-01-05"].selected
    assert marks["2024-01-05"].marked


def test_tasks_for_date_orders_by_priority() -> None:
    tasks = [
        task_data(id="a", dueDate=_d(2024, 1, 5), priority="low"),
        task_data(id="b", dueDate=_d(2024, 1, 5) + timedelta(hours=9), priority="high"),
        task_data(id="c", dueDate=_d(2024, 1, 6), priority="high"),
    ]

    assert [t["id"] for t in tasks_for_date(tasks, "2024-01-05")] == ["b", "a"]


# ---- inspection ----


@pytest.mark.parametrize(
    ("next_inspection", "expected"),
    [
        (_d(2023, 12, 31), InspectionStatus.OVERDUE),
        (_d(2024, 1, 1), InspectionStatus.UPCOMING),
        (_d(2024, 1, 8), InspectionStatus.UPCOMING),
        (_d(2024, 1, 9), InspectionStatus.SCHEDULED),
    ],
)
def test_inspection_status_boundaries(next_inspection, expected) -> None:
    assert inspection_status(_d(2023, 12, 1), next_inspection, NOW) == expected


# ---- lists ----


def test_task_list_search_filter_and_priority_sort() -> None:
    tasks = [
        task_data(id="a", title="Spray coffee", priority="low", dueDate=_d(2024, 1, 3)),
        task_data(id="b", title="Fix fence", priority="high", dueDate=_d(2024, 1, 2)),
        task_data(id="c", title="spray citrus", priority="high", dueDate=_d(2024, 1, 4)),
        task_data(id="d", title="Spray beans", priority="high", dueDate=_d(2024, 1, 1)),
    ]

    out = task_list(tasks, TaskFilters(search="SPRAY"), sort_by="priority")

    assert [t["id"] for t in out] == ["d", "c", "a"]


def test_task_list_status_filter_and_default_due_date_sort() -> None:
    tasks = [
        task_data(id="a", dueDate=_d(2024, 1, 3)),
        task_data(id="b", dueDate=_d(2024, 1, 2), status="in_progress"),
        task_data(id="c", dueDate=_d(2024, 1, 1)),
    ]

    out = task_list(tasks, TaskFilters(status="pending"))

    assert [t["id"] for t in out] == ["c", "a"]


def test_infrastructure_list_status_sort_puts_critical_first() -> None:
    items = [
        infra_data(id="a", status="good"),
        infra_data(id="b", status="critical"),
        infra_data(id="c", status="needs_repair"),
    ]

    out = infrastructure_list(items, sort_by="status")

    assert [i["id"] for i in out] == ["b", "c", "a"]


def test_infrastructure_list_searches_type() -> None:
    items = [
        infra_data(id="a", type="greenhouse"),
        infra_data(id="b", type="irrigation"),
    ]

    out = infrastructure_list(items, InfrastructureFilters(search="green"))

    assert [i["id"] for i in out] == ["a"]


def test_maintenance_summary_groups_by_type() -> None:
    items = [
        infra_data(id="a", type="irrigation", nextInspection=NOW + timedelta(days=10)),
        infra_data(id="b", type="storage", status="critical", nextInspection=NOW - timedelta(days=1)),
        infra_data(id="c", type="irrigation", nextInspection=NOW + timedelta(days=3)),
    ]

    groups = maintenance_summary(items, NOW)

    assert [g.type for g in groups] == ["storage", "irrigation"]
    storage, irrigation = groups
    assert storage.lines[0].status == InspectionStatus.OVERDUE
    assert storage.status_counts == {"critical": 1}
    assert [line.record["id"] for line in irrigation.lines] == ["c", "a"]
    assert irrigation.lines[0].days_until_inspection == 3
    assert irrigation.lines[0].days_between_inspections == 23
