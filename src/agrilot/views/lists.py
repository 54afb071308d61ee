# src/agrilot/views/lists.py

"""
Screen-ready task and infrastructure lists, plus the inspection classifier
and the maintenance report data built on it.

Everything here is a pure function of its inputs: same records in, same
order out.
"""

from __future__ import annotations

import math
from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import StrEnum

from ..store.query import (
    INFRASTRUCTURE_STATUS_RANK,
    PRIORITY_RANK,
    TASK_CATEGORY_RANK,
    TASK_STATUS_RANK,
    Query,
    Record,
    contains,
    group_by,
)

UPCOMING_INSPECTION_WINDOW = timedelta(days=7)
_DAY = timedelta(days=1)


class InspectionStatus(StrEnum):
    OVERDUE = "overdue"
    UPCOMING = "upcoming"
    SCHEDULED = "scheduled"


def inspection_status(
    last_inspection: datetime,
    next_inspection: datetime,
    now: datetime,
) -> InspectionStatus:
    """
    overdue:   next inspection already passed
    upcoming:  due within the next 7 days (exactly 7 days out included)
    scheduled: further out
    """
    until = next_inspection - now
    if until < timedelta(0):
        return InspectionStatus.OVERDUE
    if until <= UPCOMING_INSPECTION_WINDOW:
        return InspectionStatus.UPCOMING
    return InspectionStatus.SCHEDULED


# ---- tasks ----


class TaskSort(StrEnum):
    DUE_DATE = "dueDate"
    PRIORITY = "priority"
    STATUS = "status"
    CATEGORY = "category"


_TASK_RANKS = {
    TaskSort.PRIORITY: PRIORITY_RANK,
    TaskSort.STATUS: TASK_STATUS_RANK,
    TaskSort.CATEGORY: TASK_CATEGORY_RANK,
}


@dataclass(frozen=True, slots=True)
class TaskFilters:
    search: str = ""
    status: str | None = None
    priority: str | None = None
    category: str | None = None


def task_list(
    tasks: Iterable[Record],
    filters: TaskFilters = TaskFilters(),
    sort_by: TaskSort | str = TaskSort.DUE_DATE,
) -> list[Record]:
    """Filter by title search / status / priority / category, then sort; ties fall back to due date."""
    sort_by = TaskSort(sort_by)

    where: dict[str, object] = {"title": contains(filters.search)}
    for name in ("status", "priority", "category"):
        value = getattr(filters, name)
        if value is not None:
            where[name] = value

    q = Query(tasks).where(**where)
    if sort_by is TaskSort.DUE_DATE:
        q = q.order_by("dueDate")
    else:
        q = q.order_by(sort_by.value, rank=_TASK_RANKS[sort_by]).order_by("dueDate")
    return q.all()


# ---- infrastructure ----


class InfrastructureSort(StrEnum):
    TYPE = "type"
    STATUS = "status"
    NEXT_INSPECTION = "nextInspection"


@dataclass(frozen=True, slots=True)
class InfrastructureFilters:
    search: str = ""
    type: str | None = None
    status: str | None = None


def infrastructure_list(
    items: Iterable[Record],
    filters: InfrastructureFilters = InfrastructureFilters(),
    sort_by: InfrastructureSort | str = InfrastructureSort.NEXT_INSPECTION,
) -> list[Record]:
    """Filter by type search / type / status, then sort; ties fall back to next inspection."""
    sort_by = InfrastructureSort(sort_by)

    search = contains(filters.search)
    where: dict[str, object] = {}
    if filters.type is not None:
        where["type"] = filters.type
    if filters.status is not None:
        where["status"] = filters.status

    q = Query(items).where(**where).filter(lambda r: search.matches(r.get("type")))
    if sort_by is InfrastructureSort.STATUS:
        q = q.order_by("status", rank=INFRASTRUCTURE_STATUS_RANK)
    elif sort_by is InfrastructureSort.TYPE:
        q = q.order_by("type")
    return q.order_by("nextInspection").all()


# ---- maintenance report ----


def _whole_days(delta: timedelta) -> int:
    return math.floor(delta / _DAY + 0.5)


@dataclass(frozen=True, slots=True)
class MaintenanceLine:
    record: Record
    status: InspectionStatus
    days_between_inspections: int
    days_until_inspection: int


@dataclass(frozen=True, slots=True)
class MaintenanceGroup:
    type: str
    lines: list[MaintenanceLine]
    status_counts: dict[str, int] = field(default_factory=dict)


def maintenance_summary(items: Iterable[Record], now: datetime) -> list[MaintenanceGroup]:
    """Infrastructure grouped by type (first-seen order), each group sorted by next inspection."""
    ordered = infrastructure_list(items)
    groups: list[MaintenanceGroup] = []
    for type_name, records in group_by(ordered, "type").items():
        lines = [
            MaintenanceLine(
                record=r,
                status=inspection_status(r["lastInspection"], r["nextInspection"], now),
                days_between_inspections=_whole_days(r["nextInspection"] - r["lastInspection"]),
                days_until_inspection=_whole_days(r["nextInspection"] - now),
            )
            for r in records
        ]
        counts: dict[str, int] = {}
        for r in records:
            counts[r["status"]] = counts.get(r["status"], 0) + 1
        groups.append(MaintenanceGroup(type=type_name, lines=lines, status_counts=counts))
    return groups
