# src/agrilot/views/dashboard.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime, timedelta

from ..store.entities import HealthStatus, LotStatus, TaskStatus
from ..store.query import Record, count_where

RECENT_TREATMENT_WINDOW = timedelta(days=7)


@dataclass(frozen=True, slots=True)
class DashboardStats:
    total_lots: int
    active_lots: int
    total_tasks: int
    pending_tasks: int
    completed_tasks: int
    total_treatments: int
    recent_treatments: int
    total_health_records: int
    active_health_issues: int


def build_dashboard_stats(
    lots: Iterable[Record],
    tasks: Iterable[Record],
    treatments: Iterable[Record],
    health_records: Iterable[Record],
    *,
    now: datetime,
) -> DashboardStats:
    """
    Home screen counters.

    A treatment is recent when applicationDate >= now - 7 days; the boundary
    instant itself counts.
    """
    lots = list(lots)
    tasks = list(tasks)
    treatments = list(treatments)
    health_records = list(health_records)

    cutoff = now - RECENT_TREATMENT_WINDOW

    return DashboardStats(
        total_lots=len(lots),
        active_lots=count_where(lots, status=LotStatus.ACTIVE),
        total_tasks=len(tasks),
        pending_tasks=count_where(tasks, status=TaskStatus.PENDING),
        completed_tasks=count_where(tasks, status=TaskStatus.COMPLETED),
        total_treatments=len(treatments),
        recent_treatments=count_where(treatments, lambda t: t["applicationDate"] >= cutoff),
        total_health_records=len(health_records),
        active_health_issues=count_where(health_records, status=HealthStatus.UNDER_TREATMENT),
    )
