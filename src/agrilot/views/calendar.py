# src/agrilot/views/calendar.py

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass, field
from datetime import UTC, date, datetime

from ..store.entities import TaskPriority
from ..store.query import PRIORITY_RANK, Record, sorted_by

PRIORITY_COLORS: dict[str, str] = {
    TaskPriority.HIGH: "#B00020",
    TaskPriority.MEDIUM: "#FF9800",
    TaskPriority.LOW: "#4CAF50",
}
DEFAULT_DOT_COLOR = "#2E7D32"


@dataclass(slots=True)
class DayMarks:
    selected: bool = False
    marked: bool = False
    dots: list[str] = field(default_factory=list)


def calendar_day(value: datetime | date | str) -> str:
    """ISO calendar date (UTC) for a due date, a date, or an ISO string."""
    if isinstance(value, str):
        return date.fromisoformat(value[:10]).isoformat()
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            value = value.astimezone(UTC)
        return value.date().isoformat()
    return value.isoformat()


def build_calendar_marks(
    tasks: Iterable[Record],
    selected_date: datetime | date | str,
) -> dict[str, DayMarks]:
    """
    Map ISO date -> marks for the task calendar.

    Every task adds one dot in its priority color, so two tasks due the same
    day give two dots. The selected date is always present.
    """
    selected = calendar_day(selected_date)
    marks: dict[str, DayMarks] = {selected: DayMarks(selected=True)}

    for task in tasks:
        day = calendar_day(task["dueDate"])
        entry = marks.setdefault(day, DayMarks())
        entry.dots.append(PRIORITY_COLORS.get(task.get("priority"), DEFAULT_DOT_COLOR))
        entry.marked = True

    return marks


def tasks_for_date(tasks: Iterable[Record], day: datetime | date | str) -> list[Record]:
    """Tasks due on `day`, highest priority first."""
    wanted = calendar_day(day)
    due_that_day = [t for t in tasks if calendar_day(t["dueDate"]) == wanted]
    return sorted_by(due_that_day, "priority", rank=PRIORITY_RANK)
