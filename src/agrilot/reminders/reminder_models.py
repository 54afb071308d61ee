# src/agrilot/reminders/reminder_models.py

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
from enum import StrEnum

from ..store.entities import TaskPriority

_H = timedelta(hours=1)

# How long before the due date each reminder fires.
REMINDER_OFFSETS: dict[str, tuple[timedelta, ...]] = {
    TaskPriority.HIGH: (24 * _H, 12 * _H, 2 * _H),
    TaskPriority.MEDIUM: (24 * _H, 4 * _H),
    TaskPriority.LOW: (12 * _H,),
}

MAX_REMINDERS_PER_TASK = max(len(v) for v in REMINDER_OFFSETS.values())


class ReminderState(StrEnum):
    NO_REMINDERS = "no_reminders"
    SCHEDULED = "scheduled"


@dataclass(frozen=True, slots=True)
class ReminderSet:
    """
    Reminder state of one task.

    `planned` is what the priority rule gives for the due date; `times` is the
    subset actually handed to the transport (future times that it accepted).
    A SCHEDULED set may have no times left; it is still kept apart from
    NO_REMINDERS.
    """

    task_id: str
    state: ReminderState = ReminderState.NO_REMINDERS
    planned: tuple[datetime, ...] = ()
    times: tuple[datetime, ...] = ()
    notification_ids: tuple[str, ...] = ()


def reminder_offsets(priority: str) -> tuple[timedelta, ...]:
    return REMINDER_OFFSETS.get(priority, ())


def planned_reminder_times(due: datetime, priority: str) -> list[datetime]:
    return [due - off for off in reminder_offsets(priority)]


def compute_reminder_times(due: datetime, priority: str, now: datetime) -> list[datetime]:
    """Fire times for a task; times at or before `now` are dropped."""
    return [t for t in planned_reminder_times(due, priority) if t > now]


def notification_id(task_id: str, slot: int) -> str:
    return f"{task_id}:{slot}"
