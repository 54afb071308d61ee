# src/agrilot/reminders/reminder_scheduler.py

from __future__ import annotations

"""
Task reminder scheduler.

Keeps one reminder set per task id and mirrors it into the notification
transport:
- schedule(task): cancel whatever the task had, then schedule fresh reminders
  from the priority rule (completed/cancelled tasks get none),
- cancel(task_id): release every notification slot of the task,
- attach(store): react to Task writes instead of to any particular screen.

The transport is best-effort: a rejected entry is logged and dropped, the
rest of the set is still scheduled. Nothing here raises TransportError.
"""

import logging
from collections.abc import Callable, Iterable, Mapping
from datetime import UTC, datetime
from typing import Any

from ..core.errors import TransportError
from ..core.ports import NotificationTransport
from ..store.entities import TaskStatus
from ..store.object_store import Change, ChangeKind, ObjectStore
from .reminder_models import (
    MAX_REMINDERS_PER_TASK,
    ReminderSet,
    ReminderState,
    notification_id,
    planned_reminder_times,
)

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL_ID = "task-reminders"

_CLOSED_STATUSES = (TaskStatus.COMPLETED, TaskStatus.CANCELLED)

# A modification only matters to reminders when one of these changed.
_REMINDER_FIELDS = ("dueDate", "priority", "status", "title", "description")


def build_payload(task: Mapping[str, Any], channel_id: str) -> dict[str, Any]:
    return {
        "taskId": str(task["id"]),
        "type": "task-reminder",
        "channelId": channel_id,
        "title": f"Reminder: {task.get('title') or ''}".strip(),
        "message": (task.get("description") or "").strip() or "Pending task",
    }


class TaskReminderScheduler:
    def __init__(
        self,
        transport: NotificationTransport,
        *,
        clock: Callable[[], datetime] | None = None,
        channel_id: str = DEFAULT_CHANNEL_ID,
    ) -> None:
        self._transport = transport
        self._clock = clock or (lambda: datetime.now(UTC))
        self._channel_id = channel_id
        self._sets: dict[str, ReminderSet] = {}

    def state(self, task_id: str) -> ReminderSet:
        return self._sets.get(str(task_id)) or ReminderSet(task_id=str(task_id))

    def all_states(self) -> list[ReminderSet]:
        return list(self._sets.values())

    def schedule(self, task: Mapping[str, Any]) -> ReminderSet:
        task_id = str(task["id"])

        # At most one active set per task: always release the old one first.
        self.cancel(task_id)

        if task.get("status") in _CLOSED_STATUSES:
            logger.debug("Task %s is %s; no reminders", task_id, task.get("status"))
            return self.state(task_id)

        now = self._clock()
        planned = planned_reminder_times(task["dueDate"], task["priority"])
        payload = build_payload(task, self._channel_id)

        times: list[datetime] = []
        ids: list[str] = []
        for slot, fire_at in enumerate(planned):
            if fire_at <= now:
                continue
            nid = notification_id(task_id, slot)
            try:
                self._transport.schedule_at(nid, fire_at, dict(payload))
            except TransportError:
                logger.exception("Reminder not scheduled task=%s at=%s", task_id, fire_at.isoformat())
                continue
            times.append(fire_at)
            ids.append(nid)

        result = ReminderSet(
            task_id=task_id,
            state=ReminderState.SCHEDULED,
            planned=tuple(planned),
            times=tuple(times),
            notification_ids=tuple(ids),
        )
        self._sets[task_id] = result
        logger.info("Task %s reminders scheduled=%d planned=%d", task_id, len(times), len(planned))
        return result

    def cancel(self, task_id: str) -> None:
        """Move the task to NO_REMINDERS and release its platform notifications."""
        task_id = str(task_id)
        self._sets.pop(task_id, None)
        # Release every slot, not just tracked ones: after a restart the
        # transport can still hold entries this instance never scheduled.
        for slot in range(MAX_REMINDERS_PER_TASK):
            nid = notification_id(task_id, slot)
            try:
                self._transport.cancel(nid)
            except TransportError:
                logger.exception("Reminder cancel failed id=%s", nid)

    def reconcile(self, tasks: Iterable[Mapping[str, Any]]) -> int:
        """
        Startup pass: schedule every open task and drop transport entries that
        belong to no known open task. Returns the number of scheduled reminders.
        """
        open_ids: set[str] = set()
        total = 0
        for task in tasks:
            if task.get("status") in _CLOSED_STATUSES:
                self.cancel(str(task["id"]))
                continue
            open_ids.add(str(task["id"]))
            total += len(self.schedule(task).times)

        try:
            entries = list(self._transport.list_scheduled())
        except TransportError:
            logger.exception("list_scheduled failed; skipping orphan cleanup")
            return total

        for entry in entries:
            owner = str(entry.payload.get("taskId") or entry.id.rsplit(":", 1)[0])
            if owner not in open_ids:
                try:
                    self._transport.cancel(entry.id)
                    logger.info("Dropped orphan reminder id=%s", entry.id)
                except TransportError:
                    logger.exception("Orphan reminder cancel failed id=%s", entry.id)
        return total

    # ---- store wiring ----

    def attach(self, store: ObjectStore) -> Callable[[], None]:
        """Follow Task writes on `store`. Returns the unsubscribe callable."""
        return store.subscribe("Task", self.on_task_changes)

    def on_task_changes(self, changes: list[Change]) -> None:
        for ch in changes:
            if ch.kind == ChangeKind.DELETED:
                self.cancel(str(ch.pk))
                continue
            if ch.after is None:
                continue
            if ch.kind == ChangeKind.MODIFIED and ch.before is not None:
                if all(ch.before.get(k) == ch.after.get(k) for k in _REMINDER_FIELDS):
                    continue
            self.schedule(ch.after)
