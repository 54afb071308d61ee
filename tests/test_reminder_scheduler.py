# tests/test_reminder_scheduler.py

from __future__ import annotations

from datetime import timedelta

from agrilot.core.ports import ScheduledEntry
from agrilot.reminders.reminder_models import (
    ReminderState,
    compute_reminder_times,
    notification_id,
)
from agrilot.reminders.reminder_scheduler import TaskReminderScheduler
from agrilot.store.object_store import WriteMode

from .builders import NOW, task_data
from .fakes import FakeTransport

H = timedelta(hours=1)


def _scheduler(transport: FakeTransport) -> TaskReminderScheduler:
    return TaskReminderScheduler(transport, clock=lambda: NOW)


def test_compute_reminder_times_drops_past_offsets() -> None:
    due = NOW + 6 * H
    assert compute_reminder_times(due, "high", NOW) == [due - 2 * H]
    assert compute_reminder_times(due, "low", NOW) == []


def test_high_priority_thirty_hours_out_gets_three_reminders() -> None:
    transport = FakeTransport()
    due = NOW + 30 * H

    rs = _scheduler(transport).schedule(task_data(dueDate=due, priority="high"))

    assert rs.state == ReminderState.SCHEDULED
    assert list(rs.times) == [due - 24 * H, due - 12 * H, due - 2 * H]
    assert transport.times_for("task-1") == [NOW + 6 * H, NOW + 18 * H, NOW + 28 * H]


def test_high_priority_six_hours_out_gets_one_reminder() -> None:
    transport = FakeTransport()

    rs = _scheduler(transport).schedule(task_data(dueDate=NOW + 6 * H, priority="high"))

    assert list(rs.times) == [NOW + 4 * H]
    assert len(rs.planned) == 3


def test_past_due_task_is_scheduled_but_empty() -> None:
    transport = FakeTransport()

    rs = _scheduler(transport).schedule(task_data(dueDate=NOW - H, priority="medium"))

    assert rs.state == ReminderState.SCHEDULED
    assert rs.times == ()
    assert transport.entries == {}


def test_payload_carries_task_title_and_description() -> None:
    transport = FakeTransport()

    _scheduler(transport).schedule(task_data(dueDate=NOW + 30 * H, priority="low", description=None))

    entry = transport.entries[notification_id("task-1", 0)]
    assert entry.payload["taskId"] == "task-1"
    assert entry.payload["title"] == "Reminder: Spray north field"
    assert entry.payload["message"] == "Pending task"
    assert entry.payload["channelId"] == "task-reminders"


def test_completed_and_cancelled_tasks_get_no_reminders() -> None:
    transport = FakeTransport()
    sched = _scheduler(transport)
    sched.schedule(task_data(dueDate=NOW + 30 * H, priority="high"))

    rs = sched.schedule(task_data(dueDate=NOW + 30 * H, priority="high", status="cancelled"))

    assert rs.state == ReminderState.NO_REMINDERS
    assert transport.entries == {}


def test_reschedule_replaces_previous_reminders() -> None:
    transport = FakeTransport()
    sched = _scheduler(transport)
    sched.schedule(task_data(dueDate=NOW + 30 * H, priority="high"))

    sched.schedule(task_data(dueDate=NOW + 30 * H, priority="low"))

    assert transport.times_for("task-1") == [NOW + 18 * H]


def test_cancel_releases_every_slot() -> None:
    transport = FakeTransport()
    sched = _scheduler(transport)
    sched.schedule(task_data(dueDate=NOW + 30 * H, priority="high"))

    sched.cancel("task-1")

    assert transport.entries == {}
    assert sched.state("task-1").state == ReminderState.NO_REMINDERS
    assert {"task-1:0", "task-1:1", "task-1:2"} <= set(transport.cancelled)


def test_transport_failure_drops_only_that_entry() -> None:
    transport = FakeTransport(fail_ids={"task-1:1"})

    rs = _scheduler(transport).schedule(task_data(dueDate=NOW + 30 * H, priority="high"))

    assert list(rs.times) == [NOW + 6 * H, NOW + 28 * H]
    assert rs.notification_ids == ("task-1:0", "task-1:2")


def test_store_writes_drive_reminders(store) -> None:
    transport = FakeTransport()
    sched = TaskReminderScheduler(transport, clock=store.now)
    sched.attach(store)

    store.write(lambda: store.create("Task", task_data(dueDate=NOW + 30 * H, priority="high")))
    assert len(transport.times_for("task-1")) == 3

    cancels_before = len(transport.cancelled)
    store.write(lambda: store.create("Task", {"id": "task-1", "notes": "n"}, WriteMode.UPSERT))
    assert len(transport.times_for("task-1")) == 3
    assert len(transport.cancelled) == cancels_before

    store.write(
        lambda: store.create("Task", {"id": "task-1", "priority": "medium"}, WriteMode.UPSERT)
    )
    assert transport.times_for("task-1") == [NOW + 6 * H, NOW + 26 * H]

    store.write(lambda: store.delete("Task", "task-1"))
    assert transport.entries == {}


def test_reconcile_schedules_open_tasks_and_drops_orphans() -> None:
    transport = FakeTransport()
    transport.entries["gone:0"] = ScheduledEntry(
        id="gone:0", fire_at=NOW + H, payload={"taskId": "gone"}
    )
    tasks = [
        task_data(id="a", dueDate=NOW + 30 * H, priority="high"),
        task_data(id="b", dueDate=NOW + 30 * H, status="completed", completedAt=NOW),
    ]

    total = _scheduler(transport).reconcile(tasks)

    assert total == 3
    assert "gone:0" not in transport.entries
    assert transport.times_for("b") == []
