# tests/test_bootstrap.py

from __future__ import annotations

from datetime import timedelta

from agrilot.cli.bootstrap import create_initial_state, shutdown
from agrilot.services.records import save_record

from .builders import NOW, task_data
from .fakes import FakeTransport, StaticIdentity


def test_restart_reconciles_reminders_from_the_store(settings, clock, identity) -> None:
    first = create_initial_state(settings=settings, transport=FakeTransport(), identity=StaticIdentity(), clock=clock)
    save_record(first.store, "Task", task_data(dueDate=NOW + timedelta(hours=30), priority="high"), identity)
    shutdown(first)

    transport = FakeTransport()
    second = create_initial_state(settings=settings, transport=transport, identity=StaticIdentity(), clock=clock)
    try:
        assert len(transport.times_for("task-1")) == 3
        assert second.reminders is not None
        assert second.reminders.state("task-1").times
    finally:
        shutdown(second)


def test_reminders_can_be_disabled(settings, clock) -> None:
    settings.reminders_enabled = False
    transport = FakeTransport()

    state = create_initial_state(settings=settings, transport=transport, identity=StaticIdentity(), clock=clock)
    try:
        state.store.write(
            lambda: state.store.create("Task", task_data(dueDate=NOW + timedelta(hours=30)))
        )
        assert state.reminders is None
        assert transport.entries == {}
    finally:
        shutdown(state)


def test_shutdown_closes_the_store(state) -> None:
    shutdown(state)
    assert not state.store.is_open
