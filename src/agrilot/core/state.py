# src/agrilot/core/state.py

from __future__ import annotations

from dataclasses import dataclass

from ..reminders.reminder_scheduler import TaskReminderScheduler
from ..store.object_store import ObjectStore
from .ports import Identity, NotificationTransport


@dataclass
class AppState:
    """
    Mutable runtime state shared by the CLI and commands.

    Settings are stored on the state so commands do not read global config.
    """

    settings: object
    store: ObjectStore
    identity: Identity
    transport: NotificationTransport
    reminders: TaskReminderScheduler | None = None
