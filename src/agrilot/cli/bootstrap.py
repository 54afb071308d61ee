# src/agrilot/cli/bootstrap.py

"""
CLI bootstrap helpers.

This module is the "composition root":
- loads settings once,
- ensures local (gitignored) directories exist,
- opens the object store (one per process, passed by reference),
- wires the reminder scheduler to Task writes and reconciles it on start.
"""

from __future__ import annotations

import logging

from ..config import get_settings
from ..connectors.local_platform import LocalIdentityProvider, LocalNotificationTransport
from ..core.ports import IdentityProvider, NotificationTransport
from ..core.state import AppState
from ..reminders.reminder_scheduler import TaskReminderScheduler
from ..store.entities import SCHEMA_VERSION, build_registry
from ..store.object_store import open_store

logger = logging.getLogger(__name__)


def _ensure_local_dirs(settings) -> None:
    settings.data_dir.mkdir(parents=True, exist_ok=True)
    settings.db_path.parent.mkdir(parents=True, exist_ok=True)
    settings.export_dir.mkdir(parents=True, exist_ok=True)


def create_initial_state(
    *,
    settings=None,
    transport: NotificationTransport | None = None,
    identity: IdentityProvider | None = None,
    clock=None,
) -> AppState:
    """
    Create AppState from the provided settings.

    Settings and platform ports are injectable for tests; missing ones fall
    back to get_settings() and the in-process implementations. Store open
    errors (version mismatch, unreadable file) propagate: there is no
    degraded mode without the store.
    """
    if settings is None:
        settings = get_settings()

    _ensure_local_dirs(settings)

    store = open_store(settings.db_path, build_registry(), SCHEMA_VERSION, clock=clock)
    transport = transport or LocalNotificationTransport()
    identity = identity or LocalIdentityProvider()

    state = AppState(
        settings=settings,
        store=store,
        identity=identity.current_identity(),
        transport=transport,
    )

    if getattr(settings, "reminders_enabled", True):
        scheduler = TaskReminderScheduler(
            transport,
            clock=store.now,
            channel_id=getattr(settings, "reminder_channel_id", "task-reminders"),
        )
        scheduler.attach(store)
        scheduled = scheduler.reconcile(store.objects("Task"))
        logger.info("Reminders reconciled: %d scheduled", scheduled)
        state.reminders = scheduler

    return state


def shutdown(state: AppState) -> None:
    """Best-effort shutdown (no exceptions should escape)."""
    try:
        state.store.close()
    except Exception:
        logger.exception("Failed to close the store.")
