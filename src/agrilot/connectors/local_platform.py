# src/agrilot/connectors/local_platform.py

"""
In-process platform services used by the console app.

Notifications live in memory; the console loop calls pop_due() between
commands and prints whatever has fired. Nothing survives a restart, which is
why bootstrap reconciles reminders from the store on every start. "Sharing" an
export copies the file into a folder the user can open.
"""

from __future__ import annotations

import asyncio
import getpass
import logging
import shutil
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path
from typing import Any

from ..core.errors import TransportError
from ..core.ports import Identity, ScheduledEntry

logger = logging.getLogger(__name__)


class LocalNotificationTransport:
    def __init__(self, *, max_pending: int = 512) -> None:
        self._entries: dict[str, ScheduledEntry] = {}
        self._max_pending = max_pending

    def schedule_at(self, id: str, time: datetime, payload: dict[str, Any]) -> None:
        if time.tzinfo is None:
            raise TransportError(f"fire time for {id} must be timezone-aware")
        if id not in self._entries and len(self._entries) >= self._max_pending:
            raise TransportError(f"too many pending notifications ({self._max_pending})")
        self._entries[id] = ScheduledEntry(id=id, fire_at=time, payload=dict(payload))
        logger.debug("Notification scheduled id=%s at=%s", id, time.isoformat())

    def cancel(self, id: str) -> None:
        if self._entries.pop(id, None) is not None:
            logger.debug("Notification cancelled id=%s", id)

    def list_scheduled(self) -> Sequence[ScheduledEntry]:
        return sorted(self._entries.values(), key=lambda e: e.fire_at)

    def pop_due(self, now: datetime) -> list[ScheduledEntry]:
        """Remove and return every entry whose fire time is at or before `now`."""
        due = [e for e in self.list_scheduled() if e.fire_at <= now]
        for e in due:
            del self._entries[e.id]
        return due


def _os_user() -> str:
    try:
        return getpass.getuser()
    except (OSError, KeyError):
        return "local"


class LocalIdentityProvider:
    """Single-user identity: the OS account, its own organization."""

    def __init__(self, user_id: str | None = None, organization_id: str | None = None) -> None:
        self._user_id = user_id or _os_user()
        self._organization_id = organization_id or self._user_id

    def current_identity(self) -> Identity:
        return Identity(user_id=self._user_id, organization_id=self._organization_id)


class LocalShareSheet:
    """Copies shared files into `target_dir`; the copy outlives the temporary export."""

    def __init__(self, target_dir: str | Path) -> None:
        self._target_dir = Path(target_dir)
        self.shared: list[Path] = []

    async def share(self, path: str, *, mime_type: str, title: str) -> None:
        self._target_dir.mkdir(parents=True, exist_ok=True)
        dest = self._target_dir / Path(path).name
        await asyncio.to_thread(shutil.copy2, path, dest)
        self.shared.append(dest)
        logger.info("Shared %s (%s) as %s", title, mime_type, dest)
