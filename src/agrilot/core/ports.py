# src/agrilot/core/ports.py

from __future__ import annotations

"""
Ports (interfaces) used by the core.

The core depends on Protocols instead of concrete platform services
(camera, push notifications, share sheet, PDF rendering, auth).
This keeps the platform layer swappable and makes testing easier.
"""

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Protocol


@dataclass(frozen=True, slots=True)
class ImageConfig:
    max_width: int = 1280
    max_height: int = 1280
    quality: int = 80
    rotation: int = 0


class ImageService(Protocol):
    """Camera / gallery access. Returned paths point at already-processed copies."""

    async def pick_images(self, config: ImageConfig) -> Sequence[str]: ...
    async def take_photo(self, config: ImageConfig) -> str | None: ...
    async def delete_image(self, path: str) -> None: ...


@dataclass(frozen=True, slots=True)
class ScheduledEntry:
    id: str
    fire_at: datetime
    payload: dict[str, Any] = field(default_factory=dict)


class NotificationTransport(Protocol):
    """
    Local notification backend.

    schedule_at raises TransportError when the platform rejects the request.
    cancel is a no-op for unknown ids.
    """

    def schedule_at(self, id: str, time: datetime, payload: dict[str, Any]) -> None: ...
    def cancel(self, id: str) -> None: ...
    def list_scheduled(self) -> Sequence[ScheduledEntry]: ...


class ShareSheet(Protocol):
    async def share(self, path: str, *, mime_type: str, title: str) -> None: ...


class PdfRenderer(Protocol):
    """HTML -> PDF conversion; writes the document to `path` and returns it."""

    async def render(self, html: str, path: str) -> str: ...


@dataclass(frozen=True, slots=True)
class Identity:
    user_id: str
    organization_id: str


class IdentityProvider(Protocol):
    def current_identity(self) -> Identity: ...
