# src/agrilot/services/records.py

from __future__ import annotations

import logging
import uuid
from collections.abc import Mapping
from datetime import datetime
from typing import Any

from ..core.ports import Identity
from ..store.entities import TaskStatus
from ..store.object_store import ObjectStore, Record, WriteMode
from ..store.schema import SchemaRegistry

logger = logging.getLogger(__name__)


def new_id() -> str:
    return uuid.uuid4().hex


def stamp_record(
    registry: SchemaRegistry,
    type_name: str,
    data: Mapping[str, Any],
    identity: Identity,
    now: datetime,
    *,
    existing: bool,
) -> dict[str, Any]:
    """
    Fill in what a form never asks for: id, timestamps, owner/organization.

    Only fields the schema declares are stamped. On edits the creation
    stamps are left alone so the partial merge keeps the stored ones.
    """
    declared = set(registry.schema(type_name).field_names())
    out = dict(data)
    pk = registry.primary_key(type_name)

    if not existing and not out.get(pk):
        out[pk] = new_id()

    if "updatedAt" in declared:
        out["updatedAt"] = now

    if not existing:
        if "createdAt" in declared:
            out.setdefault("createdAt", now)
        if "createdBy" in declared:
            out.setdefault("createdBy", identity.user_id)
        if "ownerId" in declared:
            out.setdefault("ownerId", identity.user_id)
        if "organizationId" in declared:
            out.setdefault("organizationId", identity.organization_id or identity.user_id)
    return out


def save_record(
    store: ObjectStore,
    type_name: str,
    data: Mapping[str, Any],
    identity: Identity,
    *,
    existing: bool = False,
) -> Record:
    """
    Form submission: insert a new record, or merge the submitted fields into
    an existing one. Errors propagate so the form can show them.
    """
    payload = stamp_record(store.registry, type_name, data, identity, store.now(), existing=existing)
    mode = WriteMode.UPSERT if existing else WriteMode.INSERT
    saved = store.write(lambda: store.create(type_name, payload, mode))
    logger.info("Saved %s id=%s mode=%s", type_name, saved.get("id"), mode.value)
    return saved


def delete_record(store: ObjectStore, type_name: str, pk: Any) -> None:
    store.write(lambda: store.delete(type_name, pk))


def set_task_status(store: ObjectStore, task_id: str, status: TaskStatus | str) -> Record:
    """Change a task's status; completedAt follows (set on completion, cleared otherwise)."""
    status = TaskStatus(status)
    completed_at = store.now() if status == TaskStatus.COMPLETED else None
    return store.write(
        lambda: store.create(
            "Task",
            {"id": task_id, "status": status, "completedAt": completed_at},
            WriteMode.UPSERT,
        )
    )


def infrastructure_form_errors(data: Mapping[str, Any], now: datetime) -> dict[str, str]:
    """
    Checks the infrastructure form runs before saving.

    The store only enforces next > last; the "relative to today" bounds are
    a form convention, since a stored record naturally drifts past them.
    """
    errors: dict[str, str] = {}
    last = data.get("lastInspection")
    nxt = data.get("nextInspection")
    if last is not None and last > now:
        errors["lastInspection"] = "cannot be in the future"
    if nxt is not None and nxt < now:
        errors["nextInspection"] = "must be in the future"
    if last is not None and nxt is not None and nxt <= last:
        errors["nextInspection"] = "must be after the last inspection"
    return errors
