# tests/conftest.py

from __future__ import annotations

from collections.abc import Iterator
from pathlib import Path
from types import SimpleNamespace

import pytest

from agrilot.cli.bootstrap import create_initial_state, shutdown
from agrilot.core.ports import Identity
from agrilot.core.state import AppState
from agrilot.store.entities import SCHEMA_VERSION, build_registry
from agrilot.store.object_store import ObjectStore, open_store
from agrilot.store.schema import SchemaRegistry

from .builders import NOW
from .fakes import FakeTransport, FixedClock, StaticIdentity


@pytest.fixture()
def settings(tmp_path: Path) -> SimpleNamespace:
    """
    Minimal settings object compatible with bootstrap and commands.

    A SimpleNamespace rather than the real config keeps tests isolated from
    the environment and any local .env file.
    """
    return SimpleNamespace(
        app_name="agrilot-test",
        log_level="DEBUG",
        console_enabled=False,
        data_dir=tmp_path,
        db_path=tmp_path / "farm.sqlite3",
        export_dir=tmp_path / "exports",
        reminders_enabled=True,
        reminder_channel_id="task-reminders",
    )


@pytest.fixture()
def clock() -> FixedClock:
    return FixedClock(NOW)


@pytest.fixture()
def registry() -> SchemaRegistry:
    return build_registry()


@pytest.fixture()
def store(tmp_path: Path, registry: SchemaRegistry, clock: FixedClock) -> Iterator[ObjectStore]:
    s = open_store(tmp_path / "store.sqlite3", registry, SCHEMA_VERSION, clock=clock)
    yield s
    s.close()


@pytest.fixture()
def identity() -> Identity:
    return StaticIdentity().current_identity()


@pytest.fixture()
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture()
def state(settings: SimpleNamespace, transport: FakeTransport, clock: FixedClock) -> Iterator[AppState]:
    """
    AppState built through the real composition root, with fake platform ports.

    The SQLite store is real: its behaviour is part of what the command
    tests check.
    """
    st = create_initial_state(
        settings=settings,
        transport=transport,
        identity=StaticIdentity(),
        clock=clock,
    )
    yield st
    shutdown(st)
