# src/agrilot/store/object_store.py

from __future__ import annotations

import contextlib
import copy
import json
import logging
import sqlite3
from collections.abc import Callable, Iterator, Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from enum import Enum, StrEnum
from pathlib import Path
from typing import Any, TypeVar

from ..core.errors import (
    DuplicateKeyError,
    SchemaViolation,
    StoreClosedError,
    StoreError,
    StoreOpenError,
    TransactionError,
)
from .query import filtered, sorted_by
from .schema import EntitySchema, SchemaRegistry

logger = logging.getLogger(__name__)

T = TypeVar("T")
Record = dict[str, Any]
Clock = Callable[[], datetime]

_DATE_TAG = "$date"


class WriteMode(Enum):
    INSERT = "insert"
    UPSERT = "upsert"


class ChangeKind(StrEnum):
    INSERTED = "inserted"
    MODIFIED = "modified"
    DELETED = "deleted"


@dataclass(frozen=True, slots=True)
class Change:
    type_name: str
    kind: ChangeKind
    pk: Any
    before: Record | None
    after: Record | None


Listener = Callable[[list[Change]], None]


@dataclass(slots=True)
class _Transaction:
    staged: dict[str, dict[Any, Record]] = field(default_factory=dict)
    changes: list[Change] = field(default_factory=list)


def _json_default(value: Any) -> Any:
    if isinstance(value, datetime):
        return {_DATE_TAG: value.isoformat()}
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def _json_hook(obj: dict[str, Any]) -> Any:
    if len(obj) == 1 and _DATE_TAG in obj:
        return datetime.fromisoformat(obj[_DATE_TAG])
    return obj


def _encode(record: Mapping[str, Any]) -> str:
    return json.dumps(record, default=_json_default, ensure_ascii=False)


def _decode(raw: str) -> Record:
    val = json.loads(raw, object_hook=_json_hook)
    if not isinstance(val, dict):
        raise ValueError("stored payload is not an object")
    return val


class LiveCollection:
    """
    Handle over all rows of one type.

    It never caches: every read goes to the store's current rows, so a holder
    sees committed writes (and, inside a write, the writer's own staged rows)
    without asking again. Rows are handed out as copies.
    """

    def __init__(self, store: ObjectStore, type_name: str) -> None:
        self._store = store
        self._type_name = type_name

    @property
    def type_name(self) -> str:
        return self._type_name

    @property
    def schema(self) -> EntitySchema:
        return self._store.registry.schema(self._type_name)

    def _rows(self) -> dict[Any, Record]:
        return self._store._current_rows(self._type_name)

    def __len__(self) -> int:
        return len(self._rows())

    def __bool__(self) -> bool:
        return len(self) > 0

    def __iter__(self) -> Iterator[Record]:
        for rec in list(self._rows().values()):
            yield copy.deepcopy(rec)

    def __getitem__(self, index: int) -> Record:
        rows = list(self._rows().values())
        return copy.deepcopy(rows[index])

    def snapshot(self) -> list[Record]:
        return list(self)

    def filtered(self, **where: Any) -> list[Record]:
        return filtered(self, where)

    def sorted(self, key: str, direction: str = "asc", *, rank: Mapping[Any, int] | None = None) -> list[Record]:
        return sorted_by(self, key, direction, rank=rank)

    def add_listener(self, callback: Listener) -> Callable[[], None]:
        return self._store.subscribe(self._type_name, callback)

    def __repr__(self) -> str:
        return f"LiveCollection({self._type_name!r}, size={len(self)})"


class ObjectStore:
    """
    Embedded, schema-validated object store (SQLite + in-memory rows).

    - Rows are kept in memory per type, in insertion order, and persisted as
      one JSON payload per row in SQLite.
    - All mutations happen inside `write(fn)` / `transaction()`: one SQLite
      transaction plus a copy-on-write staging area. Commit swaps staged rows
      in and then notifies listeners; any exception rolls both back.
    - Single-threaded by design: one connection, listeners run on the caller's
      thread right after commit.
    """

    def __init__(
        self,
        db_path: str | Path,
        registry: SchemaRegistry,
        schema_version: int,
        *,
        clock: Clock | None = None,
    ) -> None:
        self._db_path = str(db_path)
        self._registry = registry
        self._schema_version = int(schema_version)
        self._clock: Clock = clock or (lambda: datetime.now(UTC))

        self._conn: sqlite3.Connection | None = None
        self._rows: dict[str, dict[Any, Record]] = {}
        self._txn: _Transaction | None = None
        self._listeners: dict[str, list[Listener]] = {}

    # ---- lifecycle ----

    @property
    def registry(self) -> SchemaRegistry:
        return self._registry

    @property
    def is_open(self) -> bool:
        return self._conn is not None

    def now(self) -> datetime:
        return self._clock()

    def open(self) -> ObjectStore:
        """Open (or create) the database. Calling it on an open store is a no-op."""
        if self._conn is not None:
            return self

        if self._db_path != ":memory:":
            Path(self._db_path).parent.mkdir(parents=True, exist_ok=True)

        conn: sqlite3.Connection | None = None
        try:
            conn = sqlite3.connect(self._db_path, isolation_level=None)
            conn.row_factory = sqlite3.Row
            with contextlib.suppress(sqlite3.Error):
                conn.execute("PRAGMA journal_mode=WAL")
            self._ensure_schema(conn)
            self._check_version(conn)
            rows = self._load_rows(conn)
        except sqlite3.Error as e:
            if conn is not None:
                conn.close()
            raise StoreOpenError(f"cannot open store at {self._db_path}: {e}") from e
        except StoreOpenError:
            if conn is not None:
                conn.close()
            raise

        self._conn = conn
        self._rows = rows
        logger.info(
            "ObjectStore ready db=%s version=%s rows=%s",
            self._db_path,
            self._schema_version,
            sum(len(r) for r in rows.values()),
        )
        return self

    def close(self) -> None:
        if self._conn is None:
            return
        if self._txn is not None:
            logger.warning("Closing store with an open write; rolling back.")
            self._txn = None
            self._conn.execute("ROLLBACK")
        self._conn.close()
        self._conn = None
        self._rows = {}
        self._listeners = {}
        logger.info("ObjectStore closed db=%s", self._db_path)

    def __enter__(self) -> ObjectStore:
        return self.open()

    def __exit__(self, *exc: object) -> None:
        self.close()

    @staticmethod
    def _ensure_schema(conn: sqlite3.Connection) -> None:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS store_meta (
                key TEXT PRIMARY KEY,
                value TEXT NOT NULL
            )
            """
        )
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS records (
                seq INTEGER PRIMARY KEY AUTOINCREMENT,
                type_name TEXT NOT NULL,
                pk TEXT NOT NULL,
                data TEXT NOT NULL,
                UNIQUE(type_name, pk)
            )
            """
        )

    def _check_version(self, conn: sqlite3.Connection) -> None:
        row = conn.execute("SELECT value FROM store_meta WHERE key = 'schema_version'").fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO store_meta(key, value) VALUES ('schema_version', ?)",
                (str(self._schema_version),),
            )
            return
        try:
            persisted = int(row["value"])
        except ValueError:
            raise StoreOpenError(f"unreadable schema version {row['value']!r}") from None
        if persisted != self._schema_version:
            raise StoreOpenError(
                f"persisted schema version {persisted} is incompatible with {self._schema_version}"
            )

    def _load_rows(self, conn: sqlite3.Connection) -> dict[str, dict[Any, Record]]:
        declared = set(self._registry.names())
        out: dict[str, dict[Any, Record]] = {name: {} for name in declared}
        for row in conn.execute("SELECT type_name, data FROM records ORDER BY seq"):
            type_name = row["type_name"]
            if type_name not in declared:
                raise StoreOpenError(f"store holds rows of undeclared type {type_name!r}")
            try:
                rec = _decode(row["data"])
            except ValueError as e:
                raise StoreOpenError(f"corrupt {type_name} row: {e}") from e
            out[type_name][rec[self._registry.primary_key(type_name)]] = rec
        return out

    # ---- low-level helpers ----

    def _require_open(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError("store is not open")
        return self._conn

    def _require_txn(self) -> _Transaction:
        if self._txn is None:
            raise TransactionError("mutations must run inside store.write(...)")
        return self._txn

    def _check_type(self, type_name: str) -> str:
        schema = self._registry.schema(type_name)
        if schema.embedded:
            raise SchemaViolation(type_name, {"": "embedded types are not stored on their own"})
        return self._registry.primary_key(type_name)

    def _current_rows(self, type_name: str) -> dict[Any, Record]:
        self._require_open()
        if self._txn is not None and type_name in self._txn.staged:
            return self._txn.staged[type_name]
        return self._rows.setdefault(type_name, {})

    def _staged_rows(self, txn: _Transaction, type_name: str) -> dict[Any, Record]:
        rows = txn.staged.get(type_name)
        if rows is None:
            rows = dict(self._rows.get(type_name, {}))
            txn.staged[type_name] = rows
        return rows

    # ---- transactions ----

    @contextlib.contextmanager
    def transaction(self) -> Iterator[None]:
        """
        One atomic write. Everything done inside either commits together or
        is rolled back together (SQLite and in-memory rows).
        """
        conn = self._require_open()
        if self._txn is not None:
            raise TransactionError("nested write transactions are not supported")

        txn = _Transaction()
        self._txn = txn
        conn.execute("BEGIN")
        try:
            yield
        except BaseException:
            self._txn = None
            try:
                conn.execute("ROLLBACK")
            except sqlite3.Error:
                logger.exception("ROLLBACK failed db=%s", self._db_path)
            logger.debug("Write rolled back (%d staged changes)", len(txn.changes))
            raise

        self._txn = None
        try:
            conn.execute("COMMIT")
        except sqlite3.Error as e:
            with contextlib.suppress(sqlite3.Error):
                conn.execute("ROLLBACK")
            raise StoreError(f"commit failed: {e}") from e

        self._rows.update(txn.staged)
        if txn.changes:
            logger.debug("Write committed changes=%d", len(txn.changes))
            self._emit(txn.changes)

    def write(self, fn: Callable[[], T]) -> T:
        with self.transaction():
            return fn()

    # ---- public API ----

    def create(
        self,
        type_name: str,
        data: Mapping[str, Any],
        mode: WriteMode = WriteMode.INSERT,
    ) -> Record:
        """
        Validate and store `data`.

        INSERT fails with DuplicateKeyError if the key exists. UPSERT inserts
        when absent, otherwise merges only the supplied fields into the stored
        row and validates the merged result.
        """
        conn = self._require_open()
        txn = self._require_txn()
        pk_name = self._check_type(type_name)

        pk = data.get(pk_name)
        if pk is None or pk == "":
            raise SchemaViolation(type_name, {pk_name: "primary key is required"})

        rows = self._staged_rows(txn, type_name)
        existing = rows.get(pk)
        if existing is not None and mode is WriteMode.INSERT:
            raise DuplicateKeyError(type_name, pk)

        candidate = {**existing, **data} if existing is not None else dict(data)
        record = self._registry.validate(type_name, candidate, self._clock())
        payload = _encode(record)

        if existing is None:
            conn.execute(
                "INSERT INTO records(type_name, pk, data) VALUES (?, ?, ?)",
                (type_name, str(pk), payload),
            )
            kind = ChangeKind.INSERTED
        else:
            conn.execute(
                "UPDATE records SET data = ? WHERE type_name = ? AND pk = ?",
                (payload, type_name, str(pk)),
            )
            kind = ChangeKind.MODIFIED

        rows[pk] = record
        txn.changes.append(
            Change(
                type_name=type_name,
                kind=kind,
                pk=pk,
                before=copy.deepcopy(existing),
                after=copy.deepcopy(record),
            )
        )
        logger.debug("%s %s pk=%s", type_name, kind.value, pk)
        return copy.deepcopy(record)

    def delete(self, type_name: str, pk: Any) -> None:
        """Remove a row. Deleting a missing row is a no-op."""
        conn = self._require_open()
        txn = self._require_txn()
        self._check_type(type_name)

        if pk not in self._current_rows(type_name):
            return

        before = self._staged_rows(txn, type_name).pop(pk)
        conn.execute("DELETE FROM records WHERE type_name = ? AND pk = ?", (type_name, str(pk)))
        txn.changes.append(
            Change(
                type_name=type_name,
                kind=ChangeKind.DELETED,
                pk=pk,
                before=copy.deepcopy(before),
                after=None,
            )
        )
        logger.debug("%s deleted pk=%s", type_name, pk)

    def objects(self, type_name: str) -> LiveCollection:
        self._require_open()
        self._check_type(type_name)
        return LiveCollection(self, type_name)

    def object_for_primary_key(self, type_name: str, pk: Any) -> Record | None:
        self._check_type(type_name)
        rec = self._current_rows(type_name).get(pk)
        return copy.deepcopy(rec) if rec is not None else None

    def count(self, type_name: str) -> int:
        self._check_type(type_name)
        return len(self._current_rows(type_name))

    # ---- change events ----

    def subscribe(self, type_name: str, callback: Listener) -> Callable[[], None]:
        """Call `callback(changes)` after every commit touching `type_name`."""
        self._check_type(type_name)
        listeners = self._listeners.setdefault(type_name, [])
        listeners.append(callback)

        def unsubscribe() -> None:
            with contextlib.suppress(ValueError):
                listeners.remove(callback)

        return unsubscribe

    def _emit(self, changes: list[Change]) -> None:
        by_type: dict[str, list[Change]] = {}
        for ch in changes:
            by_type.setdefault(ch.type_name, []).append(ch)

        for type_name, type_changes in by_type.items():
            for callback in list(self._listeners.get(type_name, ())):
                try:
                    callback(list(type_changes))
                except Exception:
                    # The write is already committed; a broken observer must not undo it.
                    logger.exception("Store listener failed type=%s", type_name)


def open_store(
    db_path: str | Path,
    registry: SchemaRegistry,
    schema_version: int,
    *,
    clock: Clock | None = None,
) -> ObjectStore:
    return ObjectStore(db_path, registry, schema_version, clock=clock).open()
