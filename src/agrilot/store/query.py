# src/agrilot/store/query.py

"""
Query / filter / sort engine.

Pure functions over a LiveCollection or any iterable of records:
- filtered(): conjunction of field conditions (equality, membership, text search)
- sorted_by(): stable single-key sort, optional rank table for enum orderings
- Query: left-to-right composition, materialized once in .all()
- group_by() / count_where(): small projections used by derived views

Enum fields with a meaningful order (priority, status) must be sorted with a
rank table; their lexical order is wrong ("high" < "low" < "medium").
"""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass
from enum import StrEnum
from typing import Any

from ..core.errors import InvalidPredicateError
from .entities import InfrastructureStatus, TaskCategory, TaskPriority, TaskStatus
from .schema import EntitySchema

Record = dict[str, Any]
Rank = Mapping[Any, int]

PRIORITY_RANK: Rank = {TaskPriority.HIGH: 0, TaskPriority.MEDIUM: 1, TaskPriority.LOW: 2}

TASK_STATUS_RANK: Rank = {
    TaskStatus.IN_PROGRESS: 0,
    TaskStatus.PENDING: 1,
    TaskStatus.COMPLETED: 2,
    TaskStatus.CANCELLED: 3,
}

TASK_CATEGORY_RANK: Rank = {
    TaskCategory.TREATMENT: 0,
    TaskCategory.MAINTENANCE: 1,
    TaskCategory.HARVEST: 2,
    TaskCategory.PLANTING: 3,
    TaskCategory.OTHER: 4,
}

INFRASTRUCTURE_STATUS_RANK: Rank = {
    InfrastructureStatus.CRITICAL: 0,
    InfrastructureStatus.NEEDS_REPAIR: 1,
    InfrastructureStatus.REGULAR: 2,
    InfrastructureStatus.GOOD: 3,
}


class SortDirection(StrEnum):
    ASC = "asc"
    DESC = "desc"


# ---- conditions ----


class Condition:
    def matches(self, value: Any) -> bool:
        raise NotImplementedError


@dataclass(frozen=True, slots=True)
class Eq(Condition):
    value: Any

    def matches(self, value: Any) -> bool:
        return value == self.value


@dataclass(frozen=True, slots=True)
class In(Condition):
    values: tuple[Any, ...]

    def matches(self, value: Any) -> bool:
        return value in self.values


@dataclass(frozen=True, slots=True)
class Contains(Condition):
    """Case-insensitive substring match on text fields; empty text matches everything."""

    text: str

    def matches(self, value: Any) -> bool:
        if not self.text:
            return True
        return isinstance(value, str) and self.text.lower() in value.lower()


def is_in(values: Iterable[Any]) -> In:
    return In(tuple(values))


def contains(text: str) -> Contains:
    return Contains(text or "")


def _known_fields(source: Any, schema: EntitySchema | None) -> set[str] | None:
    schema = schema or getattr(source, "schema", None)
    return set(schema.field_names()) if schema is not None else None


def compile_predicate(
    where: Mapping[str, Any],
    fields: set[str] | None = None,
) -> Callable[[Mapping[str, Any]], bool]:
    """
    Turn {field: value | Condition} into a predicate.

    With a field set, unknown fields are rejected up front; without one,
    a record lacking the field is rejected when it is checked.
    """
    if fields is not None:
        unknown = sorted(k for k in where if k not in fields)
        if unknown:
            raise InvalidPredicateError(f"unknown filter field(s): {', '.join(unknown)}")

    conds = [(k, v if isinstance(v, Condition) else Eq(v)) for k, v in where.items()]

    def predicate(rec: Mapping[str, Any]) -> bool:
        for key, cond in conds:
            if fields is None and key not in rec:
                raise InvalidPredicateError(f"unknown filter field: {key}")
            if not cond.matches(rec.get(key)):
                return False
        return True

    return predicate


def filtered(
    source: Iterable[Record],
    where: Mapping[str, Any],
    *,
    schema: EntitySchema | None = None,
) -> list[Record]:
    """
    Records of `source` matching every condition in `where`.

    Unknown fields are rejected up front when the field set is known: from
    `schema=`, or from a live collection's own schema. A plain sequence
    without `schema=` can only be checked record by record, so an empty one
    returns [] for any `where`. Callers holding a schema should pass it.
    """
    predicate = compile_predicate(where, _known_fields(source, schema))
    return [rec for rec in source if predicate(rec)]


# ---- sorting ----


@dataclass(frozen=True, slots=True)
class SortKey:
    field: str
    direction: SortDirection = SortDirection.ASC
    rank: Rank | None = None


def _sort_pass(items: list[Record], key: SortKey) -> list[Record]:
    # Missing values (None, or absent from the rank table) always go last.
    def has_value(rec: Record) -> bool:
        v = rec.get(key.field)
        if key.rank is not None:
            return v in key.rank
        return v is not None

    present = [r for r in items if has_value(r)]
    missing = [r for r in items if not has_value(r)]

    if key.rank is not None:
        rank = key.rank
        present.sort(key=lambda r: rank[r.get(key.field)], reverse=key.direction == SortDirection.DESC)
    else:
        present.sort(key=lambda r: r.get(key.field), reverse=key.direction == SortDirection.DESC)
    return present + missing


def _check_sort_field(key: str, fields: set[str] | None, sample: Iterable[Record]) -> None:
    if fields is not None:
        if key not in fields:
            raise InvalidPredicateError(f"unknown sort field: {key}")
        return
    for rec in sample:
        if key not in rec:
            raise InvalidPredicateError(f"unknown sort field: {key}")


def sorted_by(
    source: Iterable[Record],
    key: str,
    direction: str | SortDirection = SortDirection.ASC,
    *,
    rank: Rank | None = None,
    schema: EntitySchema | None = None,
) -> list[Record]:
    """Stable sort; ties keep their input order."""
    items = list(source)
    _check_sort_field(key, _known_fields(source, schema), items)
    return _sort_pass(items, SortKey(key, SortDirection(direction), rank))


class Query:
    """
    Left-to-right query builder.

        Query(store.objects("Task")).where(lotId=lot_id).order_by("dueDate").all()

    `where` calls are AND-ed; the first `order_by` is the primary key. Nothing
    runs until all()/first()/count(), which read the source exactly once.
    """

    def __init__(self, source: Iterable[Record], *, schema: EntitySchema | None = None) -> None:
        self._source = source
        self._fields = _known_fields(source, schema)
        self._where: dict[str, Any] = {}
        self._extra: list[Callable[[Record], bool]] = []
        self._keys: list[SortKey] = []

    def _clone(self) -> Query:
        q = Query.__new__(Query)
        q._source = self._source
        q._fields = self._fields
        q._where = dict(self._where)
        q._extra = list(self._extra)
        q._keys = list(self._keys)
        return q

    def where(self, **where: Any) -> Query:
        q = self._clone()
        q._where.update(where)
        return q

    def filter(self, predicate: Callable[[Record], bool]) -> Query:
        """AND an arbitrary predicate (for conditions a field map cannot express)."""
        q = self._clone()
        q._extra.append(predicate)
        return q

    def order_by(
        self,
        key: str,
        direction: str | SortDirection = SortDirection.ASC,
        *,
        rank: Rank | None = None,
    ) -> Query:
        q = self._clone()
        q._keys.append(SortKey(key, SortDirection(direction), rank))
        return q

    def all(self) -> list[Record]:
        predicate = compile_predicate(self._where, self._fields)
        items = [
            rec for rec in self._source if predicate(rec) and all(p(rec) for p in self._extra)
        ]
        for key in self._keys:
            _check_sort_field(key.field, self._fields, items)
        # Stable passes from the least significant key up give a lexicographic order.
        for key in reversed(self._keys):
            items = _sort_pass(items, key)
        return items

    def first(self) -> Record | None:
        items = self.all()
        return items[0] if items else None

    def count(self) -> int:
        return len(self.all())


# ---- projections ----


def group_by(
    source: Iterable[Record],
    key: str | Callable[[Record], Any],
) -> dict[Any, list[Record]]:
    """Group records by a field (or key function), keeping first-seen group order."""
    get = key if callable(key) else (lambda r: r.get(key))
    out: dict[Any, list[Record]] = {}
    for rec in source:
        out.setdefault(get(rec), []).append(rec)
    return out


def count_where(source: Iterable[Record], predicate: Callable[[Record], bool] | None = None, **where: Any) -> int:
    match = compile_predicate(where, _known_fields(source, None)) if where else None
    n = 0
    for rec in source:
        if match is not None and not match(rec):
            continue
        if predicate is not None and not predicate(rec):
            continue
        n += 1
    return n
