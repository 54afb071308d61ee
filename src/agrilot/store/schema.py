# src/agrilot/store/schema.py

"""
Entity schema registry.

Schemas are plain data (EntitySchema + Field tables) consumed by one generic
validator. The object store calls `SchemaRegistry.validate` before every
commit; nothing here has side effects.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Iterable, Mapping
from dataclasses import dataclass, field
from datetime import datetime
from enum import StrEnum
from typing import Any, cast

from ..core.errors import SchemaViolation

logger = logging.getLogger(__name__)


class FieldKind(StrEnum):
    PRIMITIVE = "primitive"
    EMBEDDED = "embedded"
    REFERENCE = "reference"
    LIST = "list"


PRIMITIVE_TYPES: dict[str, Callable[[Any], bool]] = {
    "string": lambda v: isinstance(v, str),
    "int": lambda v: isinstance(v, int) and not isinstance(v, bool),
    "double": lambda v: isinstance(v, (int, float)) and not isinstance(v, bool),
    "bool": lambda v: isinstance(v, bool),
    # naive datetimes would break ordering checks against the store clock
    "date": lambda v: isinstance(v, datetime) and v.tzinfo is not None,
}

# (record, now) -> (field path, message) when the invariant is broken.
Rule = Callable[[Mapping[str, Any], datetime], tuple[str, str] | None]


@dataclass(frozen=True, slots=True)
class Field:
    name: str
    kind: FieldKind
    type: str
    optional: bool = False
    primary_key: bool = False
    choices: tuple[Any, ...] | None = None
    minimum: float | None = None
    maximum: float | None = None
    exclusive_minimum: bool = False
    min_items: int | None = None


@dataclass(frozen=True, slots=True)
class EntitySchema:
    name: str
    fields: tuple[Field, ...]
    embedded: bool = False
    rules: tuple[Rule, ...] = field(default=())

    @property
    def primary_key(self) -> Field | None:
        for f in self.fields:
            if f.primary_key:
                return f
        return None

    def field_names(self) -> tuple[str, ...]:
        return tuple(f.name for f in self.fields)

    def get_field(self, name: str) -> Field | None:
        for f in self.fields:
            if f.name == name:
                return f
        return None


class SchemaRegistry:
    """
    Declared entity types, checked for consistency at construction.

    Raises SchemaViolation if a relationship names an undeclared type, if an
    embedded/top-level target is used the wrong way round, or if a top-level
    type does not have exactly one primary key.
    """

    def __init__(self, schemas: Iterable[EntitySchema]) -> None:
        self._schemas: dict[str, EntitySchema] = {}
        for s in schemas:
            if s.name in self._schemas:
                raise SchemaViolation(s.name, {"": "schema declared twice"})
            self._schemas[s.name] = s
        self._check_consistency()
        logger.debug("SchemaRegistry ready types=%s", ", ".join(self._schemas))

    def _check_consistency(self) -> None:
        for s in self._schemas.values():
            errors: dict[str, str] = {}
            pks = [f for f in s.fields if f.primary_key]
            if s.embedded and pks:
                errors[pks[0].name] = "embedded types cannot declare a primary key"
            if not s.embedded:
                if len(pks) != 1:
                    errors[""] = f"expected exactly one primary key, found {len(pks)}"
                elif pks[0].optional or pks[0].type not in ("string", "int"):
                    errors[pks[0].name] = "primary key must be a required string or int"

            for f in s.fields:
                if f.kind == FieldKind.PRIMITIVE:
                    if f.type not in PRIMITIVE_TYPES:
                        errors[f.name] = f"unknown primitive type {f.type!r}"
                    continue
                if f.kind == FieldKind.LIST and f.type in PRIMITIVE_TYPES:
                    continue
                target = self._schemas.get(f.type)
                if target is None:
                    errors[f.name] = f"references undeclared type {f.type!r}"
                elif f.kind == FieldKind.REFERENCE and target.embedded:
                    errors[f.name] = f"cannot reference embedded type {f.type!r}"
                elif f.kind in (FieldKind.EMBEDDED, FieldKind.LIST) and not target.embedded:
                    errors[f.name] = f"{f.type!r} is not an embedded type"

            if errors:
                raise SchemaViolation(s.name, errors)

    # ---- lookups ----

    def __contains__(self, name: object) -> bool:
        return name in self._schemas

    def names(self) -> list[str]:
        return [n for n, s in self._schemas.items() if not s.embedded]

    def schema(self, name: str) -> EntitySchema:
        try:
            return self._schemas[name]
        except KeyError:
            raise SchemaViolation(name, {"": "unknown entity type"}) from None

    def fields(self, name: str) -> tuple[Field, ...]:
        return self.schema(name).fields

    def primary_key(self, name: str) -> str:
        pk = self.schema(name).primary_key
        if pk is None:
            raise SchemaViolation(name, {"": "embedded types have no primary key"})
        return pk.name

    # ---- validation ----

    def validate(self, name: str, record: Mapping[str, Any], now: datetime) -> dict[str, Any]:
        """
        Validate a full candidate record and return its normalized copy.

        The copy carries every declared field (absent optionals become None),
        in declaration order. Doubles are stored as float.
        """
        schema = self.schema(name)
        if schema.embedded:
            raise SchemaViolation(name, {"": "embedded types cannot be stored on their own"})

        errors: dict[str, str] = {}
        out = self._validate_object(schema, record, "", errors)

        if schema.primary_key is not None and record.get(schema.primary_key.name) in (None, ""):
            errors.setdefault(schema.primary_key.name, "primary key is required")

        if not errors:
            for rule in schema.rules:
                broken = rule(out, now)
                if broken is not None:
                    path, message = broken
                    errors.setdefault(path, message)

        if errors:
            raise SchemaViolation(name, errors)
        return out

    def _validate_object(
        self,
        schema: EntitySchema,
        record: Mapping[str, Any],
        prefix: str,
        errors: dict[str, str],
    ) -> dict[str, Any]:
        if not isinstance(record, Mapping):
            errors[prefix.rstrip(".") or schema.name] = "expected an object"
            return {}

        known = set(schema.field_names())
        for key in record:
            if key not in known:
                errors[f"{prefix}{key}"] = "unknown field"

        out: dict[str, Any] = {}
        for f in schema.fields:
            path = f"{prefix}{f.name}"
            value = record.get(f.name)
            if value is None:
                if not f.optional:
                    errors[path] = "is required"
                out[f.name] = None
                continue
            out[f.name] = self._validate_value(f, value, path, errors)
        return out

    def _validate_value(self, f: Field, value: Any, path: str, errors: dict[str, str]) -> Any:
        if f.kind == FieldKind.LIST:
            if not isinstance(value, (list, tuple)):
                errors[path] = "expected a list"
                return value
            if f.min_items is not None and len(value) < f.min_items:
                errors[path] = f"needs at least {f.min_items} items"
            items: list[Any] = []
            for i, item in enumerate(value):
                item_path = f"{path}.{i}"
                if f.type in PRIMITIVE_TYPES:
                    items.append(self._check_primitive(f, item, item_path, errors))
                else:
                    items.append(
                        self._validate_object(self._schemas[f.type], item, f"{item_path}.", errors)
                    )
            return items

        if f.kind == FieldKind.EMBEDDED:
            return self._validate_object(self._schemas[f.type], value, f"{path}.", errors)

        if f.kind == FieldKind.REFERENCE:
            # registry construction guarantees referenced types have a primary key
            target_pk = cast(Field, self._schemas[f.type].primary_key)
            if not PRIMITIVE_TYPES[target_pk.type](value):
                errors[path] = f"expected a {f.type} {target_pk.name}"
            return value

        return self._check_primitive(f, value, path, errors)

    @staticmethod
    def _check_primitive(f: Field, value: Any, path: str, errors: dict[str, str]) -> Any:
        if not PRIMITIVE_TYPES[f.type](value):
            errors[path] = "expected a timezone-aware datetime" if f.type == "date" else f"expected {f.type}"
            return value

        if f.choices is not None and value not in f.choices:
            errors[path] = f"must be one of: {', '.join(map(str, f.choices))}"
            return value

        if f.type == "double":
            value = float(value)
            if not math.isfinite(value):
                errors[path] = "must be a finite number"
                return value
        if f.type in ("double", "int"):
            if f.minimum is not None:
                if f.exclusive_minimum and value <= f.minimum:
                    errors[path] = f"must be greater than {f.minimum:g}"
                elif value < f.minimum:
                    errors[path] = f"must be at least {f.minimum:g}"
            if f.maximum is not None and value > f.maximum:
                errors[path] = f"must be at most {f.maximum:g}"
        if f.type == "string" and not f.optional and not value.strip():
            errors[path] = "is required"
        return value
