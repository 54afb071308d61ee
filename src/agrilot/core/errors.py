# src/agrilot/core/errors.py

"""
Error taxonomy.

Store-layer errors always propagate to the caller (the initiating form must be
able to react). TransportError is the only one the reminder scheduler swallows.
"""

from __future__ import annotations

from collections.abc import Mapping


class AgrilotError(Exception):
    """Base class for all errors raised by this package."""


class StoreError(AgrilotError):
    pass


class SchemaViolation(StoreError):
    """
    A record does not match its schema.

    `errors` maps a (dotted) field path to a human-readable message, the same
    shape a form uses to show field-level helper texts.
    """

    def __init__(self, type_name: str, errors: Mapping[str, str]) -> None:
        self.type_name = type_name
        self.errors = dict(errors)
        details = "; ".join(f"{k}: {v}" for k, v in self.errors.items())
        super().__init__(f"{type_name}: {details}" if details else type_name)


class DuplicateKeyError(StoreError):
    def __init__(self, type_name: str, pk: object) -> None:
        self.type_name = type_name
        self.pk = pk
        super().__init__(f"{type_name} with primary key {pk!r} already exists")


class StoreOpenError(StoreError):
    """Fatal at startup: the persisted store cannot be used with these schemas."""


class StoreClosedError(StoreError):
    pass


class TransactionError(StoreError):
    """Programmer error: nested write, or a mutation outside a write."""


class InvalidPredicateError(AgrilotError):
    pass


class TransportError(AgrilotError):
    """The notification transport rejected a request."""
