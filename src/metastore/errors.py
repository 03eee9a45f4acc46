#!/usr/bin/env python3
"""
Error types and the result wrapper returned by store operations.

CRUD calls never raise: they return a StoreResult so the caller decides
whether a failure matters. Only initialization errors propagate.
"""
from dataclasses import dataclass
from typing import Generic, TypeVar

T = TypeVar("T")


class MetaStoreError(Exception):
    """Base class for goal store failures."""

    kind = "error"


class EngineLoadError(MetaStoreError):
    """The embedded SQL engine is unavailable or lacks snapshot support."""

    kind = "engine"


class SnapshotDecodeError(MetaStoreError):
    """The durable slot holds something that is not a database image."""

    kind = "snapshot"


class QueryError(MetaStoreError):
    """A statement failed (bad bind, constraint violation, closed handle)."""

    kind = "query"


class PersistError(MetaStoreError):
    """Serializing the database or writing the durable slot failed."""

    kind = "persist"


class InvalidRecordError(MetaStoreError):
    """Caller input could not be coerced into a record."""

    kind = "invalid"


@dataclass(frozen=True)
class StoreResult(Generic[T]):
    """Outcome of a store operation.

    ``value`` is populated on success. Lookups also populate it on a miss
    (``defaulted`` is True) and on failure, with the fallback default, so
    callers that only want a number can read ``value`` unconditionally.
    """

    value: T | None = None
    error: MetaStoreError | None = None
    defaulted: bool = False

    @property
    def ok(self) -> bool:
        return self.error is None

    @classmethod
    def success(cls, value: T | None = None, defaulted: bool = False) -> "StoreResult[T]":
        return cls(value=value, defaulted=defaulted)

    @classmethod
    def failure(cls, error: MetaStoreError, value: T | None = None) -> "StoreResult[T]":
        return cls(value=value, error=error, defaulted=value is not None)

    def unwrap(self) -> T | None:
        """Return the value, raising the stored error on failure."""
        if self.error is not None:
            raise self.error
        return self.value

    def unwrap_or(self, default: T) -> T:
        if self.error is not None or self.value is None:
            return default
        return self.value
