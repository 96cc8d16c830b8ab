"""
Structured error types for railyard.

Errors carry a category, a retry hint, and structured context so that the
orchestrator, the command handlers, and the logs can all decide what to do
with a failure without string matching.

Manifesto:
    - **Typed hierarchy:** one subclass per failure domain
    - **Explicit retry semantics:** each error knows whether a retry helps
    - **Rich context:** table, job number, station, actor travel with the error
    - **Chaining:** the underlying ``OSError`` / ``csv.Error`` is preserved

Architecture:
    ::

        ┌─────────────────────────────────────────────────────────────┐
        │                      RailyardError                          │
        │        (category, retryable, context, cause)                │
        ├─────────────────────────────────────────────────────────────┤
        │  StorageError          ConfigError        NotificationError │
        │  (STORAGE)             (CONFIG)           (NOTIFICATION)    │
        │      │                     │                                │
        │  AccessDeniedError     InvalidConfigError                   │
        │  CorruptTableError                                          │
        └─────────────────────────────────────────────────────────────┘

    A missing table file is *not* an error (it reads as an empty table) and a
    malformed field is *not* an error (records fall back to defaults). Both
    are handled before anything in this module gets raised.

Examples:
    >>> error = AccessDeniedError("Permission denied").with_context(table="train_schedules")
    >>> error.context.table
    'train_schedules'
    >>> error.to_dict()["category"]
    'STORAGE'

Tags:
    error-handling, exception-hierarchy, railyard, storage, notifications

Doc-Types:
    - API Reference
    - Error Handling Guide
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any


class ErrorCategory(str, Enum):
    """Standard error categories for classification and routing."""

    STORAGE = "STORAGE"
    CONFIG = "CONFIG"
    NOTIFICATION = "NOTIFICATION"
    INTERNAL = "INTERNAL"
    UNKNOWN = "UNKNOWN"


@dataclass
class ErrorContext:
    """
    Where a failure happened, as far as railyard knows.

    The named slots cover the things every storage and scheduling failure is
    about; anything else lands in ``metadata``.
    """

    table: str | None = None
    number: int | None = None
    station: str | None = None
    actor: str | None = None
    path: str | None = None

    metadata: dict[str, Any] = field(default_factory=dict)

    @classmethod
    def slots(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls) if f.name != "metadata")

    def to_dict(self) -> dict[str, Any]:
        """Flat dict of the populated slots plus metadata."""
        populated = {name: getattr(self, name) for name in self.slots()}
        flat = {k: v for k, v in populated.items() if v is not None}
        return {**flat, **self.metadata}


class RailyardError(Exception):
    """
    Root of every error railyard raises on purpose.

    Subclasses pick a ``default_category`` and ``default_retryable``; a
    caller can still override either one for a single raise.
    """

    default_category: ErrorCategory = ErrorCategory.INTERNAL
    default_retryable: bool = False

    def __init__(
        self,
        message: str,
        *,
        category: ErrorCategory | None = None,
        retryable: bool | None = None,
        context: ErrorContext | None = None,
        cause: BaseException | None = None,
    ):
        super().__init__(message)
        self.message = message
        self.category = self.default_category if category is None else category
        self.retryable = self.default_retryable if retryable is None else retryable
        self.context = ErrorContext() if context is None else context
        self.cause = cause
        if cause is not None:
            self.__cause__ = cause

    def with_context(self, **kwargs: Any) -> RailyardError:
        """
        Attach context and return the same error, for use in a ``raise``.

        Usage:
            raise StorageError("Problem reading file").with_context(table="train_completions")
        """
        known = ErrorContext.slots()
        for key, value in kwargs.items():
            if key in known:
                setattr(self.context, key, value)
            else:
                self.context.metadata[key] = value
        return self

    def to_dict(self) -> dict[str, Any]:
        """Log-friendly view: type, message, category, retry hint, context."""
        payload: dict[str, Any] = {
            "error_type": type(self).__name__,
            "message": self.message,
            "category": self.category.value,
            "retryable": self.retryable,
        }
        context = self.context.to_dict()
        if context:
            payload["context"] = context
        if self.cause is not None:
            payload["cause"] = str(self.cause)
        return payload

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.message!r}, category={self.category.value})"


# =============================================================================
# STORAGE ERRORS
# =============================================================================


class StorageError(RailyardError):
    """Table file could not be read or rewritten."""

    default_category = ErrorCategory.STORAGE
    default_retryable = False


class AccessDeniedError(StorageError):
    """The process may not read or write the table file."""


class CorruptTableError(StorageError):
    """The table file exists but cannot be parsed as delimited rows."""


# =============================================================================
# CONFIG ERRORS
# =============================================================================


class ConfigError(RailyardError):
    """Settings or timing parameters that railyard cannot run with."""

    default_category = ErrorCategory.CONFIG


class InvalidConfigError(ConfigError):
    """Configuration value is out of range."""

    def __init__(self, key: str, value: Any, message: str | None = None):
        super().__init__(
            message or f"Invalid value for {key}: {value!r}",
            context=ErrorContext(metadata={"config_key": key}),
        )
        self.key = key
        self.value = value


# =============================================================================
# NOTIFICATION ERRORS
# =============================================================================


class NotificationError(RailyardError):
    """An outbound message could not be delivered."""

    default_category = ErrorCategory.NOTIFICATION
    default_retryable = True


def categorize_error(error: BaseException) -> ErrorCategory:
    """Category for any exception; raw ``OSError`` counts as storage."""
    match error:
        case RailyardError():
            return error.category
        case OSError():
            return ErrorCategory.STORAGE
        case _:
            return ErrorCategory.UNKNOWN


__all__ = [
    "ErrorCategory",
    "ErrorContext",
    "RailyardError",
    "StorageError",
    "AccessDeniedError",
    "CorruptTableError",
    "ConfigError",
    "InvalidConfigError",
    "NotificationError",
    "categorize_error",
]
