"""Core primitives for railyard: record store, errors, settings, logging."""

from railyard.core.errors import (
    AccessDeniedError,
    ConfigError,
    CorruptTableError,
    ErrorCategory,
    ErrorContext,
    InvalidConfigError,
    NotificationError,
    RailyardError,
    StorageError,
)
from railyard.core.settings import RailyardSettings, get_settings
from railyard.core.store import Record, RecordStore

__all__ = [
    "AccessDeniedError",
    "ConfigError",
    "CorruptTableError",
    "ErrorCategory",
    "ErrorContext",
    "InvalidConfigError",
    "NotificationError",
    "RailyardError",
    "Record",
    "RecordStore",
    "RailyardSettings",
    "StorageError",
    "get_settings",
]
