"""Flat-file record store.

Manifesto:
    The bot's persisted state is a handful of small tables that operators
    edit by hand. A headerless CSV file per table keeps that possible, and a
    whole-table rewrite per mutation keeps the store small enough to reason
    about: a failed write leaves the previous file in place because every
    rewrite goes to a fresh temporary file that replaces the table atomically.

The store knows nothing about concrete record types. Anything implementing
the ``Record`` protocol (``from_fields`` / ``to_fields``) can be stored.

Tags:
    railyard, storage, csv, flat-file, record-store, asyncio-lock

Doc-Types:
    api-reference, architecture-diagram


    Store Operations::

        select(table, T, where)   read ─► parse rows ─► filter
        insert(table, r)          read ─► append r ─► rewrite
        update(table, r, where)   read ─► drop rows equal to a match ─► append r ─► rewrite
        delete(table, T, where)   read ─► drop rows equal to a match ─► rewrite

        One asyncio.Lock guards the whole store, held for a single call only.
        A select followed by a separate insert is NOT atomic: two callers can
        both pass the same precondition before either writes.

    Error Mapping::

        FileNotFoundError on read   ─► []  (a vacant table)
        PermissionError             ─► AccessDeniedError
        other OSError               ─► StorageError
        csv.Error, bad UTF-8        ─► CorruptTableError
"""

from __future__ import annotations

import asyncio
import csv
import os
import tempfile
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
from typing import Protocol, TypeVar, runtime_checkable

from railyard.core.errors import AccessDeniedError, CorruptTableError, StorageError
from railyard.core.logging import get_logger

logger = get_logger(__name__)

R = TypeVar("R", bound="Record")


@runtime_checkable
class Record(Protocol):
    """Value type with a lossless text-field (de)serialization contract.

    ``from_fields(r.to_fields()) == r`` must hold for every representable
    value. Fields that fail to parse fall back to type-specific defaults
    instead of raising.
    """

    @classmethod
    def from_fields(cls: type[R], fields: Sequence[str]) -> R: ...

    def to_fields(self) -> list[str]: ...


Predicate = Callable[[R], bool]


def _always(_: object) -> bool:
    return True


class RecordStore:
    """Generic load/filter/append/rewrite engine over named flat-file tables.

    Example:
        >>> store = RecordStore("data/")
        >>> await store.insert("train_completions", completion)
        >>> rows = await store.select("train_completions", Completion, lambda c: c.number == 42)
    """

    def __init__(self, path: str | Path, extension: str = "csv") -> None:
        """Initialize the store.

        Args:
            path: Directory holding one file per table
            extension: Table file extension (without the dot)
        """
        self.path = Path(path)
        self.extension = extension.lstrip(".") or "csv"
        self._lock = asyncio.Lock()

    def table_path(self, table: str) -> Path:
        """Return the file backing ``table``."""
        return self.path / f"{table}.{self.extension}"

    # === Public API ===

    async def select(
        self,
        table: str,
        record_type: type[R],
        where: Predicate[R] | None = None,
    ) -> list[R]:
        """Load every row of ``table`` and return those matching ``where``.

        A table whose file does not exist is vacant, not an error.

        Raises:
            AccessDeniedError: The file exists but may not be read
            CorruptTableError: The file cannot be parsed as delimited rows
            StorageError: Any other I/O failure
        """
        async with self._lock:
            return self._load(table, record_type, where or _always)

    async def insert(self, table: str, record: Record) -> None:
        """Append ``record`` by rewriting the whole table."""
        async with self._lock:
            records = self._load(table, type(record), _always)
            records.append(record)
            self._write(table, records)

    async def update(self, table: str, record: R, where: Predicate[R]) -> int:
        """Replace every row matching ``where`` with ``record``.

        Rows are removed by structural equality against the matched set, so a
        row identical to a matched row is removed even if it appears several
        times. With zero matches this is a plain append.

        Returns:
            Number of rows removed before ``record`` was appended
        """
        async with self._lock:
            records = self._load(table, type(record), _always)
            keep = self._without(records, where)
            removed = len(records) - len(keep)
            keep.append(record)
            self._write(table, keep)
        return removed

    async def delete(self, table: str, record_type: type[R], where: Predicate[R]) -> int:
        """Remove every row matching ``where``.

        Returns:
            Number of rows removed
        """
        async with self._lock:
            records = self._load(table, record_type, _always)
            keep = self._without(records, where)
            self._write(table, keep)
        return len(records) - len(keep)

    async def write(self, table: str, records: Iterable[Record]) -> None:
        """Replace the full contents of ``table`` with ``records``."""
        async with self._lock:
            self._write(table, list(records))

    # === Internals (caller holds the lock) ===

    @staticmethod
    def _without(records: list[R], where: Predicate[R]) -> list[R]:
        matched = [r for r in records if where(r)]
        return [r for r in records if r not in matched]

    def _load(self, table: str, record_type: type[R], where: Predicate[R]) -> list[R]:
        path = self.table_path(table)
        try:
            with open(path, newline="", encoding="utf-8") as handle:
                rows = [row for row in csv.reader(handle) if row]
        except FileNotFoundError:
            return []
        except PermissionError as exc:
            raise AccessDeniedError("Permission denied", cause=exc).with_context(
                table=table, path=str(path)
            ) from exc
        except (csv.Error, UnicodeDecodeError) as exc:
            raise CorruptTableError(f"Malformed rows in {table}", cause=exc).with_context(
                table=table, path=str(path)
            ) from exc
        except OSError as exc:
            raise StorageError("Problem reading file", cause=exc).with_context(
                table=table, path=str(path)
            ) from exc

        records = [record_type.from_fields(row) for row in rows]
        return [r for r in records if where(r)]

    def _write(self, table: str, records: Sequence[Record]) -> None:
        path = self.table_path(table)
        tmp_name: str | None = None
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            with tempfile.NamedTemporaryFile(
                "w",
                dir=path.parent,
                prefix=f".{table}.",
                suffix=".tmp",
                newline="",
                encoding="utf-8",
                delete=False,
            ) as handle:
                tmp_name = handle.name
                writer = csv.writer(handle)
                for record in records:
                    writer.writerow(record.to_fields())
            os.replace(tmp_name, path)
            tmp_name = None
        except PermissionError as exc:
            logger.error("table_write_failed", table=table, path=str(path), error=str(exc))
            raise AccessDeniedError("Permission denied", cause=exc).with_context(
                table=table, path=str(path)
            ) from exc
        except OSError as exc:
            logger.error("table_write_failed", table=table, path=str(path), error=str(exc))
            raise StorageError("Could not write table file", cause=exc).with_context(
                table=table, path=str(path)
            ) from exc
        finally:
            if tmp_name is not None and os.path.exists(tmp_name):
                os.unlink(tmp_name)

        logger.debug("table_written", table=table, rows=len(records))
