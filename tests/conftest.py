"""
Shared pytest fixtures for railyard tests.

This module provides:
- A record store rooted in a temporary directory
- A notifier that records every message instead of delivering it
- Zero-length service timing so instances run to completion instantly
- A helper that seeds table files the way an operator would edit them

Usage:
    Fixtures are auto-discovered by pytest.

    @pytest.mark.asyncio
    async def test_something(store, notifier, instant_timing):
        ...
"""

from __future__ import annotations

import csv
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path

import pytest

from railyard.core.errors import NotificationError
from railyard.core.logging import clear_context
from railyard.core.store import RecordStore
from railyard.scheduling import ServiceTiming


class RecordingNotifier:
    """Notifier double that keeps every (target, text) pair."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.messages: list[tuple[str, str]] = []

    async def send(self, target: str, text: str) -> None:
        if self.fail:
            raise NotificationError("transport down").with_context(station=target)
        self.messages.append((target, text))

    def texts(self) -> list[str]:
        return [text for _, text in self.messages]


def write_rows(path: Path, rows: Iterable[Sequence[object]]) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", newline="", encoding="utf-8") as handle:
        writer = csv.writer(handle)
        for row in rows:
            writer.writerow([str(v) for v in row])


def read_rows(path: Path) -> list[list[str]]:
    if not path.exists():
        return []
    with open(path, newline="", encoding="utf-8") as handle:
        return [row for row in csv.reader(handle) if row]


@pytest.fixture(autouse=True)
def _fresh_log_context():
    """Log context is a contextvar; keep tests from seeing each other's."""
    clear_context()
    yield
    clear_context()


@pytest.fixture
def data_dir(tmp_path: Path) -> Path:
    return tmp_path / "data"


@pytest.fixture
def store(data_dir: Path) -> RecordStore:
    return RecordStore(data_dir)


@pytest.fixture
def broken_store(tmp_path: Path) -> RecordStore:
    """Store whose directory is a regular file, so every access fails."""
    blocker = tmp_path / "not-a-directory"
    blocker.write_text("")
    return RecordStore(blocker)


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
def instant_timing() -> ServiceTiming:
    return ServiceTiming(minute_seconds=0, max_delay=0, dwell_minutes=0, derail_probability=0.0)


@pytest.fixture
def seed(store: RecordStore) -> Callable[[str, Iterable[Sequence[object]]], None]:
    """Write raw rows to a table file, bypassing the store."""

    def _seed(table: str, rows: Iterable[Sequence[object]]) -> None:
        write_rows(store.table_path(table), rows)

    return _seed


@pytest.fixture
def failing_notifier() -> RecordingNotifier:
    return RecordingNotifier(fail=True)


@pytest.fixture
def table_rows(store: RecordStore) -> Callable[[str], list[list[str]]]:
    """Read a table file back as raw rows."""

    def _rows(table: str) -> list[list[str]]:
        return read_rows(store.table_path(table))

    return _rows
