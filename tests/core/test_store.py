"""Tests for the flat-file record store."""

from __future__ import annotations

import asyncio
import os
from collections.abc import Sequence
from dataclasses import dataclass

import pytest

from railyard.core.errors import AccessDeniedError, CorruptTableError, StorageError
from railyard.core.store import Record, RecordStore


@dataclass(frozen=True)
class Pair:
    """Minimal record used to show the store is not tied to the scheduler."""

    key: str = ""
    value: int = 0

    @classmethod
    def from_fields(cls, fields: Sequence[str]) -> Pair:
        try:
            value = int(fields[1])
        except (IndexError, ValueError):
            value = 0
        return cls(key=fields[0] if fields else "", value=value)

    def to_fields(self) -> list[str]:
        return [self.key, str(self.value)]


class TestRecordProtocol:
    def test_dataclass_with_field_methods_is_a_record(self):
        assert isinstance(Pair("a", 1), Record)

    def test_plain_object_is_not_a_record(self):
        assert not isinstance(object(), Record)


class TestSelect:
    @pytest.mark.asyncio
    async def test_missing_table_is_empty(self, store):
        assert await store.select("nothing_here", Pair) == []

    @pytest.mark.asyncio
    async def test_filters_with_predicate(self, store, seed):
        seed("pairs", [("a", 1), ("b", 2), ("c", 3)])

        rows = await store.select("pairs", Pair, lambda p: p.value >= 2)

        assert rows == [Pair("b", 2), Pair("c", 3)]

    @pytest.mark.asyncio
    async def test_preserves_file_order(self, store, seed):
        seed("pairs", [("z", 1), ("a", 2), ("m", 3)])
        rows = await store.select("pairs", Pair)
        assert [p.key for p in rows] == ["z", "a", "m"]

    @pytest.mark.asyncio
    async def test_blank_lines_are_skipped(self, store):
        path = store.table_path("pairs")
        path.parent.mkdir(parents=True)
        path.write_text("a,1\n\n\nb,2\n", encoding="utf-8")

        assert await store.select("pairs", Pair) == [Pair("a", 1), Pair("b", 2)]

    @pytest.mark.asyncio
    async def test_malformed_field_falls_back_to_default(self, store, seed):
        seed("pairs", [("a", "not-a-number")])
        assert await store.select("pairs", Pair) == [Pair("a", 0)]

    @pytest.mark.asyncio
    async def test_permission_error_raises_access_denied(self, store, seed, monkeypatch):
        seed("pairs", [("a", 1)])

        def deny(*args, **kwargs):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr("railyard.core.store.open", deny, raising=False)

        with pytest.raises(AccessDeniedError) as exc_info:
            await store.select("pairs", Pair)
        assert exc_info.value.message == "Permission denied"
        assert exc_info.value.context.table == "pairs"

    @pytest.mark.asyncio
    async def test_other_io_error_raises_storage_error(self, store):
        store.table_path("pairs").mkdir(parents=True)

        with pytest.raises(StorageError) as exc_info:
            await store.select("pairs", Pair)
        assert not isinstance(exc_info.value, AccessDeniedError)
        assert exc_info.value.message == "Problem reading file"

    @pytest.mark.asyncio
    async def test_unparseable_row_raises_corrupt_table(self, store):
        path = store.table_path("pairs")
        path.parent.mkdir(parents=True)
        path.write_text("a," + "x" * 200_000 + "\n", encoding="utf-8")

        with pytest.raises(CorruptTableError):
            await store.select("pairs", Pair)

    @pytest.mark.asyncio
    async def test_invalid_utf8_raises_corrupt_table(self, store):
        path = store.table_path("pairs")
        path.parent.mkdir(parents=True)
        path.write_bytes(b"a,1\n\xff\xfe,2\n")

        with pytest.raises(CorruptTableError) as exc_info:
            await store.select("pairs", Pair)
        assert isinstance(exc_info.value.cause, UnicodeDecodeError)
        assert exc_info.value.context.table == "pairs"


class TestInsert:
    @pytest.mark.asyncio
    async def test_creates_directory_and_file(self, store, table_rows):
        assert not store.path.exists()

        await store.insert("pairs", Pair("a", 1))

        assert store.table_path("pairs").exists()
        assert table_rows("pairs") == [["a", "1"]]

    @pytest.mark.asyncio
    async def test_appends_after_existing_rows(self, store, seed, table_rows):
        seed("pairs", [("a", 1)])
        await store.insert("pairs", Pair("b", 2))
        assert table_rows("pairs") == [["a", "1"], ["b", "2"]]

    @pytest.mark.asyncio
    async def test_fields_with_delimiters_survive(self, store):
        await store.insert("pairs", Pair('comma, "quote"', 5))
        assert await store.select("pairs", Pair) == [Pair('comma, "quote"', 5)]

    @pytest.mark.asyncio
    async def test_concurrent_inserts_are_all_kept(self, store):
        await asyncio.gather(*(store.insert("pairs", Pair(f"k{i}", i)) for i in range(20)))

        rows = await store.select("pairs", Pair)
        assert sorted(p.value for p in rows) == list(range(20))


class TestUpdate:
    @pytest.mark.asyncio
    async def test_replaces_matching_rows(self, store, seed, table_rows):
        seed("pairs", [("a", 1), ("b", 2)])

        removed = await store.update("pairs", Pair("a", 9), lambda p: p.key == "a")

        assert removed == 1
        assert table_rows("pairs") == [["b", "2"], ["a", "9"]]

    @pytest.mark.asyncio
    async def test_without_match_appends(self, store, seed, table_rows):
        seed("pairs", [("a", 1)])

        removed = await store.update("pairs", Pair("b", 2), lambda p: p.key == "b")

        assert removed == 0
        assert table_rows("pairs") == [["a", "1"], ["b", "2"]]

    @pytest.mark.asyncio
    async def test_removes_every_copy_of_a_matched_row(self, store, seed, table_rows):
        seed("pairs", [("a", 1), ("a", 1), ("b", 2)])

        removed = await store.update("pairs", Pair("a", 3), lambda p: p.key == "a")

        assert removed == 2
        assert table_rows("pairs") == [["b", "2"], ["a", "3"]]

    @pytest.mark.asyncio
    async def test_on_missing_table_creates_it(self, store, table_rows):
        await store.update("pairs", Pair("a", 1), lambda p: True)
        assert table_rows("pairs") == [["a", "1"]]


class TestDelete:
    @pytest.mark.asyncio
    async def test_returns_number_removed(self, store, seed, table_rows):
        seed("pairs", [("a", 1), ("b", 2), ("c", 2)])

        removed = await store.delete("pairs", Pair, lambda p: p.value == 2)

        assert removed == 2
        assert table_rows("pairs") == [["a", "1"]]

    @pytest.mark.asyncio
    async def test_nothing_matched(self, store, seed, table_rows):
        seed("pairs", [("a", 1)])
        assert await store.delete("pairs", Pair, lambda p: False) == 0
        assert table_rows("pairs") == [["a", "1"]]

    @pytest.mark.asyncio
    async def test_delete_everything_leaves_empty_table(self, store, seed):
        seed("pairs", [("a", 1), ("b", 2)])
        await store.delete("pairs", Pair, lambda p: True)
        assert await store.select("pairs", Pair) == []
        assert store.table_path("pairs").exists()


class TestWrite:
    @pytest.mark.asyncio
    async def test_replaces_whole_table(self, store, seed, table_rows):
        seed("pairs", [("a", 1), ("b", 2)])
        await store.write("pairs", [Pair("z", 26)])
        assert table_rows("pairs") == [["z", "26"]]

    @pytest.mark.asyncio
    async def test_failed_replace_keeps_previous_content(self, store, seed, table_rows, monkeypatch):
        seed("pairs", [("a", 1)])

        def refuse(src, dst):
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(os, "replace", refuse)

        with pytest.raises(StorageError) as exc_info:
            await store.insert("pairs", Pair("b", 2))

        assert exc_info.value.message == "Could not write table file"
        monkeypatch.undo()
        assert table_rows("pairs") == [["a", "1"]]
        assert [p.name for p in store.path.iterdir()] == ["pairs.csv"]

    @pytest.mark.asyncio
    async def test_permission_denied_on_write(self, store, monkeypatch):
        def refuse(src, dst):
            raise PermissionError(13, "Permission denied")

        monkeypatch.setattr(os, "replace", refuse)

        with pytest.raises(AccessDeniedError):
            await store.write("pairs", [Pair("a", 1)])

    @pytest.mark.asyncio
    async def test_custom_extension(self, tmp_path):
        store = RecordStore(tmp_path, extension=".txt")

        await store.insert("pairs", Pair("a", 1))

        assert (tmp_path / "pairs.txt").exists()
        assert await store.select("pairs", Pair) == [Pair("a", 1)]
