"""
Tests for debounced persistence
"""

import asyncio
import json

import pytest

from tm_leverage.models.entities import DocumentRecord, Segment
from tm_leverage.services.persistence import (
    JsonFileStore, MemoryStore, PersistenceController, content_key,
)


def _record(text=""):
    seg = Segment(id="seg-0", content="Take one tablet daily", translated_text=text)
    return DocumentRecord(segments=[seg])


class FailingStore(MemoryStore):
    def __init__(self):
        super().__init__()
        self.fail = True

    def save(self, payload):
        if self.fail:
            raise OSError("disk full")
        super().save(payload)


class TestPersistenceController:
    @pytest.mark.asyncio
    async def test_only_latest_scheduled_write_runs(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=0.02)

        controller.schedule(_record("uno"))
        controller.schedule(_record("dos"))
        controller.schedule(_record("tres"))
        await asyncio.sleep(0.1)

        assert len(store.saved) == 1
        assert store.saved[0]['segments'][0]['translatedText'] == "tres"
        assert store.saved[0]['lastUpdated'] == controller.last_updated

    @pytest.mark.asyncio
    async def test_unchanged_content_not_rewritten(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=0.01)

        controller.schedule(_record("uno"))
        await asyncio.sleep(0.05)
        controller.schedule(_record("uno"))
        await asyncio.sleep(0.05)

        assert len(store.saved) == 1
        assert controller.write_count == 1

    @pytest.mark.asyncio
    async def test_flush_writes_immediately(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=10)

        controller.schedule(_record("uno"))
        assert controller.has_pending
        assert controller.flush() is True
        assert len(store.saved) == 1
        assert not controller.has_pending
        assert controller.flush() is False

    @pytest.mark.asyncio
    async def test_close_discards_pending(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=0.01)

        controller.schedule(_record("uno"))
        controller.close()
        await asyncio.sleep(0.05)

        assert store.saved == []

    def test_store_error_retried_on_next_write(self):
        store = FailingStore()
        controller = PersistenceController(store, delay=0)

        assert controller.write(_record("uno")) is False
        assert controller.last_updated is None

        store.fail = False
        assert controller.write(_record("uno")) is True
        assert len(store.saved) == 1

    def test_schedule_without_event_loop_waits_for_flush(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=0)

        controller.schedule(_record("uno"))
        assert store.saved == []
        controller.flush()
        assert len(store.saved) == 1

    def test_content_key_ignores_last_updated(self):
        payload = _record("uno").to_dict()
        stamped = dict(payload, lastUpdated="2026-01-01T00:00:00+00:00")
        assert content_key(payload) == content_key(stamped)

    @pytest.mark.asyncio
    async def test_mark_written_drops_pending_write(self):
        store = MemoryStore()
        controller = PersistenceController(store, delay=0.01)

        controller.schedule(_record("abandoned"))
        controller.mark_written(_record("restored"))
        await asyncio.sleep(0.05)

        assert store.saved == []
        assert not controller.has_pending
        assert controller.write(_record("restored")) is False

    def test_loaded_record_not_written_back(self):
        store = MemoryStore()
        store.save(_record("uno").to_dict())
        controller = PersistenceController(store, delay=0)

        record = controller.load()

        assert record.segments[0].translated_text == "uno"
        assert controller.write(record) is False


class TestJsonFileStore:
    def test_save_and_load(self, tmp_path):
        path = tmp_path / "docs" / "record.json"
        store = JsonFileStore(path)
        assert store.load() is None

        payload = _record("Tome una tableta al día").to_dict()
        store.save(payload)

        with open(path, encoding='utf-8') as f:
            assert "Tome una tableta al día" in f.read()
        assert store.load() == json.loads(json.dumps(payload))
