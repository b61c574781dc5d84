"""
Tests for bulk translation
"""

import asyncio

import pytest

from tm_leverage.models.entities import Segment, COMPLETED
from tm_leverage.services.bulk import BulkTranslator
from tm_leverage.services.orchestrator import SegmentTranslator

from conftest import FakeTM, FakeTranslator


def _segments(n):
    return [Segment(id=f"seg-{i}", index=i, content=f"Sentence number {i} about dosing") for i in range(n)]


def _bulk(ai, config, max_concurrency=2):
    return BulkTranslator(SegmentTranslator(FakeTM(), ai, config), max_concurrency=max_concurrency)


class TestBulkTranslator:
    @pytest.mark.asyncio
    async def test_translates_all_with_progress(self, translation_config):
        progress = []
        bulk = _bulk(FakeTranslator(), translation_config)

        results = await bulk.translate_all(_segments(4), on_progress=lambda d, t: progress.append((d, t)))

        assert sorted(results) == ["seg-0", "seg-1", "seg-2", "seg-3"]
        assert progress == [(1, 4), (2, 4), (3, 4), (4, 4)]
        assert bulk.last_failures == {}

    @pytest.mark.asyncio
    async def test_failures_isolated(self, translation_config):
        segments = _segments(4)
        ai = FakeTranslator(fail_on=[segments[2].content])
        progress = []
        bulk = _bulk(ai, translation_config)

        results = await bulk.translate_all(segments, on_progress=lambda d, t: progress.append(d))

        assert len(results) == 3
        assert "seg-2" not in results
        assert list(bulk.last_failures) == ["seg-2"]
        assert len(progress) == 4
        assert segments[2].translated_text == ""
        assert bulk.job_log.failed_count == 1
        assert bulk.job_log.translated_count == 3

    @pytest.mark.asyncio
    async def test_completed_segments_skipped(self, translation_config):
        segments = _segments(3)
        segments[0].translated_text = "Hecho"
        segments[0].translation_status = COMPLETED
        ai = FakeTranslator()

        results = await _bulk(ai, translation_config).translate_all(segments)

        assert sorted(results) == ["seg-1", "seg-2"]
        assert segments[0].content not in ai.calls

    @pytest.mark.asyncio
    async def test_nothing_to_do_reports_zero(self, translation_config):
        segments = _segments(2)
        for seg in segments:
            seg.translated_text = "Hecho"
            seg.translation_status = COMPLETED
        ai = FakeTranslator()
        progress = []

        results = await _bulk(ai, translation_config).translate_all(
            segments, on_progress=lambda d, t: progress.append((d, t)))

        assert results == {}
        assert progress == [(0, 0)]
        assert ai.calls == []

    @pytest.mark.asyncio
    async def test_concurrency_bounded(self, translation_config):
        ai = FakeTranslator(delay=0.01)
        await _bulk(ai, translation_config, max_concurrency=2).translate_all(_segments(6))
        assert len(ai.calls) == 6
        assert ai.max_in_flight == 2

    @pytest.mark.asyncio
    async def test_cancel_event_skips_unstarted(self, translation_config):
        cancel = asyncio.Event()
        progress = []

        def on_progress(done, total):
            progress.append(done)
            cancel.set()

        bulk = _bulk(FakeTranslator(), translation_config, max_concurrency=1)
        results = await bulk.translate_all(_segments(3), on_progress=on_progress, cancel_event=cancel)

        assert list(results) == ["seg-0"]
        assert bulk.last_cancelled == ["seg-1", "seg-2"]
        assert progress == [1, 2, 3]

    @pytest.mark.asyncio
    async def test_progress_callback_error_keeps_results(self, translation_config):
        calls = []

        def on_progress(done, total):
            calls.append(done)
            raise RuntimeError("progress bar closed")

        bulk = _bulk(FakeTranslator(), translation_config)
        results = await bulk.translate_all(_segments(3), on_progress=on_progress)

        assert sorted(results) == ["seg-0", "seg-1", "seg-2"]
        assert sorted(calls) == [1, 2, 3]
        assert bulk.last_failures == {}

    def test_invalid_concurrency(self, translation_config):
        with pytest.raises(ValueError):
            _bulk(FakeTranslator(), translation_config, max_concurrency=0)
