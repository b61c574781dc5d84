"""
Tests for the analysis cache
"""

import asyncio

import pytest

from tm_leverage.services.analysis_cache import AnalysisCache

from conftest import FakeAnalyzer

SOURCE = "Take one tablet daily"
TRANSLATED = "Tome una tableta al día"


class TestAnalysisCache:
    @pytest.mark.asyncio
    async def test_hit_skips_external_call(self, fake_analyzer):
        cache = AnalysisCache(fake_analyzer)

        first = await cache.get_or_compute("seg-0", SOURCE, TRANSLATED)
        second = await cache.get_or_compute("seg-0", SOURCE, TRANSLATED)

        assert first is second
        assert len(fake_analyzer.calls) == 1
        assert cache.stats['hits'] == 1
        assert cache.stats['misses'] == 1

    @pytest.mark.asyncio
    async def test_changed_translation_recomputes(self, fake_analyzer):
        cache = AnalysisCache(fake_analyzer)

        await cache.get_or_compute("seg-0", SOURCE, TRANSLATED)
        await cache.get_or_compute("seg-0", SOURCE, "Tome un comprimido al día")

        assert len(fake_analyzer.calls) == 2
        assert len(cache) == 2

    @pytest.mark.asyncio
    async def test_concurrent_requests_compute_once(self):
        analyzer = FakeAnalyzer(delay=0.01)
        cache = AnalysisCache(analyzer)

        results = await asyncio.gather(*(
            cache.get_or_compute("seg-0", SOURCE, TRANSLATED) for _ in range(5)
        ))

        assert len(analyzer.calls) == 1
        assert all(r is results[0] for r in results)

    @pytest.mark.asyncio
    async def test_failure_returns_none_and_is_not_cached(self):
        analyzer = FakeAnalyzer(fail=True)
        cache = AnalysisCache(analyzer)

        assert await cache.get_or_compute("seg-0", SOURCE, TRANSLATED) is None
        assert await cache.get_or_compute("seg-0", SOURCE, TRANSLATED) is None
        assert len(analyzer.calls) == 2
        assert len(cache) == 0

    @pytest.mark.asyncio
    async def test_reset_and_invalidate(self, fake_analyzer):
        cache = AnalysisCache(fake_analyzer)
        await cache.get_or_compute("seg-0", SOURCE, TRANSLATED)
        await cache.get_or_compute("seg-1", SOURCE, TRANSLATED)

        assert cache.invalidate("seg-0") == 1
        assert len(cache) == 1

        cache.reset()
        assert len(cache) == 0
        assert cache.stats == {'hits': 0, 'misses': 0, 'entries': 0}

        await cache.get_or_compute("seg-1", SOURCE, TRANSLATED)
        assert len(fake_analyzer.calls) == 3
