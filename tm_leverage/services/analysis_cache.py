"""
Analysis cache
Memoizes per-segment quality analysis, keyed by segment id plus MD5 hashes
of the source and translated text so an edited translation is re-analyzed.
"""

import asyncio
import hashlib
import logging
from typing import Dict, Optional, Tuple

from tm_leverage.exceptions import AnalysisUnavailable
from tm_leverage.models.entities import AnalysisResult
from tm_leverage.services.ai_translator import AnalysisBackend

logger = logging.getLogger(__name__)

CacheKey = Tuple[str, str, str]


def _compute_hash(text: str) -> str:
    """Compute MD5 hash of text content"""
    return hashlib.md5(text.encode('utf-8')).hexdigest()


class AnalysisCache:
    def __init__(self, analyzer: AnalysisBackend):
        self.analyzer = analyzer
        self._results: Dict[CacheKey, AnalysisResult] = {}
        self._locks: Dict[CacheKey, asyncio.Lock] = {}
        self.hits = 0
        self.misses = 0

    @staticmethod
    def make_key(segment_id: str, source_text: str, translated_text: str) -> CacheKey:
        return (segment_id, _compute_hash(source_text), _compute_hash(translated_text))

    def __len__(self):
        return len(self._results)

    def __contains__(self, key: CacheKey) -> bool:
        return key in self._results

    @property
    def stats(self) -> Dict[str, int]:
        return {'hits': self.hits, 'misses': self.misses, 'entries': len(self._results)}

    async def get_or_compute(self, segment_id: str, source_text: str,
                             translated_text: str) -> Optional[AnalysisResult]:
        """
        Cached analysis for the pair, computing it on first request.

        Concurrent requests for the same key wait on one computation.
        Returns None when the analyzer fails; failures are not cached.
        """
        key = self.make_key(segment_id, source_text, translated_text)
        cached = self._results.get(key)
        if cached is not None:
            self.hits += 1
            return cached

        lock = self._locks.setdefault(key, asyncio.Lock())
        async with lock:
            cached = self._results.get(key)
            if cached is not None:
                self.hits += 1
                return cached

            self.misses += 1
            try:
                result = await self.analyzer.analyze(source_text, translated_text)
            except AnalysisUnavailable as e:
                logger.warning(f"[{segment_id}] Analysis unavailable: {e}")
                return None

            self._results[key] = result
            logger.debug(f"[{segment_id}] Analysis cached")
            return result

    def invalidate(self, segment_id: str) -> int:
        """Drop every entry of one segment"""
        stale = [key for key in self._results if key[0] == segment_id]
        for key in stale:
            del self._results[key]
            self._locks.pop(key, None)
        return len(stale)

    def reset(self):
        """Clear everything (segments were replaced wholesale)"""
        count = len(self._results)
        self._results.clear()
        self._locks.clear()
        self.hits = 0
        self.misses = 0
        logger.info(f"Analysis cache cleared ({count} entries)")
