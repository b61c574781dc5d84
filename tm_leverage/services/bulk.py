"""
Bulk Translation Coordinator
Runs the single-segment orchestrator over every non-completed segment with
bounded concurrency, isolating failures per segment.
"""

import asyncio
import logging
from typing import Callable, Dict, Iterable, Optional

from tm_leverage import config
from tm_leverage.models.entities import Segment, TranslationResult, COMPLETED
from tm_leverage.services.orchestrator import SegmentTranslator
from tm_leverage.utils.logger import TransactionLogger

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[int, int], None]


class BulkTranslator:
    def __init__(self, translator: SegmentTranslator,
                 max_concurrency: int = config.MAX_CONCURRENT_TRANSLATIONS,
                 transaction_logger: Optional[TransactionLogger] = None):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency must be ≥1, got {max_concurrency}")
        self.translator = translator
        self.max_concurrency = max_concurrency
        self.job_log = transaction_logger or TransactionLogger()
        self.last_failures: Dict[str, str] = {}
        self.last_cancelled = []

    async def translate_all(self, segments: Iterable[Segment],
                            on_progress: Optional[ProgressCallback] = None,
                            cancel_event: Optional[asyncio.Event] = None) -> Dict[str, TranslationResult]:
        """
        Translate every segment that is not completed.

        Returns results keyed by segment id; failed or cancelled segments are
        left out of the map. on_progress(done, total) fires once per segment
        whatever its outcome, and once with (0, 0) when there is nothing to do.
        """
        work = [s for s in segments if s.translation_status != COMPLETED]
        total = len(work)
        results: Dict[str, TranslationResult] = {}
        failures: Dict[str, str] = {}
        cancelled = []
        self.last_failures = failures
        self.last_cancelled = cancelled

        if not work:
            logger.info("Bulk translation: nothing to translate")
            _notify(on_progress, 0, 0)
            return results

        cfg = self.translator.config
        self.job_log.clear()
        self.job_log.init_job(total, cfg.source_lang, cfg.target_lang, self.max_concurrency, cfg.domain)

        semaphore = asyncio.Semaphore(self.max_concurrency)
        progress_lock = asyncio.Lock()
        done = 0

        async def run(segment: Segment):
            nonlocal done
            async with semaphore:
                if cancel_event is not None and cancel_event.is_set():
                    cancelled.append(segment.id)
                    self.job_log.log_segment_skipped(segment.id, "cancelled")
                else:
                    self.job_log.log_segment_content(segment.id, segment.content)
                    try:
                        result = await self.translator.translate(segment)
                    except Exception as e:
                        failures[segment.id] = str(e)
                        self.job_log.log_segment_failure(segment.id, str(e))
                    else:
                        results[segment.id] = result
                        self.job_log.log_segment_result(
                            segment.id, result.tm_stats.leverage_percentage, len(result.review_flags)
                        )

            async with progress_lock:
                done += 1
                self.job_log.log_progress(done, total)
                _notify(on_progress, done, total)

        await asyncio.gather(*(run(segment) for segment in work))

        self.job_log.log_summary()
        if failures:
            logger.warning(f"Bulk translation finished with {len(failures)} failure(s): {sorted(failures)}")
        return results


def _notify(on_progress: Optional[ProgressCallback], done: int, total: int):
    """Call the progress callback; its errors never abort the batch"""
    if on_progress is None:
        return
    try:
        on_progress(done, total)
    except Exception as e:
        logger.error(f"Progress callback failed at {done}/{total}: {e}", exc_info=True)
