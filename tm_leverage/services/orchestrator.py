"""
Single-segment translation orchestrator
TM lookup → word classification → AI generation with TM spans as context
"""

import logging
from typing import List, Optional

from tm_leverage.exceptions import TMUnavailable, TranslationUnavailable
from tm_leverage.models.entities import (
    Segment, TMMatch, TranslationConfig, TranslationContext, TranslationResult,
)
from tm_leverage.services.ai_translator import TranslationBackend
from tm_leverage.services.tm_client import TMBackend
from tm_leverage.services import tm_matcher

logger = logging.getLogger(__name__)

TM_UNAVAILABLE_FLAG = "Translation memory unavailable; all words treated as new"


class SegmentTranslator:
    """
    Produces one TranslationResult per segment.

    The segment itself is never modified here; callers apply the result
    through the segment store so a failed attempt leaves it untouched.
    """

    def __init__(self, tm_backend: Optional[TMBackend], ai_backend: TranslationBackend,
                 translation_config: Optional[TranslationConfig] = None):
        self.tm = tm_backend
        self.ai = ai_backend
        self.config = translation_config or TranslationConfig()

    async def _lookup(self, segment: Segment, review_flags: List[str]) -> List[TMMatch]:
        if not self.config.use_tm_leverage or self.tm is None:
            return []
        try:
            matches = await self.tm.find_matches(segment.content, segment.type)
        except TMUnavailable as e:
            logger.warning(f"[{segment.id}] TM lookup failed, continuing without TM: {e}")
            review_flags.append(TM_UNAVAILABLE_FLAG)
            return []
        logger.debug(f"[{segment.id}] {len(matches)} TM candidates")
        return list(matches)

    async def translate(self, segment: Segment) -> TranslationResult:
        review_flags: List[str] = []
        candidates = await self._lookup(segment, review_flags)

        breakdown = tm_matcher.build_word_breakdown(segment.content, candidates)
        stats = tm_matcher.compute_leverage(breakdown, segment.word_count, self.config.fuzzy_weight)
        spans = tm_matcher.group_spans(breakdown, candidates)
        review_flags.extend(tm_matcher.fuzzy_review_flags(spans))
        best = tm_matcher.best_match(candidates)

        full_match = tm_matcher.full_exact_match(segment.content, candidates)
        if full_match is not None:
            logger.info(f"[{segment.id}] BYPASS ({full_match.similarity}% TM match)")
            translated_text = full_match.target_text
            ai_scores = None
            full_analysis = None
        else:
            context = TranslationContext(
                tm_spans=spans,
                target_language=self.config.target_lang,
                source_language=self.config.source_lang,
                domain=self.config.domain,
                segment_type=segment.type,
            )
            try:
                generated = await self.ai.generate_translation(segment.content, context)
            except TranslationUnavailable as e:
                raise TranslationUnavailable(str(e), segment.id) from e
            except Exception as e:
                logger.error(f"[{segment.id}] AI backend error: {e}", exc_info=True)
                raise TranslationUnavailable(f"AI backend error: {e}", segment.id) from e

            translated_text = (generated.translated_text or "").strip()
            if not translated_text:
                raise TranslationUnavailable("AI backend returned an empty translation", segment.id)
            ai_scores = generated.quality_scores
            full_analysis = generated.raw_response or None

        logger.info(
            f"[{segment.id}] {stats.exact_match_words} exact, {stats.fuzzy_match_words} fuzzy, "
            f"{stats.new_words} new ({stats.leverage_percentage:.1f}% leverage)"
        )
        return TranslationResult(
            segment_id=segment.id,
            translated_text=translated_text,
            word_level_breakdown=breakdown,
            tm_stats=stats,
            review_flags=review_flags,
            ai_scores=ai_scores,
            tm_match_score=best.similarity if best else None,
            tm_suggestion=best.target_text if best else None,
            full_analysis=full_analysis,
        )
