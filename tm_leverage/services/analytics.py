"""
Leverage analytics and draft generation
Both are pure functions of the current segment list.
"""

import logging
import math
from datetime import datetime, timezone
from typing import List

from tm_leverage import config
from tm_leverage.exceptions import IncompleteSegments
from tm_leverage.models.entities import (
    Segment, LeverageAnalytics, DraftMetadata, DraftTranslation,
    EXACT, FUZZY, COMPLETED,
)
from tm_leverage.services.tm_matcher import classify_score, estimate_cost_savings

logger = logging.getLogger(__name__)


def aggregate(segments: List[Segment],
              fuzzy_weight: float = config.FUZZY_WEIGHT,
              rate_per_word: float = config.RATE_PER_WORD) -> LeverageAnalytics:
    """
    Segment-count based leverage summary

    Buckets use each segment's best raw TM score. Segments without a score
    count as no-match and as 0 in the average score.
    """
    total = len(segments)
    if total == 0:
        return LeverageAnalytics()

    exact = fuzzy = 0
    score_sum = 0.0
    savings = 0.0
    cultural = 0
    therapeutic = 0
    for seg in segments:
        score = seg.tm_match_score
        bucket = classify_score(score)
        if bucket == EXACT:
            exact += 1
        elif bucket == FUZZY:
            fuzzy += 1
        score_sum += score or 0
        savings += estimate_cost_savings(seg.word_count, score, rate_per_word)
        if seg.ai_scores and seg.ai_scores.cultural >= config.CULTURAL_ADAPTATION_THRESHOLD:
            cultural += 1
        if score is not None and score >= config.THERAPEUTIC_MATCH_THRESHOLD:
            therapeutic += 1

    return LeverageAnalytics(
        total_segments=total,
        exact_matches=exact,
        fuzzy_matches=fuzzy,
        no_matches=total - exact - fuzzy,
        avg_match_score=score_sum / total,
        total_cost_savings=savings,
        leverage_rate=100.0 * (exact + fuzzy_weight * fuzzy) / total,
        cultural_adaptations=cultural,
        therapeutic_area_matches=therapeutic,
    )


def format_draft(segments: List[Segment]) -> str:
    divider = "=" * config.DRAFT_DIVIDER_WIDTH
    blocks = [
        f"{divider}\n{seg.title.upper()}\n{divider}\n\n{seg.translated_text}\n\n"
        for seg in segments
    ]
    return "\n".join(blocks)


def generate_draft(segments: List[Segment]) -> DraftTranslation:
    """
    Reassemble the document from completed segments, in order.

    Raises:
        IncompleteSegments: when any segment is not completed with text
    """
    incomplete = [
        seg.id for seg in segments
        if seg.translation_status != COMPLETED or not seg.translated_text
    ]
    if incomplete:
        raise IncompleteSegments(incomplete)

    leverages = [seg.tm_leverage_data.leverage_percentage if seg.tm_leverage_data else 0.0
                 for seg in segments]
    # half rounds up
    average = int(math.floor(sum(leverages) / len(leverages) + 0.5)) if leverages else 0

    metadata = DraftMetadata(
        total_words=sum(seg.word_count for seg in segments),
        segment_count=len(segments),
        average_tm_leverage=average,
        generated_at=datetime.now(timezone.utc).isoformat(),
    )
    logger.info(f"Draft generated: {metadata.segment_count} segments, {metadata.total_words} words")
    return DraftTranslation(draft_text=format_draft(segments), metadata=metadata)
