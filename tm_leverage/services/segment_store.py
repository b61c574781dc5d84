"""
Segment Store
Ordered segments of one document and the transitions allowed on them.

States: pending → in_progress → completed, with needs_review orthogonal.
Every illegal transition raises InvalidTransition and leaves the segment
untouched.
"""

import logging
from typing import Dict, Iterable, List, Optional

from tm_leverage import config
from tm_leverage.exceptions import InvalidTransition, SegmentNotFound
from tm_leverage.models.entities import (
    Segment, TranslationResult, AnalysisResult, AIScores,
    PENDING, IN_PROGRESS, COMPLETED,
)

logger = logging.getLogger(__name__)


def parse_content_into_segments(content: str) -> List[Segment]:
    """
    Split source text into body segments, one per substantial line.

    Lines of MIN_SEGMENT_CHARS characters or fewer are not segments of their
    own; ids keep the original line index. When no line qualifies the whole
    content becomes a single segment.
    """
    if not content or not content.strip():
        return []

    lines = [line for line in content.split('\n') if line.strip()]
    segments = []
    for idx, line in enumerate(lines):
        if len(line) > config.MIN_SEGMENT_CHARS:
            segments.append(Segment(
                id=f"seg-{idx}",
                index=len(segments),
                title=f"Section {idx + 1}",
                content=line.strip(),
            ))

    if segments:
        return segments
    return [Segment(id="seg-0", index=0, title="Full Content", content=content.strip())]


class SegmentStore:
    """Owns the ordered segment list of one document"""

    def __init__(self, segments: Optional[Iterable[Segment]] = None):
        self._segments: List[Segment] = []
        self._by_id: Dict[str, Segment] = {}
        self.replace_all(segments or [])

    @classmethod
    def from_source(cls, content: str) -> 'SegmentStore':
        return cls(parse_content_into_segments(content))

    @classmethod
    def from_segments(cls, segments: Iterable[Segment]) -> 'SegmentStore':
        return cls(segments)

    # ===== COLLECTION =====

    def replace_all(self, segments: Iterable[Segment]):
        """Swap in a whole new segment set (re-import)"""
        new_segments = list(segments)
        by_id = {}
        for seg in new_segments:
            if seg.id in by_id:
                raise ValueError(f"Duplicate segment id: {seg.id}")
            by_id[seg.id] = seg
        self._segments = new_segments
        self._by_id = by_id
        logger.info(f"Segment store loaded: {len(new_segments)} segments")

    def get(self, segment_id: str) -> Segment:
        try:
            return self._by_id[segment_id]
        except KeyError:
            raise SegmentNotFound(segment_id) from None

    def __contains__(self, segment_id: str) -> bool:
        return segment_id in self._by_id

    def __iter__(self):
        return iter(self._segments)

    def __len__(self):
        return len(self._segments)

    @property
    def segments(self) -> List[Segment]:
        """Segments in document order (a copy of the list, same objects)"""
        return list(self._segments)

    def first_incomplete(self) -> Optional[Segment]:
        return next((s for s in self._segments if s.translation_status != COMPLETED), None)

    @property
    def total_words(self) -> int:
        return sum(s.word_count for s in self._segments)

    @property
    def translated_words(self) -> int:
        return sum(s.word_count for s in self._segments if s.translation_status == COMPLETED)

    @property
    def progress(self) -> float:
        """Percent of words in completed segments"""
        total = self.total_words
        return (self.translated_words / total * 100) if total > 0 else 0.0

    @property
    def all_completed(self) -> bool:
        return all(s.translation_status == COMPLETED for s in self._segments)

    # ===== TRANSITIONS =====

    def apply_tm_search(self, segment_id: str, score: int, suggestion: str) -> Segment:
        """Record the best raw TM match; pending segments move to in_progress"""
        seg = self.get(segment_id)
        seg.tm_match_score = score
        seg.tm_suggestion = suggestion
        if seg.translation_status == PENDING:
            seg.translation_status = IN_PROGRESS
        logger.debug(f"[{segment_id}] TM suggestion stored ({score}%)")
        return seg

    def apply_translation(self, segment_id: str, result: TranslationResult) -> Segment:
        """Write a translation result; never completes the segment"""
        seg = self.get(segment_id)
        if seg.translation_status == COMPLETED:
            raise InvalidTransition(segment_id, "apply translation", "segment is completed; reopen it first")
        if not result.translated_text:
            raise InvalidTransition(segment_id, "apply translation", "result has no translated text")

        seg.translated_text = result.translated_text
        seg.word_level_breakdown = list(result.word_level_breakdown)
        seg.tm_leverage_data = result.tm_stats
        seg.ai_scores = result.ai_scores
        seg.review_flags = list(result.review_flags)
        seg.needs_review = result.needs_review
        seg.awaiting_edit = False
        seg.full_analysis = result.full_analysis
        if result.tm_match_score is not None:
            seg.tm_match_score = result.tm_match_score
            seg.tm_suggestion = result.tm_suggestion
        seg.translation_status = IN_PROGRESS
        return seg

    def use_tm_suggestion(self, segment_id: str) -> Segment:
        """Copy the stored TM suggestion into the translation"""
        seg = self.get(segment_id)
        if not seg.tm_suggestion:
            raise InvalidTransition(segment_id, "use TM suggestion", "no TM suggestion stored")
        if seg.translation_status == COMPLETED:
            raise InvalidTransition(segment_id, "use TM suggestion", "segment is completed; reopen it first")
        seg.translated_text = seg.tm_suggestion
        seg.translation_status = IN_PROGRESS
        return seg

    def edit_translation(self, segment_id: str, text: str) -> Segment:
        """
        Manual correction. Reopens a completed segment; clears the review
        flag when the edit answers a reject.
        """
        seg = self.get(segment_id)
        if not text or not text.strip():
            raise InvalidTransition(segment_id, "edit translation", "replacement text is empty")
        if seg.awaiting_edit and text.strip() == (seg.translated_text or "").strip():
            raise InvalidTransition(segment_id, "edit translation", "rejected translation needs a replacement")
        seg.translated_text = text
        seg.translation_status = IN_PROGRESS
        if seg.awaiting_edit:
            seg.awaiting_edit = False
            seg.needs_review = False
            seg.review_flags = []
        return seg

    def mark_complete(self, segment_id: str) -> Segment:
        seg = self.get(segment_id)
        if seg.translation_status == COMPLETED:
            raise InvalidTransition(segment_id, "mark complete", "segment is already completed")
        if not seg.translated_text:
            raise InvalidTransition(segment_id, "mark complete", "translation is empty")
        if seg.needs_review:
            raise InvalidTransition(segment_id, "mark complete", "fuzzy matches await approve or reject")
        seg.translation_status = COMPLETED
        return seg

    def reopen(self, segment_id: str) -> Segment:
        seg = self.get(segment_id)
        if seg.translation_status != COMPLETED:
            raise InvalidTransition(segment_id, "reopen", f"segment is {seg.translation_status}")
        seg.translation_status = IN_PROGRESS
        return seg

    def approve(self, segment_id: str) -> Segment:
        """Accept fuzzy matches as they are"""
        seg = self.get(segment_id)
        if not seg.needs_review:
            raise InvalidTransition(segment_id, "approve", "segment is not flagged for review")
        seg.needs_review = False
        seg.review_flags = []
        seg.awaiting_edit = False
        return seg

    def reject(self, segment_id: str) -> Segment:
        """Force edit mode; the flag clears once a replacement edit is saved"""
        seg = self.get(segment_id)
        if not seg.needs_review:
            raise InvalidTransition(segment_id, "reject", "segment is not flagged for review")
        seg.awaiting_edit = True
        if seg.translation_status == COMPLETED:
            seg.translation_status = IN_PROGRESS
        return seg

    def apply_analysis(self, segment_id: str, analysis: AnalysisResult) -> Segment:
        """Fold an on-demand quality analysis into the segment"""
        seg = self.get(segment_id)
        seg.ai_scores = AIScores(
            accuracy=_unit(analysis.accuracy_score),
            brand=_unit(analysis.quality_score),
            cultural=_unit(analysis.cultural_score),
            reasoning=seg.ai_scores.reasoning if seg.ai_scores else [],
        )
        if analysis.word_breakdown and len(analysis.word_breakdown) == seg.word_count:
            seg.word_level_breakdown = list(analysis.word_breakdown)
        if analysis.tm_leverage and analysis.tm_leverage.total_words == seg.word_count:
            seg.tm_leverage_data = analysis.tm_leverage
        return seg


def _unit(value: float) -> float:
    return max(0.0, min(1.0, value))
