"""
Translation Engine
Owns the segment store of one document and wires TM lookup, translation,
analysis, analytics and auto-save together. Every mutation refreshes the
analytics and schedules a save explicitly.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Union

from tm_leverage.exceptions import InvalidTransition, TMUnavailable
from tm_leverage.models.entities import (
    AnalysisResult, DocumentRecord, DraftTranslation, LeverageAnalytics,
    Segment, TMMatch, TranslationConfig, TranslationResult, COMPLETED, FUZZY,
)
from tm_leverage.services import analytics
from tm_leverage.services.ai_translator import AnalysisBackend, TranslationBackend
from tm_leverage.services.analysis_cache import AnalysisCache
from tm_leverage.services.bulk import BulkTranslator
from tm_leverage.services.orchestrator import SegmentTranslator
from tm_leverage.services.persistence import DocumentStore, PersistenceController
from tm_leverage.services.segment_store import SegmentStore, parse_content_into_segments
from tm_leverage.services.tm_client import TMBackend
from tm_leverage.services.tm_matcher import best_match
from tm_leverage.utils.logger import TransactionLogger

logger = logging.getLogger(__name__)


class TranslationEngine:
    """
    Facade over one document's translation workflow

    Args:
        tm_backend: Translation memory to search (None disables TM leverage)
        ai_backend: Produces translations for segments the TM can't cover
        analysis_backend: Quality analysis; defaults to ai_backend when it
            also implements analyze()
        document_store: Where auto-save writes the document record
        translation_config: Languages, domain and leverage settings
    """

    def __init__(self,
                 tm_backend: Optional[TMBackend],
                 ai_backend: TranslationBackend,
                 analysis_backend: Optional[AnalysisBackend] = None,
                 document_store: Optional[DocumentStore] = None,
                 translation_config: Optional[TranslationConfig] = None,
                 transaction_logger: Optional[TransactionLogger] = None):
        self.config = translation_config or TranslationConfig()
        self.tm = tm_backend
        self.store = SegmentStore()
        self.translator = SegmentTranslator(tm_backend, ai_backend, self.config)
        self.bulk = BulkTranslator(self.translator, self.config.max_concurrency, transaction_logger)

        if analysis_backend is None and isinstance(ai_backend, AnalysisBackend):
            analysis_backend = ai_backend
        self.analysis_cache = AnalysisCache(analysis_backend) if analysis_backend else None

        self.persistence = (
            PersistenceController(document_store, self.config.debounce_seconds)
            if document_store is not None else None
        )
        self.draft: Optional[DraftTranslation] = None
        self.leverage_analytics = LeverageAnalytics()
        self.phase_completed = False
        self.completed_at: Optional[str] = None

    # ===== STATE =====

    @property
    def segments(self) -> List[Segment]:
        return self.store.segments

    @property
    def progress(self) -> float:
        return self.store.progress

    @property
    def job_log(self) -> TransactionLogger:
        return self.bulk.job_log

    def get_segment(self, segment_id: str) -> Segment:
        return self.store.get(segment_id)

    def _ensure_phase_open(self, segment_id: str, action: str):
        if self.phase_completed:
            raise InvalidTransition(segment_id, action, "translation phase is completed; reopen it first")

    def _changed(self, keep_draft: bool = False):
        """Refresh derived state after a mutation and schedule a save"""
        if not keep_draft:
            self.draft = None
        self.leverage_analytics = self.get_analytics()
        if self.persistence is not None:
            self.persistence.schedule(self.snapshot())

    # ===== LOADING =====

    def load_source(self, text: str) -> List[Segment]:
        """Split source text into segments, replacing the whole current set"""
        self.store.replace_all(parse_content_into_segments(text))
        self.phase_completed = False
        self.completed_at = None
        if self.analysis_cache is not None:
            self.analysis_cache.reset()
        self._changed()
        logger.info(f"Source loaded: {len(self.store)} segments, {self.store.total_words} words")
        return self.store.segments

    def restore(self, record: Union[DocumentRecord, dict]) -> List[Segment]:
        """Resume from a persisted record without writing it back"""
        if isinstance(record, dict):
            record = DocumentRecord.from_dict(record)
        self.store.replace_all(record.segments)
        self.phase_completed = False
        self.completed_at = None
        if self.analysis_cache is not None:
            self.analysis_cache.reset()

        self.draft = None
        if record.draft_translation and record.draft_metadata:
            self.draft = DraftTranslation(record.draft_translation, record.draft_metadata)
        self.leverage_analytics = self.get_analytics()
        if self.persistence is not None:
            current = self.snapshot()
            current.last_updated = record.last_updated
            self.persistence.mark_written(current)
        logger.info(f"Document restored: {len(self.store)} segments")
        return self.store.segments

    def load_saved(self) -> Optional[List[Segment]]:
        """Restore from the document store, if it holds a record"""
        if self.persistence is None:
            return None
        record = self.persistence.load()
        if record is None:
            return None
        return self.restore(record)

    # ===== TM =====

    async def search_tm(self, segment_id: str) -> Optional[TMMatch]:
        """
        Look up the segment in the TM and store the best whole-segment match
        as a suggestion. TMUnavailable propagates to the caller.
        """
        seg = self.store.get(segment_id)
        self._ensure_phase_open(segment_id, "search TM")
        if self.tm is None:
            return None
        matches = await self.tm.find_matches(seg.content, seg.type)
        best = best_match(matches)
        if best is None:
            logger.info(f"[{segment_id}] No TM match")
            return None
        self.store.apply_tm_search(segment_id, best.similarity, best.target_text)
        self._changed()
        return best

    def use_tm_suggestion(self, segment_id: str) -> Segment:
        self._ensure_phase_open(segment_id, "use TM suggestion")
        seg = self.store.use_tm_suggestion(segment_id)
        self._changed()
        return seg

    # ===== TRANSLATION =====

    async def translate_segment(self, segment_id: str) -> TranslationResult:
        """Translate one segment; failures propagate and leave it untouched"""
        seg = self.store.get(segment_id)
        self._ensure_phase_open(segment_id, "translate")
        if seg.translation_status == COMPLETED:
            raise InvalidTransition(segment_id, "translate", "segment is completed; reopen it first")
        result = await self.translator.translate(seg)
        self.store.apply_translation(segment_id, result)
        self._changed()
        return result

    async def translate_all(self, ids: Optional[Iterable[str]] = None,
                            on_progress: Optional[Callable[[int, int], None]] = None,
                            cancel_event: Optional[asyncio.Event] = None) -> Dict[str, TranslationResult]:
        """
        Translate every non-completed segment (or the given ones).
        Failed segments are listed in bulk.last_failures and keep their state.
        """
        self._ensure_phase_open("document", "translate all")
        targets = self.store.segments if ids is None else [self.store.get(i) for i in ids]
        results = await self.bulk.translate_all(targets, on_progress, cancel_event)

        applied: Dict[str, TranslationResult] = {}
        for seg in targets:
            result = results.get(seg.id)
            if result is None:
                continue
            try:
                self.store.apply_translation(seg.id, result)
            except InvalidTransition as e:
                # completed by the caller while the job was running
                logger.warning(f"Bulk result discarded: {e}")
                continue
            applied[seg.id] = result

        if applied:
            self._changed()
        return applied

    # ===== REVIEW =====

    async def mark_complete(self, segment_id: str) -> Segment:
        """Complete the segment and feed the approved pair back into the TM"""
        self._ensure_phase_open(segment_id, "mark complete")
        seg = self.store.mark_complete(segment_id)
        self._changed()
        if self.tm is not None:
            try:
                await self.tm.add_entry(seg.content, seg.translated_text, seg.type,
                                        {'domain': self.config.domain, 'segment_id': seg.id})
            except TMUnavailable as e:
                logger.warning(f"[{segment_id}] Could not add translation to TM: {e}")
        return seg

    async def approve(self, segment_id: str) -> Segment:
        """Accept the fuzzy matches and record the approval on their TM entries"""
        self._ensure_phase_open(segment_id, "approve")
        seg = self.store.approve(segment_id)
        self._changed()
        if self.tm is None:
            return seg

        sources: List[str] = []
        for word in seg.word_level_breakdown:
            if word.type == FUZZY and word.tm_source_text and word.tm_source_text not in sources:
                sources.append(word.tm_source_text)
        for source_text in sources:
            try:
                await self.tm.approve_entry(source_text, {'domain': self.config.domain, 'segment_id': seg.id})
            except TMUnavailable as e:
                logger.warning(f"[{segment_id}] Could not record approval in TM: {e}")
        return seg

    def reject(self, segment_id: str) -> Segment:
        self._ensure_phase_open(segment_id, "reject")
        seg = self.store.reject(segment_id)
        self._changed()
        return seg

    def edit_translation(self, segment_id: str, text: str) -> Segment:
        self._ensure_phase_open(segment_id, "edit translation")
        seg = self.store.edit_translation(segment_id, text)
        self._changed()
        return seg

    def reopen(self, segment_id: str) -> Segment:
        self._ensure_phase_open(segment_id, "reopen")
        seg = self.store.reopen(segment_id)
        self._changed()
        return seg

    # ===== ANALYSIS =====

    async def load_analysis(self, segment_id: str) -> Optional[AnalysisResult]:
        """Cached quality analysis of the current translation, None if unavailable"""
        seg = self.store.get(segment_id)
        if self.analysis_cache is None or not seg.translated_text:
            return None
        translated = seg.translated_text
        result = await self.analysis_cache.get_or_compute(seg.id, seg.content, translated)
        if result is None:
            return None
        # translation may have been edited while the analysis was running
        if seg.translated_text == translated:
            self.store.apply_analysis(segment_id, result)
            self._changed(keep_draft=True)
        return result

    # ===== DOCUMENT =====

    def get_analytics(self, segments: Optional[List[Segment]] = None) -> LeverageAnalytics:
        segs = self.store.segments if segments is None else segments
        return analytics.aggregate(segs, self.config.fuzzy_weight, self.config.rate_per_word)

    def generate_draft(self, segments: Optional[List[Segment]] = None) -> DraftTranslation:
        """Reassemble completed segments; raises IncompleteSegments otherwise"""
        draft = analytics.generate_draft(self.store.segments if segments is None else segments)
        if segments is None:
            self.draft = draft
            self._changed(keep_draft=True)
        return draft

    # ===== PHASE =====

    def _phase_payload(self, completed: bool) -> Dict[str, Any]:
        return {
            'segments': [s.to_dict() for s in self.store.segments],
            'tmAnalytics': self.leverage_analytics.to_dict(),
            'completed': completed,
        }

    def complete_phase(self) -> Dict[str, Any]:
        """
        Close the translation phase once every segment is completed.

        The current draft is generated if needed and included in the
        returned payload. Segment changes are refused until reopen_phase().

        Raises:
            IncompleteSegments: when any segment is not completed
        """
        if self.phase_completed:
            raise InvalidTransition("document", "complete phase", "phase is already completed")
        if not len(self.store):
            raise InvalidTransition("document", "complete phase", "no segments loaded")

        draft = self.draft or self.generate_draft()
        self.phase_completed = True
        self.completed_at = datetime.now(timezone.utc).isoformat()
        logger.info(f"Translation phase completed: {len(self.store)} segments")

        payload = self._phase_payload(True)
        payload.update(
            draftTranslation=draft.draft_text,
            draftMetadata=draft.metadata.to_dict(),
            analyzedAt=self.completed_at,
        )
        return payload

    def reopen_phase(self) -> Dict[str, Any]:
        """Allow segment edits again"""
        if not self.phase_completed:
            raise InvalidTransition("document", "reopen phase", "phase is not completed")
        self.phase_completed = False
        self.completed_at = None
        logger.info("Translation phase reopened")
        return self._phase_payload(False)

    def snapshot(self) -> DocumentRecord:
        return DocumentRecord(
            segments=self.store.segments,
            leverage_analytics=self.leverage_analytics,
            draft_translation=self.draft.draft_text if self.draft else "",
            draft_metadata=self.draft.metadata if self.draft else None,
            last_updated=self.persistence.last_updated if self.persistence else None,
        )

    def flush(self) -> bool:
        """Write any pending auto-save immediately"""
        if self.persistence is None:
            return False
        return self.persistence.flush()

    def close(self):
        """Flush pending changes and stop the auto-save timer"""
        if self.persistence is not None:
            self.persistence.flush()
            self.persistence.close()
