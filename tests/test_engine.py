"""
Integration tests for the translation engine facade
"""

import asyncio

import pytest

from tm_leverage.exceptions import (
    IncompleteSegments, InvalidTransition, SegmentNotFound, TMUnavailable, TranslationUnavailable,
)
from tm_leverage.models.entities import TMMatch, COMPLETED, IN_PROGRESS, PENDING
from tm_leverage.services.engine import TranslationEngine
from tm_leverage.services.persistence import MemoryStore
from tm_leverage.services.tm_client import InMemoryTM

from conftest import FakeAnalyzer, FakeTM, FakeTranslator

SECOND_LINE = "Please review the enclosed prescribing information carefully."


@pytest.fixture
def document_store():
    return MemoryStore()


@pytest.fixture
def engine(fake_tm, fake_ai, fake_analyzer, document_store, translation_config, sample_source):
    engine = TranslationEngine(
        fake_tm, fake_ai,
        analysis_backend=fake_analyzer,
        document_store=document_store,
        translation_config=translation_config,
    )
    engine.load_source(sample_source)
    return engine


async def _complete_all(engine):
    await engine.translate_all()
    for seg in engine.segments:
        if seg.needs_review:
            await engine.approve(seg.id)
        await engine.mark_complete(seg.id)


class TestTranslationEngine:
    @pytest.mark.asyncio
    async def test_full_workflow_to_draft(self, engine, fake_tm, document_store):
        results = await engine.translate_all()
        assert len(results) == 3
        assert all(s.translation_status == IN_PROGRESS for s in engine.segments)

        with pytest.raises(IncompleteSegments):
            engine.generate_draft()

        for seg in engine.segments:
            await engine.mark_complete(seg.id)
        assert engine.progress == 100.0
        assert len(fake_tm.added) == 3

        draft = engine.generate_draft()
        assert draft.metadata.total_words == sum(s.word_count for s in engine.segments)
        assert engine.snapshot().draft_translation == draft.draft_text

        assert engine.flush() is True
        saved = document_store.load()
        assert saved['draftTranslation'] == draft.draft_text
        assert saved['leverageAnalytics']['totalSegments'] == 3
        assert saved['lastUpdated']

    @pytest.mark.asyncio
    async def test_draft_invalidated_by_later_edit(self, engine):
        await _complete_all(engine)
        engine.generate_draft()
        assert engine.draft is not None

        engine.edit_translation("seg-1", "Nuevo texto")
        assert engine.draft is None
        assert engine.get_segment("seg-1").translation_status == IN_PROGRESS

    @pytest.mark.asyncio
    async def test_translate_all_is_idempotent_when_completed(self, engine, fake_ai):
        await _complete_all(engine)
        calls = len(fake_ai.calls)
        progress = []

        results = await engine.translate_all(on_progress=lambda d, t: progress.append((d, t)))

        assert results == {}
        assert progress == [(0, 0)]
        assert len(fake_ai.calls) == calls

    @pytest.mark.asyncio
    async def test_failed_translation_leaves_segment_untouched(self, fake_tm, translation_config, sample_source):
        ai = FakeTranslator(fail_on=[SECOND_LINE])
        engine = TranslationEngine(fake_tm, ai, translation_config=translation_config)
        engine.load_source(sample_source)

        with pytest.raises(TranslationUnavailable):
            await engine.translate_segment("seg-2")
        seg = engine.get_segment("seg-2")
        assert seg.translation_status == PENDING
        assert seg.translated_text == ""

        results = await engine.translate_all()
        assert sorted(results) == ["seg-1", "seg-3"]
        assert list(engine.bulk.last_failures) == ["seg-2"]

    @pytest.mark.asyncio
    async def test_completed_segment_must_be_reopened(self, engine):
        await engine.translate_segment("seg-1")
        await engine.mark_complete("seg-1")

        with pytest.raises(InvalidTransition):
            await engine.translate_segment("seg-1")

        engine.reopen("seg-1")
        result = await engine.translate_segment("seg-1")
        assert result.translated_text

    @pytest.mark.asyncio
    async def test_fuzzy_review_flow(self, fake_ai, translation_config, sample_source):
        tm = InMemoryTM([{
            'source': "Please review the enclosed prescribing information",
            'target': "Revise la información de prescripción adjunta",
        }])
        engine = TranslationEngine(tm, fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)

        await engine.translate_segment("seg-2")
        seg = engine.get_segment("seg-2")
        assert seg.needs_review
        assert seg.tm_match_score is not None
        with pytest.raises(InvalidTransition):
            await engine.mark_complete("seg-2")

        engine.reject("seg-2")
        engine.edit_translation("seg-2", "Revise detenidamente la información de prescripción adjunta.")
        await engine.mark_complete("seg-2")
        assert seg.translation_status == COMPLETED

        # completed pair fed back into the TM
        assert any(m.similarity == 100 for m in tm.lookup(SECOND_LINE))

    @pytest.mark.asyncio
    async def test_tm_add_failure_only_logged(self, fake_ai, translation_config, sample_source):
        engine = TranslationEngine(FakeTM(fail_on_add=True), fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)
        await engine.translate_segment("seg-1")

        seg = await engine.mark_complete("seg-1")
        assert seg.translation_status == COMPLETED

    @pytest.mark.asyncio
    async def test_search_tm_and_use_suggestion(self, fake_ai, translation_config, sample_source):
        tm = FakeTM({SECOND_LINE: [TMMatch(SECOND_LINE, "Revise la información adjunta.", 100)]})
        engine = TranslationEngine(tm, fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)

        assert await engine.search_tm("seg-1") is None
        best = await engine.search_tm("seg-2")
        assert best.similarity == 100

        seg = engine.use_tm_suggestion("seg-2")
        assert seg.translated_text == "Revise la información adjunta."
        assert seg.translation_status == IN_PROGRESS
        assert engine.get_analytics().exact_matches == 1

    @pytest.mark.asyncio
    async def test_search_tm_propagates_tm_error(self, fake_ai, translation_config, sample_source):
        engine = TranslationEngine(FakeTM(fail=True), fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)
        with pytest.raises(TMUnavailable):
            await engine.search_tm("seg-1")

    @pytest.mark.asyncio
    async def test_load_analysis_cached_and_applied(self, engine, fake_analyzer):
        assert await engine.load_analysis("seg-1") is None

        await engine.translate_segment("seg-1")
        first = await engine.load_analysis("seg-1")
        second = await engine.load_analysis("seg-1")

        assert first is second
        assert len(fake_analyzer.calls) == 1
        assert engine.get_segment("seg-1").ai_scores.cultural == 0.9
        assert engine.leverage_analytics.cultural_adaptations == 1

    @pytest.mark.asyncio
    async def test_analysis_failure_returns_none(self, fake_tm, fake_ai, translation_config, sample_source):
        engine = TranslationEngine(fake_tm, fake_ai, analysis_backend=FakeAnalyzer(fail=True),
                                   translation_config=translation_config)
        engine.load_source(sample_source)
        await engine.translate_segment("seg-1")
        assert await engine.load_analysis("seg-1") is None

    @pytest.mark.asyncio
    async def test_autosave_debounced(self, engine, document_store):
        await engine.translate_segment("seg-1")
        engine.edit_translation("seg-1", "Uno")
        engine.edit_translation("seg-1", "Dos")
        await asyncio.sleep(0.1)

        assert len(document_store.saved) == 1
        assert document_store.saved[0]['segments'][0]['translatedText'] == "Dos"

    @pytest.mark.asyncio
    async def test_restore_from_store(self, engine, document_store, fake_tm, fake_ai, translation_config):
        await engine.translate_segment("seg-1")
        await engine.mark_complete("seg-1")
        engine.flush()

        restored = TranslationEngine(fake_tm, fake_ai, document_store=document_store,
                                     translation_config=translation_config)
        segments = restored.load_saved()

        assert [s.id for s in segments] == ["seg-1", "seg-2", "seg-3"]
        assert restored.get_segment("seg-1").translation_status == COMPLETED
        assert restored.get_segment("seg-1").tm_leverage_data.total_words == 8
        assert restored.flush() is False

    @pytest.mark.asyncio
    async def test_restore_drops_save_pending_for_previous_document(
            self, engine, document_store, fake_tm, fake_ai, translation_config):
        await engine.translate_segment("seg-1")
        engine.edit_translation("seg-1", "Progreso guardado")
        engine.flush()

        other = TranslationEngine(fake_tm, fake_ai, document_store=document_store,
                                  translation_config=translation_config)
        other.load_source("A completely different document line here.")
        other.load_saved()
        await asyncio.sleep(0.1)

        assert len(document_store.saved) == 1
        assert document_store.load()['segments'][0]['translatedText'] == "Progreso guardado"
        assert other.get_segment("seg-1").translated_text == "Progreso guardado"

    @pytest.mark.asyncio
    async def test_approve_records_fuzzy_sources_in_tm(self, fake_ai, translation_config, sample_source):
        fuzzy_source = "Please review the enclosed prescribing information"
        tm = FakeTM({SECOND_LINE: [TMMatch(fuzzy_source, "Revise la información de prescripción", 82)]})
        engine = TranslationEngine(tm, fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)

        await engine.translate_segment("seg-2")
        seg = await engine.approve("seg-2")

        assert not seg.needs_review
        assert tm.approved == [(fuzzy_source, {'domain': "Cardiology", 'segment_id': "seg-2"})]
        await engine.mark_complete("seg-2")
        assert tm.added == [(SECOND_LINE, seg.translated_text)]

    @pytest.mark.asyncio
    async def test_approve_tm_failure_only_logged(self, fake_ai, translation_config, sample_source):
        tm = FakeTM({SECOND_LINE: [TMMatch("Please review the enclosed prescribing information", "Revise", 82)]},
                    fail_on_add=True)
        engine = TranslationEngine(tm, fake_ai, translation_config=translation_config)
        engine.load_source(sample_source)
        await engine.translate_segment("seg-2")

        seg = await engine.approve("seg-2")
        assert not seg.needs_review

    @pytest.mark.asyncio
    async def test_complete_and_reopen_phase(self, engine):
        await engine.translate_all()
        with pytest.raises(IncompleteSegments):
            engine.complete_phase()
        assert not engine.phase_completed

        await _complete_all(engine)
        payload = engine.complete_phase()

        assert payload['completed'] is True
        assert payload['analyzedAt'] == engine.completed_at
        assert [s['id'] for s in payload['segments']] == ["seg-1", "seg-2", "seg-3"]
        assert payload['tmAnalytics']['totalSegments'] == 3
        assert payload['draftTranslation'] == engine.draft.draft_text
        assert payload['draftMetadata']['segmentCount'] == 3

        with pytest.raises(InvalidTransition):
            engine.edit_translation("seg-1", "Cambio")
        with pytest.raises(InvalidTransition):
            await engine.translate_all()
        with pytest.raises(InvalidTransition):
            engine.complete_phase()

        reopened = engine.reopen_phase()
        assert reopened['completed'] is False
        assert 'draftTranslation' not in reopened
        engine.edit_translation("seg-1", "Cambio")
        assert engine.get_segment("seg-1").translation_status == IN_PROGRESS
        with pytest.raises(InvalidTransition):
            engine.reopen_phase()

    @pytest.mark.asyncio
    async def test_unknown_segment(self, engine):
        with pytest.raises(SegmentNotFound):
            await engine.approve("seg-99")

    def test_reload_replaces_segments(self, engine):
        engine.load_source("A completely different document line here.")
        assert [s.id for s in engine.segments] == ["seg-0"]
        assert engine.leverage_analytics.total_segments == 1
