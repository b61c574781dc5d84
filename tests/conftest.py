"""
Pytest Configuration and Fixtures
"""

import asyncio
from typing import Dict, List, Optional

import pytest

from tm_leverage.exceptions import AnalysisUnavailable, TMUnavailable, TranslationUnavailable
from tm_leverage.models.entities import (
    AIScores, AnalysisResult, GeneratedTranslation, TMMatch, TranslationConfig, TranslationContext,
)
from tm_leverage.services.ai_translator import AnalysisBackend, TranslationBackend
from tm_leverage.services.tm_client import TMBackend


class FakeTM(TMBackend):
    """TM returning canned candidates per source text"""

    def __init__(self, matches: Optional[Dict[str, List[TMMatch]]] = None,
                 fail: bool = False, fail_on_add: bool = False):
        self.matches = matches or {}
        self.fail = fail
        self.fail_on_add = fail_on_add
        self.lookups: List[str] = []
        self.added: List[tuple] = []
        self.approved: List[tuple] = []

    async def find_matches(self, text, segment_type=None):
        self.lookups.append(text)
        if self.fail:
            raise TMUnavailable("TM server down")
        return list(self.matches.get(text, []))

    async def add_entry(self, source_text, target_text, segment_type=None, metadata=None):
        if self.fail_on_add:
            raise TMUnavailable("TM is read-only")
        self.added.append((source_text, target_text))

    async def approve_entry(self, source_text, metadata=None):
        if self.fail_on_add:
            raise TMUnavailable("TM is read-only")
        self.approved.append((source_text, dict(metadata or {})))


class FakeTranslator(TranslationBackend):
    """Prefixes the source with the target language; tracks concurrency"""

    def __init__(self, fail_on=(), empty_on=(), delay: float = 0.0, scores: Optional[AIScores] = None):
        self.fail_on = set(fail_on)
        self.empty_on = set(empty_on)
        self.delay = delay
        self.scores = scores
        self.calls: List[str] = []
        self.contexts: List[TranslationContext] = []
        self.in_flight = 0
        self.max_in_flight = 0

    async def generate_translation(self, text, context):
        self.calls.append(text)
        self.contexts.append(context)
        self.in_flight += 1
        self.max_in_flight = max(self.max_in_flight, self.in_flight)
        try:
            if self.delay:
                await asyncio.sleep(self.delay)
            if text in self.fail_on:
                raise TranslationUnavailable("model overloaded")
            if text in self.empty_on:
                return GeneratedTranslation(translated_text="")
            return GeneratedTranslation(
                translated_text=f"[{context.target_language}] {text}",
                quality_scores=self.scores,
                raw_response="{}",
            )
        finally:
            self.in_flight -= 1


class FakeAnalyzer(AnalysisBackend):
    def __init__(self, fail: bool = False, delay: float = 0.0, cultural: float = 0.9):
        self.fail = fail
        self.delay = delay
        self.cultural = cultural
        self.calls: List[tuple] = []

    async def analyze(self, source_text, translated_text):
        self.calls.append((source_text, translated_text))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.fail:
            raise AnalysisUnavailable("analysis model unavailable")
        return AnalysisResult(
            accuracy_score=0.92,
            quality_score=0.88,
            cultural_score=self.cultural,
            accuracy_issues=["Check dosage wording"],
        )


@pytest.fixture
def translation_config():
    """Default test configuration"""
    return TranslationConfig(
        source_lang='en',
        target_lang='es',
        domain='Cardiology',
        max_concurrency=2,
        debounce_seconds=0.01,
    )


@pytest.fixture
def fake_tm():
    return FakeTM()


@pytest.fixture
def fake_ai():
    return FakeTranslator()


@pytest.fixture
def fake_analyzer():
    return FakeAnalyzer()


@pytest.fixture
def sample_source():
    """Three substantial lines and one short heading"""
    return (
        "Dear Doctor\n"
        "Our new treatment reduces cardiovascular risk in adults.\n"
        "\n"
        "Please review the enclosed prescribing information carefully.\n"
        "Contact your local representative for samples today.\n"
    )
