"""Models package"""
from .entities import (
    Segment,
    TMMatch,
    WordMatch,
    TMLeverageData,
    AIScores,
    TMSpan,
    TranslationContext,
    GeneratedTranslation,
    TranslationResult,
    AnalysisResult,
    LeverageAnalytics,
    DraftMetadata,
    DraftTranslation,
    DocumentRecord,
    TranslationConfig,
)

__all__ = [
    'Segment',
    'TMMatch',
    'WordMatch',
    'TMLeverageData',
    'AIScores',
    'TMSpan',
    'TranslationContext',
    'GeneratedTranslation',
    'TranslationResult',
    'AnalysisResult',
    'LeverageAnalytics',
    'DraftMetadata',
    'DraftTranslation',
    'DocumentRecord',
    'TranslationConfig',
]
