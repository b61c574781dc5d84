"""Services package"""
from .tm_client import TMBackend, InMemoryTM, TMServerClient, normalize_tm_response
from .prompt_builder import PromptBuilder
from .ai_translator import AITranslator, TranslationBackend, AnalysisBackend
from .segment_store import SegmentStore, parse_content_into_segments
from .orchestrator import SegmentTranslator
from .bulk import BulkTranslator
from .analysis_cache import AnalysisCache
from .persistence import DocumentStore, JsonFileStore, MemoryStore, PersistenceController
from .engine import TranslationEngine

__all__ = [
    'TMBackend',
    'InMemoryTM',
    'TMServerClient',
    'normalize_tm_response',
    'PromptBuilder',
    'AITranslator',
    'TranslationBackend',
    'AnalysisBackend',
    'SegmentStore',
    'parse_content_into_segments',
    'SegmentTranslator',
    'BulkTranslator',
    'AnalysisCache',
    'DocumentStore',
    'JsonFileStore',
    'MemoryStore',
    'PersistenceController',
    'TranslationEngine',
]
