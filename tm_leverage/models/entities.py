"""
Data models and entity classes for the TM leverage engine
Segments, TM matches, leverage statistics, analytics and the persisted record
"""

from dataclasses import dataclass, field
from typing import Optional, Dict, List, Any
import logging

from tm_leverage import config

logger = logging.getLogger(__name__)

# Segment translation status
PENDING = "pending"
IN_PROGRESS = "in_progress"
COMPLETED = "completed"
TRANSLATION_STATUSES = (PENDING, IN_PROGRESS, COMPLETED)

# Word classification
EXACT = "exact"
FUZZY = "fuzzy"
NEW = "new"
NONE = "none"  # segment-level: score below the fuzzy threshold
WORD_TYPES = (EXACT, FUZZY, NEW)


@dataclass
class TMMatch:
    """
    Universal Translation Memory match object
    Works with the in-memory TM, a TM server, or any other TM source
    """
    source_text: str
    target_text: str
    similarity: int  # 0-100 percentage
    match_type: str = "FUZZY"  # "EXACT", "FUZZY", "CONTEXT"

    # Optional word-aligned sub-match: source tokens this candidate covers
    matched_words: Optional[List[str]] = None

    # Optional metadata
    domain: Optional[str] = None
    last_used_at: Optional[str] = None
    metadata: Dict[str, Any] = field(default_factory=dict)

    def __post_init__(self):
        """Clean and validate match data"""
        self.source_text = self.source_text.strip() if self.source_text else ""
        self.target_text = self.target_text.strip() if self.target_text else ""

        if not isinstance(self.similarity, int) or self.similarity < 0 or self.similarity > 100:
            raise ValueError(f"Invalid similarity: {self.similarity}, must be 0-100")

        valid_types = ["EXACT", "FUZZY", "CONTEXT"]
        if self.match_type not in valid_types:
            raise ValueError(f"Invalid match_type: {self.match_type}, must be one of {valid_types}")

        if self.similarity >= config.EXACT_MATCH_THRESHOLD and self.match_type == "FUZZY":
            self.match_type = "EXACT"

    def is_valid(self) -> bool:
        """Check if match has valid source and target"""
        return bool(self.source_text and self.target_text)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'sourceText': self.source_text,
            'targetText': self.target_text,
            'matchScore': self.similarity,
            'matchType': self.match_type,
        }

    def __repr__(self):
        src = self.source_text[:40] if self.source_text else "empty"
        tgt = self.target_text[:40] if self.target_text else "empty"
        return f"TMMatch('{src}...' → '{tgt}...' [{self.match_type} {self.similarity}%])"

    def __hash__(self):
        return hash((self.source_text, self.target_text, self.similarity))

    def __eq__(self, other):
        if not isinstance(other, TMMatch):
            return False
        return (self.source_text == other.source_text and
                self.target_text == other.target_text and
                self.similarity == other.similarity)


@dataclass
class WordMatch:
    """One source token of a segment and where its translation came from"""
    word: str
    type: str = NEW
    match_score: Optional[int] = None
    tm_source_text: Optional[str] = None

    def __post_init__(self):
        if self.type not in WORD_TYPES:
            raise ValueError(f"Invalid word type: {self.type}, must be one of {WORD_TYPES}")

    def to_dict(self) -> Dict[str, Any]:
        data = {'word': self.word, 'type': self.type}
        if self.match_score is not None:
            data['matchScore'] = self.match_score
        if self.tm_source_text is not None:
            data['tmSourceText'] = self.tm_source_text
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'WordMatch':
        return cls(
            word=data.get('word', ''),
            type=data.get('type', NEW),
            match_score=data.get('matchScore'),
            tm_source_text=data.get('tmSourceText'),
        )


@dataclass
class TMLeverageData:
    """Word-level leverage of a single segment"""
    exact_match_words: int = 0
    fuzzy_match_words: int = 0
    new_words: int = 0
    leverage_percentage: float = 0.0

    @property
    def total_words(self) -> int:
        return self.exact_match_words + self.fuzzy_match_words + self.new_words

    def to_dict(self) -> Dict[str, Any]:
        return {
            'exactMatchWords': self.exact_match_words,
            'fuzzyMatchWords': self.fuzzy_match_words,
            'newWords': self.new_words,
            'leveragePercentage': self.leverage_percentage,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'TMLeverageData':
        return cls(
            exact_match_words=int(data.get('exactMatchWords', data.get('exactMatches', 0)) or 0),
            fuzzy_match_words=int(data.get('fuzzyMatchWords', data.get('fuzzyMatches', 0)) or 0),
            new_words=int(data.get('newWords', 0) or 0),
            leverage_percentage=float(data.get('leveragePercentage', 0.0) or 0.0),
        )


@dataclass
class AIScores:
    """Quality sub-scores reported by the AI backend, each in [0, 1]"""
    accuracy: float = 0.0
    brand: float = 0.0
    cultural: float = 0.0
    reasoning: List[str] = field(default_factory=list)

    def __post_init__(self):
        for name in ('accuracy', 'brand', 'cultural'):
            value = getattr(self, name)
            if not 0.0 <= value <= 1.0:
                raise ValueError(f"{name} score must be 0-1, got {value}")

    def to_dict(self) -> Dict[str, Any]:
        return {
            'accuracy': self.accuracy,
            'brand': self.brand,
            'cultural': self.cultural,
            'reasoning': list(self.reasoning),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AIScores':
        # 'medical' is the accuracy key used by older records
        return cls(
            accuracy=float(data.get('accuracy', data.get('medical', 0.0)) or 0.0),
            brand=float(data.get('brand', 0.0) or 0.0),
            cultural=float(data.get('cultural', 0.0) or 0.0),
            reasoning=list(data.get('reasoning') or []),
        )


@dataclass
class Segment:
    """An independently translatable unit of the document"""
    id: str
    content: str
    index: int = 0
    title: str = ""
    type: str = config.DEFAULT_SEGMENT_TYPE
    word_count: int = -1

    translation_status: str = PENDING
    translated_text: str = ""

    # Raw TM lookup
    tm_match_score: Optional[int] = None
    tm_suggestion: Optional[str] = None

    # Leverage and review
    tm_leverage_data: Optional[TMLeverageData] = None
    word_level_breakdown: List[WordMatch] = field(default_factory=list)
    ai_scores: Optional[AIScores] = None
    needs_review: bool = False
    review_flags: List[str] = field(default_factory=list)
    awaiting_edit: bool = False
    full_analysis: Optional[str] = None

    def __post_init__(self):
        """Validate segment and derive its word count"""
        if not self.id:
            raise ValueError("Segment ID cannot be empty")
        if self.translation_status not in TRANSLATION_STATUSES:
            raise ValueError(f"Invalid translation_status: {self.translation_status}")
        if self.type not in config.SEGMENT_TYPES:
            raise ValueError(f"Invalid segment type: {self.type}, must be one of {config.SEGMENT_TYPES}")
        if self.word_count < 0:
            self.word_count = len(self.content.split()) if self.content else 0
        if not self.title:
            self.title = f"Section {self.index + 1}"

    @property
    def is_completed(self) -> bool:
        return self.translation_status == COMPLETED

    def to_dict(self) -> Dict[str, Any]:
        return {
            'id': self.id,
            'index': self.index,
            'title': self.title,
            'type': self.type,
            'content': self.content,
            'wordCount': self.word_count,
            'translationStatus': self.translation_status,
            'translatedText': self.translated_text,
            'tmMatchScore': self.tm_match_score,
            'tmSuggestion': self.tm_suggestion,
            'tmLeverageData': self.tm_leverage_data.to_dict() if self.tm_leverage_data else None,
            'wordLevelBreakdown': [w.to_dict() for w in self.word_level_breakdown],
            'aiScores': self.ai_scores.to_dict() if self.ai_scores else None,
            'needsReview': self.needs_review,
            'reviewFlags': list(self.review_flags),
            'awaitingEdit': self.awaiting_edit,
            'fullAnalysis': self.full_analysis,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], index: int = 0) -> 'Segment':
        leverage = data.get('tmLeverageData')
        scores = data.get('aiScores')
        return cls(
            id=data['id'],
            content=data.get('content', ''),
            index=data.get('index', index),
            title=data.get('title', ''),
            type=data.get('type') or config.DEFAULT_SEGMENT_TYPE,
            word_count=data['wordCount'] if data.get('wordCount') is not None else -1,
            translation_status=data.get('translationStatus', PENDING),
            translated_text=data.get('translatedText') or '',
            tm_match_score=data.get('tmMatchScore'),
            tm_suggestion=data.get('tmSuggestion'),
            tm_leverage_data=TMLeverageData.from_dict(leverage) if leverage else None,
            word_level_breakdown=[WordMatch.from_dict(w) for w in data.get('wordLevelBreakdown') or []],
            ai_scores=AIScores.from_dict(scores) if scores else None,
            needs_review=bool(data.get('needsReview', False)),
            review_flags=list(data.get('reviewFlags') or []),
            awaiting_edit=bool(data.get('awaitingEdit', False)),
            full_analysis=data.get('fullAnalysis'),
        )

    def __repr__(self):
        return f"Segment({self.id}, {self.translation_status}, {self.word_count} words)"


@dataclass
class TMSpan:
    """Contiguous run of source tokens resolved from one TM candidate"""
    text: str
    type: str
    match_score: Optional[int] = None
    tm_source_text: Optional[str] = None
    tm_target_text: Optional[str] = None


@dataclass
class TranslationContext:
    """Context handed to the AI backend together with the source text"""
    tm_spans: List[TMSpan] = field(default_factory=list)
    target_language: str = config.DEFAULT_TARGET_LANGUAGE
    source_language: str = config.DEFAULT_SOURCE_LANGUAGE
    domain: Optional[str] = None
    segment_type: str = config.DEFAULT_SEGMENT_TYPE


@dataclass
class GeneratedTranslation:
    """What the AI backend returns for one segment"""
    translated_text: str
    quality_scores: Optional[AIScores] = None
    raw_response: str = ""


@dataclass
class TranslationResult:
    """Result of translating a single segment"""
    segment_id: str
    translated_text: str
    word_level_breakdown: List[WordMatch] = field(default_factory=list)
    tm_stats: TMLeverageData = field(default_factory=TMLeverageData)
    review_flags: List[str] = field(default_factory=list)
    ai_scores: Optional[AIScores] = None
    tm_match_score: Optional[int] = None
    tm_suggestion: Optional[str] = None
    full_analysis: Optional[str] = None

    @property
    def needs_review(self) -> bool:
        return len(self.review_flags) > 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segmentId': self.segment_id,
            'translatedText': self.translated_text,
            'wordLevelBreakdown': [w.to_dict() for w in self.word_level_breakdown],
            'tmStats': self.tm_stats.to_dict(),
            'reviewFlags': list(self.review_flags),
            'aiScores': self.ai_scores.to_dict() if self.ai_scores else None,
            'needsReview': self.needs_review,
        }

    def __repr__(self):
        return (f"TranslationResult({self.segment_id}, "
                f"{self.tm_stats.leverage_percentage:.1f}% leverage, flags={len(self.review_flags)})")


@dataclass
class AnalysisResult:
    """Quality and leverage analysis of one (source, translation) pair"""
    accuracy_score: float = 0.0
    quality_score: float = 0.0
    cultural_score: float = 0.0
    word_breakdown: List[WordMatch] = field(default_factory=list)
    tm_leverage: Optional[TMLeverageData] = None
    accuracy_issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'accuracyScore': self.accuracy_score,
            'qualityScore': self.quality_score,
            'culturalScore': self.cultural_score,
            'wordBreakdown': [w.to_dict() for w in self.word_breakdown],
            'tmLeverage': self.tm_leverage.to_dict() if self.tm_leverage else None,
            'accuracyIssues': list(self.accuracy_issues),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'AnalysisResult':
        leverage = data.get('tmLeverage')
        breakdown = []
        for item in data.get('wordBreakdown') or []:
            try:
                breakdown.append(WordMatch.from_dict(item))
            except ValueError as e:
                logger.warning(f"Skipping invalid word breakdown entry: {e}")
        return cls(
            accuracy_score=float(data.get('accuracyScore', 0.0) or 0.0),
            quality_score=float(data.get('qualityScore', 0.0) or 0.0),
            cultural_score=float(data.get('culturalScore', 0.0) or 0.0),
            word_breakdown=breakdown,
            tm_leverage=TMLeverageData.from_dict(leverage) if leverage else None,
            accuracy_issues=[str(i) for i in data.get('accuracyIssues') or []],
        )


@dataclass
class LeverageAnalytics:
    """Document-level (segment-count based) leverage summary"""
    total_segments: int = 0
    exact_matches: int = 0
    fuzzy_matches: int = 0
    no_matches: int = 0
    avg_match_score: float = 0.0
    total_cost_savings: float = 0.0
    leverage_rate: float = 0.0
    cultural_adaptations: int = 0
    therapeutic_area_matches: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalSegments': self.total_segments,
            'exactMatches': self.exact_matches,
            'fuzzyMatches': self.fuzzy_matches,
            'noMatches': self.no_matches,
            'avgMatchScore': self.avg_match_score,
            'totalCostSavings': self.total_cost_savings,
            'leverageRate': self.leverage_rate,
            'culturalAdaptations': self.cultural_adaptations,
            'therapeuticAreaMatches': self.therapeutic_area_matches,
        }


@dataclass
class DraftMetadata:
    total_words: int
    segment_count: int
    average_tm_leverage: int
    generated_at: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            'totalWords': self.total_words,
            'segmentCount': self.segment_count,
            'averageTMLeverage': self.average_tm_leverage,
            'generatedAt': self.generated_at,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DraftMetadata':
        return cls(
            total_words=data.get('totalWords', 0),
            segment_count=data.get('segmentCount', 0),
            average_tm_leverage=data.get('averageTMLeverage', 0),
            generated_at=data.get('generatedAt', ''),
        )


@dataclass
class DraftTranslation:
    """Ordered reassembly of all completed segments"""
    draft_text: str
    metadata: DraftMetadata


@dataclass
class DocumentRecord:
    """Persisted state of one document"""
    segments: List[Segment] = field(default_factory=list)
    leverage_analytics: Optional[LeverageAnalytics] = None
    draft_translation: str = ""
    draft_metadata: Optional[DraftMetadata] = None
    last_updated: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            'segments': [s.to_dict() for s in self.segments],
            'leverageAnalytics': self.leverage_analytics.to_dict() if self.leverage_analytics else None,
            'draftTranslation': self.draft_translation,
            'draftMetadata': self.draft_metadata.to_dict() if self.draft_metadata else None,
            'lastUpdated': self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'DocumentRecord':
        metadata = data.get('draftMetadata')
        return cls(
            segments=[Segment.from_dict(s, i) for i, s in enumerate(data.get('segments') or [])],
            leverage_analytics=None,  # derived, recomputed from segments
            draft_translation=data.get('draftTranslation') or '',
            draft_metadata=DraftMetadata.from_dict(metadata) if metadata else None,
            last_updated=data.get('lastUpdated'),
        )


@dataclass
class TranslationConfig:
    """Configuration for a translation session"""
    # Language codes
    source_lang: str = config.DEFAULT_SOURCE_LANGUAGE
    target_lang: str = config.DEFAULT_TARGET_LANGUAGE
    domain: Optional[str] = None  # e.g. therapeutic area

    # Leverage settings
    fuzzy_weight: float = config.FUZZY_WEIGHT
    rate_per_word: float = config.RATE_PER_WORD
    use_tm_leverage: bool = True

    # Processing
    max_concurrency: int = config.MAX_CONCURRENT_TRANSLATIONS
    debounce_seconds: float = config.AUTOSAVE_DEBOUNCE_SECONDS

    # LLM settings
    provider: str = config.DEFAULT_PROVIDER
    model: str = config.DEFAULT_MODEL
    temperature: float = config.TEMPERATURE
    max_tokens: int = config.MAX_TOKENS

    def __post_init__(self):
        """Validate configuration"""
        if not 0.0 <= self.fuzzy_weight <= 1.0:
            raise ValueError(f"fuzzy_weight must be 0-1, got {self.fuzzy_weight}")
        if self.rate_per_word < 0:
            raise ValueError(f"rate_per_word must be ≥0, got {self.rate_per_word}")
        if self.max_concurrency < 1:
            raise ValueError(f"max_concurrency must be ≥1, got {self.max_concurrency}")
        if self.debounce_seconds < 0:
            raise ValueError(f"debounce_seconds must be ≥0, got {self.debounce_seconds}")
        if self.provider not in config.AI_PROVIDERS:
            raise ValueError(f"provider must be one of {config.AI_PROVIDERS}, got {self.provider}")

        known_models = config.OPENAI_MODELS if self.provider == "OpenAI" else config.ANTHROPIC_MODELS
        if self.model not in known_models:
            logger.warning(f"Model {self.model} is not a known {self.provider} model")

    @property
    def target_language_name(self) -> str:
        return config.SUPPORTED_LANGUAGES.get(self.target_lang, self.target_lang)

    @property
    def source_language_name(self) -> str:
        return config.SUPPORTED_LANGUAGES.get(self.source_lang, self.source_lang)
