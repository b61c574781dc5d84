"""
TM MATCH CLASSIFIER & LEVERAGE CALCULATOR

Core functionality:
  • Text normalization and edit distance similarity (Levenshtein)
  • Fixed threshold classification: ≥95 exact, 75-94 fuzzy, <75 none
  • Word-level breakdown of a segment against TM candidates
  • Weighted leverage percentage and cost savings estimates
"""

import re
from difflib import SequenceMatcher
from typing import Dict, List, Optional, Set

from tm_leverage import config
from tm_leverage.models.entities import (
    TMMatch, WordMatch, TMLeverageData, TMSpan,
    EXACT, FUZZY, NEW, NONE,
)
from tm_leverage.utils.text_processor import clean_tags, normalize_text, normalize_token, tokenize

# ═════════════════════════════════════════════════════════════════════════════════
# TEXT NORMALIZATION
# ═════════════════════════════════════════════════════════════════════════════════

def normalize(text: str) -> str:
    """
    Normalize text for TM matching

    Steps:
    1. Remove XML tags but keep content
    2. Remove placeholders ({}, {{1}}, etc.)
    3. Normalize whitespace
    4. Convert to lowercase
    5. Keep punctuation and diacritics
    """
    text = re.sub(r'<[^>]+>', '', text)      # Remove tags
    text = re.sub(r'{.*?}', '', text)        # Remove placeholders
    text = ' '.join(text.split())             # Normalize whitespace
    return text.strip().lower()


# ═════════════════════════════════════════════════════════════════════════════════
# EDIT DISTANCE (Levenshtein)
# ═════════════════════════════════════════════════════════════════════════════════

def levenshtein_distance(s1: str, s2: str) -> int:
    """Calculate Levenshtein edit distance"""
    if len(s1) < len(s2):
        return levenshtein_distance(s2, s1)
    if len(s2) == 0:
        return len(s1)

    previous_row = range(len(s2) + 1)
    for i, c1 in enumerate(s1):
        current_row = [i + 1]
        for j, c2 in enumerate(s2):
            insertions = previous_row[j + 1] + 1
            deletions = current_row[j] + 1
            substitutions = previous_row[j] + (c1 != c2)
            current_row.append(min(insertions, deletions, substitutions))
        previous_row = current_row

    return previous_row[-1]


def edit_distance_similarity(s1: str, s2: str) -> float:
    """Convert edit distance to similarity score (0-1.0)"""
    distance = levenshtein_distance(s1, s2)
    max_len = max(len(s1), len(s2))
    if max_len == 0:
        return 1.0
    similarity = 1 - (distance / max_len)
    return max(0.0, min(1.0, similarity))


# ═════════════════════════════════════════════════════════════════════════════════
# MATCH CLASSIFICATION
# ═════════════════════════════════════════════════════════════════════════════════

def classify_score(score: Optional[float]) -> str:
    """Classify a 0-100 TM score as exact, fuzzy or none"""
    if score is None:
        return NONE
    if score >= config.EXACT_MATCH_THRESHOLD:
        return EXACT
    if score >= config.FUZZY_MATCH_THRESHOLD:
        return FUZZY
    return NONE


def best_match(candidates: List[TMMatch]) -> Optional[TMMatch]:
    """Highest scoring whole-segment candidate; phrase sub-matches don't count"""
    valid = [c for c in candidates if c.is_valid() and c.metadata.get('scope') != 'phrase']
    if not valid:
        return None
    return max(valid, key=lambda c: c.similarity)


# ═════════════════════════════════════════════════════════════════════════════════
# WORD-LEVEL BREAKDOWN
# ═════════════════════════════════════════════════════════════════════════════════

def _candidate_keys(candidate: TMMatch) -> List[str]:
    if candidate.matched_words is not None:
        return [normalize_token(w) for w in candidate.matched_words]
    return [normalize_token(t) for t in tokenize(clean_tags(normalize_text(candidate.source_text)))]


def _runs(keys: List[str], run: List[str]) -> List[int]:
    """Start positions of every contiguous occurrence of run in keys"""
    size = len(run)
    if not size:
        return []
    return [i for i in range(len(keys) - size + 1) if keys[i:i + size] == run]


def _covered_positions(keys: List[str], candidate: TMMatch) -> Set[int]:
    """
    Token positions of the segment a candidate accounts for.

    Phrase sub-matches and word-aligned candidates cover only the places
    where their words occur as a contiguous run; anything else is aligned
    in order against the segment so a repeated word elsewhere stays new.
    """
    run = _candidate_keys(candidate)
    if candidate.matched_words is not None or candidate.metadata.get('scope') == 'phrase':
        starts = _runs(keys, run)
        if starts:
            return {i + offset for i in starts for offset in range(len(run))}

    matcher = SequenceMatcher(None, keys, run, autojunk=False)
    positions: Set[int] = set()
    for block in matcher.get_matching_blocks():
        positions.update(range(block.a, block.a + block.size))
    return positions


def build_word_breakdown(content: str, candidates: List[TMMatch]) -> List[WordMatch]:
    """
    One entry per source token of the segment.

    Each usable candidate covers a set of token positions; the best
    candidate covering a position decides its classification and tokens
    nobody usable covers are new.
    """
    usable = sorted(
        (c for c in candidates if c.is_valid() and classify_score(c.similarity) != NONE),
        key=lambda c: c.similarity,
        reverse=True,
    )
    words = tokenize(content)
    keys = [normalize_token(w) for w in words]

    owner: Dict[int, TMMatch] = {}
    for candidate in usable:
        for position in _covered_positions(keys, candidate):
            owner.setdefault(position, candidate)

    breakdown = []
    for position, word in enumerate(words):
        candidate = owner.get(position)
        if candidate is None:
            breakdown.append(WordMatch(word=word, type=NEW))
            continue
        breakdown.append(WordMatch(
            word=word,
            type=classify_score(candidate.similarity),
            match_score=candidate.similarity,
            tm_source_text=candidate.source_text,
        ))
    return breakdown


def leverage_percentage(exact_words: int, fuzzy_words: int, word_count: int,
                        fuzzy_weight: float = config.FUZZY_WEIGHT) -> float:
    """100 * (exact + weight*fuzzy) / word_count, clamped to [0, 100]"""
    if word_count <= 0:
        return 0.0
    value = 100.0 * (exact_words + fuzzy_weight * fuzzy_words) / word_count
    return max(0.0, min(100.0, value))


def compute_leverage(breakdown: List[WordMatch], word_count: int,
                     fuzzy_weight: float = config.FUZZY_WEIGHT) -> TMLeverageData:
    """Aggregate a breakdown into counts that always sum to word_count"""
    exact = sum(1 for w in breakdown if w.type == EXACT)
    fuzzy = sum(1 for w in breakdown if w.type == FUZZY)
    if exact + fuzzy > word_count:
        raise ValueError(
            f"Breakdown has {exact + fuzzy} matched words for a {word_count}-word segment"
        )
    return TMLeverageData(
        exact_match_words=exact,
        fuzzy_match_words=fuzzy,
        new_words=word_count - exact - fuzzy,
        leverage_percentage=leverage_percentage(exact, fuzzy, word_count, fuzzy_weight),
    )


# ═════════════════════════════════════════════════════════════════════════════════
# SPANS
# ═════════════════════════════════════════════════════════════════════════════════

def group_spans(breakdown: List[WordMatch],
                candidates: Optional[List[TMMatch]] = None) -> List[TMSpan]:
    """Contiguous runs of tokens sharing a type and a TM source, in order"""
    targets: Dict[str, str] = {}
    for candidate in candidates or []:
        targets.setdefault(candidate.source_text, candidate.target_text)

    spans: List[TMSpan] = []
    for entry in breakdown:
        last = spans[-1] if spans else None
        if last and last.type == entry.type and last.tm_source_text == entry.tm_source_text:
            last.text = f"{last.text} {entry.word}"
            continue
        spans.append(TMSpan(
            text=entry.word,
            type=entry.type,
            match_score=entry.match_score,
            tm_source_text=entry.tm_source_text,
            tm_target_text=targets.get(entry.tm_source_text) if entry.tm_source_text else None,
        ))
    return spans


def fuzzy_spans(breakdown: List[WordMatch],
                candidates: Optional[List[TMMatch]] = None) -> List[TMSpan]:
    """Contiguous fuzzy tokens from the same candidate"""
    return [span for span in group_spans(breakdown, candidates) if span.type == FUZZY]


def fuzzy_review_flags(spans: List[TMSpan]) -> List[str]:
    """One review flag per fuzzy span"""
    return [
        f'Fuzzy match ({span.match_score}%) for "{span.text}" requires review'
        for span in spans if span.type == FUZZY
    ]


def full_exact_match(content: str, candidates: List[TMMatch]) -> Optional[TMMatch]:
    """An exact candidate whose source is the segment itself, if any"""
    source = normalize(content)
    for candidate in sorted(candidates, key=lambda c: c.similarity, reverse=True):
        if (candidate.is_valid()
                and classify_score(candidate.similarity) == EXACT
                and normalize(candidate.source_text) == source):
            return candidate
    return None


# ═════════════════════════════════════════════════════════════════════════════════
# COST SAVINGS
# ═════════════════════════════════════════════════════════════════════════════════

def estimate_cost_savings(word_count: int, tm_match_score: Optional[float],
                          rate_per_word: float = config.RATE_PER_WORD) -> float:
    """word_count * rate * score/100; segments without a TM score save nothing"""
    if not tm_match_score:
        return 0.0
    return word_count * rate_per_word * (tm_match_score / 100.0)
