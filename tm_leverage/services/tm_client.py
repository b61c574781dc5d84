"""
Translation Memory backends
The engine only needs find_matches(text, segment_type); add_entry feeds
approved translations back into the TM.

  • InMemoryTM     - local entries, exact index + Levenshtein fuzzy search
  • TMServerClient - REST TM server, responses normalized to TMMatch
"""

import asyncio
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

import requests
from requests.auth import HTTPBasicAuth

from tm_leverage import config
from tm_leverage.exceptions import TMUnavailable
from tm_leverage.models.entities import TMMatch
from tm_leverage.services.tm_matcher import normalize, edit_distance_similarity

logger = logging.getLogger(__name__)

PHRASE_SCOPE = "phrase"


class TMBackend(ABC):
    """Contract the orchestrator needs from a translation memory"""

    @abstractmethod
    async def find_matches(self, text: str, segment_type: Optional[str] = None) -> List[TMMatch]:
        """Candidate matches for text, best first. Raises TMUnavailable."""

    async def add_entry(self, source_text: str, target_text: str,
                        segment_type: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
        """Store an approved translation. Read-only backends ignore it."""
        return None

    async def approve_entry(self, source_text: str,
                            metadata: Optional[Dict[str, Any]] = None) -> None:
        """Record that a reviewer approved fuzzy matches from this entry"""
        return None


# ═════════════════════════════════════════════════════════════════════════════════
# IN-MEMORY TM
# ═════════════════════════════════════════════════════════════════════════════════

class InMemoryTM(TMBackend):
    """
    Local TM
    Whole-segment candidates come from edit distance over normalized sources;
    TM entries found verbatim inside the segment are returned as exact
    phrase-scope sub-matches covering only their own words.
    """

    def __init__(self, entries: Optional[List[Dict[str, str]]] = None,
                 min_score: int = config.TM_LOOKUP_THRESHOLD,
                 max_candidates: int = config.MAX_TM_CANDIDATES):
        self.min_score = min_score
        self.max_candidates = max_candidates
        self.exact_match_index: Dict[str, Dict[str, Any]] = {}
        self.normalized_entries: List[Dict[str, Any]] = []
        for entry in entries or []:
            self._index(entry.get('source', ''), entry.get('target', ''),
                        entry.get('domain'), entry.get('segment_type'))

    @property
    def tu_count(self) -> int:
        return len(self.normalized_entries)

    def _index(self, source: str, target: str, domain: Optional[str] = None,
               segment_type: Optional[str] = None):
        if not source or not source.strip() or not target or not target.strip():
            return
        normalized_source = normalize(source)
        record = {
            'source_normalized': normalized_source,
            'source_original': source.strip(),
            'target': target.strip(),
            'domain': domain,
            'segment_type': segment_type,
            'last_used_at': None,
            'usage_count': 0,
            'approval_status': None,
            'reviewed_at': None,
        }
        existing = self.exact_match_index.get(normalized_source)
        if existing:
            existing['target'] = record['target']
            existing['domain'] = domain or existing['domain']
            existing['segment_type'] = segment_type or existing['segment_type']
            return
        self.exact_match_index[normalized_source] = record
        self.normalized_entries.append(record)

    def lookup(self, text: str, segment_type: Optional[str] = None) -> List[TMMatch]:
        """
        Synchronous lookup, best first.
        Equal scores prefer entries stored for the same segment type, then
        the most used ones.
        """
        source_normalized = normalize(text)
        if not source_normalized:
            return []

        scored = []
        padded = f" {source_normalized} "
        for entry in self.normalized_entries:
            entry_source = entry['source_normalized']
            if entry_source == source_normalized:
                score = 100
            else:
                score = int(round(edit_distance_similarity(source_normalized, entry_source) * 100))

            if score >= self.min_score:
                scored.append((entry, self._to_match(entry, score)))
            elif f" {entry_source} " in padded:
                scored.append((entry, self._to_match(entry, 100, scope=PHRASE_SCOPE)))

        scored.sort(
            key=lambda pair: (
                pair[1].similarity,
                bool(segment_type) and pair[0]['segment_type'] == segment_type,
                pair[0]['usage_count'],
            ),
            reverse=True,
        )
        return [match for _, match in scored[:self.max_candidates]]

    def _to_match(self, entry: Dict[str, Any], score: int, scope: str = "segment") -> TMMatch:
        metadata = {'scope': scope, 'usage_count': entry['usage_count']}
        if entry.get('segment_type'):
            metadata['segment_type'] = entry['segment_type']
        if entry.get('approval_status'):
            metadata['approval_status'] = entry['approval_status']
        return TMMatch(
            source_text=entry['source_original'],
            target_text=entry['target'],
            similarity=score,
            matched_words=entry['source_original'].split() if scope == PHRASE_SCOPE else None,
            domain=entry.get('domain'),
            last_used_at=entry.get('last_used_at'),
            metadata=metadata,
        )

    def get_entry(self, source_text: str) -> Optional[Dict[str, Any]]:
        return self.exact_match_index.get(normalize(source_text))

    async def find_matches(self, text: str, segment_type: Optional[str] = None) -> List[TMMatch]:
        return self.lookup(text, segment_type)

    async def add_entry(self, source_text: str, target_text: str,
                        segment_type: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
        """Insert the pair, or bump usage of the entry already holding this source"""
        domain = (metadata or {}).get('domain')
        self._index(source_text, target_text, domain, segment_type)
        record = self.get_entry(source_text)
        if record is None:
            return
        now = datetime.now(timezone.utc).isoformat()
        record['usage_count'] += 1
        record['last_used_at'] = now
        record['approval_status'] = 'approved'
        record['reviewed_at'] = now
        logger.info(f"TM entry stored (used {record['usage_count']}x): {source_text[:50]}")

    async def approve_entry(self, source_text: str,
                            metadata: Optional[Dict[str, Any]] = None) -> None:
        record = self.get_entry(source_text)
        if record is None:
            logger.warning(f"Approval for unknown TM entry: {source_text[:50]}")
            return
        record['approval_status'] = 'approved'
        record['reviewed_at'] = datetime.now(timezone.utc).isoformat()
        logger.info(f"TM entry approved: {source_text[:50]}")


# ═════════════════════════════════════════════════════════════════════════════════
# TM SERVER
# ═════════════════════════════════════════════════════════════════════════════════

def normalize_tm_response(response: Any, segment_id: str = "lookup",
                          match_threshold: int = config.TM_LOOKUP_THRESHOLD) -> List[TMMatch]:
    """
    Convert a TM server lookup response to standard TMMatch objects

    Args:
        response: Raw JSON (dict with 'matches'/'Result', or a bare list)
        segment_id: ID of the segment being matched (for logging)
        match_threshold: Minimum match % to include (0-100)

    Returns:
        List of TMMatch objects, sorted by similarity descending
    """
    if isinstance(response, dict):
        hits = response.get('matches', response.get('Result', []))
    elif isinstance(response, list):
        hits = response
    else:
        logger.warning(f"Unexpected response type for {segment_id}: {type(response)}")
        return []

    matches = []
    for hit in hits or []:
        if not isinstance(hit, dict):
            continue

        score = hit.get('matchScore', hit.get('match_score', hit.get('MatchRate', 0)))
        try:
            score = int(round(float(score)))
        except (TypeError, ValueError):
            logger.warning(f"[{segment_id}] Invalid match score: {score!r}")
            continue
        if score < match_threshold:
            continue

        source_text = hit.get('sourceText') or hit.get('source_text') or ''
        target_text = hit.get('targetText') or hit.get('target_text') or ''
        # Clean XML tags: <seg>text</seg> → text
        source_text = re.sub(r'</?seg>', '', source_text).strip()
        target_text = re.sub(r'</?seg>', '', target_text).strip()
        if not source_text or not target_text:
            continue

        try:
            matches.append(TMMatch(
                source_text=source_text,
                target_text=target_text,
                similarity=score,
                matched_words=hit.get('matchedWords'),
                domain=hit.get('domain') or hit.get('therapeuticArea'),
                last_used_at=hit.get('lastUsedAt') or hit.get('last_used_at'),
                metadata={'scope': hit.get('scope', 'segment'), 'id': hit.get('id')},
            ))
            logger.debug(f"[{segment_id}] TM match: {score}% - {source_text[:50]}")
        except ValueError as e:
            logger.warning(f"[{segment_id}] Invalid TMMatch: {e}")

    matches.sort(key=lambda x: x.similarity, reverse=True)
    return matches[:config.MAX_TM_CANDIDATES]


class TMServerClient(TMBackend):
    """
    Client for a TM server REST API

    Handles:
    - Authentication (Basic Auth or Token)
    - Lookups with normalization
    - Writing approved entries back
    """

    def __init__(self,
                 server_url: str,
                 username: str = "",
                 password: str = "",
                 use_token: bool = False,
                 source_lang: str = config.DEFAULT_SOURCE_LANGUAGE,
                 target_lang: str = config.DEFAULT_TARGET_LANGUAGE,
                 project_id: Optional[str] = None,
                 timeout: int = config.REQUEST_TIMEOUT,
                 verify_ssl: bool = True,
                 session: Optional[requests.Session] = None):
        self.server_url = server_url.rstrip('/')
        self.source_lang = source_lang
        self.target_lang = target_lang
        self.project_id = project_id
        self.timeout = timeout
        self.verify_ssl = verify_ssl

        self.session = session or requests.Session()
        if use_token:
            self.session.headers['Authorization'] = f'Bearer {username}'
        elif username:
            self.session.auth = HTTPBasicAuth(username, password)

        self.session.headers.update({
            'Content-Type': 'application/json',
            'Accept': 'application/json'
        })
        logger.info(f"TMServerClient initialized: {self.server_url}")

    def _make_request(self, method: str, endpoint: str, body: Optional[Dict] = None) -> Any:
        """
        Make HTTP request to the TM server

        Raises:
            TMUnavailable: On network or API errors
        """
        url = f"{self.server_url}/api/v1{endpoint}"
        try:
            logger.debug(f"{method} {url}")
            response = self.session.request(
                method, url, json=body, timeout=self.timeout, verify=self.verify_ssl
            )
            response.raise_for_status()
            return response.json() if response.content else {}

        except requests.exceptions.Timeout as e:
            raise TMUnavailable(f"Request timeout: {url}") from e

        except requests.exceptions.ConnectionError as e:
            raise TMUnavailable(f"Connection error: {url} - {e}") from e

        except requests.exceptions.HTTPError as e:
            raise TMUnavailable(f"HTTP {response.status_code}: {url} - {response.text[:200]}") from e

        except ValueError as e:
            raise TMUnavailable(f"Invalid JSON from {url}: {e}") from e

    def test_connection(self) -> bool:
        try:
            self._make_request("GET", "/status")
            logger.info("✓ TM server connection successful")
            return True
        except TMUnavailable as e:
            logger.error(f"✗ TM server connection failed: {e}")
            return False

    def lookup(self, text: str, segment_type: Optional[str] = None) -> List[TMMatch]:
        body = {
            'text': text,
            'segmentType': segment_type or config.DEFAULT_SEGMENT_TYPE,
            'sourceLanguage': self.source_lang,
            'targetLanguage': self.target_lang,
            'minScore': config.TM_LOOKUP_THRESHOLD,
            'limit': config.MAX_TM_CANDIDATES,
        }
        if self.project_id:
            body['projectId'] = self.project_id
        result = self._make_request("POST", "/tm/lookup", body=body)
        matches = normalize_tm_response(result)
        logger.info(f"TM lookup complete: {len(matches)} matches")
        return matches

    def store(self, source_text: str, target_text: str,
              segment_type: Optional[str] = None,
              metadata: Optional[Dict[str, Any]] = None):
        body = {
            'sourceText': source_text,
            'targetText': target_text,
            'sourceLanguage': self.source_lang,
            'targetLanguage': self.target_lang,
            'segmentType': segment_type or config.DEFAULT_SEGMENT_TYPE,
            'metadata': metadata or {},
        }
        if self.project_id:
            body['projectId'] = self.project_id
        self._make_request("POST", "/tm/entries", body=body)

    def approve(self, source_text: str, metadata: Optional[Dict[str, Any]] = None):
        body = {
            'sourceText': source_text,
            'sourceLanguage': self.source_lang,
            'targetLanguage': self.target_lang,
            'approvalStatus': 'approved',
            'metadata': metadata or {},
        }
        if self.project_id:
            body['projectId'] = self.project_id
        self._make_request("POST", "/tm/entries/approve", body=body)

    async def find_matches(self, text: str, segment_type: Optional[str] = None) -> List[TMMatch]:
        return await asyncio.to_thread(self.lookup, text, segment_type)

    async def add_entry(self, source_text: str, target_text: str,
                        segment_type: Optional[str] = None,
                        metadata: Optional[Dict[str, Any]] = None) -> None:
        await asyncio.to_thread(self.store, source_text, target_text, segment_type, metadata)

    async def approve_entry(self, source_text: str,
                            metadata: Optional[Dict[str, Any]] = None) -> None:
        await asyncio.to_thread(self.approve, source_text, metadata)
