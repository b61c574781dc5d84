"""
Persistence Controller
Debounced, content-deduplicated writes of the document record.

Only the most recently scheduled write runs: every schedule() cancels the
pending timer and arms a new one. A write happens only when the serialized
record (lastUpdated excluded) differs from the last one written.
"""

import asyncio
import json
import logging
import os
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from tm_leverage import config
from tm_leverage.models.entities import DocumentRecord

logger = logging.getLogger(__name__)

Record = Union[DocumentRecord, Dict[str, Any]]


class DocumentStore(ABC):
    """Durable storage for one document record"""

    @abstractmethod
    def save(self, payload: Dict[str, Any]) -> None:
        """Persist the payload, replacing any previous one"""

    @abstractmethod
    def load(self) -> Optional[Dict[str, Any]]:
        """Last saved payload, None when nothing was saved yet"""


class MemoryStore(DocumentStore):
    """Keeps every saved payload in a list; handy for tests and previews"""

    def __init__(self):
        self.saved: List[Dict[str, Any]] = []

    def save(self, payload: Dict[str, Any]) -> None:
        self.saved.append(json.loads(json.dumps(payload)))

    def load(self) -> Optional[Dict[str, Any]]:
        return self.saved[-1] if self.saved else None


class JsonFileStore(DocumentStore):
    """One JSON file per document, replaced atomically on save"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def save(self, payload: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self.path.with_suffix(self.path.suffix + '.tmp')
        with open(tmp_path, 'w', encoding='utf-8') as f:
            json.dump(payload, f, ensure_ascii=False, indent=2)
        os.replace(tmp_path, self.path)
        logger.debug(f"Document saved to {self.path}")

    def load(self) -> Optional[Dict[str, Any]]:
        if not self.path.exists():
            return None
        with open(self.path, 'r', encoding='utf-8') as f:
            return json.load(f)


def _to_payload(record: Record) -> Dict[str, Any]:
    if isinstance(record, DocumentRecord):
        return record.to_dict()
    return dict(record)


def content_key(payload: Dict[str, Any]) -> str:
    """Serialization used for the content-equality check"""
    data = {k: v for k, v in payload.items() if k != 'lastUpdated'}
    return json.dumps(data, sort_keys=True, ensure_ascii=False)


class PersistenceController:
    def __init__(self, store: DocumentStore, delay: float = config.AUTOSAVE_DEBOUNCE_SECONDS):
        if delay < 0:
            raise ValueError(f"delay must be ≥0, got {delay}")
        self.store = store
        self.delay = delay
        self.last_updated: Optional[str] = None
        self.write_count = 0
        self._pending: Optional[Record] = None
        self._timer: Optional[asyncio.Task] = None
        self._last_written: Optional[str] = None

    @property
    def has_pending(self) -> bool:
        return self._pending is not None

    def schedule(self, record: Record):
        """
        Arm the debounce timer for this record, superseding any pending write.
        Without a running event loop the record waits for flush().
        """
        self._pending = record
        self._cancel_timer()
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.debug("No running event loop; write deferred until flush()")
            return
        self._timer = loop.create_task(self._fire_after_delay())

    async def _fire_after_delay(self):
        await asyncio.sleep(self.delay)
        self._timer = None
        self._write_pending()

    def _cancel_timer(self):
        if self._timer is not None and not self._timer.done():
            self._timer.cancel()
        self._timer = None

    def _write_pending(self) -> bool:
        record, self._pending = self._pending, None
        if record is None:
            return False
        return self.write(record)

    def write(self, record: Record) -> bool:
        """Write immediately if the content changed. Returns True when saved."""
        payload = _to_payload(record)
        key = content_key(payload)
        if key == self._last_written:
            logger.debug("Document unchanged since last save; skipping write")
            return False

        timestamp = datetime.now(timezone.utc).isoformat()
        payload['lastUpdated'] = timestamp
        try:
            self.store.save(payload)
        except Exception as e:
            logger.error(f"Auto-save failed: {e}", exc_info=True)
            return False

        self._last_written = key
        self.last_updated = timestamp
        self.write_count += 1
        if isinstance(record, DocumentRecord):
            record.last_updated = timestamp
        logger.info(f"Document saved ({len(payload.get('segments') or [])} segments)")
        return True

    def mark_written(self, record: Record):
        """
        Treat record as already persisted (e.g. just loaded from the store).
        A write still pending for the previous state is dropped.
        """
        self._cancel_timer()
        self._pending = None
        payload = _to_payload(record)
        self._last_written = content_key(payload)
        self.last_updated = payload.get('lastUpdated')

    def flush(self) -> bool:
        """Write the pending record now instead of waiting for the timer"""
        self._cancel_timer()
        return self._write_pending()

    def close(self):
        """Cancel any pending write without saving it"""
        self._cancel_timer()
        if self._pending is not None:
            logger.info("Pending auto-save discarded")
        self._pending = None

    def load(self) -> Optional[DocumentRecord]:
        payload = self.store.load()
        if payload is None:
            return None
        self.mark_written(payload)
        return DocumentRecord.from_dict(payload)
