"""
TM Leverage Engine exceptions
"""

from typing import List, Optional


class EngineError(Exception):
    """Base exception for the leverage engine"""
    pass


class InvalidTransition(EngineError):
    """Illegal segment state change (programming error)"""
    def __init__(self, segment_id: str, action: str, reason: str):
        self.segment_id = segment_id
        self.action = action
        self.reason = reason
        super().__init__(f"[{segment_id}] cannot {action}: {reason}")


class SegmentNotFound(EngineError, KeyError):
    """No segment with the given id"""
    def __init__(self, segment_id: str):
        self.segment_id = segment_id
        super().__init__(f"Unknown segment: {segment_id}")

    def __str__(self):
        return self.args[0]


class TMUnavailable(EngineError):
    """Translation memory lookup failed"""
    pass


class TranslationUnavailable(EngineError):
    """AI backend failed or returned no text"""
    def __init__(self, message: str, segment_id: Optional[str] = None):
        self.segment_id = segment_id
        super().__init__(f"[{segment_id}] {message}" if segment_id else message)


class IncompleteSegments(EngineError):
    """Draft requested while some segments are not completed"""
    def __init__(self, segment_ids: List[str]):
        self.segment_ids = list(segment_ids)
        preview = ', '.join(self.segment_ids[:5])
        super().__init__(f"{len(self.segment_ids)} segment(s) not completed: {preview}")


class AnalysisUnavailable(EngineError):
    """Quality analysis could not be produced"""
    pass
