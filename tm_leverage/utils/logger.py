"""
Transaction Logger for bulk translation runs
Timestamped job log kept in memory and forwarded to the logging module
"""

from datetime import datetime
from typing import List, Optional
import logging

logger = logging.getLogger(__name__)


class TransactionLogger:
    """Job log with per-segment outcome and progress tracking"""

    def __init__(self):
        """Initialize transaction logger"""
        self.logs = []
        self.start_time = datetime.now()
        self.total_segments = 0
        self.translated_count = 0
        self.failed_count = 0
        self.skipped_count = 0
        self.processed_count = 0

    def log(self, message: str, level: int = logging.INFO):
        """Add timestamped log entry"""
        timestamp = datetime.now().strftime("%Y-%m-%d %H:%M:%S")
        entry = f"{timestamp} | {message}"
        self.logs.append(entry)
        logger.log(level, message)

    # ===== INITIALIZATION =====

    def init_job(self, total_segments: int, src_lang: str, tgt_lang: str,
                 max_concurrency: int, domain: Optional[str] = None):
        """Log job initialization"""
        self.start_time = datetime.now()
        self.total_segments = total_segments
        self.log(f"Started bulk translation for {total_segments} segments.")
        self.log(f"Source: {src_lang} | Target: {tgt_lang} | Concurrency: {max_concurrency}")
        if domain:
            self.log(f"Domain: {domain}")

    # ===== SEGMENT DETAILS =====

    def log_segment_content(self, segment_id: str, source_text: str, limit: int = 100):
        """Log segment content before processing"""
        truncated = source_text[:limit] + "..." if len(source_text) > limit else source_text
        self.log(f"[{segment_id}] Source: {truncated}", logging.DEBUG)

    def log_segment_result(self, segment_id: str, leverage_percentage: float, review_flags: int):
        self.translated_count += 1
        review = f", {review_flags} review flag(s)" if review_flags else ""
        self.log(f"[{segment_id}] Translated ({leverage_percentage:.1f}% TM leverage{review})")

    def log_segment_failure(self, segment_id: str, error_msg: str):
        self.failed_count += 1
        self.log(f"[{segment_id}] FAILED: {error_msg}", logging.WARNING)

    def log_segment_skipped(self, segment_id: str, reason: str):
        self.skipped_count += 1
        self.log(f"[{segment_id}] SKIPPED: {reason}")

    # ===== PROGRESS TRACKING =====

    def log_progress(self, processed: int, total: int):
        """Log processing progress"""
        percentage = (processed / total * 100) if total > 0 else 0
        self.log(f"Progress: Processed {processed} of {total} segments ({percentage:.1f}%)")
        self.processed_count = processed

    # ===== SUMMARY LOGGING =====

    def log_summary(self):
        """Log final run summary"""
        duration = (datetime.now() - self.start_time).total_seconds()
        accounted = self.translated_count + self.failed_count + self.skipped_count

        self.log("=" * 80)
        self.log("SUMMARY")
        self.log("=" * 80)
        if accounted == self.total_segments:
            self.log(f"✓ Total Segments: {self.total_segments}")
        else:
            self.log(f"✗ SEGMENT COUNT MISMATCH! {accounted} accounted of {self.total_segments}",
                     logging.WARNING)
        self.log(f"Translated: {self.translated_count}")
        self.log(f"Failed: {self.failed_count}")
        if self.skipped_count:
            self.log(f"Skipped: {self.skipped_count}")
        self.log(f"Duration: {duration:.1f}s")
        self.log("=" * 80)

    # ===== UTILITY METHODS =====

    def get_content(self) -> str:
        """Get all log content as string"""
        return "\n".join(self.logs)

    def get_log_lines(self) -> List[str]:
        """Get all log lines as list"""
        return self.logs

    def save_to_file(self, filepath: str):
        """Save logs to file"""
        with open(filepath, 'w', encoding='utf-8') as f:
            f.write(self.get_content())
        logger.info(f"Logs saved to {filepath}")

    def clear(self):
        """Clear all logs"""
        self.logs = []
        self.translated_count = 0
        self.failed_count = 0
        self.skipped_count = 0
        self.processed_count = 0
