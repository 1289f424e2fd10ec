"""
Structured Logging Service - Cloud Logging integration.

Every entry carries the job/book it belongs to so a single analysis run can be
followed across the structure, summary, coverage and gap-fill passes.
Entries go to Google Cloud Logging and are mirrored to the console.
"""
import json
import sys
from datetime import datetime, timezone
from typing import Optional, Any, Dict
from google.cloud import logging as cloud_logging

from config import CLOUD_LOGGING_ENABLED

LOG_NAME = "bookbyte-analysis"


class StructuredLogger:
    """Sends structured entries to Cloud Logging and the console."""

    def __init__(self, job_id: Optional[str] = None, book_id: Optional[str] = None,
                 enable_console: bool = True, enable_cloud: bool = CLOUD_LOGGING_ENABLED):
        self.job_id = job_id
        self.book_id = book_id
        self.enable_console = enable_console
        self.cloud_logging_enabled = False
        self.logger = None

        if enable_cloud:
            try:
                self.logger = cloud_logging.Client().logger(LOG_NAME)
                self.cloud_logging_enabled = True
            except Exception as e:
                print(f"Warning: Cloud Logging unavailable ({e}). Logging to console only.", file=sys.stderr)

    def info(self, message: str, **kwargs):
        self._log("INFO", message, **kwargs)

    def warning(self, message: str, **kwargs):
        self._log("WARNING", message, **kwargs)

    def error(self, message: str, **kwargs):
        self._log("ERROR", message, **kwargs)

    def debug(self, message: str, **kwargs):
        self._log("DEBUG", message, **kwargs)

    def _context(self) -> Dict[str, Any]:
        context = {}
        if self.job_id:
            context["job_id"] = self.job_id
        if self.book_id:
            context["book_id"] = self.book_id
        return context

    def _log(self, severity: str, message: str, **kwargs):
        struct = {
            "message": message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            **kwargs,
            **self._context(),
        }

        if self.cloud_logging_enabled:
            try:
                self.logger.log_struct(struct, severity=severity)
            except Exception as e:
                print(f"Cloud Logging error: {e}", file=sys.stderr)

        if self.enable_console:
            prefix = " ".join(f"[{v}]" for v in self._context().values())
            console_msg = f"{prefix} [{severity}] {message}" if prefix else f"[{severity}] {message}"
            if kwargs:
                console_msg += f" | {json.dumps(kwargs, ensure_ascii=False, default=str)}"
            print(console_msg, file=sys.stderr if severity == "ERROR" else sys.stdout)


class JobLogger:
    """Logger bound to one analysis or enhancement job."""

    def __init__(self, job_id: str, book_id: Optional[str] = None):
        self.logger = StructuredLogger(job_id=job_id, book_id=book_id)
        self.job_id = job_id

    def info(self, message: str, **kwargs):
        self.logger.info(message, **kwargs)

    def warning(self, message: str, **kwargs):
        self.logger.warning(message, **kwargs)

    def error(self, message: str, **kwargs):
        self.logger.error(message, **kwargs)

    def debug(self, message: str, **kwargs):
        self.logger.debug(message, **kwargs)

    def log_stage(self, stage: str, status: str, **kwargs):
        """
        Log a pipeline stage transition.

        Args:
            stage: e.g. 'structure_detection', 'gap_fill'
            status: e.g. 'started', 'completed', 'fallback'
        """
        self.logger.info(f"Stage: {stage} - {status}", stage=stage, status=status, **kwargs)

    def log_error(self, stage: str, error: str, **kwargs):
        self.logger.error(f"Error in {stage}: {error}", stage=stage, error=error, **kwargs)

    def log_metric(self, metric_name: str, value: Any, **kwargs):
        self.logger.info(f"Metric: {metric_name}={value}", metric=metric_name, value=value, **kwargs)


# Shared logger for services that are not bound to a job
_global_logger = StructuredLogger()

def set_global_context(job_id: Optional[str] = None, book_id: Optional[str] = None):
    """Tag subsequent global log entries with the current job/book."""
    _global_logger.job_id = job_id
    _global_logger.book_id = book_id

def get_logger() -> StructuredLogger:
    return _global_logger
