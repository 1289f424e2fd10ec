"""
Job Tracking Service - analysis job status in GCS.

Status moves queued -> processing (with the current stage) -> completed or
failed, so a stuck or failed analysis can be found from the bucket alone.
"""
import json
from datetime import datetime, timezone
from typing import Optional, Dict, Any

from services.logging_service import get_logger


class JobTracker:
    """Tracks job status in GCS for monitoring."""

    def __init__(self, gcs_service, job_id: str):
        """
        Args:
            gcs_service: GcsService instance
            job_id: Job ID to track
        """
        self.gcs = gcs_service
        self.job_id = job_id
        self.status_path = f"jobs/{job_id}/status.json"

    def update_status(self, status: str, details: Optional[Dict[str, Any]] = None):
        """
        Args:
            status: 'queued', 'processing', 'completed' or 'failed'
            details: Optional additional details
        """
        data = {
            "job_id": self.job_id,
            "status": status,
            "updated_at": datetime.now(timezone.utc).isoformat(),
            "details": details or {}
        }

        try:
            self.gcs.bucket.blob(self.status_path).upload_from_string(
                json.dumps(data, ensure_ascii=False, indent=2),
                content_type="application/json"
            )
            get_logger().debug(f"Job {self.job_id} status updated: {status}")
        except Exception as e:
            get_logger().warning(f"Failed to update job status: {e}")

    def mark_queued(self, book_id: str):
        self.update_status("queued", {"book_id": book_id})

    def mark_processing(self, stage: str):
        self.update_status("processing", {"stage": stage})

    def mark_completed(self, summary_uri: str, coverage_percentage: int):
        self.update_status("completed", {
            "summary_uri": summary_uri,
            "coverage_percentage": coverage_percentage,
        })

    def mark_failed(self, error: str, stage: Optional[str] = None):
        details = {"error": error}
        if stage:
            details["stage"] = stage
        self.update_status("failed", details)

    def get_status(self) -> Optional[Dict[str, Any]]:
        """Current status dict, or None if the job is unknown."""
        try:
            blob = self.gcs.bucket.blob(self.status_path)
            if blob.exists():
                return json.loads(blob.download_as_text())
            return None
        except Exception as e:
            get_logger().warning(f"Failed to retrieve job status: {e}")
            return None
