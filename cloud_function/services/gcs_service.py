import json
import os
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from google.cloud import storage

from config import BUCKET_NAME


class GcsService:
    """
    Book storage in GCS.

    Layout per book:
        books/{book_id}/metadata.json   title, author, source_file
        books/{book_id}/source/{file}   uploaded PDF / text file
        books/{book_id}/summary.json    current summary payload
        books/{book_id}/analysis.json   structure + coverage of the last analysis
    """

    def __init__(self, bucket_name: str = BUCKET_NAME, client=None):
        self.client = client or storage.Client()
        self.bucket_name = bucket_name

    @property
    def bucket(self):
        return self.client.bucket(self.bucket_name)

    def _book_path(self, book_id: str, name: str) -> str:
        return f"books/{book_id}/{name}"

    def read_json(self, path: str) -> Optional[Any]:
        blob = self.bucket.blob(path)
        if not blob.exists():
            return None
        return json.loads(blob.download_as_text())

    def write_json(self, path: str, data: Any) -> str:
        self.bucket.blob(path).upload_from_string(
            json.dumps(data, ensure_ascii=False, indent=2),
            content_type="application/json"
        )
        return f"gs://{self.bucket_name}/{path}"

    def get_book_metadata(self, book_id: str) -> Optional[Dict[str, Any]]:
        return self.read_json(self._book_path(book_id, "metadata.json"))

    def read_source_file(self, book_id: str) -> Optional[Tuple[bytes, str]]:
        """Returns (content, filename) of the uploaded book file, or None if there is none."""
        metadata = self.get_book_metadata(book_id) or {}
        source_file = metadata.get("source_file")
        if not source_file:
            return None
        blob = self.bucket.blob(self._book_path(book_id, f"source/{source_file}"))
        if not blob.exists():
            return None
        return blob.download_as_bytes(), os.path.basename(source_file)

    def get_summary(self, book_id: str) -> Optional[Any]:
        return self.read_json(self._book_path(book_id, "summary.json"))

    def save_summary(self, book_id: str, summary: Dict[str, Any]) -> str:
        return self.write_json(self._book_path(book_id, "summary.json"), summary)

    def save_analysis(self, book_id: str, analysis: Dict[str, Any]) -> str:
        analysis = dict(analysis)
        analysis["analyzed_at"] = datetime.now().isoformat()
        return self.write_json(self._book_path(book_id, "analysis.json"), analysis)
