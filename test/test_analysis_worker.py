import json

import pytest

from services.gcs_service import GcsService
from services.multi_pass_analyzer import MultiPassBookAnalyzer
from tasks import analysis_worker
from fakes import FakeLLM, MockStorageClient, structured_summary

BOOK = "Chapter 1: Origins\nHow it started.\nChapter 2: Growth\nHow it grew."


class FakeRequest:
    def __init__(self, json_body):
        self._json = json_body

    def get_json(self, silent=False):
        return self._json


@pytest.fixture
def storage(monkeypatch):
    client = MockStorageClient()
    gcs = GcsService(bucket_name="test-bucket", client=client)
    monkeypatch.setattr(analysis_worker, "GcsService", lambda: gcs)
    client.put_json("books/b1/metadata.json", {"title": "Book", "source_file": "book.md"})
    client._bucket.store["books/b1/source/book.md"] = BOOK.encode("utf-8")
    return client


def _use_llm(monkeypatch, llm):
    def build(*args, **kwargs):
        return MultiPassBookAnalyzer(*args, llm=llm, **kwargs)
    monkeypatch.setattr(analysis_worker, "MultiPassBookAnalyzer", build)


def test_requires_ids():
    body, status = analysis_worker.run_analysis(FakeRequest({"job_id": "j1"}))
    assert status == 400


def test_saves_summary_and_analysis(storage, monkeypatch):
    structure = {"chapters": [{"number": "1", "title": "Origins"}, {"number": "2", "title": "Growth"}]}
    llm = FakeLLM(
        complete_responses=[json.dumps(structure)],
        summaries=[structured_summary(quick="Origins and growth explained.")],
    )
    _use_llm(monkeypatch, llm)

    body, status = analysis_worker.run_analysis(FakeRequest({"job_id": "j1", "book_id": "b1"}))

    assert status == 200
    assert storage.get_json("books/b1/summary.json")["quick_summary"] == "Origins and growth explained."
    analysis = storage.get_json("books/b1/analysis.json")
    assert analysis["coverage"]["coveragePercentage"] == 100
    assert analysis["structure"]["totalChapters"] == 2
    status_doc = storage.get_json("jobs/j1/status.json")
    assert status_doc["status"] == "completed"
    assert status_doc["details"]["coverage_percentage"] == 100
    assert llm.summary_calls[0]["locations"]


def test_failed_analysis_is_not_retried(storage, monkeypatch):
    llm = FakeLLM(complete_responses=["{}"], summaries=[RuntimeError("a"), RuntimeError("b")])
    _use_llm(monkeypatch, llm)

    body, status = analysis_worker.run_analysis(FakeRequest({"job_id": "j2", "book_id": "b1"}))

    assert status == 200
    status_doc = storage.get_json("jobs/j2/status.json")
    assert status_doc["status"] == "failed"
    assert status_doc["details"]["stage"] == "fallback_summary"
    assert "books/b1/summary.json" not in storage._bucket.store


def test_missing_source_file(storage):
    body, status = analysis_worker.run_analysis(FakeRequest({"job_id": "j3", "book_id": "unknown"}))
    assert status == 200
    assert storage.get_json("jobs/j3/status.json")["status"] == "failed"


def test_corrupt_pdf_is_not_retried(storage, monkeypatch):
    storage.put_json("books/b1/metadata.json", {"title": "Book", "source_file": "book.pdf"})
    storage._bucket.store["books/b1/source/book.pdf"] = b"not a pdf at all"
    llm = FakeLLM()
    _use_llm(monkeypatch, llm)

    body, status = analysis_worker.run_analysis(FakeRequest({"job_id": "j4", "book_id": "b1"}))

    assert status == 200
    status_doc = storage.get_json("jobs/j4/status.json")
    assert status_doc["status"] == "failed"
    assert status_doc["details"]["stage"] == "extraction"
    assert "Failed to extract text from PDF file" in status_doc["details"]["error"]
    assert llm.summary_calls == []
