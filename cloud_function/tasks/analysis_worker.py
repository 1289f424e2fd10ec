"""
Analysis Worker - runs the multi-pass analysis for one book via Cloud Tasks.

This worker:
1. Receives job_id and book_id from the task payload.
2. Reads the uploaded book file from GCS and extracts its text.
3. Runs structure detection, summary, coverage and gap fill.
4. Saves the summary (books/{book_id}/summary.json) and the structure and
   coverage (books/{book_id}/analysis.json).

Permanent failures (missing or unreadable file, empty text, failed analysis)
answer 200 so
Cloud Tasks does not retry them; unexpected errors answer 500.
"""
import json
import functions_framework

from services.errors import AnalysisError, ExtractionError
from services.gcs_service import GcsService
from services.job_tracker import JobTracker
from services.logging_service import JobLogger, set_global_context
from services.multi_pass_analyzer import MultiPassBookAnalyzer
from services.text_extractor import TextExtractor


@functions_framework.http
def run_analysis(request):
    """
    Cloud Tasks handler for analyzing a single book.

    Expected payload:
    {
        "job_id": "uuid-xxx",
        "book_id": "book-123",
        "title": "Book Title",      (optional, falls back to book metadata)
        "author": "Author Name",    (optional)
        "model": "openai/gpt-4o"    (optional)
    }
    """
    request_json = request.get_json(silent=True)
    if not request_json:
        return json.dumps({"error": "No payload"}), 400

    job_id = request_json.get("job_id")
    book_id = request_json.get("book_id")
    if not job_id or not book_id:
        return json.dumps({"error": "job_id and book_id required"}), 400

    set_global_context(job_id, book_id)
    logger = JobLogger(job_id, book_id)
    gcs = GcsService()
    tracker = JobTracker(gcs, job_id)
    stage = "extraction"

    try:
        logger.log_stage("run_analysis", "started")
        tracker.mark_processing(stage)

        metadata = gcs.get_book_metadata(book_id) or {}
        title = request_json.get("title") or metadata.get("title") or "Untitled"
        author = request_json.get("author") or metadata.get("author")

        source = gcs.read_source_file(book_id)
        if source is None:
            error_msg = f"Original file not available for book {book_id}"
            logger.log_error(stage, error_msg)
            tracker.mark_failed(error_msg, stage)
            return json.dumps({"error": error_msg}), 200

        content, filename = source
        try:
            extracted = TextExtractor().extract_bytes(content, filename)
        except ExtractionError as e:
            logger.log_error(stage, str(e))
            tracker.mark_failed(str(e), stage)
            return json.dumps({"error": str(e)}), 200
        if not extracted.text.strip():
            error_msg = "No readable text found in the original file."
            logger.log_error(stage, error_msg)
            tracker.mark_failed(error_msg, stage)
            return json.dumps({"error": error_msg}), 200
        logger.log_metric("text_length", len(extracted.text))

        def on_stage(name: str):
            nonlocal stage
            stage = name
            logger.log_stage(name, "started")
            tracker.mark_processing(name)

        analyzer = MultiPassBookAnalyzer(
            extracted.text, title, author,
            locations=extracted.locations,
            model=request_json.get("model"),
            stage_listener=on_stage,
        )
        result = analyzer.analyze()

        summary_uri = gcs.save_summary(book_id, result.summary)
        gcs.save_analysis(book_id, {
            "job_id": job_id,
            "structure": result.structure.to_dict(),
            "coverage": result.coverage.to_dict(),
        })

        logger.log_metric("coverage_percentage", result.coverage.coverage_percentage)
        logger.log_metric("chapters_detected", result.structure.total_chapters)
        logger.log_stage("run_analysis", "completed")
        tracker.mark_completed(summary_uri, result.coverage.coverage_percentage)

        return json.dumps({
            "status": "success",
            "job_id": job_id,
            "book_id": book_id,
            "coverage": result.coverage.to_dict(),
        }), 200

    except (AnalysisError, ValueError) as e:
        logger.log_error(stage, str(e))
        tracker.mark_failed(str(e), stage)
        return json.dumps({"error": str(e)}), 200

    except Exception as e:
        logger.log_error(stage, str(e))
        tracker.mark_failed(str(e), stage)
        return json.dumps({"error": str(e)}), 500
