"""
Main Entry Point - BookByte analysis service.

This module provides HTTP endpoints for:
1. analyze_book - Accepts a book and enqueues its multi-pass analysis.
2. run_analysis - Cloud Task worker that performs the analysis (from analysis_worker).
3. enhance_summary - Detects gaps in a stored summary and fills the selected ones.
4. gap_report - Returns the gap report for a stored summary.
5. job_status - Returns the tracked status of an analysis job.

Architecture:
- analyze_book returns immediately; the slow LLM passes run in a Cloud Task.
- Summaries and analysis metadata live in GCS under books/{book_id}/.
- Enhancement runs inline, gap by gap, and can be previewed before saving.
"""
import json
import uuid

import functions_framework

from config import PROJECT_ID, REGION, QUEUE_NAME, FUNCTION_URL
from models.book import ExtractedText
from services.enhancement_service import EnhancementService
from services.errors import ExtractionError, is_rate_limit_error
from services.gap_detection import detect_gaps, select_gaps
from services.gcs_service import GcsService
from services.job_tracker import JobTracker
from services.logging_service import JobLogger, StructuredLogger, get_logger, set_global_context
from services.text_extractor import TextExtractor

# Import task handlers for routing
from tasks.analysis_worker import run_analysis

ENHANCE_MODES = ("all", "selected", "section")

RATE_LIMIT_MESSAGE = (
    "Gemini API rate limit exceeded. Please wait for your quota to reset "
    "or upgrade your Gemini API plan, then try again later."
)


@functions_framework.http
def main_http_entry(request):
    """
    Main HTTP entry point that routes requests based on path.
    Enables Single-Function deployment for multiple handlers.
    """
    path = request.path
    get_logger().debug(f"Routing request: method={request.method}, path={path}")

    if path == "/" or path.endswith("/analyze_book"):
        return analyze_book(request)
    elif path.endswith("/run_analysis"):
        return run_analysis(request)
    elif path.endswith("/enhance_summary"):
        return enhance_summary(request)
    elif path.endswith("/gap_report"):
        return gap_report(request)
    elif path.endswith("/job_status"):
        return job_status(request)
    else:
        return json.dumps({"error": f"Path {path} not found"}), 404


def _create_cloud_task(queue_path: str, handler_url: str, payload: dict):
    """Creates a Cloud Task to call the specified handler."""
    from google.cloud import tasks_v2

    client = tasks_v2.CloudTasksClient()

    task = {
        "http_request": {
            "http_method": tasks_v2.HttpMethod.POST,
            "url": handler_url,
            "headers": {"Content-Type": "application/json"},
            "body": json.dumps(payload).encode(),
            "oidc_token": {
                "service_account_email": f"{PROJECT_ID}@appspot.gserviceaccount.com"
            }
        }
    }

    response = client.create_task(parent=queue_path, task=task)
    get_logger().debug(f"Created task: {response.name}")
    return response.name


def _load_book_text(gcs: GcsService, book_id: str) -> ExtractedText:
    source = gcs.read_source_file(book_id)
    if source is None:
        raise FileNotFoundError("Original file not available for enhancement.")
    content, filename = source
    return TextExtractor().extract_bytes(content, filename)


@functions_framework.http
def analyze_book(request):
    """
    Initial Receiver.

    1. Receives book_id (and optional title/author/model).
    2. Generates job_id and records it as queued.
    3. Enqueues a 'run_analysis' task and returns immediately.
    """
    logger = StructuredLogger()

    try:
        request_json = request.get_json(silent=True)
        if not request_json or not request_json.get('book_id'):
            logger.error("Invalid request", error="book_id required")
            return json.dumps({'error': 'book_id required'}), 400

        book_id = request_json['book_id']
        job_id = str(uuid.uuid4())

        set_global_context(job_id, book_id)
        logger = JobLogger(job_id, book_id)
        logger.info("New book analysis request", title=request_json.get('title'))

        gcs = GcsService()
        queue_path = f"projects/{PROJECT_ID}/locations/{REGION}/queues/{QUEUE_NAME}"
        payload = {
            "job_id": job_id,
            "book_id": book_id,
            "title": request_json.get('title'),
            "author": request_json.get('author'),
            "model": request_json.get('model'),
        }
        _create_cloud_task(queue_path, f"{FUNCTION_URL}/run_analysis", payload)
        JobTracker(gcs, job_id).mark_queued(book_id)

        logger.info("Book analysis accepted", job_id=job_id, status="queued")
        return json.dumps({
            'status': 'accepted',
            'job_id': job_id,
            'message': 'Book analysis started in background'
        }), 200

    except Exception as e:
        logger.error("Error in analyze_book", error=str(e))
        return json.dumps({'error': str(e)}), 500


@functions_framework.http
def enhance_summary(request):
    """
    Enhances a stored summary.

    Payload: {book_id, mode: all|selected|section, gap_ids?, section?, preview?}
    "all" takes every high and medium severity gap. With preview the enhanced
    summary is returned next to the original and nothing is saved.
    """
    logger = get_logger()
    data = request.get_json(silent=True) or {}
    book_id = data.get('book_id')
    mode = data.get('mode', 'all')
    preview = bool(data.get('preview', False))

    if not book_id:
        return json.dumps({'error': 'book_id required'}), 400
    if mode not in ENHANCE_MODES:
        return json.dumps({'error': f"mode must be one of {', '.join(ENHANCE_MODES)}"}), 400

    set_global_context(book_id=book_id)
    gcs = GcsService()

    metadata = gcs.get_book_metadata(book_id)
    if metadata is None:
        return json.dumps({'error': 'Book not found.'}), 404
    current_summary = gcs.get_summary(book_id)
    if current_summary is None:
        return json.dumps({'error': 'Summary not found.'}), 404

    try:
        extracted = _load_book_text(gcs, book_id)
    except (FileNotFoundError, ExtractionError) as e:
        return json.dumps({'error': str(e)}), 400
    except Exception as e:
        logger.error(f"Error reading original file: {e}")
        return json.dumps({'error': 'Could not read the original file.'}), 500

    if not extracted.text.strip():
        return json.dumps({'error': 'No readable text found in the original file.'}), 400

    title = metadata.get('title')
    author = metadata.get('author')
    report = detect_gaps(extracted.text, current_summary, title, author)
    gaps = select_gaps(report, mode, data.get('gap_ids'), data.get('section'))
    if not gaps:
        return json.dumps({'error': 'No gaps selected for enhancement.'}), 400

    logger.info(f"Starting enhancement for {len(gaps)} gaps (preview: {preview})")
    try:
        enhanced, changes = EnhancementService().enhance_summary(
            extracted.text, current_summary, gaps, title, author
        )
    except Exception as e:
        logger.error(f"Error during enhancement: {e}")
        if is_rate_limit_error(e):
            return json.dumps({
                'error': RATE_LIMIT_MESSAGE,
                'changes': [],
                'warnings': ["Rate limit exceeded - Cannot process enhancements right now", f"Error: {e}"],
            }), 429
        return json.dumps({
            'error': f"Enhancement failed: {e}",
            'changes': [],
            'warnings': ["Enhancement failed", f"Error: {e}"],
        }), 500

    enhanced_ids = [g.id for g in gaps]

    if preview:
        if changes:
            message = f"Generated preview for {len(gaps)} gap(s) with {len(changes)} change(s)"
            warnings = []
        else:
            message = (f"Enhancement attempted for {len(gaps)} gap(s) but no changes were generated. "
                       "Check server logs for details.")
            warnings = [
                "No changes were generated. Provider calls may have failed, returned empty "
                "responses, or the book context was too short.",
            ]
        return json.dumps({
            'success': True,
            'preview': True,
            'message': message,
            'enhancedSummary': enhanced,
            'originalSummary': current_summary,
            'changes': [c.to_dict() for c in changes],
            'enhancedGaps': enhanced_ids,
            'warnings': warnings,
        }, ensure_ascii=False), 200

    try:
        gcs.save_summary(book_id, enhanced)
    except Exception as e:
        logger.error(f"Error saving enhanced summary: {e}")
        return json.dumps({'error': f"Failed to save enhanced summary: {e}"}), 500

    return json.dumps({
        'success': True,
        'message': f"Successfully enhanced {len(gaps)} gap(s)",
        'enhancedGaps': enhanced_ids,
        'changes': [c.to_dict() for c in changes],
        'gapReport': {
            'remainingGaps': report.total_gaps - len(gaps),
        },
    }, ensure_ascii=False), 200


@functions_framework.http
def gap_report(request):
    """Gap report for a stored summary, without enhancing anything."""
    book_id = request.args.get('book_id')
    if not book_id:
        return json.dumps({'error': 'book_id required'}), 400

    gcs = GcsService()
    metadata = gcs.get_book_metadata(book_id)
    current_summary = gcs.get_summary(book_id)
    if metadata is None or current_summary is None:
        return json.dumps({'error': 'Book not found.'}), 404

    try:
        extracted = _load_book_text(gcs, book_id)
        report = detect_gaps(extracted.text, current_summary, metadata.get('title'), metadata.get('author'))
    except (FileNotFoundError, ExtractionError) as e:
        return json.dumps({'error': str(e)}), 400
    except Exception as e:
        get_logger().error(f"Gap analysis error: {e}")
        return json.dumps({'error': str(e)}), 500

    return json.dumps({'success': True, 'gapReport': report.to_dict()}, ensure_ascii=False), 200


@functions_framework.http
def job_status(request):
    job_id = request.args.get('job_id')
    if not job_id:
        return json.dumps({'error': 'job_id required'}), 400

    status = JobTracker(GcsService(), job_id).get_status()
    if status is None:
        return json.dumps({'error': f'Job {job_id} not found'}), 404
    return json.dumps(status, ensure_ascii=False), 200
