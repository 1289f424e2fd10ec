"""
Summary enhancement.

Fills chapter gaps in a stored summary one gap at a time: missing chapters
get a new summary, shallow chapters get an expanded one. Gemini is the
primary provider and OpenAI the fallback. A rate limit that both providers
fail on aborts the whole batch; any other per-gap failure is skipped.
"""
import copy
import re
from typing import Any, Dict, List, Optional, Tuple

from models.book import EnhancementChange, Gap
from models.summary import LIST_FIELDS, is_structured_summary
from services.errors import RateLimitError, is_rate_limit_error
from services.gap_detection import split_by_section
from services.logging_service import get_logger
from services.rate_limiter import FixedDelayRateLimiter

MIN_CONTEXT_CHARS = 100
MIN_RESPONSE_CHARS = 100
MIN_BOOK_CONTEXT_CHARS = 500
MISSING_CHAPTER_SAMPLE_CHARS = 15000
SHALLOW_CHAPTER_SAMPLE_CHARS = 5000
CHAPTER_PROMPT_CONTEXT_CHARS = 10000
DETAIL_PROMPT_CONTEXT_CHARS = 5000

MISSING_CHAPTER_PREFIX = "Missing Chapter: "


def _truncate(text: str, limit: int) -> str:
    return text[:limit] + ("... (truncated)" if len(text) > limit else "")


def build_chapter_summary_prompt(chapter_text: str, chapter_title: str,
                                 book_title: Optional[str], book_author: Optional[str]) -> str:
    return f"""You are enhancing a book summary. Generate a comprehensive, detailed chapter summary (10-15 paragraphs, 1500+ words) for the following chapter from the book.

Book: {book_title or "Unknown"}
Author: {book_author or "Unknown"}
Chapter Title: {chapter_title}

Chapter Content:
{_truncate(chapter_text, CHAPTER_PROMPT_CONTEXT_CHARS)}

Generate a detailed summary that includes:
- The main themes and concepts
- Key ideas and principles
- Important examples and case studies
- Practical applications
- Connections to other parts of the book

Write in a comprehensive, educational style suitable for a detailed book summary."""


def build_chapter_detail_prompt(current_summary: str, context: str,
                                book_title: Optional[str], book_author: Optional[str]) -> str:
    return f"""You are enhancing an existing book chapter summary. The current summary is too brief and needs more detail.

Book: {book_title or "Unknown"}
Author: {book_author or "Unknown"}

Current Summary ({len(current_summary)} characters):
{current_summary}

Relevant Book Context:
{_truncate(context, DETAIL_PROMPT_CONTEXT_CHARS)}

Enhance this summary by:
1. Keeping all existing content
2. Adding significantly more detail (aim for 1500+ characters)
3. Including more examples, explanations, and practical applications
4. Expanding on key concepts mentioned
5. Adding connections to broader themes

Write an enhanced version that is comprehensive and detailed while maintaining the style and quality of the original."""


class ChapterSummaryGenerator:
    """Gemini-first text generation with an OpenAI fallback."""

    def __init__(self, gemini=None, openai=None):
        """
        Args:
            gemini: GeminiService-like client, or None when Gemini is not configured
            openai: OpenAIService-like client, or None when OpenAI is not configured
        """
        self.gemini = gemini
        self.openai = openai

    @classmethod
    def from_config(cls) -> "ChapterSummaryGenerator":
        from services.gemini_service import GeminiService, is_gemini_configured
        from services.openai_service import OpenAIService

        gemini = GeminiService() if is_gemini_configured else None
        return cls(gemini=gemini, openai=OpenAIService())

    def _generate_with_openai(self, prompt: str) -> Optional[str]:
        if self.openai is None:
            get_logger().error("OpenAI API key not configured")
            return None
        return self.openai.generate_text(prompt, temperature=0.35, max_completion_tokens=4000)

    def _generate(self, prompt: str, label: str) -> Optional[str]:
        logger = get_logger()

        if self.gemini is None:
            logger.info(f"[{label}] Gemini API key not configured, falling back to OpenAI")
            return self._generate_with_openai(prompt)

        try:
            response = (self.gemini.generate_text(prompt, temperature=0.35, max_output_tokens=4000) or "").strip()
            if len(response) < MIN_RESPONSE_CHARS:
                raise ValueError(f"Gemini response too short or empty. Length: {len(response)} chars")
            return response

        except Exception as e:
            rate_limited = is_rate_limit_error(e)
            logger.warning(
                f"[{label}] Gemini failed{' (rate limit)' if rate_limited else ''}, falling back to OpenAI: {e}"
            )

            try:
                fallback = self._generate_with_openai(prompt)
                if fallback:
                    logger.info(f"[{label}] Generated using OpenAI fallback")
                    return fallback
            except Exception as openai_error:
                logger.error(f"[{label}] OpenAI fallback also failed: {openai_error}")

            if rate_limited:
                raise RateLimitError(
                    "Gemini API rate limit exceeded. Tried OpenAI fallback but it also failed. "
                    f"Please wait or upgrade your plan. Error: {e}"
                ) from e
            raise

    def generate_chapter_summary(self, chapter_text: str, chapter_title: str,
                                 book_title: Optional[str] = None, book_author: Optional[str] = None) -> Optional[str]:
        if not chapter_text or len(chapter_text.strip()) < MIN_CONTEXT_CHARS:
            get_logger().warning(f"Context too short for chapter '{chapter_title}': {len(chapter_text or '')} chars")
            return None
        prompt = build_chapter_summary_prompt(chapter_text, chapter_title, book_title, book_author)
        return self._generate(prompt, "generate_chapter_summary")

    def enhance_chapter_detail(self, current_summary: str, context: str,
                               book_title: Optional[str] = None, book_author: Optional[str] = None) -> Optional[str]:
        if not context or len(context.strip()) < MIN_CONTEXT_CHARS:
            get_logger().warning(f"Context too short for chapter expansion: {len(context or '')} chars")
            return None
        prompt = build_chapter_detail_prompt(current_summary, context, book_title, book_author)
        return self._generate(prompt, "enhance_chapter_detail")


def shallow_chapter_index(gap_id: str) -> int:
    """"shallow-chapter-3" -> 3; -1 when the id carries no usable index."""
    parts = gap_id.split("-")
    if len(parts) <= 2:
        return -1
    match = re.match(r'\s*([+-]?\d+)', parts[-1])
    return int(match.group(1)) if match else -1


def ensure_summary_fields(enhanced: Dict[str, Any], original: Dict[str, Any]) -> Dict[str, Any]:
    """Restores any section the enhancement left empty from the original summary."""
    for key in ("quick_summary", "short_summary"):
        if not enhanced.get(key):
            enhanced[key] = original.get(key) or ""
    for key in LIST_FIELDS:
        if not enhanced.get(key):
            enhanced[key] = original.get(key) or []
    return enhanced


class EnhancementService:
    def __init__(self, generator: Optional[ChapterSummaryGenerator] = None,
                 rate_limiter: Optional[FixedDelayRateLimiter] = None):
        self.generator = generator or ChapterSummaryGenerator.from_config()
        self.rate_limiter = rate_limiter or FixedDelayRateLimiter()

    def enhance_summary(self, book_text: str, current_summary: Dict[str, Any], gaps: List[Gap],
                        title: Optional[str] = None,
                        author: Optional[str] = None) -> Tuple[Dict[str, Any], List[EnhancementChange]]:
        """
        Returns (enhanced summary, changes). The input summary is not modified.
        RateLimitError propagates and aborts the remaining gaps.
        """
        logger = get_logger()
        summary = copy.deepcopy(current_summary)
        changes: List[EnhancementChange] = []

        for section, section_gaps in split_by_section(gaps):
            if section == "chapters":
                self._enhance_chapters(book_text, summary, section_gaps, title, author, changes)
            else:
                if section in LIST_FIELDS and not isinstance(summary.get(section), list):
                    summary[section] = []
                logger.info(f"Enhancement of {section} is not supported yet ({len(section_gaps)} gaps skipped)")

        if is_structured_summary(current_summary):
            ensure_summary_fields(summary, current_summary)

        logger.info(f"Summary enhanced. {len(changes)} changes tracked.")
        return summary, changes

    def _enhance_chapters(self, book_text: str, summary: Dict[str, Any], gaps: List[Gap],
                          title: Optional[str], author: Optional[str], changes: List[EnhancementChange]):
        logger = get_logger()
        if not isinstance(summary.get("chapters"), list):
            summary["chapters"] = []
        chapters = summary["chapters"]

        for i, gap in enumerate(gaps):
            logger.info(f"Processing gap {i + 1} of {len(gaps)}: {gap.id}")
            try:
                if gap.type == "missing_chapter":
                    change = self._add_missing_chapter(book_text, chapters, gap, title, author)
                elif gap.type == "shallow_chapter":
                    change = self._expand_shallow_chapter(book_text, chapters, gap, title, author)
                else:
                    change = None
                if change:
                    changes.append(change)

            except Exception as e:
                if is_rate_limit_error(e):
                    logger.error(f"Rate limit reached on gap {gap.id}, stopping enhancement")
                    raise
                logger.error(f"Error processing gap {gap.id}: {e}")

            if i < len(gaps) - 1:
                self.rate_limiter.wait()

    def _add_missing_chapter(self, book_text: str, chapters: List[Any], gap: Gap,
                             title: Optional[str], author: Optional[str]) -> Optional[EnhancementChange]:
        context = gap.book_context or ""
        if len(context) < MIN_BOOK_CONTEXT_CHARS:
            context = book_text[:MISSING_CHAPTER_SAMPLE_CHARS]

        generated = self.generator.generate_chapter_summary(context, gap.title, title, author)
        if not generated or not generated.strip():
            get_logger().warning(f"Generated summary is empty for chapter: {gap.title}")
            return None

        chapter_title = gap.title.replace(MISSING_CHAPTER_PREFIX, "")
        chapters.append({"title": chapter_title, "summary": generated.strip()})
        return EnhancementChange(
            gap_id=gap.id,
            type=gap.type,
            section=gap.section,
            title=chapter_title,
            enhanced=generated.strip(),
            action="added",
        )

    def _expand_shallow_chapter(self, book_text: str, chapters: List[Any], gap: Gap,
                                title: Optional[str], author: Optional[str]) -> Optional[EnhancementChange]:
        index = shallow_chapter_index(gap.id)
        if index < 0 or index >= len(chapters) or not isinstance(chapters[index], dict):
            get_logger().warning(f"Invalid chapter index: {index} for gap {gap.id}")
            return None

        chapter = chapters[index]
        original = str(chapter.get("summary", ""))
        context = gap.book_context or book_text[:SHALLOW_CHAPTER_SAMPLE_CHARS]

        enhanced = self.generator.enhance_chapter_detail(original, context, title, author)
        if not enhanced or not enhanced.strip():
            get_logger().warning(f"Enhanced summary is empty for chapter at index {index}")
            return None

        chapter["summary"] = enhanced.strip()
        return EnhancementChange(
            gap_id=gap.id,
            type=gap.type,
            section=gap.section,
            title=str(chapter.get("title", "")),
            original=original,
            enhanced=enhanced.strip(),
            action="modified",
        )
