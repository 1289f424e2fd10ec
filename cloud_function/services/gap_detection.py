"""
Gap Detection - compares a stored summary against the book text.

Everything here is heuristic: chapter headings are found line by line,
expected counts scale with the book's word count, and length thresholds
mark sections as shallow. The resulting gaps drive the enhancement flow.
"""
import math
import re
from typing import Any, Dict, List, Tuple

from models.book import Gap, GapReport
from models.summary import is_structured_summary

MAX_BOOK_CONTEXT_CHARS = 15000
MAX_HEADING_CHARS = 200
WORDS_PER_ESTIMATED_CHAPTER = 3000
WORDS_PER_KEY_IDEA = 5000

SHALLOW_CHAPTER_CHARS = 500
VERY_SHALLOW_CHAPTER_CHARS = 200
SHALLOW_KEY_IDEA_CHARS = 800
VERY_SHALLOW_KEY_IDEA_CHARS = 400

# Tried per line in order; group 1 (or the whole match) is the chapter title
HEADING_PATTERNS = (
    re.compile(r'^Chapter\s+\d+[:\s]+(.+)$', re.IGNORECASE),
    re.compile(r'^(Chapter\s+\d+)$', re.IGNORECASE),
    re.compile(r'^Part\s+\d+[:\s]+(.+)$', re.IGNORECASE),
    re.compile(r'^\d+\.\s+(.+)$', re.IGNORECASE),
)

QUOTE_PATTERNS = (
    re.compile(r'"[^"]{20,200}"'),
    re.compile(r"'[^']{20,200}'"),
)
MAX_QUOTES_PER_PATTERN = 10


def count_words(text: str) -> int:
    return len(re.split(r'\s+', text))


def extract_book_chapters(book_text: str) -> List[Dict[str, Any]]:
    """Chapter headings as {title, start, end} line ranges."""
    lines = book_text.split('\n')
    chapters: List[Dict[str, Any]] = []

    for i, raw_line in enumerate(lines):
        line = raw_line.strip()
        if len(line) >= MAX_HEADING_CHARS:
            continue
        for pattern in HEADING_PATTERNS:
            match = pattern.match(line)
            if match:
                if chapters:
                    chapters[-1]["end"] = i
                chapters.append({"title": match.group(1) or match.group(0), "start": i, "end": len(lines)})
                break

    if not chapters:
        estimated = max(1, count_words(book_text) // WORDS_PER_ESTIMATED_CHAPTER)
        for i in range(estimated):
            chapters.append({
                "title": f"Section {i + 1}",
                "start": (i * len(lines)) // estimated,
                "end": ((i + 1) * len(lines)) // estimated,
            })

    return chapters


def _chapter_text(book_text: str, start: int, end: int) -> str:
    return '\n'.join(book_text.split('\n')[start:end])


def detect_chapter_gaps(book_text: str, summary_chapters: List[Any]) -> List[Gap]:
    gaps = []
    entries = [ch if isinstance(ch, dict) else {} for ch in summary_chapters]
    summary_titles = [str(ch.get("title", "")).lower() for ch in entries]

    for index, chapter in enumerate(extract_book_chapters(book_text)):
        title = chapter["title"].lower()
        if any(title in existing or existing in title for existing in summary_titles):
            continue

        context = _chapter_text(book_text, chapter["start"], chapter["end"]) or book_text[:MAX_BOOK_CONTEXT_CHARS]
        gaps.append(Gap(
            id=f"missing-chapter-{index}",
            type="missing_chapter",
            severity="high",
            title=f"Missing Chapter: {chapter['title']}",
            description="This chapter appears in the book but is not included in the summary.",
            section="chapters",
            book_context=context[:MAX_BOOK_CONTEXT_CHARS],
        ))

    for index, chapter in enumerate(entries):
        text = str(chapter.get("summary", ""))
        if len(text) >= SHALLOW_CHAPTER_CHARS:
            continue
        gaps.append(Gap(
            id=f"shallow-chapter-{index}",
            type="shallow_chapter",
            severity="high" if len(text) < VERY_SHALLOW_CHAPTER_CHARS else "medium",
            title=f"Shallow Chapter: {chapter.get('title', '')}",
            description=f"This chapter summary is very brief ({len(text)} characters). Consider adding more detail.",
            section="chapters",
            current_value=text,
            suggested_length=1500,
        ))

    return gaps


def detect_key_idea_gaps(book_text: str, key_ideas: List[Any]) -> List[Gap]:
    gaps = []
    expected = max(3, min(15, count_words(book_text) // WORDS_PER_KEY_IDEA))

    missing_count = expected - len(key_ideas)
    for i in range(max(0, missing_count)):
        gaps.append(Gap(
            id=f"missing-key-idea-{i}",
            type="missing_key_idea",
            severity="high" if missing_count > 3 else "medium",
            title="Missing Key Idea",
            description="Based on book length, there should be more key ideas.",
            section="key_ideas",
        ))

    for index, idea in enumerate(key_ideas):
        if not isinstance(idea, dict):
            continue
        text = str(idea.get("text", ""))
        if len(text) >= SHALLOW_KEY_IDEA_CHARS:
            continue
        gaps.append(Gap(
            id=f"shallow-key-idea-{index}",
            type="shallow_key_idea",
            severity="high" if len(text) < VERY_SHALLOW_KEY_IDEA_CHARS else "medium",
            title=f"Shallow Key Idea: {idea.get('title', '')}",
            description=f"This key idea needs more detail ({len(text)} characters).",
            section="key_ideas",
            current_value=text,
            suggested_length=1200,
        ))

    return gaps


def detect_insight_gaps(book_text: str, insights: List[Any]) -> List[Gap]:
    expected = max(3, min(10, count_words(book_text) // WORDS_PER_KEY_IDEA))
    missing_count = expected - len(insights)
    return [
        Gap(
            id=f"missing-insight-{i}",
            type="missing_insight",
            severity="medium" if missing_count > 3 else "low",
            title="Missing Actionable Insight",
            description="Could add more actionable insights based on book content.",
            section="actionable_insights",
        )
        for i in range(max(0, missing_count))
    ]


def find_potential_quotes(book_text: str) -> List[str]:
    quotes = []
    for pattern in QUOTE_PATTERNS:
        quotes.extend(pattern.findall(book_text)[:MAX_QUOTES_PER_PATTERN])
    return quotes


def detect_quote_gaps(book_text: str, quotes: List[Any]) -> List[Gap]:
    expected = max(3, min(len(find_potential_quotes(book_text)), 10))
    missing_count = expected - len(quotes)
    return [
        Gap(
            id=f"missing-quote-{i}",
            type="missing_quote",
            severity="low",
            title="Missing Quote",
            description="Could add more memorable quotes from the book.",
            section="quotes",
        )
        for i in range(max(0, missing_count))
    ]


def detect_summary_gaps(book_text: str, quick_summary: str) -> List[Gap]:
    # Expected length is in words; summary length is in characters (~5 per word)
    expected_words = max(500, min(3000, count_words(book_text) / 10))
    if len(quick_summary) >= expected_words * 5:
        return []
    return [Gap(
        id="shallow-summary",
        type="shallow_summary",
        severity="high" if len(quick_summary) < expected_words * 3 else "medium",
        title="Quick Summary Could Be More Comprehensive",
        description="The quick summary is shorter than expected for a book of this length.",
        section="quick_summary",
        current_value=quick_summary,
        suggested_length=int(expected_words * 5),
    )]


def build_recommendations(gaps: List[Gap], by_severity: Dict[str, int]) -> List[str]:
    recommendations = []
    if by_severity["high"] > 0:
        recommendations.append(f"Priority: {by_severity['high']} high-priority gaps should be addressed first.")

    missing_chapters = sum(1 for g in gaps if g.type == "missing_chapter")
    if missing_chapters:
        recommendations.append(f"Found {missing_chapters} missing chapters. Consider adding these for completeness.")

    shallow_chapters = sum(1 for g in gaps if g.type == "shallow_chapter")
    if shallow_chapters:
        recommendations.append(
            f"{shallow_chapters} chapters could use more detail. Enhancing these will improve the summary quality."
        )

    if not gaps:
        recommendations.append("Summary looks comprehensive! No major gaps detected.")
    return recommendations


def _list_field(summary: Dict[str, Any], key: str) -> List[Any]:
    value = summary.get(key)
    return value if isinstance(value, list) else []


def detect_gaps(book_text: str, summary: Any, title: str = None, author: str = None) -> GapReport:
    if not is_structured_summary(summary):
        return GapReport(
            recommendations=["Summary is in raw text format. Gap detection requires structured format."],
        )

    gaps: List[Gap] = []
    gaps += detect_chapter_gaps(book_text, _list_field(summary, "chapters"))
    gaps += detect_key_idea_gaps(book_text, _list_field(summary, "key_ideas"))
    gaps += detect_insight_gaps(book_text, _list_field(summary, "actionable_insights"))
    gaps += detect_quote_gaps(book_text, _list_field(summary, "quotes"))
    gaps += detect_summary_gaps(book_text, summary["quick_summary"])

    by_severity = {
        severity: sum(1 for g in gaps if g.severity == severity)
        for severity in ("high", "medium", "low")
    }

    return GapReport(
        gaps=gaps,
        gaps_by_severity=by_severity,
        recommendations=build_recommendations(gaps, by_severity),
        estimated_enhancement_time=math.ceil(len(gaps) * 2.5 + by_severity["high"] * 1.5),
    )


def select_gaps(report: GapReport, mode: str, gap_ids: List[str] = None, section: str = None) -> List[Gap]:
    """Gaps to enhance for a request: "all" (high and medium), "selected" (by id) or "section"."""
    if mode == "all":
        return [g for g in report.gaps if g.severity in ("high", "medium")]
    if mode == "selected":
        wanted = set(gap_ids or [])
        return [g for g in report.gaps if g.id in wanted]
    if mode == "section":
        return [g for g in report.gaps if g.section == section]
    return []


def split_by_section(gaps: List[Gap]) -> List[Tuple[str, List[Gap]]]:
    """Groups gaps by section, keeping first-seen section order."""
    grouped: Dict[str, List[Gap]] = {}
    for gap in gaps:
        grouped.setdefault(gap.section, []).append(gap)
    return list(grouped.items())
