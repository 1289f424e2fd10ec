"""
Coverage Analyzer - decides which detected chapters a summary covers.

Matching is loose: a chapter counts as covered when its full
title, any title word longer than two characters, a summary chapter title,
or a "chapter N" style reference appears in the summary. Missing text marked
as covered is not detected here.
"""
import math
import re
from typing import Any, List, Optional

from models.book import BookStructure, CoverageReport
from models.summary import flatten_summary_text, is_structured_summary
from services.logging_service import get_logger

# Coverage at or above this percentage is accepted even with missing chapters.
COVERAGE_THRESHOLD = 80

NUMBER_WORDS = ('zero', 'one', 'two', 'three', 'four', 'five', 'six', 'seven', 'eight', 'nine', 'ten')
ROMAN_NUMERALS = {1: 'I', 2: 'II', 3: 'III', 4: 'IV', 5: 'V', 6: 'VI', 7: 'VII', 8: 'VIII', 9: 'IX', 10: 'X'}


def _parse_int(value: str) -> Optional[int]:
    match = re.match(r'\s*([+-]?\d+)', value)
    return int(match.group(1)) if match else None


def number_to_word(num: str) -> str:
    """"3" -> "three" for 0-10; anything else is returned unchanged."""
    n = _parse_int(num)
    if n is not None and 0 <= n < len(NUMBER_WORDS):
        return NUMBER_WORDS[n]
    return num


def number_to_roman(num: str) -> str:
    """"4" -> "IV" for 1-10; anything else is returned unchanged."""
    n = _parse_int(num)
    if n is not None and n in ROMAN_NUMERALS:
        return ROMAN_NUMERALS[n]
    return num


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def check_chapter_number_reference(chapter_title: str, summary_text: str, structure: BookStructure) -> bool:
    chapter = next((ch for ch in structure.chapters if ch.title.lower() == chapter_title), None)
    if chapter is None or not chapter.number:
        return False

    number = chapter.number
    candidates = (
        f"chapter {number}",
        f"chapter {number}:",
        f"{number}.",
        f"chapter {number_to_word(number)}",
        f"chapter {number_to_roman(number)}",
    )
    return any(candidate.lower() in summary_text for candidate in candidates)


def is_chapter_covered(chapter_title: str, summary_text: str, summary: Any, structure: BookStructure) -> bool:
    if chapter_title in summary_text:
        return True

    title_words = [word for word in chapter_title.split() if len(word) > 2]
    if any(word in summary_text for word in title_words):
        return True

    if is_structured_summary(summary):
        for chapter in summary.get("chapters") or []:
            if isinstance(chapter, dict) and chapter_title in str(chapter.get("title", "")).lower():
                return True

    return check_chapter_number_reference(chapter_title, summary_text, structure)


def analyze_coverage(structure: BookStructure, summary: Any) -> CoverageReport:
    titles: List[str] = [ch.title.lower() for ch in structure.chapters]
    summary_text = flatten_summary_text(summary)

    covered: List[str] = []
    missing: List[str] = []
    for title in titles:
        if is_chapter_covered(title, summary_text, summary, structure):
            covered.append(title)
        else:
            missing.append(title)

    percentage = round_half_up(len(covered) / len(titles) * 100) if titles else 100
    needs_additional_pass = bool(missing) and percentage < COVERAGE_THRESHOLD

    get_logger().info(
        f"Coverage: {percentage}% ({len(covered)}/{len(titles)} chapters)",
        chapters_missing=missing,
    )

    return CoverageReport(
        chapters_covered=covered,
        chapters_missing=missing,
        coverage_percentage=percentage,
        needs_additional_pass=needs_additional_pass,
    )
