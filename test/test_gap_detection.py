import math

from models.book import Gap, GapReport
from services.gap_detection import (
    detect_gaps,
    extract_book_chapters,
    find_potential_quotes,
    select_gaps,
    split_by_section,
)
from fakes import structured_summary

BODY = "Plain narrative sentence without headings.\n" * 5
BOOK = "Chapter 1: Origins\n" + BODY + "Chapter 2: Growth\n" + BODY


def _by_id(report):
    return {g.id: g for g in report.gaps}


def test_raw_text_summary_has_no_gaps():
    report = detect_gaps(BOOK, {"raw_text": "prose"})
    assert report.total_gaps == 0
    assert report.recommendations == ["Summary is in raw text format. Gap detection requires structured format."]
    assert report.estimated_enhancement_time == 0


def test_chapter_headings_are_found_line_by_line():
    chapters = extract_book_chapters(BOOK)
    assert [c["title"] for c in chapters] == ["Origins", "Growth"]
    assert chapters[0]["end"] == chapters[1]["start"]


def test_long_lines_are_not_headings():
    text = "Chapter 1: " + "x" * 250 + "\n" + "word " * 10
    assert [c["title"] for c in extract_book_chapters(text)] == ["Section 1"]


def test_sections_are_estimated_without_headings():
    chapters = extract_book_chapters("word " * 6500)
    assert [c["title"] for c in chapters] == ["Section 1", "Section 2"]


def test_missing_and_shallow_chapters():
    summary = structured_summary(chapters=[{"title": "Origins", "summary": "x" * 300}])

    gaps = _by_id(detect_gaps(BOOK, summary))

    missing = gaps["missing-chapter-1"]
    assert missing.severity == "high"
    assert missing.title == "Missing Chapter: Growth"
    assert missing.book_context.startswith("Chapter 2: Growth")
    assert "missing-chapter-0" not in gaps

    shallow = gaps["shallow-chapter-0"]
    assert shallow.severity == "medium"
    assert shallow.current_value == "x" * 300
    assert shallow.suggested_length == 1500


def test_key_idea_and_insight_counts_scale_with_book():
    summary = structured_summary(key_ideas=[{"title": "Idea", "text": "y" * 300}])
    gaps = _by_id(detect_gaps(BOOK, summary))

    assert {"missing-key-idea-0", "missing-key-idea-1"} <= set(gaps)
    assert "missing-key-idea-2" not in gaps
    assert gaps["missing-key-idea-0"].severity == "medium"
    assert gaps["shallow-key-idea-0"].severity == "high"
    assert [gaps[f"missing-insight-{i}"].severity for i in range(3)] == ["low"] * 3


def test_quote_detection_limits():
    text = '"' + "a quoted passage of enough length" + '" and \'' + "another single quoted passage" + "'"
    assert len(find_potential_quotes(text)) == 2
    assert find_potential_quotes('"too short"') == []


def test_short_quick_summary_is_high_severity():
    gaps = _by_id(detect_gaps(BOOK, structured_summary(quick="Brief.")))
    gap = gaps["shallow-summary"]
    assert gap.severity == "high"
    assert gap.suggested_length == 2500
    assert gap.section == "quick_summary"


def test_report_totals_and_estimate():
    report = detect_gaps(BOOK, structured_summary(chapters=[{"title": "Origins", "summary": "short"}]))

    assert report.total_gaps == len(report.gaps)
    assert sum(report.gaps_by_severity.values()) == report.total_gaps
    high = report.gaps_by_severity["high"]
    assert report.estimated_enhancement_time == math.ceil(report.total_gaps * 2.5 + high * 1.5)
    assert report.recommendations[0] == f"Priority: {high} high-priority gaps should be addressed first."
    assert report.to_dict()["totalGaps"] == report.total_gaps


def _gap(gap_id, severity, section):
    return Gap(id=gap_id, type="t", severity=severity, title=gap_id, section=section)


def test_select_gaps_modes():
    report = GapReport(gaps=[
        _gap("a", "high", "chapters"),
        _gap("b", "low", "quotes"),
        _gap("c", "medium", "key_ideas"),
    ])
    assert [g.id for g in select_gaps(report, "all")] == ["a", "c"]
    assert [g.id for g in select_gaps(report, "selected", gap_ids=["b"])] == ["b"]
    assert [g.id for g in select_gaps(report, "section", section="quotes")] == ["b"]
    assert select_gaps(report, "everything") == []


def test_split_by_section_keeps_first_seen_order():
    gaps = [_gap("a", "high", "quotes"), _gap("b", "high", "chapters"), _gap("c", "low", "quotes")]
    grouped = split_by_section(gaps)
    assert [section for section, _ in grouped] == ["quotes", "chapters"]
    assert [g.id for g in grouped[0][1]] == ["a", "c"]
