import json

import pytest

from services.errors import AnalysisError
from services.multi_pass_analyzer import MultiPassBookAnalyzer, analyze_book_with_multi_pass
from fakes import FakeLLM, structured_summary

BOOK = "Chapter 1: Alphaq\nAlpha body text.\nChapter 2: Bravoq\nBravo body text."

STRUCTURE_JSON = json.dumps({
    "title": "Book",
    "chapters": [{"number": "1", "title": "Alphaq"}, {"number": "2", "title": "Bravoq"}],
    "totalChapters": 2,
    "hasTableOfContents": False,
})


def test_full_coverage_skips_gap_fill():
    llm = FakeLLM(
        complete_responses=[STRUCTURE_JSON],
        summaries=[structured_summary(quick="Covers alphaq and bravoq")],
    )

    result = analyze_book_with_multi_pass(BOOK, "Book", llm=llm)

    assert result.coverage.coverage_percentage == 100
    assert result.coverage.needs_additional_pass is False
    assert len(llm.summary_calls) == 1
    assert '"totalChapters": 2' in llm.summary_calls[0]["custom_prompt"]


def test_low_coverage_runs_gap_fill_and_recomputes():
    llm = FakeLLM(
        complete_responses=[STRUCTURE_JSON],
        summaries=[
            structured_summary(quick="Overview of alphaq"),
            structured_summary(quick="Covers bravoq"),
        ],
    )
    stages = []

    result = MultiPassBookAnalyzer(BOOK, "Book", llm=llm, stage_listener=stages.append).analyze()

    assert stages == ["structure_detection", "initial_summary", "coverage_analysis", "gap_fill"]
    assert result.summary["quick_summary"] == "Overview of alphaq\n\nCovers bravoq"
    assert result.coverage.coverage_percentage == 100
    assert result.coverage.chapters_missing == []
    assert "Missing Chapters: bravoq" in llm.summary_calls[1]["custom_prompt"]


def test_structure_failure_is_not_fatal():
    llm = FakeLLM(
        complete_responses=[RuntimeError("timeout")],
        summaries=[structured_summary(quick="Anything")],
    )

    result = MultiPassBookAnalyzer(BOOK, "Book", "Author", llm=llm).analyze()

    assert result.structure.chapters == []
    assert result.coverage.coverage_percentage == 100
    assert len(llm.summary_calls) == 1


def test_summary_failure_uses_single_pass_fallback():
    fallback = {"raw_text": "Prose summary", "ai_provider": "OpenRouter (m)"}
    llm = FakeLLM(
        complete_responses=[STRUCTURE_JSON],
        summaries=[RuntimeError("500 upstream"), fallback],
    )

    result = MultiPassBookAnalyzer(BOOK, "Book", "Author", llm=llm).analyze()

    assert result.summary == fallback
    assert result.structure.chapters == []
    assert result.structure.has_table_of_contents is False
    assert result.coverage.to_dict() == {
        "chaptersCovered": [],
        "chaptersMissing": [],
        "coveragePercentage": 100,
        "needsAdditionalPass": False,
    }
    fallback_call = llm.summary_calls[1]
    assert fallback_call["text"] == BOOK
    assert "custom_prompt" not in fallback_call


def test_fallback_failure_raises_analysis_error():
    llm = FakeLLM(
        complete_responses=[STRUCTURE_JSON],
        summaries=[RuntimeError("first"), RuntimeError("second")],
    )

    with pytest.raises(AnalysisError, match="Unable to analyze the book. Please try again."):
        MultiPassBookAnalyzer(BOOK, "Book", llm=llm).analyze()
