from models.book import BookStructure, Chapter
from services.coverage_analyzer import (
    COVERAGE_THRESHOLD,
    analyze_coverage,
    number_to_roman,
    number_to_word,
)
from fakes import structured_summary


def _structure(*titles, numbers=None):
    numbers = numbers or [None] * len(titles)
    chapters = [Chapter(title=t, number=n) for t, n in zip(titles, numbers)]
    return BookStructure(title="Book", chapters=chapters, total_chapters=len(chapters))


def test_no_chapters_means_full_coverage():
    report = analyze_coverage(BookStructure(title="Book"), {"raw_text": "anything"})
    assert report.coverage_percentage == 100
    assert report.needs_additional_pass is False
    assert report.chapters_covered == [] and report.chapters_missing == []


def test_exact_title_match_is_case_insensitive():
    structure = _structure("Atomic Habits")
    report = analyze_coverage(structure, structured_summary(quick="ATOMIC HABITS explains small changes."))
    assert report.chapters_covered == ["atomic habits"]
    assert report.coverage_percentage == 100


def test_single_title_word_is_enough():
    structure = _structure("Zephyr Quandary")
    report = analyze_coverage(structure, {"raw_text": "A long note about quandary resolution."})
    assert report.chapters_covered == ["zephyr quandary"]


def test_short_title_words_are_ignored():
    structure = _structure("An Ox")
    report = analyze_coverage(structure, {"raw_text": "an unrelated note"})
    assert report.chapters_missing == ["an ox"]


def test_roman_numeral_chapter_reference():
    structure = _structure("Xyloquent Mbrella", numbers=["4"])
    report = analyze_coverage(structure, {"raw_text": "As Chapter IV shows, progress compounds."})
    assert report.chapters_covered == ["xyloquent mbrella"]


def test_word_number_chapter_reference():
    structure = _structure("Xyloquent Mbrella", numbers=["3"])
    report = analyze_coverage(structure, {"raw_text": "In chapter three we learn a lot."})
    assert report.chapters_covered == ["xyloquent mbrella"]


def test_summary_chapter_entries_are_searched():
    structure = _structure("Quorlam")
    summary = structured_summary(quick="Intro.", chapters=[{"title": "Quorlam", "summary": "Detail."}])
    assert analyze_coverage(structure, summary).chapters_covered == ["quorlam"]


def test_threshold_boundary_does_not_need_extra_pass():
    structure = _structure("Alphaq", "Bravoq", "Charlieq", "Deltaq", "Echoq")
    report = analyze_coverage(structure, {"raw_text": "alphaq bravoq charlieq deltaq"})
    assert report.coverage_percentage == COVERAGE_THRESHOLD
    assert report.chapters_missing == ["echoq"]
    assert report.needs_additional_pass is False


def test_below_threshold_needs_extra_pass():
    structure = _structure("Alphaq", "Bravoq", "Charlieq", "Deltaq")
    report = analyze_coverage(structure, {"raw_text": "alphaq bravoq charlieq"})
    assert report.coverage_percentage == 75
    assert report.needs_additional_pass is True


def test_percentage_rounds_half_up():
    titles = ["Alphaq", "Bravoq", "Charlieq", "Deltaq", "Echoq", "Foxtrotq", "Golfq", "Hotelq"]
    report = analyze_coverage(_structure(*titles), {"raw_text": "alphaq"})
    assert report.coverage_percentage == 13


def test_covered_and_missing_partition_titles():
    structure = _structure("Alphaq", "Bravoq", "Charlieq")
    report = analyze_coverage(structure, {"raw_text": "bravoq"})
    assert sorted(report.chapters_covered + report.chapters_missing) == ["alphaq", "bravoq", "charlieq"]


def test_number_helpers_pass_through_out_of_range_values():
    assert number_to_word("3") == "three"
    assert number_to_word("0") == "zero"
    assert number_to_word("11") == "11"
    assert number_to_word("iv") == "iv"
    assert number_to_roman("4") == "IV"
    assert number_to_roman("10") == "X"
    assert number_to_roman("0") == "0"
    assert number_to_roman("12") == "12"


def test_any_long_title_word_grants_coverage():
    structure = _structure("Deep Work")
    report = analyze_coverage(structure, {"raw_text": "Going deep on focus."})
    assert report.chapters_covered == ["deep work"]


def test_fifteen_is_returned_unchanged():
    assert number_to_word("15") == "15"
    assert number_to_roman("15") == "15"
