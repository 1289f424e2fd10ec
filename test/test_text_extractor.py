import io

import pypdf
import pytest
from ebooklib import epub

from services.errors import ExtractionError
from services.text_extractor import TextExtractor, clean_extracted_text


def _write_epub(path, chapters):
    book = epub.EpubBook()
    book.set_identifier("book-1")
    book.set_title("Test Book")
    book.set_language("en")
    items = []
    for i, (title, html) in enumerate(chapters, start=1):
        item = epub.EpubHtml(title=title, file_name=f"chap_{i}.xhtml", lang="en")
        item.content = html
        book.add_item(item)
        items.append(item)
    book.toc = items
    book.add_item(epub.EpubNcx())
    book.add_item(epub.EpubNav())
    book.spine = items
    epub.write_epub(str(path), book)
    return path.read_bytes()


def test_plain_text_tracks_non_empty_lines():
    extracted = TextExtractor().extract_bytes(b"Line one\n\nLine   three\r\nLast", "notes.txt")

    assert extracted.text == "Line one\n\nLine three\nLast"
    assert [loc.to_dict() for loc in extracted.locations] == [
        {"start": 0, "end": 8, "line": 1},
        {"start": 10, "end": 22, "line": 3},
        {"start": 23, "end": 27, "line": 4},
    ]


def test_pdf_pages_become_page_locations():
    writer = pypdf.PdfWriter()
    writer.add_blank_page(width=200, height=200)
    writer.add_blank_page(width=200, height=200)
    buffer = io.BytesIO()
    writer.write(buffer)

    extracted = TextExtractor().extract_bytes(buffer.getvalue(), "Book.PDF")

    assert [(loc.start, loc.end, loc.page) for loc in extracted.locations] == [(0, 0, 1), (1, 1, 2)]
    assert extracted.text.strip() == ""


def test_epub_spine_items_become_chapter_locations(tmp_path):
    data = _write_epub(tmp_path / "book.epub", [
        ("Origins", "<h1>Origins</h1><p>How it started.</p>"),
        ("Growth", "<h1>Growth</h1><p>How it grew.</p>"),
    ])

    extracted = TextExtractor().extract_bytes(data, "book.epub")

    assert [loc.chapter for loc in extracted.locations] == ["Origins", "Growth"]
    first, second = extracted.locations
    assert "How it started." in extracted.text[first.start:first.end]
    assert "How it grew." in extracted.text[second.start:second.end]
    assert second.start == first.end + 2
    assert second.end == len(extracted.text)


def test_corrupt_pdf_raises_extraction_error():
    with pytest.raises(ExtractionError, match="Failed to extract text from PDF file"):
        TextExtractor().extract_bytes(b"not a pdf at all", "book.pdf")


def test_corrupt_epub_raises_extraction_error():
    with pytest.raises(ExtractionError, match="Failed to extract text from EPUB file"):
        TextExtractor().extract_bytes(b"PK\x03\x04", "book.epub")


def test_unsupported_extension():
    with pytest.raises(ValueError, match="Unsupported file type"):
        TextExtractor().extract_bytes(b"data", "book.docx")


def test_clean_extracted_text():
    assert clean_extracted_text("a \t b\n\n\n\nc  ") == "a b\n\nc"
