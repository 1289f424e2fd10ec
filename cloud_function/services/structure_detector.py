"""
Chapter Structure Detector.

Asks the model for the book's table of contents and falls back to line-level
regex detection when the model finds no chapters. Detection never fails: any
error yields an empty structure so the rest of the analysis can continue.
"""
import json
import re
from typing import Any, List, Optional

from models.book import BookStructure, Chapter
from models.summary import clean_json_response
from services.logging_service import get_logger

# Markers that open a table-of-contents region, in priority order
TOC_MARKERS = (
    re.compile(r'table\s+of\s+contents?', re.IGNORECASE),
    re.compile(r'contents?', re.IGNORECASE),
    re.compile(r'chapter\s+list', re.IGNORECASE),
    re.compile(r'outline', re.IGNORECASE),
)

# First heading after the TOC, searched from TOC_HEADING_OFFSET past the marker
TOC_END = re.compile(r'\n\s*(?:introduction|preface|chapter\s+1|1\.|part\s+i)', re.IGNORECASE)
TOC_HEADING_OFFSET = 100
TOC_MAX_CHARS = 5000

# (pattern, description) pairs for the regex fallback; each match yields (number, title)
CHAPTER_LINE_PATTERNS = (
    (re.compile(r'^chapter\s+(\d+)[:.\s]+(.+)$', re.IGNORECASE | re.MULTILINE), "chapter N"),
    (re.compile(r'^(\d+)\.\s+(.+)$', re.MULTILINE), "N."),
    (re.compile(r'^part\s+([ivx\d]+)[:.\s]+(.+)$', re.IGNORECASE | re.MULTILINE), "part N"),
    (re.compile(r'^section\s+(\d+)[:.\s]+(.+)$', re.IGNORECASE | re.MULTILINE), "section N"),
)

STRUCTURE_SAMPLE_CHARS = 20000


def find_table_of_contents(text: str) -> Optional[str]:
    for marker in TOC_MARKERS:
        match = marker.search(text)
        if not match:
            continue
        start = match.start()
        heading = TOC_END.search(text[start + TOC_HEADING_OFFSET:])
        end = start + TOC_HEADING_OFFSET + heading.start() if heading else start + TOC_MAX_CHARS
        return text[start:min(end, len(text))]
    return None


def leading_int(value: Optional[str]) -> int:
    """Integer prefix of a chapter number ("12" -> 12, "iv" -> 0)."""
    match = re.match(r'\s*([+-]?\d+)', value or "")
    return int(match.group(1)) if match else 0


def detect_chapters_alternative(text: str) -> List[Chapter]:
    """Regex scan for chapter headings, deduplicated and sorted by number."""
    chapters: List[Chapter] = []

    for pattern, _ in CHAPTER_LINE_PATTERNS:
        for match in pattern.finditer(text):
            number = match.group(1)
            title = match.group(2).strip()
            if any(ch.title == title or ch.number == number for ch in chapters):
                continue
            chapters.append(Chapter(title=title, number=number))

    chapters.sort(key=lambda ch: leading_int(ch.number))
    return [ch for ch in chapters if ch.title]


def build_structure_prompt(text: str, title: str, author: Optional[str], toc_section: Optional[str]) -> str:
    author_line = f"Author: {author}" if author else ""
    toc_block = f"Table of Contents Section Found:\n{toc_section}\n\n" if toc_section else ""
    return f"""Analyze the following book text and extract the complete table of contents structure. Look for:

1. Chapter titles and numbers (including variations like "Chapter 1", "1.", "One", etc.)
2. Page ranges for each chapter
3. Subsections within chapters
4. Any other structural elements
5. Look through the ENTIRE text, not just the beginning

Book Title: {title}
{author_line}

IMPORTANT: Make sure to find ALL chapters in the book. Look for patterns like:
- "Chapter 1", "Chapter 2", etc.
- "1.", "2.", etc.
- "One", "Two", "Three", etc.
- Roman numerals: "I", "II", "III", etc.
- Any other chapter numbering systems

Return a JSON structure like this:
{{
  "title": "Book Title",
  "author": "Author Name",
  "chapters": [
    {{
      "number": "1",
      "title": "Chapter Title",
      "pageRange": "1-25",
      "subsections": ["Section 1", "Section 2"]
    }}
  ],
  "totalChapters": 10,
  "hasTableOfContents": true
}}

{toc_block}Book Text (first 20k chars for analysis):
{text[:STRUCTURE_SAMPLE_CHARS]}
"""


def _parse_chapters(raw: Any) -> List[Chapter]:
    if not isinstance(raw, list):
        return []
    chapters = []
    for entry in raw:
        if isinstance(entry, dict):
            chapter = Chapter.from_dict(entry)
            if chapter:
                chapters.append(chapter)
    return chapters


class StructureDetector:
    def __init__(self, llm, model: Optional[str] = None):
        """
        Args:
            llm: completion client exposing complete(prompt, model=, temperature=, json_mode=, max_tokens=)
            model: optional model override passed through to the client
        """
        self.llm = llm
        self.model = model

    def detect(self, text: str, title: str, author: Optional[str] = None) -> BookStructure:
        logger = get_logger()
        toc_section = find_table_of_contents(text)
        prompt = build_structure_prompt(text, title, author, toc_section)

        try:
            response = self.llm.complete(
                prompt,
                model=self.model,
                temperature=0.1,
                json_mode=True,
                max_tokens=2000,
            )
            logger.debug("Structure response received", preview=response[:500])

            data = json.loads(clean_json_response(response))
            if not isinstance(data, dict):
                data = {}

            chapters = _parse_chapters(data.get("chapters"))
            total = data.get("totalChapters")
            if isinstance(total, bool) or not isinstance(total, (int, float)):
                total = len(chapters)

            if not chapters:
                logger.warning("No chapters found in TOC analysis, trying alternative detection...")
                alternative = detect_chapters_alternative(text)
                if alternative:
                    chapters = alternative
                    total = len(alternative)
                    logger.info(f"Found {len(alternative)} chapters using alternative detection")

            return BookStructure(
                title=str(data.get("title") or title),
                author=data.get("author") or author,
                chapters=chapters,
                total_chapters=int(total),
                has_table_of_contents=bool(data.get("hasTableOfContents")),
            )

        except Exception as e:
            logger.error(f"Error analyzing book structure: {e}")
            return BookStructure.empty(title, author)
