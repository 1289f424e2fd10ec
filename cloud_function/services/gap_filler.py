"""
Gap Filler - summarises chapters the first pass missed and merges them in.

Source text for each missing chapter is located by title/number search, with
a broader regex search as fallback. If nothing is found, or the model call
fails, the summary is returned unchanged.
"""
import re
from typing import Any, Dict, List, Optional

from models.book import BookStructure, Chapter, TextLocation
from models.summary import merge_summaries
from services.logging_service import get_logger

PRIMARY_EXCERPT_CHARS = 5000
FALLBACK_EXCERPT_CHARS = 8000

# Headings that start the next chapter; the earliest match wins
CHAPTER_BOUNDARY_PATTERNS = (
    re.compile(r'\n\s*chapter\s+\d+', re.IGNORECASE),
    re.compile(r'\n\s*\d+\.\s*[A-Z]'),
    re.compile(r'\n\s*[A-Z][A-Z\s]+$', re.MULTILINE),
    re.compile(r'\n\s*part\s+[ivx\d]+', re.IGNORECASE),
    re.compile(r'\n\s*section\s+\d+', re.IGNORECASE),
    re.compile(r'\n\s*[ivx]+\.', re.IGNORECASE),
    re.compile(r'\n\s*\d+\s+[A-Z][a-z]'),
)

STRUCTURED_SUMMARY_FORMAT = """{
  "short_summary": "1-2 sentence overview (max 200 characters)",
  "quick_summary": "Executive summary",
  "key_ideas": [{"title": "Idea", "text": "Detailed explanation"}],
  "chapters": [{"title": "Chapter title", "summary": "Detailed chapter summary"}],
  "actionable_insights": ["Insight"],
  "quotes": ["Quote with citation"]
}"""


def find_next_chapter_index(text: str, start_from: int) -> int:
    """Absolute offset of the next chapter heading at or after start_from, or -1."""
    remainder = text[start_from:]
    earliest = -1
    for pattern in CHAPTER_BOUNDARY_PATTERNS:
        match = pattern.search(remainder)
        if match and (earliest == -1 or match.start() < earliest):
            earliest = match.start()
    return start_from + earliest if earliest != -1 else -1


def find_chapter_content(text: str, chapter: Chapter) -> Optional[str]:
    variations = [chapter.title]
    if chapter.number:
        variations += [f"Chapter {chapter.number}", f"Chapter {chapter.number}: {chapter.title}"]
    variations += [chapter.title.lower(), chapter.title.upper()]

    lowered = text.lower()
    for variation in variations:
        index = lowered.find(variation.lower())
        if index == -1:
            continue
        next_index = find_next_chapter_index(text, index + 1)
        end = next_index if next_index != -1 else len(text)
        return text[index:end][:PRIMARY_EXCERPT_CHARS]

    return None


def find_chapter_content_fallback(text: str, chapter: Chapter) -> Optional[str]:
    title = re.escape(chapter.title)
    patterns = [rf'\b{title}\b']
    if chapter.number:
        number = re.escape(chapter.number)
        patterns += [rf'chapter\s+{number}\b', rf'\b{number}\.\s*{title}\b']

    for pattern in patterns:
        match = re.search(pattern, text, re.IGNORECASE)
        if not match:
            continue
        start = match.start()
        next_index = find_next_chapter_index(text, start + 1)
        end = next_index if next_index != -1 else len(text)
        return text[start:min(end, start + FALLBACK_EXCERPT_CHARS)]

    return None


def build_gap_filling_prompt(missing_titles: List[str], additional_content: str) -> str:
    return f"""The following chapters were identified as missing from the previous summary. Please analyze them and provide comprehensive coverage:

Missing Chapters: {", ".join(missing_titles)}

Additional Content:
{additional_content}

Please provide detailed analysis for these missing chapters, including:
1. Key principles and concepts
2. Practical applications and tactics
3. Real-world examples and case studies
4. Implementation strategies
5. How they connect to the overall book themes

IMPORTANT: Make sure to create chapter summaries for ALL missing chapters listed above. Each missing chapter should have its own entry in the chapters array.

Return the analysis in the same JSON format as the original summary, but focus only on the missing chapters:
{STRUCTURED_SUMMARY_FORMAT}"""


class GapFiller:
    def __init__(self, text: str, llm, title: str, author: Optional[str] = None,
                 locations: Optional[List[TextLocation]] = None, model: Optional[str] = None):
        self.text = text
        self.llm = llm
        self.title = title
        self.author = author
        self.locations = locations
        self.model = model

    def collect_missing_content(self, chapters: List[Chapter]) -> str:
        logger = get_logger()
        additional_content = ""
        for chapter in chapters:
            content = find_chapter_content(self.text, chapter)
            if not content:
                logger.warning(f"Could not find content for chapter: {chapter.title}")
                content = find_chapter_content_fallback(self.text, chapter)
            if content:
                additional_content += f"\n\n## {chapter.title}\n{content}"
        return additional_content

    def fill_gaps(self, structure: BookStructure, summary: Dict[str, Any], chapters_missing: List[str]) -> Dict[str, Any]:
        logger = get_logger()
        if not chapters_missing:
            return summary

        logger.info(f"Analyzing missing chapters: {', '.join(chapters_missing)}")
        missing = [ch for ch in structure.chapters if ch.title.lower() in chapters_missing]

        additional_content = self.collect_missing_content(missing)
        if not additional_content:
            logger.warning("No additional content found for missing chapters")
            return summary

        prompt = build_gap_filling_prompt(chapters_missing, additional_content)
        try:
            gap_analysis = self.llm.generate_structured_summary(
                text=prompt,
                title=self.title,
                author=self.author,
                locations=self.locations,
                model=self.model,
                custom_prompt=prompt,
            )
        except Exception as e:
            logger.error(f"Error filling gaps: {e}")
            return summary

        return merge_summaries(summary, gap_analysis)
