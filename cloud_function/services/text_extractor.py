import io
import os
import re
import tempfile
from typing import List, Optional

import ebooklib
import pypdf
from bs4 import BeautifulSoup
from ebooklib import epub

from models.book import ExtractedText, TextLocation
from services.errors import ExtractionError
from services.logging_service import get_logger

MAX_PAGES = 500
TEXT_EXTENSIONS = (".txt", ".md", ".markdown")
HEADING_TAGS = ("h1", "h2", "h3")


def clean_extracted_text(text: str) -> str:
    """Collapses runs of spaces/tabs and more than one blank line."""
    text = text.replace("\r\n", "\n").replace("\r", "\n")
    text = re.sub(r'[ \t]+', ' ', text)
    text = re.sub(r'\n{3,}', '\n\n', text)
    return text.strip()


def _epub_section_title(soup: BeautifulSoup) -> Optional[str]:
    """<title> of the XHTML document, else its first heading."""
    if soup.title and soup.title.get_text(strip=True):
        return soup.title.get_text(" ", strip=True)
    heading = soup.find(HEADING_TAGS)
    if heading and heading.get_text(strip=True):
        return heading.get_text(" ", strip=True)
    return None


class TextExtractor:
    """Extracts book text plus page/line/chapter locations used for citations."""

    def extract_file(self, path: str) -> ExtractedText:
        with open(path, "rb") as fh:
            return self.extract_bytes(fh.read(), os.path.basename(path))

    def extract_bytes(self, data: bytes, filename: str) -> ExtractedText:
        """
        Dispatches on the file extension.

        Raises:
            ExtractionError: unsupported extension or a file the parser rejects.
        """
        extension = os.path.splitext(filename.lower())[1]
        if extension in TEXT_EXTENSIONS:
            return self.extract_plain_text(data.decode("utf-8", errors="replace"))
        if extension not in (".pdf", ".epub"):
            raise ExtractionError(f"Unsupported file type: {extension or filename}")

        kind = extension[1:].upper()
        try:
            if extension == ".pdf":
                return self.extract_pdf(data)
            return self.extract_epub(data)
        except ExtractionError:
            raise
        except Exception as e:
            get_logger().error(f"Error extracting text from {kind}: {e}")
            raise ExtractionError(f"Failed to extract text from {kind} file: {e}") from e

    def extract_pdf(self, data: bytes) -> ExtractedText:
        logger = get_logger()
        reader = pypdf.PdfReader(io.BytesIO(data))
        total = len(reader.pages)
        if total > MAX_PAGES:
            logger.warning(f"PDF has {total} pages, only the first {MAX_PAGES} are extracted")

        pages: List[str] = []
        for i, page in enumerate(reader.pages[:MAX_PAGES]):
            try:
                pages.append(clean_extracted_text(page.extract_text() or ""))
            except Exception as e:
                logger.warning(f"Failed to extract text from page {i}: {e}")
                pages.append("")

        locations = []
        position = 0
        for number, page_text in enumerate(pages, start=1):
            locations.append(TextLocation(start=position, end=position + len(page_text), page=number))
            position += len(page_text) + 1

        text = "\n".join(pages)
        logger.info(f"Text extraction complete. {len(pages)} pages, {len(text)} chars")
        return ExtractedText(text=text, locations=locations)

    def extract_epub(self, data: bytes) -> ExtractedText:
        """
        One chapter location per non-empty spine document, in reading order.
        Sections are joined with a blank line.
        """
        logger = get_logger()
        epub_path = None
        try:
            with tempfile.NamedTemporaryFile(suffix=".epub", delete=False) as tmp:
                tmp.write(data)
                epub_path = tmp.name
            book = epub.read_epub(epub_path, {"ignore_ncx": True})
        finally:
            if epub_path and os.path.exists(epub_path):
                os.remove(epub_path)

        sections = []
        for idref, _ in book.spine:
            item = book.get_item_with_id(idref)
            if item is None or item.get_type() != ebooklib.ITEM_DOCUMENT:
                continue
            soup = BeautifulSoup(item.get_content(), "html.parser")
            title = _epub_section_title(soup)
            body = soup.body or soup
            for br in body.find_all("br"):
                br.replace_with("\n")
            content = clean_extracted_text(body.get_text("\n"))
            if content:
                sections.append((title or f"Chapter {len(sections) + 1}", content))

        locations = []
        position = 0
        for title, content in sections:
            locations.append(TextLocation(start=position, end=position + len(content), chapter=title))
            position += len(content) + 2

        text = "\n\n".join(content for _, content in sections)
        logger.info(f"Text extraction complete. {len(sections)} EPUB sections, {len(text)} chars")
        return ExtractedText(text=text, locations=locations)

    def extract_plain_text(self, raw: str) -> ExtractedText:
        locations = []
        position = 0
        for index, line in enumerate(re.split(r'\r?\n', raw)):
            if line.strip():
                locations.append(TextLocation(start=position, end=position + len(line), line=index + 1))
                position += len(line) + 1
            else:
                position += 1

        return ExtractedText(text=clean_extracted_text(raw), locations=locations)
