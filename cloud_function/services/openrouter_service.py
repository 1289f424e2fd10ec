from datetime import datetime
from typing import Any, Dict, List, Optional

from openai import OpenAI

from config import OPENROUTER_API_KEY, OPENROUTER_BASE_URL, OPENROUTER_MODEL, SITE_URL
from models.book import TextLocation
from models.summary import parse_summary_response
from services.logging_service import get_logger

SUMMARY_SYSTEM_PROMPT = """You are BookByte, an assistant that writes comprehensive, in-depth summaries of non-fiction books (self-improvement, health, finance, business, psychology, productivity, science).

Your summary should read like a detailed study guide:
- Capture every major idea, sub-idea and nuance of the book
- Explain both principles (core truths) and tactics (how to apply them)
- Give real-world examples and case studies for each principle
- Explain complex concepts with analogies and step-by-step breakdowns
- Organise ideas with clear headings, bullet lists and numbered steps
- Reference chapters by name or number wherever possible

When you quote the book directly, cite the quote in Harvard style right after it."""

PROSE_FORMAT_INSTRUCTION = """

Return your summary as continuous, flowing prose. Do not return JSON and do not wrap the answer in markdown code blocks."""


def build_citation_guidelines(author: Optional[str], locations: Optional[List[TextLocation]],
                              publication_year: Optional[int] = None) -> List[str]:
    """Citation instructions matching the location metadata the source file offers."""
    if not author:
        return []

    year = publication_year or datetime.now().year
    surname = author.split(" ")[-1]
    lines = ["\n\nCITATION GUIDELINES:", f"- Author: {author}", f"- Year: {year}"]

    if locations:
        if any(loc.page for loc in locations):
            lines.append(f"- This book has page numbers. Use format: ({surname}, {year}, p. XX) for single pages "
                         f"or ({surname}, {year}, pp. XX-YY) for multiple pages")
        elif any(loc.line for loc in locations):
            lines.append(f"- This book uses line numbers. Use format: ({surname}, {year}, line XX) for single lines "
                         f"or ({surname}, {year}, lines XX-YY) for multiple lines")
        elif any(loc.chapter for loc in locations):
            lines.append(f"- This book uses chapters. Use format: ({surname}, {year}, Chapter: Chapter Name)")

    lines.append("- For any direct quote, append the citation immediately after the quote")
    lines.append(f"- Example: \"Quote text here\" ({surname}, {year}, p. 15)")
    return lines


class OpenRouterService:
    """
    OpenRouter chat completions through the OpenAI-compatible endpoint.
    Used for structure detection, the initial summary and gap filling.
    """

    def __init__(self, api_key: str = OPENROUTER_API_KEY, model: Optional[str] = None):
        if not api_key:
            raise ValueError("OpenRouter API key is not configured. Set OPENROUTER_API_KEY.")
        self.model = model or OPENROUTER_MODEL
        self.client = OpenAI(
            api_key=api_key,
            base_url=OPENROUTER_BASE_URL,
            default_headers={
                "HTTP-Referer": SITE_URL,
                "X-Title": "BookByte",
            },
        )

    def complete(self, prompt: str, model: Optional[str] = None, temperature: float = 0.35,
                 json_mode: bool = False, max_tokens: Optional[int] = None,
                 system_prompt: Optional[str] = None) -> str:
        """Returns the first choice's text. HTTP failures raise."""
        messages = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": prompt})

        params: Dict[str, Any] = {
            "model": model or self.model,
            "messages": messages,
            "temperature": temperature,
        }
        if json_mode:
            params["response_format"] = {"type": "json_object"}
        if max_tokens:
            params["max_tokens"] = max_tokens

        response = self.client.chat.completions.create(**params)
        if not response.choices:
            return ""
        return response.choices[0].message.content or ""

    def generate_structured_summary(self, text: str, title: Optional[str] = None, author: Optional[str] = None,
                                    locations: Optional[List[TextLocation]] = None, model: Optional[str] = None,
                                    custom_prompt: Optional[str] = None,
                                    publication_year: Optional[int] = None) -> Dict[str, Any]:
        """
        Generates a summary payload.

        With a custom prompt the prompt is sent as-is and decides the output
        shape. Without one, the book text is summarised as prose under the
        BookByte system prompt. The answer is parsed into a structured
        summary when it is a JSON object with a quick_summary, otherwise it
        is stored as raw text.
        """
        trimmed = text.strip()
        if not trimmed:
            raise ValueError("No text content extracted from the provided file.")

        selected_model = model or self.model
        logger = get_logger()
        logger.info(f"[OpenRouter] Using model: {selected_model}")

        if custom_prompt:
            content = self.complete(custom_prompt, model=selected_model, temperature=0.35)
        else:
            parts = [
                f"Title: {title}" if title else "",
                f"Author: {author}" if author else "",
                f"Publication Year: {publication_year}" if publication_year else "",
                *build_citation_guidelines(author, locations, publication_year),
                "Summarize the following book content:",
                trimmed,
            ]
            user_content = "\n\n".join(p for p in parts if p) + PROSE_FORMAT_INSTRUCTION
            content = self.complete(user_content, model=selected_model, temperature=0.35,
                                    system_prompt=SUMMARY_SYSTEM_PROMPT)

        if not content or not content.strip():
            raise ValueError("OpenRouter did not return any summary content.")

        logger.info(f"[OpenRouter] Summary generated. Length: {len(content)} characters")
        return parse_summary_response(content, ai_provider=f"OpenRouter ({selected_model})")
