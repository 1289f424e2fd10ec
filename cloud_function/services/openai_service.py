from typing import Optional

from openai import OpenAI

from config import OPENAI_API_KEY, OPENAI_SUMMARY_MODEL
from services.logging_service import get_logger

# Responses shorter than this are treated as unusable
MIN_RESPONSE_CHARS = 100


class OpenAIService:
    """Secondary provider used when Gemini fails during enhancement."""

    def __init__(self, api_key: str = OPENAI_API_KEY, model: Optional[str] = None):
        self.api_key = api_key
        self.model = model or OPENAI_SUMMARY_MODEL
        self.client = OpenAI(api_key=api_key) if api_key else None

    @property
    def is_configured(self) -> bool:
        return self.client is not None

    def generate_text(self, prompt: str, temperature: float = 0.35, max_completion_tokens: int = 4000) -> Optional[str]:
        """
        Returns the completion text, or None when OpenAI is not configured or
        the answer is too short to use. API errors propagate.
        """
        logger = get_logger()
        if not self.client:
            logger.error("OpenAI API key not configured")
            return None

        logger.debug(f"Calling OpenAI ({self.model})...")
        completion = self.client.chat.completions.create(
            model=self.model,
            temperature=temperature,
            messages=[{"role": "user", "content": prompt}],
            max_completion_tokens=max_completion_tokens,
        )

        content = completion.choices[0].message.content if completion.choices else None
        response = (content or "").strip()
        if len(response) < MIN_RESPONSE_CHARS:
            logger.warning(f"OpenAI response too short: {len(response)} chars")
            return None

        return response
