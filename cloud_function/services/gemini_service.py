from typing import Optional

import google.generativeai as genai

from config import GEMINI_API_KEY, GEMINI_SUMMARY_MODEL
from services.logging_service import get_logger

is_gemini_configured = bool(GEMINI_API_KEY)


class GeminiService:
    """Plain-text generation against Gemini. Failures are raised, not retried."""

    def __init__(self, api_key: str = GEMINI_API_KEY, model_name: Optional[str] = None):
        if not api_key:
            raise ValueError("GEMINI_API_KEY is not set.")
        genai.configure(api_key=api_key)
        self.model_name = model_name or GEMINI_SUMMARY_MODEL
        get_logger().debug(f"GeminiService initialized with model {self.model_name}")

    def generate_text(self, prompt: str, temperature: float = 0.35, max_output_tokens: int = 4000) -> str:
        """
        Single Gemini call. Rate-limit and quota errors surface as exceptions
        whose message carries "429"/"quota" for the caller to classify.
        """
        model = genai.GenerativeModel(
            model_name=self.model_name,
            generation_config={
                "temperature": temperature,
                "max_output_tokens": max_output_tokens,
            },
        )

        response = model.generate_content(prompt)

        try:
            text = response.text
        except ValueError:
            # .text raises when the candidate was blocked or has no parts
            finish_reason = "Unknown"
            if response.candidates:
                finish_reason = response.candidates[0].finish_reason.name
            raise ValueError(f"Gemini returned no text. Finish reason: {finish_reason}")

        return (text or "").strip()
