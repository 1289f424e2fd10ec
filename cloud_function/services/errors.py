"""
Error types shared by the analysis and enhancement services.

Providers do not expose a structured error contract, so rate limits are
recognised from the exception message. Treat the classification as best-effort.
"""

RATE_LIMIT_MARKERS = ("429", "quota", "rate limit")


class RateLimitError(Exception):
    """Raised when every provider for a request failed and the cause was a rate limit."""


class AnalysisError(Exception):
    """Unrecoverable analysis failure. The message is safe to show to users."""


def is_rate_limit_error(error: BaseException) -> bool:
    """Returns True if the error looks like a provider rate-limit/quota failure."""
    if isinstance(error, RateLimitError):
        return True
    message = str(error).lower()
    return any(marker in message for marker in RATE_LIMIT_MARKERS)


class ExtractionError(ValueError):
    """The uploaded file could not be parsed. Retrying will not help."""
