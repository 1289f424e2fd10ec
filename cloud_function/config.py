import os

# === Deployment ===
PROJECT_ID = os.environ.get("GCP_PROJECT_ID", "")
BUCKET_NAME = os.environ.get("GCS_BUCKET_NAME", "")

# Cloud Tasks
REGION = os.environ.get("GCP_REGION", "us-central1")
QUEUE_NAME = os.environ.get("CLOUD_TASKS_QUEUE", "bookbyte-analysis-queue")
FUNCTION_URL = os.environ.get("FUNCTION_URL", "")  # URL of this Cloud Function

# Referer sent to OpenRouter
SITE_URL = os.environ.get("SITE_URL", "http://localhost:3000")

# Set to "false" to keep logs on the console only (local runs, tests)
CLOUD_LOGGING_ENABLED = os.environ.get("CLOUD_LOGGING_ENABLED", "true").lower() != "false"

# API Keys
OPENROUTER_API_KEY = os.environ.get("OPENROUTER_API_KEY", "")
GEMINI_API_KEY = os.environ.get("GEMINI_API_KEY", "")
OPENAI_API_KEY = os.environ.get("OPENAI_API_KEY", "")

# === GCS-based Configuration Loader ===
_config_loader = None

def get_config_loader():
    """Get or create the global config loader instance."""
    global _config_loader
    if _config_loader is None and BUCKET_NAME:
        from services.config_loader import ConfigLoader
        _config_loader = ConfigLoader(BUCKET_NAME)
    return _config_loader

def get_config_value(key_path: str, env_var: str = None, default=None):
    """
    Get configuration value with priority: GCS config > ENV var > default.

    Args:
        key_path: Dot-notation path in GCS config (e.g., 'openrouter.model')
        env_var: Optional environment variable name to check as fallback
        default: Default value if not found
    """
    loader = get_config_loader()

    if loader:
        value = loader.get(key_path)
        if value is not None:
            return value

    if env_var:
        env_value = os.environ.get(env_var)
        if env_value is not None:
            return env_value

    return default

# === Model Configuration ===
# Structure detection, initial summary and gap filling go through OpenRouter
OPENROUTER_MODEL = get_config_value(
    "openrouter.model",
    "OPENROUTER_MODEL",
    "openai/gpt-4o"
)

OPENROUTER_BASE_URL = get_config_value(
    "openrouter.base_url",
    "OPENROUTER_BASE_URL",
    "https://openrouter.ai/api/v1"
)

# Primary provider for chapter enhancement
GEMINI_SUMMARY_MODEL = get_config_value(
    "gemini.summary_model",
    "GEMINI_SUMMARY_MODEL",
    "gemini-2.5-pro"
)

# Secondary provider for chapter enhancement
OPENAI_SUMMARY_MODEL = get_config_value(
    "openai.summary_model",
    "OPENAI_SUMMARY_MODEL",
    "gpt-4o"
)

# === Enhancement Configuration ===
# Pause between successive gaps in one enhancement batch
ENHANCEMENT_GAP_DELAY_SECONDS = float(get_config_value(
    "enhancement.gap_delay_seconds",
    "ENHANCEMENT_GAP_DELAY_SECONDS",
    "1.0"
))
