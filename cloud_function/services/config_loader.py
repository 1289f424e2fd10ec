"""
Configuration Loader Service - Loads runtime settings from GCS.

Model ids and enhancement pacing can be changed by editing
config/system_config.json in the analysis bucket, without redeploying.
Environment variables remain the fallback (see config.get_config_value).
"""
import json
import time
from typing import Any, Optional
from google.cloud import storage


class ConfigLoader:
    """Reads system_config.json from GCS, optionally caching it."""

    def __init__(self, bucket_name: str, config_path: str = "config/system_config.json", cache_ttl: int = 0):
        """
        Args:
            bucket_name: GCS bucket name
            config_path: Object path of the JSON config inside the bucket
            cache_ttl: Seconds to reuse a loaded config. 0 disables caching.
        """
        self.bucket_name = bucket_name
        self.config_path = config_path
        self.cache_ttl = cache_ttl
        self._cache: Optional[dict] = None
        self._loaded_at: Optional[float] = None
        self._client = None

    def _storage_client(self):
        if self._client is None:
            self._client = storage.Client()
        return self._client

    def _cache_is_fresh(self) -> bool:
        if self.cache_ttl <= 0 or self._cache is None or self._loaded_at is None:
            return False
        return (time.time() - self._loaded_at) < self.cache_ttl

    def get_config(self, force_refresh: bool = False) -> dict:
        """
        Returns the config dict, reloading from GCS unless the cache is fresh.

        Load failures fall back to the last good config, then to defaults.
        """
        if not force_refresh and self._cache_is_fresh():
            return self._cache

        try:
            blob = self._storage_client().bucket(self.bucket_name).blob(self.config_path)
            if not blob.exists():
                print(f"Warning: {self.config_path} not found in gs://{self.bucket_name}. Using defaults.")
                return self.default_config()

            config = json.loads(blob.download_as_text())
            self._cache = config
            self._loaded_at = time.time()
            print(f"Config loaded from GCS: {self.config_path}")
            return config

        except Exception as e:
            print(f"Error loading config from GCS: {e}. Using defaults/cache.")
            return self._cache if self._cache else self.default_config()

    def get(self, key_path: str, default: Any = None) -> Any:
        """
        Dot-notation lookup, e.g. loader.get('gemini.summary_model').
        """
        value = self.get_config()
        for key in key_path.split('.'):
            if isinstance(value, dict) and key in value:
                value = value[key]
            else:
                return default
        return value

    @staticmethod
    def default_config() -> dict:
        return {
            "version": "1.0",
            "openrouter": {
                "model": "openai/gpt-4o",
                "base_url": "https://openrouter.ai/api/v1"
            },
            "gemini": {
                "summary_model": "gemini-2.5-pro"
            },
            "openai": {
                "summary_model": "gpt-4o"
            },
            "enhancement": {
                "gap_delay_seconds": 1.0
            }
        }
