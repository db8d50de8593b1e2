"""Server configuration management."""

import os
from typing import List


class ServerConfig:
    """Server configuration loaded from environment variables."""

    def __init__(self):
        """Load configuration from environment."""
        self.api_keys = self._load_api_keys()
        self.max_workers = self._load_int("SHIPIT_MAX_WORKERS", 1)
        self.max_queue_size = self._load_int("SHIPIT_MAX_QUEUE_SIZE", 100)

    def _load_api_keys(self) -> List[str]:
        """Load API keys from environment."""
        keys_str = os.getenv("SHIPIT_API_KEYS", "")
        if not keys_str:
            return []
        return [k.strip() for k in keys_str.split(",") if k.strip()]

    @staticmethod
    def _load_int(name: str, default: int) -> int:
        try:
            return int(os.getenv(name, str(default)))
        except ValueError:
            return default

    def is_api_key_valid(self, api_key: str) -> bool:
        """
        Check if API key is valid.

        Args:
            api_key: API key to validate

        Returns:
            True if valid, False otherwise
        """
        return api_key in self.api_keys

    def has_api_keys(self) -> bool:
        """Check if any API keys are configured."""
        return len(self.api_keys) > 0
