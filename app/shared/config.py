"""
Centralized configuration management.

Configuration is layered, later sources override earlier ones:
1) `env.example` (committed, safe placeholders)
2) `env.local` (optional, MUST NOT be committed)
3) System environment variables (highest priority)
"""

import os
from pathlib import Path

from dotenv import dotenv_values
from loguru import logger


class EnvironConfig:
    """
    Singleton configuration class that loads environment variables from env files
    and system environment, providing dictionary-like access with default values.
    """

    _instance = None
    _initialized = False

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super(EnvironConfig, cls).__new__(cls)
        return cls._instance

    def __init__(self):
        if not self._initialized:
            self._config = {}
            self._load_config()
            EnvironConfig._initialized = True

    def _load_config(self):
        """
        Load configuration from env files and system environment.

        Priority order (later overrides earlier):
        1. env.example (committed placeholders)
        2. env.local (developer-local, not committed)
        3. System environment variables (highest priority)
        """
        root = Path(__file__).parent.parent.parent

        example_path = root / "env.example"
        if example_path.exists():
            env_values = dotenv_values(example_path)
            self._config.update(env_values)
            logger.info("Loaded environment variables from {}", example_path)

        local_path = root / "env.local"
        if local_path.exists():
            local_values = dotenv_values(local_path)
            self._config.update(local_values)
            logger.info("Loaded and overrode environment variables from {}", local_path)

        self._config.update(os.environ)

    def get(self, key, default=None):
        """Get configuration value by key with optional default."""
        return self._config.get(key, default)

    def items(self):
        return self._config.items()

    def get_mongo_url(self, label: str = "default") -> str:
        """
        Get MongoDB connection URL for a specific label.

        Args:
            label: MongoDB connection label (default: "default")

        Returns:
            str: MongoDB connection URL, empty string for unknown labels
        """
        if label == "default":
            url = self.get("MONGO_URL_DEFAULT") or self.get("MONGO_URL")
            if url:
                return url
            return "mongodb://localhost:27017"

        return self.get(f"MONGO_URL_{label.upper()}") or ""

    def _get_positive_int(self, key: str, default: int) -> int:
        try:
            value = int(self.get(key, str(default)))
        except (ValueError, TypeError):
            logger.warning("Invalid {} value '{}', defaulting to {}", key, self.get(key), default)
            return default

        if value <= 0:
            logger.warning("{} value {} must be positive, defaulting to {}", key, value, default)
            return default

        return value

    def get_mongo_max_pool_size(self) -> int:
        """Get MongoDB maximum pool size (1-100, default: 5)."""
        size = self._get_positive_int("MONGO_MAX_POOL_SIZE", 5)
        if size > 100:
            logger.warning("MONGO_MAX_POOL_SIZE value {} is out of range (1-100), defaulting to 5", size)
            return 5
        return size

    def get_mongo_server_selection_timeout(self) -> int:
        """Get MongoDB server selection timeout in milliseconds (default: 30000)."""
        return self._get_positive_int("MONGO_SERVER_SELECTION_TIMEOUT", 30000)

    def get_mongo_connect_timeout(self) -> int:
        """Get MongoDB connection timeout in milliseconds (default: 30000)."""
        return self._get_positive_int("MONGO_CONNECT_TIMEOUT", 30000)

    def get_mongo_socket_timeout(self) -> int:
        """Get MongoDB socket timeout in milliseconds (default: 300000)."""
        return self._get_positive_int("MONGO_SOCKET_TIMEOUT", 300000)


# Global configuration instance
config = EnvironConfig()
