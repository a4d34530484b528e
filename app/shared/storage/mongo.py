"""
Simple MongoDB client manager that creates and tracks clients.
"""

import atexit
import threading
from typing import Dict

from loguru import logger
from motor.motor_asyncio import AsyncIOMotorClient

from ..config import config


def hide_password(connection_string: str) -> str:
    """Replace the password of a mongodb:// URL with asterisks for logging."""
    if "://" not in connection_string:
        return connection_string

    scheme, rest = connection_string.split("://", 1)
    at = rest.rfind("@")
    if at == -1:
        return connection_string

    auth, host = rest[:at], rest[at + 1 :]
    if ":" not in auth:
        return connection_string

    username, password = auth.split(":", 1)
    if not username or not password:
        return connection_string
    return f"{scheme}://{username}:***@{host}"


class MongoManager:
    """
    Simple MongoDB client manager.

    Features:
    - Creates and tracks one AsyncIOMotorClient per label
    - Loads connection strings from MONGO_URL_<LABEL> configuration keys
    - Configurable pool size and timeouts
    - Ensures all clients are closed on process exit
    """

    def __init__(self):
        self._clients: Dict[str, AsyncIOMotorClient] = {}
        self._connection_strings: Dict[str, str] = {}
        self._lock = threading.Lock()

        self._max_pool_size = config.get_mongo_max_pool_size()
        self._server_selection_timeout = config.get_mongo_server_selection_timeout()
        self._connect_timeout = config.get_mongo_connect_timeout()
        self._socket_timeout = config.get_mongo_socket_timeout()
        logger.info(
            "Loaded MongoDB parameters: pool={} server_selection={}ms connect={}ms socket={}ms",
            self._max_pool_size,
            self._server_selection_timeout,
            self._connect_timeout,
            self._socket_timeout,
        )

        self._load_connection_strings()
        atexit.register(self.close_all)

    def _load_connection_strings(self):
        for key, value in config.items():
            if not key.startswith("MONGO_URL_") or not value:
                continue
            label = key[len("MONGO_URL_") :].lower()
            self._connection_strings[label] = value
            logger.info("Loaded MongoDB connection string for label '{}': {}", label, hide_password(value))

        if "default" not in self._connection_strings:
            self._connection_strings["default"] = config.get_mongo_url("default")

    def get_client(self, label: str | None = None) -> AsyncIOMotorClient:
        """
        Get MongoDB client by label.

        Raises:
            ValueError: If no connection string is configured for the label
        """
        label = label or "default"

        with self._lock:
            if label not in self._clients:
                if label not in self._connection_strings:
                    raise ValueError(f"No MongoDB connection string found for label '{label}'")

                logger.info("Open MongoDB client for label '{}'", label)
                self._clients[label] = AsyncIOMotorClient(
                    self._connection_strings[label],
                    serverSelectionTimeoutMS=self._server_selection_timeout,
                    connectTimeoutMS=self._connect_timeout,
                    socketTimeoutMS=self._socket_timeout,
                    maxPoolSize=self._max_pool_size,
                )

            return self._clients[label]

    def close_client(self, label: str):
        with self._lock:
            client = self._clients.pop(label, None)
        if client is not None:
            client.close()
            logger.info("Closed MongoDB client for label '{}'", label)

    def close_all(self):
        with self._lock:
            labels = list(self._clients.keys())
        for label in labels:
            self.close_client(label)


_mongo_manager = None


def get_mongo_manager() -> MongoManager:
    """Get the global MongoDB manager instance."""
    global _mongo_manager
    if _mongo_manager is None:
        _mongo_manager = MongoManager()
    return _mongo_manager


def get_mongo_client(label: str | None = None) -> AsyncIOMotorClient:
    """Get MongoDB client by label."""
    return get_mongo_manager().get_client(label)
