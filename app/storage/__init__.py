"""Repository backends and the process-wide storage instance."""

from loguru import logger

from .base import SessionRepository, new_session_token
from .memory import MemoryStorage
from .models import SessionRecord, StreamSessionRecord, UserRecord

RESTREAM_MONGO_LABEL = "restream_primary"

_storage: SessionRepository | None = None


async def init_storage(backend: str) -> SessionRepository:
    """Create the configured backend and make it the process-wide storage."""
    global _storage

    if backend == "memory":
        storage: SessionRepository = MemoryStorage()
    elif backend == "mongo":
        from app.schemas.init import init_beanie_odm
        from app.shared.storage.mongo import get_mongo_client

        from .mongo import MongoStorage

        mongo_client = get_mongo_client(RESTREAM_MONGO_LABEL)
        await init_beanie_odm(mongo_client.get_default_database("restream"))
        storage = MongoStorage()
    else:
        raise ValueError(f"Unknown STORAGE_BACKEND: {backend!r}")

    logger.info("Storage backend initialized: {}", storage.backend_name)
    _storage = storage
    return storage


def get_storage() -> SessionRepository:
    """Return the process-wide storage, falling back to a memory store."""
    global _storage
    if _storage is None:
        _storage = MemoryStorage()
    return _storage


def set_storage(storage: SessionRepository | None) -> None:
    global _storage
    _storage = storage


__all__ = [
    "MemoryStorage",
    "SessionRecord",
    "SessionRepository",
    "StreamSessionRecord",
    "UserRecord",
    "get_storage",
    "init_storage",
    "new_session_token",
    "set_storage",
]
