"""Shared dependencies for stream operations."""

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.shared.lock import KeyedLockManager
from app.storage import SessionRepository, StreamSessionRecord, get_storage
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .process_registry import ProcessRegistry


class BaseStreamOperations:
    """Base with the storage, settings and per-session lock shared by all operations."""

    def __init__(
        self,
        storage: SessionRepository | None = None,
        registry: ProcessRegistry | None = None,
        locks: KeyedLockManager | None = None,
        settings: AppEnvironConfig | None = None,
    ):
        self._storage = storage
        self.registry = registry if registry is not None else ProcessRegistry()
        self.locks = locks if locks is not None else KeyedLockManager(lock_prefix="stream")
        self.settings = settings or get_app_environ_config()

    @property
    def storage(self) -> SessionRepository:
        return self._storage if self._storage is not None else get_storage()

    async def _update_existing(self, session_id: str, **updates) -> StreamSessionRecord:
        """Partial update of a record the caller has just read under the session lock.

        Raises:
            AppError: If the record vanished, which means the lock was bypassed
        """
        updated = await self.storage.update_stream_session(session_id, **updates)
        if updated is None:
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Stream session disappeared during update: {session_id}",
                status_code=HttpStatusCode.INTERNAL_SERVER_ERROR,
            )
        return updated
