"""Stream domain service - upload, configuration and transcoder supervision."""

from app.app_config import AppEnvironConfig, get_app_environ_config
from app.schemas import StreamState
from app.shared.lock import KeyedLockManager
from app.storage import SessionRepository, StreamSessionRecord

from ._config import ConfigOperations
from ._supervisor import StreamSupervisor
from ._upload import UploadOperations
from .process_launcher import ProcessLauncher
from .process_registry import ProcessRegistry
from .stream_models import (
    StreamStartResult,
    StreamStatus,
    StreamStopResult,
    UploadResult,
    UploadSource,
)


class StreamService:
    """Per-session stream lifecycle.

    All operations share one process registry and one per-session lock
    manager, which is what serializes configure, upload, start, stop and
    exit reconciliation for the same session.
    """

    def __init__(
        self,
        storage: SessionRepository | None = None,
        registry: ProcessRegistry | None = None,
        launcher: ProcessLauncher | None = None,
        settings: AppEnvironConfig | None = None,
        locks: KeyedLockManager | None = None,
    ):
        self.registry = registry if registry is not None else ProcessRegistry()
        self.locks = locks if locks is not None else KeyedLockManager(lock_prefix="stream")
        settings = settings or get_app_environ_config()

        shared = dict(storage=storage, registry=self.registry, locks=self.locks, settings=settings)
        self._upload = UploadOperations(**shared)
        self._config = ConfigOperations(**shared)
        self._supervisor = StreamSupervisor(launcher=launcher, **shared)

    # ==================== UPLOAD / CONFIG ====================

    async def upload_video(self, session_id: str, upload: UploadSource | None) -> UploadResult:
        """Store an uploaded video and record it on the stream session.

        Raises AppError (400/413/415/500) on a missing, wrong-typed, oversized or unwritable file.
        """
        return await self._upload.upload_video(session_id=session_id, upload=upload)

    async def configure(
        self,
        session_id: str,
        raw_keys: str | None,
        loop_video: bool = False,
        mobile_mode: bool = False,
    ) -> StreamSessionRecord:
        """Replace destination keys and flags.

        Raises InvalidDestinationKey or PreconditionFailedError (no stream session).
        """
        return await self._config.configure(
            session_id=session_id,
            raw_keys=raw_keys,
            loop_video=loop_video,
            mobile_mode=mobile_mode,
        )

    # ==================== LIFECYCLE ====================

    async def start(self, session_id: str) -> StreamStartResult:
        """Start (or restart) the transcoder for a session."""
        return await self._supervisor.start(session_id=session_id)

    async def stop(self, session_id: str) -> StreamStopResult:
        """Stop the transcoder and discard the stream session with its files."""
        return await self._supervisor.stop(session_id=session_id)

    async def get_status(self, session_id: str) -> StreamStatus:
        return await self._supervisor.get_status(session_id=session_id)

    async def get_state(self, session_id: str) -> StreamState:
        return await self._supervisor.get_state(session_id=session_id)

    async def wait_for_watchers(self) -> None:
        await self._supervisor.wait_for_watchers()

    async def shutdown(self) -> None:
        await self._supervisor.shutdown()
