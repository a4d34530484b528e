"""Process binding table: session id -> running transcoder handle."""

from typing import Iterator, Protocol, runtime_checkable

from loguru import logger

from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode


@runtime_checkable
class ProcessHandle(Protocol):
    """The subset of asyncio.subprocess.Process the supervisor relies on."""

    @property
    def pid(self) -> int: ...

    @property
    def returncode(self) -> int | None: ...

    def terminate(self) -> None: ...

    def kill(self) -> None: ...

    async def wait(self) -> int: ...


class ProcessRegistry:
    """Owns the mapping from session id to at most one transcoder process.

    Only the stream supervisor mutates it. `unbind` is idempotent and can be
    scoped to a specific handle so a late exit of a replaced process never
    removes its successor.
    """

    def __init__(self):
        self._bindings: dict[str, ProcessHandle] = {}

    def bind(self, session_id: str, handle: ProcessHandle) -> None:
        """Bind a process to a session.

        Raises:
            AppError: If a different process is already bound
        """
        current = self._bindings.get(session_id)
        if current is not None and current is not handle:
            raise AppError(
                errcode=AppErrorCode.E_INTERNAL_ERROR,
                errmesg=f"Session {session_id} already has process {current.pid} bound",
                status_code=HttpStatusCode.CONFLICT,
            )
        self._bindings[session_id] = handle
        logger.debug(f"Bound process {handle.pid} to session {session_id}")

    def unbind(self, session_id: str, handle: ProcessHandle | None = None) -> ProcessHandle | None:
        """Remove the binding if present.

        Args:
            session_id: Session identifier
            handle: When given, only unbind if this exact handle is the bound one

        Returns:
            The removed handle, or None if nothing (matching) was bound
        """
        current = self._bindings.get(session_id)
        if current is None:
            return None
        if handle is not None and current is not handle:
            return None

        del self._bindings[session_id]
        logger.debug(f"Unbound process {current.pid} from session {session_id}")
        return current

    def is_bound(self, session_id: str, handle: ProcessHandle | None = None) -> bool:
        current = self._bindings.get(session_id)
        if handle is None:
            return current is not None
        return current is handle

    def get(self, session_id: str) -> ProcessHandle | None:
        return self._bindings.get(session_id)

    def items(self) -> Iterator[tuple[str, ProcessHandle]]:
        return iter(list(self._bindings.items()))

    def __len__(self) -> int:
        return len(self._bindings)

    def __contains__(self, session_id: str) -> bool:
        return session_id in self._bindings
