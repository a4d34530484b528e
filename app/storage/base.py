"""Repository interface for users, sessions and stream sessions."""

import secrets
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any

from app.schemas.plan import PlanTag
from app.utils.app_errors import AppErrorCode, InvalidParamsError

from .models import STREAM_SESSION_MUTABLE_FIELDS, SessionRecord, StreamSessionRecord, UserRecord


def new_session_token() -> str:
    """Opaque, URL-safe session identifier."""
    return secrets.token_urlsafe(16)


class SessionRepository(ABC):
    """Data access for the three record kinds. No process knowledge.

    `update_stream_session` applies a partial merge (only the given fields
    change) and returns None when no record exists; every backend must make
    that read-modify-write atomic per session id.
    """

    backend_name: str = "abstract"
    is_persistent: bool = False

    # ==================== USERS ====================

    @abstractmethod
    async def create_user(self, username: str, password: str) -> UserRecord: ...

    @abstractmethod
    async def get_user(self, user_id: int) -> UserRecord | None: ...

    @abstractmethod
    async def get_user_by_username(self, username: str) -> UserRecord | None: ...

    # ==================== SESSIONS ====================

    @abstractmethod
    async def create_session(
        self,
        plan: PlanTag,
        expires_at: datetime | None,
        session_id: str | None = None,
    ) -> SessionRecord: ...

    @abstractmethod
    async def get_session(self, session_id: str) -> SessionRecord | None: ...

    @abstractmethod
    async def delete_session(self, session_id: str) -> None: ...

    # ==================== STREAM SESSIONS ====================

    @abstractmethod
    async def create_stream_session(self, session_id: str, **fields: Any) -> StreamSessionRecord: ...

    @abstractmethod
    async def get_stream_session(self, session_id: str) -> StreamSessionRecord | None: ...

    @abstractmethod
    async def update_stream_session(
        self, session_id: str, **updates: Any
    ) -> StreamSessionRecord | None: ...

    @abstractmethod
    async def delete_stream_session(self, session_id: str) -> None: ...

    @abstractmethod
    async def deactivate_all_stream_sessions(self) -> int:
        """Clear is_active on every stream session; returns how many were changed."""

    async def close(self) -> None:
        return None

    @staticmethod
    def _check_stream_session_fields(fields: dict[str, Any]) -> None:
        unknown = set(fields) - STREAM_SESSION_MUTABLE_FIELDS
        if unknown:
            raise InvalidParamsError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Unknown stream session fields: {sorted(unknown)}",
            )


__all__ = ["SessionRepository", "new_session_token"]
