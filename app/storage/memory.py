"""Non-persistent repository backend."""

from datetime import datetime
from typing import Any

from loguru import logger

from app.schemas.plan import PlanTag
from app.schemas.schema_utils import utc_now
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .base import SessionRepository, new_session_token
from .models import SessionRecord, StreamSessionRecord, UserRecord


class MemoryStorage(SessionRepository):
    """Dict-backed repository; everything is lost when the process exits.

    Records are copied on the way in and out so callers never hold a reference
    into the store. None of the methods await between reading and writing a
    record, which makes every read-modify-write atomic on the event loop.
    """

    backend_name = "memory"
    is_persistent = False

    def __init__(self):
        self._users: dict[int, UserRecord] = {}
        self._users_by_username: dict[str, int] = {}
        self._sessions: dict[str, SessionRecord] = {}
        self._stream_sessions: dict[str, StreamSessionRecord] = {}
        self._next_user_id = 1

    # ==================== USERS ====================

    async def create_user(self, username: str, password: str) -> UserRecord:
        if username in self._users_by_username:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Username already exists: {username}",
                status_code=HttpStatusCode.CONFLICT,
            )

        user = UserRecord(user_id=self._next_user_id, username=username, password=password)
        self._next_user_id += 1
        self._users[user.user_id] = user
        self._users_by_username[username] = user.user_id
        return user.model_copy()

    async def get_user(self, user_id: int) -> UserRecord | None:
        user = self._users.get(user_id)
        return user.model_copy() if user else None

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        user_id = self._users_by_username.get(username)
        if user_id is None:
            return None
        return await self.get_user(user_id)

    # ==================== SESSIONS ====================

    async def create_session(
        self,
        plan: PlanTag,
        expires_at: datetime | None,
        session_id: str | None = None,
    ) -> SessionRecord:
        session = SessionRecord(
            session_id=session_id or new_session_token(),
            plan=plan,
            expires_at=expires_at,
        )
        self._sessions[session.session_id] = session
        return session.model_copy()

    async def get_session(self, session_id: str) -> SessionRecord | None:
        session = self._sessions.get(session_id)
        return session.model_copy() if session else None

    async def delete_session(self, session_id: str) -> None:
        self._sessions.pop(session_id, None)

    # ==================== STREAM SESSIONS ====================

    async def create_stream_session(self, session_id: str, **fields: Any) -> StreamSessionRecord:
        self._check_stream_session_fields(fields)
        stream_session = StreamSessionRecord(session_id=session_id, **fields)
        if session_id in self._stream_sessions:
            logger.warning(f"Replacing existing stream session for {session_id}")
        self._stream_sessions[session_id] = stream_session
        return stream_session.model_copy(deep=True)

    async def get_stream_session(self, session_id: str) -> StreamSessionRecord | None:
        stream_session = self._stream_sessions.get(session_id)
        return stream_session.model_copy(deep=True) if stream_session else None

    async def update_stream_session(
        self, session_id: str, **updates: Any
    ) -> StreamSessionRecord | None:
        self._check_stream_session_fields(updates)

        current = self._stream_sessions.get(session_id)
        if current is None:
            return None

        data = current.model_dump()
        data.update(updates)
        data["updated_at"] = utc_now()
        updated = StreamSessionRecord.model_validate(data)

        self._stream_sessions[session_id] = updated
        return updated.model_copy(deep=True)

    async def delete_stream_session(self, session_id: str) -> None:
        self._stream_sessions.pop(session_id, None)

    async def deactivate_all_stream_sessions(self) -> int:
        changed = 0
        for session_id, stream_session in list(self._stream_sessions.items()):
            if stream_session.is_active:
                self._stream_sessions[session_id] = stream_session.model_copy(
                    update={"is_active": False, "updated_at": utc_now()}
                )
                changed += 1
        return changed
