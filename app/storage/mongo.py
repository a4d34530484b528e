"""MongoDB repository backend built on Beanie documents."""

from datetime import datetime
from typing import Any, TypeVar

from beanie import Document, UpdateResponse
from beanie.odm.operators.update.general import Inc, Set
from loguru import logger
from pydantic import BaseModel
from pymongo.errors import DuplicateKeyError

from app.schemas import AccessSession, Counter, StreamSession, User
from app.schemas.plan import PlanTag
from app.schemas.schema_utils import utc_now
from app.utils.app_errors import AppError, AppErrorCode, HttpStatusCode

from .base import SessionRepository, new_session_token
from .models import SessionRecord, StreamSessionRecord, UserRecord

R = TypeVar("R", bound=BaseModel)

USER_ID_COUNTER = "user_id"


def _to_record(doc: Document | None, record_type: type[R]) -> R | None:
    if doc is None:
        return None
    return record_type.model_validate(doc.model_dump(include=set(record_type.model_fields)))


class MongoStorage(SessionRepository):
    """Persistent repository; requires init_beanie_odm() to have run.

    Partial updates are a single find-one-and-update with $set, so concurrent
    updates to the same stream session never interleave at the field level.
    """

    backend_name = "mongo"
    is_persistent = True

    # ==================== USERS ====================

    async def _next_user_id(self) -> int:
        counter = await Counter.find_one(Counter.name == USER_ID_COUNTER).upsert(
            Inc({Counter.value: 1}),
            on_insert=Counter(name=USER_ID_COUNTER, value=1),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return counter.value  # type: ignore[union-attr]

    async def create_user(self, username: str, password: str) -> UserRecord:
        user = User(user_id=await self._next_user_id(), username=username, password=password)
        try:
            await user.insert()
        except DuplicateKeyError as e:
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Username already exists: {username}",
                status_code=HttpStatusCode.CONFLICT,
            ) from e
        return _to_record(user, UserRecord)  # type: ignore[return-value]

    async def get_user(self, user_id: int) -> UserRecord | None:
        return _to_record(await User.find_one(User.user_id == user_id), UserRecord)

    async def get_user_by_username(self, username: str) -> UserRecord | None:
        return _to_record(await User.find_one(User.username == username), UserRecord)

    # ==================== SESSIONS ====================

    async def create_session(
        self,
        plan: PlanTag,
        expires_at: datetime | None,
        session_id: str | None = None,
    ) -> SessionRecord:
        session = AccessSession(
            session_id=session_id or new_session_token(),
            plan=plan,
            expires_at=expires_at,
            created_at=utc_now(),
        )
        await session.insert()
        return _to_record(session, SessionRecord)  # type: ignore[return-value]

    async def get_session(self, session_id: str) -> SessionRecord | None:
        return _to_record(
            await AccessSession.find_one(AccessSession.session_id == session_id), SessionRecord
        )

    async def delete_session(self, session_id: str) -> None:
        await AccessSession.find(AccessSession.session_id == session_id).delete()

    # ==================== STREAM SESSIONS ====================

    async def create_stream_session(self, session_id: str, **fields: Any) -> StreamSessionRecord:
        self._check_stream_session_fields(fields)
        now = utc_now()
        record = StreamSessionRecord(session_id=session_id, created_at=now, updated_at=now, **fields)

        doc = await StreamSession.find_one(StreamSession.session_id == session_id).upsert(
            Set(record.model_dump(exclude={"session_id", "created_at"})),
            on_insert=StreamSession(**record.model_dump()),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        return _to_record(doc, StreamSessionRecord)  # type: ignore[return-value,arg-type]

    async def get_stream_session(self, session_id: str) -> StreamSessionRecord | None:
        return _to_record(
            await StreamSession.find_one(StreamSession.session_id == session_id),
            StreamSessionRecord,
        )

    async def update_stream_session(
        self, session_id: str, **updates: Any
    ) -> StreamSessionRecord | None:
        self._check_stream_session_fields(updates)

        # Validate through the record so embedded models serialize consistently
        values = StreamSessionRecord(session_id=session_id, **updates).model_dump(
            include=set(updates)
        )
        values["updated_at"] = utc_now()

        doc = await StreamSession.find_one(StreamSession.session_id == session_id).update(
            Set(values),
            response_type=UpdateResponse.NEW_DOCUMENT,
        )
        if doc is None:
            logger.debug(f"No stream session to update for {session_id}")
        return _to_record(doc, StreamSessionRecord)  # type: ignore[arg-type]

    async def delete_stream_session(self, session_id: str) -> None:
        await StreamSession.find(StreamSession.session_id == session_id).delete()

    async def deactivate_all_stream_sessions(self) -> int:
        result = await StreamSession.find(StreamSession.is_active == True).update(  # noqa: E712
            Set({StreamSession.is_active: False, StreamSession.updated_at: utc_now()})
        )
        return result.modified_count if result else 0
