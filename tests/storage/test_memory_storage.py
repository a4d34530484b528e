"""Tests for the in-memory repository backend."""

import pytest

from app.schemas import VideoFile
from app.schemas.plan import PlanTag
from app.storage import MemoryStorage
from app.utils.app_errors import AppError, InvalidParamsError


class TestUsers:
    async def test_create_and_get(self, memory_storage: MemoryStorage):
        user = await memory_storage.create_user("alice", "secret")

        assert user.user_id == 1
        assert await memory_storage.get_user(1) == user
        assert await memory_storage.get_user_by_username("alice") == user
        assert await memory_storage.get_user_by_username("bob") is None

    async def test_duplicate_username(self, memory_storage: MemoryStorage):
        await memory_storage.create_user("alice", "secret")

        with pytest.raises(AppError) as exc_info:
            await memory_storage.create_user("alice", "other")

        assert exc_info.value.status_code == 409


class TestSessions:
    async def test_create_get_delete(self, memory_storage: MemoryStorage):
        session = await memory_storage.create_session(plan=PlanTag.LIFETIME, expires_at=None)

        assert await memory_storage.get_session(session.session_id) == session

        await memory_storage.delete_session(session.session_id)
        await memory_storage.delete_session(session.session_id)
        assert await memory_storage.get_session(session.session_id) is None

    async def test_explicit_session_id(self, memory_storage: MemoryStorage):
        session = await memory_storage.create_session(
            plan=PlanTag.FIVE_HOURS, expires_at=None, session_id="fixed"
        )

        assert session.session_id == "fixed"


class TestStreamSessions:
    async def test_partial_update_keeps_other_fields(self, memory_storage: MemoryStorage):
        video = VideoFile(file_name="clip.mp4", file_path="/tmp/clip.mp4", size=10)
        created = await memory_storage.create_stream_session("s1", video_files=[video])

        updated = await memory_storage.update_stream_session("s1", stream_keys=["abcd"])

        assert updated is not None
        assert updated.stream_keys == ["abcd"]
        assert updated.video_files == [video]
        assert updated.is_active is False
        assert updated.updated_at >= created.updated_at

    async def test_update_missing_returns_none(self, memory_storage: MemoryStorage):
        assert await memory_storage.update_stream_session("nope", is_active=True) is None

    async def test_unknown_field_rejected(self, memory_storage: MemoryStorage):
        await memory_storage.create_stream_session("s1")

        with pytest.raises(InvalidParamsError):
            await memory_storage.update_stream_session("s1", session_id="other")

    async def test_returned_records_are_copies(self, memory_storage: MemoryStorage):
        await memory_storage.create_stream_session("s1", stream_keys=["abcd"])

        record = await memory_storage.get_stream_session("s1")
        assert record is not None
        record.stream_keys.append("mutated")

        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.stream_keys == ["abcd"]

    async def test_deactivate_all(self, memory_storage: MemoryStorage):
        await memory_storage.create_stream_session("s1", is_active=True)
        await memory_storage.create_stream_session("s2", is_active=True)
        await memory_storage.create_stream_session("s3")

        assert await memory_storage.deactivate_all_stream_sessions() == 2

        for session_id in ("s1", "s2", "s3"):
            stored = await memory_storage.get_stream_session(session_id)
            assert stored is not None
            assert stored.is_active is False

    async def test_delete(self, memory_storage: MemoryStorage):
        await memory_storage.create_stream_session("s1")

        await memory_storage.delete_stream_session("s1")

        assert await memory_storage.get_stream_session("s1") is None
