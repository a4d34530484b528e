"""Tests for login, payment, session validation and logout."""

from datetime import timedelta

import pytest

from app.domain.access.access_domain import AccessService
from app.domain.access.access_gate import StaticAccessGate
from app.schemas.plan import PlanTag
from app.schemas.schema_utils import utc_now
from app.storage import MemoryStorage
from app.utils.app_errors import AppErrorCode, InvalidParamsError, UnauthenticatedError


@pytest.fixture
def access_service(memory_storage: MemoryStorage) -> AccessService:
    return AccessService(
        storage=memory_storage,
        gate=StaticAccessGate(access_codes=["bintunet"]),
        login_plan=PlanTag.LIFETIME,
    )


class TestLogin:
    async def test_valid_code_creates_lifetime_session(
        self, access_service: AccessService, memory_storage: MemoryStorage
    ):
        session = await access_service.login("bintunet")

        assert session.plan == PlanTag.LIFETIME
        assert session.expires_at is None
        assert await memory_storage.get_session(session.session_id) == session

    async def test_invalid_code(self, access_service: AccessService):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await access_service.login("nope")

        assert exc_info.value.status_code == 401
        assert exc_info.value.errcode == AppErrorCode.E_INVALID_ACCESS_CODE.value

    async def test_session_ids_are_unique(self, access_service: AccessService):
        first = await access_service.login("bintunet")
        second = await access_service.login("bintunet")

        assert first.session_id != second.session_id


class TestPay:
    async def test_demo_code_sets_expiry(self, access_service: AccessService):
        before = utc_now()

        session = await access_service.pay(PlanTag.LIFETIME, "1")

        assert session.plan == PlanTag.FIVE_HOURS
        assert session.expires_at is not None
        assert before + timedelta(hours=5) <= session.expires_at <= utc_now() + timedelta(hours=5)

    async def test_universal_code(self, access_service: AccessService):
        session = await access_service.pay(PlanTag.TWELVE_HOURS, "bintunet")

        assert session.plan == PlanTag.TWELVE_HOURS

    async def test_lifetime_has_no_expiry(self, access_service: AccessService):
        session = await access_service.pay(None, "3")

        assert session.plan == PlanTag.LIFETIME
        assert session.expires_at is None

    async def test_missing_code(self, access_service: AccessService):
        with pytest.raises(InvalidParamsError):
            await access_service.pay(PlanTag.FIVE_HOURS, "")

    async def test_invalid_code(self, access_service: AccessService):
        with pytest.raises(InvalidParamsError) as exc_info:
            await access_service.pay(PlanTag.FIVE_HOURS, "999")

        assert exc_info.value.status_code == 400
        assert exc_info.value.errcode == AppErrorCode.E_INVALID_TRANSACTION_CODE.value


class TestGetValidSession:
    async def test_valid(self, access_service: AccessService):
        session = await access_service.login("bintunet")

        assert await access_service.get_valid_session(session.session_id) == session

    async def test_missing_token(self, access_service: AccessService):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await access_service.get_valid_session(None)

        assert exc_info.value.errmesg == "No session found"

    async def test_unknown_token(self, access_service: AccessService):
        with pytest.raises(UnauthenticatedError) as exc_info:
            await access_service.get_valid_session("unknown")

        assert exc_info.value.errmesg == "Invalid session"

    async def test_expired_session_is_purged(
        self, access_service: AccessService, memory_storage: MemoryStorage
    ):
        session = await memory_storage.create_session(
            plan=PlanTag.FIVE_HOURS, expires_at=utc_now() - timedelta(seconds=1)
        )

        with pytest.raises(UnauthenticatedError) as exc_info:
            await access_service.get_valid_session(session.session_id)

        assert exc_info.value.errcode == AppErrorCode.E_SESSION_EXPIRED.value
        assert await memory_storage.get_session(session.session_id) is None


class TestLogout:
    async def test_logout_deletes_session(
        self, access_service: AccessService, memory_storage: MemoryStorage
    ):
        session = await access_service.login("bintunet")

        await access_service.logout(session.session_id)

        assert await memory_storage.get_session(session.session_id) is None

    async def test_logout_without_session(self, access_service: AccessService):
        await access_service.logout(None)
