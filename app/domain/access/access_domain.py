"""Access session service: login, payment, validation and logout."""

from loguru import logger

from app.schemas.plan import PlanTag
from app.schemas.schema_utils import utc_now
from app.storage import SessionRecord, SessionRepository, get_storage
from app.utils.app_errors import (
    AppErrorCode,
    HttpStatusCode,
    InvalidParamsError,
    UnauthenticatedError,
)

from .access_gate import AccessGate, StaticAccessGate


class AccessService:
    """Creates, validates and deletes access sessions."""

    def __init__(
        self,
        storage: SessionRepository | None = None,
        gate: AccessGate | None = None,
        login_plan: PlanTag = PlanTag.LIFETIME,
    ):
        self._storage = storage
        self._gate = gate or StaticAccessGate(access_codes=[])
        self._login_plan = login_plan

    @property
    def storage(self) -> SessionRepository:
        return self._storage if self._storage is not None else get_storage()

    async def _create_session(self, plan: PlanTag) -> SessionRecord:
        session = await self.storage.create_session(plan=plan, expires_at=plan.expires_at(utc_now()))
        logger.info(f"Created session {session.session_id[:8]}… plan={plan} expires_at={session.expires_at}")
        return session

    async def login(self, access_code: str) -> SessionRecord:
        """Exchange the shared secret for a new session.

        Raises:
            UnauthenticatedError: If the access code is not accepted
        """
        if not self._gate.check_access_code(access_code):
            logger.warning("Rejected login with invalid access code")
            raise UnauthenticatedError(
                errcode=AppErrorCode.E_INVALID_ACCESS_CODE,
                errmesg="Invalid access code",
            )

        return await self._create_session(self._login_plan)

    async def pay(self, plan: PlanTag | None, transaction_code: str) -> SessionRecord:
        """Redeem a transaction code for a plan-tagged session.

        Raises:
            InvalidParamsError: If the transaction code is missing or rejected
        """
        if not transaction_code:
            raise InvalidParamsError(errmesg="Transaction code is required.")

        granted = self._gate.redeem_transaction(plan, transaction_code)
        if granted is None:
            logger.warning(f"Rejected payment for plan={plan} with invalid transaction code")
            raise InvalidParamsError(
                errcode=AppErrorCode.E_INVALID_TRANSACTION_CODE,
                errmesg="Invalid transaction code.",
                status_code=HttpStatusCode.BAD_REQUEST,
            )

        return await self._create_session(granted)

    async def get_valid_session(self, session_id: str | None) -> SessionRecord:
        """Resolve a session token, purging it if it has expired.

        Raises:
            UnauthenticatedError: If the token is missing, unknown or expired
        """
        if not session_id:
            raise UnauthenticatedError(errmesg="No session found")

        session = await self.storage.get_session(session_id)
        if session is None:
            raise UnauthenticatedError(errmesg="Invalid session")

        if session.is_expired():
            logger.info(f"Session {session_id[:8]}… expired at {session.expires_at}, purging")
            await self.storage.delete_session(session_id)
            raise UnauthenticatedError(
                errcode=AppErrorCode.E_SESSION_EXPIRED,
                errmesg="Session expired",
            )

        return session

    async def logout(self, session_id: str | None) -> None:
        if not session_id:
            return
        await self.storage.delete_session(session_id)
        logger.info(f"Session {session_id[:8]}… logged out")
