from typing import Annotated

from fastapi import Depends, Request
from loguru import logger

from app.app_config import get_app_environ_config
from app.domain.access.access_domain import AccessService
from app.domain.access.access_gate import StaticAccessGate
from app.domain.stream.stream_domain import StreamService
from app.schemas.plan import PlanTag
from app.storage import SessionRecord

_settings = get_app_environ_config()

# Singleton instances; the stream service owns the process table, so there must be one per process
_access_service = AccessService(
    gate=StaticAccessGate(access_codes=_settings.ACCESS_CODES),
    login_plan=PlanTag(_settings.LOGIN_PLAN),
)
_stream_service = StreamService(settings=_settings)


def get_access_service() -> AccessService:
    """Get the singleton AccessService instance."""
    return _access_service


def get_stream_service() -> StreamService:
    """Get the singleton StreamService instance."""
    return _stream_service


def get_session_token(request: Request) -> str | None:
    return request.cookies.get(_settings.SESSION_COOKIE_NAME)


async def get_current_session(
    request: Request,
    service: AccessService = Depends(get_access_service),
) -> SessionRecord:
    # Never log the token itself, it is a bearer credential
    session = await service.get_valid_session(get_session_token(request))
    logger.debug("Authenticated session plan={}", session.plan)
    return session


CurrentSession = Annotated[SessionRecord, Depends(get_current_session)]
