from fastapi import APIRouter, Depends, Request, Response

from app.api.dependency import CurrentSession, get_access_service, get_session_token
from app.api.schemas.auth import (
    LoginIn,
    LoginOut,
    PaymentIn,
    PaymentOut,
    SessionInfoOut,
    SessionOut,
)
from app.app_config import get_app_environ_config
from app.domain.access.access_domain import AccessService
from app.shared.api.utils import ApiSuccess

router = APIRouter()


def _set_session_cookie(response: Response, session_id: str) -> None:
    settings = get_app_environ_config()
    response.set_cookie(
        settings.SESSION_COOKIE_NAME,
        session_id,
        httponly=True,
        secure=settings.COOKIE_SECURE,
        samesite="lax",
    )


@router.post("/login")
async def login(
    body: LoginIn,
    response: Response,
    service: AccessService = Depends(get_access_service),
) -> LoginOut:
    """Exchange the access code for a session cookie."""
    session = await service.login(body.access_code)
    _set_session_cookie(response, session.session_id)
    return LoginOut(session_id=session.session_id)


@router.post("/payment")
async def payment(
    body: PaymentIn,
    response: Response,
    service: AccessService = Depends(get_access_service),
) -> PaymentOut:
    """Redeem a transaction code for a plan-tagged session."""
    session = await service.pay(body.plan, body.transaction_code)
    _set_session_cookie(response, session.session_id)
    return PaymentOut(plan=session.plan, session_id=session.session_id)


@router.get("/session")
async def get_session(session: CurrentSession) -> SessionInfoOut:
    return SessionInfoOut(session=SessionOut(**session.model_dump()))


@router.post("/logout")
async def logout(
    request: Request,
    response: Response,
    service: AccessService = Depends(get_access_service),
) -> ApiSuccess:
    """Delete the session; a running stream keeps running until stopped."""
    await service.logout(get_session_token(request))
    response.delete_cookie(get_app_environ_config().SESSION_COOKIE_NAME)
    return ApiSuccess()
