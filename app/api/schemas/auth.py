from datetime import datetime

from pydantic import Field, field_serializer

from app.schemas.plan import PlanTag

from .base import ApiOk, CamelModel


def _serialize_utc(dt: datetime | None) -> str | None:
    if dt is None:
        return None
    return dt.isoformat().replace("+00:00", "Z")


class LoginIn(CamelModel):
    access_code: str = Field(min_length=1, description="Shared access secret")


class LoginOut(ApiOk):
    session_id: str


class PaymentIn(CamelModel):
    plan: PlanTag | None = Field(default=None, description="Requested plan")
    transaction_code: str = Field(default="", description="Transaction code from the payment provider")


class PaymentOut(ApiOk):
    message: str = "Payment successful"
    plan: PlanTag
    session_id: str


class SessionOut(CamelModel):
    session_id: str
    plan: PlanTag
    expires_at: datetime | None = None
    created_at: datetime

    @field_serializer("expires_at", "created_at")
    def serialize_dt(self, dt: datetime | None) -> str | None:
        return _serialize_utc(dt)


class SessionInfoOut(ApiOk):
    session: SessionOut
