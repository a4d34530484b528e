"""Access session ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import field_validator

from .plan import PlanTag
from .schema_utils import parse_mongo_datetime


class AccessSession(Document):
    """Access session document model."""

    session_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    plan: PlanTag
    expires_at: datetime | None = None
    created_at: datetime

    @field_validator("expires_at", "created_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "session"
