"""Stream session ODM schema."""

from datetime import datetime
from typing import Any

from beanie import Document, Indexed
from pydantic import BaseModel, Field, field_validator

from .schema_utils import parse_mongo_datetime


class VideoFile(BaseModel):
    """Uploaded file descriptor."""

    file_name: str
    file_path: str
    size: int


class StreamSession(Document):
    """Stream session document model."""

    session_id: Indexed(str, unique=True)  # type: ignore[valid-type]
    stream_keys: list[str] = Field(default_factory=list)
    video_files: list[VideoFile] = Field(default_factory=list)
    is_active: bool = False
    loop_video: bool = False
    mobile_mode: bool = False

    created_at: datetime
    updated_at: datetime

    @field_validator("created_at", "updated_at", mode="before")
    @classmethod
    def _parse_datetime(cls, v: Any) -> Any:
        return parse_mongo_datetime(v)

    class Settings:
        name = "stream_session"
        indexes = [
            [("session_id", 1)],  # unique handled by Indexed
            "is_active",
        ]
