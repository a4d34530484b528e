"""Stream domain models."""

from typing import Protocol

from pydantic import BaseModel

from app.schemas import StreamState


class UploadSource(Protocol):
    """What the upload handler needs from an uploaded file (Starlette's UploadFile fits)."""

    filename: str | None
    content_type: str | None

    async def read(self, size: int = -1) -> bytes: ...


class UploadResult(BaseModel):
    """Uploaded file summary."""

    name: str
    size: int
    path: str


class StreamStartResult(BaseModel):
    message: str = "Stream started"
    active_streams: int


class StreamStopResult(BaseModel):
    message: str = "Stream stopped"
    was_streaming: bool = False
    removed_files: int = 0


class StreamStatus(BaseModel):
    """Read-only projection of a session's stream state for polling clients."""

    is_active: bool = False
    has_file: bool = False
    active_streams: int = 0
    file_name: str = ""
    loop_video: bool = False
    mobile_mode: bool = False
    stream_keys: str = ""
    state: StreamState = StreamState.IDLE
