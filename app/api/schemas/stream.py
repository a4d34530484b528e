from datetime import datetime

from pydantic import Field

from app.schemas import StreamState

from .base import ApiOk, CamelModel


class FileOut(CamelModel):
    name: str
    size: int


class UploadOut(ApiOk):
    file: FileOut


class StreamConfigIn(CamelModel):
    stream_keys: str = Field(default="", description="Destination keys, one per line")
    loop_video: bool = False
    mobile_mode: bool = False


class VideoFileOut(CamelModel):
    file_name: str
    size: int


class StreamSessionOut(CamelModel):
    stream_keys: list[str]
    video_files: list[VideoFileOut]
    is_active: bool
    loop_video: bool
    mobile_mode: bool
    updated_at: datetime


class StreamConfigOut(ApiOk):
    stream_session: StreamSessionOut


class StreamStartOut(ApiOk):
    message: str
    active_streams: int


class StreamStopOut(ApiOk):
    message: str


class StreamStatusOut(ApiOk):
    is_active: bool
    has_file: bool
    active_streams: int
    file_name: str
    loop_video: bool
    mobile_mode: bool
    stream_keys: str
    state: StreamState
