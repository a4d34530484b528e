"""Storage records returned by every repository backend."""

from datetime import datetime

from pydantic import BaseModel, Field

from app.schemas.plan import PlanTag
from app.schemas.schema_utils import utc_now
from app.schemas.stream_session import VideoFile


class UserRecord(BaseModel):
    user_id: int
    username: str
    password: str


class SessionRecord(BaseModel):
    """Authenticated, time-boxed client context."""

    session_id: str
    plan: PlanTag
    expires_at: datetime | None = None
    created_at: datetime = Field(default_factory=utc_now)

    def is_expired(self, now: datetime | None = None) -> bool:
        """A session with an expiry in the past must be purged before being read again."""
        if self.expires_at is None:
            return False
        return self.expires_at < (now or utc_now())


class StreamSessionRecord(BaseModel):
    """Per-session upload, destination and playback state.

    `is_active` mirrors whether a transcoder process is bound to `session_id`
    in the process registry; only the stream supervisor flips it.
    """

    session_id: str
    stream_keys: list[str] = Field(default_factory=list)
    video_files: list[VideoFile] = Field(default_factory=list)
    is_active: bool = False
    loop_video: bool = False
    mobile_mode: bool = False

    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    @property
    def first_video(self) -> VideoFile | None:
        return self.video_files[0] if self.video_files else None


# Fields callers may change through update_stream_session
STREAM_SESSION_MUTABLE_FIELDS = frozenset(
    {"stream_keys", "video_files", "is_active", "loop_video", "mobile_mode"}
)
