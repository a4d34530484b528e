"""Beanie ODM schemas for MongoDB collections."""

from .access_session import AccessSession
from .init import BEANIE_MODELS, init_beanie_odm
from .plan import PlanTag
from .stream_session import StreamSession, VideoFile
from .stream_state import StreamState
from .user import Counter, User

__all__ = [
    "AccessSession",
    "BEANIE_MODELS",
    "Counter",
    "PlanTag",
    "StreamSession",
    "StreamState",
    "User",
    "VideoFile",
    "init_beanie_odm",
]
