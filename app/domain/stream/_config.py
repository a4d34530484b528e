"""Stream destination configuration."""

import re

from loguru import logger

from app.storage import StreamSessionRecord
from app.utils.app_errors import AppErrorCode, InvalidDestinationKey, PreconditionFailedError

from ._base import BaseStreamOperations

DESTINATION_KEY_PATTERN = re.compile(r"[A-Za-z0-9_-]{4,}")


def parse_destination_keys(raw: str | None) -> list[str]:
    """Split newline-separated keys, trim them and drop blanks.

    Raises:
        InvalidDestinationKey: If no key remains or any key is malformed
    """
    keys = [line.strip() for line in (raw or "").split("\n") if line.strip()]
    if not keys:
        raise InvalidDestinationKey(errmesg="At least one stream key is required")

    invalid = [key for key in keys if not DESTINATION_KEY_PATTERN.fullmatch(key)]
    if invalid:
        raise InvalidDestinationKey(
            errmesg=f"Invalid stream key format: {', '.join(invalid)}"
        )
    return keys


class ConfigOperations(BaseStreamOperations):
    async def configure(
        self,
        session_id: str,
        raw_keys: str | None,
        loop_video: bool = False,
        mobile_mode: bool = False,
    ) -> StreamSessionRecord:
        """
        Replace destination keys and playback flags of an existing stream session.

        Keys are validated before anything is touched, so a rejected request
        leaves the stored configuration as it was.

        Raises:
            InvalidDestinationKey: Empty or malformed key list
            PreconditionFailedError: No stream session yet (upload first)
        """
        keys = parse_destination_keys(raw_keys)

        async with self.locks.hold(session_id):
            stream_session = await self.storage.get_stream_session(session_id)
            if stream_session is None:
                raise PreconditionFailedError(
                    errcode=AppErrorCode.E_STREAM_SESSION_NOT_FOUND,
                    errmesg="No stream session found, upload a video first",
                )

            updated = await self._update_existing(
                session_id,
                stream_keys=keys,
                loop_video=bool(loop_video),
                mobile_mode=bool(mobile_mode),
            )

        logger.info(
            f"Stream configured: session={session_id} keys={len(keys)} "
            f"loop={updated.loop_video} mobile={updated.mobile_mode}"
        )
        return updated
