"""Video upload operations."""

import os
import re
import time
from pathlib import Path

from loguru import logger

from app.schemas.stream_session import VideoFile
from app.utils.app_errors import (
    AppErrorCode,
    InvalidParamsError,
    PayloadTooLargeError,
    StorageFailureError,
    UnsupportedMediaTypeError,
)

from ._base import BaseStreamOperations
from .stream_models import UploadResult, UploadSource

UPLOAD_CHUNK_SIZE = 1024 * 1024

VIDEO_EXTENSIONS = frozenset({".mp4", ".avi", ".mov", ".mkv", ".webm", ".flv"})
GENERIC_BINARY_TYPE = "application/octet-stream"

_SAFE_SUFFIX = re.compile(r"^\.[A-Za-z0-9]{1,10}$")


def is_video_upload(filename: str | None, content_type: str | None) -> bool:
    """Accept by declared type (video/*, octet-stream) or by known extension."""
    ctype = (content_type or "").lower()
    if ctype.startswith("video/") or ctype == GENERIC_BINARY_TYPE:
        return True
    return Path(filename or "").suffix.lower() in VIDEO_EXTENSIONS


def _safe_suffix(filename: str) -> str:
    suffix = Path(filename).suffix
    return suffix if _SAFE_SUFFIX.match(suffix) else ""


def _remove_quietly(path: Path) -> None:
    try:
        path.unlink(missing_ok=True)
    except OSError as e:
        logger.warning(f"Failed removing partial upload {path}: {e}")


class UploadOperations(BaseStreamOperations):
    """Stores uploaded videos and records them on the caller's stream session."""

    def _allocate_path(self, session_id: str, filename: str) -> Path:
        upload_dir = Path(self.settings.UPLOAD_DIR)
        upload_dir.mkdir(parents=True, exist_ok=True)

        suffix = _safe_suffix(filename)
        stem = f"{session_id}_{int(time.time() * 1000)}"
        dest = upload_dir / f"{stem}{suffix}"
        n = 1
        while dest.exists():
            dest = upload_dir / f"{stem}-{n}{suffix}"
            n += 1
        return dest

    async def _write_upload(self, upload: UploadSource, dest: Path) -> int:
        """Stream the upload to `dest` via a .partial file; nothing is left behind on failure."""
        limit = self.settings.MAX_UPLOAD_BYTES
        temp_dest = dest.with_name(dest.name + ".partial")
        total = 0
        try:
            with temp_dest.open("wb") as buffer:
                while True:
                    chunk = await upload.read(UPLOAD_CHUNK_SIZE)
                    if not chunk:
                        break
                    total += len(chunk)
                    if total > limit:
                        raise PayloadTooLargeError(
                            errmesg=f"File too large, the limit is {limit // (1024 * 1024)} MB"
                        )
                    buffer.write(chunk)
            os.replace(temp_dest, dest)
        except PayloadTooLargeError:
            logger.warning(f"Upload exceeded max size: {upload.filename} ({total}+ bytes)")
            _remove_quietly(temp_dest)
            raise
        except OSError as e:
            logger.error(f"Failed to persist upload {upload.filename}: {e}")
            _remove_quietly(temp_dest)
            _remove_quietly(dest)
            raise StorageFailureError() from e
        return total

    async def upload_video(self, session_id: str, upload: UploadSource | None) -> UploadResult:
        """
        Store an uploaded video and append it to the session's stream session,
        creating the stream session on first upload.

        Raises:
            InvalidParamsError: No file in the request
            UnsupportedMediaTypeError: Neither type nor extension looks like video
            PayloadTooLargeError: File exceeds MAX_UPLOAD_BYTES
            StorageFailureError: Disk or storage write failed
        """
        if upload is None or not upload.filename:
            raise InvalidParamsError(errcode=AppErrorCode.E_NO_FILE, errmesg="No video file uploaded")

        if not is_video_upload(upload.filename, upload.content_type):
            raise UnsupportedMediaTypeError()

        dest = self._allocate_path(session_id, upload.filename)
        size = await self._write_upload(upload, dest)
        video = VideoFile(file_name=upload.filename, file_path=str(dest), size=size)

        try:
            async with self.locks.hold(session_id):
                stream_session = await self.storage.get_stream_session(session_id)
                if stream_session is None:
                    await self.storage.create_stream_session(session_id, video_files=[video])
                else:
                    await self._update_existing(
                        session_id, video_files=[*stream_session.video_files, video]
                    )
        except Exception:
            _remove_quietly(dest)
            raise

        logger.info(f"Video uploaded: session={session_id} file={upload.filename} size={size}")
        return UploadResult(name=video.file_name, size=size, path=video.file_path)
