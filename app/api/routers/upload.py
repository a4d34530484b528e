from fastapi import APIRouter, Depends, File, UploadFile

from app.api.dependency import CurrentSession, get_stream_service
from app.api.schemas.stream import FileOut, UploadOut
from app.domain.stream.stream_domain import StreamService

router = APIRouter()


@router.post("/upload-video")
async def upload_video(
    session: CurrentSession,
    video: UploadFile | None = File(default=None, description="Video file (multipart field 'video')"),
    service: StreamService = Depends(get_stream_service),
) -> UploadOut:
    """Upload a video for the current session; only the first upload is streamed."""
    try:
        result = await service.upload_video(session.session_id, video)
    finally:
        if video is not None:
            await video.close()

    return UploadOut(file=FileOut(name=result.name, size=result.size))
