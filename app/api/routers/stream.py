from fastapi import APIRouter, Depends

from app.api.dependency import CurrentSession, get_stream_service
from app.api.schemas.stream import (
    StreamConfigIn,
    StreamConfigOut,
    StreamSessionOut,
    StreamStartOut,
    StreamStatusOut,
    StreamStopOut,
    VideoFileOut,
)
from app.domain.stream.stream_domain import StreamService

router = APIRouter()


@router.post("/stream-config")
async def configure_stream(
    body: StreamConfigIn,
    session: CurrentSession,
    service: StreamService = Depends(get_stream_service),
) -> StreamConfigOut:
    """Set destination keys (one per line) and playback flags."""
    result = await service.configure(
        session.session_id,
        raw_keys=body.stream_keys,
        loop_video=body.loop_video,
        mobile_mode=body.mobile_mode,
    )

    return StreamConfigOut(
        stream_session=StreamSessionOut(
            stream_keys=result.stream_keys,
            video_files=[VideoFileOut(file_name=v.file_name, size=v.size) for v in result.video_files],
            is_active=result.is_active,
            loop_video=result.loop_video,
            mobile_mode=result.mobile_mode,
            updated_at=result.updated_at,
        )
    )


@router.post("/stream/start")
async def start_stream(
    session: CurrentSession,
    service: StreamService = Depends(get_stream_service),
) -> StreamStartOut:
    result = await service.start(session.session_id)
    return StreamStartOut(message=result.message, active_streams=result.active_streams)


@router.post("/stream/stop")
async def stop_stream(
    session: CurrentSession,
    service: StreamService = Depends(get_stream_service),
) -> StreamStopOut:
    result = await service.stop(session.session_id)
    return StreamStopOut(message=result.message)


@router.get("/stream-status")
async def stream_status(
    session: CurrentSession,
    service: StreamService = Depends(get_stream_service),
) -> StreamStatusOut:
    status = await service.get_status(session.session_id)
    return StreamStatusOut(**status.model_dump())
