"""Stream supervisor: start, stop, exit reconciliation and status."""

import asyncio
from collections import deque
from pathlib import Path
from typing import Iterable

from loguru import logger

from app.schemas import StreamState, VideoFile
from app.utils.app_errors import (
    AppError,
    AppErrorCode,
    HttpStatusCode,
    PreconditionFailedError,
    ProcessFailureError,
)

from ._base import BaseStreamOperations
from .ffmpeg_command import build_restream_cmd
from .process_launcher import (
    ProcessLauncher,
    launch_subprocess,
    monitor_stderr,
    new_stderr_tail,
    terminate_process,
)
from .process_registry import ProcessHandle
from .stream_models import StreamStartResult, StreamStatus, StreamStopResult
from .stream_state_machine import StreamStateMachine


class StreamSupervisor(BaseStreamOperations):
    """Owns the session -> transcoder binding and keeps `is_active` in line with it.

    Start, stop and exit reconciliation all run under the same per-session
    lock. A process exit is delivered by its watcher task as a message into
    that serialized path, and only unbinds when the exiting handle is still
    the bound one, so a replaced process can never clear its successor.
    """

    def __init__(self, *args, launcher: ProcessLauncher | None = None, **kwargs):
        super().__init__(*args, **kwargs)
        self._launcher = launcher or launch_subprocess
        self._transient: dict[str, StreamState] = {}
        self._watchers: dict[asyncio.Task, ProcessHandle] = {}

    # ==================== STATE ====================

    def _current_state(self, session_id: str, is_active: bool) -> StreamState:
        if session_id in self._transient:
            return self._transient[session_id]
        return StreamStateMachine.derive_state(is_active, self.registry.is_bound(session_id))

    def _transition(self, session_id: str, current: StreamState, new_state: StreamState) -> None:
        if not StreamStateMachine.can_transition(current, new_state):
            raise AppError(
                errcode=AppErrorCode.E_INVALID_REQUEST,
                errmesg=f"Invalid stream state transition: {current} -> {new_state}",
                status_code=HttpStatusCode.CONFLICT,
            )

        if StreamStateMachine.is_transient(new_state):
            self._transient[session_id] = new_state
        else:
            self._transient.pop(session_id, None)
        logger.debug(f"Stream {session_id}: {current} -> {new_state}")

    async def get_state(self, session_id: str) -> StreamState:
        if session_id in self._transient:
            return self._transient[session_id]
        stream_session = await self.storage.get_stream_session(session_id)
        is_active = bool(stream_session and stream_session.is_active)
        return self._current_state(session_id, is_active)

    # ==================== PROCESS HELPERS ====================

    async def _terminate(self, session_id: str, handle: ProcessHandle) -> None:
        timeout = self.settings.PROCESS_STOP_TIMEOUT_SECS
        try:
            returncode = await terminate_process(handle, timeout)
        except OSError as e:
            logger.error(f"Failed to terminate transcoder pid={handle.pid} session={session_id}: {e}")
            raise ProcessFailureError() from e
        logger.info(f"Transcoder stopped: session={session_id} pid={handle.pid} rc={returncode}")

    def _spawn_watcher(self, session_id: str, handle: ProcessHandle) -> None:
        task = asyncio.create_task(
            self._watch_process(session_id, handle), name=f"stream-watch:{session_id}"
        )
        self._watchers[task] = handle
        task.add_done_callback(lambda t: self._watchers.pop(t, None))

    async def _watch_process(self, session_id: str, handle: ProcessHandle) -> None:
        tail = new_stderr_tail()
        try:
            await monitor_stderr(handle, session_id, tail)
            returncode = await handle.wait()
            await self._on_process_exit(session_id, handle, returncode, tail)
        except asyncio.CancelledError:
            raise
        except Exception:
            logger.exception(f"Exit reconciliation failed for session {session_id}")

    async def _on_process_exit(
        self,
        session_id: str,
        handle: ProcessHandle,
        returncode: int | None,
        stderr_tail: deque[str] | None = None,
    ) -> None:
        """Reconcile stored state after the transcoder exited, whatever the exit code."""
        async with self.locks.hold(session_id):
            stream_session = await self.storage.get_stream_session(session_id)
            is_active = bool(stream_session and stream_session.is_active)
            current = self._current_state(session_id, is_active)

            if self.registry.unbind(session_id, handle) is None:
                logger.debug(f"Exit of unbound transcoder pid={handle.pid} session={session_id}")
                return

            self._transition(session_id, current, StreamState.STOPPING)
            try:
                if returncode:
                    last_lines = " | ".join(stderr_tail or ())
                    logger.warning(
                        f"Transcoder exited unexpectedly: session={session_id} pid={handle.pid} "
                        f"rc={returncode} stderr={last_lines}"
                    )
                else:
                    logger.info(f"Transcoder finished: session={session_id} pid={handle.pid}")

                if stream_session is not None:
                    await self.storage.update_stream_session(session_id, is_active=False)
            finally:
                self._transition(session_id, StreamState.STOPPING, StreamState.IDLE)

    async def wait_for_watchers(self) -> None:
        """Wait until every exit that has already happened is reconciled."""
        while True:
            exited = [task for task, handle in self._watchers.items() if handle.returncode is not None]
            if not exited:
                return
            await asyncio.gather(*exited, return_exceptions=True)

    # ==================== START ====================

    async def start(self, session_id: str) -> StreamStartResult:
        """
        Launch one transcoder pushing the session's first video to every key.

        A process already bound to the session is terminated first, so starting
        twice replaces the stream instead of doubling it.

        Raises:
            PreconditionFailedError: No video, no keys, or the file is gone from disk
            ProcessFailureError: The transcoder could not be launched
        """
        async with self.locks.hold(session_id):
            stream_session = await self.storage.get_stream_session(session_id)
            video = stream_session.first_video if stream_session else None

            if stream_session is None or video is None:
                raise PreconditionFailedError(
                    errcode=AppErrorCode.E_NO_VIDEO_FILE, errmesg="No video file uploaded"
                )
            if not stream_session.stream_keys:
                raise PreconditionFailedError(
                    errcode=AppErrorCode.E_NO_DESTINATION_KEYS,
                    errmesg="No stream keys configured",
                )
            if not Path(video.file_path).exists():
                raise PreconditionFailedError(
                    errcode=AppErrorCode.E_FILE_MISSING,
                    errmesg="Video file not found, please upload again",
                )

            current = self._current_state(session_id, stream_session.is_active)
            self._transition(session_id, current, StreamState.STARTING)

            started = False
            previous = None
            try:
                previous = self.registry.unbind(session_id)
                if previous is not None:
                    logger.info(f"Restarting stream for {session_id}, replacing pid={previous.pid}")
                    await self._terminate(session_id, previous)

                cmd = build_restream_cmd(
                    video.file_path,
                    stream_session.stream_keys,
                    loop_video=stream_session.loop_video,
                    mobile_mode=stream_session.mobile_mode,
                    ffmpeg_bin=self.settings.FFMPEG_BIN,
                    url_template=self.settings.RTMP_URL_TEMPLATE,
                )
                try:
                    handle = await self._launcher(cmd)
                except OSError as e:
                    logger.error(f"Failed to launch transcoder for {session_id}: {e}")
                    raise ProcessFailureError() from e

                self.registry.bind(session_id, handle)
                try:
                    await self._update_existing(session_id, is_active=True)
                except Exception:
                    self.registry.unbind(session_id, handle)
                    await self._terminate(session_id, handle)
                    raise

                self._spawn_watcher(session_id, handle)
                started = True
            finally:
                if not started and (previous is not None or stream_session.is_active):
                    await self.storage.update_stream_session(session_id, is_active=False)
                self._transition(
                    session_id,
                    StreamState.STARTING,
                    StreamState.STREAMING if started else StreamState.IDLE,
                )

        active_streams = len(stream_session.stream_keys)
        logger.info(
            f"Stream started: session={session_id} pid={handle.pid} destinations={active_streams}"
        )
        return StreamStartResult(active_streams=active_streams)

    # ==================== STOP ====================

    @staticmethod
    def _delete_files(video_files: Iterable[VideoFile]) -> int:
        removed = 0
        for video in video_files:
            path = Path(video.file_path)
            if not path.exists():
                continue
            try:
                path.unlink()
                removed += 1
            except FileNotFoundError:
                continue
            except OSError as e:
                logger.error(f"Failed to delete uploaded file {path}: {e}")
        return removed

    async def stop(self, session_id: str) -> StreamStopResult:
        """
        Terminate the bound transcoder (if any), clear the activity flag,
        delete every uploaded file and drop the stream session record.

        Safe to call with nothing running. A transcoder that cannot be
        terminated is logged and left unbound; the record is cleaned up regardless.
        """
        async with self.locks.hold(session_id):
            stream_session = await self.storage.get_stream_session(session_id)
            is_active = bool(stream_session and stream_session.is_active)
            current = self._current_state(session_id, is_active)
            self._transition(session_id, current, StreamState.STOPPING)

            removed = 0
            try:
                handle = self.registry.unbind(session_id)
                if handle is not None:
                    try:
                        await self._terminate(session_id, handle)
                    except ProcessFailureError:
                        # Unbound already; the record must follow the registry
                        logger.warning(f"Transcoder for {session_id} may still be running")

                if stream_session is not None:
                    await self.storage.update_stream_session(session_id, is_active=False)
                    removed = self._delete_files(stream_session.video_files)
                    await self.storage.delete_stream_session(session_id)
            finally:
                self._transition(session_id, StreamState.STOPPING, StreamState.IDLE)

        logger.info(
            f"Stream stopped: session={session_id} was_streaming={handle is not None} "
            f"removed_files={removed}"
        )
        return StreamStopResult(was_streaming=handle is not None, removed_files=removed)

    # ==================== STATUS ====================

    async def get_status(self, session_id: str) -> StreamStatus:
        """Read-only projection for polling clients; never writes anything."""
        stream_session = await self.storage.get_stream_session(session_id)
        if stream_session is None:
            return StreamStatus(state=self._current_state(session_id, False))

        video = stream_session.first_video
        return StreamStatus(
            is_active=stream_session.is_active,
            has_file=bool(video and Path(video.file_path).exists()),
            active_streams=len(stream_session.stream_keys),
            file_name=video.file_name if video else "",
            loop_video=stream_session.loop_video,
            mobile_mode=stream_session.mobile_mode,
            stream_keys="\n".join(stream_session.stream_keys),
            state=self._current_state(session_id, stream_session.is_active),
        )

    # ==================== SHUTDOWN ====================

    async def shutdown(self) -> None:
        """Terminate every bound transcoder; called when the app exits."""
        for session_id, _handle in list(self.registry.items()):
            async with self.locks.hold(session_id):
                handle = self.registry.unbind(session_id)
                if handle is None:
                    continue
                try:
                    await self._terminate(session_id, handle)
                except ProcessFailureError:
                    logger.warning(f"Transcoder for {session_id} may still be running")
                await self.storage.update_stream_session(session_id, is_active=False)

        await self.wait_for_watchers()
        self._transient.clear()
