"""Tests for start/stop/exit reconciliation of the stream supervisor."""

import asyncio
import sys
from pathlib import Path

import pytest

from app.app_config import AppEnvironConfig
from app.domain.stream.process_launcher import launch_subprocess
from app.domain.stream.process_registry import ProcessRegistry
from app.domain.stream.stream_domain import StreamService
from app.schemas import StreamState
from app.storage import MemoryStorage
from app.utils.app_errors import AppErrorCode, PreconditionFailedError, ProcessFailureError
from tests.fixtures.stream_fixtures import FFMPEG_PROGRESS_SCRIPT, FakeLauncher, FakeUpload


async def _prepare(service: StreamService, session_id: str = "s1", keys: str = "abcd\nef-gh") -> Path:
    result = await service.upload_video(session_id, FakeUpload("clip.mp4", b"\x00" * 1024))
    await service.configure(session_id, keys, loop_video=False, mobile_mode=True)
    return Path(result.path)


class TestStartPreconditions:
    async def test_no_stream_session(self, stream_service: StreamService, fake_launcher: FakeLauncher):
        with pytest.raises(PreconditionFailedError) as exc_info:
            await stream_service.start("s1")

        assert exc_info.value.errcode == AppErrorCode.E_NO_VIDEO_FILE.value
        assert fake_launcher.commands == []

    async def test_zero_files(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        fake_launcher: FakeLauncher,
    ):
        await memory_storage.create_stream_session("s1", stream_keys=["abcd"])

        with pytest.raises(PreconditionFailedError) as exc_info:
            await stream_service.start("s1")

        assert exc_info.value.errcode == AppErrorCode.E_NO_VIDEO_FILE.value
        assert fake_launcher.commands == []

    async def test_no_keys(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        fake_launcher: FakeLauncher,
    ):
        await stream_service.upload_video("s1", FakeUpload("clip.mp4", b"x"))
        before = await memory_storage.get_stream_session("s1")

        with pytest.raises(PreconditionFailedError) as exc_info:
            await stream_service.start("s1")

        assert exc_info.value.errcode == AppErrorCode.E_NO_DESTINATION_KEYS.value
        assert await memory_storage.get_stream_session("s1") == before
        assert fake_launcher.commands == []

    async def test_file_missing_on_disk(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        fake_launcher: FakeLauncher,
    ):
        path = await _prepare(stream_service)
        path.unlink()

        with pytest.raises(PreconditionFailedError) as exc_info:
            await stream_service.start("s1")

        assert exc_info.value.errcode == AppErrorCode.E_FILE_MISSING.value
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is False
        assert fake_launcher.commands == []


class TestStart:
    async def test_start_binds_and_activates(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        path = await _prepare(stream_service)

        result = await stream_service.start("s1")

        assert result.message == "Stream started"
        assert result.active_streams == 2
        assert process_registry.get("s1") is fake_launcher.processes[0]
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is True
        assert await stream_service.get_state("s1") == StreamState.STREAMING

        cmd = fake_launcher.commands[0]
        assert cmd[cmd.index("-i") + 1] == str(path)
        assert cmd[cmd.index("-preset") + 1] == "fast"
        assert "-stream_loop" not in cmd
        assert cmd.count("flv") == 2

    async def test_restart_replaces_process(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service)

        await stream_service.start("s1")
        await stream_service.start("s1")
        await stream_service.wait_for_watchers()

        first, second = fake_launcher.processes
        assert first.terminate_calls == 1
        assert second.terminate_calls == 0
        assert len(process_registry) == 1
        assert process_registry.get("s1") is second

        # The replaced process's exit must not clear its successor
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is True

    async def test_launch_failure(
        self,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        stream_settings,
    ):
        launcher = FakeLauncher(error=FileNotFoundError("ffmpeg"))
        service = StreamService(
            storage=memory_storage,
            registry=process_registry,
            launcher=launcher,
            settings=stream_settings,
        )
        await _prepare(service)

        with pytest.raises(ProcessFailureError) as exc_info:
            await service.start("s1")

        assert exc_info.value.status_code == 500
        assert exc_info.value.errmesg == "Stream operation failed"
        assert len(process_registry) == 0
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is False
        assert await service.get_state("s1") == StreamState.IDLE

    async def test_failed_restart_clears_activity(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service)
        await stream_service.start("s1")
        fake_launcher.error = OSError("exec format error")

        with pytest.raises(ProcessFailureError):
            await stream_service.start("s1")

        assert fake_launcher.processes[0].terminate_calls == 1
        assert len(process_registry) == 0
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is False


class TestStop:
    async def test_stop_terminates_and_cleans_up(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        path = await _prepare(stream_service)
        await stream_service.start("s1")

        result = await stream_service.stop("s1")

        assert result.message == "Stream stopped"
        assert result.was_streaming is True
        assert result.removed_files == 1
        assert fake_launcher.processes[0].terminate_calls == 1
        assert "s1" not in process_registry
        assert not path.exists()
        assert await memory_storage.get_stream_session("s1") is None

    async def test_stop_without_process_still_clears_record(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
    ):
        path = await _prepare(stream_service)

        result = await stream_service.stop("s1")

        assert result.was_streaming is False
        assert not path.exists()
        assert await memory_storage.get_stream_session("s1") is None

    async def test_stop_skips_missing_files(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
    ):
        first = await _prepare(stream_service)
        second = Path((await stream_service.upload_video("s1", FakeUpload("b.mp4", b"b"))).path)
        first.unlink()

        result = await stream_service.stop("s1")

        assert result.removed_files == 1
        assert not second.exists()
        assert await memory_storage.get_stream_session("s1") is None

    async def test_stop_with_nothing_at_all(self, stream_service: StreamService):
        result = await stream_service.stop("unknown")

        assert result.was_streaming is False
        assert result.removed_files == 0

    async def test_exit_after_stop_is_noop(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service)
        await stream_service.start("s1")
        await stream_service.stop("s1")

        # The watcher delivers the exit after stop already unbound the process
        await stream_service.wait_for_watchers()

        assert len(process_registry) == 0
        assert await memory_storage.get_stream_session("s1") is None
        assert await stream_service.get_state("s1") == StreamState.IDLE

    async def test_stop_and_start_are_serialized(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
    ):
        await _prepare(stream_service)

        await asyncio.gather(stream_service.start("s1"), stream_service.stop("s1"))

        # start ran first (lock order), then stop tore everything down
        assert len(process_registry) == 0
        assert await memory_storage.get_stream_session("s1") is None

    async def test_failed_terminate_still_clears_state(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        path = await _prepare(stream_service)
        await stream_service.start("s1")
        process = fake_launcher.processes[0]

        def refuse_terminate() -> None:
            raise PermissionError("operation not permitted")

        process.terminate = refuse_terminate  # type: ignore[method-assign]

        result = await stream_service.stop("s1")

        assert result.was_streaming is True
        assert "s1" not in process_registry
        assert await memory_storage.get_stream_session("s1") is None
        assert not path.exists()
        assert await stream_service.get_state("s1") == StreamState.IDLE

        # A late exit of the unbound process changes nothing
        process.exit(0)
        await stream_service.wait_for_watchers()
        assert await memory_storage.get_stream_session("s1") is None


class TestUnsolicitedExit:
    async def test_crash_reconciles_to_idle(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        path = await _prepare(stream_service)
        await stream_service.start("s1")

        fake_launcher.processes[0].exit(1)
        await stream_service.wait_for_watchers()

        assert len(process_registry) == 0
        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is False
        # Files are kept so the stream can be started again
        assert path.exists()
        status = await stream_service.get_status("s1")
        assert status.is_active is False
        assert status.state == StreamState.IDLE

    async def test_clean_exit_reconciles_to_idle(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service)
        await stream_service.start("s1")

        fake_launcher.processes[0].exit(0)
        await stream_service.wait_for_watchers()

        stored = await memory_storage.get_stream_session("s1")
        assert stored is not None
        assert stored.is_active is False

    async def test_can_start_again_after_crash(
        self,
        stream_service: StreamService,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service)
        await stream_service.start("s1")
        fake_launcher.processes[0].exit(1)
        await stream_service.wait_for_watchers()

        await stream_service.start("s1")

        assert process_registry.get("s1") is fake_launcher.processes[1]

    async def test_chatty_real_process_exit_is_reconciled(
        self,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        stream_settings: AppEnvironConfig,
    ):
        async def launch_progress_writer(cmd: list[str]):
            return await launch_subprocess([sys.executable, "-c", FFMPEG_PROGRESS_SCRIPT])

        service = StreamService(
            storage=memory_storage,
            registry=process_registry,
            launcher=launch_progress_writer,
            settings=stream_settings,
        )
        await _prepare(service)
        await service.start("s1")

        async def wait_until_unbound() -> None:
            while "s1" in process_registry:
                await asyncio.sleep(0.05)

        try:
            await asyncio.wait_for(wait_until_unbound(), timeout=30)
            await service.wait_for_watchers()

            stored = await memory_storage.get_stream_session("s1")
            assert stored is not None
            assert stored.is_active is False
            assert await service.get_state("s1") == StreamState.IDLE
        finally:
            await service.shutdown()


class TestStatus:
    async def test_defaults_without_stream_session(self, stream_service: StreamService):
        status = await stream_service.get_status("s1")

        assert status.is_active is False
        assert status.has_file is False
        assert status.active_streams == 0
        assert status.file_name == ""
        assert status.stream_keys == ""
        assert status.state == StreamState.IDLE

    async def test_projection(self, stream_service: StreamService):
        path = await _prepare(stream_service)

        status = await stream_service.get_status("s1")

        assert status.is_active is False
        assert status.has_file is True
        assert status.active_streams == 2
        assert status.file_name == "clip.mp4"
        assert status.loop_video is False
        assert status.mobile_mode is True
        assert status.stream_keys == "abcd\nef-gh"

        path.unlink()
        assert (await stream_service.get_status("s1")).has_file is False

    async def test_status_does_not_mutate(
        self, stream_service: StreamService, memory_storage: MemoryStorage
    ):
        await _prepare(stream_service)
        await stream_service.start("s1")
        before = await memory_storage.get_stream_session("s1")

        for _ in range(3):
            await stream_service.get_status("s1")

        after = await memory_storage.get_stream_session("s1")
        assert after is not None and before is not None
        assert after.model_dump_json() == before.model_dump_json()


class TestScenario:
    async def test_upload_configure_start_stop(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
    ):
        upload = await stream_service.upload_video(
            "s1", FakeUpload("clip.mp4", b"\x00" * (5 * 1024 * 1024))
        )
        path = Path(upload.path)
        await stream_service.configure("s1", "abcd\nef-gh", loop_video=False, mobile_mode=True)

        await stream_service.start("s1")
        status = await stream_service.get_status("s1")
        assert status.is_active is True
        assert status.active_streams == 2

        await stream_service.stop("s1")
        await stream_service.wait_for_watchers()

        status = await stream_service.get_status("s1")
        assert status.is_active is False
        assert await memory_storage.get_stream_session("s1") is None
        assert len(process_registry) == 0
        assert not path.exists()


class TestShutdown:
    async def test_shutdown_terminates_everything(
        self,
        stream_service: StreamService,
        memory_storage: MemoryStorage,
        process_registry: ProcessRegistry,
        fake_launcher: FakeLauncher,
    ):
        await _prepare(stream_service, "s1")
        await _prepare(stream_service, "s2")
        await stream_service.start("s1")
        await stream_service.start("s2")

        await stream_service.shutdown()

        assert len(process_registry) == 0
        assert all(p.terminate_calls == 1 for p in fake_launcher.processes)
        for session_id in ("s1", "s2"):
            stored = await memory_storage.get_stream_session(session_id)
            assert stored is not None
            assert stored.is_active is False
