"""In-memory storage, fake transcoder processes and stream service fixtures."""

import asyncio
import itertools
from collections.abc import AsyncGenerator
from pathlib import Path

import pytest
import pytest_asyncio

from app.app_config import AppEnvironConfig
from app.domain.stream.process_registry import ProcessRegistry
from app.domain.stream.stream_domain import StreamService
from app.shared.lock import KeyedLockManager
from app.storage import MemoryStorage

_pids = itertools.count(4000)

# Child script writing ~360 KB of ffmpeg-style progress lines, each ending in \r only
FFMPEG_PROGRESS_SCRIPT = (
    "import sys\n"
    "for i in range(4000):\n"
    "    sys.stderr.write(f'frame={i:5d} fps=25 q=28.0 size=    1024kB time=00:00:{i % 60:02d}.00 '\n"
    "                     f'bitrate=2500.0kbits/s speed=1x    \\r')\n"
    "sys.stderr.write('Exiting normally\\n')\n"
)


class FakeProcess:
    """Stand-in for asyncio.subprocess.Process; exits when told to or when terminated."""

    def __init__(self, *, ignore_terminate: bool = False):
        self.pid = next(_pids)
        self.returncode: int | None = None
        self.ignore_terminate = ignore_terminate
        self.terminate_calls = 0
        self.kill_calls = 0
        self._exited = asyncio.Event()

    def exit(self, returncode: int = 0) -> None:
        if self.returncode is None:
            self.returncode = returncode
        self._exited.set()

    def terminate(self) -> None:
        self.terminate_calls += 1
        if not self.ignore_terminate:
            self.exit(-15)

    def kill(self) -> None:
        self.kill_calls += 1
        self.exit(-9)

    async def wait(self) -> int:
        await self._exited.wait()
        assert self.returncode is not None
        return self.returncode


class FakeLauncher:
    """Records every command and hands out FakeProcess handles."""

    def __init__(self, error: Exception | None = None):
        self.error = error
        self.commands: list[list[str]] = []
        self.processes: list[FakeProcess] = []

    async def __call__(self, cmd: list[str]) -> FakeProcess:
        self.commands.append(cmd)
        if self.error is not None:
            raise self.error
        process = FakeProcess()
        self.processes.append(process)
        return process


class FakeUpload:
    """Minimal UploadFile look-alike serving `data` in read(n) chunks."""

    def __init__(self, filename: str | None, data: bytes, content_type: str | None = "video/mp4"):
        self.filename = filename
        self.content_type = content_type
        self._data = data
        self._offset = 0

    async def read(self, size: int = -1) -> bytes:
        if size < 0:
            size = len(self._data) - self._offset
        chunk = self._data[self._offset : self._offset + size]
        self._offset += len(chunk)
        return chunk


@pytest.fixture
def upload_dir(tmp_path: Path) -> Path:
    return tmp_path / "uploads"


@pytest.fixture
def stream_settings(upload_dir: Path) -> AppEnvironConfig:
    return AppEnvironConfig(
        UPLOAD_DIR=str(upload_dir),
        MAX_UPLOAD_BYTES=8 * 1024 * 1024,
        FFMPEG_BIN="ffmpeg",
        RTMP_URL_TEMPLATE="rtmp://a.rtmp.youtube.com/live2/{key}",
        PROCESS_STOP_TIMEOUT_SECS=0.2,
    )


@pytest.fixture
def memory_storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def fake_launcher() -> FakeLauncher:
    return FakeLauncher()


@pytest.fixture
def process_registry() -> ProcessRegistry:
    return ProcessRegistry()


@pytest_asyncio.fixture
async def stream_service(
    memory_storage: MemoryStorage,
    process_registry: ProcessRegistry,
    fake_launcher: FakeLauncher,
    stream_settings: AppEnvironConfig,
) -> AsyncGenerator[StreamService]:
    service = StreamService(
        storage=memory_storage,
        registry=process_registry,
        launcher=fake_launcher,
        settings=stream_settings,
        locks=KeyedLockManager(lock_prefix="stream"),
    )
    yield service
    await service.shutdown()
