"""Launching and observing the external transcoder process."""

import asyncio
import codecs
import re
from collections import deque
from typing import Awaitable, Callable

from loguru import logger

from .process_registry import ProcessHandle

ProcessLauncher = Callable[[list[str]], Awaitable[ProcessHandle]]

STDERR_TAIL_LINES = 20
STDERR_READ_SIZE = 4096
STDERR_MAX_LINE = 8192

_LINE_BREAK = re.compile(r"[\r\n]")


async def launch_subprocess(cmd: list[str]) -> ProcessHandle:
    """Start `cmd` as a child process with stderr captured for logging.

    Raises:
        OSError: If the executable cannot be started
    """
    return await asyncio.create_subprocess_exec(
        *cmd,
        stdin=asyncio.subprocess.DEVNULL,
        stdout=asyncio.subprocess.DEVNULL,
        stderr=asyncio.subprocess.PIPE,
    )


async def monitor_stderr(
    handle: ProcessHandle,
    session_id: str,
    tail: deque[str] | None = None,
) -> None:
    """Drain and log transcoder stderr until EOF; handles without a pipe return immediately.

    ffmpeg ends its progress lines with \\r, so the pipe is read in chunks and
    split on both \\r and \\n. A line longer than STDERR_MAX_LINE is logged in
    pieces; the pipe is read to the end either way, otherwise the child blocks
    on a full pipe.
    """
    stderr: asyncio.StreamReader | None = getattr(handle, "stderr", None)
    if stderr is None:
        return

    decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
    pending = ""
    while True:
        chunk = await stderr.read(STDERR_READ_SIZE)
        if not chunk:
            break
        *lines, pending = _LINE_BREAK.split(pending + decoder.decode(chunk))
        if len(pending) > STDERR_MAX_LINE:
            lines.append(pending)
            pending = ""
        for line in lines:
            _log_stderr_line(session_id, line, tail)

    _log_stderr_line(session_id, pending + decoder.decode(b"", final=True), tail)


def _log_stderr_line(session_id: str, line: str, tail: deque[str] | None) -> None:
    text = line.strip()
    if not text:
        return
    if tail is not None:
        tail.append(text)
    lowered = text.lower()
    if "error" in lowered or "fatal" in lowered:
        logger.warning("ffmpeg:{} {}", session_id, text)
    else:
        logger.debug("ffmpeg:{} {}", session_id, text)


async def terminate_process(handle: ProcessHandle, timeout: float) -> int | None:
    """Terminate gracefully (SIGTERM), escalating to SIGKILL after `timeout` seconds.

    Returns the exit code, or None if the process was already gone.
    """
    if handle.returncode is not None:
        return handle.returncode

    try:
        handle.terminate()
    except ProcessLookupError:
        return None

    try:
        return await asyncio.wait_for(handle.wait(), timeout=timeout)
    except asyncio.TimeoutError:
        logger.warning(f"Process {handle.pid} ignored SIGTERM for {timeout}s, killing")

    try:
        handle.kill()
    except ProcessLookupError:
        return None
    return await handle.wait()


def new_stderr_tail() -> deque[str]:
    return deque(maxlen=STDERR_TAIL_LINES)
