"""Transcoder engine interface and the FFmpeg subprocess implementation.

An engine owns a private namespace of named artifacts (its "virtual
filesystem") and runs FFmpeg-style argv lists against it, one at a time.
``FFmpegEngine`` backs the namespace with a workspace directory and runs the
``ffmpeg`` binary inside it.
"""

import asyncio
import logging
import re
import shutil
import tempfile
from pathlib import Path
from typing import Callable, Protocol, Sequence

from trimforge.errors import EngineError, EngineInitFailure
from trimforge.manifest import EngineConfig
from trimforge.state import EditorState

logger = logging.getLogger(__name__)

STDERR_TAIL = 500

DURATION_RE = re.compile(r"Duration:\s*(\d+:\d{2}:\d{2}(?:\.\d+)?)")
TIME_RE = re.compile(r"time=\s*(\d+:\d{2}:\d{2}(?:\.\d+)?)")

ProgressCallback = Callable[[float], None]


class FFmpegNotFoundError(RuntimeError):
    pass


class TranscoderEngine(Protocol):
    """What the executor needs from a transcoder."""

    @property
    def loaded(self) -> bool: ...

    async def write(self, name: str, data: bytes) -> None: ...

    async def read(self, name: str) -> bytes: ...

    async def delete(self, name: str) -> None: ...

    async def execute(
        self, argv: Sequence[str], on_progress: ProgressCallback | None = None
    ) -> None: ...


def check_ffmpeg(binary: str = "ffmpeg") -> None:
    """Raise FFmpegNotFoundError if the ffmpeg binary cannot be found."""
    if shutil.which(binary) is None:
        raise FFmpegNotFoundError(f"{binary} not found on PATH")


def parse_timestamp(stamp: str) -> float:
    """Convert ``HH:MM:SS.ss`` to seconds."""
    hours, minutes, seconds = stamp.split(":")
    return int(hours) * 3600 + int(minutes) * 60 + float(seconds)


def argv_duration(argv: Sequence[str]) -> float | None:
    """Return the ``-t`` duration of an invocation, if it has one."""
    for i, token in enumerate(argv[:-1]):
        if token == "-t":
            try:
                return float(argv[i + 1])
            except ValueError:
                return None
    return None


class ProgressTracker:
    """Turns FFmpeg stderr lines into a non-decreasing 0.0-1.0 fraction.

    The total comes from the invocation's ``-t`` value when there is one,
    otherwise from the first ``Duration:`` line FFmpeg prints for its input.
    """

    def __init__(self, total: float | None = None):
        self.total = total
        self.fraction = 0.0

    def feed(self, line: str) -> float | None:
        if self.total is None:
            m = DURATION_RE.search(line)
            if m:
                self.total = parse_timestamp(m.group(1))
                return None

        m = TIME_RE.search(line)
        if m is None or not self.total:
            return None

        frac = min(parse_timestamp(m.group(1)) / self.total, 1.0)
        if frac <= self.fraction:
            return None
        self.fraction = frac
        return frac


class FFmpegEngine:
    """Runs the ffmpeg binary against a private workspace directory.

    Construct once, ``await load()`` once, then reuse for any number of edits.
    The engine is single-flight: callers must not overlap ``execute`` calls.
    """

    def __init__(self, config: EngineConfig | None = None, state: EditorState | None = None):
        self.config = config or EngineConfig()
        self.state = state or EditorState()
        self.workspace: Path | None = None
        self._owns_workspace = False

    @property
    def loaded(self) -> bool:
        return self.workspace is not None

    async def load(self) -> None:
        """Locate ffmpeg and prepare the workspace. Safe to call again after a failure."""
        if self.loaded:
            return

        self.state.set_loading(True)
        try:
            check_ffmpeg(self.config.ffmpeg_path)
            if self.config.work_dir is not None:
                self.config.work_dir.mkdir(parents=True, exist_ok=True)
                self.workspace = self.config.work_dir
                self._owns_workspace = False
            else:
                self.workspace = Path(tempfile.mkdtemp(prefix="trimforge_"))
                self._owns_workspace = True
        except (FFmpegNotFoundError, OSError) as e:
            raise EngineInitFailure(f"Failed to load FFmpeg: {e}") from e
        finally:
            self.state.set_loading(False)

        logger.info("FFmpeg engine ready (workspace %s)", self.workspace)

    def close(self) -> None:
        """Drop the workspace; the engine must be loaded again before reuse."""
        if self.workspace is not None and self._owns_workspace:
            shutil.rmtree(self.workspace, ignore_errors=True)
        self.workspace = None

    def _path(self, name: str) -> Path:
        if self.workspace is None:
            raise EngineError("FFmpeg engine not loaded. Call load() first.")
        if not name or name in (".", "..") or "/" in name or "\\" in name:
            raise EngineError(f"Invalid artifact name: {name!r}")
        return self.workspace / name

    async def write(self, name: str, data: bytes | str) -> None:
        if isinstance(data, str):
            data = data.encode("utf-8")
        path = self._path(name)
        await asyncio.to_thread(path.write_bytes, data)

    async def read(self, name: str) -> bytes:
        path = self._path(name)
        if not path.is_file():
            raise EngineError(f"No such artifact: {name}")
        return await asyncio.to_thread(path.read_bytes)

    async def delete(self, name: str) -> None:
        path = self._path(name)
        try:
            await asyncio.to_thread(path.unlink)
        except FileNotFoundError as e:
            raise EngineError(f"No such artifact: {name}") from e
        except OSError as e:
            raise EngineError(f"Could not delete {name}: {e}") from e

    async def execute(
        self, argv: Sequence[str], on_progress: ProgressCallback | None = None
    ) -> None:
        """Run one ffmpeg command in the workspace.

        Raises EngineError with the tail of ffmpeg's stderr on non-zero exit.
        """
        if self.workspace is None:
            raise EngineError("FFmpeg engine not loaded. Call load() first.")

        cmd = [self.config.ffmpeg_path, "-hide_banner", "-nostdin", *argv]
        logger.debug("Running: %s", " ".join(cmd))

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=str(self.workspace),
                stdout=asyncio.subprocess.DEVNULL,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineError(f"Could not start {self.config.ffmpeg_path}: {e}") from e

        tracker = ProgressTracker(argv_duration(argv))
        tail = ""
        pending = ""

        def consume(line: str) -> None:
            frac = tracker.feed(line)
            if frac is not None and on_progress:
                on_progress(frac)

        try:
            while True:
                chunk = await proc.stderr.read(4096)
                if not chunk:
                    break
                text = chunk.decode(errors="replace")
                tail = (tail + text)[-STDERR_TAIL:]
                # Stats lines end in \r, log lines in \n
                *lines, pending = re.split(r"[\r\n]", pending + text)
                for line in lines:
                    consume(line)
            if pending:
                consume(pending)

            returncode = await proc.wait()
        except BaseException:
            # Cancelled or a progress callback raised: never leave ffmpeg running
            if proc.returncode is None:
                proc.kill()
                await proc.wait()
            raise

        if returncode != 0:
            message = tail.strip() or "no output"
            raise EngineError(f"ffmpeg exited with code {returncode}: {message}")

        if on_progress:
            on_progress(1.0)
