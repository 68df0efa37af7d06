"""Shared test fixtures."""

from pathlib import Path

import pytest

from trimforge.errors import EngineError
from trimforge.state import EditorState

FIXTURES_DIR = Path(__file__).parent / "fixtures"


class FakeEngine:
    """In-memory transcoder that fakes FFmpeg's slicing, concat and filtering.

    Outputs depend only on input bytes and non-name argv values, so two runs
    with different artifact names produce identical media.
    """

    def __init__(self, fail_on: int | None = None, message: str = "boom"):
        self.files: dict[str, bytes] = {}
        self.writes: list[str] = []
        self.executed: list[tuple[str, ...]] = []
        self.deleted: list[str] = []
        self.fail_on = fail_on
        self.message = message
        self.loaded = True
        self.closed = False
        self.state = EditorState()

    async def load(self) -> None:
        self.loaded = True

    def close(self) -> None:
        self.closed = True

    async def write(self, name: str, data: bytes) -> None:
        self.writes.append(name)
        self.files[name] = bytes(data)

    async def read(self, name: str) -> bytes:
        if name not in self.files:
            raise EngineError(f"No such artifact: {name}")
        return self.files[name]

    async def delete(self, name: str) -> None:
        self.deleted.append(name)
        if name not in self.files:
            raise EngineError(f"No such artifact: {name}")
        del self.files[name]

    async def execute(self, argv, on_progress=None) -> None:
        args = list(argv)
        self.executed.append(tuple(args))
        if on_progress:
            on_progress(0.5)
        if self.fail_on == len(self.executed):
            raise EngineError(self.message)

        def value(flag: str) -> str:
            return args[args.index(flag) + 1]

        if "-f" in args and value("-f") == "concat":
            listing = self.files[value("-i")].decode()
            data = b"".join(
                self.files[line.removeprefix("file ")] for line in listing.splitlines()
            )
        else:
            data = self.files[value("-i")]
            if "-ss" in args:
                data += f"[{value('-ss')}+{value('-t')}]".encode()
            if "-vf" in args:
                data = b"{" + data + b"}" + value("-vf").encode()

        self.files[args[-1]] = data
        if on_progress:
            on_progress(1.0)


@pytest.fixture
def engine() -> FakeEngine:
    return FakeEngine()


@pytest.fixture
def sample_manifest_path() -> Path:
    return FIXTURES_DIR / "sample_manifest.json"
