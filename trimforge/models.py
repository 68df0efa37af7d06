"""Shared data types used across TrimForge."""

from dataclasses import dataclass, field
from typing import Any

DEFAULT_MEDIA_TYPE = "video/mp4"


@dataclass(frozen=True)
class TimeRange:
    """A kept start/end interval of the source media, in seconds."""

    start: float
    end: float
    id: Any = None

    @property
    def duration(self) -> float:
        return self.end - self.start


@dataclass(frozen=True)
class CropRect:
    """Pixel rectangle to keep, anchored at its top-left corner."""

    x: int
    y: int
    width: int
    height: int


@dataclass(frozen=True)
class TextOverlay:
    """Caption burned into every frame with FFmpeg's drawtext filter."""

    text: str
    font_size: int = 24
    color: str = "white"
    font_family: str = "Arial"
    position: str = "top-left"


@dataclass
class EditRequest:
    """Everything needed for one edit: the source bytes, kept ranges and transforms."""

    source_media: bytes
    segments: list[TimeRange]
    crop: CropRect | None = None
    filter: str | None = None
    overlay: TextOverlay | None = None
    media_type: str | None = None

    @property
    def needs_reencode(self) -> bool:
        return self.crop is not None or bool(self.filter) or self.overlay is not None


@dataclass(frozen=True)
class ConcatManifest:
    """Text file listing segment artifacts for FFmpeg's concat demuxer."""

    name: str
    entries: tuple[str, ...]

    def render(self) -> str:
        return "\n".join(f"file {entry}" for entry in self.entries)


@dataclass(frozen=True)
class Invocation:
    """One transcoder run: its argv, the artifact it writes and the ones it reads."""

    argv: tuple[str, ...]
    produces: str
    consumes: frozenset[str] = frozenset()
    manifest: ConcatManifest | None = None


@dataclass
class EditPlan:
    """Ordered invocations plus the artifact bookkeeping needed to clean up."""

    invocations: list[Invocation]
    source_artifact: str
    output_artifact: str
    cleanup: list[str] = field(default_factory=list)

    @property
    def needs_reencode(self) -> bool:
        return any("-vf" in inv.argv for inv in self.invocations)


@dataclass
class MediaBlob:
    """Edited media bytes tagged with their media type."""

    data: bytes
    media_type: str = DEFAULT_MEDIA_TYPE
