"""JSON manifest schema — the contract between CLI/API and the executor."""

import json
import mimetypes
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from trimforge.errors import InvalidRequest
from trimforge.models import CropRect, EditRequest, TextOverlay, TimeRange


@dataclass
class EngineConfig:
    """Configuration for the FFmpeg-backed transcoder engine."""

    ffmpeg_path: str = "ffmpeg"
    work_dir: Path | None = None
    namespaced: bool = True


@dataclass
class EditManifest:
    """Top-level editing manifest."""

    input: Path
    output: Path
    version: str = "1"
    segments: list[TimeRange] = field(default_factory=list)
    crop: CropRect | None = None
    filter: str | None = None
    overlay: TextOverlay | None = None
    engine: EngineConfig = field(default_factory=EngineConfig)

    def to_request(self) -> EditRequest:
        """Read the input file and build the EditRequest for it."""
        media_type, _ = mimetypes.guess_type(self.input.name)
        return EditRequest(
            source_media=self.input.read_bytes(),
            segments=list(self.segments),
            crop=self.crop,
            filter=self.filter,
            overlay=self.overlay,
            media_type=media_type,
        )


def parse_segments(items: Any) -> list[TimeRange]:
    """Build TimeRanges from ``[{"start": .., "end": .., "id": ..}, ...]``."""
    if not isinstance(items, list):
        raise InvalidRequest("'segments' must be a list")

    segments: list[TimeRange] = []
    for i, item in enumerate(items):
        try:
            segments.append(
                TimeRange(
                    start=float(item["start"]),
                    end=float(item["end"]),
                    id=item.get("id", i),
                )
            )
        except (KeyError, TypeError, ValueError, AttributeError) as e:
            raise InvalidRequest(f"Invalid segment at index {i}: {item!r}") from e
    return segments


def parse_crop(data: dict | None) -> CropRect | None:
    if not data:
        return None
    try:
        return CropRect(
            x=int(data.get("x", 0)),
            y=int(data.get("y", 0)),
            width=int(data["width"]),
            height=int(data["height"]),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvalidRequest(f"Invalid crop rectangle: {data!r}") from e


def parse_overlay(data: dict | None) -> TextOverlay | None:
    """Build a TextOverlay; accepts snake_case or the UI's camelCase keys."""
    if not data:
        return None
    try:
        return TextOverlay(
            text=str(data["text"]),
            font_size=int(data.get("font_size", data.get("fontSize", 24))),
            color=data.get("color", "white"),
            font_family=data.get("font_family", data.get("fontFamily", "Arial")),
            position=data.get("position", "top-left"),
        )
    except (KeyError, TypeError, ValueError, AttributeError) as e:
        raise InvalidRequest(f"Invalid text overlay: {data!r}") from e


def parse_engine_config(data: dict | None) -> EngineConfig:
    if not data:
        return EngineConfig()
    work_dir = data.get("work_dir")
    return EngineConfig(
        ffmpeg_path=data.get("ffmpeg_path", "ffmpeg"),
        work_dir=Path(work_dir) if work_dir else None,
        namespaced=bool(data.get("namespaced", True)),
    )


def load_manifest(path: str | Path) -> EditManifest:
    """Load and validate a manifest from a JSON file."""
    path = Path(path)
    data = json.loads(path.read_text())

    if "input" not in data or "output" not in data:
        raise ValueError("Manifest must contain 'input' and 'output' fields")

    return EditManifest(
        version=data.get("version", "1"),
        input=Path(data["input"]),
        output=Path(data["output"]),
        segments=parse_segments(data.get("segments", [])),
        crop=parse_crop(data.get("crop")),
        filter=data.get("filter") or None,
        overlay=parse_overlay(data.get("overlay")),
        engine=parse_engine_config(data.get("engine")),
    )
