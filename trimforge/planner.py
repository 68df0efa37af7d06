"""Segment planner — turns kept time ranges and transforms into transcoder invocations.

The planner is pure: it never touches an engine, it only names artifacts and
builds argv lists. The executor materializes the resulting plan.
"""

import logging

from trimforge.errors import InvalidRequest
from trimforge.filters import OVERLAY_ANCHORS, build_filter_graph
from trimforge.models import (
    ConcatManifest,
    CropRect,
    EditPlan,
    Invocation,
    TextOverlay,
    TimeRange,
)

logger = logging.getLogger(__name__)

SOURCE_NAME = "input.mp4"
OUTPUT_NAME = "output.mp4"
CONCAT_LIST_NAME = "concat_list.txt"
CONCAT_NAME = "concat.mp4"


def segment_name(index: int, namespace: str = "") -> str:
    return f"{namespace}segment_{index}.mp4"


def format_seconds(value: float) -> str:
    """Render seconds as a plain decimal FFmpeg accepts (``0``, ``1.5``, ``0.2``)."""
    text = f"{value:.6f}".rstrip("0").rstrip(".")
    return text if text not in ("", "-0") else "0"


def validate(
    segments: list[TimeRange],
    crop: CropRect | None = None,
    overlay: TextOverlay | None = None,
) -> None:
    """Raise InvalidRequest if the edit cannot be planned."""
    if not segments:
        raise InvalidRequest("At least one segment is required")

    for seg in segments:
        if seg.start < 0:
            raise InvalidRequest(f"Segment {seg.id!r} starts before 0 ({seg.start})")
        if seg.end <= seg.start:
            raise InvalidRequest(
                f"Segment {seg.id!r} must end after it starts ({seg.start} -> {seg.end})"
            )
        if format_seconds(seg.duration) == "0":
            raise InvalidRequest(
                f"Segment {seg.id!r} is shorter than one microsecond ({seg.duration})"
            )

    if crop is not None:
        if crop.width <= 0 or crop.height <= 0:
            raise InvalidRequest(
                f"Crop size must be positive, got {crop.width}x{crop.height}"
            )
        if crop.x < 0 or crop.y < 0:
            raise InvalidRequest(f"Crop offset must be non-negative, got ({crop.x}, {crop.y})")

    if overlay is not None:
        if not overlay.text:
            raise InvalidRequest("Text overlay requires non-empty text")
        if overlay.font_size <= 0:
            raise InvalidRequest(f"Font size must be positive, got {overlay.font_size}")
        if overlay.position not in OVERLAY_ANCHORS:
            raise InvalidRequest(f"Unknown overlay position {overlay.position!r}")


def _slice_args(source: str, seg: TimeRange) -> list[str]:
    # Duration-relative slice; never -to
    return [
        "-i", source,
        "-ss", format_seconds(seg.start),
        "-t", format_seconds(seg.duration),
    ]


def _concat_args(manifest: str, output: str) -> list[str]:
    return ["-f", "concat", "-safe", "0", "-i", manifest, "-c", "copy", "-y", output]


def plan(
    segments: list[TimeRange],
    crop: CropRect | None = None,
    filter: str | None = None,
    overlay: TextOverlay | None = None,
    namespace: str = "",
) -> EditPlan:
    """Build the invocation sequence for one edit.

    Args:
        segments: Kept ranges, in any order. Sorted by start before planning.
        crop: Optional crop rectangle.
        filter: Optional FFmpeg filter expression, applied verbatim.
        overlay: Optional text overlay.
        namespace: Prefix for every artifact name, so concurrent edits on one
            engine cannot collide.
    """
    validate(segments, crop, overlay)

    ordered = sorted(segments, key=lambda s: s.start)
    graph = build_filter_graph(crop, filter, overlay)

    source = f"{namespace}{SOURCE_NAME}"
    output = f"{namespace}{OUTPUT_NAME}"
    invocations: list[Invocation] = []
    cleanup: list[str] = [source]

    if len(ordered) == 1:
        args = _slice_args(source, ordered[0])
        if graph:
            args += ["-vf", graph]
        else:
            args += ["-c", "copy"]
        args += ["-y", output]
        invocations.append(
            Invocation(argv=tuple(args), produces=output, consumes=frozenset({source}))
        )
    else:
        # Extraction is always stream copy; transforms run once after concat
        names: list[str] = []
        for i, seg in enumerate(ordered):
            name = segment_name(i, namespace)
            args = _slice_args(source, seg) + ["-c", "copy", "-y", name]
            invocations.append(
                Invocation(argv=tuple(args), produces=name, consumes=frozenset({source}))
            )
            names.append(name)
            cleanup.append(name)

        manifest = ConcatManifest(name=f"{namespace}{CONCAT_LIST_NAME}", entries=tuple(names))
        cleanup.append(manifest.name)

        if graph:
            concat = f"{namespace}{CONCAT_NAME}"
            invocations.append(
                Invocation(
                    argv=tuple(_concat_args(manifest.name, concat)),
                    produces=concat,
                    consumes=frozenset(names),
                    manifest=manifest,
                )
            )
            cleanup.append(concat)
            invocations.append(
                Invocation(
                    argv=("-i", concat, "-vf", graph, "-y", output),
                    produces=output,
                    consumes=frozenset({concat}),
                )
            )
        else:
            invocations.append(
                Invocation(
                    argv=tuple(_concat_args(manifest.name, output)),
                    produces=output,
                    consumes=frozenset(names),
                    manifest=manifest,
                )
            )

    logger.info(
        "Planned %d invocation(s) for %d segment(s) (%s)",
        len(invocations),
        len(ordered),
        "re-encode" if graph else "stream copy",
    )
    return EditPlan(
        invocations=invocations,
        source_artifact=source,
        output_artifact=output,
        cleanup=cleanup,
    )
