"""FFmpeg video filter graph construction for crop, custom filters and text overlays."""

from trimforge.errors import InvalidRequest
from trimforge.models import CropRect, TextOverlay

MARGIN = 10

# drawtext x/y expressions; w/h are the frame size, tw/th the rendered text size
OVERLAY_ANCHORS: dict[str, tuple[str, str]] = {
    "top-left": (str(MARGIN), str(MARGIN)),
    "top": ("(w-tw)/2", str(MARGIN)),
    "top-right": (f"w-tw-{MARGIN}", str(MARGIN)),
    "center": ("(w-tw)/2", "(h-th)/2"),
    "bottom-left": (str(MARGIN), f"h-th-{MARGIN}"),
    "bottom": ("(w-tw)/2", f"h-th-{MARGIN}"),
    "bottom-right": (f"w-tw-{MARGIN}", f"h-th-{MARGIN}"),
}


def escape_drawtext(value: str) -> str:
    """Escape a string for use inside a quoted drawtext option.

    Every caller-supplied drawtext value is quoted and escaped, so commas and
    semicolons cannot split the filter graph.
    """
    return value.replace("\\", "\\\\").replace(":", "\\:").replace("'", "\\'")


def crop_filter(rect: CropRect) -> str:
    return f"crop={rect.width}:{rect.height}:{rect.x}:{rect.y}"


def drawtext_filter(overlay: TextOverlay) -> str:
    try:
        x, y = OVERLAY_ANCHORS[overlay.position]
    except KeyError:
        raise InvalidRequest(
            f"Unknown overlay position {overlay.position!r}; "
            f"expected one of {', '.join(OVERLAY_ANCHORS)}"
        ) from None

    return (
        f"drawtext=text='{escape_drawtext(overlay.text)}'"
        f":fontsize={overlay.font_size}"
        f":fontcolor='{escape_drawtext(overlay.color)}'"
        f":fontfile='{escape_drawtext(overlay.font_family)}'"
        f":x={x}:y={y}"
    )


def build_filter_graph(
    crop: CropRect | None = None,
    filter: str | None = None,
    overlay: TextOverlay | None = None,
) -> str | None:
    """Join the requested transforms into a single ``-vf`` value.

    Order is fixed: crop first so later stages see the cropped frame, then the
    caller's filter expression verbatim, then the text overlay on top. Returns
    None when no transform is requested.
    """
    parts: list[str] = []
    if crop is not None:
        parts.append(crop_filter(crop))
    if filter:
        parts.append(filter)
    if overlay is not None:
        parts.append(drawtext_filter(overlay))

    return ",".join(parts) if parts else None
