"""Thin CLI entry point — builds an EditManifest and calls the executor."""

import argparse
import asyncio
import logging
import sys
from pathlib import Path

from trimforge.errors import EditError
from trimforge.executor import process
from trimforge.manifest import EditManifest, EngineConfig, load_manifest
from trimforge.models import CropRect, TextOverlay, TimeRange


def parse_segment(value: str) -> TimeRange:
    """Parse ``START:END`` (seconds) into a TimeRange."""
    try:
        start, end = value.split(":")
        return TimeRange(start=float(start), end=float(end), id=value)
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected START:END in seconds, got {value!r}")


def parse_crop_arg(value: str) -> CropRect:
    """Parse ``W:H:X:Y`` (pixels), matching FFmpeg's crop filter order."""
    try:
        width, height, x, y = (int(v) for v in value.split(":"))
    except ValueError:
        raise argparse.ArgumentTypeError(f"expected W:H:X:Y in pixels, got {value!r}")
    return CropRect(x=x, y=y, width=width, height=height)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="trimforge",
        description="TrimForge — trim, crop, filter and caption videos with FFmpeg.",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command")

    edit = sub.add_parser("edit", help="Edit a video file")
    edit.add_argument("video", nargs="?", type=Path, help="Input video file")
    edit.add_argument("--manifest", "-m", type=Path, help="Path to a JSON manifest file")
    edit.add_argument("--output", "-o", type=Path, help="Output file path")
    edit.add_argument(
        "--segment", "-s", dest="segments", action="append", type=parse_segment, default=[],
        metavar="START:END", help="Kept range in seconds (repeatable)",
    )
    edit.add_argument("--crop", type=parse_crop_arg, metavar="W:H:X:Y", help="Crop rectangle")
    edit.add_argument("--filter", type=str, help="FFmpeg video filter expression, applied verbatim")
    edit.add_argument("--text", type=str, help="Text overlay to burn in")
    edit.add_argument("--font-size", type=int, default=24, help="Overlay font size")
    edit.add_argument("--color", type=str, default="white", help="Overlay font color")
    edit.add_argument("--font", type=str, default="Arial", help="Overlay font file or family")
    edit.add_argument("--position", type=str, default="top-left", help="Overlay anchor")
    edit.add_argument("--ffmpeg", type=str, default="ffmpeg", help="Path to the ffmpeg binary")

    serve = sub.add_parser("serve", help="Launch the web API")
    serve.add_argument("--port", type=int, default=8321, help="Port to listen on")
    serve.add_argument("--host", type=str, default="127.0.0.1", help="Host to bind to")
    serve.add_argument("--ffmpeg", type=str, default="ffmpeg", help="Path to the ffmpeg binary")

    return parser


def manifest_from_args(args: argparse.Namespace) -> EditManifest:
    output = args.output or args.video.with_stem(args.video.stem + "_edited")
    overlay = None
    if args.text:
        overlay = TextOverlay(
            text=args.text,
            font_size=args.font_size,
            color=args.color,
            font_family=args.font,
            position=args.position,
        )
    return EditManifest(
        input=args.video,
        output=output,
        segments=list(args.segments),
        crop=args.crop,
        filter=args.filter,
        overlay=overlay,
        engine=EngineConfig(ffmpeg_path=args.ffmpeg),
    )


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command is None:
        parser.print_help()
        sys.exit(0)

    if args.command == "serve":
        from trimforge.web import create_app
        app = create_app(engine_config=EngineConfig(ffmpeg_path=args.ffmpeg))
        print(f"TrimForge web API: http://{args.host}:{args.port}")
        app.run(host=args.host, port=args.port, debug=False)
        return

    if args.manifest:
        m = load_manifest(args.manifest)
    elif args.video:
        m = manifest_from_args(args)
    else:
        print("Error: provide either a VIDEO argument or --manifest.", file=sys.stderr)
        sys.exit(1)

    def on_progress(percent: int) -> None:
        print(f"  [{percent:3d}%] Encoding")

    try:
        result = asyncio.run(process(m, on_progress=on_progress))
    except (EditError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(1)

    print()
    print(f"Done! Output: {result.output_path}")
    print(f"  Kept {result.segments_kept} segment(s), {result.duration_kept:.1f}s")
    print(f"  Mode: {'re-encode' if result.reencoded else 'stream copy'}")
