"""Edit executor — runs a segment plan against a transcoder engine."""

import asyncio
import logging
import uuid
from dataclasses import dataclass
from pathlib import Path
from typing import Callable

from trimforge.errors import EditCancelled, EngineError, EngineInitFailure, TranscodeFailure
from trimforge.manifest import EditManifest
from trimforge.models import DEFAULT_MEDIA_TYPE, EditRequest, MediaBlob
from trimforge.planner import plan
from trimforge.state import EditorState, Phase
from trimforge.transcoder import FFmpegEngine, TranscoderEngine

logger = logging.getLogger(__name__)


@dataclass
class EditResult:
    output_path: Path
    segments_kept: int = 0
    duration_kept: float = 0.0
    reencoded: bool = False
    size_bytes: int = 0


class _ProgressReporter:
    """Maps per-invocation engine fractions onto one 0-100 percentage."""

    def __init__(
        self,
        total: int,
        on_progress: Callable[[int], None] | None,
        state: EditorState,
    ):
        self.total = max(total, 1)
        self.on_progress = on_progress
        self.state = state
        self.percent = 0

    def for_invocation(self, index: int) -> Callable[[float], None]:
        def cb(frac: float) -> None:
            frac = max(0.0, min(frac, 1.0))
            percent = min(100, round((index + frac) / self.total * 100))
            if percent <= self.percent:
                return
            self.percent = percent
            self.state.update_progress(percent)
            if self.on_progress:
                self.on_progress(percent)
        return cb


async def _cleanup(engine: TranscoderEngine, names: list[str]) -> None:
    """Delete artifacts, logging (never raising) on failure."""
    for name in dict.fromkeys(names):
        try:
            await engine.delete(name)
        except EngineError as e:
            logger.warning("CleanupWarning: could not delete %s: %s", name, e)


async def execute(
    engine: TranscoderEngine,
    request: EditRequest,
    *,
    on_progress: Callable[[int], None] | None = None,
    state: EditorState | None = None,
    namespace: str | None = None,
    cancel: asyncio.Event | None = None,
) -> MediaBlob:
    """Apply one edit and return the resulting media.

    Args:
        engine: A loaded transcoder engine. The caller must not run another
            edit on it until this call returns.
        request: Source bytes, kept segments and transforms.
        on_progress: Optional callback receiving an integer percentage.
        state: Observable flags to update; a private one is used if omitted.
        namespace: Artifact name prefix. ``None`` picks a fresh per-call
            prefix; ``""`` uses the fixed names.
        cancel: When set, the edit stops before the next invocation.

    Raises:
        InvalidRequest: the segments or transforms cannot be planned.
        EngineInitFailure: the engine was never loaded.
        TranscodeFailure: an engine operation failed; artifacts are cleaned up.
        EditCancelled: ``cancel`` was set; artifacts are cleaned up.
    """
    if not engine.loaded:
        raise EngineInitFailure("Transcoder not initialized. Call load() first.")

    state = state or EditorState()
    if namespace is None:
        namespace = f"{uuid.uuid4().hex[:12]}_"

    created: list[str] = []
    state.set_processing(True)
    try:
        # Planning errors surface before the engine is touched
        state.set_phase(Phase.PLANNING)
        edit_plan = plan(
            request.segments,
            crop=request.crop,
            filter=request.filter,
            overlay=request.overlay,
            namespace=namespace,
        )
        reporter = _ProgressReporter(len(edit_plan.invocations), on_progress, state)

        try:
            state.set_phase(Phase.WRITING_INPUT)
            created.append(edit_plan.source_artifact)
            await engine.write(edit_plan.source_artifact, request.source_media)

            state.set_phase(Phase.EXECUTING)
            for i, inv in enumerate(edit_plan.invocations):
                if cancel is not None and cancel.is_set():
                    raise EditCancelled(
                        f"Edit cancelled after {i} of {len(edit_plan.invocations)} steps"
                    )
                if inv.manifest is not None:
                    created.append(inv.manifest.name)
                    await engine.write(inv.manifest.name, inv.manifest.render().encode("utf-8"))

                created.append(inv.produces)
                logger.debug("Invocation %d/%d: %s", i + 1, len(edit_plan.invocations), inv.argv)
                try:
                    await engine.execute(inv.argv, reporter.for_invocation(i))
                except EngineError as e:
                    raise TranscodeFailure(str(e), inv.argv) from e

            state.set_phase(Phase.READING_OUTPUT)
            data = await engine.read(edit_plan.output_artifact)
        except EngineError as e:
            state.set_phase(Phase.FAILED)
            await _cleanup(engine, created)
            raise TranscodeFailure(str(e)) from e
        except BaseException:
            state.set_phase(Phase.FAILED)
            await _cleanup(engine, created)
            raise

        state.set_phase(Phase.CLEANING_UP)
        await _cleanup(engine, [*edit_plan.cleanup, edit_plan.output_artifact])
        state.set_phase(Phase.IDLE)
    except BaseException:
        if state.phase is not Phase.FAILED:
            state.set_phase(Phase.FAILED)
        raise
    finally:
        state.set_processing(False)

    logger.info(
        "Edit complete: %d segment(s), %d invocation(s), %s, %d bytes out",
        len(request.segments),
        len(edit_plan.invocations),
        "re-encoded" if edit_plan.needs_reencode else "stream copied",
        len(data),
    )
    return MediaBlob(data=data, media_type=request.media_type or DEFAULT_MEDIA_TYPE)


async def process(
    manifest: EditManifest,
    engine: FFmpegEngine | None = None,
    on_progress: Callable[[int], None] | None = None,
) -> EditResult:
    """Edit ``manifest.input`` into ``manifest.output`` using an FFmpeg engine.

    Loads a fresh engine from ``manifest.engine`` when none is given and
    closes it afterwards.
    """
    owns_engine = engine is None
    if engine is None:
        engine = FFmpegEngine(manifest.engine)

    namespace = None if manifest.engine.namespaced else ""
    try:
        await engine.load()
        request = manifest.to_request()
        blob = await execute(
            engine,
            request,
            on_progress=on_progress,
            state=engine.state,
            namespace=namespace,
        )
    finally:
        if owns_engine:
            engine.close()

    manifest.output.parent.mkdir(parents=True, exist_ok=True)
    manifest.output.write_bytes(blob.data)

    return EditResult(
        output_path=manifest.output,
        segments_kept=len(request.segments),
        duration_kept=sum(s.duration for s in request.segments),
        reencoded=request.needs_reencode,
        size_bytes=len(blob.data),
    )
