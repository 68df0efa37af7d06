"""Web API routes for TrimForge."""

import asyncio
import json
import logging
import queue
import threading
import uuid
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from trimforge.errors import EditError, InvalidRequest
from trimforge.executor import execute
from trimforge.manifest import parse_crop, parse_overlay, parse_segments
from trimforge.models import EditRequest, MediaBlob
from trimforge.planner import validate
from trimforge.transcoder import FFmpegEngine

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

PROGRESS_TIMEOUT = 120


@dataclass
class EditJob:
    """One uploaded file and the state of its latest edit."""

    id: str
    dir: Path
    input_path: Path
    filename: str
    media_type: str | None = None
    status: str = "uploaded"
    error: str | None = None
    result: dict | None = None
    events: queue.Queue | None = None
    thread: threading.Thread | None = field(default=None, repr=False)

    @property
    def output_path(self) -> Path:
        return self.dir / f"output{self.input_path.suffix}"

    def to_json(self) -> dict:
        resp = {"status": self.status, "filename": self.filename}
        if self.status == "done":
            resp["result"] = self.result
        if self.status == "error":
            resp["error"] = self.error
        return resp


# In-memory job store: job_id -> EditJob
_jobs: dict[str, EditJob] = {}


def _error(message: str, status: int):
    return jsonify({"error": message}), status


def _sse(payload: dict) -> str:
    return f"data: {json.dumps(payload)}\n\n"


async def run_edit(
    engine: FFmpegEngine,
    edit: EditRequest,
    on_progress: Callable[[int], None],
) -> MediaBlob:
    """Load the shared engine on first use, then run one edit on it."""
    await engine.load()
    return await execute(engine, edit, on_progress=on_progress, state=engine.state)


def _build_request(job: EditJob, body: dict) -> EditRequest:
    segments = parse_segments(body.get("segments", []))
    crop = parse_crop(body.get("crop"))
    overlay = parse_overlay(body.get("overlay"))
    validate(segments, crop, overlay)
    return EditRequest(
        source_media=job.input_path.read_bytes(),
        segments=segments,
        crop=crop,
        filter=body.get("filter") or None,
        overlay=overlay,
        media_type=job.media_type,
    )


def _run_job(job: EditJob, engine: FFmpegEngine, edit: EditRequest, lock: threading.Lock) -> None:
    events = job.events

    def on_progress(percent: int) -> None:
        events.put({"stage": engine.state.phase.value, "progress": percent})

    try:
        blob = asyncio.run(run_edit(engine, edit, on_progress))
        job.output_path.write_bytes(blob.data)
        job.result = {
            "output_path": str(job.output_path),
            "media_type": blob.media_type,
            "size_bytes": len(blob.data),
            "segments_kept": len(edit.segments),
        }
        job.status = "done"
    except EditError as e:
        job.status = "error"
        job.error = str(e)
    except Exception as e:
        logger.exception("Edit job %s failed", job.id)
        job.status = "error"
        job.error = str(e)
    finally:
        lock.release()
        events.put(None)  # sentinel


@bp.route("/api/engine")
def engine_status():
    engine: FFmpegEngine = current_app.extensions["trimforge"]["engine"]
    return jsonify({"loaded": engine.loaded, **engine.state.snapshot()})


@bp.route("/api/upload", methods=["POST"])
def upload():
    f = request.files.get("file")
    if f is None:
        return _error("No file provided", 400)
    if not f.filename:
        return _error("Empty filename", 400)

    job_id = uuid.uuid4().hex[:12]
    job_dir = Path(current_app.config["WORK_DIR"]) / job_id
    job_dir.mkdir(parents=True, exist_ok=True)

    input_path = job_dir / f"input{Path(f.filename).suffix or '.mp4'}"
    f.save(input_path)

    _jobs[job_id] = EditJob(
        id=job_id,
        dir=job_dir,
        input_path=input_path,
        filename=f.filename,
        media_type=f.mimetype if f.mimetype != "application/octet-stream" else None,
    )
    return jsonify({"job_id": job_id, "filename": f.filename})


@bp.route("/api/jobs/<job_id>/edit", methods=["POST"])
def start_edit(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _error("Job not found", 404)
    if job.status == "processing":
        return _error("Job is already processing", 409)

    try:
        edit = _build_request(job, request.get_json(silent=True) or {})
    except InvalidRequest as e:
        return _error(str(e), 400)

    ext = current_app.extensions["trimforge"]
    lock: threading.Lock = ext["edit_lock"]
    # The engine runs one edit at a time
    if not lock.acquire(blocking=False):
        return _error("Another edit is in progress", 409)

    job.events = queue.Queue()
    job.status = "processing"
    job.error = None
    job.thread = threading.Thread(
        target=_run_job, args=(job, ext["engine"], edit, lock), daemon=True
    )
    job.thread.start()
    return jsonify({"status": "started"})


@bp.route("/api/jobs/<job_id>/progress")
def progress_stream(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _error("Job not found", 404)
    if job.events is None:
        return _error("No edit in progress", 409)

    events = job.events

    def generate():
        while True:
            try:
                msg = events.get(timeout=PROGRESS_TIMEOUT)
            except queue.Empty:
                yield _sse({"error": "timeout"})
                return
            if msg is not None:
                yield _sse(msg)
                continue
            if job.status == "error":
                yield _sse({"error": job.error})
            else:
                yield _sse({"stage": "complete", "progress": 100, "result": job.result})
            return

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/jobs/<job_id>/result")
def download_result(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _error("Job not found", 404)
    if job.status != "done":
        return _error("Job not complete", 409)
    return send_file(job.output_path, mimetype=job.result["media_type"], as_attachment=False)


@bp.route("/api/jobs/<job_id>/status")
def job_status(job_id: str):
    job = _jobs.get(job_id)
    if job is None:
        return _error("Job not found", 404)
    return jsonify(job.to_json())
