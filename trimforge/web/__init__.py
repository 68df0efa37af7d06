"""Flask application factory for the TrimForge web API."""

import tempfile
import threading
from pathlib import Path

from flask import Flask, jsonify

from trimforge.manifest import EngineConfig
from trimforge.transcoder import FFmpegEngine


def create_app(work_dir: Path | None = None, engine_config: EngineConfig | None = None) -> Flask:
    app = Flask(__name__)
    app.config["WORK_DIR"] = work_dir or Path(tempfile.mkdtemp(prefix="trimforge_"))
    app.config["MAX_CONTENT_LENGTH"] = 10 * 1024 * 1024 * 1024  # 10 GB

    # One engine per app, loaded by the first edit and reused afterwards
    app.extensions["trimforge"] = {
        "engine": FFmpegEngine(engine_config),
        "edit_lock": threading.Lock(),
    }

    from trimforge.web.routes import bp
    app.register_blueprint(bp)

    @app.errorhandler(413)
    def request_entity_too_large(error):
        return jsonify({"error": "File too large"}), 413

    return app
