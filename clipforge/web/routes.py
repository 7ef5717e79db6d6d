"""Export API routes for ClipForge."""

import json
import logging
import queue
import threading
import uuid
from pathlib import Path

from flask import Blueprint, Response, current_app, jsonify, request, send_file

from clipforge import ffutil
from clipforge.engine import export
from clipforge.errors import ClipForgeError
from clipforge.manifest import parse_manifest
from clipforge.progress import PROGRESS_EVENT

logger = logging.getLogger(__name__)

bp = Blueprint("web", __name__)

# In-memory stores: media_id -> path, export_id -> export dict
_media: dict[str, Path] = {}
_exports: dict[str, dict] = {}


@bp.route("/api/upload", methods=["POST"])
def upload():
    if "file" not in request.files:
        return jsonify({"error": "No file provided"}), 400

    f = request.files["file"]
    if not f.filename:
        return jsonify({"error": "Empty filename"}), 400

    media_id = uuid.uuid4().hex[:12]
    media_dir = Path(current_app.config["WORK_DIR"]) / "media" / media_id
    media_dir.mkdir(parents=True, exist_ok=True)

    ext = Path(f.filename).suffix or ".mp4"
    input_path = media_dir / f"input{ext}"
    f.save(input_path)
    _media[media_id] = input_path

    return jsonify({"media_id": media_id, "filename": f.filename})


@bp.route("/api/exports", methods=["POST"])
def start_export():
    config = request.get_json(silent=True) or {}
    if not isinstance(config, dict):
        return jsonify({"error": "Request body must be a JSON object"}), 400
    clips = config.get("clips") or []
    if not clips:
        return jsonify({"error": "No clips provided for export"}), 400

    if not isinstance(clips, list) or not all(isinstance(c, dict) for c in clips):
        return jsonify({"error": "Each clip must be an object"}), 400

    for c in clips:
        if c.get("media_id") not in _media:
            return jsonify({"error": f"Unknown media: {c.get('media_id')}"}), 404

    export_id = uuid.uuid4().hex[:12]
    export_dir = Path(current_app.config["WORK_DIR"]) / "exports" / export_id
    export_dir.mkdir(parents=True, exist_ok=True)
    output_path = export_dir / "output.mp4"

    try:
        manifest = parse_manifest({
            "output": str(output_path),
            "resolution": config.get("resolution", "720p"),
            "clips": [
                {
                    "path": str(_media[c["media_id"]]),
                    "trim_start": c.get("trim_start"),
                    "trim_end": c.get("trim_end"),
                    "volume": c.get("volume"),
                    "muted": bool(c.get("muted", False)),
                }
                for c in clips
            ],
        })
        job = manifest.to_job()
    except (ValueError, TypeError) as e:
        return jsonify({"error": str(e)}), 400

    progress_queue: queue.Queue = queue.Queue()
    record = {
        "status": "processing",
        "error": None,
        "result": None,
        "progress": 0,
        "progress_queue": progress_queue,
    }
    _exports[export_id] = record
    ffmpeg_path = current_app.config.get("FFMPEG_PATH")
    scratch_dir = export_dir

    def run():
        try:
            def on_progress(percent: int):
                record["progress"] = percent
                progress_queue.put(percent)

            binary = ffutil.locate_ffmpeg(ffmpeg_path)
            result = export(job, ffmpeg=binary, on_progress=on_progress, scratch_dir=scratch_dir)
            record["result"] = {
                "output_path": str(result.output_path),
                "clip_count": result.clip_count,
                "duration": result.duration,
            }
            record["status"] = "done"
        except ClipForgeError as e:
            logger.error("export %s failed: %s", export_id, e)
            record["status"] = "error"
            record["error"] = str(e)
        except Exception as e:
            logger.exception("export %s crashed", export_id)
            record["status"] = "error"
            record["error"] = str(e)
        finally:
            progress_queue.put(None)  # sentinel

    threading.Thread(target=run, daemon=True).start()
    return jsonify({"export_id": export_id, "status": "started"})


@bp.route("/api/exports/<export_id>/progress")
def progress_stream(export_id: str):
    if export_id not in _exports:
        return jsonify({"error": "Export not found"}), 404

    record = _exports[export_id]
    q = record["progress_queue"]

    def generate():
        while True:
            try:
                msg = q.get(timeout=120)
            except queue.Empty:
                yield "event: error\ndata: {\"error\": \"timeout\"}\n\n"
                break
            if msg is None:
                if record["status"] == "error":
                    yield f"event: error\ndata: {json.dumps({'error': record['error']})}\n\n"
                else:
                    data = json.dumps({"progress": 100, "result": record["result"]})
                    yield f"event: complete\ndata: {data}\n\n"
                break
            yield f"event: {PROGRESS_EVENT}\ndata: {msg}\n\n"

    return Response(generate(), mimetype="text/event-stream")


@bp.route("/api/exports/<export_id>/result")
def download_result(export_id: str):
    if export_id not in _exports:
        return jsonify({"error": "Export not found"}), 404

    record = _exports[export_id]
    if record["status"] != "done":
        return jsonify({"error": "Export not complete"}), 409

    return send_file(Path(record["result"]["output_path"]), as_attachment=False)


@bp.route("/api/exports/<export_id>/status")
def export_status(export_id: str):
    if export_id not in _exports:
        return jsonify({"error": "Export not found"}), 404

    record = _exports[export_id]
    resp = {"status": record["status"], "progress": record["progress"]}
    if record["status"] == "done":
        resp["result"] = record["result"]
    if record["status"] == "error":
        resp["error"] = record["error"]
    return jsonify(resp)
