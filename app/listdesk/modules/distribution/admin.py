from __future__ import annotations

from flask import Blueprint, current_app, g, jsonify, request

from app.listdesk.db import db_session
from app.listdesk.models import User
from app.listdesk.modules.distribution.errors import (
    FileTooLargeError,
    IngestError,
    NoAgentsError,
    ParseError,
    ValidationError,
)
from app.listdesk.modules.distribution.service import (
    compute_summary,
    delete_list_item,
    delete_list_items_by_file,
    ingest_upload,
    list_uploaded_files,
    query_list_items,
)
from app.listdesk.security import require_auth
from app.listdesk.utils import parse_int

bp = Blueprint("distribution", __name__)

_CLIENT_ERRORS = (ParseError, ValidationError, NoAgentsError)


def _current_user() -> User:
    u = getattr(g, "current_user", None)
    if not u:
        raise RuntimeError("No current user")
    return u


def _server_error(e: Exception):
    is_dev = (current_app.config.get("ENV") or "").lower() == "development"
    return (
        jsonify(
            {
                "message": "Error processing file",
                "error": str(e) if is_dev else "Internal server error",
            }
        ),
        500,
    )


# ---------- Upload ----------
@bp.post("/upload")
@require_auth
def lists_upload():
    s = db_session()
    u = _current_user()

    f = request.files.get("file")
    if not f or not f.filename:
        return jsonify({"message": "Please upload a file"}), 400

    try:
        result = ingest_upload(
            s,
            f.stream,
            f.filename,
            user=u,
            tmp_dir=current_app.config.get("UPLOAD_TMP_DIR"),
            max_bytes=int(current_app.config.get("MAX_UPLOAD_BYTES") or 5 * 1024 * 1024),
        )
        s.commit()
    except _CLIENT_ERRORS as e:
        s.rollback()
        current_app.logger.info("Upload rejected (file=%s request_id=%s): %s", f.filename, g.request_id, e)
        return jsonify({"message": str(e)}), 400
    except FileTooLargeError as e:
        s.rollback()
        return jsonify({"message": str(e)}), 413
    except IngestError as e:
        s.rollback()
        current_app.logger.error("Upload failed (file=%s request_id=%s): %s", f.filename, g.request_id, e)
        return _server_error(e)
    except Exception as e:
        s.rollback()
        current_app.logger.exception("Upload crashed (file=%s request_id=%s)", f.filename, g.request_id)
        return _server_error(e)

    return jsonify(result.to_dict())


# ---------- List ----------
@bp.get("")
@require_auth
def lists_all():
    s = db_session()
    agent_id = parse_int(request.args.get("agentId"))
    q = request.args.get("q")
    items = query_list_items(s, agent_id=agent_id, q=q)
    return jsonify([it.to_dict() for it in items])


@bp.get("/agent/<int:agent_id>")
@require_auth
def lists_for_agent(agent_id: int):
    s = db_session()
    return jsonify([it.to_dict() for it in query_list_items(s, agent_id=agent_id)])


@bp.get("/summary")
@require_auth
def lists_summary():
    s = db_session()
    return jsonify(compute_summary(s))


@bp.get("/files")
@require_auth
def lists_files():
    s = db_session()
    return jsonify(list_uploaded_files(s))


# ---------- Delete ----------
@bp.delete("/<int:item_id>")
@require_auth
def list_item_delete(item_id: int):
    s = db_session()
    if not delete_list_item(s, item_id, user=_current_user()):
        return jsonify({"message": "List item not found"}), 404
    s.commit()
    return jsonify({"message": "List item removed successfully"})


@bp.delete("/file/<path:filename>")
@require_auth
def list_file_delete(filename: str):
    s = db_session()
    deleted = delete_list_items_by_file(s, filename, user=_current_user())
    s.commit()
    return jsonify({"message": f"{deleted} items removed successfully", "deletedCount": deleted})
