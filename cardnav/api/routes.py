from __future__ import annotations

from flask import current_app, jsonify, request
from sqlalchemy.exc import SQLAlchemyError

from cardnav.api import api_bp
from cardnav.extensions import db
from cardnav.services.import_service import (
    ImportPreview,
    ImportRequestError,
    apply_plan,
    build_preview,
    load_plan,
    parse_mode,
    parse_target,
    read_upload,
)
from cardnav.services.store import ImportStore


def _to_bool(value, default=False):
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in {"1", "true", "yes", "on"}


def _error(message: str, status: int = 400):
    return jsonify({"ok": False, "message": message}), status


def _read_request_upload() -> str:
    max_bytes = current_app.config["IMPORT_MAX_BYTES"]
    upload = request.files.get("file")
    data = upload.stream.read(max_bytes + 1) if upload else None
    return read_upload(
        data,
        max_bytes=max_bytes,
        min_bytes=current_app.config["IMPORT_MIN_BYTES"],
    )


def _preview_from_request(store: ImportStore) -> ImportPreview:
    html = _read_request_upload()
    mode = parse_mode(request.form.get("mode"))
    target = parse_target(request.form.get("target"))
    return build_preview(
        html,
        mode,
        target,
        store,
        fallback_menu=current_app.config["IMPORT_FALLBACK_MENU"],
        sample_size=current_app.config["IMPORT_SAMPLE_SIZE"],
        max_errors=current_app.config["IMPORT_MAX_ERRORS"],
    )


def _apply_failed():
    db.session.rollback()
    current_app.logger.exception("Bookmark import apply failed")
    return _error("import failed, run preview again", 500)


@api_bp.route("/health")
def health():
    return jsonify({"status": "ok", "service": "cardnav"})


@api_bp.route("/import/preview", methods=["POST"])
def import_preview():
    try:
        preview = _preview_from_request(ImportStore())
    except ImportRequestError as exc:
        current_app.logger.info("Rejected import preview: %s", exc)
        return _error(str(exc))

    return jsonify(
        {
            "ok": True,
            "mode": preview.mode,
            "targetType": preview.target.type,
            "targetMenuId": preview.target.menu_id,
            "replaceMenuIds": preview.replace_menu_ids,
            "plan": preview.plan.as_dict(),
            "summary": preview.summary,
        }
    )


@api_bp.route("/import/apply", methods=["POST"])
def import_apply():
    payload = request.get_json(silent=True) or {}
    try:
        mode = parse_mode(payload.get("mode"))
        plan = load_plan(payload.get("plan"))
        result = apply_plan(
            plan,
            mode,
            payload.get("targetType"),
            payload.get("targetMenuId"),
            ImportStore(),
            batch_size=current_app.config["IMPORT_BATCH_SIZE"],
        )
    except ImportRequestError as exc:
        return _error(str(exc))
    except SQLAlchemyError:
        return _apply_failed()

    if result.errors:
        current_app.logger.warning(
            "Import applied with %d unresolved cards", len(result.errors)
        )
    return jsonify({"ok": True, "result": result.as_dict(), "errors": result.errors})


@api_bp.route("/import/bookmarks", methods=["POST"])
def import_bookmarks():
    dry_run = _to_bool(request.values.get("dryRun"), default=False)
    store = ImportStore()
    try:
        preview = _preview_from_request(store)
    except ImportRequestError as exc:
        return _error(str(exc))

    response = {
        "ok": True,
        "dryRun": dry_run,
        "stats": preview.plan.stats.as_dict(),
        "summary": preview.summary,
        "result": None,
        "errors": [],
    }
    if dry_run:
        return jsonify(response)

    try:
        result = apply_plan(
            preview.plan,
            preview.mode,
            preview.target.type,
            preview.target.menu_id,
            store,
            batch_size=current_app.config["IMPORT_BATCH_SIZE"],
        )
    except SQLAlchemyError:
        return _apply_failed()

    response["result"] = result.as_dict()
    response["errors"] = result.errors
    return jsonify(response)
