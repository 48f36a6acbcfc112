from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from werkzeug.exceptions import HTTPException

from . import db
from .auth import authenticate
from .context import RequestContext, parse_offset_header
from .errors import AgendaError, ConflictFailure
from .roles import resolve_role
from .rpc import dispatch, parse_request

bp = Blueprint("main", __name__)


@bp.errorhandler(AgendaError)
def handle_agenda_error(exc: AgendaError):
    body: dict[str, object] = {"success": False, "error": exc.message}
    if isinstance(exc, ConflictFailure):
        body["rooms"] = exc.rooms
        body["conflictingSessionIds"] = exc.session_ids
    return jsonify(body), exc.status_code


@bp.errorhandler(SQLAlchemyError)
def handle_store_error(exc: SQLAlchemyError):
    db.session.rollback()
    current_app.logger.exception("Store error outside a transaction")
    return jsonify({"success": False, "error": "Erreur de base de données"}), 500


@bp.errorhandler(Exception)
def handle_unexpected_error(exc: Exception):
    if isinstance(exc, HTTPException):
        return exc
    db.session.rollback()
    current_app.logger.exception("Unhandled error on %s", request.path)
    return jsonify({"success": False, "error": "Erreur interne du serveur"}), 500


@bp.post("/api")
def api():
    email = authenticate(request.headers.get("Authorization"))
    offset = parse_offset_header(request.headers.get("X-Timezone-Offset"))
    rpc_request = parse_request(request.get_json(silent=True))

    ctx = RequestContext(actor=resolve_role(email), tz_offset_minutes=offset)
    if ctx.actor.is_forbidden:
        current_app.logger.info("Unregistered email %s refused", email)
    data = dispatch(rpc_request, ctx)
    return jsonify({"success": True, **data})


@bp.get("/health")
def health():
    try:
        db.session.execute(text("SELECT 1"))
        db_ok = "ok"
    except Exception:  # pragma: no cover - needs a failing database
        db.session.rollback()
        current_app.logger.exception("Database health check failed")
        db_ok = "error"
    return {"status": "ok", "database": db_ok}
