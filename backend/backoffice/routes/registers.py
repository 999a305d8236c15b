# Overview: Flask API routes for terminals and till sessions; parses input and returns JSON responses.

"""
Terminal & Till Session API Routes

Session lifecycle: open -> close (immutable once closed). Closing counts
the drawer and stores expected cash and the difference.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import register_service
from ..services.errors import PosError


terminals_bp = Blueprint("terminals", __name__, url_prefix="/api/terminals")
sessions_bp = Blueprint("sessions", __name__, url_prefix="/api/sessions")


# =============================================================================
# TERMINALS
# =============================================================================

@terminals_bp.get("")
@terminals_bp.get("/")
def list_terminals_route():
    include_inactive = request.args.get("all", "").lower() in {"1", "true", "yes"}
    result = []
    for terminal in register_service.list_terminals(include_inactive=include_inactive):
        payload = terminal.to_dict()
        current = register_service.get_open_session(terminal.id)
        payload["current_session"] = current.to_dict() if current else None
        result.append(payload)
    return jsonify({"terminals": result}), 200


@terminals_bp.post("")
@terminals_bp.post("/")
def create_terminal_route():
    """Request body: {"terminal_number": "T-01", "name": "Front counter", "location": "Store"}"""
    try:
        data = request.get_json() or {}
        terminal = register_service.create_terminal(
            data.get("terminal_number"),
            data.get("name"),
            data.get("location"),
        )
        return jsonify({"terminal": terminal.to_dict()}), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create terminal")
        return jsonify({"error": "Internal server error"}), 500


@terminals_bp.post("/<int:terminal_id>/deactivate")
def deactivate_terminal_route(terminal_id: int):
    try:
        terminal = register_service.deactivate_terminal(terminal_id)
        return jsonify({"terminal": terminal.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# SESSIONS
# =============================================================================

@sessions_bp.get("")
@sessions_bp.get("/")
def list_sessions_route():
    sessions = register_service.list_sessions(
        status=request.args.get("status"),
        terminal_id=request.args.get("terminal_id", type=int),
        limit=request.args.get("limit", 50, type=int),
    )
    return jsonify({"sessions": [s.to_dict() for s in sessions]}), 200


@sessions_bp.post("")
@sessions_bp.post("/")
def open_session_route():
    """Request body: {"terminal_id": 1, "opening_cash_cents": 100000, "actor": "maria"}"""
    try:
        data = request.get_json() or {}
        if data.get("terminal_id") is None:
            return jsonify({"error": "terminal_id required"}), 400

        session = register_service.open_session(
            data["terminal_id"],
            data.get("opening_cash_cents", 0),
            data.get("actor", "system"),
        )
        current_app.logger.info("Opened session %s on terminal %s", session.session_number, session.terminal_id)
        return jsonify({"session": session.to_dict()}), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to open session")
        return jsonify({"error": "Internal server error"}), 500


@sessions_bp.get("/<int:session_id>")
def get_session_route(session_id: int):
    try:
        summary = register_service.get_session_summary(session_id)
        transactions = register_service.get_session_transactions(session_id)
        summary["transactions"] = [t.to_dict() for t in transactions]
        return jsonify(summary), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sessions_bp.get("/<int:session_id>/reconciliation")
def session_reconciliation_route(session_id: int):
    try:
        return jsonify(register_service.calculate_cash_reconciliation(session_id)), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@sessions_bp.post("/<int:session_id>/close")
def close_session_route(session_id: int):
    """Request body: {"counted_cash_cents": 154000, "notes": "...", "actor": "maria"}"""
    try:
        data = request.get_json() or {}
        if data.get("counted_cash_cents") is None:
            return jsonify({"error": "counted_cash_cents required"}), 400

        session = register_service.close_session(
            session_id,
            data["counted_cash_cents"],
            data.get("actor", "system"),
            data.get("notes"),
        )
        return jsonify({"session": session.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to close session")
        return jsonify({"error": "Internal server error"}), 500
