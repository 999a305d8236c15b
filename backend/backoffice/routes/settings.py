# Overview: Flask API routes for business rules; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import settings_service
from ..services.errors import PosError


settings_bp = Blueprint("settings", __name__, url_prefix="/api/settings")


@settings_bp.get("/wholesale-threshold")
def get_threshold_route():
    try:
        threshold_cents, active = settings_service.get_wholesale_threshold()
        return jsonify({"threshold_cents": threshold_cents, "is_active": active}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@settings_bp.put("/wholesale-threshold")
def set_threshold_route():
    """
    Request body: {"amount": 3000, "is_active": true, "actor": "admin"}

    amount is in MXN (not cents), matching how the rule is stored.
    Applies to checkouts started after the change; confirmed orders keep
    their order_type.
    """
    try:
        data = request.get_json() or {}
        if data.get("amount") is None:
            return jsonify({"error": "amount required"}), 400

        rule = settings_service.set_wholesale_threshold(
            data["amount"],
            is_active=bool(data.get("is_active", True)),
            actor=data.get("actor", "system"),
        )
        return jsonify({"rule": rule.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update wholesale threshold")
        return jsonify({"error": "Internal server error"}), 500
