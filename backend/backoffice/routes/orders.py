# Overview: Flask API routes for orders, web orders and quotes; parses input and returns JSON responses.

"""
Order API Routes

POS orders are created by /api/checkout, never here. This blueprint covers
reading orders, the online order lifecycle (intake, external payment,
claim at the till, fulfillment, cancellation) and quotes.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import order_service
from ..services.errors import PosError
from backoffice.time_utils import parse_iso_datetime


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _order_payload(order) -> dict:
    payload = order.to_dict()
    payload["items"] = [item.to_dict() for item in order.items]
    return payload


@orders_bp.get("")
@orders_bp.get("/")
def list_orders_route():
    orders = order_service.list_orders(
        status=request.args.get("status"),
        sale_channel=request.args.get("channel"),
        limit=request.args.get("limit", 100, type=int),
    )
    return jsonify({"orders": [o.to_dict() for o in orders]}), 200


@orders_bp.get("/<int:order_id>")
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        return jsonify({"order": _order_payload(order)}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


# =============================================================================
# WEB ORDERS
# =============================================================================

@orders_bp.post("/web")
def create_web_order_route():
    """
    Web intake.

    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "customer_id": 3,                     (optional)
        "delivery_method": "shipping",        (shipping | pickup)
        "delivery_address": "..."             (required for shipping)
    }
    """
    try:
        data = request.get_json() or {}
        order = order_service.create_web_order(
            data.get("items") or [],
            customer_id=data.get("customer_id"),
            delivery_method=data.get("delivery_method", order_service.DELIVERY_PICKUP),
            delivery_address=data.get("delivery_address"),
            notes=data.get("notes"),
            actor=data.get("actor", "web"),
        )
        return jsonify({"order": _order_payload(order)}), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create web order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/web/pending")
def pending_web_orders_route():
    """Online orders awaiting a till. ?since=<ISO-8601> returns only newer ones."""
    try:
        since = parse_iso_datetime(request.args.get("since"))
    except ValueError:
        return jsonify({"error": "since must be an ISO-8601 datetime"}), 400
    orders = order_service.pending_web_orders(since)
    return jsonify({"orders": [_order_payload(o) for o in orders]}), 200


@orders_bp.post("/<int:order_id>/paid")
def mark_paid_route(order_id: int):
    try:
        order = order_service.mark_web_order_paid(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to mark order paid")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/claim")
def claim_order_route(order_id: int):
    """Load an online order into a till cart; complete it through /api/checkout."""
    try:
        claimed = order_service.claim_web_order(order_id)
        return jsonify({
            "order": _order_payload(claimed["order"]),
            "customer_id": claimed["customer_id"],
            "cart": claimed["cart"],
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/status")
def advance_status_route(order_id: int):
    """Request body: {"status": "processing" | "shipped" | "ready_for_pickup" | "completed"}"""
    try:
        data = request.get_json() or {}
        new_status = data.get("status")
        if not new_status:
            return jsonify({"error": "status required"}), 400
        order = order_service.advance_fulfillment(order_id, new_status)
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to update order status")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/cancel")
def cancel_order_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.cancel_order(order_id, reason=data.get("reason"))
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to cancel order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# QUOTES
# =============================================================================

@orders_bp.post("/quotes")
def create_quote_route():
    """Request body: {"items": [...], "customer_id": 3, "notes": "..."}"""
    try:
        data = request.get_json() or {}
        order = order_service.create_quote(
            data.get("items") or [],
            customer_id=data.get("customer_id"),
            notes=data.get("notes"),
            actor=data.get("actor", "system"),
        )
        return jsonify({"order": _order_payload(order)}), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create quote")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/quote")
def mark_quoted_route(order_id: int):
    try:
        order = order_service.mark_quoted(order_id)
        return jsonify({"order": order.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code


@orders_bp.post("/<int:order_id>/confirm")
def confirm_quote_route(order_id: int):
    try:
        data = request.get_json(silent=True) or {}
        order = order_service.confirm_quote(order_id, actor=data.get("actor", "system"))
        return jsonify({"order": _order_payload(order)}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to confirm quote")
        return jsonify({"error": "Internal server error"}), 500
