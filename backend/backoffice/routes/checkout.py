# Overview: Flask API routes for checkout and live cart pricing; parses input and returns JSON responses.

"""
Checkout API Routes

POST /api/checkout completes a sale as one unit of work and returns the
order, the payment transaction and a receipt. Any failure leaves stock,
credit, session and customer figures untouched.
"""

from flask import Blueprint, request, jsonify, current_app

from ..services import checkout_service
from ..services.receipt_service import build_receipt
from ..services.errors import PosError


checkout_bp = Blueprint("checkout", __name__, url_prefix="/api/checkout")


@checkout_bp.post("")
@checkout_bp.post("/")
def checkout_route():
    """
    Request body:
    {
        "items": [{"product_id": 1, "quantity": 2}],
        "payment_method": "cash",          (cash, card, transfer, credit)
        "amount_tendered_cents": 200000,   (cash only)
        "customer_id": 3,                  (required for credit)
        "order_id": 12,                    (complete an existing web order or quote)
        "session_id": 4,                   (or terminal_id to use its open session)
        "payment_reference": "AUTH-1234",  (optional)
        "actor": "maria"
    }
    """
    try:
        data = request.get_json() or {}
        result = checkout_service.checkout(
            data.get("items") or [],
            payment_method=data.get("payment_method"),
            customer_id=data.get("customer_id"),
            amount_tendered_cents=data.get("amount_tendered_cents"),
            order_id=data.get("order_id"),
            session_id=data.get("session_id"),
            terminal_id=data.get("terminal_id"),
            payment_reference=data.get("payment_reference"),
            delivery_method=data.get("delivery_method"),
            delivery_address=data.get("delivery_address"),
            notes=data.get("notes"),
            actor=data.get("actor", "system"),
        )
        payload = result.to_dict()
        payload["receipt"] = build_receipt(result.order, result.transaction)
        current_app.logger.info(
            "Checkout order #%s %s %s cents via %s",
            result.order.order_number,
            result.quote.order_type,
            result.quote.total_cents,
            result.transaction.payment_method,
        )
        return jsonify(payload), 201
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to complete checkout")
        return jsonify({"error": "Internal server error"}), 500


@checkout_bp.post("/preview")
def preview_route():
    """Live cart total: {"items": [...]} -> pricing without any write."""
    try:
        data = request.get_json() or {}
        quote = checkout_service.preview(data.get("items") or [])
        return jsonify({"pricing": quote.to_dict()}), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to price cart")
        return jsonify({"error": "Internal server error"}), 500
