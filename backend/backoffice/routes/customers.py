# Overview: Flask API routes for customers and the credit ledger; parses input and returns JSON responses.

"""
Customer & Credit API Routes

Credit balances only move through POST /<id>/credit, which appends a
ledger row. Amounts are integer cents.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import customer_service, credit_service
from ..services.errors import PosError


customers_bp = Blueprint("customers", __name__, url_prefix="/api/customers")
credit_bp = Blueprint("credit", __name__, url_prefix="/api/credit")


@customers_bp.get("")
@customers_bp.get("/")
def list_customers_route():
    customers = customer_service.search_customers(request.args.get("q"), limit=request.args.get("limit", 50, type=int))
    return jsonify({"customers": [c.to_dict() for c in customers]}), 200


@customers_bp.post("")
@customers_bp.post("/")
def create_customer_route():
    try:
        data = request.get_json() or {}
        customer = customer_service.create_customer(
            name=data.get("name"),
            phone=data.get("phone"),
            email=data.get("email"),
            source=data.get("source"),
            credit_limit_cents=data.get("credit_limit_cents", 0),
            credit_status=data.get("credit_status"),
            credit_notes=data.get("credit_notes"),
        )
        return jsonify({"customer": customer.to_dict()}), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to create customer")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>")
def get_customer_route(customer_id: int):
    try:
        customer = customer_service.get_customer(customer_id)
        return jsonify({
            "customer": customer.to_dict(),
            "credit": credit_service.credit_summary(customer_id),
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<int:customer_id>/credit-status")
def set_credit_status_route(customer_id: int):
    """Request body: {"credit_status": "suspended", "notes": "..."}"""
    try:
        data = request.get_json() or {}
        customer = customer_service.set_credit_status(
            customer_id,
            data.get("credit_status"),
            notes=data.get("notes"),
        )
        return jsonify({"customer": customer.to_dict()}), 200
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to set credit status")
        return jsonify({"error": "Internal server error"}), 500


@customers_bp.get("/<int:customer_id>/credit")
def credit_history_route(customer_id: int):
    try:
        customer_service.get_customer(customer_id)
        history = credit_service.get_credit_history(customer_id, limit=request.args.get("limit", type=int))
        return jsonify({
            "summary": credit_service.credit_summary(customer_id),
            "transactions": [t.to_dict() for t in history],
        }), 200
    except PosError as e:
        return jsonify(e.to_dict()), e.status_code


@customers_bp.post("/<int:customer_id>/credit")
def register_credit_route(customer_id: int):
    """
    Append a credit ledger row.

    Request body:
    {
        "transaction_type": "payment",   (charge, payment, adjustment, limit_change)
        "amount_cents": 50000,           (signed for adjustment; new limit for limit_change)
        "reference": "...", "notes": "...", "actor": "..."
    }
    """
    try:
        data = request.get_json() or {}
        txn = credit_service.register_credit_transaction(
            customer_id,
            data.get("transaction_type"),
            data.get("amount_cents"),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor=data.get("actor", "system"),
        )
        return jsonify({
            "transaction": txn.to_dict(),
            "summary": credit_service.credit_summary(customer_id),
        }), 201
    except PosError as e:
        db.session.rollback()
        return jsonify(e.to_dict()), e.status_code
    except Exception:
        current_app.logger.exception("Failed to register credit transaction")
        return jsonify({"error": "Internal server error"}), 500


@credit_bp.get("/stats")
def credit_stats_route():
    return jsonify(credit_service.credit_stats()), 200
