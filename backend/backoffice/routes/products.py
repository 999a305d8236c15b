# Overview: Flask API routes for catalog and per-location stock; parses input and returns JSON responses.

"""
Catalog & Inventory API Routes

Stock is held in three locations (a, b, c). Every change writes an
inventory movement; these endpoints never touch stock columns directly.
"""

from flask import Blueprint, request, jsonify, current_app

from ..extensions import db
from ..services import inventory_service
from ..services.errors import PosError


products_bp = Blueprint("products", __name__, url_prefix="/api/products")
alerts_bp = Blueprint("stock_alerts", __name__, url_prefix="/api/stock-alerts")


def _error(e: PosError):
    db.session.rollback()
    return jsonify(e.to_dict()), e.status_code


@products_bp.get("")
@products_bp.get("/")
def list_products_route():
    in_stock_only = request.args.get("in_stock", "").lower() in {"1", "true", "yes"}
    include_inactive = request.args.get("include_inactive", "").lower() in {"1", "true", "yes"}
    products = inventory_service.list_products(in_stock_only=in_stock_only, include_inactive=include_inactive)
    return jsonify({"products": [p.to_dict() for p in products]}), 200


@products_bp.post("")
@products_bp.post("/")
def create_product_route():
    """
    Request body:
    {
        "sku": "ARG-001",
        "name": "Silver ring",
        "retail_price_cents": 45000,
        "wholesale_price_cents": 30000,
        "stock_a": 10, "stock_b": 5, "stock_c": 0,   (optional)
        "min_stock_alert": 5,                        (optional)
        "actor": "maria"                             (optional)
    }
    """
    try:
        data = request.get_json() or {}
        product = inventory_service.create_product(
            sku=data.get("sku"),
            name=data.get("name"),
            retail_price_cents=data.get("retail_price_cents"),
            wholesale_price_cents=data.get("wholesale_price_cents"),
            stock_a=data.get("stock_a", 0),
            stock_b=data.get("stock_b", 0),
            stock_c=data.get("stock_c", 0),
            min_stock_alert=data.get("min_stock_alert"),
            description=data.get("description"),
            material=data.get("material"),
            category=data.get("category"),
            actor=data.get("actor", "system"),
        )
        return jsonify({"product": product.to_dict()}), 201
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to create product")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    try:
        product = inventory_service.get_product(product_id)
        alert = inventory_service.get_active_alert(product_id)
        return jsonify({
            "product": product.to_dict(),
            "active_alert": alert.to_dict() if alert else None,
        }), 200
    except PosError as e:
        return _error(e)


@products_bp.post("/<int:product_id>/adjust")
def adjust_stock_route(product_id: int):
    """
    Manual correction to absolute per-location values.

    Request body: {"stock_a": 3, "stock_b": 0, "stock_c": 1, "notes": "...", "actor": "..."}
    """
    try:
        data = request.get_json() or {}
        for key in ("stock_a", "stock_b", "stock_c"):
            if key not in data:
                return jsonify({"error": "stock_a, stock_b and stock_c required"}), 400

        movement = inventory_service.adjust_stock(
            product_id,
            data["stock_a"],
            data["stock_b"],
            data["stock_c"],
            actor=data.get("actor", "system"),
            notes=data.get("notes"),
        )
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to adjust stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.post("/<int:product_id>/receive")
def receive_stock_route(product_id: int):
    """Request body: {"quantity_a": 10, "quantity_b": 0, "quantity_c": 0, "reference": "PO-12"}"""
    try:
        data = request.get_json() or {}
        movement = inventory_service.receive_stock(
            product_id,
            data.get("quantity_a", 0),
            data.get("quantity_b", 0),
            data.get("quantity_c", 0),
            reference=data.get("reference"),
            notes=data.get("notes"),
            actor=data.get("actor", "system"),
        )
        product = inventory_service.get_product(product_id)
        return jsonify({"product": product.to_dict(), "movement": movement.to_dict()}), 200
    except PosError as e:
        return _error(e)
    except Exception:
        current_app.logger.exception("Failed to receive stock")
        return jsonify({"error": "Internal server error"}), 500


@products_bp.get("/<int:product_id>/movements")
def product_movements_route(product_id: int):
    try:
        inventory_service.get_product(product_id)
        movements = inventory_service.get_product_movements(product_id, request.args.get("type"))
        replayed = inventory_service.replay_movements(product_id)
        return jsonify({
            "movements": [m.to_dict() for m in movements],
            "replayed_stock": {"stock_a": replayed[0], "stock_b": replayed[1], "stock_c": replayed[2]},
        }), 200
    except PosError as e:
        return _error(e)


@alerts_bp.get("")
@alerts_bp.get("/")
def list_alerts_route():
    alerts = inventory_service.list_active_alerts()
    return jsonify({"alerts": [a.to_dict() for a in alerts]}), 200
