"""
Inventory allocator tests: location split, clamping, movements, alerts.
"""

import pytest

from backoffice.models import InventoryMovement, StockAlert
from backoffice.services import inventory_service
from backoffice.services.errors import InsufficientStock, ValidationError
from conftest import make_product


def test_split_rule():
    assert inventory_service.split_quantity(5) == (2, 2, 1)
    assert inventory_service.split_quantity(3) == (1, 1, 1)
    assert inventory_service.split_quantity(4) == (2, 2, 1)
    assert inventory_service.split_quantity(1) == (1, 1, 0)


def test_deduct_five_from_two_two_one(db_session):
    product = make_product(db_session, "SKU-D", 10000, 8000, a=2, b=2, c=1)

    movement = inventory_service.deduct_stock(product.id, 5, reference="Order #500", reason="POS sale")

    assert product.location_stock() == (0, 0, 0)
    assert product.total_stock == 0
    assert (movement.delta_a, movement.delta_b, movement.delta_c) == (-2, -2, -1)
    assert movement.movement_type == inventory_service.MOVEMENT_OUT
    assert movement.reference == "Order #500"


def test_deduct_clamps_and_records_applied_delta(db_session):
    product = make_product(db_session, "SKU-E", 10000, 8000, a=0, b=4, c=4)

    movement = inventory_service.deduct_stock(product.id, 3)

    assert product.location_stock() == (0, 3, 3)
    assert (movement.delta_a, movement.delta_b, movement.delta_c) == (0, -1, -1)
    assert movement.total_delta == -2


def test_strict_mode_refuses_short_location(app, db_session):
    product = make_product(db_session, "SKU-F", 10000, 8000, a=0, b=4, c=4)
    app.config["STRICT_LOCATION_STOCK"] = True

    with pytest.raises(InsufficientStock):
        inventory_service.deduct_stock(product.id, 3)
    db_session.rollback()

    assert db_session.query(InventoryMovement).filter_by(product_id=product.id).count() == 0


def test_deduct_rejects_non_positive_quantity(db_session, ring):
    with pytest.raises(ValidationError):
        inventory_service.deduct_stock(ring.id, 0)


def test_create_product_records_initial_movement(db_session):
    product = inventory_service.create_product(
        sku="NEW-1",
        name="Bracelet",
        retail_price_cents=30000,
        wholesale_price_cents=24000,
        stock_a=5,
        stock_b=3,
        stock_c=2,
        min_stock_alert=2,
        actor="test",
    )

    movements = inventory_service.get_product_movements(product.id)
    assert len(movements) == 1
    assert movements[0].movement_type == inventory_service.MOVEMENT_IN
    assert movements[0].notes == "Initial stock"
    assert product.total_stock == 10


def test_duplicate_sku_rejected(db_session, ring):
    with pytest.raises(ValidationError):
        inventory_service.create_product(
            sku=ring.sku,
            name="Copy",
            retail_price_cents=1,
            wholesale_price_cents=1,
        )


def test_movements_reproduce_stock(db_session):
    product = inventory_service.create_product(
        sku="LEDGER-1",
        name="Earrings",
        retail_price_cents=20000,
        wholesale_price_cents=15000,
        stock_a=6,
        stock_b=1,
        stock_c=3,
    )
    inventory_service.deduct_stock(product.id, 5)
    inventory_service.receive_stock(product.id, 2, 0, 1, reference="PO-1")
    inventory_service.adjust_stock(product.id, 4, 4, 4, notes="count")
    inventory_service.deduct_stock(product.id, 7)

    assert inventory_service.replay_movements(product.id) == product.location_stock()


def test_adjustment_always_writes_movement(db_session, ring):
    before = ring.location_stock()

    movement = inventory_service.adjust_stock(ring.id, *before)

    assert movement.movement_type == inventory_service.MOVEMENT_ADJUSTMENT
    assert movement.total_delta == 0
    assert "warehouse=10->10" in movement.notes


def test_adjust_rejects_negative(db_session, ring):
    with pytest.raises(ValidationError):
        inventory_service.adjust_stock(ring.id, -1, 0, 0)


def test_low_stock_alert_is_unique_and_escalates(db_session):
    product = make_product(db_session, "SKU-A", 10000, 8000, a=3, b=3, c=3, min_alert=5)

    inventory_service.deduct_stock(product.id, 6)   # 9 -> 3
    inventory_service.deduct_stock(product.id, 1)   # 3 -> 2

    alerts = db_session.query(StockAlert).filter_by(product_id=product.id, status="active").all()
    assert len(alerts) == 1
    assert alerts[0].alert_type == inventory_service.ALERT_LOW_STOCK
    assert alerts[0].current_stock == 2

    inventory_service.deduct_stock(product.id, 3)   # clamps to 0

    alerts = db_session.query(StockAlert).filter_by(product_id=product.id, status="active").all()
    assert len(alerts) == 1
    assert alerts[0].alert_type == inventory_service.ALERT_OUT_OF_STOCK


def test_alert_resolves_when_stock_recovers(db_session):
    product = make_product(db_session, "SKU-R", 10000, 8000, a=1, b=1, c=1, min_alert=5)
    inventory_service.deduct_stock(product.id, 1)
    assert inventory_service.get_active_alert(product.id) is not None

    inventory_service.receive_stock(product.id, 10, 0, 0)

    assert inventory_service.get_active_alert(product.id) is None
    resolved = db_session.query(StockAlert).filter_by(product_id=product.id).one()
    assert resolved.status == inventory_service.ALERT_RESOLVED
    assert resolved.resolved_at is not None


def test_movements_are_append_only(db_session, ring):
    movement = inventory_service.deduct_stock(ring.id, 1)
    movement.notes = "edited"

    with pytest.raises(ValueError):
        db_session.commit()
    db_session.rollback()
