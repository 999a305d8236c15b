# Overview: Inventory allocator; per-location stock, movement ledger and stock alerts.

"""
Inventory Invariants (authoritative)

Stock model:
- Each product holds stock in three locations: a (warehouse), b (store 1),
  c (store 2). total_stock = a + b + c is recomputed, never set on its own.
- Per-location stock never goes below zero.

Deduct:
- A sold quantity is split a = ceil(q/3), b = ceil(q/3), c = floor(q/3).
  The split over-allocates when q is not a multiple of 3 (5 -> 2/2/1,
  4 -> 2/2/1). Each location is clamped at zero and the movement records
  the delta actually applied, not the requested one.
- STRICT_LOCATION_STOCK=True refuses the deduction instead of clamping.
- The caller must verify total_stock >= quantity first; Deduct does not.

Movements:
- Exactly one InventoryMovement per stock-affecting operation, append-only.
- Summing signed deltas per product reproduces current per-location stock.

Alerts:
- After every stock change, total_stock <= min_stock_alert ensures exactly
  one active StockAlert (out_of_stock at zero, else low_stock).
- Stock back above min_stock_alert resolves the active alert.
"""

from __future__ import annotations

import math

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Product, InventoryMovement, StockAlert
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, finish
from .errors import ValidationError, NotFoundError, InsufficientStock


MOVEMENT_IN = "in"
MOVEMENT_OUT = "out"
MOVEMENT_ADJUSTMENT = "adjustment"

ALERT_LOW_STOCK = "low_stock"
ALERT_OUT_OF_STOCK = "out_of_stock"
ALERT_ACTIVE = "active"
ALERT_RESOLVED = "resolved"

LOCATION_NAMES = ("warehouse", "store 1", "store 2")


def split_quantity(quantity: int) -> tuple[int, int, int]:
    """Per-location share of a sold quantity: ceil, ceil, floor of q/3."""
    return math.ceil(quantity / 3), math.ceil(quantity / 3), quantity // 3


def get_product(product_id: int, *, lock: bool = False, require_active: bool = False) -> Product:
    query = db.session.query(Product).filter_by(id=product_id)
    if lock:
        query = lock_for_update(query)
    product = query.first()
    if product is None:
        raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ValidationError(f"Product {product.sku} is inactive", details={"product_id": product_id})
    return product


def get_product_by_sku(sku: str) -> Product:
    product = db.session.query(Product).filter_by(sku=sku.strip()).first()
    if product is None:
        raise NotFoundError(f"Product {sku!r} not found", details={"sku": sku})
    return product


def _validate_counts(*counts: int) -> None:
    for count in counts:
        if not isinstance(count, int) or isinstance(count, bool) or count < 0:
            raise ValidationError("Stock quantities must be non-negative integers", details={"value": count})


def _append_movement(
    product: Product,
    movement_type: str,
    deltas: tuple[int, int, int],
    *,
    reference: str | None,
    notes: str | None,
    actor: str | None,
) -> InventoryMovement:
    a, b, c = product.location_stock()
    movement = InventoryMovement(
        product_id=product.id,
        movement_type=movement_type,
        delta_a=deltas[0],
        delta_b=deltas[1],
        delta_c=deltas[2],
        stock_a_after=a,
        stock_b_after=b,
        stock_c_after=c,
        reference=reference,
        notes=notes,
        created_by=actor,
        created_at=utcnow(),
    )
    db.session.add(movement)
    db.session.flush()
    return movement


# =============================================================================
# CATALOG INTAKE
# =============================================================================

def create_product(
    *,
    sku: str,
    name: str,
    retail_price_cents: int,
    wholesale_price_cents: int,
    stock_a: int = 0,
    stock_b: int = 0,
    stock_c: int = 0,
    min_stock_alert: int | None = None,
    description: str | None = None,
    material: str | None = None,
    category: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> Product:
    """
    Create a product and record its initial stock as an 'in' movement.

    Starting from zero and recording the initial stock as a movement keeps
    the movement ledger able to reproduce the product's stock.
    """
    if not sku or not name:
        raise ValidationError("sku and name required")
    if retail_price_cents is None or wholesale_price_cents is None:
        raise ValidationError("retail_price_cents and wholesale_price_cents required")
    if retail_price_cents < 0 or wholesale_price_cents < 0:
        raise ValidationError("Prices cannot be negative")
    _validate_counts(stock_a, stock_b, stock_c)

    if db.session.query(Product).filter_by(sku=sku.strip()).first():
        raise ValidationError(f"SKU {sku!r} already exists", details={"sku": sku})

    if min_stock_alert is None:
        min_stock_alert = current_app.config.get("DEFAULT_MIN_STOCK_ALERT", 5)

    product = Product(
        sku=sku.strip(),
        name=name,
        description=description,
        material=material,
        category=category,
        retail_price_cents=retail_price_cents,
        wholesale_price_cents=wholesale_price_cents,
        min_stock_alert=min_stock_alert,
    )
    product.set_location_stock(stock_a, stock_b, stock_c)
    db.session.add(product)
    db.session.flush()

    if stock_a or stock_b or stock_c:
        _append_movement(
            product,
            MOVEMENT_IN,
            (stock_a, stock_b, stock_c),
            reference=product.sku,
            notes="Initial stock",
            actor=actor,
        )

    check_stock_alert(product)
    finish(commit)
    return product


# =============================================================================
# DEDUCT / RECEIVE / ADJUST
# =============================================================================

def deduct_stock(
    product_id: int,
    quantity: int,
    *,
    reference: str | None = None,
    reason: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> InventoryMovement:
    """
    Deduct a sold quantity across the three locations.

    PRECONDITION: caller has verified total_stock >= quantity.

    Returns the 'out' movement carrying the deltas actually applied.

    Raises:
        ValidationError: quantity not a positive integer
        InsufficientStock: strict mode and a location cannot cover its share
    """
    if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
        raise ValidationError("Quantity must be a positive integer", details={"quantity": quantity})

    product = get_product(product_id, lock=True)
    requested = split_quantity(quantity)
    before = product.location_stock()

    short = [
        {"location": LOCATION_NAMES[i], "requested": requested[i], "available": before[i]}
        for i in range(3)
        if requested[i] > before[i]
    ]
    if short:
        if current_app.config.get("STRICT_LOCATION_STOCK"):
            raise InsufficientStock(
                f"Location stock cannot cover deduction for {product.sku}",
                details={"product_id": product.id, "locations": short},
            )
        current_app.logger.warning(
            "Clamped stock at zero for %s (requested %s, available %s)",
            product.sku, requested, before,
        )

    after = tuple(max(0, before[i] - requested[i]) for i in range(3))
    applied = tuple(after[i] - before[i] for i in range(3))

    product.set_location_stock(*after)
    movement = _append_movement(
        product,
        MOVEMENT_OUT,
        applied,
        reference=reference,
        notes=reason,
        actor=actor,
    )

    check_stock_alert(product)
    finish(commit)
    return movement


def receive_stock(
    product_id: int,
    quantity_a: int = 0,
    quantity_b: int = 0,
    quantity_c: int = 0,
    *,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> InventoryMovement:
    """Add received stock per location and record an 'in' movement."""
    _validate_counts(quantity_a, quantity_b, quantity_c)
    if not (quantity_a or quantity_b or quantity_c):
        raise ValidationError("Nothing to receive")

    product = get_product(product_id, lock=True)
    a, b, c = product.location_stock()
    product.set_location_stock(a + quantity_a, b + quantity_b, c + quantity_c)

    movement = _append_movement(
        product,
        MOVEMENT_IN,
        (quantity_a, quantity_b, quantity_c),
        reference=reference,
        notes=notes,
        actor=actor,
    )

    check_stock_alert(product)
    finish(commit)
    return movement


def adjust_stock(
    product_id: int,
    new_a: int,
    new_b: int,
    new_c: int,
    *,
    actor: str | None = None,
    notes: str | None = None,
    commit: bool = True,
) -> InventoryMovement:
    """
    Manual correction to absolute per-location values.

    Always writes an 'adjustment' movement, in either direction and even
    when nothing changed, with the before/after values in its notes.
    """
    _validate_counts(new_a, new_b, new_c)

    product = get_product(product_id, lock=True)
    before = product.location_stock()
    after = (new_a, new_b, new_c)
    product.set_location_stock(*after)

    summary = ", ".join(
        f"{LOCATION_NAMES[i]}={before[i]}->{after[i]}" for i in range(3)
    )
    movement = _append_movement(
        product,
        MOVEMENT_ADJUSTMENT,
        tuple(after[i] - before[i] for i in range(3)),
        reference=None,
        notes=f"Manual adjustment: {summary}" + (f" ({notes})" if notes else ""),
        actor=actor,
    )

    check_stock_alert(product)
    finish(commit)
    return movement


# =============================================================================
# STOCK ALERTS
# =============================================================================

def get_active_alert(product_id: int) -> StockAlert | None:
    return db.session.query(StockAlert).filter_by(
        product_id=product_id,
        status=ALERT_ACTIVE,
    ).order_by(StockAlert.id).first()


def check_stock_alert(product: Product) -> StockAlert | None:
    """
    Ensure exactly one active alert exists while stock is at or below the
    product's minimum, and resolve it once stock recovers.

    Returns the active alert, or None when stock is healthy.
    """
    total = product.total_stock
    existing = get_active_alert(product.id)

    if total > product.min_stock_alert:
        if existing is not None:
            resolve_stock_alerts(product.id)
        return None

    alert_type = ALERT_OUT_OF_STOCK if total == 0 else ALERT_LOW_STOCK

    if existing is not None:
        existing.current_stock = total
        existing.alert_type = alert_type
        return existing

    alert = StockAlert(
        product_id=product.id,
        alert_type=alert_type,
        current_stock=total,
        status=ALERT_ACTIVE,
        created_at=utcnow(),
    )
    db.session.add(alert)
    db.session.flush()
    current_app.logger.info("Stock alert %s raised for %s (stock %s)", alert_type, product.sku, total)
    return alert


def resolve_stock_alerts(product_id: int) -> int:
    """Resolve every active alert for a product. Returns the number resolved."""
    alerts = db.session.query(StockAlert).filter_by(product_id=product_id, status=ALERT_ACTIVE).all()
    now = utcnow()
    for alert in alerts:
        alert.status = ALERT_RESOLVED
        alert.resolved_at = now
    return len(alerts)


def list_active_alerts() -> list[StockAlert]:
    return db.session.query(StockAlert).filter_by(status=ALERT_ACTIVE).order_by(
        StockAlert.created_at.desc(),
        StockAlert.id.desc(),
    ).all()


# =============================================================================
# MOVEMENT HISTORY
# =============================================================================

def get_product_movements(product_id: int, movement_type: str | None = None) -> list[InventoryMovement]:
    query = db.session.query(InventoryMovement).filter_by(product_id=product_id)
    if movement_type:
        query = query.filter_by(movement_type=movement_type)
    return query.order_by(InventoryMovement.id).all()


def replay_movements(product_id: int) -> tuple[int, int, int]:
    """Per-location stock reproduced from the movement ledger alone."""
    row = db.session.query(
        func.coalesce(func.sum(InventoryMovement.delta_a), 0),
        func.coalesce(func.sum(InventoryMovement.delta_b), 0),
        func.coalesce(func.sum(InventoryMovement.delta_c), 0),
    ).filter(InventoryMovement.product_id == product_id).one()
    return int(row[0]), int(row[1]), int(row[2])


def list_products(*, in_stock_only: bool = False, include_inactive: bool = False) -> list[Product]:
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    if in_stock_only:
        query = query.filter(Product.total_stock > 0)
    return query.order_by(Product.name).all()
