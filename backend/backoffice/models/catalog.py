from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Product(db.Model):
    """
    Product stock record across the three physical locations.

    LOCATIONS:
    - stock_a: warehouse
    - stock_b: store 1
    - stock_c: store 2

    INVARIANT: total_stock = stock_a + stock_b + stock_c. total_stock is
    recomputed on every flush and never set independently. Per-location
    counters are only mutated by the inventory service and never go below 0.

    Prices are stored in cents; retail applies below the wholesale threshold,
    wholesale at or above it (all lines of an order, never per line).
    """
    __tablename__ = "products"
    __table_args__ = (
        db.CheckConstraint("stock_a >= 0", name="ck_products_stock_a_nonneg"),
        db.CheckConstraint("stock_b >= 0", name="ck_products_stock_b_nonneg"),
        db.CheckConstraint("stock_c >= 0", name="ck_products_stock_c_nonneg"),
        db.Index("ix_products_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    sku = db.Column(db.String(64), nullable=False, unique=True, index=True)
    name = db.Column(db.String(255), nullable=False)
    description = db.Column(db.Text, nullable=True)
    material = db.Column(db.String(64), nullable=True)
    category = db.Column(db.String(64), nullable=True)

    retail_price_cents = db.Column(db.Integer, nullable=False)
    wholesale_price_cents = db.Column(db.Integer, nullable=False)

    stock_a = db.Column(db.Integer, nullable=False, default=0)
    stock_b = db.Column(db.Integer, nullable=False, default=0)
    stock_c = db.Column(db.Integer, nullable=False, default=0)
    total_stock = db.Column(db.Integer, nullable=False, default=0, index=True)

    min_stock_alert = db.Column(db.Integer, nullable=False, default=5)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    def __repr__(self) -> str:
        return f"<Product id={self.id} sku={self.sku!r} total_stock={self.total_stock}>"

    def location_stock(self) -> tuple[int, int, int]:
        return (self.stock_a or 0, self.stock_b or 0, self.stock_c or 0)

    def set_location_stock(self, stock_a: int, stock_b: int, stock_c: int) -> None:
        self.stock_a = stock_a
        self.stock_b = stock_b
        self.stock_c = stock_c
        self.total_stock = stock_a + stock_b + stock_c

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "sku": self.sku,
            "name": self.name,
            "description": self.description,
            "material": self.material,
            "category": self.category,
            "retail_price_cents": self.retail_price_cents,
            "wholesale_price_cents": self.wholesale_price_cents,
            "stock_a": self.stock_a,
            "stock_b": self.stock_b,
            "stock_c": self.stock_c,
            "total_stock": self.total_stock,
            "min_stock_alert": self.min_stock_alert,
            "is_active": self.is_active,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


@event.listens_for(Product, "before_insert")
@event.listens_for(Product, "before_update")
def _sync_total_stock(mapper, connection, target: Product) -> None:
    a, b, c = target.location_stock()
    target.total_stock = a + b + c


class InventoryMovement(db.Model):
    """
    Append-only stock movement ledger.

    MOVEMENT TYPES:
    - in: stock received (initial stock, receiving)
    - out: stock sold
    - adjustment: manual correction (before/after values in notes)

    delta_* columns are signed and hold the change actually applied to each
    location; summing them per product from zero reproduces the product's
    current per-location stock. stock_*_after is the snapshot after the
    movement.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "inventory_movements"
    __table_args__ = (
        db.Index("ix_movements_product_created", "product_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    movement_type = db.Column(db.String(16), nullable=False, index=True)  # in, out, adjustment

    delta_a = db.Column(db.Integer, nullable=False, default=0)
    delta_b = db.Column(db.Integer, nullable=False, default=0)
    delta_c = db.Column(db.Integer, nullable=False, default=0)

    stock_a_after = db.Column(db.Integer, nullable=False)
    stock_b_after = db.Column(db.Integer, nullable=False)
    stock_c_after = db.Column(db.Integer, nullable=False)

    reference = db.Column(db.String(128), nullable=True, index=True)
    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    product = db.relationship("Product", backref=db.backref("movements", lazy=True))

    @property
    def total_delta(self) -> int:
        return (self.delta_a or 0) + (self.delta_b or 0) + (self.delta_c or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "movement_type": self.movement_type,
            "delta_a": self.delta_a,
            "delta_b": self.delta_b,
            "delta_c": self.delta_c,
            "total_delta": self.total_delta,
            "stock_a_after": self.stock_a_after,
            "stock_b_after": self.stock_b_after,
            "stock_c_after": self.stock_c_after,
            "reference": self.reference,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


class StockAlert(db.Model):
    """
    Low/out-of-stock signal for a product.

    At most one alert per product is active at a time. Alerts resolve when
    stock climbs back above the product's min_stock_alert.
    """
    __tablename__ = "stock_alerts"
    __table_args__ = (
        db.Index("ix_stock_alerts_product_status", "product_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    alert_type = db.Column(db.String(16), nullable=False)  # low_stock, out_of_stock
    current_stock = db.Column(db.Integer, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="active", index=True)  # active, resolved

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    resolved_at = db.Column(db.DateTime(timezone=True), nullable=True)

    product = db.relationship("Product", backref=db.backref("stock_alerts", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "product_id": self.product_id,
            "alert_type": self.alert_type,
            "current_stock": self.current_stock,
            "status": self.status,
            "created_at": to_utc_z(self.created_at),
            "resolved_at": to_utc_z(self.resolved_at) if self.resolved_at else None,
        }


@event.listens_for(InventoryMovement, "before_update")
def _reject_movement_update(mapper, connection, target: InventoryMovement) -> None:
    raise ValueError("Inventory movements are append-only")
