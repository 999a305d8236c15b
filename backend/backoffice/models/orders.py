from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Order(db.Model):
    """
    Order document for both sale channels.

    CHANNELS:
    - pos: created at the till by checkout, goes straight to confirmed/paid
    - online: created by web intake as pending_payment, later claimed at a till

    order_type (retail/wholesale) is decided once at confirmation and never
    recomputed. Items are a price snapshot taken at the same moment.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_channel_status_created", "sale_channel", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Server-side monotonic sequence (see document_service)
    order_number = db.Column(db.Integer, nullable=False, unique=True, index=True)

    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=True, index=True)

    status = db.Column(db.String(24), nullable=False, default="draft", index=True)
    payment_status = db.Column(db.String(16), nullable=False, default="pending", index=True)  # pending, paid, failed
    order_type = db.Column(db.String(16), nullable=True)  # retail, wholesale
    sale_channel = db.Column(db.String(16), nullable=False, default="pos", index=True)  # pos, online

    pos_terminal_id = db.Column(db.Integer, db.ForeignKey("pos_terminals.id"), nullable=True, index=True)

    subtotal_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False, default=0)

    delivery_method = db.Column(db.String(16), nullable=True)  # shipping, pickup
    delivery_address = db.Column(db.Text, nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_by = db.Column(db.String(128), nullable=True)
    served_by = db.Column(db.String(128), nullable=True)

    confirmed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    paid_at = db.Column(db.DateTime(timezone=True), nullable=True)
    cancelled_at = db.Column(db.DateTime(timezone=True), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    customer = db.relationship("Customer", backref=db.backref("orders", lazy=True))
    terminal = db.relationship("PosTerminal", backref=db.backref("orders", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_wholesale(self) -> bool:
        return self.order_type == "wholesale"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_number": self.order_number,
            "customer_id": self.customer_id,
            "status": self.status,
            "payment_status": self.payment_status,
            "order_type": self.order_type,
            "sale_channel": self.sale_channel,
            "pos_terminal_id": self.pos_terminal_id,
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "delivery_method": self.delivery_method,
            "delivery_address": self.delivery_address,
            "notes": self.notes,
            "created_by": self.created_by,
            "served_by": self.served_by,
            "confirmed_at": to_utc_z(self.confirmed_at) if self.confirmed_at else None,
            "paid_at": to_utc_z(self.paid_at) if self.paid_at else None,
            "cancelled_at": to_utc_z(self.cancelled_at) if self.cancelled_at else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class OrderItem(db.Model):
    """Order line snapshot: product, quantity and the unit price actually charged."""
    __tablename__ = "order_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=True, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("items", lazy=True, order_by="OrderItem.id"))
    product = db.relationship("Product")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "unit_price_cents": self.unit_price_cents,
            "line_total_cents": self.line_total_cents,
            "created_at": to_utc_z(self.created_at),
        }
