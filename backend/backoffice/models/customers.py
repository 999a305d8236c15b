from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from backoffice.time_utils import to_utc_z


class Customer(db.Model):
    """
    Customer directory entry with its credit profile.

    CREDIT PROFILE:
    - credit_limit_cents >= 0, credit_used_cents >= 0
    - credit_status: none, active, suspended, blocked
    - credit_status is none whenever credit_limit_cents is 0

    credit_used_cents is a cached projection of the latest CreditTransaction
    new_balance_cents; the credit ledger is the source of truth.
    """
    __tablename__ = "customers"
    __table_args__ = (
        db.CheckConstraint("credit_limit_cents >= 0", name="ck_customers_limit_nonneg"),
        db.CheckConstraint("credit_used_cents >= 0", name="ck_customers_used_nonneg"),
        db.Index("ix_customers_name", "name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    phone = db.Column(db.String(32), nullable=True, index=True)
    email = db.Column(db.String(255), nullable=True)
    source = db.Column(db.String(64), nullable=True)

    # Denormalized aggregates (updated when sales are completed)
    total_purchases_cents = db.Column(db.Integer, nullable=False, default=0)
    last_purchase_date = db.Column(db.DateTime(timezone=True), nullable=True)

    credit_limit_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_used_cents = db.Column(db.Integer, nullable=False, default=0)
    credit_status = db.Column(db.String(16), nullable=False, default="none", index=True)
    credit_notes = db.Column(db.Text, nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def credit_available_cents(self) -> int:
        return (self.credit_limit_cents or 0) - (self.credit_used_cents or 0)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "phone": self.phone,
            "email": self.email,
            "source": self.source,
            "total_purchases_cents": self.total_purchases_cents,
            "last_purchase_date": to_utc_z(self.last_purchase_date) if self.last_purchase_date else None,
            "credit_limit_cents": self.credit_limit_cents,
            "credit_used_cents": self.credit_used_cents,
            "credit_available_cents": self.credit_available_cents,
            "credit_status": self.credit_status,
            "credit_notes": self.credit_notes,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class CreditTransaction(db.Model):
    """
    Append-only customer credit ledger.

    TRANSACTION TYPES:
    - charge: new_balance = previous_balance + amount
    - payment: new_balance = previous_balance - amount
    - adjustment: new_balance = previous_balance + amount (signed, manual override)
    - limit_change: balance unchanged; previous_limit -> new_limit (= amount)

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "credit_transactions"
    __table_args__ = (
        db.Index("ix_credit_txns_customer_created", "customer_id", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    customer_id = db.Column(db.Integer, db.ForeignKey("customers.id"), nullable=False, index=True)

    transaction_type = db.Column(db.String(16), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    previous_balance_cents = db.Column(db.Integer, nullable=False)
    new_balance_cents = db.Column(db.Integer, nullable=False)

    # Only for limit_change
    previous_limit_cents = db.Column(db.Integer, nullable=True)
    new_limit_cents = db.Column(db.Integer, nullable=True)

    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=True, index=True)
    reference = db.Column(db.String(128), nullable=True)
    notes = db.Column(db.String(255), nullable=True)
    created_by = db.Column(db.String(128), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    customer = db.relationship("Customer", backref=db.backref("credit_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "customer_id": self.customer_id,
            "transaction_type": self.transaction_type,
            "amount_cents": self.amount_cents,
            "previous_balance_cents": self.previous_balance_cents,
            "new_balance_cents": self.new_balance_cents,
            "previous_limit_cents": self.previous_limit_cents,
            "new_limit_cents": self.new_limit_cents,
            "order_id": self.order_id,
            "reference": self.reference,
            "notes": self.notes,
            "created_by": self.created_by,
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(CreditTransaction, "before_update")
def _reject_credit_transaction_update(mapper, connection, target: CreditTransaction) -> None:
    raise ValueError("Credit transactions are append-only")
