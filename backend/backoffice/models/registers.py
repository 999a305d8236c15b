from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from backoffice.time_utils import to_utc_z


class PosTerminal(db.Model):
    """
    Physical POS terminal (static configuration).

    Terminals are deactivated rather than deleted so historical sessions and
    orders keep their reference.
    """
    __tablename__ = "pos_terminals"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable identifier (e.g., "T-01")
    terminal_number = db.Column(db.String(32), nullable=False, unique=True)
    name = db.Column(db.String(128), nullable=False)
    location = db.Column(db.String(128), nullable=True)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "terminal_number": self.terminal_number,
            "name": self.name,
            "location": self.location,
            "is_active": self.is_active,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }


class PosSession(db.Model):
    """
    Till session on a terminal.

    LIFECYCLE:
    - open: accepting sales; total_sales_cents/total_transactions accumulate
    - closed: cash counted, expected cash and difference computed

    Only one open session per terminal. IMMUTABLE once closed.
    """
    __tablename__ = "pos_sessions"
    __table_args__ = (
        db.Index("ix_pos_sessions_terminal_status", "terminal_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    terminal_id = db.Column(db.Integer, db.ForeignKey("pos_terminals.id"), nullable=False, index=True)
    session_number = db.Column(db.String(32), nullable=False, unique=True)

    status = db.Column(db.String(16), nullable=False, default="open", index=True)  # open, closed

    opened_by = db.Column(db.String(128), nullable=False)
    opened_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    closed_by = db.Column(db.String(128), nullable=True)
    closed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    # Cash tracking (all amounts in cents)
    opening_cash_cents = db.Column(db.Integer, nullable=False, default=0)
    closing_cash_cents = db.Column(db.Integer, nullable=True)
    expected_cash_cents = db.Column(db.Integer, nullable=True)  # opening + cash sales
    cash_difference_cents = db.Column(db.Integer, nullable=True)  # closing - expected

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)
    version_id = db.Column(db.Integer, nullable=False, default=1)

    terminal = db.relationship("PosTerminal", backref=db.backref("sessions", lazy=True))
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def is_open(self) -> bool:
        return self.status == "open"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "terminal_id": self.terminal_id,
            "session_number": self.session_number,
            "status": self.status,
            "opened_by": self.opened_by,
            "opened_at": to_utc_z(self.opened_at),
            "closed_by": self.closed_by,
            "closed_at": to_utc_z(self.closed_at) if self.closed_at else None,
            "opening_cash_cents": self.opening_cash_cents,
            "closing_cash_cents": self.closing_cash_cents,
            "expected_cash_cents": self.expected_cash_cents,
            "cash_difference_cents": self.cash_difference_cents,
            "total_sales_cents": self.total_sales_cents,
            "total_transactions": self.total_transactions,
            "notes": self.notes,
            "version_id": self.version_id,
        }


class PosTransaction(db.Model):
    """
    One completed payment at the till.

    amount_cents is the sale amount credited to the session; for cash it
    equals amount_tendered_cents - change_given_cents.

    IMMUTABLE: Records are never updated or deleted.
    """
    __tablename__ = "pos_transactions"
    __table_args__ = (
        db.Index("ix_pos_txns_session_method", "session_id", "payment_method"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    session_id = db.Column(db.Integer, db.ForeignKey("pos_sessions.id"), nullable=True, index=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    transaction_number = db.Column(db.String(32), nullable=False, unique=True)

    sale_type = db.Column(db.String(32), nullable=False, default="physical_pos")
    payment_method = db.Column(db.String(16), nullable=False, index=True)  # cash, card, transfer, credit
    payment_reference = db.Column(db.String(128), nullable=True)

    amount_cents = db.Column(db.Integer, nullable=False)
    amount_tendered_cents = db.Column(db.Integer, nullable=True)
    change_given_cents = db.Column(db.Integer, nullable=False, default=0)

    completed_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_by = db.Column(db.String(128), nullable=True)

    session = db.relationship("PosSession", backref=db.backref("transactions", lazy=True))
    order = db.relationship("Order", backref=db.backref("pos_transactions", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "session_id": self.session_id,
            "order_id": self.order_id,
            "transaction_number": self.transaction_number,
            "sale_type": self.sale_type,
            "payment_method": self.payment_method,
            "payment_reference": self.payment_reference,
            "amount_cents": self.amount_cents,
            "amount_tendered_cents": self.amount_tendered_cents,
            "change_given_cents": self.change_given_cents,
            "completed_at": to_utc_z(self.completed_at),
            "created_by": self.created_by,
        }


@event.listens_for(PosTransaction, "before_update")
def _reject_pos_transaction_update(mapper, connection, target: PosTransaction) -> None:
    raise ValueError("POS transactions are append-only")
