# Overview: Customer directory; profile reads/writes and purchase aggregates.

from __future__ import annotations

from sqlalchemy import or_

from ..extensions import db
from ..models import Customer
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, finish
from .errors import ValidationError, NotFoundError


CREDIT_NONE = "none"
CREDIT_ACTIVE = "active"
CREDIT_SUSPENDED = "suspended"
CREDIT_BLOCKED = "blocked"

VALID_CREDIT_STATUSES = [CREDIT_NONE, CREDIT_ACTIVE, CREDIT_SUSPENDED, CREDIT_BLOCKED]


def get_customer(customer_id: int, *, lock: bool = False) -> Customer:
    query = db.session.query(Customer).filter_by(id=customer_id)
    if lock:
        query = lock_for_update(query)
    customer = query.first()
    if customer is None:
        raise NotFoundError(f"Customer {customer_id} not found", details={"customer_id": customer_id})
    return customer


def create_customer(
    *,
    name: str,
    phone: str | None = None,
    email: str | None = None,
    source: str | None = None,
    credit_limit_cents: int = 0,
    credit_status: str | None = None,
    credit_notes: str | None = None,
    commit: bool = True,
) -> Customer:
    """
    Create a customer.

    credit_status is forced to 'none' when the limit is 0; with a positive
    limit it defaults to 'active'. Opening credit_used is always 0: any
    balance must come through the credit ledger.
    """
    if not name:
        raise ValidationError("name required")
    if credit_limit_cents is None or credit_limit_cents < 0:
        raise ValidationError("credit_limit_cents must be >= 0")

    if credit_limit_cents == 0:
        credit_status = CREDIT_NONE
    elif credit_status is None:
        credit_status = CREDIT_ACTIVE

    if credit_status not in VALID_CREDIT_STATUSES:
        raise ValidationError(f"Invalid credit status: {credit_status}. Must be one of {VALID_CREDIT_STATUSES}")
    if credit_limit_cents > 0 and credit_status == CREDIT_NONE:
        raise ValidationError("credit_status 'none' requires a zero credit limit")

    customer = Customer(
        name=name,
        phone=phone,
        email=email,
        source=source,
        credit_limit_cents=credit_limit_cents,
        credit_used_cents=0,
        credit_status=credit_status,
        credit_notes=credit_notes,
    )
    db.session.add(customer)
    finish(commit)
    return customer


def set_credit_status(customer_id: int, credit_status: str, *, notes: str | None = None, commit: bool = True) -> Customer:
    """Suspend, block or re-activate credit. 'none' is reserved for a zero limit."""
    if credit_status not in VALID_CREDIT_STATUSES:
        raise ValidationError(f"Invalid credit status: {credit_status}. Must be one of {VALID_CREDIT_STATUSES}")

    customer = get_customer(customer_id, lock=True)
    if customer.credit_limit_cents == 0 and credit_status != CREDIT_NONE:
        raise ValidationError("Customer has no credit limit; set a limit first")
    if customer.credit_limit_cents > 0 and credit_status == CREDIT_NONE:
        raise ValidationError("credit_status 'none' requires a zero credit limit")

    customer.credit_status = credit_status
    if notes is not None:
        customer.credit_notes = notes
    finish(commit)
    return customer


def record_purchase(customer_id: int, total_cents: int, *, commit: bool = True) -> Customer:
    """Add a completed sale to the customer's running purchase total."""
    customer = get_customer(customer_id, lock=True)
    customer.total_purchases_cents = (customer.total_purchases_cents or 0) + total_cents
    customer.last_purchase_date = utcnow()
    finish(commit)
    return customer


def search_customers(term: str | None = None, limit: int = 50) -> list[Customer]:
    query = db.session.query(Customer)
    if term:
        like = f"%{term.strip()}%"
        query = query.filter(or_(Customer.name.ilike(like), Customer.phone.ilike(like)))
    return query.order_by(Customer.name).limit(limit).all()
