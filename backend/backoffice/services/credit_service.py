# Overview: Customer credit ledger; signed transactions with before/after balances.

"""
Credit Ledger Service

The credit_transactions table is the source of truth for a customer's
outstanding balance. Customer.credit_used_cents is a cached projection of
the latest new_balance_cents and is updated in the same unit of work as the
ledger row, under a row lock on the customer.

SIGN RULES:
- charge:       new = previous + amount    (amount > 0)
- payment:      new = previous - amount    (amount > 0, amount <= previous)
- adjustment:   new = previous + amount    (signed; may exceed the limit)
- limit_change: balance unchanged, limit becomes amount (>= 0)

Only charge is gated: credit_status must be active and the available
credit must cover the amount. Adjustments and limit changes model manual
overrides and may leave credit_used above credit_limit.
"""

from __future__ import annotations

from sqlalchemy import func

from ..extensions import db
from ..models import Customer, CreditTransaction
from backoffice.time_utils import utcnow
from .concurrency import finish
from .customer_service import get_customer, CREDIT_ACTIVE, CREDIT_NONE
from .errors import ValidationError, CreditNotActive, InsufficientCredit


TXN_CHARGE = "charge"
TXN_PAYMENT = "payment"
TXN_ADJUSTMENT = "adjustment"
TXN_LIMIT_CHANGE = "limit_change"

VALID_TRANSACTION_TYPES = [TXN_CHARGE, TXN_PAYMENT, TXN_ADJUSTMENT, TXN_LIMIT_CHANGE]


def check_charge_allowed(customer: Customer, amount_cents: int) -> None:
    """
    Charge preconditions, checked before any write.

    Raises:
        CreditNotActive: credit_status is not 'active'
        InsufficientCredit: available credit is below the amount
    """
    if customer.credit_status != CREDIT_ACTIVE:
        raise CreditNotActive(
            f"Credit for customer {customer.id} is not active",
            details={"customer_id": customer.id, "credit_status": customer.credit_status},
        )

    available = customer.credit_available_cents
    if available < amount_cents:
        raise InsufficientCredit(
            f"Insufficient credit for customer {customer.id}",
            details={
                "customer_id": customer.id,
                "available_cents": available,
                "requested_cents": amount_cents,
            },
        )


def register_credit_transaction(
    customer_id: int,
    transaction_type: str,
    amount_cents: int,
    *,
    reference: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
    order_id: int | None = None,
    commit: bool = True,
) -> CreditTransaction:
    """
    Append a ledger row and update the cached balance or limit.

    Any precondition failure raises before a write, leaving balances intact.

    Raises:
        ValidationError: unknown type, bad amount, payment above balance,
            adjustment below zero
        CreditNotActive, InsufficientCredit: charge preconditions
    """
    if transaction_type not in VALID_TRANSACTION_TYPES:
        raise ValidationError(
            f"Invalid transaction type: {transaction_type}. Must be one of {VALID_TRANSACTION_TYPES}"
        )
    if not isinstance(amount_cents, int) or isinstance(amount_cents, bool):
        raise ValidationError("amount_cents must be an integer")
    if transaction_type in (TXN_CHARGE, TXN_PAYMENT) and amount_cents <= 0:
        raise ValidationError(f"{transaction_type} amount must be positive")
    if transaction_type == TXN_ADJUSTMENT and amount_cents == 0:
        raise ValidationError("adjustment amount cannot be zero")
    if transaction_type == TXN_LIMIT_CHANGE and amount_cents < 0:
        raise ValidationError("credit limit cannot be negative")

    customer = get_customer(customer_id, lock=True)
    previous_balance = customer.credit_used_cents or 0
    previous_limit = customer.credit_limit_cents or 0
    new_limit = None

    if transaction_type == TXN_CHARGE:
        check_charge_allowed(customer, amount_cents)
        new_balance = previous_balance + amount_cents
    elif transaction_type == TXN_PAYMENT:
        if amount_cents > previous_balance:
            raise ValidationError(
                "Payment exceeds outstanding balance",
                details={"balance_cents": previous_balance, "requested_cents": amount_cents},
            )
        new_balance = previous_balance - amount_cents
    elif transaction_type == TXN_ADJUSTMENT:
        new_balance = previous_balance + amount_cents
        if new_balance < 0:
            raise ValidationError(
                "Adjustment would leave a negative balance",
                details={"balance_cents": previous_balance, "adjustment_cents": amount_cents},
            )
    else:
        new_balance = previous_balance
        new_limit = amount_cents

    txn = CreditTransaction(
        customer_id=customer.id,
        transaction_type=transaction_type,
        amount_cents=amount_cents,
        previous_balance_cents=previous_balance,
        new_balance_cents=new_balance,
        previous_limit_cents=previous_limit if new_limit is not None else None,
        new_limit_cents=new_limit,
        order_id=order_id,
        reference=reference,
        notes=notes,
        created_by=actor,
        created_at=utcnow(),
    )
    db.session.add(txn)

    customer.credit_used_cents = new_balance
    if new_limit is not None:
        customer.credit_limit_cents = new_limit
        if new_limit == 0:
            customer.credit_status = CREDIT_NONE
        elif customer.credit_status == CREDIT_NONE:
            customer.credit_status = CREDIT_ACTIVE

    finish(commit)
    return txn


# =============================================================================
# REPORTING
# =============================================================================

def get_credit_history(customer_id: int, limit: int | None = None) -> list[CreditTransaction]:
    """Ledger rows for a customer, newest first."""
    query = db.session.query(CreditTransaction).filter_by(customer_id=customer_id).order_by(
        CreditTransaction.created_at.desc(),
        CreditTransaction.id.desc(),
    )
    if limit:
        query = query.limit(limit)
    return query.all()


def ledger_balance(customer_id: int) -> int:
    """Balance according to the ledger alone (latest new_balance, 0 if empty)."""
    latest = db.session.query(CreditTransaction).filter_by(customer_id=customer_id).order_by(
        CreditTransaction.id.desc()
    ).first()
    return latest.new_balance_cents if latest else 0


def credit_summary(customer_id: int) -> dict:
    customer = get_customer(customer_id)
    limit = customer.credit_limit_cents or 0
    used = customer.credit_used_cents or 0
    return {
        "customer_id": customer.id,
        "credit_status": customer.credit_status,
        "credit_limit_cents": limit,
        "credit_used_cents": used,
        "credit_available_cents": limit - used,
        "utilization_percent": round(used * 100 / limit, 2) if limit else 0,
    }


def credit_stats() -> dict:
    """Aggregate credit exposure across customers that have a limit."""
    row = db.session.query(
        func.count(Customer.id),
        func.coalesce(func.sum(Customer.credit_limit_cents), 0),
        func.coalesce(func.sum(Customer.credit_used_cents), 0),
    ).filter(Customer.credit_limit_cents > 0).one()

    status_counts = dict(
        db.session.query(Customer.credit_status, func.count(Customer.id))
        .filter(Customer.credit_limit_cents > 0)
        .group_by(Customer.credit_status)
        .all()
    )

    total_limit = int(row[1])
    total_used = int(row[2])
    return {
        "customers_with_credit": int(row[0]),
        "total_limit_cents": total_limit,
        "total_used_cents": total_used,
        "total_available_cents": total_limit - total_used,
        "by_status": status_counts,
    }
