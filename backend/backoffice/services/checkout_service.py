# Overview: Payment processor; one checkout as a single unit of work across all ledgers.

"""
Checkout (Payment Processor)

WHY: Turn a cart into a priced, paid order while keeping stock, credit
and till figures consistent.

STEPS (one database transaction; any failure rolls back every step):
1. Price the cart (retail vs wholesale, all-or-nothing).
2. Create a new confirmed/paid order, or confirm the existing order whose
   id was supplied (web order claimed at the till, or a quote). An existing
   order's items are the cart; a confirmed quote keeps its confirmed prices.
3. Item rows hold the unit price charged.
4. Deduct every line from stock.
5. Credit payments charge the customer's credit ledger.
6. Cash payments require tendered >= total and give change.
7. Record one POS transaction and credit the till session.
8. Add the sale to the customer's purchase total.

All validation (empty cart, quantities, stock, credit, cash tendered,
session, replay of a confirmed order) happens before the first write.
"""

from __future__ import annotations

from dataclasses import dataclass

from flask import current_app
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db
from ..models import Order, PosSession, PosTransaction, Customer
from backoffice.time_utils import utcnow
from .concurrency import begin_immediate, run_with_retry
from .document_service import next_transaction_number
from .errors import (
    PosError,
    ValidationError,
    SessionError,
    InsufficientCashTendered,
    InvalidTransition,
    PartialCommitError,
)
from .pricing_service import PriceQuote
from . import credit_service, customer_service, inventory_service, order_service, register_service


PAYMENT_CASH = "cash"
PAYMENT_CARD = "card"
PAYMENT_TRANSFER = "transfer"
PAYMENT_CREDIT = "credit"

VALID_PAYMENT_METHODS = [
    PAYMENT_CASH,
    PAYMENT_CARD,
    PAYMENT_TRANSFER,
    PAYMENT_CREDIT,
]

SALE_TYPE_POS = "physical_pos"
SALE_TYPE_WEB_CLAIM = "web_claim"


@dataclass
class CheckoutResult:
    order: Order
    transaction: PosTransaction
    quote: PriceQuote
    session: PosSession
    customer: Customer | None = None

    @property
    def change_given_cents(self) -> int:
        return self.transaction.change_given_cents

    def to_dict(self) -> dict:
        return {
            "order": self.order.to_dict(),
            "items": [item.to_dict() for item in self.order.items],
            "transaction": self.transaction.to_dict(),
            "pricing": self.quote.to_dict(),
            "session": self.session.to_dict(),
            "customer": self.customer.to_dict() if self.customer else None,
        }


def preview(items: list[dict]) -> PriceQuote:
    """Price a cart without touching anything (the till's live total)."""
    cart = order_service.resolve_cart(items)
    return order_service.quote_cart(cart)


def _resolve_session(session_id: int | None, terminal_id: int | None) -> PosSession:
    if session_id is not None:
        session = register_service.get_session(session_id, lock=True)
    elif terminal_id is not None:
        session = register_service.get_open_session(terminal_id)
    else:
        session = None

    if session is None or session.status != register_service.SESSION_OPEN:
        raise SessionError(
            "No open session: a sale cannot be recorded without a till session",
            details={"session_id": session_id, "terminal_id": terminal_id},
        )
    if terminal_id is not None and session.terminal_id != terminal_id:
        raise SessionError(
            "Session does not belong to this terminal",
            details={"session_id": session.id, "terminal_id": terminal_id},
        )
    return session


def _settle_tender(payment_method: str, total_cents: int, amount_tendered_cents: int | None) -> tuple[int, int]:
    """Returns (amount_tendered, change_given) for the payment method."""
    if payment_method == PAYMENT_CASH:
        if amount_tendered_cents is None:
            raise InsufficientCashTendered(
                "Cash tendered is required",
                details={"total_cents": total_cents},
            )
        if amount_tendered_cents < total_cents:
            raise InsufficientCashTendered(
                "Cash tendered is less than the total",
                details={"total_cents": total_cents, "tendered_cents": amount_tendered_cents},
            )
        return amount_tendered_cents, amount_tendered_cents - total_cents

    if amount_tendered_cents is not None and amount_tendered_cents != total_cents:
        raise ValidationError(
            "Non-cash tender must equal the total",
            details={"total_cents": total_cents, "tendered_cents": amount_tendered_cents},
        )
    return total_cents, 0


def checkout(
    items: list[dict],
    *,
    payment_method: str,
    customer_id: int | None = None,
    amount_tendered_cents: int | None = None,
    order_id: int | None = None,
    session_id: int | None = None,
    terminal_id: int | None = None,
    payment_reference: str | None = None,
    delivery_method: str | None = None,
    delivery_address: str | None = None,
    notes: str | None = None,
    actor: str = "system",
) -> CheckoutResult:
    """
    Complete one sale end to end.

    Args:
        items: cart lines [{"product_id": int, "quantity": int}]. With
            order_id they may be omitted; if given they must match the
            order's items.
        payment_method: cash, card, transfer, credit
        customer_id: optional; required for credit. Defaults to the
            existing order's customer when order_id is given.
        amount_tendered_cents: cash handed over (cash only)
        order_id: existing order to complete instead of creating one
        session_id / terminal_id: till session to credit

    Raises:
        ValidationError, InsufficientCredit, CreditNotActive,
        InsufficientCashTendered, SessionError, InvalidTransition,
        ConcurrencyConflict, PartialCommitError
    """
    if not items and order_id is None:
        raise ValidationError("Cart is empty")
    if payment_method not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"Invalid payment method: {payment_method}. Must be one of {VALID_PAYMENT_METHODS}"
        )
    if amount_tendered_cents is not None and (
        not isinstance(amount_tendered_cents, int)
        or isinstance(amount_tendered_cents, bool)
        or amount_tendered_cents < 0
    ):
        raise ValidationError(
            "amount_tendered_cents must be a non-negative integer",
            details={"amount_tendered_cents": amount_tendered_cents},
        )

    def _op():
        begin_immediate()
        progress = {"step": "validate"}
        try:
            result = _checkout_locked(
                items,
                progress,
                payment_method=payment_method,
                customer_id=customer_id,
                amount_tendered_cents=amount_tendered_cents,
                order_id=order_id,
                session_id=session_id,
                terminal_id=terminal_id,
                payment_reference=payment_reference,
                delivery_method=delivery_method,
                delivery_address=delivery_address,
                notes=notes,
                actor=actor,
            )
            progress["step"] = "commit"
            db.session.commit()
            return result
        except PosError as exc:
            db.session.rollback()
            current_app.logger.warning("Checkout rejected at %s: %s", progress["step"], exc.message)
            raise
        except (OperationalError, StaleDataError):
            raise
        except SQLAlchemyError as exc:
            db.session.rollback()
            if progress["step"] in ("validate", "order"):
                raise
            current_app.logger.exception("Checkout failed after stock deduction; rolled back")
            raise PartialCommitError(
                "Checkout failed after stock deduction; all steps were rolled back",
                step=progress["step"],
            ) from exc

    return run_with_retry(_op)


def _checkout_locked(
    items: list[dict],
    progress: dict,
    *,
    payment_method: str,
    customer_id: int | None,
    amount_tendered_cents: int | None,
    order_id: int | None,
    session_id: int | None,
    terminal_id: int | None,
    payment_reference: str | None,
    delivery_method: str | None,
    delivery_address: str | None,
    notes: str | None,
    actor: str,
) -> CheckoutResult:
    # --- validation: nothing below writes until every check has passed ---
    session = _resolve_session(session_id, terminal_id)
    terminal = register_service.get_terminal(session.terminal_id)

    existing = None
    if order_id is not None:
        existing = order_service.get_order(order_id, lock=True)
        if not order_service.is_checkout_claimable(existing):
            raise InvalidTransition(
                f"Order #{existing.order_number} is already {existing.status}",
                details={"order_id": existing.id, "status": existing.status},
            )
        if customer_id is None:
            customer_id = existing.customer_id

        # The order's items are what gets sold
        order_items = order_service.order_cart(existing)
        if items and order_service.cart_quantities(items) != order_service.cart_quantities(order_items):
            raise ValidationError(
                f"Cart does not match the items of order #{existing.order_number}",
                details={"order_id": existing.id, "cart": items, "order_items": order_items},
            )
        items = order_items

    cart = order_service.resolve_cart(items, lock=True)
    if existing is not None and existing.order_type is not None:
        # Confirmed quote: prices were fixed at confirmation
        quote = order_service.quote_from_items(existing)
    else:
        quote = order_service.quote_cart(cart)

    short = [
        {"product_id": line.product.id, "sku": line.product.sku,
         "requested": line.quantity, "available": line.product.total_stock}
        for line in cart
        if line.product.total_stock < line.quantity
    ]
    if short:
        raise ValidationError("Insufficient stock for cart", details={"items": short})

    customer = customer_service.get_customer(customer_id, lock=True) if customer_id is not None else None

    if payment_method == PAYMENT_CREDIT:
        if customer is None:
            raise ValidationError("Credit payment requires a customer")
        credit_service.check_charge_allowed(customer, quote.total_cents)

    amount_tendered, change_given = _settle_tender(payment_method, quote.total_cents, amount_tendered_cents)

    # --- step 2/3: order ---
    progress["step"] = "order"
    if existing is not None:
        order = order_service.confirm_claimed_order(
            existing,
            quote,
            pos_terminal_id=terminal.id,
            notes=notes,
            actor=actor,
            commit=False,
        )
        if order.sale_channel == order_service.CHANNEL_ONLINE:
            sale_note = f"POS sale - web order confirmation - order {order.order_number}"
            sale_type = SALE_TYPE_WEB_CLAIM
        else:
            sale_note = f"POS sale - quote - order {order.order_number}"
            sale_type = SALE_TYPE_POS
    else:
        order = order_service.create_confirmed_order(
            quote,
            customer_id=customer.id if customer else None,
            pos_terminal_id=terminal.id,
            delivery_method=delivery_method,
            delivery_address=delivery_address,
            notes=notes,
            actor=actor,
            commit=False,
        )
        sale_note = f"POS sale - order {order.order_number}"
        sale_type = SALE_TYPE_POS

    # --- step 4: inventory ---
    progress["step"] = "inventory"
    for line in cart:
        inventory_service.deduct_stock(
            line.product.id,
            line.quantity,
            reference=f"Order #{order.order_number}",
            reason=sale_note,
            actor=actor,
            commit=False,
        )

    # --- step 5: credit ---
    if payment_method == PAYMENT_CREDIT:
        progress["step"] = "credit"
        credit_service.register_credit_transaction(
            customer.id,
            credit_service.TXN_CHARGE,
            quote.total_cents,
            reference=f"Order #{order.order_number}",
            notes=f"POS sale - terminal: {terminal.name}",
            actor=actor,
            order_id=order.id,
            commit=False,
        )
        payment_reference = f"Credit - Order #{order.order_number}"

    # --- step 7: payment transaction + till ---
    progress["step"] = "transaction"
    transaction = PosTransaction(
        session_id=session.id,
        order_id=order.id,
        transaction_number=next_transaction_number(),
        sale_type=sale_type,
        payment_method=payment_method,
        payment_reference=payment_reference,
        amount_cents=quote.total_cents,
        amount_tendered_cents=amount_tendered,
        change_given_cents=change_given,
        completed_at=utcnow(),
        created_by=actor,
    )
    db.session.add(transaction)
    db.session.flush()

    progress["step"] = "session"
    register_service.record_sale(session.id, quote.total_cents, commit=False)

    # --- step 8: customer aggregates ---
    if customer is not None:
        progress["step"] = "customer"
        customer_service.record_purchase(customer.id, quote.total_cents, commit=False)

    return CheckoutResult(
        order=order,
        transaction=transaction,
        quote=quote,
        session=session,
        customer=customer,
    )
