# Overview: Order state machine; POS, web-order and quote lifecycles.

"""
Order State Machine

STATUSES:
- draft -> quoted -> confirmed           quoting workflow (price not final until confirm);
                                         a confirmed quote is paid through checkout
- confirmed (payment_status=paid)        POS sale completed at checkout; terminal for pos
- pending_payment -> paid                web intake, external payment confirmation
- pending_payment|paid -> confirmed      web order claimed and completed at a till
- paid|confirmed -> processing -> shipped|ready_for_pickup -> completed
                                         online fulfillment, staff driven
- any non-terminal -> cancelled

Terminal states: completed, cancelled, and confirmed and paid for pos orders.

order_type and order items are written at confirmation and never
recomputed, even if the wholesale threshold changes later.
"""

from __future__ import annotations

from datetime import datetime

from ..extensions import db
from ..models import Order, OrderItem, Product
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, finish
from .document_service import next_order_number
from .errors import ValidationError, NotFoundError, InvalidTransition
from .pricing_service import CartLine, PricedLine, PriceQuote, ORDER_TYPE_WHOLESALE, price_cart
from .settings_service import get_wholesale_threshold
from . import customer_service


STATUS_DRAFT = "draft"
STATUS_QUOTED = "quoted"
STATUS_CONFIRMED = "confirmed"
STATUS_PENDING_PAYMENT = "pending_payment"
STATUS_PAID = "paid"
STATUS_PROCESSING = "processing"
STATUS_SHIPPED = "shipped"
STATUS_READY_FOR_PICKUP = "ready_for_pickup"
STATUS_COMPLETED = "completed"
STATUS_CANCELLED = "cancelled"

PAYMENT_PENDING = "pending"
PAYMENT_PAID = "paid"
PAYMENT_FAILED = "failed"

CHANNEL_POS = "pos"
CHANNEL_ONLINE = "online"

DELIVERY_SHIPPING = "shipping"
DELIVERY_PICKUP = "pickup"
VALID_DELIVERY_METHODS = [DELIVERY_SHIPPING, DELIVERY_PICKUP]

ALLOWED_TRANSITIONS = {
    STATUS_DRAFT: {STATUS_QUOTED, STATUS_CANCELLED},
    STATUS_QUOTED: {STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_PENDING_PAYMENT: {STATUS_PAID, STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_PAID: {STATUS_PROCESSING, STATUS_CONFIRMED, STATUS_CANCELLED},
    STATUS_CONFIRMED: {STATUS_PROCESSING, STATUS_CANCELLED},
    STATUS_PROCESSING: {STATUS_SHIPPED, STATUS_READY_FOR_PICKUP, STATUS_CANCELLED},
    STATUS_SHIPPED: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_READY_FOR_PICKUP: {STATUS_COMPLETED, STATUS_CANCELLED},
    STATUS_COMPLETED: set(),
    STATUS_CANCELLED: set(),
}

FULFILLMENT_STATUSES = {STATUS_PROCESSING, STATUS_SHIPPED, STATUS_READY_FOR_PICKUP, STATUS_COMPLETED}

# Orders a till may complete through checkout with an existing order id.
# A confirmed quote also qualifies until it has been paid.
CHECKOUT_CLAIMABLE = {STATUS_QUOTED, STATUS_PENDING_PAYMENT, STATUS_PAID}


def is_checkout_claimable(order: Order) -> bool:
    if order.status in CHECKOUT_CLAIMABLE:
        return True
    return order.status == STATUS_CONFIRMED and order.payment_status == PAYMENT_PENDING


def is_terminal(order: Order) -> bool:
    if order.status in (STATUS_COMPLETED, STATUS_CANCELLED):
        return True
    return (
        order.status == STATUS_CONFIRMED
        and order.sale_channel == CHANNEL_POS
        and order.payment_status == PAYMENT_PAID
    )


def can_transition(order: Order, new_status: str) -> bool:
    if is_terminal(order):
        return False
    if new_status in FULFILLMENT_STATUSES and order.sale_channel != CHANNEL_ONLINE:
        return False
    return new_status in ALLOWED_TRANSITIONS.get(order.status, set())


def _transition(order: Order, new_status: str) -> None:
    if not can_transition(order, new_status):
        raise InvalidTransition(
            f"Order #{order.order_number} cannot move from {order.status} to {new_status}",
            details={"order_id": order.id, "status": order.status, "requested": new_status},
        )
    order.status = new_status


def get_order(order_id: int, *, lock: bool = False) -> Order:
    query = db.session.query(Order).filter_by(id=order_id)
    if lock:
        query = lock_for_update(query)
    order = query.first()
    if order is None:
        raise NotFoundError(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def list_orders(*, status: str | None = None, sale_channel: str | None = None, limit: int = 100) -> list[Order]:
    query = db.session.query(Order)
    if status:
        query = query.filter_by(status=status)
    if sale_channel:
        query = query.filter_by(sale_channel=sale_channel)
    return query.order_by(Order.created_at.desc(), Order.id.desc()).limit(limit).all()


# =============================================================================
# CART RESOLUTION (read-through, per operation)
# =============================================================================

def cart_quantities(items: list[dict]) -> dict[int, int]:
    """Validate cart lines and merge them into {product_id: quantity}."""
    if not items:
        raise ValidationError("Cart is empty")

    quantities: dict[int, int] = {}
    for item in items:
        product_id = item.get("product_id")
        quantity = item.get("quantity")
        if product_id is None:
            raise ValidationError("product_id required for every cart line")
        if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
            raise ValidationError(
                "Quantity must be a positive integer",
                details={"product_id": product_id, "quantity": quantity},
            )
        quantities[product_id] = quantities.get(product_id, 0) + quantity
    return quantities


def order_cart(order: Order) -> list[dict]:
    """The order's items as cart lines."""
    return [
        {"product_id": item.product_id, "quantity": item.quantity}
        for item in order.items
        if item.product_id is not None
    ]


def quote_from_items(order: Order) -> PriceQuote:
    """The prices fixed on a confirmed order, as a quote."""
    lines = [
        PricedLine(product_id=item.product_id, quantity=item.quantity, unit_price_cents=item.unit_price_cents)
        for item in order.items
        if item.product_id is not None
    ]
    return PriceQuote(
        subtotal_cents=order.subtotal_cents,
        total_cents=sum(line.line_total_cents for line in lines),
        is_wholesale=order.order_type == ORDER_TYPE_WHOLESALE,
        lines=lines,
    )


def resolve_cart(items: list[dict], *, lock: bool = False) -> list[CartLine]:
    """
    Turn [{"product_id", "quantity"}] into CartLines with fresh product rows.

    Repeated products are merged into one line. Raises ValidationError for an
    empty cart or a non-positive quantity, NotFoundError for unknown products.
    """
    quantities = cart_quantities(items)

    # Rows are locked in id order so two tills selling the same SKUs cannot deadlock
    query = db.session.query(Product).filter(Product.id.in_(list(quantities))).order_by(Product.id)
    if lock:
        query = lock_for_update(query)
    products = {product.id: product for product in query.all()}

    lines = []
    for product_id, quantity in quantities.items():
        product = products.get(product_id)
        if product is None:
            raise NotFoundError(f"Product {product_id} not found", details={"product_id": product_id})
        lines.append(CartLine(product=product, quantity=quantity))
    return lines


def quote_cart(cart: list[CartLine]) -> PriceQuote:
    """Price a cart against the threshold rule as of now."""
    threshold_cents, active = get_wholesale_threshold()
    return price_cart(cart, threshold_cents, active)


def _write_items(order: Order, quote: PriceQuote) -> list[OrderItem]:
    items = []
    for line in quote.lines:
        item = OrderItem(
            order_id=order.id,
            product_id=line.product_id,
            quantity=line.quantity,
            unit_price_cents=line.unit_price_cents,
            line_total_cents=line.line_total_cents,
        )
        db.session.add(item)
        items.append(item)
    db.session.flush()
    return items


def _reprice_items(order: Order, quote: PriceQuote) -> None:
    """Rewrite item prices so the lines add up to the quote."""
    priced = {line.product_id: line for line in quote.lines}
    for item in order.items:
        line = priced.get(item.product_id)
        if line is None:
            continue
        item.unit_price_cents = line.unit_price_cents
        item.line_total_cents = line.line_total_cents


# =============================================================================
# POS CHECKOUT PATHS (called by checkout_service inside its unit of work)
# =============================================================================

def create_confirmed_order(
    quote: PriceQuote,
    *,
    customer_id: int | None = None,
    pos_terminal_id: int | None = None,
    delivery_method: str | None = None,
    delivery_address: str | None = None,
    notes: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> Order:
    """New POS order: confirmed and paid, with its item snapshot."""
    now = utcnow()
    order = Order(
        order_number=next_order_number(),
        customer_id=customer_id,
        status=STATUS_CONFIRMED,
        payment_status=PAYMENT_PAID,
        order_type=quote.order_type,
        sale_channel=CHANNEL_POS,
        pos_terminal_id=pos_terminal_id,
        subtotal_cents=quote.subtotal_cents,
        total_cents=quote.total_cents,
        delivery_method=delivery_method,
        delivery_address=delivery_address,
        notes=notes,
        created_by=actor,
        served_by=actor,
        confirmed_at=now,
        paid_at=now,
    )
    db.session.add(order)
    db.session.flush()

    _write_items(order, quote)
    finish(commit)
    return order


def confirm_claimed_order(
    order: Order,
    quote: PriceQuote,
    *,
    pos_terminal_id: int | None = None,
    notes: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> Order:
    """
    Complete an existing order at the till instead of creating a new one.

    A second checkout against an order that is already paid is rejected
    here, which makes a completed checkout non-replayable. Item prices are
    rewritten from the quote actually charged.
    """
    if not is_checkout_claimable(order):
        raise InvalidTransition(
            f"Order #{order.order_number} cannot be checked out from status {order.status}",
            details={"order_id": order.id, "status": order.status},
        )

    if order.status != STATUS_CONFIRMED:
        _transition(order, STATUS_CONFIRMED)
    now = utcnow()
    _reprice_items(order, quote)
    order.payment_status = PAYMENT_PAID
    order.order_type = quote.order_type
    order.subtotal_cents = quote.subtotal_cents
    order.total_cents = quote.total_cents
    order.pos_terminal_id = pos_terminal_id
    order.served_by = actor
    order.confirmed_at = order.confirmed_at or now
    order.paid_at = order.paid_at or now
    if notes:
        order.notes = notes
    finish(commit)
    return order


# =============================================================================
# WEB ORDERS
# =============================================================================

def create_web_order(
    items: list[dict],
    *,
    customer_id: int | None = None,
    delivery_method: str = DELIVERY_PICKUP,
    delivery_address: str | None = None,
    notes: str | None = None,
    actor: str | None = "web",
    commit: bool = True,
) -> Order:
    """Web intake: online order awaiting payment, with its item snapshot."""
    if delivery_method not in VALID_DELIVERY_METHODS:
        raise ValidationError(f"Invalid delivery method: {delivery_method}. Must be one of {VALID_DELIVERY_METHODS}")
    if delivery_method == DELIVERY_SHIPPING and not delivery_address:
        raise ValidationError("delivery_address required for shipping")
    if customer_id is not None:
        customer_service.get_customer(customer_id)

    cart = resolve_cart(items)
    quote = quote_cart(cart)

    order = Order(
        order_number=next_order_number(),
        customer_id=customer_id,
        status=STATUS_PENDING_PAYMENT,
        payment_status=PAYMENT_PENDING,
        sale_channel=CHANNEL_ONLINE,
        subtotal_cents=quote.subtotal_cents,
        total_cents=quote.total_cents,
        delivery_method=delivery_method,
        delivery_address=delivery_address,
        notes=notes,
        created_by=actor,
    )
    db.session.add(order)
    db.session.flush()

    _write_items(order, quote)
    finish(commit)
    return order


def mark_web_order_paid(order_id: int, *, commit: bool = True) -> Order:
    """External payment confirmation for an online order."""
    order = get_order(order_id, lock=True)
    if order.sale_channel != CHANNEL_ONLINE:
        raise InvalidTransition("Only online orders are paid outside the till", details={"order_id": order.id})
    _transition(order, STATUS_PAID)
    order.payment_status = PAYMENT_PAID
    order.paid_at = utcnow()
    finish(commit)
    return order


def claim_web_order(order_id: int) -> dict:
    """
    Load an online order into a till cart.

    Returns the order, its customer and cart lines (product_id, quantity).
    Completion happens through checkout with this order id.
    """
    order = get_order(order_id)
    if order.sale_channel != CHANNEL_ONLINE:
        raise InvalidTransition("Only online orders can be claimed", details={"order_id": order.id})
    if order.status not in (STATUS_PENDING_PAYMENT, STATUS_PAID):
        raise InvalidTransition(
            f"Order #{order.order_number} is {order.status} and cannot be claimed",
            details={"order_id": order.id, "status": order.status},
        )

    return {"order": order, "customer_id": order.customer_id, "cart": order_cart(order)}


def pending_web_orders(since: datetime | None = None) -> list[Order]:
    """Online orders waiting to be completed at a till."""
    query = db.session.query(Order).filter(
        Order.sale_channel == CHANNEL_ONLINE,
        Order.status.in_([STATUS_PENDING_PAYMENT, STATUS_PAID]),
    )
    if since is not None:
        query = query.filter(Order.created_at >= since)
    return query.order_by(Order.created_at, Order.id).all()


def advance_fulfillment(order_id: int, new_status: str, *, commit: bool = True) -> Order:
    """Staff-driven fulfillment moves for online orders."""
    if new_status not in FULFILLMENT_STATUSES:
        raise ValidationError(f"{new_status} is not a fulfillment status")

    order = get_order(order_id, lock=True)
    if new_status == STATUS_SHIPPED and order.delivery_method != DELIVERY_SHIPPING:
        raise InvalidTransition("Only shipping orders can be marked shipped", details={"order_id": order.id})
    if new_status == STATUS_READY_FOR_PICKUP and order.delivery_method != DELIVERY_PICKUP:
        raise InvalidTransition("Only pickup orders can be ready for pickup", details={"order_id": order.id})

    _transition(order, new_status)
    finish(commit)
    return order


def cancel_order(order_id: int, *, reason: str | None = None, commit: bool = True) -> Order:
    order = get_order(order_id, lock=True)
    _transition(order, STATUS_CANCELLED)
    order.cancelled_at = utcnow()
    if reason:
        order.notes = f"{order.notes}\n{reason}" if order.notes else reason
    finish(commit)
    return order


# =============================================================================
# QUOTES
# =============================================================================

def create_quote(
    items: list[dict],
    *,
    customer_id: int | None = None,
    notes: str | None = None,
    actor: str | None = None,
    commit: bool = True,
) -> Order:
    """Draft order with indicative prices; prices become final on confirm."""
    if customer_id is not None:
        customer_service.get_customer(customer_id)
    cart = resolve_cart(items)
    quote = quote_cart(cart)

    order = Order(
        order_number=next_order_number(),
        customer_id=customer_id,
        status=STATUS_DRAFT,
        payment_status=PAYMENT_PENDING,
        sale_channel=CHANNEL_POS,
        subtotal_cents=quote.subtotal_cents,
        total_cents=quote.total_cents,
        notes=notes,
        created_by=actor,
    )
    db.session.add(order)
    db.session.flush()

    _write_items(order, quote)
    finish(commit)
    return order


def mark_quoted(order_id: int, *, commit: bool = True) -> Order:
    order = get_order(order_id, lock=True)
    _transition(order, STATUS_QUOTED)
    finish(commit)
    return order


def confirm_quote(order_id: int, *, actor: str | None = None, commit: bool = True) -> Order:
    """
    Fix a quote's prices: re-price its items against the current rule,
    write order_type and the final item prices, move to confirmed.

    The order stays payment pending; checkout with its id takes payment
    and deducts stock at the confirmed prices.
    """
    order = get_order(order_id, lock=True)
    if order.status != STATUS_QUOTED:
        raise InvalidTransition(
            f"Order #{order.order_number} is {order.status}; only quoted orders can be confirmed",
            details={"order_id": order.id, "status": order.status},
        )

    quote = quote_cart(resolve_cart(order_cart(order)))
    _reprice_items(order, quote)

    _transition(order, STATUS_CONFIRMED)
    order.order_type = quote.order_type
    order.subtotal_cents = quote.subtotal_cents
    order.total_cents = quote.total_cents
    order.served_by = actor
    order.confirmed_at = utcnow()
    finish(commit)
    return order
