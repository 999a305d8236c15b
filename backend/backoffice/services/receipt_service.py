# Overview: Receipt payload for a completed checkout.

"""
Receipt Service

Builds the printable receipt for a completed checkout as a plain dict.
Rendering (thermal printer, PDF, email) is the caller's concern.
"""

from __future__ import annotations

from ..models import Order, PosTransaction
from backoffice.time_utils import to_utc_z


def build_receipt(order: Order, transaction: PosTransaction) -> dict:
    lines = []
    for item in order.items:
        product = item.product
        lines.append({
            "sku": product.sku if product else None,
            "name": product.name if product else "(deleted product)",
            "quantity": item.quantity,
            "unit_price_cents": item.unit_price_cents,
            "line_total_cents": item.line_total_cents,
        })

    session = transaction.session
    terminal = order.terminal
    customer = order.customer

    return {
        "order_number": order.order_number,
        "transaction_number": transaction.transaction_number,
        "order_type": order.order_type,
        "is_wholesale": order.is_wholesale,
        "terminal": terminal.name if terminal else None,
        "session_number": session.session_number if session else None,
        "served_by": order.served_by,
        "customer": customer.name if customer else None,
        "lines": lines,
        "subtotal_cents": order.subtotal_cents,
        "total_cents": order.total_cents,
        "payment_method": transaction.payment_method,
        "payment_reference": transaction.payment_reference,
        "amount_tendered_cents": transaction.amount_tendered_cents,
        "change_given_cents": transaction.change_given_cents,
        "completed_at": to_utc_z(transaction.completed_at),
    }
