# Overview: Pricing engine; decides retail vs wholesale pricing for a cart.

"""
Pricing Engine

subtotal = sum(retail_price * quantity) over the cart.
When the threshold rule is active and subtotal >= threshold (inclusive),
the whole cart is wholesale: every line re-prices at wholesale_price and
total = sum(wholesale_price * quantity). Otherwise total = subtotal.

The decision is all-or-nothing per order. The total is computed from
wholesale unit prices, never as a discount off the retail subtotal.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from ..models import Product


ORDER_TYPE_RETAIL = "retail"
ORDER_TYPE_WHOLESALE = "wholesale"


@dataclass(frozen=True)
class CartLine:
    product: Product
    quantity: int


@dataclass(frozen=True)
class PricedLine:
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.unit_price_cents * self.quantity


@dataclass(frozen=True)
class PriceQuote:
    subtotal_cents: int
    total_cents: int
    is_wholesale: bool
    lines: list[PricedLine] = field(default_factory=list)

    @property
    def order_type(self) -> str:
        return ORDER_TYPE_WHOLESALE if self.is_wholesale else ORDER_TYPE_RETAIL

    def to_dict(self) -> dict:
        return {
            "subtotal_cents": self.subtotal_cents,
            "total_cents": self.total_cents,
            "is_wholesale": self.is_wholesale,
            "order_type": self.order_type,
            "lines": [
                {
                    "product_id": line.product_id,
                    "quantity": line.quantity,
                    "unit_price_cents": line.unit_price_cents,
                    "line_total_cents": line.line_total_cents,
                }
                for line in self.lines
            ],
        }


def price_cart(cart: list[CartLine], threshold_cents: int, threshold_active: bool = True) -> PriceQuote:
    """
    Price a cart against the wholesale threshold.

    No error conditions: an empty cart prices to zero, and callers must
    refuse to check it out.
    """
    subtotal = sum(line.product.retail_price_cents * line.quantity for line in cart)
    is_wholesale = bool(cart) and threshold_active and subtotal >= threshold_cents

    lines = [
        PricedLine(
            product_id=line.product.id,
            quantity=line.quantity,
            unit_price_cents=(
                line.product.wholesale_price_cents if is_wholesale else line.product.retail_price_cents
            ),
        )
        for line in cart
    ]
    total = sum(line.line_total_cents for line in lines)

    return PriceQuote(subtotal_cents=subtotal, total_cents=total, is_wholesale=is_wholesale, lines=lines)
