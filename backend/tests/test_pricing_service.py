"""
Pricing engine tests: retail vs wholesale decision and totals.
"""

from backoffice.models import Product
from backoffice.services.pricing_service import CartLine, price_cart, ORDER_TYPE_RETAIL, ORDER_TYPE_WHOLESALE
from backoffice.services import checkout_service


def _product(product_id, retail, wholesale):
    return Product(
        id=product_id,
        sku=f"SKU-{product_id}",
        name="Test product",
        retail_price_cents=retail,
        wholesale_price_cents=wholesale,
    )


def test_below_threshold_is_retail():
    cart = [CartLine(_product(1, 10000, 8000), 2)]

    quote = price_cart(cart, 300000)

    assert quote.is_wholesale is False
    assert quote.order_type == ORDER_TYPE_RETAIL
    assert quote.subtotal_cents == 20000
    assert quote.total_cents == 20000
    assert quote.lines[0].unit_price_cents == 10000


def test_above_threshold_reprices_every_line_at_wholesale():
    # retail 3500, wholesale 20% lower per unit
    cart = [
        CartLine(_product(1, 100000, 80000), 3),
        CartLine(_product(2, 50000, 40000), 1),
    ]

    quote = price_cart(cart, 300000)

    assert quote.subtotal_cents == 350000
    assert quote.is_wholesale is True
    assert quote.order_type == ORDER_TYPE_WHOLESALE
    assert [line.unit_price_cents for line in quote.lines] == [80000, 40000]
    assert quote.total_cents == 80000 * 3 + 40000


def test_threshold_is_inclusive():
    cart = [CartLine(_product(1, 100000, 70000), 3)]

    quote = price_cart(cart, 300000)

    assert quote.is_wholesale is True
    assert quote.total_cents == 210000


def test_total_is_not_a_discount_off_subtotal():
    # wholesale prices are not a uniform percentage of retail
    cart = [
        CartLine(_product(1, 200000, 190000), 1),
        CartLine(_product(2, 150000, 50000), 1),
    ]

    quote = price_cart(cart, 300000)

    assert quote.total_cents == 240000
    assert quote.total_cents != int(quote.subtotal_cents * 0.8)


def test_inactive_rule_prices_at_retail():
    cart = [CartLine(_product(1, 100000, 80000), 5)]

    quote = price_cart(cart, 300000, threshold_active=False)

    assert quote.is_wholesale is False
    assert quote.total_cents == quote.subtotal_cents == 500000


def test_empty_cart_prices_to_zero():
    quote = price_cart([], 0)

    assert quote.is_wholesale is False
    assert quote.subtotal_cents == 0
    assert quote.total_cents == 0
    assert quote.lines == []


def test_preview_reads_threshold_rule(db_session, threshold, necklace):
    # 6 x $500 = $3000 reaches the rule
    quote = checkout_service.preview([{"product_id": necklace.id, "quantity": 6}])

    assert quote.is_wholesale is True
    assert quote.total_cents == 6 * 40000


def test_preview_merges_repeated_products(db_session, threshold, ring):
    quote = checkout_service.preview([
        {"product_id": ring.id, "quantity": 1},
        {"product_id": ring.id, "quantity": 2},
    ])

    assert len(quote.lines) == 1
    assert quote.lines[0].quantity == 3
    assert quote.total_cents == 30000
