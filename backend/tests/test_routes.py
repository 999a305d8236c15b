"""
HTTP API tests through the Flask test client.
"""

from backoffice.extensions import db
from backoffice.models import Product, PosSession, Customer


def test_health(client, db_session, open_session):
    response = client.get('/api/system/health')

    assert response.status_code == 200
    assert response.json['status'] == 'healthy'
    assert response.json['checks']['tills']['details']['open_sessions'] == 1


def test_health_degraded_without_open_session(client, db_session):
    response = client.get('/api/system/health')

    assert response.status_code == 200
    assert response.json['status'] == 'degraded'


def test_product_create_and_adjust(client, db_session):
    response = client.post('/api/products', json={
        'sku': 'API-1',
        'name': 'Chain',
        'retail_price_cents': 25000,
        'wholesale_price_cents': 20000,
        'stock_a': 4,
        'stock_b': 4,
        'stock_c': 4,
    })
    assert response.status_code == 201
    product_id = response.json['product']['id']
    assert response.json['product']['total_stock'] == 12

    response = client.post(f'/api/products/{product_id}/adjust', json={
        'stock_a': 1, 'stock_b': 0, 'stock_c': 0, 'actor': 'manager',
    })
    assert response.status_code == 200
    assert response.json['product']['total_stock'] == 1
    assert response.json['movement']['movement_type'] == 'adjustment'

    response = client.get(f'/api/products/{product_id}/movements')
    assert len(response.json['movements']) == 2
    assert response.json['replayed_stock'] == {'stock_a': 1, 'stock_b': 0, 'stock_c': 0}

    response = client.get('/api/stock-alerts')
    assert [a['product_id'] for a in response.json['alerts']] == [product_id]


def test_product_validation_error(client, db_session, ring):
    response = client.post('/api/products', json={
        'sku': ring.sku, 'name': 'dup', 'retail_price_cents': 1, 'wholesale_price_cents': 1,
    })

    assert response.status_code == 400
    assert response.json['kind'] == 'ValidationError'


def test_unknown_product_is_404(client, db_session):
    response = client.get('/api/products/9999')

    assert response.status_code == 404


def test_session_lifecycle(client, db_session, terminal):
    response = client.post('/api/sessions', json={'terminal_id': terminal.id, 'opening_cash_cents': 50000})
    assert response.status_code == 201
    session_id = response.json['session']['id']

    response = client.post('/api/sessions', json={'terminal_id': terminal.id, 'opening_cash_cents': 0})
    assert response.status_code == 409

    response = client.post(f'/api/sessions/{session_id}/close', json={'counted_cash_cents': 50000})
    assert response.status_code == 200
    assert response.json['session']['cash_difference_cents'] == 0

    response = client.post(f'/api/sessions/{session_id}/close', json={'counted_cash_cents': 50000})
    assert response.status_code == 409


def test_checkout_endpoint(client, db_session, threshold, open_session, ring):
    response = client.post('/api/checkout', json={
        'items': [{'product_id': ring.id, 'quantity': 2}],
        'payment_method': 'cash',
        'amount_tendered_cents': 30000,
        'session_id': open_session.id,
        'actor': 'cashier',
    })

    assert response.status_code == 201
    body = response.json
    assert body['order']['total_cents'] == 20000
    assert body['transaction']['change_given_cents'] == 10000
    assert body['receipt']['lines'][0]['sku'] == 'SKU-1'
    assert body['pricing']['is_wholesale'] is False

    db.session.expire_all()
    assert db.session.get(Product, ring.id).total_stock == 28
    assert db.session.get(PosSession, open_session.id).total_transactions == 1


def test_checkout_rejects_non_integer_tender(client, db_session, threshold, open_session, ring):
    response = client.post('/api/checkout', json={
        'items': [{'product_id': ring.id, 'quantity': 2}],
        'payment_method': 'cash',
        'amount_tendered_cents': '20000',
        'session_id': open_session.id,
    })

    assert response.status_code == 400
    assert response.json['kind'] == 'ValidationError'
    db.session.expire_all()
    assert db.session.get(Product, ring.id).total_stock == 30


def test_checkout_insufficient_credit_is_409(client, db_session, threshold, open_session, ring):
    customer = Customer(name="Tight", credit_limit_cents=10000, credit_used_cents=9000, credit_status="active")
    db_session.add(customer)
    db_session.commit()

    response = client.post('/api/checkout', json={
        'items': [{'product_id': ring.id, 'quantity': 1}],
        'payment_method': 'credit',
        'customer_id': customer.id,
        'session_id': open_session.id,
    })

    assert response.status_code == 409
    assert response.json['kind'] == 'InsufficientCredit'
    db.session.expire_all()
    assert db.session.get(Customer, customer.id).credit_used_cents == 9000


def test_checkout_preview(client, db_session, threshold, necklace):
    response = client.post('/api/checkout/preview', json={
        'items': [{'product_id': necklace.id, 'quantity': 7}],
    })

    assert response.status_code == 200
    assert response.json['pricing']['is_wholesale'] is True
    assert response.json['pricing']['total_cents'] == 7 * 40000


def test_web_order_flow(client, db_session, threshold, open_session, ring):
    response = client.post('/api/orders/web', json={
        'items': [{'product_id': ring.id, 'quantity': 1}],
        'delivery_method': 'pickup',
    })
    assert response.status_code == 201
    order_id = response.json['order']['id']

    response = client.get('/api/orders/web/pending')
    assert [o['id'] for o in response.json['orders']] == [order_id]

    response = client.post(f'/api/orders/{order_id}/paid')
    assert response.json['order']['status'] == 'paid'

    claim = client.post(f'/api/orders/{order_id}/claim').json
    response = client.post('/api/checkout', json={
        'items': claim['cart'],
        'payment_method': 'card',
        'order_id': order_id,
        'session_id': open_session.id,
    })
    assert response.status_code == 201

    response = client.post('/api/checkout', json={
        'items': claim['cart'],
        'payment_method': 'card',
        'order_id': order_id,
        'session_id': open_session.id,
    })
    assert response.status_code == 409

    response = client.post(f'/api/orders/{order_id}/status', json={'status': 'processing'})
    assert response.json['order']['status'] == 'processing'


def test_credit_endpoints(client, db_session, credit_customer):
    response = client.post(f'/api/customers/{credit_customer.id}/credit', json={
        'transaction_type': 'adjustment', 'amount_cents': 5000, 'notes': 'opening balance',
    })
    assert response.status_code == 201
    assert response.json['summary']['credit_used_cents'] == 5000

    response = client.post(f'/api/customers/{credit_customer.id}/credit', json={
        'transaction_type': 'payment', 'amount_cents': 6000,
    })
    assert response.status_code == 400

    response = client.get(f'/api/customers/{credit_customer.id}/credit')
    assert len(response.json['transactions']) == 1

    response = client.get('/api/credit/stats')
    assert response.json['total_used_cents'] == 5000


def test_threshold_setting(client, db_session):
    response = client.get('/api/settings/wholesale-threshold')
    assert response.json == {'threshold_cents': 300000, 'is_active': True}

    response = client.put('/api/settings/wholesale-threshold', json={'amount': 2500, 'actor': 'admin'})
    assert response.status_code == 200

    response = client.get('/api/settings/wholesale-threshold')
    assert response.json['threshold_cents'] == 250000
