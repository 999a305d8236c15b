"""
Pytest fixtures for back office tests.

Provides test database setup, catalog/customer/till fixtures, and test client.
"""

import pytest

from backoffice import create_app
from backoffice.extensions import db
from backoffice.models import Product, Customer, PosTerminal
from backoffice.services import settings_service, register_service


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'STRICT_LOCATION_STOCK': False,
        'WHOLESALE_THRESHOLD_DEFAULT': 3000,
        'ORDER_NUMBER_START': 500,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()
        app.config['STRICT_LOCATION_STOCK'] = False


@pytest.fixture(scope='function')
def threshold(db_session):
    """Wholesale threshold rule at 3000 MXN."""
    return settings_service.set_wholesale_threshold(3000, actor="test")


def make_product(db_session, sku, retail, wholesale, a=10, b=10, c=10, min_alert=5):
    product = Product(
        sku=sku,
        name=f"Product {sku}",
        retail_price_cents=retail,
        wholesale_price_cents=wholesale,
        min_stock_alert=min_alert,
    )
    product.set_location_stock(a, b, c)
    db_session.add(product)
    db_session.commit()
    return product


@pytest.fixture(scope='function')
def ring(db_session):
    """Retail $100, wholesale $80."""
    return make_product(db_session, "SKU-1", 10000, 8000)


@pytest.fixture(scope='function')
def necklace(db_session):
    """Retail $500, wholesale $400."""
    return make_product(db_session, "SKU-2", 50000, 40000, a=20, b=20, c=20)


@pytest.fixture(scope='function')
def credit_customer(db_session):
    """Active credit: limit $1000, nothing used."""
    customer = Customer(
        name="Laura Ortiz",
        phone="5551234567",
        credit_limit_cents=100000,
        credit_used_cents=0,
        credit_status="active",
    )
    db_session.add(customer)
    db_session.commit()
    return customer


@pytest.fixture(scope='function')
def terminal(db_session):
    terminal = PosTerminal(terminal_number="T-01", name="Main counter", location="Store", is_active=True)
    db_session.add(terminal)
    db_session.commit()
    return terminal


@pytest.fixture(scope='function')
def open_session(db_session, terminal):
    """Till session opened with $1000 in the drawer."""
    return register_service.open_session(terminal.id, 100000, "cashier")
