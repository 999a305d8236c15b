"""
Till session tests: open/close lifecycle and cash reconciliation.
"""

import pytest

from backoffice.services import register_service, checkout_service
from backoffice.services.errors import SessionError, ValidationError


def test_open_session_starts_with_zero_totals(db_session, terminal):
    session = register_service.open_session(terminal.id, 100000, "cashier")

    assert session.status == register_service.SESSION_OPEN
    assert session.session_number == "SES-000001"
    assert session.total_sales_cents == 0
    assert session.total_transactions == 0


def test_one_open_session_per_terminal(db_session, open_session, terminal):
    with pytest.raises(SessionError):
        register_service.open_session(terminal.id, 0, "cashier")


def test_negative_opening_cash_rejected(db_session, terminal):
    with pytest.raises(ValidationError):
        register_service.open_session(terminal.id, -1, "cashier")


def test_inactive_terminal_cannot_open(db_session, terminal):
    register_service.deactivate_terminal(terminal.id)

    with pytest.raises(SessionError):
        register_service.open_session(terminal.id, 0, "cashier")


def test_cash_reconciliation_balances(db_session, threshold, open_session, ring, necklace):
    # $200 and $300 in cash on a $1000 float
    checkout_service.checkout(
        [{"product_id": ring.id, "quantity": 2}],
        payment_method="cash",
        amount_tendered_cents=20000,
        session_id=open_session.id,
    )
    checkout_service.checkout(
        [{"product_id": ring.id, "quantity": 3}],
        payment_method="cash",
        amount_tendered_cents=50000,
        session_id=open_session.id,
    )

    closed = register_service.close_session(open_session.id, 150000, "cashier")

    assert closed.expected_cash_cents == 150000
    assert closed.cash_difference_cents == 0
    assert closed.total_sales_cents == 50000
    assert closed.total_transactions == 2
    assert closed.status == register_service.SESSION_CLOSED


def test_non_cash_sales_do_not_reach_the_drawer(db_session, threshold, open_session, ring):
    checkout_service.checkout(
        [{"product_id": ring.id, "quantity": 1}],
        payment_method="card",
        session_id=open_session.id,
        payment_reference="AUTH-1",
    )

    reconciliation = register_service.calculate_cash_reconciliation(open_session.id)

    assert reconciliation["expected_cash_cents"] == 100000
    assert reconciliation["by_method"]["card"] == {"total_cents": 10000, "count": 1}


def test_close_records_shortage(db_session, open_session):
    closed = register_service.close_session(open_session.id, 95000, "cashier", "short 50")

    assert closed.cash_difference_cents == -5000


def test_closed_session_is_immutable(db_session, open_session):
    register_service.close_session(open_session.id, 100000, "cashier")

    with pytest.raises(SessionError):
        register_service.close_session(open_session.id, 100000, "cashier")
    with pytest.raises(SessionError):
        register_service.record_sale(open_session.id, 100)


def test_session_summary(db_session, open_session):
    summary = register_service.get_session_summary(open_session.id)

    assert summary["is_closed"] is False
    assert summary["transactions_count"] == 0
    assert summary["reconciliation"]["expected_cash_cents"] == 100000
