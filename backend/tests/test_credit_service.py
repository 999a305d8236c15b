"""
Credit ledger tests: sign rules, preconditions, cached balance.
"""

import pytest

from backoffice.models import CreditTransaction
from backoffice.services import credit_service, customer_service
from backoffice.services.errors import CreditNotActive, InsufficientCredit, ValidationError


def test_charge_moves_balance_and_records_before_after(db_session, credit_customer):
    txn = credit_service.register_credit_transaction(
        credit_customer.id, credit_service.TXN_CHARGE, 30000, reference="Order #500", actor="cashier"
    )

    assert txn.previous_balance_cents == 0
    assert txn.new_balance_cents == 30000
    assert credit_customer.credit_used_cents == 30000
    assert credit_customer.credit_available_cents == 70000


def test_charge_over_available_is_rejected_without_writes(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 90000)

    with pytest.raises(InsufficientCredit) as exc:
        credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 15000)
    db_session.rollback()

    assert exc.value.details["available_cents"] == 10000
    assert credit_customer.credit_used_cents == 90000
    assert db_session.query(CreditTransaction).filter_by(customer_id=credit_customer.id).count() == 1


@pytest.mark.parametrize("status", ["none", "suspended", "blocked"])
def test_charge_requires_active_status(db_session, status):
    customer = customer_service.create_customer(name="Inactive", credit_limit_cents=100000)
    customer.credit_status = status
    db_session.commit()

    with pytest.raises(CreditNotActive):
        credit_service.register_credit_transaction(customer.id, credit_service.TXN_CHARGE, 100)


def test_payment_reduces_balance(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 50000)

    txn = credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_PAYMENT, 20000)

    assert txn.new_balance_cents == 30000
    assert credit_customer.credit_used_cents == 30000


def test_payment_cannot_exceed_balance(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 10000)

    with pytest.raises(ValidationError):
        credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_PAYMENT, 10001)


def test_adjustment_is_signed(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 10000)

    up = credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_ADJUSTMENT, 5000)
    down = credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_ADJUSTMENT, -12000)

    assert up.new_balance_cents == 15000
    assert down.new_balance_cents == 3000

    with pytest.raises(ValidationError):
        credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_ADJUSTMENT, -5000)


def test_limit_change_keeps_balance_and_updates_status(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 10000)

    txn = credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_LIMIT_CHANGE, 250000)

    assert txn.previous_limit_cents == 100000
    assert txn.new_limit_cents == 250000
    assert txn.new_balance_cents == txn.previous_balance_cents == 10000
    assert credit_customer.credit_limit_cents == 250000

    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_LIMIT_CHANGE, 0)
    assert credit_customer.credit_status == customer_service.CREDIT_NONE


def test_limit_change_activates_customer_without_credit(db_session):
    customer = customer_service.create_customer(name="New credit")
    assert customer.credit_status == customer_service.CREDIT_NONE

    credit_service.register_credit_transaction(customer.id, credit_service.TXN_LIMIT_CHANGE, 50000)

    assert customer.credit_status == customer_service.CREDIT_ACTIVE


def test_ledger_matches_cached_balance(db_session, credit_customer):
    for kind, amount in [
        (credit_service.TXN_CHARGE, 40000),
        (credit_service.TXN_PAYMENT, 15000),
        (credit_service.TXN_ADJUSTMENT, -5000),
        (credit_service.TXN_LIMIT_CHANGE, 200000),
        (credit_service.TXN_CHARGE, 1000),
    ]:
        credit_service.register_credit_transaction(credit_customer.id, kind, amount)

    assert credit_service.ledger_balance(credit_customer.id) == credit_customer.credit_used_cents == 21000


def test_history_newest_first(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 1000)
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_PAYMENT, 500)

    history = credit_service.get_credit_history(credit_customer.id)

    assert [t.transaction_type for t in history] == ["payment", "charge"]


def test_summary_and_stats(db_session, credit_customer):
    credit_service.register_credit_transaction(credit_customer.id, credit_service.TXN_CHARGE, 25000)

    summary = credit_service.credit_summary(credit_customer.id)
    stats = credit_service.credit_stats()

    assert summary["credit_available_cents"] == 75000
    assert summary["utilization_percent"] == 25
    assert stats["customers_with_credit"] == 1
    assert stats["total_used_cents"] == 25000
    assert stats["by_status"] == {"active": 1}


def test_new_customer_with_zero_limit_has_no_credit(db_session):
    customer = customer_service.create_customer(name="Cash only", credit_limit_cents=0, credit_status="active")

    assert customer.credit_status == customer_service.CREDIT_NONE
    assert customer.credit_used_cents == 0
