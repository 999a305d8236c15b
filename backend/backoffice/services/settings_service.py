# Overview: Business rules store; reads and writes the wholesale threshold rule.

from __future__ import annotations

from decimal import Decimal, InvalidOperation, ROUND_HALF_UP

from flask import current_app

from ..extensions import db
from ..models import BusinessRule
from .errors import ValidationError


WHOLESALE_THRESHOLD_KEY = "wholesale_threshold"


def amount_to_cents(amount) -> int:
    """Convert an MXN amount (int, float, str or Decimal) to integer cents, half-up."""
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"Invalid amount: {amount!r}")
    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def get_rule(rule_key: str) -> BusinessRule | None:
    return db.session.query(BusinessRule).filter_by(rule_key=rule_key).first()


def get_wholesale_threshold() -> tuple[int, bool]:
    """
    Read the wholesale threshold at checkout time.

    Returns (threshold_cents, is_active). When the rule is missing the
    configured default is returned as active; when the rule exists but is
    inactive the caller must price everything at retail.
    """
    rule = get_rule(WHOLESALE_THRESHOLD_KEY)
    if rule is None:
        default_amount = current_app.config.get("WHOLESALE_THRESHOLD_DEFAULT", 3000)
        return amount_to_cents(default_amount), True

    amount = (rule.rule_value or {}).get("amount")
    if amount is None:
        raise ValidationError("wholesale_threshold rule has no amount")
    return amount_to_cents(amount), bool(rule.is_active)


def set_wholesale_threshold(amount, *, is_active: bool = True, actor: str | None = None, commit: bool = True) -> BusinessRule:
    """Create or update the wholesale threshold rule (amount in MXN)."""
    if amount_to_cents(amount) < 0:
        raise ValidationError("Threshold cannot be negative")

    rule = get_rule(WHOLESALE_THRESHOLD_KEY)
    if rule is None:
        rule = BusinessRule(
            rule_key=WHOLESALE_THRESHOLD_KEY,
            rule_name="Wholesale threshold",
            description="Order subtotal (MXN) at or above which every line re-prices at wholesale",
        )
        db.session.add(rule)

    # Reassign so the JSON column registers the change
    rule.rule_value = {"amount": amount if isinstance(amount, (int, float)) else str(amount)}
    rule.is_active = is_active
    rule.updated_by = actor

    if commit:
        db.session.commit()
    else:
        db.session.flush()
    return rule
