# Overview: Categorized business errors raised by the service layer.

from __future__ import annotations


class PosError(Exception):
    """Base for every categorized point-of-sale error."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {"error": self.message, "kind": type(self).__name__, "details": self.details}


class ValidationError(PosError):
    """Input rejected before any mutation (empty cart, bad quantity, missing field)."""


class NotFoundError(PosError):
    status_code = 404


class CreditNotActive(PosError):
    """Customer credit is not in 'active' status."""
    status_code = 409


class InsufficientCredit(PosError):
    """Charge exceeds the customer's available credit."""
    status_code = 409


class InsufficientCashTendered(PosError):
    status_code = 400


class InsufficientStock(PosError):
    """A location cannot cover its share of a deduction (strict mode only)."""
    status_code = 409


class InvalidTransition(PosError):
    """Order status move not allowed from the current state."""
    status_code = 409


class SessionError(PosError):
    """Till session rule violated (already open, already closed, no session)."""
    status_code = 409


class ConcurrencyConflict(PosError):
    """Lost update detected and the retry budget is exhausted."""
    status_code = 409


class PartialCommitError(PosError):
    """
    A checkout step after inventory deduction failed.

    The checkout unit of work is rolled back as a whole, so rolled_back is
    True whenever this is raised by the checkout service.
    """
    status_code = 500

    def __init__(self, message: str, *, step: str, rolled_back: bool = True, details: dict | None = None):
        merged = {"step": step, "rolled_back": rolled_back}
        merged.update(details or {})
        super().__init__(message, merged)
        self.step = step
        self.rolled_back = rolled_back
