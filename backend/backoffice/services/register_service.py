# Overview: Till sessions; terminals, open/close, running totals and cash reconciliation.

"""
Till Session Service

WHY: Track POS terminals, cashier till sessions, and cash accountability.

DESIGN PRINCIPLES:
- One open session per terminal at a time
- Sessions are immutable once closed
- Running totals (total_sales, total_transactions) grow once per completed checkout
- Reconciliation: expected cash = opening cash + cash-method sales of the session;
  card, transfer and credit sales never reach the drawer
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import PosTerminal, PosSession, PosTransaction
from backoffice.time_utils import utcnow
from .concurrency import lock_for_update, finish
from .document_service import next_session_number
from .errors import ValidationError, NotFoundError, SessionError


SESSION_OPEN = "open"
SESSION_CLOSED = "closed"

CASH_METHOD = "cash"


# =============================================================================
# TERMINAL MANAGEMENT
# =============================================================================

def create_terminal(
    terminal_number: str,
    name: str,
    location: str | None = None,
    *,
    commit: bool = True,
) -> PosTerminal:
    """
    Create a new POS terminal.

    Terminals must exist before a till session can be opened on them.
    """
    if not terminal_number or not name:
        raise ValidationError("terminal_number and name required")

    existing = db.session.query(PosTerminal).filter_by(terminal_number=terminal_number).first()
    if existing:
        raise ValidationError(f"Terminal '{terminal_number}' already exists")

    terminal = PosTerminal(
        terminal_number=terminal_number,
        name=name,
        location=location,
        is_active=True,
    )
    db.session.add(terminal)
    finish(commit)
    return terminal


def get_terminal(terminal_id: int) -> PosTerminal:
    terminal = db.session.get(PosTerminal, terminal_id)
    if terminal is None:
        raise NotFoundError("Terminal not found", details={"terminal_id": terminal_id})
    return terminal


def list_terminals(include_inactive: bool = False) -> list[PosTerminal]:
    query = db.session.query(PosTerminal)
    if not include_inactive:
        query = query.filter_by(is_active=True)
    return query.order_by(PosTerminal.terminal_number).all()


def deactivate_terminal(terminal_id: int, *, commit: bool = True) -> PosTerminal:
    """
    Deactivate a terminal (soft delete).

    Inactive terminals cannot open new sessions.
    """
    terminal = get_terminal(terminal_id)

    if get_open_session(terminal_id):
        raise SessionError("Cannot deactivate terminal with an open session. Close it first.")

    terminal.is_active = False
    finish(commit)
    return terminal


# =============================================================================
# SESSION LIFECYCLE
# =============================================================================

def open_session(
    terminal_id: int,
    opening_cash_cents: int,
    actor: str,
    *,
    commit: bool = True,
) -> PosSession:
    """
    Open a till session on a terminal with zero running totals.

    Raises:
        SessionError: terminal inactive or already has an open session
        ValidationError: negative opening cash
    """
    if not isinstance(opening_cash_cents, int) or isinstance(opening_cash_cents, bool) or opening_cash_cents < 0:
        raise ValidationError("opening_cash_cents must be a non-negative integer")
    if not actor:
        raise ValidationError("actor required")

    terminal = lock_for_update(db.session.query(PosTerminal).filter_by(id=terminal_id)).first()
    if terminal is None:
        raise NotFoundError("Terminal not found", details={"terminal_id": terminal_id})
    if not terminal.is_active:
        raise SessionError("Cannot open a session on an inactive terminal")

    existing_open = get_open_session(terminal_id)
    if existing_open:
        raise SessionError(
            f"Terminal already has an open session ({existing_open.session_number})",
            details={"session_id": existing_open.id},
        )

    session = PosSession(
        terminal_id=terminal_id,
        session_number=next_session_number(),
        status=SESSION_OPEN,
        opened_by=actor,
        opened_at=utcnow(),
        opening_cash_cents=opening_cash_cents,
        total_sales_cents=0,
        total_transactions=0,
    )
    db.session.add(session)
    finish(commit)
    return session


def get_session(session_id: int, *, lock: bool = False) -> PosSession:
    query = db.session.query(PosSession).filter_by(id=session_id)
    if lock:
        query = lock_for_update(query)
    session = query.first()
    if session is None:
        raise NotFoundError("Session not found", details={"session_id": session_id})
    return session


def get_open_session(terminal_id: int) -> PosSession | None:
    """Get the currently open session for a terminal, if any."""
    return db.session.query(PosSession).filter_by(
        terminal_id=terminal_id,
        status=SESSION_OPEN,
    ).first()


def record_sale(session_id: int, amount_cents: int, *, commit: bool = True) -> PosSession:
    """
    Credit one completed checkout to the session's running totals.

    Called once per completed checkout and never retried on failure.
    """
    session = get_session(session_id, lock=True)
    if session.status != SESSION_OPEN:
        raise SessionError(
            f"Session {session.session_number} is closed",
            details={"session_id": session.id},
        )

    session.total_sales_cents = (session.total_sales_cents or 0) + amount_cents
    session.total_transactions = (session.total_transactions or 0) + 1
    finish(commit)
    return session


def calculate_cash_reconciliation(session_id: int) -> dict:
    """
    Expected drawer cash and per-method totals, without closing.

    expected_cash = opening_cash + sum(amount) of the session's cash
    transactions (amount already excludes change given).
    """
    session = get_session(session_id)

    rows = db.session.query(
        PosTransaction.payment_method,
        func.coalesce(func.sum(PosTransaction.amount_cents), 0),
        func.count(PosTransaction.id),
    ).filter(
        PosTransaction.session_id == session_id,
    ).group_by(PosTransaction.payment_method).all()

    by_method = {method: {"total_cents": int(total), "count": int(count)} for method, total, count in rows}
    cash_sales = by_method.get(CASH_METHOD, {}).get("total_cents", 0)

    return {
        "session_id": session.id,
        "opening_cash_cents": session.opening_cash_cents,
        "cash_sales_cents": cash_sales,
        "expected_cash_cents": session.opening_cash_cents + cash_sales,
        "by_method": by_method,
    }


def close_session(
    session_id: int,
    counted_cash_cents: int,
    actor: str,
    notes: str | None = None,
    *,
    commit: bool = True,
) -> PosSession:
    """
    Close a session and reconcile the drawer.

    IMMUTABLE: Once closed, the session cannot be reopened or modified.
    cash_difference = counted - expected (positive = over, negative = short).
    """
    if not isinstance(counted_cash_cents, int) or isinstance(counted_cash_cents, bool) or counted_cash_cents < 0:
        raise ValidationError("counted_cash_cents must be a non-negative integer")

    session = get_session(session_id, lock=True)
    if session.status != SESSION_OPEN:
        raise SessionError("Session already closed", details={"session_id": session.id})

    expected = calculate_cash_reconciliation(session_id)["expected_cash_cents"]
    difference = counted_cash_cents - expected

    session.status = SESSION_CLOSED
    session.closed_by = actor
    session.closed_at = utcnow()
    session.closing_cash_cents = counted_cash_cents
    session.expected_cash_cents = expected
    session.cash_difference_cents = difference
    session.notes = notes

    finish(commit)

    if difference:
        current_app.logger.info(
            "Session %s closed with cash difference %s cents", session.session_number, difference
        )
    return session


# =============================================================================
# REPORTING
# =============================================================================

def list_sessions(status: str | None = None, terminal_id: int | None = None, limit: int = 50) -> list[PosSession]:
    query = db.session.query(PosSession)
    if status:
        query = query.filter_by(status=status)
    if terminal_id:
        query = query.filter_by(terminal_id=terminal_id)
    return query.order_by(PosSession.opened_at.desc(), PosSession.id.desc()).limit(limit).all()


def get_session_transactions(session_id: int) -> list[PosTransaction]:
    return db.session.query(PosTransaction).filter_by(
        session_id=session_id
    ).order_by(PosTransaction.completed_at, PosTransaction.id).all()


def get_session_summary(session_id: int) -> dict:
    """
    Session details plus reconciliation figures.

    For a closed session the stored expected/difference values are returned;
    for an open one they are computed live.
    """
    session = get_session(session_id)
    reconciliation = calculate_cash_reconciliation(session_id)

    return {
        "session": session.to_dict(),
        "transactions_count": len(get_session_transactions(session_id)),
        "is_closed": session.status == SESSION_CLOSED,
        "reconciliation": reconciliation,
        "cash_difference_cents": session.cash_difference_cents,
    }
