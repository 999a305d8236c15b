# Overview: Server-side document numbering for orders, sessions and POS transactions.

from __future__ import annotations

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence


ORDER_SEQUENCE = "ORDER"
SESSION_SEQUENCE = "SESSION"
TRANSACTION_SEQUENCE = "POS_TRANSACTION"


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_sequence_value(document_type: str, *, start: int = 1) -> int:
    """
    Atomically allocate the next number for a document type.

    The UPDATE ... SET next_number = next_number + 1 takes the row lock, so
    two checkouts can never receive the same number. The first call for a
    type seeds the row at `start`. Runs inside the caller's transaction.
    """
    if not document_type:
        raise DocumentSequenceError("document_type is required")

    stmt = (
        update(DocumentSequence)
        .where(DocumentSequence.document_type == document_type)
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if not result.rowcount:
        try:
            with db.session.begin_nested():
                db.session.add(DocumentSequence(document_type=document_type, next_number=start + 1))
            return start
        except IntegrityError:
            # Seeded by a concurrent writer; fall through to the increment.
            result = db.session.execute(stmt)
            if not result.rowcount:
                raise DocumentSequenceError(f"Sequence {document_type} could not be allocated")

    current = (
        db.session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type)
        .scalar()
    )
    return current - 1


def next_order_number() -> int:
    return next_sequence_value(ORDER_SEQUENCE, start=current_app.config.get("ORDER_NUMBER_START", 500))


def next_session_number() -> str:
    return f"SES-{next_sequence_value(SESSION_SEQUENCE):06d}"


def next_transaction_number() -> str:
    return f"TXN-{next_sequence_value(TRANSACTION_SEQUENCE):06d}"
