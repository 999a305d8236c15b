from __future__ import annotations

from ..extensions import db
from backoffice.time_utils import to_utc_z


class BusinessRule(db.Model):
    """
    Configurable business rule keyed by rule_key.

    rule_value is a JSON document; the wholesale threshold stores
    {"amount": <MXN>}.
    """
    __tablename__ = "business_rules"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    rule_key = db.Column(db.String(64), nullable=False, unique=True)
    rule_name = db.Column(db.String(128), nullable=False)
    rule_value = db.Column(db.JSON, nullable=False, default=dict)
    description = db.Column(db.Text, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    updated_by = db.Column(db.String(128), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "rule_key": self.rule_key,
            "rule_name": self.rule_name,
            "rule_value": self.rule_value,
            "description": self.description,
            "is_active": self.is_active,
            "updated_by": self.updated_by,
            "updated_at": to_utc_z(self.updated_at),
        }


class DocumentSequence(db.Model):
    """
    Atomic server-side numbering for orders, sessions and transactions.

    Replaces "highest number seen + 1" computed from a client-held list,
    which collides under concurrent checkouts.
    """
    __tablename__ = "document_sequences"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, unique=True)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
