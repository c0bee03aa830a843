from __future__ import annotations

import json

from ..extensions import db
from gemledger.time_utils import to_utc_z


class DocumentSequence(db.Model):
    """
    Atomic document counters, one row per (document_type, period).

    WHY: Numbers like INV-2026-0001 must never be handed out twice, even
    when two invoices are created at the same moment. period is the
    calendar year for year-scoped sequences.
    """
    __tablename__ = "document_sequences"
    __table_args__ = (
        db.UniqueConstraint("document_type", "period", name="uq_doc_sequences_type_period"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    document_type = db.Column(db.String(32), nullable=False, index=True)
    period = db.Column(db.Integer, nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "document_type": self.document_type,
            "period": self.period,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }


class ActivityLog(db.Model):
    """
    Append-only audit trail of domain actions.

    Rows are written inside the same transaction as the change they describe
    and are never updated or deleted.
    """
    __tablename__ = "activity_logs"
    __table_args__ = (
        db.Index("ix_activity_logs_entity", "entity_type", "entity_id"),
        db.Index("ix_activity_logs_action_created", "action_type", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    entity_type = db.Column(db.String(32), nullable=False)  # Invoice, Sale, Quotation, ApprovalRule
    entity_id = db.Column(db.String(64), nullable=False)
    entity_identifier = db.Column(db.String(64), nullable=True)  # human-readable number
    action_type = db.Column(db.String(32), nullable=False)

    old_data = db.Column(db.Text, nullable=True)
    new_data = db.Column(db.Text, nullable=True)
    field_changes = db.Column(db.Text, nullable=True)

    user_id = db.Column(db.String(64), nullable=False)
    user_name = db.Column(db.String(255), nullable=True)
    source = db.Column(db.String(16), nullable=False, default="WEB")  # WEB, SYSTEM, CRON, WEBHOOK

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "entity_identifier": self.entity_identifier,
            "action_type": self.action_type,
            "old_data": json.loads(self.old_data) if self.old_data else None,
            "new_data": json.loads(self.new_data) if self.new_data else None,
            "field_changes": json.loads(self.field_changes) if self.field_changes else None,
            "user_id": self.user_id,
            "user_name": self.user_name,
            "source": self.source,
            "created_at": to_utc_z(self.created_at),
        }
