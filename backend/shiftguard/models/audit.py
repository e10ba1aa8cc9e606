from __future__ import annotations

from ..extensions import db
from ..time_utils import now_ms


class AuditEvent(db.Model):
    """
    Append-only audit trail for shift-core domain events.

    Written inside the same DB transaction as the event it records.
    occurred_at is business time; created_at is system time.
    """
    __tablename__ = "audit_events"
    __table_args__ = (
        db.Index("ix_audit_events_entity", "entity_type", "entity_id"),
        db.Index("ix_audit_events_business_occurred", "business_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    event_type = db.Column(db.String(64), nullable=False, index=True)
    entity_type = db.Column(db.String(64), nullable=False)
    entity_id = db.Column(db.Integer, nullable=False)
    actor_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    shift_id = db.Column(db.Integer, nullable=True, index=True)
    occurred_at = db.Column(db.BigInteger, nullable=False)
    note = db.Column(db.Text, nullable=True)
    payload = db.Column(db.JSON, nullable=True)
    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "business_id": self.business_id,
            "event_type": self.event_type,
            "entity_type": self.entity_type,
            "entity_id": self.entity_id,
            "actor_user_id": self.actor_user_id,
            "shift_id": self.shift_id,
            "occurred_at": self.occurred_at,
            "note": self.note,
            "payload": self.payload,
        }
