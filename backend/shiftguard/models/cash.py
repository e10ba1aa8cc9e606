from __future__ import annotations

from ..extensions import db
from ..money import from_cents
from ..time_utils import now_ms, to_utc_z

COUNT_MID_SHIFT = "mid-shift"
COUNT_END_SHIFT = "end-shift"
COUNT_TYPES = (COUNT_MID_SHIFT, COUNT_END_SHIFT)


class CashDrawerCount(db.Model):
    """
    Point-in-time cash count for a POS shift.

    IMMUTABLE: amounts never change once recorded. The only mutation is the
    manager approval of a count whose variance exceeded the threshold.
    At most one end-shift count per shift (partial unique index).
    """
    __tablename__ = "cash_drawer_counts"
    __table_args__ = (
        db.Index(
            "uq_cash_drawer_counts_end_shift",
            "shift_id",
            unique=True,
            sqlite_where=db.text("count_type = 'end-shift'"),
            postgresql_where=db.text("count_type = 'end-shift'"),
        ),
        db.Index("ix_cash_drawer_counts_timestamp", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    count_type = db.Column(db.String(16), nullable=False)

    # All amounts in cents; variance = counted - expected
    expected_cents = db.Column(db.Integer, nullable=False)
    counted_cents = db.Column(db.Integer, nullable=False)
    variance_cents = db.Column(db.Integer, nullable=False)

    notes = db.Column(db.Text, nullable=True)
    counted_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    timestamp = db.Column(db.BigInteger, nullable=False)

    # Above-threshold counts need a manager before they are final
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    approved_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=True)
    approved_at = db.Column(db.BigInteger, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    shift = db.relationship("Shift", back_populates="cash_counts")
    counted_by = db.relationship("User", foreign_keys=[counted_by_user_id])
    approved_by = db.relationship("User", foreign_keys=[approved_by_user_id])

    @property
    def is_approved(self) -> bool:
        return self.approved_by_user_id is not None

    @property
    def is_final(self) -> bool:
        return not self.requires_approval or self.is_approved

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "business_id": self.business_id,
            "count_type": self.count_type,
            "expected_amount": from_cents(self.expected_cents),
            "counted_amount": from_cents(self.counted_cents),
            "variance": from_cents(self.variance_cents),
            "notes": self.notes,
            "counted_by": self.counted_by_user_id,
            "timestamp": self.timestamp,
            "requires_approval": self.requires_approval,
            "approved_by": self.approved_by_user_id,
            "approved_at": self.approved_at,
            "is_final": self.is_final,
            "created_at": to_utc_z(self.created_at),
        }
