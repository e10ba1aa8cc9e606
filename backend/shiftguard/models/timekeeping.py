from __future__ import annotations

from ..extensions import db
from ..money import from_cents
from ..time_utils import now_ms, to_utc_z

CLOCK_IN = "in"
CLOCK_OUT = "out"
CLOCK_EVENT_TYPES = (CLOCK_IN, CLOCK_OUT)
CLOCK_METHODS = ("login", "manual", "auto", "manager")
CLOCK_EVENT_STATUSES = ("pending", "confirmed", "disputed")

SHIFT_ACTIVE = "active"
SHIFT_ENDED = "ended"
SHIFT_PENDING_REVIEW = "pending_review"

BREAK_TYPES = ("meal", "rest", "other")
BREAK_SCHEDULED = "scheduled"
BREAK_ACTIVE = "active"
BREAK_COMPLETED = "completed"
BREAK_CANCELLED = "cancelled"
BREAK_MISSED = "missed"

SCHEDULE_STATUSES = ("upcoming", "active", "completed", "missed")


def _hours(seconds: int | None) -> float | None:
    if seconds is None:
        return None
    return seconds / 3600


def _round_hours(seconds: int | None) -> float | None:
    hours = _hours(seconds)
    return round(hours, 2) if hours is not None else None


class Schedule(db.Model):
    """
    Planned work window for a user. Read by the aggregator to link a
    clock-in to its schedule and by the validator for tardiness.
    """
    __tablename__ = "schedules"
    __table_args__ = (
        db.Index("ix_schedules_user_start", "user_id", "start_time"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)

    start_time = db.Column(db.BigInteger, nullable=False)
    end_time = db.Column(db.BigInteger, nullable=False)
    status = db.Column(db.String(16), nullable=False, default="upcoming")
    assigned_register = db.Column(db.String(64), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    user = db.relationship("User", backref=db.backref("schedules", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_id": self.business_id,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "status": self.status,
            "assigned_register": self.assigned_register,
            "notes": self.notes,
        }


class ClockEvent(db.Model):
    """
    Immutable clock-in / clock-out fact.

    APPEND-ONLY: events are never deleted and never edited except for a
    status transition. Time corrections link to an event instead of
    rewriting it.
    """
    __tablename__ = "clock_events"
    __table_args__ = (
        db.Index("ix_clock_events_user_timestamp", "user_id", "timestamp"),
        db.Index("ix_clock_events_terminal_timestamp", "terminal_id", "timestamp"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    terminal_id = db.Column(db.String(64), nullable=False)
    schedule_id = db.Column(db.Integer, db.ForeignKey("schedules.id"), nullable=True)

    event_type = db.Column("type", db.String(8), nullable=False)
    timestamp = db.Column(db.BigInteger, nullable=False)
    method = db.Column(db.String(16), nullable=False, default="manual")
    status = db.Column(db.String(16), nullable=False, default="confirmed")
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_id": self.business_id,
            "terminal_id": self.terminal_id,
            "schedule_id": self.schedule_id,
            "type": self.event_type,
            "timestamp": self.timestamp,
            "method": self.method,
            "status": self.status,
            "notes": self.notes,
        }


class Shift(db.Model):
    """
    Aggregate root for one continuous work period.

    LIFECYCLE:
    - active: clock-in recorded, no clock-out yet
    - ended: clock-out recorded, validation did not require review
    - pending_review: clock-out recorded, validation requires a manager

    DERIVED: every duration and total is a cached derivation of clock
    events, breaks and transactions. Durations are whole seconds, money is
    cents; hours only appear at presentation.
    """
    __tablename__ = "shifts"
    __table_args__ = (
        # One open shift per user: a second concurrent clock-in fails on commit
        db.Index(
            "uq_shifts_user_active",
            "user_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        db.Index("ix_shifts_user_started", "user_id", "started_at"),
        db.Index("ix_shifts_business_status", "business_id", "status"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    business_id = db.Column(db.Integer, db.ForeignKey("businesses.id"), nullable=False, index=True)
    schedule_id = db.Column(db.Integer, db.ForeignKey("schedules.id"), nullable=True)
    terminal_id = db.Column(db.String(64), nullable=True)

    clock_in_id = db.Column(
        db.Integer, db.ForeignKey("clock_events.id", ondelete="RESTRICT"), nullable=False, unique=True
    )
    clock_out_id = db.Column(
        db.Integer, db.ForeignKey("clock_events.id", ondelete="RESTRICT"), nullable=True, unique=True
    )

    status = db.Column(db.String(16), nullable=False, default=SHIFT_ACTIVE, index=True)

    # Cached clock timestamps (epoch ms), refreshed from the clock events
    started_at = db.Column(db.BigInteger, nullable=False)
    ended_at = db.Column(db.BigInteger, nullable=True)

    # NULL for non-POS shifts (no cash drawer)
    starting_cash_cents = db.Column(db.Integer, nullable=True)

    total_sales_cents = db.Column(db.Integer, nullable=False, default=0)
    total_transactions = db.Column(db.Integer, nullable=False, default=0)
    total_refunds_cents = db.Column(db.Integer, nullable=False, default=0)
    total_voids_cents = db.Column(db.Integer, nullable=False, default=0)

    total_seconds = db.Column(db.Integer, nullable=True)
    regular_seconds = db.Column(db.Integer, nullable=True)
    overtime_seconds = db.Column(db.Integer, nullable=True)
    break_duration_seconds = db.Column(db.Integer, nullable=False, default=0)

    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)
    updated_at = db.Column(db.BigInteger, nullable=False, default=now_ms, onupdate=now_ms)

    user = db.relationship("User", backref=db.backref("shifts", lazy=True))
    schedule = db.relationship("Schedule")
    clock_in = db.relationship("ClockEvent", foreign_keys=[clock_in_id])
    clock_out = db.relationship("ClockEvent", foreign_keys=[clock_out_id])
    breaks = db.relationship(
        "Break",
        back_populates="shift",
        cascade="all, delete-orphan",
        order_by="Break.start_time",
        lazy=True,
    )
    cash_counts = db.relationship(
        "CashDrawerCount",
        back_populates="shift",
        cascade="all, delete-orphan",
        order_by="CashDrawerCount.timestamp",
        lazy=True,
    )

    @property
    def is_pos_shift(self) -> bool:
        return self.starting_cash_cents is not None

    @property
    def total_hours(self) -> float | None:
        return _hours(self.total_seconds)

    @property
    def regular_hours(self) -> float | None:
        return _hours(self.regular_seconds)

    @property
    def overtime_hours(self) -> float | None:
        return _hours(self.overtime_seconds)

    def __repr__(self) -> str:
        return f"<Shift id={self.id} user_id={self.user_id} status={self.status}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "business_id": self.business_id,
            "schedule_id": self.schedule_id,
            "terminal_id": self.terminal_id,
            "clock_in_id": self.clock_in_id,
            "clock_out_id": self.clock_out_id,
            "status": self.status,
            "started_at": self.started_at,
            "ended_at": self.ended_at,
            "starting_cash": from_cents(self.starting_cash_cents),
            "total_sales": from_cents(self.total_sales_cents),
            "total_transactions": self.total_transactions,
            "total_refunds": from_cents(self.total_refunds_cents),
            "total_voids": from_cents(self.total_voids_cents),
            "total_hours": _round_hours(self.total_seconds),
            "regular_hours": _round_hours(self.regular_seconds),
            "overtime_hours": _round_hours(self.overtime_seconds),
            "break_duration_seconds": self.break_duration_seconds,
            "notes": self.notes,
            "updated_at": to_utc_z(self.updated_at),
        }


class Break(db.Model):
    """
    Rest or meal period inside a shift.

    At most one active break per shift. A required break that was never
    taken is recorded as a status=missed marker row (is_missed=True) when
    the shift closes.
    """
    __tablename__ = "breaks"
    __table_args__ = (
        db.Index("ix_breaks_shift_status", "shift_id", "status"),
        # At most one active break per shift
        db.Index(
            "uq_breaks_shift_active",
            "shift_id",
            unique=True,
            sqlite_where=db.text("status = 'active'"),
            postgresql_where=db.text("status = 'active'"),
        ),
        db.CheckConstraint(
            "end_time IS NULL OR end_time > start_time", name="ck_breaks_end_after_start"
        ),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    shift_id = db.Column(db.Integer, db.ForeignKey("shifts.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)

    break_type = db.Column("type", db.String(16), nullable=False, default="rest")
    start_time = db.Column(db.BigInteger, nullable=False)
    end_time = db.Column(db.BigInteger, nullable=True)
    duration_seconds = db.Column(db.Integer, nullable=True)

    is_paid = db.Column(db.Boolean, nullable=False, default=False)
    status = db.Column(db.String(16), nullable=False, default=BREAK_ACTIVE)
    is_required = db.Column(db.Boolean, nullable=False, default=False)
    minimum_duration_seconds = db.Column(db.Integer, nullable=True)
    is_missed = db.Column(db.Boolean, nullable=False, default=False)
    is_short = db.Column(db.Boolean, nullable=False, default=False)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.BigInteger, nullable=False, default=now_ms)

    shift = db.relationship("Shift", back_populates="breaks")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "shift_id": self.shift_id,
            "user_id": self.user_id,
            "type": self.break_type,
            "start_time": self.start_time,
            "end_time": self.end_time,
            "duration_seconds": self.duration_seconds,
            "is_paid": self.is_paid,
            "status": self.status,
            "is_required": self.is_required,
            "minimum_duration_seconds": self.minimum_duration_seconds,
            "is_missed": self.is_missed,
            "is_short": self.is_short,
            "notes": self.notes,
        }
