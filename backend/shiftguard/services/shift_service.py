# Overview: Shift aggregate lifecycle; derives hours and sales totals from source rows.

"""
Shift Aggregator

WHY: A shift's hours, break time and sales totals are cached on the row for
reporting, but clock events, breaks and transactions are the source of truth.

DESIGN PRINCIPLES:
- Cached fields are a materialized view: every write path recomputes them
  through derive_shift_facts(), and recompute_shift() rebuilds them from
  scratch
- Internal math stays in whole seconds and cents; hours are presentation only
- Clock-out never fails because of business-rule findings; validation runs
  synchronously and only decides ended vs pending_review
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Break, ClockEvent, Role, Schedule, Shift, Transaction, User
from ..models.sales import TX_REFUND, TX_SALE, TX_VOID
from ..models.timekeeping import (
    BREAK_COMPLETED,
    SHIFT_ACTIVE,
    SHIFT_ENDED,
    SHIFT_PENDING_REVIEW,
)
from ..money import to_cents
from ..time_utils import elapsed_seconds, now_ms, utc_day_bounds
from .break_service import force_close_open_breaks, get_breaks
from .concurrency import lock_for_update, unit_of_work
from .errors import InvalidStateError, NotFoundError, ValidationError
from .policy import ShiftPolicy, current_policy

COMPLETED = "completed"


@dataclass(frozen=True)
class ShiftFacts:
    """Derived shift figures. Hours fields are None while the shift is open."""
    break_duration_seconds: int
    total_seconds: int | None
    regular_seconds: int | None
    overtime_seconds: int | None
    total_sales_cents: int
    total_transactions: int
    total_refunds_cents: int
    total_voids_cents: int


def resolve_shift_requirement(user: User, role: Role | None = None, default: bool | None = None) -> bool:
    """
    Decide whether a user's shifts are tracked.

    Precedence: explicit user override > role default > system default.
    """
    if user.shift_required is not None:
        return bool(user.shift_required)
    role = role if role is not None else user.role
    if role is not None and role.shift_required is not None:
        return bool(role.shift_required)
    if default is None:
        default = current_app.config.get("SHIFT_REQUIRED_DEFAULT", True)
    return bool(default)


def derive_shift_facts(
    clock_in_ms: int,
    clock_out_ms: int | None,
    breaks: Iterable[Break],
    transactions: Iterable[Transaction],
    standard_shift_seconds: int,
) -> ShiftFacts:
    """
    Pure derivation of every cached shift figure.

    total = (clock_out - clock_in) - completed break time
    regular = min(total, standard); overtime = max(0, total - standard)
    """
    break_seconds = sum(
        b.duration_seconds for b in breaks
        if b.status == BREAK_COMPLETED and b.duration_seconds
    )

    total = regular = overtime = None
    if clock_out_ms is not None:
        total = max(elapsed_seconds(clock_in_ms, clock_out_ms) - break_seconds, 0)
        regular = min(total, standard_shift_seconds)
        overtime = total - regular

    sales_cents = sales_count = refunds_cents = voids_cents = 0
    for tx in transactions:
        if tx.tx_type == TX_SALE and tx.status == COMPLETED:
            sales_cents += tx.total_cents
            sales_count += 1
        elif tx.tx_type == TX_REFUND:
            refunds_cents += abs(tx.total_cents)
        elif tx.tx_type == TX_VOID:
            voids_cents += abs(tx.total_cents)

    return ShiftFacts(
        break_duration_seconds=break_seconds,
        total_seconds=total,
        regular_seconds=regular,
        overtime_seconds=overtime,
        total_sales_cents=sales_cents,
        total_transactions=sales_count,
        total_refunds_cents=refunds_cents,
        total_voids_cents=voids_cents,
    )


def _apply_facts(shift: Shift, facts: ShiftFacts) -> Shift:
    shift.break_duration_seconds = facts.break_duration_seconds
    shift.total_seconds = facts.total_seconds
    shift.regular_seconds = facts.regular_seconds
    shift.overtime_seconds = facts.overtime_seconds
    shift.total_sales_cents = facts.total_sales_cents
    shift.total_transactions = facts.total_transactions
    shift.total_refunds_cents = facts.total_refunds_cents
    shift.total_voids_cents = facts.total_voids_cents
    return shift


def get_shift(shift_id: int) -> Shift:
    shift = db.session.get(Shift, shift_id)
    if not shift:
        raise NotFoundError("Shift not found")
    return shift


def get_active_shift(user_id: int) -> Shift | None:
    return db.session.query(Shift).filter_by(user_id=user_id, status=SHIFT_ACTIVE).first()


def get_user_shifts(user_id: int, since: int | None = None, until: int | None = None) -> list[Shift]:
    query = db.session.query(Shift).filter(Shift.user_id == user_id)
    if since is not None:
        query = query.filter(Shift.started_at >= since)
    if until is not None:
        query = query.filter(Shift.started_at < until)
    return query.order_by(Shift.started_at.asc(), Shift.id.asc()).all()


def get_shift_transactions(shift_id: int) -> list[Transaction]:
    return (
        db.session.query(Transaction)
        .filter_by(shift_id=shift_id)
        .order_by(Transaction.timestamp.asc(), Transaction.id.asc())
        .all()
    )


def get_today_schedule(user_id: int, now: int | None = None) -> list[Schedule]:
    """Schedules starting within the UTC day containing `now`."""
    start, end = utc_day_bounds(now if now is not None else now_ms())
    return (
        db.session.query(Schedule)
        .filter(Schedule.user_id == user_id, Schedule.start_time >= start, Schedule.start_time < end)
        .order_by(Schedule.start_time.asc())
        .all()
    )


def find_schedule_for(user_id: int, at_ms: int, early_grace_ms: int = 0) -> Schedule | None:
    """Schedule whose window (opened early_grace_ms before start) contains at_ms."""
    return (
        db.session.query(Schedule)
        .filter(
            Schedule.user_id == user_id,
            Schedule.start_time - early_grace_ms <= at_ms,
            Schedule.end_time > at_ms,
        )
        .order_by(Schedule.start_time.asc())
        .first()
    )


def open_shift(
    clock_in_event: ClockEvent,
    starting_cash=None,
    *,
    policy: ShiftPolicy | None = None,
    commit: bool = False,
) -> Shift:
    """
    Create the active shift for a clock-in event.

    starting_cash (decimal units) makes it a POS shift with a cash drawer.
    Normally runs inside the clock-in unit; the partial unique index on
    active shifts turns a racing second clock-in into ConflictError.
    """
    policy = policy or current_policy()

    starting_cash_cents = None
    if starting_cash is not None:
        try:
            starting_cash_cents = to_cents(starting_cash)
        except (ArithmeticError, TypeError, ValueError) as exc:
            raise ValidationError("starting_cash must be a number") from exc
        if starting_cash_cents < 0:
            raise ValidationError("starting_cash cannot be negative")
        if starting_cash_cents > policy.max_starting_cash_cents:
            raise ValidationError("starting_cash exceeds the allowed maximum")

    with unit_of_work("User already has an active shift", commit=commit):
        shift = Shift(
            user_id=clock_in_event.user_id,
            business_id=clock_in_event.business_id,
            schedule_id=clock_in_event.schedule_id,
            terminal_id=clock_in_event.terminal_id,
            clock_in_id=clock_in_event.id,
            status=SHIFT_ACTIVE,
            started_at=clock_in_event.timestamp,
            starting_cash_cents=starting_cash_cents,
            total_sales_cents=0,
            total_transactions=0,
            total_refunds_cents=0,
            total_voids_cents=0,
            break_duration_seconds=0,
        )
        db.session.add(shift)
        db.session.flush()

    return shift


def close_shift(
    shift_id: int,
    clock_out_event: ClockEvent,
    *,
    policy: ShiftPolicy | None = None,
    commit: bool = False,
) -> Shift:
    """
    Close an active shift at the clock-out event.

    Steps: link the clock-out, force-close breaks, derive facts, run the
    validator synchronously, then set ended or pending_review.
    """
    # Local import: the validation service reads shifts through this module
    from .validation_service import run_validation

    policy = policy or current_policy()

    with unit_of_work("Shift was already closed", commit=commit):
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if shift.status != SHIFT_ACTIVE:
            raise InvalidStateError("Shift is not active")
        if clock_out_event.timestamp < shift.started_at:
            raise ValidationError("Clock-out cannot be earlier than clock-in")

        shift.clock_out_id = clock_out_event.id
        shift.ended_at = clock_out_event.timestamp

        force_close_open_breaks(shift.id, clock_out_event.timestamp, policy=policy, commit=False)

        facts = derive_shift_facts(
            shift.started_at,
            shift.ended_at,
            get_breaks(shift.id),
            get_shift_transactions(shift.id),
            policy.standard_shift_seconds,
        )
        _apply_facts(shift, facts)
        db.session.flush()

        validation = run_validation(
            shift.id,
            method="auto",
            now=clock_out_event.timestamp,
            policy=policy,
            commit=False,
            new_cycle=True,
        )
        shift.status = SHIFT_PENDING_REVIEW if validation.requires_review else SHIFT_ENDED
        db.session.flush()

    current_app.logger.info(
        "Closed shift %s for user %s as %s (%s issues)",
        shift.id, shift.user_id, shift.status, len(validation.issues),
    )
    return shift


def recompute_shift(shift_id: int, *, policy: ShiftPolicy | None = None, commit: bool = True) -> Shift:
    """
    Rebuild every cached shift figure from clock events, breaks and transactions.

    Clock timestamps are re-read from the linked events, so the result
    converges to a direct derivation regardless of what was cached.
    """
    policy = policy or current_policy()

    with unit_of_work(commit=commit):
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")

        shift.started_at = shift.clock_in.timestamp
        shift.ended_at = shift.clock_out.timestamp if shift.clock_out is not None else None

        facts = derive_shift_facts(
            shift.started_at,
            shift.ended_at,
            get_breaks(shift.id),
            get_shift_transactions(shift.id),
            policy.standard_shift_seconds,
        )
        _apply_facts(shift, facts)

    return shift
