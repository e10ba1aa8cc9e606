# Overview: Break tracking inside a shift; open/close, forced close at clock-out.

"""
Break Tracker

WHY: Break time is subtracted from worked hours and feeds the compliance
checks (short, long and missed breaks).

DESIGN PRINCIPLES:
- At most one active break per shift; breaks never overlap
- Durations are whole seconds, computed when the break closes
- A required break that never happened is recorded as a missed marker row
  when the shift closes, so the evidence survives in the table
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from flask import current_app

from ..extensions import db
from ..models import Break, Shift
from ..models.timekeeping import (
    BREAK_ACTIVE,
    BREAK_CANCELLED,
    BREAK_COMPLETED,
    BREAK_MISSED,
    BREAK_SCHEDULED,
    BREAK_TYPES,
    SHIFT_ACTIVE,
)
from ..time_utils import MS_PER_SECOND, elapsed_seconds, now_ms
from .audit_service import append_audit_event
from .concurrency import lock_for_update, unit_of_work
from .errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .policy import ShiftPolicy, current_policy

# Rest breaks are paid by default; meal and other breaks are not
_PAID_BY_DEFAULT = {"rest": True, "meal": False, "other": False}


@dataclass(frozen=True)
class BreakSummary:
    total_seconds: int
    paid_seconds: int
    unpaid_seconds: int
    completed_count: int

    def to_dict(self) -> dict:
        return {
            "total_seconds": self.total_seconds,
            "paid_seconds": self.paid_seconds,
            "unpaid_seconds": self.unpaid_seconds,
            "completed_count": self.completed_count,
        }


def summarize_breaks(breaks: Iterable[Break]) -> BreakSummary:
    """Sum completed break durations, split by paid/unpaid."""
    total = paid = count = 0
    for brk in breaks:
        if brk.status != BREAK_COMPLETED or not brk.duration_seconds:
            continue
        count += 1
        total += brk.duration_seconds
        if brk.is_paid:
            paid += brk.duration_seconds
    return BreakSummary(total_seconds=total, paid_seconds=paid, unpaid_seconds=total - paid, completed_count=count)


def get_break(break_id: int) -> Break:
    brk = db.session.get(Break, break_id)
    if not brk:
        raise NotFoundError("Break not found")
    return brk


def get_breaks(shift_id: int) -> list[Break]:
    return db.session.query(Break).filter_by(shift_id=shift_id).order_by(Break.start_time, Break.id).all()


def get_active_break(shift_id: int) -> Break | None:
    return db.session.query(Break).filter_by(shift_id=shift_id, status=BREAK_ACTIVE).first()


def _close_break(brk: Break, end_time: int) -> Break:
    brk.end_time = end_time
    brk.duration_seconds = elapsed_seconds(brk.start_time, end_time)
    brk.is_short = (
        brk.minimum_duration_seconds is not None
        and brk.duration_seconds < brk.minimum_duration_seconds
    )
    brk.status = BREAK_COMPLETED
    return brk


def start_break(
    shift_id: int,
    break_type: str = "rest",
    is_required: bool = False,
    *,
    start_time: int | None = None,
    is_paid: bool | None = None,
    minimum_duration_seconds: int | None = None,
    notes: str | None = None,
    policy: ShiftPolicy | None = None,
) -> Break:
    """
    Start a break on an active shift.

    A scheduled break of the same type is activated in place, keeping its
    required flag and minimum unless the caller overrides them.

    Raises:
        NotFoundError: unknown shift
        InvalidStateError: shift is not active
        ConflictError: a break is already active for the shift
        ValidationError: bad type, or start before clock-in / inside a previous break
    """
    if break_type not in BREAK_TYPES:
        raise ValidationError(f"Invalid break type '{break_type}'")
    policy = policy or current_policy()

    with unit_of_work("A break is already active for this shift"):
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if shift.status != SHIFT_ACTIVE:
            raise InvalidStateError("Cannot start a break on a shift that is not active")

        if get_active_break(shift_id):
            raise ConflictError("A break is already active for this shift")

        start_time = start_time if start_time is not None else now_ms()
        if start_time < shift.started_at:
            raise ValidationError("Break cannot start before clock-in")

        last_end = (
            db.session.query(db.func.max(Break.end_time))
            .filter(Break.shift_id == shift_id, Break.status == BREAK_COMPLETED)
            .scalar()
        )
        if last_end is not None and start_time < last_end:
            raise ValidationError("Break would overlap a previous break")

        # The earliest planned break of this type is taken rather than left to be missed
        planned = (
            db.session.query(Break)
            .filter_by(shift_id=shift_id, status=BREAK_SCHEDULED, break_type=break_type)
            .order_by(Break.start_time, Break.id)
            .first()
        )
        if planned is not None:
            is_required = is_required or planned.is_required
            if minimum_duration_seconds is None:
                minimum_duration_seconds = planned.minimum_duration_seconds
            if is_paid is None:
                is_paid = planned.is_paid
            notes = notes or planned.notes

        if minimum_duration_seconds is None and is_required:
            minimum_duration_seconds = policy.required_break_seconds

        brk = planned or Break(shift_id=shift.id, user_id=shift.user_id, break_type=break_type)
        brk.start_time = start_time
        brk.is_paid = _PAID_BY_DEFAULT[break_type] if is_paid is None else bool(is_paid)
        brk.status = BREAK_ACTIVE
        brk.is_required = bool(is_required)
        brk.minimum_duration_seconds = minimum_duration_seconds
        brk.notes = notes
        db.session.add(brk)
        db.session.flush()

        append_audit_event(
            business_id=shift.business_id,
            event_type="break.start",
            entity_type="break",
            entity_id=brk.id,
            actor_user_id=shift.user_id,
            shift_id=shift.id,
            occurred_at=start_time,
            payload={"type": break_type, "is_required": brk.is_required},
        )

    return brk


def schedule_break(
    shift_id: int,
    break_type: str = "meal",
    is_required: bool = True,
    *,
    start_time: int,
    is_paid: bool | None = None,
    minimum_duration_seconds: int | None = None,
    notes: str | None = None,
    policy: ShiftPolicy | None = None,
) -> Break:
    """
    Plan a break on an active shift.

    The planned row becomes active when a break of the same type starts;
    if none does, clock-out marks it missed.
    """
    if break_type not in BREAK_TYPES:
        raise ValidationError(f"Invalid break type '{break_type}'")
    if start_time is None:
        raise ValidationError("start_time is required to schedule a break")
    policy = policy or current_policy()

    with unit_of_work():
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if shift.status != SHIFT_ACTIVE:
            raise InvalidStateError("Cannot schedule a break on a shift that is not active")
        if start_time < shift.started_at:
            raise ValidationError("Break cannot be scheduled before clock-in")

        if minimum_duration_seconds is None and is_required:
            minimum_duration_seconds = policy.required_break_seconds

        brk = Break(
            shift_id=shift.id,
            user_id=shift.user_id,
            break_type=break_type,
            start_time=start_time,
            is_paid=_PAID_BY_DEFAULT[break_type] if is_paid is None else bool(is_paid),
            status=BREAK_SCHEDULED,
            is_required=bool(is_required),
            minimum_duration_seconds=minimum_duration_seconds,
            notes=notes,
        )
        db.session.add(brk)
        db.session.flush()

        append_audit_event(
            business_id=shift.business_id,
            event_type="break.schedule",
            entity_type="break",
            entity_id=brk.id,
            shift_id=shift.id,
            occurred_at=start_time,
            payload={"type": break_type, "is_required": brk.is_required},
        )

    return brk


def end_break(break_id: int, end_time: int | None = None) -> Break:
    """
    End an active break, computing duration and the is_short flag.
    """
    with unit_of_work():
        brk = lock_for_update(db.session.query(Break).filter_by(id=break_id)).first()
        if not brk:
            raise NotFoundError("Break not found")
        if brk.status != BREAK_ACTIVE:
            raise InvalidStateError("Break is not active")

        end_time = end_time if end_time is not None else now_ms()
        if end_time <= brk.start_time:
            raise ValidationError("Break end time must be after its start time")

        _close_break(brk, end_time)

        append_audit_event(
            business_id=brk.shift.business_id,
            event_type="break.end",
            entity_type="break",
            entity_id=brk.id,
            actor_user_id=brk.user_id,
            shift_id=brk.shift_id,
            occurred_at=end_time,
            payload={"duration_seconds": brk.duration_seconds, "is_short": brk.is_short},
        )

    return brk


def force_close_open_breaks(
    shift_id: int,
    end_time: int,
    *,
    policy: ShiftPolicy | None = None,
    commit: bool = False,
) -> list[Break]:
    """
    Close out break state when a shift ends.

    - Active breaks complete at the clock-out time (cancelled when they
      started at that same instant).
    - Scheduled breaks that never started become missed.
    - If the worked span crossed the required-break threshold and no break
      no qualifying break was taken, a missed required-break marker is inserted.

    Runs inside the caller's unit (clock-out) unless commit=True.
    """
    policy = policy or current_policy()
    touched: list[Break] = []

    with unit_of_work(commit=commit):
        shift = db.session.get(Shift, shift_id)
        if not shift:
            raise NotFoundError("Shift not found")

        breaks = get_breaks(shift_id)
        for brk in breaks:
            if brk.status == BREAK_ACTIVE:
                if end_time > brk.start_time:
                    _close_break(brk, end_time)
                else:
                    brk.status = BREAK_CANCELLED
                touched.append(brk)
                current_app.logger.info(
                    "Force-closed break %s on shift %s as %s", brk.id, shift_id, brk.status
                )
            elif brk.status == BREAK_SCHEDULED:
                brk.status = BREAK_MISSED
                brk.is_missed = brk.is_required
                touched.append(brk)

        taken = any(policy.satisfies_required_break(b) for b in breaks)
        already_missed = any(b.is_missed for b in breaks)
        worked_span = elapsed_seconds(shift.started_at, end_time)

        if worked_span > policy.required_break_after_seconds and not taken and not already_missed:
            marker = Break(
                shift_id=shift.id,
                user_id=shift.user_id,
                break_type="meal",
                start_time=shift.started_at + policy.required_break_after_seconds * MS_PER_SECOND,
                is_paid=False,
                status=BREAK_MISSED,
                is_required=True,
                minimum_duration_seconds=policy.required_break_seconds,
                is_missed=True,
                notes="Required break not taken",
            )
            db.session.add(marker)
            touched.append(marker)
            current_app.logger.info("Recorded missed required break on shift %s", shift_id)

        db.session.flush()

        for brk in touched:
            append_audit_event(
                business_id=shift.business_id,
                event_type="break.force_close",
                entity_type="break",
                entity_id=brk.id,
                shift_id=shift.id,
                occurred_at=end_time,
                payload={"status": brk.status, "is_missed": brk.is_missed},
            )

    return touched
