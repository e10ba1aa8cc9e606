# Overview: Append-only clock event ledger; clock-in opens a shift, clock-out closes it.

"""
Clock Event Ledger

WHY: Clock events are the source of truth for shift timing and outlive the
shifts that reference them.

DESIGN PRINCIPLES:
- Events are never deleted; the only mutation is a status transition
- At most one open clock-in per user (enforced by the active-shift index)
- Recording the event and opening/closing the shift commit together
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import ClockEvent, Shift, User
from ..models.timekeeping import (
    CLOCK_EVENT_STATUSES,
    CLOCK_EVENT_TYPES,
    CLOCK_IN,
    CLOCK_METHODS,
    CLOCK_OUT,
    SHIFT_ACTIVE,
)
from ..time_utils import MS_PER_SECOND, now_ms
from .audit_service import append_audit_event
from .concurrency import lock_for_update, unit_of_work
from .errors import InvalidStateError, NotFoundError, ValidationError
from .policy import ShiftPolicy, current_policy
from .shift_service import (
    close_shift,
    find_schedule_for,
    get_active_shift,
    open_shift,
    resolve_shift_requirement,
)


def get_active_clock_in(user_id: int) -> ClockEvent | None:
    """The clock-in event of the user's open shift, if any."""
    shift = get_active_shift(user_id)
    return shift.clock_in if shift else None


def get_clock_events(user_id: int, limit: int = 50) -> list[ClockEvent]:
    return (
        db.session.query(ClockEvent)
        .filter_by(user_id=user_id)
        .order_by(ClockEvent.timestamp.desc(), ClockEvent.id.desc())
        .limit(limit)
        .all()
    )


def record_clock_event(
    user_id: int,
    business_id: int,
    terminal_id: str,
    event_type: str,
    method: str = "manual",
    timestamp: int | None = None,
    *,
    schedule_id: int | None = None,
    starting_cash=None,
    notes: str | None = None,
    policy: ShiftPolicy | None = None,
) -> tuple[ClockEvent, Shift]:
    """
    Append a clock event and open or close the user's shift with it.

    Raises:
        InvalidStateError: clock-in while clocked in, clock-out while not
        ValidationError: bad type/method, clock-out earlier than clock-in
        ConflictError: a concurrent clock-in won the race
    """
    if event_type not in CLOCK_EVENT_TYPES:
        raise ValidationError(f"Invalid clock event type '{event_type}'")
    if method not in CLOCK_METHODS:
        raise ValidationError(f"Invalid clock method '{method}'")
    if not terminal_id:
        raise ValidationError("terminal_id is required")

    policy = policy or current_policy()
    timestamp = timestamp if timestamp is not None else now_ms()

    with unit_of_work("User is already clocked in"):
        user = db.session.get(User, user_id)
        if not user or user.business_id != business_id:
            raise NotFoundError("User not found")

        open_shift_row = lock_for_update(
            db.session.query(Shift).filter_by(user_id=user_id, status=SHIFT_ACTIVE)
        ).first()

        if event_type == CLOCK_IN:
            if open_shift_row:
                raise InvalidStateError("User is already clocked in")
            if schedule_id is None:
                schedule = find_schedule_for(
                    user_id, timestamp, early_grace_ms=policy.late_severe_seconds * MS_PER_SECOND
                )
                schedule_id = schedule.id if schedule else None
        else:
            if not open_shift_row:
                raise InvalidStateError("User is not clocked in")
            if timestamp < open_shift_row.started_at:
                raise ValidationError("Clock-out cannot be earlier than clock-in")
            schedule_id = schedule_id if schedule_id is not None else open_shift_row.schedule_id

        event = ClockEvent(
            user_id=user_id,
            business_id=business_id,
            terminal_id=terminal_id,
            schedule_id=schedule_id,
            event_type=event_type,
            timestamp=timestamp,
            method=method,
            status="confirmed",
            notes=notes,
        )
        db.session.add(event)
        db.session.flush()

        if event_type == CLOCK_IN:
            shift = open_shift(event, starting_cash, policy=policy)
        else:
            shift = close_shift(open_shift_row.id, event, policy=policy)

        append_audit_event(
            business_id=business_id,
            event_type=f"clock.{event_type}",
            entity_type="clock_event",
            entity_id=event.id,
            actor_user_id=user_id,
            shift_id=shift.id,
            occurred_at=timestamp,
            note=notes,
            payload={"method": method, "terminal_id": terminal_id, "shift_status": shift.status},
        )

    return event, shift


def clock_in(
    user_id: int,
    business_id: int,
    terminal_id: str,
    *,
    method: str = "manual",
    timestamp: int | None = None,
    schedule_id: int | None = None,
    starting_cash=None,
    notes: str | None = None,
) -> tuple[ClockEvent, Shift]:
    return record_clock_event(
        user_id, business_id, terminal_id, CLOCK_IN, method, timestamp,
        schedule_id=schedule_id, starting_cash=starting_cash, notes=notes,
    )


def clock_out(
    user_id: int,
    business_id: int,
    terminal_id: str,
    *,
    method: str = "manual",
    timestamp: int | None = None,
    notes: str | None = None,
) -> tuple[ClockEvent, Shift]:
    return record_clock_event(
        user_id, business_id, terminal_id, CLOCK_OUT, method, timestamp, notes=notes,
    )


def clock_in_on_login(
    user: User,
    terminal_id: str,
    *,
    timestamp: int | None = None,
    starting_cash=None,
) -> tuple[ClockEvent, Shift] | None:
    """
    Login-triggered clock-in.

    Returns None when the user's shifts are not tracked or a shift is
    already open (logging in twice is not an error).
    """
    if not resolve_shift_requirement(user):
        return None
    if get_active_shift(user.id):
        return None
    current_app.logger.info("Clocking in user %s on login at terminal %s", user.id, terminal_id)
    return record_clock_event(
        user.id, user.business_id, terminal_id, CLOCK_IN, "login", timestamp,
        starting_cash=starting_cash,
    )


def set_event_status(event_id: int, status: str, *, actor_user_id: int | None = None) -> ClockEvent:
    """The only mutation a clock event allows."""
    if status not in CLOCK_EVENT_STATUSES:
        raise ValidationError(f"Invalid clock event status '{status}'")

    with unit_of_work():
        event = lock_for_update(db.session.query(ClockEvent).filter_by(id=event_id)).first()
        if not event:
            raise NotFoundError("Clock event not found")
        previous = event.status
        event.status = status
        db.session.flush()

        append_audit_event(
            business_id=event.business_id,
            event_type="clock.status_changed",
            entity_type="clock_event",
            entity_id=event.id,
            actor_user_id=actor_user_id,
            payload={"from": previous, "to": status},
        )

    return event
