# Overview: Persists validation verdicts and drives the manual resolution workflow.

"""
Issue Resolution Tracker

WHY: The rule engine is pure; this module loads a shift's context, stores
the verdict, and lets managers work the issues down before approving.

DESIGN PRINCIPLES:
- One ShiftValidation per shift; each run replaces the issue set wholesale
- resolution moves only through RESOLUTION_TRANSITIONS and only on an
  explicit call (never auto-approved)
- approved/rejected are terminal; a new clock-out replaces the record
"""

from __future__ import annotations

from flask import current_app

from ..extensions import db
from ..models import (
    CashDrawerCount,
    Resolution,
    Shift,
    ShiftValidation,
    ShiftValidationIssue,
    User,
)
from ..models.timekeeping import SHIFT_ACTIVE, SHIFT_ENDED, SHIFT_PENDING_REVIEW
from ..models.validation import RESOLUTION_TRANSITIONS, VALIDATION_METHODS, IssueCode
from ..time_utils import MS_PER_DAY, now_ms
from .audit_service import append_audit_event
from .break_service import get_breaks
from .concurrency import lock_for_update, unit_of_work
from .errors import InvalidStateError, NotFoundError, ValidationError
from .policy import ShiftPolicy, current_policy
from .shift_service import get_shift_transactions
from .validation_engine import ValidationResult, validate_shift

# How far back to look for overlapping / same-week shifts
_HISTORY_WINDOW_MS = 7 * MS_PER_DAY


def _other_shifts(shift: Shift, until: int) -> list[Shift]:
    return (
        db.session.query(Shift)
        .filter(
            Shift.user_id == shift.user_id,
            Shift.id != shift.id,
            Shift.started_at >= shift.started_at - _HISTORY_WINDOW_MS,
            Shift.started_at < until,
        )
        .order_by(Shift.started_at.asc(), Shift.id.asc())
        .all()
    )


def evaluate_shift(shift: Shift, *, now: int, policy: ShiftPolicy) -> ValidationResult:
    """Load the shift context and run the engine. Read-only."""
    until = shift.ended_at if shift.ended_at is not None else now
    counts = db.session.query(CashDrawerCount).filter_by(shift_id=shift.id).all()
    return validate_shift(
        shift,
        get_breaks(shift.id),
        counts,
        get_shift_transactions(shift.id),
        policy=policy,
        now=now,
        schedule=shift.schedule,
        other_shifts=_other_shifts(shift, until),
    )


def _count_unresolved(validation: ShiftValidation) -> int:
    return sum(1 for issue in validation.issues if not issue.resolved)


def run_validation(
    shift_id: int,
    validated_by: int | None = None,
    method: str = "auto",
    now: int | None = None,
    *,
    policy: ShiftPolicy | None = None,
    commit: bool = True,
    new_cycle: bool = False,
) -> ShiftValidation:
    """
    Validate a shift and persist the verdict.

    The prior issue set is discarded and rebuilt; counts are recomputed.
    A clock-out passes new_cycle, which discards the previous record
    whatever its resolution. Otherwise an approved/rejected record raises
    InvalidStateError.
    """
    if method not in VALIDATION_METHODS:
        raise ValidationError(f"Invalid validation method '{method}'")
    policy = policy or current_policy()
    now = now if now is not None else now_ms()

    with unit_of_work("Shift validation was updated concurrently", commit=commit):
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")

        validation = db.session.query(ShiftValidation).filter_by(shift_id=shift.id).first()
        if validation is not None and not new_cycle and validation.resolution.is_terminal:
            raise InvalidStateError(
                f"Validation is already {validation.resolution.value}; it cannot be re-run"
            )
        if validation is not None and new_cycle:
            db.session.delete(validation)
            db.session.flush()
            validation = None

        result = evaluate_shift(shift, now=now, policy=policy)

        if validation is None:
            validation = ShiftValidation(
                shift_id=shift.id,
                business_id=shift.business_id,
                resolution=Resolution.PENDING,
            )
            db.session.add(validation)
        else:
            validation.issues.clear()
            db.session.flush()

        validation.valid = result.valid
        validation.requires_review = result.requires_review
        validation.violation_count = result.violation_count
        validation.warning_count = result.warning_count
        validation.critical_issue_count = result.critical_issue_count
        validation.unresolved_issue_count = len(result.issues)
        validation.validated_at = now
        validation.validated_by = validated_by
        validation.validation_method = method
        if result.requires_review and validation.resolution == Resolution.PENDING:
            validation.resolution = Resolution.NEEDS_REVIEW

        for position, draft in enumerate(result.issues):
            validation.issues.append(
                ShiftValidationIssue(
                    business_id=shift.business_id,
                    position=position,
                    issue_type=draft.issue_type,
                    code=draft.code,
                    message=draft.message,
                    severity=draft.severity,
                    category=draft.category,
                    resolved=False,
                    related_entity_id=draft.related_entity_id,
                    related_entity_type=draft.related_entity_type,
                    data_snapshot=draft.data_snapshot or None,
                )
            )
        db.session.flush()

        append_audit_event(
            business_id=shift.business_id,
            event_type="validation.run",
            entity_type="shift_validation",
            entity_id=validation.id,
            actor_user_id=validated_by,
            shift_id=shift.id,
            occurred_at=now,
            payload={
                "method": method,
                "valid": result.valid,
                "requires_review": result.requires_review,
                "codes": [issue.code.value for issue in result.issues],
            },
        )

    return validation


def get_validation(shift_id: int) -> ShiftValidation | None:
    return db.session.query(ShiftValidation).filter_by(shift_id=shift_id).first()


def get_validation_by_id(validation_id: int) -> ShiftValidation:
    validation = db.session.get(ShiftValidation, validation_id)
    if not validation:
        raise NotFoundError("Validation not found")
    return validation


def list_issues(validation_id: int, unresolved_only: bool = False) -> list[ShiftValidationIssue]:
    query = db.session.query(ShiftValidationIssue).filter_by(validation_id=validation_id)
    if unresolved_only:
        query = query.filter(ShiftValidationIssue.resolved.is_(False))
    return query.order_by(ShiftValidationIssue.position.asc(), ShiftValidationIssue.id.asc()).all()


def _require_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def resolve_issue(
    issue_id: int,
    resolved_by: int,
    notes: str | None = None,
    *,
    now: int | None = None,
) -> ShiftValidationIssue:
    """
    Mark one issue resolved and refresh the parent's unresolved count.

    Never changes the parent's resolution.
    """
    now = now if now is not None else now_ms()

    with unit_of_work():
        issue = lock_for_update(db.session.query(ShiftValidationIssue).filter_by(id=issue_id)).first()
        if not issue:
            raise NotFoundError("Issue not found")
        if issue.resolved:
            raise InvalidStateError("Issue is already resolved")
        validation = issue.validation
        if validation.resolution.is_terminal:
            raise InvalidStateError(f"Validation is already {validation.resolution.value}")
        _require_user(resolved_by)

        issue.resolved = True
        issue.resolved_at = now
        issue.resolved_by = resolved_by
        issue.resolution_notes = notes
        db.session.flush()

        validation.unresolved_issue_count = _count_unresolved(validation)

        append_audit_event(
            business_id=issue.business_id,
            event_type="validation.issue_resolved",
            entity_type="shift_validation_issue",
            entity_id=issue.id,
            actor_user_id=resolved_by,
            shift_id=validation.shift_id,
            occurred_at=now,
            note=notes,
            payload={"code": issue.code.value, "unresolved_remaining": validation.unresolved_issue_count},
        )

    return issue


def resolve_validation(
    validation_id: int,
    resolved_by: int,
    resolution,
    notes: str | None = None,
    *,
    now: int | None = None,
) -> ShiftValidation:
    """
    Move a validation through its resolution state machine.

    pending -> {needs_review, approved, rejected}
    needs_review -> {approved, rejected}

    Approval requires every issue to be resolved and moves a
    pending_review shift to ended.
    """
    try:
        target = Resolution(resolution)
    except ValueError as exc:
        raise ValidationError(f"Invalid resolution '{resolution}'") from exc
    now = now if now is not None else now_ms()

    with unit_of_work():
        validation = lock_for_update(db.session.query(ShiftValidation).filter_by(id=validation_id)).first()
        if not validation:
            raise NotFoundError("Validation not found")
        _require_user(resolved_by)

        current = validation.resolution
        if target not in RESOLUTION_TRANSITIONS[current]:
            raise InvalidStateError(f"Cannot move validation from {current.value} to {target.value}")

        if target == Resolution.APPROVED:
            unresolved = _count_unresolved(validation)
            validation.unresolved_issue_count = unresolved
            if unresolved:
                raise InvalidStateError(f"Cannot approve: {unresolved} issue(s) still unresolved")

        validation.resolution = target
        if target == Resolution.NEEDS_REVIEW:
            validation.requires_review = True
        else:
            validation.resolved_at = now
            validation.resolved_by = resolved_by
            validation.resolution_notes = notes

        shift = validation.shift
        if target == Resolution.APPROVED and shift.status == SHIFT_PENDING_REVIEW:
            shift.status = SHIFT_ENDED

        db.session.flush()

        append_audit_event(
            business_id=validation.business_id,
            event_type=f"validation.{target.value}",
            entity_type="shift_validation",
            entity_id=validation.id,
            actor_user_id=resolved_by,
            shift_id=validation.shift_id,
            occurred_at=now,
            note=notes,
            payload={"from": current.value, "to": target.value},
        )

    return validation


def reject_validation(
    validation_id: int,
    resolved_by: int,
    notes: str | None = None,
    *,
    now: int | None = None,
) -> ShiftValidation:
    """Record a negative outcome; open issues stay open."""
    return resolve_validation(validation_id, resolved_by, Resolution.REJECTED, notes, now=now)


def sweep_active_shifts(now: int | None = None, *, policy: ShiftPolicy | None = None) -> list[ShiftValidation]:
    """
    Background compliance sweep over every active shift.

    Each shift is validated in its own unit so one failure does not block
    the rest of the sweep. Stale shifts surface as MISSED_CLOCK_OUT.
    """
    policy = policy or current_policy()
    now = now if now is not None else now_ms()

    shift_ids = [
        row.id
        for row in db.session.query(Shift.id).filter_by(status=SHIFT_ACTIVE).order_by(Shift.id.asc()).all()
    ]

    results = []
    for shift_id in shift_ids:
        try:
            validation = run_validation(shift_id, method="auto", now=now, policy=policy)
        except InvalidStateError as exc:
            current_app.logger.warning("Skipped shift %s during sweep: %s", shift_id, exc)
            continue
        if any(issue.code == IssueCode.MISSED_CLOCK_OUT for issue in validation.issues):
            current_app.logger.info("Shift %s is past the missed clock-out threshold", shift_id)
        results.append(validation)

    current_app.logger.info("Swept %s active shift(s)", len(results))
    return results
