# Overview: Pure rule engine that turns a shift context into ranked validation issues.

"""
Validation Rule Engine

WHY: Attendance, cash-handling, transaction and labor-compliance problems
must be flagged for review without ever failing the clock-out itself.

DESIGN PRINCIPLES:
- Pure and read-only: no database access, no mutation of the inputs
- Deterministic: inputs are sorted before evaluation, so the same facts
  always yield the same issues in the same order
- A triggered rule is data (IssueDraft), never an exception
- Each check in CATALOG runs independently and emits at most one issue
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Optional, Sequence

from ..models.cash import COUNT_END_SHIFT
from ..models.sales import TX_REFUND, TX_SALE, TX_VOID
from ..models.timekeeping import BREAK_COMPLETED, SHIFT_ACTIVE
from ..models.validation import Category, IssueCode, IssueType, Severity
from ..money import from_cents
from ..time_utils import MS_PER_DAY, elapsed_seconds
from .policy import ShiftPolicy


@dataclass(frozen=True)
class IssueDraft:
    code: IssueCode
    issue_type: IssueType
    severity: Severity
    category: Category
    message: str
    related_entity_id: Optional[int] = None
    related_entity_type: Optional[str] = None
    data_snapshot: dict = field(default_factory=dict, compare=False)

    def to_dict(self) -> dict:
        return {
            "code": self.code.value,
            "type": self.issue_type.value,
            "severity": self.severity.value,
            "category": self.category.value,
            "message": self.message,
            "related_entity_id": self.related_entity_id,
            "related_entity_type": self.related_entity_type,
            "data_snapshot": self.data_snapshot,
        }


@dataclass(frozen=True)
class ValidationResult:
    issues: tuple[IssueDraft, ...]
    valid: bool
    requires_review: bool
    violation_count: int
    warning_count: int
    critical_issue_count: int

    @property
    def codes(self) -> set[IssueCode]:
        return {issue.code for issue in self.issues}

    def to_dict(self) -> dict:
        return {
            "valid": self.valid,
            "requires_review": self.requires_review,
            "violation_count": self.violation_count,
            "warning_count": self.warning_count,
            "critical_issue_count": self.critical_issue_count,
            "issues": [issue.to_dict() for issue in self.issues],
        }


@dataclass(frozen=True)
class ValidationContext:
    shift: Any
    breaks: tuple
    cash_counts: tuple
    transactions: tuple
    policy: ShiftPolicy
    now: int
    schedule: Any = None
    other_shifts: tuple = ()

    @property
    def shift_end(self) -> int:
        """Clock-out time, or 'now' for a shift still open."""
        return self.shift.ended_at if self.shift.ended_at is not None else self.now

    @property
    def span_seconds(self) -> int:
        return max(elapsed_seconds(self.shift.started_at, self.shift_end), 0)

    @property
    def completed_breaks(self) -> list:
        return [b for b in self.breaks if b.status == BREAK_COMPLETED and b.duration_seconds is not None]

    @property
    def break_seconds(self) -> int:
        return sum(b.duration_seconds for b in self.completed_breaks)

    @property
    def worked_seconds(self) -> int:
        return max(self.span_seconds - self.break_seconds, 0)

    @property
    def overtime_seconds(self) -> int:
        return max(self.worked_seconds - self.policy.standard_shift_seconds, 0)

    @property
    def end_shift_counts(self) -> list:
        return [c for c in self.cash_counts if c.count_type == COUNT_END_SHIFT]


def _minutes(seconds: int) -> int:
    return seconds // 60


def _hours(seconds: int) -> float:
    return round(seconds / 3600, 2)


# =============================================================================
# ATTENDANCE
# =============================================================================

def check_late_clock_in(ctx: ValidationContext) -> IssueDraft | None:
    schedule = ctx.schedule
    if schedule is None or schedule.start_time is None:
        return None
    late_seconds = elapsed_seconds(schedule.start_time, ctx.shift.started_at)
    if late_seconds <= ctx.policy.late_grace_seconds:
        return None
    severity = Severity.MEDIUM if late_seconds >= ctx.policy.late_severe_seconds else Severity.LOW
    return IssueDraft(
        code=IssueCode.LATE_CLOCK_IN,
        issue_type=IssueType.WARNING,
        severity=severity,
        category=Category.ATTENDANCE,
        message=f"Clocked in {_minutes(late_seconds)} minutes after scheduled start",
        related_entity_id=schedule.id,
        related_entity_type="schedule",
        data_snapshot={
            "scheduled_start": schedule.start_time,
            "clock_in": ctx.shift.started_at,
            "minutes_late": _minutes(late_seconds),
        },
    )


def check_missed_clock_out(ctx: ValidationContext) -> IssueDraft | None:
    shift = ctx.shift
    if shift.status != SHIFT_ACTIVE or shift.ended_at is not None:
        return None
    open_seconds = elapsed_seconds(shift.started_at, ctx.now)
    if open_seconds <= ctx.policy.missed_clock_out_seconds:
        return None
    return IssueDraft(
        code=IssueCode.MISSED_CLOCK_OUT,
        issue_type=IssueType.VIOLATION,
        severity=Severity.HIGH,
        category=Category.ATTENDANCE,
        message=f"Shift has been open for {_hours(open_seconds)} hours without a clock-out",
        related_entity_id=shift.id,
        related_entity_type="shift",
        data_snapshot={"clock_in": shift.started_at, "checked_at": ctx.now, "hours_open": _hours(open_seconds)},
    )


def check_shift_overlap(ctx: ValidationContext) -> IssueDraft | None:
    shift = ctx.shift
    start, end = shift.started_at, ctx.shift_end
    overlapping = []
    for other in ctx.other_shifts:
        if other.id == shift.id or other.user_id != shift.user_id:
            continue
        other_end = other.ended_at if other.ended_at is not None else ctx.now
        # Half-open windows [start, end)
        if other.started_at < end and start < other_end:
            overlapping.append(other.id)
    if not overlapping:
        return None
    return IssueDraft(
        code=IssueCode.SHIFT_OVERLAP,
        issue_type=IssueType.VIOLATION,
        severity=Severity.CRITICAL,
        category=Category.ATTENDANCE,
        message=f"Shift overlaps {len(overlapping)} other shift(s) for the same user",
        related_entity_id=overlapping[0],
        related_entity_type="shift",
        data_snapshot={"overlapping_shift_ids": overlapping},
    )


# =============================================================================
# CASH MANAGEMENT
# =============================================================================

def check_cash_variance(ctx: ValidationContext) -> IssueDraft | None:
    threshold = ctx.policy.cash_discrepancy_threshold_cents
    flagged = [c for c in ctx.end_shift_counts if abs(c.variance_cents) > threshold]
    if not flagged:
        return None
    worst = max(flagged, key=lambda c: (abs(c.variance_cents), -c.id))
    magnitude = abs(worst.variance_cents)
    severity = Severity.CRITICAL if magnitude > ctx.policy.cash_variance_critical_cents else Severity.HIGH
    kind = "overage" if worst.variance_cents > 0 else "shortage"
    return IssueDraft(
        code=IssueCode.CASH_VARIANCE_HIGH,
        issue_type=IssueType.VIOLATION,
        severity=severity,
        category=Category.CASH_MANAGEMENT,
        message=f"Cash {kind} of {from_cents(magnitude):.2f} exceeds threshold of {from_cents(threshold):.2f}",
        related_entity_id=worst.id,
        related_entity_type="cash_drawer_count",
        data_snapshot={
            "expected": from_cents(worst.expected_cents),
            "counted": from_cents(worst.counted_cents),
            "variance": from_cents(worst.variance_cents),
            "threshold": from_cents(threshold),
            "approved": worst.approved_by_user_id is not None,
        },
    )


def check_missing_end_shift_count(ctx: ValidationContext) -> IssueDraft | None:
    shift = ctx.shift
    if shift.ended_at is None or shift.starting_cash_cents is None:
        return None
    if ctx.end_shift_counts:
        return None
    return IssueDraft(
        code=IssueCode.MISSING_END_SHIFT_COUNT,
        issue_type=IssueType.WARNING,
        severity=Severity.MEDIUM,
        category=Category.CASH_MANAGEMENT,
        message="Shift ended without an end-shift cash count",
        related_entity_id=shift.id,
        related_entity_type="shift",
    )


def check_multiple_end_shift_counts(ctx: ValidationContext) -> IssueDraft | None:
    counts = ctx.end_shift_counts
    if len(counts) <= 1:
        return None
    return IssueDraft(
        code=IssueCode.MULTIPLE_END_SHIFT_COUNTS,
        issue_type=IssueType.VIOLATION,
        severity=Severity.CRITICAL,
        category=Category.CASH_MANAGEMENT,
        message=f"{len(counts)} end-shift cash counts recorded; expected exactly one",
        related_entity_id=counts[0].id,
        related_entity_type="cash_drawer_count",
        data_snapshot={"count_ids": [c.id for c in counts]},
    )


# =============================================================================
# TRANSACTIONS
# =============================================================================

def check_void_reasons(ctx: ValidationContext) -> IssueDraft | None:
    offenders = [
        t for t in ctx.transactions
        if t.tx_type == TX_VOID and not (t.void_reason or "").strip()
    ]
    if not offenders:
        return None
    return IssueDraft(
        code=IssueCode.VOIDED_TRANSACTION_NO_REASON,
        issue_type=IssueType.WARNING,
        severity=Severity.MEDIUM,
        category=Category.TRANSACTIONS,
        message=f"{len(offenders)} voided transaction(s) without a void reason",
        related_entity_id=offenders[0].id,
        related_entity_type="transaction",
        data_snapshot={"transaction_ids": [t.id for t in offenders]},
    )


def check_refund_approvals(ctx: ValidationContext) -> IssueDraft | None:
    limit = ctx.policy.refund_approval_limit_cents
    offenders = [
        t for t in ctx.transactions
        if t.tx_type == TX_REFUND
        and (t.is_partial_refund or abs(t.total_cents) > limit)
        and t.manager_approval_id is None
    ]
    if not offenders:
        return None
    return IssueDraft(
        code=IssueCode.REFUND_WITHOUT_APPROVAL,
        issue_type=IssueType.VIOLATION,
        severity=Severity.HIGH,
        category=Category.TRANSACTIONS,
        message=f"{len(offenders)} refund(s) requiring manager approval were processed without one",
        related_entity_id=offenders[0].id,
        related_entity_type="transaction",
        data_snapshot={
            "transaction_ids": [t.id for t in offenders],
            "approval_limit": from_cents(limit),
        },
    )


def check_suspicious_discounts(ctx: ValidationContext) -> IssueDraft | None:
    percent = ctx.policy.suspicious_discount_percent
    offenders = []
    for t in ctx.transactions:
        if t.tx_type != TX_SALE or not t.discount_cents:
            continue
        gross = t.total_cents + t.discount_cents
        if gross > 0 and t.discount_cents * 100 >= percent * gross:
            offenders.append(t)
    if not offenders:
        return None
    return IssueDraft(
        code=IssueCode.SUSPICIOUS_DISCOUNT,
        issue_type=IssueType.WARNING,
        severity=Severity.MEDIUM,
        category=Category.TRANSACTIONS,
        message=f"{len(offenders)} sale(s) discounted by {percent}% or more",
        related_entity_id=offenders[0].id,
        related_entity_type="transaction",
        data_snapshot={"transaction_ids": [t.id for t in offenders]},
    )


def refund_chain(transaction, lookup: dict, max_depth: int) -> tuple[list[int], str | None]:
    """
    Walk original_transaction_id links from a refund.

    Returns the visited ids and a problem ("cycle" or "too_deep"), if any.
    Links leaving the lookup (transactions outside this shift) end the walk.
    """
    seen = [transaction.id]
    current = transaction.original_transaction_id
    while current is not None:
        if current in seen:
            return seen, "cycle"
        if len(seen) > max_depth:
            return seen, "too_deep"
        seen.append(current)
        node = lookup.get(current)
        if node is None:
            break
        current = node.original_transaction_id
    return seen, None


def check_refund_chains(ctx: ValidationContext) -> IssueDraft | None:
    lookup = {t.id: t for t in ctx.transactions}
    broken = []
    for t in ctx.transactions:
        if t.tx_type != TX_REFUND or t.original_transaction_id is None:
            continue
        chain, problem = refund_chain(t, lookup, ctx.policy.max_refund_chain_depth)
        if problem:
            broken.append({"transaction_id": t.id, "chain": chain, "problem": problem})
    if not broken:
        return None
    return IssueDraft(
        code=IssueCode.REFUND_CHAIN_INVALID,
        issue_type=IssueType.VIOLATION,
        severity=Severity.HIGH,
        category=Category.TRANSACTIONS,
        message=f"{len(broken)} refund(s) with a circular or over-deep refund chain",
        related_entity_id=broken[0]["transaction_id"],
        related_entity_type="transaction",
        data_snapshot={"refunds": broken},
    )


# =============================================================================
# COMPLIANCE
# =============================================================================

def check_missing_break(ctx: ValidationContext) -> IssueDraft | None:
    if ctx.span_seconds <= ctx.policy.required_break_after_seconds:
        return None
    if any(b.is_missed for b in ctx.breaks):
        return None
    if any(ctx.policy.satisfies_required_break(b) for b in ctx.breaks):
        return None
    return IssueDraft(
        code=IssueCode.MISSING_BREAK,
        issue_type=IssueType.WARNING,
        severity=Severity.MEDIUM,
        category=Category.COMPLIANCE,
        message=(
            f"No qualifying break taken in {_hours(ctx.span_seconds)} hours; "
            f"a {_minutes(ctx.policy.required_break_seconds)}-minute break is required after "
            f"{_hours(ctx.policy.required_break_after_seconds)} hours"
        ),
        related_entity_id=ctx.shift.id,
        related_entity_type="shift",
        data_snapshot={"hours_on_shift": _hours(ctx.span_seconds)},
    )


def check_missed_required_break(ctx: ValidationContext) -> IssueDraft | None:
    missed = [b for b in ctx.breaks if b.is_missed]
    if not missed:
        return None
    return IssueDraft(
        code=IssueCode.MISSED_REQUIRED_BREAK,
        issue_type=IssueType.WARNING,
        severity=Severity.HIGH,
        category=Category.COMPLIANCE,
        message=f"{len(missed)} required break(s) were not taken",
        related_entity_id=missed[0].id,
        related_entity_type="break",
        data_snapshot={"break_ids": [b.id for b in missed]},
    )


def _break_minimum(brk, policy: ShiftPolicy) -> int:
    if brk.minimum_duration_seconds is not None:
        return brk.minimum_duration_seconds
    return policy.min_break_seconds


def check_break_too_short(ctx: ValidationContext) -> IssueDraft | None:
    short = [b for b in ctx.completed_breaks if b.duration_seconds < _break_minimum(b, ctx.policy)]
    if not short:
        return None
    severity = Severity.MEDIUM if any(b.is_required for b in short) else Severity.LOW
    first = short[0]
    return IssueDraft(
        code=IssueCode.BREAK_TOO_SHORT,
        issue_type=IssueType.WARNING,
        severity=severity,
        category=Category.COMPLIANCE,
        message=(
            f"Break lasted {_minutes(first.duration_seconds)} minutes; "
            f"minimum is {_minutes(_break_minimum(first, ctx.policy))} minutes"
        ),
        related_entity_id=first.id,
        related_entity_type="break",
        data_snapshot={
            "breaks": [
                {"id": b.id, "duration_seconds": b.duration_seconds, "minimum_seconds": _break_minimum(b, ctx.policy)}
                for b in short
            ]
        },
    )


def check_break_too_long(ctx: ValidationContext) -> IssueDraft | None:
    limit = ctx.policy.max_break_seconds
    long_breaks = [b for b in ctx.completed_breaks if b.duration_seconds > limit]
    if not long_breaks:
        return None
    first = long_breaks[0]
    return IssueDraft(
        code=IssueCode.BREAK_TOO_LONG,
        issue_type=IssueType.WARNING,
        severity=Severity.LOW,
        category=Category.COMPLIANCE,
        message=f"Break lasted {_minutes(first.duration_seconds)} minutes; maximum is {_minutes(limit)} minutes",
        related_entity_id=first.id,
        related_entity_type="break",
        data_snapshot={"break_ids": [b.id for b in long_breaks]},
    )


def check_excessive_overtime(ctx: ValidationContext) -> IssueDraft | None:
    daily = ctx.overtime_seconds
    week_start = ctx.shift.started_at - 7 * MS_PER_DAY
    prior = sum(
        (s.overtime_seconds or 0)
        for s in ctx.other_shifts
        if s.id != ctx.shift.id
        and s.user_id == ctx.shift.user_id
        and s.ended_at is not None
        and week_start <= s.started_at < ctx.shift.started_at
    )
    weekly = prior + daily
    over_daily = daily > ctx.policy.max_daily_overtime_seconds
    over_weekly = weekly > ctx.policy.max_weekly_overtime_seconds
    if not (over_daily or over_weekly):
        return None
    if over_daily:
        message = f"{_hours(daily)} overtime hours exceed the daily cap of {_hours(ctx.policy.max_daily_overtime_seconds)}"
    else:
        message = f"{_hours(weekly)} overtime hours this week exceed the weekly cap of {_hours(ctx.policy.max_weekly_overtime_seconds)}"
    return IssueDraft(
        code=IssueCode.EXCESSIVE_OVERTIME,
        issue_type=IssueType.WARNING,
        severity=Severity.MEDIUM,
        category=Category.COMPLIANCE,
        message=message,
        related_entity_id=ctx.shift.id,
        related_entity_type="shift",
        data_snapshot={"daily_overtime_hours": _hours(daily), "weekly_overtime_hours": _hours(weekly)},
    )


# =============================================================================
# SYSTEM
# =============================================================================

def check_break_duration_cache(ctx: ValidationContext) -> IssueDraft | None:
    shift = ctx.shift
    if shift.ended_at is None:
        return None
    cached = shift.break_duration_seconds or 0
    derived = ctx.break_seconds
    # 1 second rounding tolerance
    if abs(cached - derived) <= 1:
        return None
    return IssueDraft(
        code=IssueCode.BREAK_DURATION_MISMATCH,
        issue_type=IssueType.WARNING,
        severity=Severity.LOW,
        category=Category.SYSTEM,
        message=f"Stored break duration ({cached}s) does not match sum of breaks ({derived}s)",
        related_entity_id=shift.id,
        related_entity_type="shift",
        data_snapshot={"stored_seconds": cached, "derived_seconds": derived},
    )


CATALOG: tuple[Callable[[ValidationContext], IssueDraft | None], ...] = (
    check_late_clock_in,
    check_missed_clock_out,
    check_shift_overlap,
    check_cash_variance,
    check_missing_end_shift_count,
    check_multiple_end_shift_counts,
    check_void_reasons,
    check_refund_approvals,
    check_suspicious_discounts,
    check_refund_chains,
    check_missing_break,
    check_missed_required_break,
    check_break_too_short,
    check_break_too_long,
    check_excessive_overtime,
    check_break_duration_cache,
)


def _sorted(rows: Iterable, *keys: str) -> tuple:
    return tuple(sorted(rows, key=lambda r: tuple(getattr(r, k) or 0 for k in keys)))


def aggregate(issues: Sequence[IssueDraft]) -> ValidationResult:
    """Rank issues and compute the verdict flags."""
    # Stable sort keeps catalog order within a severity
    ranked = tuple(sorted(issues, key=lambda i: -i.severity.rank))
    violations = sum(1 for i in ranked if i.issue_type == IssueType.VIOLATION)
    warnings = sum(1 for i in ranked if i.issue_type == IssueType.WARNING)
    critical = sum(1 for i in ranked if i.severity == Severity.CRITICAL)
    high_present = any(i.severity.rank >= Severity.HIGH.rank for i in ranked)
    cash_flagged = any(i.code == IssueCode.CASH_VARIANCE_HIGH for i in ranked)

    valid = critical == 0 and violations == 0
    requires_review = (not valid) or (warnings > 0 and high_present) or critical > 0 or cash_flagged

    return ValidationResult(
        issues=ranked,
        valid=valid,
        requires_review=requires_review,
        violation_count=violations,
        warning_count=warnings,
        critical_issue_count=critical,
    )


def validate_shift(
    shift,
    breaks: Iterable,
    cash_counts: Iterable,
    transactions: Iterable,
    *,
    policy: ShiftPolicy,
    now: int,
    schedule=None,
    other_shifts: Iterable = (),
) -> ValidationResult:
    """
    Evaluate one shift against the full rule catalog.

    Always returns a result; business data never raises here.
    """
    ctx = ValidationContext(
        shift=shift,
        breaks=_sorted(breaks, "start_time", "id"),
        cash_counts=_sorted(cash_counts, "timestamp", "id"),
        transactions=_sorted(transactions, "timestamp", "id"),
        policy=policy,
        now=now,
        schedule=schedule,
        other_shifts=_sorted(other_shifts, "started_at", "id"),
    )
    issues = []
    for check in CATALOG:
        issue = check(ctx)
        if issue is not None:
            issues.append(issue)
    return aggregate(issues)
