# Overview: Cash drawer reconciliation; expected cash, counts, variance approval.

"""
Cash Drawer Reconciliation

WHY: Cash accountability per shift. Every count is compared against the
cash the drawer should hold, and large variances need a manager.

DESIGN PRINCIPLES:
- Counts are immutable once recorded (approval is the only mutation)
- At most one end-shift count per shift
- Expected cash = starting cash + cash sales - cash refunds
- Variance above threshold needs notes and a manager approval
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..extensions import db
from ..models import CashDrawerCount, Shift, Transaction, User
from ..models.cash import COUNT_END_SHIFT, COUNT_MID_SHIFT, COUNT_TYPES
from ..models.sales import TX_REFUND, TX_SALE
from ..models.timekeeping import SHIFT_ACTIVE, SHIFT_ENDED, SHIFT_PENDING_REVIEW
from ..money import from_cents, to_cents
from ..time_utils import now_ms
from .audit_service import append_audit_event
from .auth_service import verify_manager_pin
from .concurrency import lock_for_update, unit_of_work
from .errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from .policy import ShiftPolicy, current_policy
from .shift_service import COMPLETED, get_shift, get_shift_transactions
from .validation_service import get_validation, run_validation


@dataclass(frozen=True)
class ExpectedCash:
    starting_cents: int
    cash_sales_cents: int
    cash_refunds_cents: int

    @property
    def expected_cents(self) -> int:
        return self.starting_cents + self.cash_sales_cents - self.cash_refunds_cents

    def to_dict(self) -> dict:
        return {
            "starting_cash": from_cents(self.starting_cents),
            "cash_sales": from_cents(self.cash_sales_cents),
            "cash_refunds": from_cents(self.cash_refunds_cents),
            "expected_amount": from_cents(self.expected_cents),
        }


def compute_expected_cash(starting_cents: int, transactions: Iterable[Transaction]) -> ExpectedCash:
    """Only the cash portion of completed sales and refunds moves the drawer."""
    sales = refunds = 0
    for tx in transactions:
        if tx.status != COMPLETED:
            continue
        if tx.tx_type == TX_SALE:
            sales += tx.cash_portion_cents
        elif tx.tx_type == TX_REFUND:
            refunds += abs(tx.cash_portion_cents)
    return ExpectedCash(starting_cents=starting_cents, cash_sales_cents=sales, cash_refunds_cents=refunds)


def get_expected_cash(shift_id: int) -> ExpectedCash:
    shift = get_shift(shift_id)
    if not shift.is_pos_shift:
        raise InvalidStateError("Shift has no cash drawer")
    return compute_expected_cash(shift.starting_cash_cents, get_shift_transactions(shift.id))


def get_counts(shift_id: int) -> list[CashDrawerCount]:
    return (
        db.session.query(CashDrawerCount)
        .filter_by(shift_id=shift_id)
        .order_by(CashDrawerCount.timestamp.asc(), CashDrawerCount.id.asc())
        .all()
    )


def _revalidate_closed_shift(shift: Shift, *, now: int, policy: ShiftPolicy) -> None:
    """Keep a closed shift's open verdict current after a late count."""
    if shift.status == SHIFT_ACTIVE:
        return
    existing = get_validation(shift.id)
    if existing is not None and existing.resolution.is_terminal:
        return
    validation = run_validation(shift.id, method="auto", now=now, policy=policy, commit=False)
    if validation.requires_review and shift.status == SHIFT_ENDED:
        shift.status = SHIFT_PENDING_REVIEW


# =============================================================================
# COUNTS
# =============================================================================

def record_count(
    shift_id: int,
    count_type: str,
    counted_amount,
    counted_by: int,
    notes: str | None = None,
    *,
    manager_id: int | None = None,
    manager_pin: str | None = None,
    timestamp: int | None = None,
    policy: ShiftPolicy | None = None,
) -> CashDrawerCount:
    """
    Record a cash count against a POS shift.

    Args:
        shift_id: Shift whose drawer was counted
        count_type: "mid-shift" or "end-shift"
        counted_amount: Cash in the drawer (decimal units)
        counted_by: User who counted
        notes: Required when the variance exceeds the threshold
        manager_id / manager_pin: Optional immediate approval

    Raises:
        ConflictError: second end-shift count
        ValidationError: bad amount, missing notes, bad manager credential
        InvalidStateError: shift has no drawer, or mid-shift count on a closed shift
    """
    if count_type not in COUNT_TYPES:
        raise ValidationError(f"Invalid count type '{count_type}'")
    try:
        counted_cents = to_cents(counted_amount)
    except (ArithmeticError, TypeError, ValueError) as exc:
        raise ValidationError("counted_amount must be a number") from exc
    if counted_cents is None or counted_cents < 0:
        raise ValidationError("counted_amount must be zero or more")

    policy = policy or current_policy()
    timestamp = timestamp if timestamp is not None else now_ms()

    with unit_of_work("An end-shift count already exists for this shift"):
        shift = lock_for_update(db.session.query(Shift).filter_by(id=shift_id)).first()
        if not shift:
            raise NotFoundError("Shift not found")
        if not shift.is_pos_shift:
            raise InvalidStateError("Shift has no cash drawer")
        if count_type == COUNT_MID_SHIFT and shift.status != SHIFT_ACTIVE:
            raise InvalidStateError("Mid-shift counts require an active shift")
        if not db.session.get(User, counted_by):
            raise NotFoundError("Counting user not found")

        if count_type == COUNT_END_SHIFT:
            duplicate = db.session.query(CashDrawerCount.id).filter_by(
                shift_id=shift.id, count_type=COUNT_END_SHIFT
            ).first()
            if duplicate:
                raise ConflictError("An end-shift count already exists for this shift")

        expected = compute_expected_cash(shift.starting_cash_cents, get_shift_transactions(shift.id))
        variance = counted_cents - expected.expected_cents
        above_threshold = abs(variance) > policy.cash_discrepancy_threshold_cents

        if above_threshold and not (notes or "").strip():
            raise ValidationError(
                f"Notes are required when the variance ({from_cents(variance):.2f}) exceeds "
                f"{from_cents(policy.cash_discrepancy_threshold_cents):.2f}"
            )

        approver = None
        if above_threshold and manager_id is not None:
            approver = verify_manager_pin(manager_id, manager_pin, business_id=shift.business_id)
            if approver is None:
                raise ValidationError("Invalid manager credentials")

        count = CashDrawerCount(
            shift_id=shift.id,
            business_id=shift.business_id,
            count_type=count_type,
            expected_cents=expected.expected_cents,
            counted_cents=counted_cents,
            variance_cents=variance,
            notes=notes,
            counted_by_user_id=counted_by,
            timestamp=timestamp,
            requires_approval=above_threshold,
            approved_by_user_id=approver.id if approver else None,
            approved_at=timestamp if approver else None,
        )
        db.session.add(count)
        db.session.flush()

        append_audit_event(
            business_id=shift.business_id,
            event_type="cash_count.recorded",
            entity_type="cash_drawer_count",
            entity_id=count.id,
            actor_user_id=counted_by,
            shift_id=shift.id,
            occurred_at=timestamp,
            note=notes,
            payload={
                "count_type": count_type,
                "expected": from_cents(count.expected_cents),
                "counted": from_cents(count.counted_cents),
                "variance": from_cents(count.variance_cents),
                "requires_approval": count.requires_approval,
                "approved_by": count.approved_by_user_id,
            },
        )

        _revalidate_closed_shift(shift, now=timestamp, policy=policy)

    return count


def approve_count(
    count_id: int,
    manager_id: int,
    manager_pin: str,
    *,
    now: int | None = None,
) -> CashDrawerCount:
    """
    Manager sign-off for an above-threshold count.

    The manager must belong to the shift's business, hold a role allowed to
    approve cash variances, and enter a PIN matching the stored bcrypt hash.
    """
    now = now if now is not None else now_ms()

    with unit_of_work():
        count = lock_for_update(db.session.query(CashDrawerCount).filter_by(id=count_id)).first()
        if not count:
            raise NotFoundError("Cash count not found")
        if not count.requires_approval:
            raise InvalidStateError("Cash count does not require approval")
        if count.is_approved:
            raise InvalidStateError("Cash count is already approved")

        manager = verify_manager_pin(manager_id, manager_pin, business_id=count.business_id)
        if manager is None:
            raise ValidationError("Invalid manager credentials")

        count.approved_by_user_id = manager.id
        count.approved_at = now
        db.session.flush()

        append_audit_event(
            business_id=count.business_id,
            event_type="cash_count.approved",
            entity_type="cash_drawer_count",
            entity_id=count.id,
            actor_user_id=manager.id,
            shift_id=count.shift_id,
            occurred_at=now,
            payload={"variance": from_cents(count.variance_cents)},
        )

    return count
