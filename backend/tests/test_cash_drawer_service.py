# Overview: Pytest coverage for cash drawer reconciliation and manager approval.

"""
Cash Drawer Reconciliation Tests

Test Coverage:
- Expected cash from starting cash and cash-moving transactions
- Count recording: notes requirement, single end-shift count, shift state
- Variance feeding back into the shift's validation
- Manager PIN approval (immediate and after the fact)
"""

from datetime import datetime, timezone

import pytest

from shiftguard.models import Resolution
from shiftguard.models.validation import IssueCode, Severity
from shiftguard.services import cash_drawer_service, clock_service, shift_service, validation_service
from shiftguard.services.errors import ConflictError, InvalidStateError, NotFoundError, ValidationError
from shiftguard.time_utils import MS_PER_HOUR, MS_PER_MINUTE, datetime_to_ms

T0 = datetime_to_ms(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
CLOSE = T0 + 4 * MS_PER_HOUR


@pytest.fixture
def pos_shift(db_session, cashier, make_transaction):
    """Starting cash 100.00, cash sales 250.00, cash refunds 20.00."""
    _, shift = clock_service.clock_in(
        cashier.id, cashier.business_id, "REG-01", timestamp=T0, starting_cash=100
    )
    make_transaction(shift, "sale", 25000)
    make_transaction(shift, "refund", -2000)
    return shift


def close(user, at=CLOSE):
    _, shift = clock_service.clock_out(user.id, user.business_id, "REG-01", timestamp=at)
    return shift


def record(shift, amount, user, notes=None, count_type="end-shift", **kwargs):
    kwargs.setdefault("timestamp", CLOSE + 5 * MS_PER_MINUTE)
    return cash_drawer_service.record_count(shift.id, count_type, amount, user.id, notes, **kwargs)


class TestExpectedCash:
    def test_expected_amount(self, db_session, pos_shift):
        expected = cash_drawer_service.get_expected_cash(pos_shift.id)
        assert expected.expected_cents == 33000
        assert expected.to_dict() == {
            "starting_cash": 100.0,
            "cash_sales": 250.0,
            "cash_refunds": 20.0,
            "expected_amount": 330.0,
        }

    def test_only_cash_portion_counts(self, db_session, pos_shift, make_transaction):
        make_transaction(pos_shift, "sale", 5000, payment_method="card")
        make_transaction(pos_shift, "sale", 3000, payment_method="mixed", cash_amount_cents=1000)
        make_transaction(pos_shift, "sale", 7000, status="voided")

        expected = cash_drawer_service.get_expected_cash(pos_shift.id)
        assert expected.cash_sales_cents == 26000
        assert expected.expected_cents == 34000

    def test_non_pos_shift_has_no_drawer(self, db_session, cashier):
        _, shift = clock_service.clock_in(cashier.id, cashier.business_id, "REG-01", timestamp=T0)
        with pytest.raises(InvalidStateError):
            cash_drawer_service.get_expected_cash(shift.id)


class TestRecordCount:
    def test_variance_requires_notes(self, db_session, cashier, pos_shift):
        close(cashier)
        with pytest.raises(ValidationError):
            record(pos_shift, 300, cashier)
        assert cash_drawer_service.get_counts(pos_shift.id) == []

    def test_short_drawer_sends_shift_to_review(self, db_session, cashier, pos_shift):
        """Counted 300.00 against 330.00 expected after clock-out."""
        shift = close(cashier)
        assert shift.status == "ended"
        codes = [i.code for i in validation_service.get_validation(shift.id).issues]
        assert codes == [IssueCode.MISSING_END_SHIFT_COUNT]

        count = record(pos_shift, 300, cashier, notes="Drawer short, till tape attached")

        assert count.expected_cents == 33000
        assert count.counted_cents == 30000
        assert count.variance_cents == -3000
        assert count.to_dict()["variance"] == -30.0
        assert count.requires_approval is True
        assert count.is_approved is False

        shift = shift_service.get_shift(pos_shift.id)
        assert shift.status == "pending_review"
        validation = validation_service.get_validation(shift.id)
        assert [i.code for i in validation.issues] == [IssueCode.CASH_VARIANCE_HIGH]
        assert validation.issues[0].severity == Severity.HIGH
        assert validation.valid is False
        assert validation.resolution == Resolution.NEEDS_REVIEW

    def test_count_before_clock_out(self, db_session, cashier, pos_shift):
        record(pos_shift, 270, cashier, notes="Large shortage", timestamp=CLOSE - MS_PER_MINUTE)

        shift = close(cashier)

        assert shift.status == "pending_review"
        issue = validation_service.get_validation(shift.id).issues[0]
        assert issue.code == IssueCode.CASH_VARIANCE_HIGH
        assert issue.severity == Severity.CRITICAL

    def test_balanced_drawer(self, db_session, cashier, pos_shift):
        close(cashier)
        count = record(pos_shift, 332, cashier)
        assert count.variance_cents == 200
        assert count.requires_approval is False
        assert count.is_final is True

        validation = validation_service.get_validation(pos_shift.id)
        assert validation.issues == []
        assert shift_service.get_shift(pos_shift.id).status == "ended"

    def test_second_end_shift_count_conflicts(self, db_session, cashier, pos_shift):
        close(cashier)
        record(pos_shift, 330, cashier)
        with pytest.raises(ConflictError):
            record(pos_shift, 330, cashier)
        assert len(cash_drawer_service.get_counts(pos_shift.id)) == 1

    def test_mid_shift_count_needs_active_shift(self, db_session, cashier, pos_shift):
        mid = record(pos_shift, 330, cashier, count_type="mid-shift", timestamp=T0 + MS_PER_HOUR)
        assert mid.count_type == "mid-shift"

        close(cashier)
        with pytest.raises(InvalidStateError):
            record(pos_shift, 330, cashier, count_type="mid-shift")

    def test_non_pos_shift_rejected(self, db_session, cashier):
        _, shift = clock_service.clock_in(cashier.id, cashier.business_id, "REG-01", timestamp=T0)
        with pytest.raises(InvalidStateError):
            record(shift, 0, cashier)

    @pytest.mark.parametrize("amount", [-1, "abc"])
    def test_bad_amount(self, db_session, cashier, pos_shift, amount):
        with pytest.raises(ValidationError):
            record(pos_shift, amount, cashier)

    def test_invalid_count_type(self, db_session, cashier, pos_shift):
        with pytest.raises(ValidationError):
            record(pos_shift, 330, cashier, count_type="spot-check")

    def test_unknown_counter(self, db_session, pos_shift):
        with pytest.raises(NotFoundError):
            cash_drawer_service.record_count(pos_shift.id, "end-shift", 330, 9999)


class TestManagerApproval:
    def test_immediate_approval(self, db_session, cashier, manager, manager_pin, pos_shift):
        close(cashier)
        count = record(
            pos_shift, 300, cashier, notes="Short", manager_id=manager.id, manager_pin=manager_pin
        )
        assert count.approved_by_user_id == manager.id
        assert count.approved_at is not None
        assert count.is_final is True

    def test_wrong_pin_rejects_count(self, db_session, cashier, manager, pos_shift):
        close(cashier)
        with pytest.raises(ValidationError):
            record(pos_shift, 300, cashier, notes="Short", manager_id=manager.id, manager_pin="0000")
        assert cash_drawer_service.get_counts(pos_shift.id) == []

    def test_role_without_approval_right(self, db_session, cashier, pos_shift):
        """The cashier's own PIN is correct but the role cannot approve."""
        close(cashier)
        with pytest.raises(ValidationError):
            record(pos_shift, 300, cashier, notes="Short", manager_id=cashier.id, manager_pin="1111")

    def test_approve_after_the_fact(self, db_session, cashier, manager, manager_pin, pos_shift):
        close(cashier)
        count = record(pos_shift, 300, cashier, notes="Short")

        with pytest.raises(ValidationError):
            cash_drawer_service.approve_count(count.id, manager.id, "0000")

        count = cash_drawer_service.approve_count(count.id, manager.id, manager_pin, now=CLOSE + MS_PER_HOUR)
        assert count.approved_by_user_id == manager.id
        assert count.approved_at == CLOSE + MS_PER_HOUR

        with pytest.raises(InvalidStateError):
            cash_drawer_service.approve_count(count.id, manager.id, manager_pin)

    def test_approval_not_needed(self, db_session, cashier, manager, manager_pin, pos_shift):
        close(cashier)
        count = record(pos_shift, 330, cashier)
        with pytest.raises(InvalidStateError):
            cash_drawer_service.approve_count(count.id, manager.id, manager_pin)
