# Overview: Pytest coverage for persisted validations and the issue resolution workflow.

"""
Issue Resolution Tracker Tests

Test Coverage:
- Persisted verdict, issue ranking and counters
- Re-running validation replaces the issue set
- Resolving issues never approves the validation by itself
- Resolution state machine and terminal states
"""

from datetime import datetime, timezone

import pytest

from shiftguard.models import AuditEvent, Resolution
from shiftguard.models.validation import IssueCode
from shiftguard.services import cash_drawer_service, clock_service, shift_service, validation_service
from shiftguard.services.errors import InvalidStateError, NotFoundError, ValidationError
from shiftguard.time_utils import MS_PER_HOUR, MS_PER_MINUTE, datetime_to_ms

T0 = datetime_to_ms(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))
CLOSE = T0 + 4 * MS_PER_HOUR


@pytest.fixture
def flagged_shift(db_session, cashier, make_transaction):
    """Closed POS shift with a 50.00 shortage and a void without a reason."""
    _, shift = clock_service.clock_in(
        cashier.id, cashier.business_id, "REG-01", timestamp=T0, starting_cash=100
    )
    make_transaction(shift, "sale", 10000)
    make_transaction(shift, "void", 500, timestamp=T0 + 2 * MS_PER_MINUTE)
    cash_drawer_service.record_count(
        shift.id, "end-shift", 150, cashier.id, "Short fifty", timestamp=CLOSE - MS_PER_MINUTE
    )
    _, shift = clock_service.clock_out(cashier.id, cashier.business_id, "REG-01", timestamp=CLOSE)
    return shift


@pytest.fixture
def clean_shift(db_session, cashier):
    clock_service.clock_in(cashier.id, cashier.business_id, "REG-01", timestamp=T0)
    _, shift = clock_service.clock_out(cashier.id, cashier.business_id, "REG-01", timestamp=CLOSE)
    return shift


class TestPersistedVerdict:
    def test_issues_ranked_and_counted(self, db_session, flagged_shift):
        validation = validation_service.get_validation(flagged_shift.id)

        assert [i.code for i in validation.issues] == [
            IssueCode.CASH_VARIANCE_HIGH,
            IssueCode.VOIDED_TRANSACTION_NO_REASON,
        ]
        assert [i.position for i in validation.issues] == [0, 1]
        assert validation.violation_count == 1
        assert validation.warning_count == 1
        assert validation.critical_issue_count == 0
        assert validation.unresolved_issue_count == 2
        assert validation.valid is False
        assert validation.requires_review is True
        assert validation.resolution == Resolution.NEEDS_REVIEW
        assert validation.validation_method == "auto"
        assert flagged_shift.status == "pending_review"

    def test_rerun_replaces_issues(self, db_session, manager, flagged_shift):
        """A manual re-run rebuilds the issue set and resets issue resolutions."""
        validation = validation_service.get_validation(flagged_shift.id)
        first_ids = [i.id for i in validation.issues]
        validation_service.resolve_issue(first_ids[1], manager.id, "Customer walked out")

        validation = validation_service.run_validation(
            flagged_shift.id, validated_by=manager.id, method="manual", now=CLOSE + MS_PER_HOUR
        )

        assert [i.code for i in validation.issues] == [
            IssueCode.CASH_VARIANCE_HIGH,
            IssueCode.VOIDED_TRANSACTION_NO_REASON,
        ]
        assert not set(first_ids) & {i.id for i in validation.issues}
        assert validation.unresolved_issue_count == 2
        assert validation.validated_by == manager.id
        assert validation.validation_method == "manual"
        assert validation.resolution == Resolution.NEEDS_REVIEW

    def test_rerun_is_deterministic(self, db_session, flagged_shift):
        first = validation_service.run_validation(flagged_shift.id, now=CLOSE + MS_PER_HOUR)
        first_view = [(i.code, i.severity, i.message) for i in first.issues]
        second = validation_service.run_validation(flagged_shift.id, now=CLOSE + 2 * MS_PER_HOUR)
        assert [(i.code, i.severity, i.message) for i in second.issues] == first_view

    def test_invalid_method(self, db_session, flagged_shift):
        with pytest.raises(ValidationError):
            validation_service.run_validation(flagged_shift.id, method="psychic")

    def test_unknown_shift(self, db_session):
        with pytest.raises(NotFoundError):
            validation_service.run_validation(9999)

    def test_list_unresolved_issues(self, db_session, manager, flagged_shift):
        validation = validation_service.get_validation(flagged_shift.id)
        issues = validation_service.list_issues(validation.id)
        validation_service.resolve_issue(issues[0].id, manager.id)

        unresolved = validation_service.list_issues(validation.id, unresolved_only=True)
        assert [i.id for i in unresolved] == [issues[1].id]


class TestResolutionWorkflow:
    def test_resolving_all_issues_does_not_approve(self, db_session, manager, flagged_shift):
        """Clearing the last issue leaves the validation waiting for an explicit call."""
        validation = validation_service.get_validation(flagged_shift.id)
        issue_ids = [i.id for i in validation.issues]

        issue = validation_service.resolve_issue(issue_ids[0], manager.id, "Recounted, tape matches")
        assert issue.resolved is True
        assert issue.resolved_by == manager.id
        assert validation_service.get_validation_by_id(validation.id).unresolved_issue_count == 1

        validation_service.resolve_issue(issue_ids[1], manager.id)
        validation = validation_service.get_validation_by_id(validation.id)
        assert validation.unresolved_issue_count == 0
        assert validation.resolution == Resolution.NEEDS_REVIEW
        assert shift_service.get_shift(flagged_shift.id).status == "pending_review"

        validation = validation_service.resolve_validation(validation.id, manager.id, "approved", "Signed off")
        assert validation.resolution == Resolution.APPROVED
        assert validation.resolved_by == manager.id
        assert validation.resolution_notes == "Signed off"
        assert shift_service.get_shift(flagged_shift.id).status == "ended"

        audited = db_session.query(AuditEvent).filter_by(
            shift_id=flagged_shift.id, event_type="validation.approved"
        ).count()
        assert audited == 1

    def test_cannot_approve_with_open_issues(self, db_session, manager, flagged_shift):
        validation = validation_service.get_validation(flagged_shift.id)
        with pytest.raises(InvalidStateError):
            validation_service.resolve_validation(validation.id, manager.id, Resolution.APPROVED)
        assert validation_service.get_validation_by_id(validation.id).resolution == Resolution.NEEDS_REVIEW

    def test_issue_resolved_once(self, db_session, manager, flagged_shift):
        issue = validation_service.get_validation(flagged_shift.id).issues[0]
        validation_service.resolve_issue(issue.id, manager.id)
        with pytest.raises(InvalidStateError):
            validation_service.resolve_issue(issue.id, manager.id)

    def test_resolver_must_exist(self, db_session, flagged_shift):
        issue = validation_service.get_validation(flagged_shift.id).issues[0]
        with pytest.raises(NotFoundError):
            validation_service.resolve_issue(issue.id, 9999)

    def test_reject_is_terminal(self, db_session, manager, flagged_shift):
        """Rejected validations keep their open issues and cannot be re-run."""
        validation = validation_service.get_validation(flagged_shift.id)
        validation = validation_service.reject_validation(validation.id, manager.id, "Send to payroll")

        assert validation.resolution == Resolution.REJECTED
        assert validation.unresolved_issue_count == 2
        assert shift_service.get_shift(flagged_shift.id).status == "pending_review"

        with pytest.raises(InvalidStateError):
            validation_service.resolve_issue(validation.issues[0].id, manager.id)
        with pytest.raises(InvalidStateError):
            validation_service.resolve_validation(validation.id, manager.id, "approved")
        with pytest.raises(InvalidStateError):
            validation_service.run_validation(flagged_shift.id)

    def test_invalid_resolution_value(self, db_session, manager, flagged_shift):
        validation = validation_service.get_validation(flagged_shift.id)
        with pytest.raises(ValidationError):
            validation_service.resolve_validation(validation.id, manager.id, "maybe")

    def test_pending_can_be_escalated(self, db_session, manager, clean_shift):
        validation = validation_service.get_validation(clean_shift.id)
        assert validation.resolution == Resolution.PENDING
        assert validation.requires_review is False

        validation = validation_service.resolve_validation(validation.id, manager.id, "needs_review")
        assert validation.resolution == Resolution.NEEDS_REVIEW
        assert validation.requires_review is True
        assert validation.resolved_at is None

        with pytest.raises(InvalidStateError):
            validation_service.resolve_validation(validation.id, manager.id, "needs_review")
        with pytest.raises(InvalidStateError):
            validation_service.resolve_validation(validation.id, manager.id, "pending")

    def test_clean_shift_approved_directly(self, db_session, manager, clean_shift):
        validation = validation_service.get_validation(clean_shift.id)
        validation = validation_service.resolve_validation(validation.id, manager.id, "approved")
        assert validation.resolution == Resolution.APPROVED
        assert shift_service.get_shift(clean_shift.id).status == "ended"

    def test_unknown_validation(self, db_session, manager):
        with pytest.raises(NotFoundError):
            validation_service.resolve_validation(9999, manager.id, "approved")
