# Overview: Pytest coverage for the Flask CLI command groups.

"""
CLI Tests

Test Coverage:
- users set-pin stores a bcrypt hash the approval check accepts
- shifts validate / sweep print verdicts and map service errors
"""

from datetime import datetime, timezone

from shiftguard.services import clock_service
from shiftguard.services.auth_service import verify_manager_pin
from shiftguard.time_utils import MS_PER_HOUR, datetime_to_ms

T0 = datetime_to_ms(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


class TestUsersCommands:
    def test_set_pin(self, app, db_session, manager):
        runner = app.test_cli_runner()
        result = runner.invoke(args=["users", "set-pin", str(manager.id), "--pin", "9876"])

        assert result.exit_code == 0
        assert "PASS PIN updated" in result.output

        db_session.expire_all()
        assert verify_manager_pin(manager.id, "9876", business_id=manager.business_id) is not None

    def test_set_pin_rejects_letters(self, app, db_session, manager):
        result = app.test_cli_runner().invoke(args=["users", "set-pin", str(manager.id), "--pin", "abcd"])
        assert result.exit_code != 0
        assert "PIN must be" in result.output

    def test_set_pin_unknown_user(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["users", "set-pin", "9999", "--pin", "1234"])
        assert result.exit_code != 0
        assert "User not found" in result.output


class TestShiftCommands:
    def test_validate_prints_issues(self, app, db_session, cashier):
        clock_service.clock_in(cashier.id, cashier.business_id, "REG-01", timestamp=T0)
        _, shift = clock_service.clock_out(
            cashier.id, cashier.business_id, "REG-01", timestamp=T0 + 8 * MS_PER_HOUR
        )

        result = app.test_cli_runner().invoke(args=["shifts", "validate", str(shift.id)])

        assert result.exit_code == 0
        assert f"Shift {shift.id}: valid=True requires_review=True" in result.output
        assert "MISSED_REQUIRED_BREAK" in result.output

    def test_validate_unknown_shift(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["shifts", "validate", "9999"])
        assert result.exit_code != 0

    def test_sweep_without_active_shifts(self, app, db_session):
        result = app.test_cli_runner().invoke(args=["shifts", "sweep"])
        assert result.exit_code == 0
        assert "No active shifts." in result.output
