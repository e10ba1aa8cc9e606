# Overview: Pytest coverage for the JSON API blueprints and their error mapping.

"""
API Route Tests

Test Coverage:
- Clock-in/out endpoints and HTTP status mapping of service errors
- Break, cash drawer and validation endpoints end to end
- Health check
"""

from datetime import datetime, timezone

from shiftguard.services.shift_service import get_shift
from shiftguard.time_utils import MS_PER_HOUR, MS_PER_MINUTE, datetime_to_ms

T0 = datetime_to_ms(datetime(2026, 3, 2, 9, 0, tzinfo=timezone.utc))


def post_clock_in(client, user_id, **extra):
    payload = {"user_id": user_id, "terminal_id": "REG-01", "timestamp": T0}
    payload.update(extra)
    return client.post("/api/shifts/clock-in", json=payload)


def post_clock_out(client, user_id, at):
    return client.post(
        "/api/shifts/clock-out", json={"user_id": user_id, "terminal_id": "REG-01", "timestamp": at}
    )


class TestSystemRoutes:
    def test_health(self, client, db_session):
        response = client.get("/api/health")
        assert response.status_code == 200
        data = response.get_json()
        assert data["status"] == "healthy"
        assert data["checks"]["database"]["details"]["active_shifts"] == 0


class TestShiftRoutes:
    def test_clock_in_and_double_clock_in(self, client, db_session, cashier):
        user_id = cashier.id

        response = post_clock_in(client, user_id)
        assert response.status_code == 201
        data = response.get_json()
        assert data["event"]["type"] == "in"
        assert data["shift"]["status"] == "active"
        assert data["shift"]["started_at"] == T0

        response = post_clock_in(client, user_id)
        assert response.status_code == 409

    def test_clock_in_iso_timestamp(self, client, db_session, cashier):
        response = post_clock_in(client, cashier.id, timestamp="2026-03-02T09:00:00Z")
        assert response.status_code == 201
        assert response.get_json()["shift"]["started_at"] == T0

    def test_clock_in_requires_terminal(self, client, db_session, cashier):
        response = client.post("/api/shifts/clock-in", json={"user_id": cashier.id})
        assert response.status_code == 400

    def test_bad_timestamp(self, client, db_session, cashier):
        response = post_clock_in(client, cashier.id, timestamp="yesterday-ish")
        assert response.status_code == 400

    def test_non_numeric_business_id(self, client, db_session, cashier):
        response = post_clock_in(client, cashier.id, business_id="main-street")
        assert response.status_code == 400
        assert response.get_json()["error"] == "business_id must be an integer"

        response = client.post(
            "/api/shifts/clock-out",
            json={"user_id": cashier.id, "terminal_id": "REG-01", "business_id": "x", "timestamp": T0},
        )
        assert response.status_code == 400

    def test_unknown_user(self, client, db_session):
        response = post_clock_in(client, 9999)
        assert response.status_code == 404

    def test_clock_out_without_shift(self, client, db_session, cashier):
        response = post_clock_out(client, cashier.id, T0)
        assert response.status_code == 409

    def test_clock_out_returns_validation(self, client, db_session, cashier):
        user_id = cashier.id
        post_clock_in(client, user_id)

        response = post_clock_out(client, user_id, T0 + 8 * MS_PER_HOUR)

        assert response.status_code == 200
        data = response.get_json()
        assert data["event"]["type"] == "out"
        assert data["shift"]["status"] == "pending_review"
        assert data["shift"]["total_hours"] == 8.0
        assert data["validation"]["requires_review"] is True
        assert [i["code"] for i in data["validation"]["issues"]] == ["MISSED_REQUIRED_BREAK"]

    def test_active_shift_lookup(self, client, db_session, cashier):
        user_id = cashier.id
        assert client.get(f"/api/shifts/active/{user_id}").get_json()["shift"] is None

        shift_id = post_clock_in(client, user_id).get_json()["shift"]["id"]
        data = client.get(f"/api/shifts/active/{user_id}").get_json()
        assert data["shift"]["id"] == shift_id
        assert data["active_break"] is None

    def test_get_shift_and_recompute(self, client, db_session, cashier):
        shift_id = post_clock_in(client, cashier.id).get_json()["shift"]["id"]

        assert client.get(f"/api/shifts/{shift_id}").status_code == 200
        assert client.get("/api/shifts/9999").status_code == 404

        response = client.post(f"/api/shifts/{shift_id}/recompute")
        assert response.status_code == 200
        assert response.get_json()["shift"]["total_hours"] is None

    def test_today_schedule_empty(self, client, db_session, cashier):
        response = client.get(f"/api/shifts/today-schedule/{cashier.id}?now={T0}")
        assert response.status_code == 200
        assert response.get_json() == {"schedules": [], "count": 0}


class TestBreakRoutes:
    def test_break_start_end_and_list(self, client, db_session, cashier):
        shift_id = post_clock_in(client, cashier.id).get_json()["shift"]["id"]

        response = client.post(
            "/api/breaks/start", json={"shift_id": shift_id, "type": "rest", "start_time": T0 + MS_PER_HOUR}
        )
        assert response.status_code == 201
        break_id = response.get_json()["break"]["id"]

        response = client.post(
            "/api/breaks/start", json={"shift_id": shift_id, "start_time": T0 + MS_PER_HOUR + MS_PER_MINUTE}
        )
        assert response.status_code == 409

        response = client.post(f"/api/breaks/{break_id}/end", json={"end_time": T0 + MS_PER_HOUR + 15 * MS_PER_MINUTE})
        assert response.status_code == 200
        assert response.get_json()["break"]["duration_seconds"] == 900

        data = client.get(f"/api/breaks/shift/{shift_id}").get_json()
        assert len(data["breaks"]) == 1
        assert data["summary"]["paid_seconds"] == 900


    def test_schedule_then_start(self, client, db_session, cashier):
        shift_id = post_clock_in(client, cashier.id).get_json()["shift"]["id"]

        response = client.post("/api/breaks/schedule", json={"shift_id": shift_id})
        assert response.status_code == 400

        response = client.post(
            "/api/breaks/schedule", json={"shift_id": shift_id, "start_time": T0 + 4 * MS_PER_HOUR}
        )
        assert response.status_code == 201
        planned = response.get_json()["break"]
        assert planned["status"] == "scheduled"
        assert planned["is_required"] is True

        response = client.post(
            "/api/breaks/start", json={"shift_id": shift_id, "type": "meal", "start_time": T0 + 4 * MS_PER_HOUR}
        )
        assert response.get_json()["break"]["id"] == planned["id"]


class TestCashDrawerRoutes:
    def test_count_workflow(self, client, db_session, cashier, manager, manager_pin, make_transaction):
        user_id, manager_id = cashier.id, manager.id
        shift_id = post_clock_in(client, user_id, starting_cash=100.00).get_json()["shift"]["id"]

        shift = get_shift(shift_id)
        make_transaction(shift, "sale", 25000)
        make_transaction(shift, "refund", -2000)

        post_clock_out(client, user_id, T0 + 4 * MS_PER_HOUR)

        data = client.get(f"/api/cash-drawer/{shift_id}/expected").get_json()
        assert data["expected_amount"] == 330.0

        payload = {"shift_id": shift_id, "counted_by": user_id, "counted_amount": 300.00, "timestamp": T0 + 5 * MS_PER_HOUR}
        response = client.post("/api/cash-drawer/counts", json=payload)
        assert response.status_code == 400

        payload["notes"] = "Short thirty"
        response = client.post("/api/cash-drawer/counts", json=payload)
        assert response.status_code == 201
        count = response.get_json()["count"]
        assert count["variance"] == -30.0
        assert count["requires_approval"] is True
        assert count["is_final"] is False

        response = client.post(
            f"/api/cash-drawer/counts/{count['id']}/approve",
            json={"manager_id": manager_id, "manager_pin": manager_pin},
        )
        assert response.status_code == 200
        assert response.get_json()["count"]["approved_by"] == manager_id

        assert client.get(f"/api/shifts/{shift_id}").get_json()["shift"]["status"] == "pending_review"

    def test_missing_amount(self, client, db_session, cashier):
        response = client.post("/api/cash-drawer/counts", json={"shift_id": 1, "counted_by": cashier.id})
        assert response.status_code == 400

    def test_expected_for_non_pos_shift(self, client, db_session, cashier):
        shift_id = post_clock_in(client, cashier.id).get_json()["shift"]["id"]
        response = client.get(f"/api/cash-drawer/{shift_id}/expected")
        assert response.status_code == 409


class TestValidationRoutes:
    def test_review_workflow(self, client, db_session, cashier, manager):
        user_id, manager_id = cashier.id, manager.id
        post_clock_in(client, user_id)
        shift_id = post_clock_out(client, user_id, T0 + 8 * MS_PER_HOUR).get_json()["shift"]["id"]

        validation = client.get(f"/api/validation/shift/{shift_id}").get_json()["validation"]
        assert validation["resolution"] == "needs_review"
        validation_id = validation["id"]

        response = client.post(
            f"/api/validation/{validation_id}/resolve", json={"resolved_by": manager_id, "resolution": "approved"}
        )
        assert response.status_code == 409

        issues = client.get(f"/api/validation/{validation_id}/issues?unresolved_only=true").get_json()["issues"]
        assert len(issues) == 1

        response = client.post(f"/api/validation/issues/{issues[0]['id']}/resolve", json={})
        assert response.status_code == 400

        response = client.post(
            f"/api/validation/issues/{issues[0]['id']}/resolve",
            json={"resolved_by": manager_id, "notes": "Covered by the floor lead"},
        )
        assert response.status_code == 200
        assert response.get_json()["validation"]["unresolved_issue_count"] == 0
        assert response.get_json()["validation"]["resolution"] == "needs_review"

        response = client.post(
            f"/api/validation/{validation_id}/resolve", json={"resolved_by": manager_id, "resolution": "approved"}
        )
        assert response.status_code == 200
        assert response.get_json()["validation"]["resolution"] == "approved"
        assert client.get(f"/api/shifts/{shift_id}").get_json()["shift"]["status"] == "ended"

        response = client.post(f"/api/validation/{shift_id}/run", json={"validated_by": manager_id})
        assert response.status_code == 409

    def test_reject_and_manual_run(self, client, db_session, cashier, manager):
        user_id, manager_id = cashier.id, manager.id
        shift_id = post_clock_in(client, user_id).get_json()["shift"]["id"]

        response = client.post(f"/api/validation/{shift_id}/run", json={"validated_by": manager_id})
        assert response.status_code == 200
        validation = response.get_json()["validation"]
        assert validation["validation_method"] == "manual"

        response = client.post(f"/api/validation/{validation['id']}/reject", json={"resolved_by": manager_id})
        assert response.status_code == 200
        assert response.get_json()["validation"]["resolution"] == "rejected"

    def test_missing_validation(self, client, db_session):
        assert client.get("/api/validation/shift/9999").status_code == 404
        assert client.post("/api/validation/9999/run", json={}).status_code == 404
