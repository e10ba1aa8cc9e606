# Overview: Flask API routes for cash drawer reconciliation.

"""
Cash Drawer Routes

Amounts are decimal currency units on the wire; the service stores cents.
"""

from flask import Blueprint, current_app, jsonify, request

from ..services import cash_drawer_service
from ..services.errors import ShiftGuardError
from . import error_response, timestamp_field

cash_drawer_bp = Blueprint("cash_drawer", __name__, url_prefix="/api/cash-drawer")


@cash_drawer_bp.get("/<int:shift_id>/expected")
def get_expected_cash_route(shift_id: int):
    try:
        expected = cash_drawer_service.get_expected_cash(shift_id)
        return jsonify({"shift_id": shift_id, **expected.to_dict()})
    except ShiftGuardError as e:
        return error_response(e)


@cash_drawer_bp.get("/<int:shift_id>/counts")
def list_counts_route(shift_id: int):
    counts = cash_drawer_service.get_counts(shift_id)
    return jsonify({"counts": [c.to_dict() for c in counts], "count": len(counts)})


@cash_drawer_bp.post("/counts")
def create_count_route():
    data = request.get_json(silent=True) or {}
    shift_id = data.get("shift_id")
    counted_by = data.get("counted_by")

    if not shift_id:
        return jsonify({"error": "shift_id is required"}), 400
    if not counted_by:
        return jsonify({"error": "counted_by is required"}), 400
    if data.get("counted_amount") is None:
        return jsonify({"error": "counted_amount is required"}), 400

    try:
        count = cash_drawer_service.record_count(
            shift_id,
            data.get("count_type", "end-shift"),
            data["counted_amount"],
            counted_by,
            data.get("notes"),
            manager_id=data.get("manager_id"),
            manager_pin=data.get("manager_pin"),
            timestamp=timestamp_field(data, "timestamp"),
        )
        return jsonify({"count": count.to_dict()}), 201
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Cash count failed")
        return jsonify({"error": "Internal server error"}), 500


@cash_drawer_bp.post("/counts/<int:count_id>/approve")
def approve_count_route(count_id: int):
    data = request.get_json(silent=True) or {}
    manager_id = data.get("manager_id")
    manager_pin = data.get("manager_pin")

    if not manager_id or not manager_pin:
        return jsonify({"error": "manager_id and manager_pin are required"}), 400

    try:
        count = cash_drawer_service.approve_count(count_id, manager_id, str(manager_pin))
        return jsonify({"count": count.to_dict()})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Cash count approval failed")
        return jsonify({"error": "Internal server error"}), 500
