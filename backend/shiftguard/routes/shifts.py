# Overview: Flask API routes for clock-in/out and shift lookups; parses input and returns JSON responses.

from flask import Blueprint, current_app, jsonify, request

from ..extensions import db
from ..models import User
from ..services import clock_service, shift_service
from ..services.break_service import get_active_break
from ..services.errors import ShiftGuardError
from . import error_response, int_field, timestamp_field

shifts_bp = Blueprint("shifts", __name__, url_prefix="/api/shifts")


def _business_id_for(data: dict, user_id: int) -> int | None:
    business_id = int_field(data, "business_id")
    if business_id is not None:
        return business_id
    user = db.session.get(User, user_id)
    return user.business_id if user else None


@shifts_bp.post("/clock-in")
def clock_in_route():
    data = request.get_json(silent=True) or {}
    user_id = data.get("user_id")
    terminal_id = data.get("terminal_id")

    if not user_id:
        return jsonify({"error": "user_id is required"}), 400
    if not terminal_id:
        return jsonify({"error": "terminal_id is required"}), 400

    try:
        business_id = _business_id_for(data, user_id)
        if business_id is None:
            return jsonify({"error": "User not found"}), 404
        event, shift = clock_service.clock_in(
            user_id,
            business_id,
            terminal_id,
            method=data.get("method", "manual"),
            timestamp=timestamp_field(data, "timestamp"),
            schedule_id=data.get("schedule_id"),
            starting_cash=data.get("starting_cash"),
            notes=data.get("notes"),
        )
        return jsonify({"event": event.to_dict(), "shift": shift.to_dict()}), 201
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Clock-in failed")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.post("/clock-out")
def clock_out_route():
    data = request.get_json(silent=True) or {}
    user_id = data.get("user_id")
    terminal_id = data.get("terminal_id")

    if not user_id:
        return jsonify({"error": "user_id is required"}), 400
    if not terminal_id:
        return jsonify({"error": "terminal_id is required"}), 400

    try:
        business_id = _business_id_for(data, user_id)
        if business_id is None:
            return jsonify({"error": "User not found"}), 404
        event, shift = clock_service.clock_out(
            user_id,
            business_id,
            terminal_id,
            method=data.get("method", "manual"),
            timestamp=timestamp_field(data, "timestamp"),
            notes=data.get("notes"),
        )
        validation = shift.validation
        return jsonify({
            "event": event.to_dict(),
            "shift": shift.to_dict(),
            "validation": validation.to_dict(include_issues=True) if validation else None,
        })
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Clock-out failed")
        return jsonify({"error": "Internal server error"}), 500


@shifts_bp.get("/active/<int:user_id>")
def get_active_shift_route(user_id: int):
    shift = shift_service.get_active_shift(user_id)
    if not shift:
        return jsonify({"shift": None, "active_break": None})
    brk = get_active_break(shift.id)
    return jsonify({"shift": shift.to_dict(), "active_break": brk.to_dict() if brk else None})


@shifts_bp.get("/today-schedule/<int:user_id>")
def get_today_schedule_route(user_id: int):
    try:
        now = timestamp_field(request.args, "now")
        schedules = shift_service.get_today_schedule(user_id, now)
        return jsonify({"schedules": [s.to_dict() for s in schedules], "count": len(schedules)})
    except ShiftGuardError as e:
        return error_response(e)


@shifts_bp.get("/<int:shift_id>")
def get_shift_route(shift_id: int):
    try:
        shift = shift_service.get_shift(shift_id)
        return jsonify({"shift": shift.to_dict()})
    except ShiftGuardError as e:
        return error_response(e)


@shifts_bp.post("/<int:shift_id>/recompute")
def recompute_shift_route(shift_id: int):
    try:
        shift = shift_service.recompute_shift(shift_id)
        return jsonify({"shift": shift.to_dict()})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Shift recompute failed")
        return jsonify({"error": "Internal server error"}), 500
