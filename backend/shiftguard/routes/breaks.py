# Overview: Flask API routes for breaks within a shift.

from flask import Blueprint, current_app, jsonify, request

from ..services import break_service
from ..services.errors import ShiftGuardError
from . import error_response, timestamp_field

breaks_bp = Blueprint("breaks", __name__, url_prefix="/api/breaks")


@breaks_bp.post("/start")
def start_break_route():
    data = request.get_json(silent=True) or {}
    shift_id = data.get("shift_id")

    if not shift_id:
        return jsonify({"error": "shift_id is required"}), 400

    try:
        brk = break_service.start_break(
            shift_id,
            data.get("type", "rest"),
            bool(data.get("is_required", False)),
            start_time=timestamp_field(data, "start_time"),
            is_paid=data.get("is_paid"),
            minimum_duration_seconds=data.get("minimum_duration_seconds"),
            notes=data.get("notes"),
        )
        return jsonify({"break": brk.to_dict()}), 201
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Break start failed")
        return jsonify({"error": "Internal server error"}), 500


@breaks_bp.post("/schedule")
def schedule_break_route():
    data = request.get_json(silent=True) or {}
    shift_id = data.get("shift_id")

    if not shift_id:
        return jsonify({"error": "shift_id is required"}), 400

    try:
        brk = break_service.schedule_break(
            shift_id,
            data.get("type", "meal"),
            bool(data.get("is_required", True)),
            start_time=timestamp_field(data, "start_time"),
            is_paid=data.get("is_paid"),
            minimum_duration_seconds=data.get("minimum_duration_seconds"),
            notes=data.get("notes"),
        )
        return jsonify({"break": brk.to_dict()}), 201
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Break scheduling failed")
        return jsonify({"error": "Internal server error"}), 500


@breaks_bp.post("/<int:break_id>/end")
def end_break_route(break_id: int):
    data = request.get_json(silent=True) or {}

    try:
        brk = break_service.end_break(break_id, timestamp_field(data, "end_time"))
        return jsonify({"break": brk.to_dict()})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Break end failed")
        return jsonify({"error": "Internal server error"}), 500


@breaks_bp.get("/shift/<int:shift_id>")
def list_breaks_route(shift_id: int):
    breaks = break_service.get_breaks(shift_id)
    return jsonify({
        "breaks": [b.to_dict() for b in breaks],
        "summary": break_service.summarize_breaks(breaks).to_dict(),
    })
