# Overview: Flask API routes for shift validation runs and the resolution workflow.

from flask import Blueprint, current_app, jsonify, request

from ..services import validation_service
from ..services.errors import ShiftGuardError
from . import error_response

validation_bp = Blueprint("validation", __name__, url_prefix="/api/validation")


@validation_bp.post("/<int:shift_id>/run")
def run_validation_route(shift_id: int):
    data = request.get_json(silent=True) or {}

    try:
        validation = validation_service.run_validation(
            shift_id,
            validated_by=data.get("validated_by"),
            method=data.get("method", "manual"),
        )
        return jsonify({"validation": validation.to_dict(include_issues=True)})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Validation run failed")
        return jsonify({"error": "Internal server error"}), 500


@validation_bp.get("/shift/<int:shift_id>")
def get_validation_route(shift_id: int):
    validation = validation_service.get_validation(shift_id)
    if not validation:
        return jsonify({"error": "Validation not found"}), 404
    return jsonify({"validation": validation.to_dict(include_issues=True)})


@validation_bp.get("/<int:validation_id>/issues")
def list_issues_route(validation_id: int):
    unresolved_only = request.args.get("unresolved_only", "false").lower() in {"1", "true", "yes"}
    issues = validation_service.list_issues(validation_id, unresolved_only=unresolved_only)
    return jsonify({"issues": [i.to_dict() for i in issues], "count": len(issues)})


@validation_bp.post("/issues/<int:issue_id>/resolve")
def resolve_issue_route(issue_id: int):
    data = request.get_json(silent=True) or {}
    resolved_by = data.get("resolved_by")

    if not resolved_by:
        return jsonify({"error": "resolved_by is required"}), 400

    try:
        issue = validation_service.resolve_issue(issue_id, resolved_by, data.get("notes"))
        return jsonify({
            "issue": issue.to_dict(),
            "validation": issue.validation.to_dict(),
        })
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Issue resolution failed")
        return jsonify({"error": "Internal server error"}), 500


@validation_bp.post("/<int:validation_id>/resolve")
def resolve_validation_route(validation_id: int):
    data = request.get_json(silent=True) or {}
    resolved_by = data.get("resolved_by")
    resolution = data.get("resolution")

    if not resolved_by:
        return jsonify({"error": "resolved_by is required"}), 400
    if not resolution:
        return jsonify({"error": "resolution is required"}), 400

    try:
        validation = validation_service.resolve_validation(
            validation_id, resolved_by, resolution, data.get("notes")
        )
        return jsonify({"validation": validation.to_dict(include_issues=True)})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Validation resolution failed")
        return jsonify({"error": "Internal server error"}), 500


@validation_bp.post("/<int:validation_id>/reject")
def reject_validation_route(validation_id: int):
    data = request.get_json(silent=True) or {}
    resolved_by = data.get("resolved_by")

    if not resolved_by:
        return jsonify({"error": "resolved_by is required"}), 400

    try:
        validation = validation_service.reject_validation(validation_id, resolved_by, data.get("notes"))
        return jsonify({"validation": validation.to_dict(include_issues=True)})
    except ShiftGuardError as e:
        return error_response(e)
    except Exception:
        current_app.logger.exception("Validation rejection failed")
        return jsonify({"error": "Internal server error"}), 500
