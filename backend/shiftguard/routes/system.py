# backend/shiftguard/routes/system.py
"""
System health endpoint.

Reports database connectivity plus counts of shifts that need attention.
"""

import time

from flask import Blueprint, current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Resolution, Shift, ShiftValidation
from ..models.timekeeping import SHIFT_ACTIVE, SHIFT_PENDING_REVIEW
from ..time_utils import now_ms, to_utc_z

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    start_time = time.time()
    try:
        active_shifts = db.session.query(Shift).filter_by(status=SHIFT_ACTIVE).count()
        pending_review = db.session.query(Shift).filter_by(status=SHIFT_PENDING_REVIEW).count()
        needs_review = (
            db.session.query(ShiftValidation)
            .filter(ShiftValidation.resolution == Resolution.NEEDS_REVIEW)
            .count()
        )
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "active_shifts": active_shifts,
                "shifts_pending_review": pending_review,
                "validations_needing_review": needs_review,
            },
        }
    except SQLAlchemyError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database reachable
    - 503: database unavailable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503
    response = {
        "status": database_health["status"],
        "timestamp": to_utc_z(now_ms()),
        "checks": {"database": database_health},
    }
    return response, http_status
