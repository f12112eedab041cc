# backend/storefront/routes/system.py
"""
Liveness and database health endpoints.
"""

import time

from flask import Blueprint, current_app, jsonify

from ..extensions import db
from ..models import MembershipApplication, Order, Product
from ..time_utils import to_utc_z, utcnow

system_bp = Blueprint("system", __name__)


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "products": db.session.query(Product).count(),
            "orders": db.session.query(Order).count(),
            "membership_applications": db.session.query(MembershipApplication).count(),
        }
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": details,
        }
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    return jsonify({"status": "OK", "timestamp": to_utc_z(utcnow())}), 200


@system_bp.get("/api/system/health")
def system_health():
    database = check_database_health()
    status_code = 200 if database["status"] == "healthy" else 503
    return jsonify({
        "status": database["status"],
        "timestamp": to_utc_z(utcnow()),
        "storage_backend": current_app.config.get("STORAGE_BACKEND"),
        "database": database,
    }), status_code
