"""
Probes for the load balancer and uptime monitor.

    GET /api/v1/health/ready  — process is up, no I/O
    GET /api/v1/health/live   — database answers; 503 otherwise
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from goldenbridge.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"status": "ok"}), 200


def _check_database() -> dict:
    started = time.perf_counter()
    try:
        db.session.execute(db.text("SELECT 1"))
    except SQLAlchemyError as exc:
        db.session.rollback()
        logger.error("Health check: database unreachable: %s", exc)
        return {"status": "error", "detail": exc.__class__.__name__}
    return {"status": "ok", "latency_ms": round((time.perf_counter() - started) * 1000, 1)}


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {
        "database": _check_database(),
        "app": {"name": "Golden Bridge Women", "testing": current_app.testing},
    }
    healthy = checks["database"]["status"] == "ok"
    return jsonify({"status": "healthy" if healthy else "degraded", "checks": checks}), (
        200 if healthy else 503
    )
