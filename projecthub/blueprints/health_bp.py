"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  : 200 whenever the app is up (load balancer check)
    GET /api/v1/health/live   : database round-trip with latency
"""

import logging
import time

from flask import Blueprint, current_app, jsonify
from sqlalchemy.exc import SQLAlchemyError

from projecthub.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    return jsonify({"success": True, "status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    checks = {}
    overall = True

    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        checks["database"] = {"status": "ok", "latency_ms": round((time.perf_counter() - t0) * 1000, 1)}
    except SQLAlchemyError as exc:
        checks["database"] = {"status": "error"}
        overall = False
        logger.error("Health check: database failed: %s", exc)

    checks["app"] = {"name": "ProjectHub", "testing": current_app.testing}
    status = "healthy" if overall else "degraded"
    return jsonify({"success": overall, "status": status, "checks": checks}), 200 if overall else 503
