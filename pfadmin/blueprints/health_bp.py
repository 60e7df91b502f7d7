"""
Health check blueprint.

Endpoints:
    GET /api/v1/health/ready  simple 200 for load balancers
    GET /api/v1/health/live   database connectivity check
"""

import logging
import time

from flask import Blueprint, jsonify
from sqlalchemy.exc import SQLAlchemyError

from pfadmin.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health", __name__, url_prefix="/api/v1/health")


@health_bp.route("/ready", methods=["GET"])
def ready():
    """Simple readiness probe, always 200 if app is running."""
    return jsonify({"status": "ok"}), 200


@health_bp.route("/live", methods=["GET"])
def live():
    """Liveness check including request store connectivity."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
        database = {"status": "ok", "latency_ms": round(db_ms, 1)}
        healthy = True
    except SQLAlchemyError as exc:
        logger.error("Health check: database failed: %s", exc)
        database = {"status": "error"}
        healthy = False
    body = {"status": "ok" if healthy else "degraded", "checks": {"database": database}}
    return jsonify(body), 200 if healthy else 503
