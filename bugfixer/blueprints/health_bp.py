"""
Health check blueprint.

Endpoints:
    GET /health, /api/health       — liveness for load balancers
    GET /api/health/ready          — readiness, includes a DB round trip
"""

import logging
import time
from datetime import datetime, timezone

from flask import Blueprint, jsonify

from bugfixer.models import db

logger = logging.getLogger(__name__)

health_bp = Blueprint("health_bp", __name__)


@health_bp.route("/health", methods=["GET"])
@health_bp.route("/api/health", methods=["GET"])
def health():
    return jsonify({"status": "ok", "timestamp": datetime.now(timezone.utc).isoformat()}), 200


@health_bp.route("/api/health/ready", methods=["GET"])
def ready():
    """Readiness check with a database round trip."""
    try:
        t0 = time.perf_counter()
        db.session.execute(db.text("SELECT 1"))
        db_ms = (time.perf_counter() - t0) * 1000
    except Exception as exc:
        logger.error("Health check — database failed: %s", exc)
        return jsonify({"status": "error", "database": {"status": "error"}}), 503
    return jsonify({"status": "ok", "database": {"status": "ok", "latency_ms": round(db_ms, 1)}}), 200
