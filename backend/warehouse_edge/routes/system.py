# backend/warehouse_edge/routes/system.py
"""
System health endpoint.

Reports database reachability and row counts for the core tables so a
deployment can be smoke-tested without credentials.
"""

import time
from flask import Blueprint, current_app
from ..extensions import db
from ..models import MaterialRequest, Product, User, Warehouse
from warehouse_edge.time_utils import utcnow

system_bp = Blueprint("system", __name__, url_prefix="/api")


def check_database_health() -> dict:
    """
    Check database connectivity and basic operations.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        details = {
            "warehouses": db.session.query(Warehouse).count(),
            "products": db.session.query(Product).count(),
            "users": db.session.query(User).count(),
            "material_requests": db.session.query(MaterialRequest).count(),
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
        db.session.rollback()
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error"
        }


@system_bp.get("/health")
def health():
    """
    Returns:
    - 200: database healthy
    - 503: database unreachable
    """
    database_health = check_database_health()
    http_status = 200 if database_health["status"] == "healthy" else 503

    response = {
        "status": database_health["status"],
        "timestamp": utcnow().isoformat() + "Z",
        "checks": {
            "database": database_health,
        }
    }
    return response, http_status
