# backend/barstock/routes/system.py
"""
System health endpoint.

Reports store connectivity and the state of the local catalog mirror.
"""

import time
from flask import Blueprint, current_app, jsonify

from ..services.cache_service import get_cache
from ..services.gateway import GatewayError, get_gateway
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)


def check_store_health() -> dict:
    """
    Check store connectivity with a cheap query.

    Returns dict with status and details.
    """
    start_time = time.time()
    try:
        gateway = get_gateway()
        product_count = len(gateway.query("products", columns=["id"]))
        category_count = len(gateway.query("categories", columns=["id"]))
        elapsed_ms = (time.time() - start_time) * 1000
        return {
            "status": "healthy",
            "latency_ms": round(elapsed_ms, 2),
            "details": {
                "products": product_count,
                "categories": category_count,
            },
        }
    except GatewayError:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Store health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Store error",
        }


def check_cache_health() -> dict:
    snapshot = get_cache().load()
    if not snapshot:
        return {"status": "empty"}
    return {
        "status": "present",
        "saved_at": snapshot.get("saved_at"),
        "products": len(snapshot.get("products") or []),
    }


@system_bp.get("/api/health")
def health():
    store = check_store_health()
    overall = "healthy" if store["status"] == "healthy" else "degraded"
    return jsonify({
        "status": overall,
        "timestamp": to_utc_z(utcnow()),
        "checks": {
            "store": store,
            "cache": check_cache_health(),
        },
    }), 200 if overall == "healthy" else 503
