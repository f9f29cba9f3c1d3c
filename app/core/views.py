"""
Core views providing infrastructure endpoints.

Only the health check lives here; business endpoints belong to their apps.
"""

import logging

from django.core.cache import cache
from django.db import DatabaseError, connection
from django.http import JsonResponse

logger = logging.getLogger(__name__)


def health_check(request):
    """
    Health check endpoint for container probes and load balancers.

    The database is required: webhook processing and every balance
    change need it. The cache only backs API throttling, so a cache
    outage is reported but does not fail the probe.

    Returns:
        JsonResponse with status and component health.

    HTTP Status Codes:
        200: Database reachable
        503: Database unreachable

    Example Response:
        {
            "status": "healthy",
            "database": "connected",
            "cache": "connected"
        }
    """
    health_status = {
        "status": "healthy",
        "database": "unknown",
        "cache": "unknown",
    }
    is_healthy = True

    try:
        with connection.cursor() as cursor:
            cursor.execute("SELECT 1")
            cursor.fetchone()
        health_status["database"] = "connected"
    except DatabaseError:
        logger.error("Health check: database unreachable", exc_info=True)
        health_status["database"] = "disconnected"
        health_status["status"] = "unhealthy"
        is_healthy = False

    try:
        cache.set("health_check", "ok", timeout=1)
        health_status["cache"] = (
            "connected" if cache.get("health_check") == "ok" else "disconnected"
        )
    except Exception:
        logger.warning("Health check: cache unreachable", exc_info=True)
        health_status["cache"] = "disconnected"

    return JsonResponse(health_status, status=200 if is_healthy else 503)
