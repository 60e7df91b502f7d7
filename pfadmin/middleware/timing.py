"""
Request timing middleware.

Times every API call and writes one access-log line per request, tagged with
the provident request and acting user when the route carries them.
Adds X-Request-Duration-Ms and X-Request-ID headers to all responses.
"""

import logging
import time
import uuid

from flask import Flask, g, request

from pfadmin.utils.helpers import parse_int

logger = logging.getLogger(__name__)

# Probe endpoints are polled constantly; keep them out of the access log
_SKIP_LOG = frozenset({"/api/v1/health/ready", "/api/v1/health/live"})

# Slow request threshold (ms)
SLOW_THRESHOLD_MS = 1000


def _lifecycle_scope() -> tuple[int | None, int | None]:
    """Return (entity_id, actor_id) for the current call, None where absent."""
    entity_id = (request.view_args or {}).get("request_id")
    source = request.args if request.method == "GET" else (request.get_json(silent=True) or {})
    try:
        actor_id = parse_int(source.get("actor_id"))
    except ValueError:
        actor_id = None
    return entity_id, actor_id


def init_request_timing(app: Flask):
    """Register before/after hooks for request timing."""

    @app.before_request
    def _start_timer():
        g.request_start = time.perf_counter()
        g.request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:12]

    @app.after_request
    def _log_request(response):
        start = getattr(g, "request_start", None)
        if start is None:
            return response

        duration_ms = (time.perf_counter() - start) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{duration_ms:.1f}"
        response.headers["X-Request-ID"] = g.request_id

        if request.path in _SKIP_LOG:
            return response

        entity_id, actor_id = _lifecycle_scope()
        extra = {
            "method": request.method,
            "path": request.path,
            "status": response.status_code,
            "duration_ms": duration_ms,
            "remote_addr": request.remote_addr,
            "entity_id": entity_id,
            "actor_id": actor_id,
        }
        line = "%s %s %d (%.0fms)"
        args = (request.method, request.path, response.status_code, duration_ms)
        if response.status_code >= 500:
            logger.error("Server error: " + line, *args, extra=extra)
        elif duration_ms > SLOW_THRESHOLD_MS:
            logger.warning("Slow request: " + line, *args, extra=extra)
        elif response.status_code in (403, 409):
            # Denials and lost races are routine but worth seeing in production
            logger.info("Request refused: " + line, *args, extra=extra)
        else:
            logger.debug("Request: " + line, *args, extra=extra)

        return response
