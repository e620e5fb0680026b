"""
Request duration header and access log.

Every response gets ``X-Request-Duration-Ms``. Requests over
``SLOW_REQUEST_MS`` log a warning and 5xx responses log an error; the rest
go out at DEBUG. Health probes are timed but never logged.
"""

import logging
import time

from flask import g, request

logger = logging.getLogger(__name__)

SLOW_REQUEST_MS = 1000
UNLOGGED_PATHS = frozenset({"/api/v1/health/ready", "/api/v1/health/live"})


def init_request_timing(app):
    @app.before_request
    def _start_timer():
        g.request_started = time.perf_counter()

    @app.after_request
    def _log_request(response):
        started = g.pop("request_started", None)
        if started is None:
            return response
        elapsed = (time.perf_counter() - started) * 1000
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"
        if request.path in UNLOGGED_PATHS:
            return response

        if elapsed > SLOW_REQUEST_MS:
            level = logging.WARNING
        elif response.status_code >= 500:
            level = logging.ERROR
        else:
            level = logging.DEBUG
        logger.log(
            level, "%s %s -> %d", request.method, request.path, response.status_code,
            extra={
                "method": request.method,
                "path": request.path,
                "status": response.status_code,
                "duration_ms": elapsed,
                "remote_addr": request.remote_addr,
                "user_id": getattr(g, "jwt_user_id", None),
                "program_id": (request.view_args or {}).get("program_id"),
            },
        )
        return response
