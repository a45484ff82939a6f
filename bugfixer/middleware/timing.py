"""
Access log + request correlation.

Every request gets a ``g.request_id``: the caller's X-Request-ID when it is a
short token, otherwise a fresh one. After the view runs, one access-log line
is written with the route's project/bug ids (when the URL carries them) and
the response is stamped with X-Request-ID and X-Request-Duration-Ms.

Log level per line:
    5xx                          ERROR
    slower than SLOW_REQUEST_MS  WARNING
    4xx                          INFO
    everything else              DEBUG
"""

import logging
import re
import time
import uuid

from flask import Flask, g, request

logger = logging.getLogger(__name__)

# Polled by load balancers and embedding pages
_QUIET_PATHS = frozenset({"/api/health", "/api/health/ready", "/api/widget/embed.js"})

_CLIENT_REQUEST_ID = re.compile(r"^[A-Za-z0-9._-]{1,64}$")


def _request_id() -> str:
    supplied = request.headers.get("X-Request-ID", "")
    if _CLIENT_REQUEST_ID.match(supplied):
        return supplied
    return uuid.uuid4().hex[:12]


def _level_for(status: int, duration_ms: float, slow_ms: int) -> int:
    if status >= 500:
        return logging.ERROR
    if duration_ms > slow_ms:
        return logging.WARNING
    if status >= 400:
        return logging.INFO
    return logging.DEBUG


def _route_ids() -> dict:
    args = request.view_args or {}
    ids = {}
    if "project_id" in args:
        ids["project_id"] = args["project_id"]
    if "bug_id" in args:
        ids["bug_id"] = args["bug_id"]
    return ids


def init_request_timing(app: Flask):
    """Register the correlation-id and access-log hooks."""
    slow_ms = app.config.get("SLOW_REQUEST_MS", 1000)

    @app.before_request
    def _begin():
        g.request_start = time.perf_counter()
        g.request_id = _request_id()

    @app.after_request
    def _finish(response):
        start = g.get("request_start")
        if start is None:
            return response

        elapsed = (time.perf_counter() - start) * 1000
        response.headers["X-Request-ID"] = g.request_id
        response.headers["X-Request-Duration-Ms"] = f"{elapsed:.1f}"

        if request.path in _QUIET_PATHS and response.status_code < 500:
            return response

        level = _level_for(response.status_code, elapsed, slow_ms)
        if logger.isEnabledFor(level):
            logger.log(
                level, "%s %s -> %d",
                request.method, request.path, response.status_code,
                extra={
                    "method": request.method,
                    "path": request.path,
                    "status": response.status_code,
                    "duration_ms": round(elapsed, 1),
                    "remote_addr": request.remote_addr,
                    **_route_ids(),
                },
            )
        return response
