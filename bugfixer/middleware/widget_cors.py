"""
CORS for the public widget endpoints.

The dashboard's own origins are handled by Flask-CORS. Pages that embed the
widget live on arbitrary customer domains, so for /api/widget/* the origin
is echoed back when any enabled widget allows it (WidgetOriginCache). This
only governs what browsers may read; token and per-widget origin checks in
widget_service still decide every request.
"""

from flask import request

from bugfixer.services.cache_service import get_widget_origin_cache
from bugfixer.services.widget_service import origin_of

WIDGET_PREFIX = "/api/widget/"


def init_widget_cors(app):
    """Register the after_request hook adding widget CORS headers."""

    @app.after_request
    def _widget_cors(response):
        if not request.path.startswith(WIDGET_PREFIX):
            return response
        if "Access-Control-Allow-Origin" in response.headers:
            return response

        origin = origin_of(request.headers.get("Origin"))
        if origin and get_widget_origin_cache().is_allowed(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Methods"] = "GET, POST, OPTIONS"
            response.headers["Access-Control-Allow-Headers"] = "Content-Type"
            response.vary.add("Origin")
        return response
