"""
Response hardening headers.

Baseline on every response: nosniff, no framing, a strict referrer policy
and no Server banner. HSTS is added once cookies are marked Secure (i.e. the
API is behind TLS).

Two route families differ from the baseline:
    /api/auth/*              Cache-Control: no-store (session cookies, profile)
    /api/widget/embed.js     script served to third-party pages; gets a
                             short public cache and CORP cross-origin

There is no Content-Security-Policy: the API returns JSON and one script.
"""

from flask import request

_BASELINE = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
}

_HSTS = "max-age=31536000; includeSubDomains"

EMBED_SCRIPT_PATH = "/api/widget/embed.js"


def init_security_headers(app):
    """Register the after_request hook that applies the header policy."""
    use_hsts = bool(app.config.get("AUTH_COOKIE_SECURE"))

    @app.after_request
    def _harden(response):
        for name, value in _BASELINE.items():
            response.headers.setdefault(name, value)
        if use_hsts:
            response.headers.setdefault("Strict-Transport-Security", _HSTS)

        path = request.path
        if path.startswith("/api/auth/"):
            response.headers["Cache-Control"] = "no-store"
        elif path == EMBED_SCRIPT_PATH and response.status_code == 200:
            response.headers.setdefault("Cache-Control", "public, max-age=300")
            response.headers["Cross-Origin-Resource-Policy"] = "cross-origin"

        response.headers.pop("Server", None)
        return response
