"""
JWT Auth Middleware — resolves the acting user for every API request.

Token sources, in order:
  1. httpOnly cookie (AUTH_COOKIE_NAME, default "token")
  2. Authorization: Bearer <token>

On success ``g.current_user`` is an identity dict {"id", "email", "name"}
served from the identity cache (TTL, capacity bounded). Missing or bad
tokens leave ``g.current_user = None`` and record ``g.auth_error``; routes
that need a user wrap themselves in ``@require_auth``.
"""

import functools
import logging

import jwt as pyjwt
from flask import current_app, g, jsonify, request

from bugfixer.models import db
from bugfixer.models.user import User
from bugfixer.services.cache_service import get_identity_cache
from bugfixer.services.jwt_service import decode_token

logger = logging.getLogger(__name__)

# Public routes that never need identity resolution
JWT_SKIP_PREFIXES = (
    "/api/health",
    "/api/widget/embed.js",
    "/api/upload/files/",
)


def _token_from_request() -> str | None:
    token = request.cookies.get(current_app.config.get("AUTH_COOKIE_NAME", "token"))
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith("Bearer "):
        return auth_header[7:]
    return None


def load_identity(user_id: str) -> dict | None:
    """Return the cached identity for a user id, hitting the DB on a miss."""
    cache = get_identity_cache()
    identity = cache.get(user_id)
    if identity is not None:
        return identity
    user = db.session.get(User, user_id)
    if user is None:
        return None
    identity = {"id": user.id, "email": user.email, "name": user.name}
    cache.set(user_id, identity)
    return identity


def init_jwt_middleware(app):
    """Register the identity-resolving before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.current_user = None
        g.auth_error = None

        path = request.path
        if not path.startswith("/api/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        token = _token_from_request()
        if not token:
            return

        try:
            payload = decode_token(token)
        except pyjwt.ExpiredSignatureError:
            g.auth_error = "Token expired"
            return
        except pyjwt.InvalidTokenError:
            g.auth_error = "Invalid token"
            return

        identity = load_identity(payload.get("sub"))
        if identity is None:
            g.auth_error = "User not found"
            return
        g.current_user = identity


def require_auth(f):
    """
    Decorator: require an authenticated user.

    Returns 401 with the token problem ("Token expired", "Invalid token",
    "User not found") or "Authentication required" when no token was sent.
    """
    @functools.wraps(f)
    def decorated(*args, **kwargs):
        if getattr(g, "current_user", None) is None:
            message = getattr(g, "auth_error", None) or "Authentication required"
            return jsonify({"error": message}), 401
        return f(*args, **kwargs)

    return decorated


def current_user_id() -> str | None:
    user = getattr(g, "current_user", None)
    return user["id"] if user else None


def set_auth_cookie(response, token: str):
    cfg = current_app.config
    secure = cfg.get("AUTH_COOKIE_SECURE", False)
    response.set_cookie(
        cfg.get("AUTH_COOKIE_NAME", "token"),
        token,
        httponly=True,
        secure=secure,
        samesite="Strict" if secure else "Lax",
        max_age=cfg.get("JWT_EXPIRES"),
        path="/",
    )
    return response


def clear_auth_cookie(response):
    response.delete_cookie(current_app.config.get("AUTH_COOKIE_NAME", "token"), path="/")
    return response
