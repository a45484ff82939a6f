"""
JWT Service — session token generation and verification.

Session token: 7 days (configurable via JWT_EXPIRES), delivered in an
httpOnly cookie. Algorithm: HS256.

Token payload:
{
    "sub": <user_id>,
    "email": <email>,
    "type": "session",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}

The GitHub OAuth ``state`` parameter is also a short-lived HS256 token
(type "oauth_state") so it cannot be forged by the browser.
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

DEFAULT_EXPIRES = 7 * 24 * 3600
ALGORITHM = "HS256"


def _get_secret():
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def get_expires_seconds() -> int:
    return current_app.config.get("JWT_EXPIRES", DEFAULT_EXPIRES)


# ═══════════════════════════════════════════════════════════════
# Session tokens
# ═══════════════════════════════════════════════════════════════
def generate_session_token(user_id: str, email: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "sub": user_id,
        "email": email,
        "type": "session",
        "iat": now,
        "exp": now + timedelta(seconds=get_expires_seconds()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_token(token: str, expected_type: str = "session") -> dict:
    """
    Decode and verify a token.

    Raises jwt.ExpiredSignatureError / jwt.InvalidTokenError on failure.
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != expected_type:
        raise jwt.InvalidTokenError(f"Expected {expected_type} token, got {payload.get('type')}")
    return payload


# ═══════════════════════════════════════════════════════════════
# OAuth state
# ═══════════════════════════════════════════════════════════════
def generate_oauth_state(project_id: str, user_id: str) -> str:
    now = datetime.now(timezone.utc)
    payload = {
        "projectId": project_id,
        "userId": user_id,
        "type": "oauth_state",
        "iat": now,
        "exp": now + timedelta(seconds=current_app.config.get("GITHUB_STATE_MAX_AGE", 600)),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_oauth_state(state: str) -> dict:
    return decode_token(state, expected_type="oauth_state")
