"""
Auth Blueprint — session authentication endpoints.

  POST   /api/auth/signup    — Create account → session cookie
  POST   /api/auth/login     — Email + password → session cookie
  POST   /api/auth/logout    — Clear session cookie
  GET    /api/auth/me        — Current user profile
  PUT    /api/auth/profile   — Update name / avatar
  DELETE /api/auth/me        — Delete account (owned projects cascade)
"""

from flask import Blueprint, jsonify, make_response

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import (
    clear_auth_cookie,
    current_user_id,
    require_auth,
    set_auth_cookie,
)
from bugfixer.services import user_service
from bugfixer.services.jwt_service import generate_session_token
from bugfixer.utils.validators import validate_login, validate_profile_update, validate_signup

auth_bp = Blueprint("auth_bp", __name__, url_prefix="/api/auth")


def _session_response(user, status=200, **extra):
    response = make_response(jsonify({"user": user.to_dict(), **extra}), status)
    return set_auth_cookie(response, generate_session_token(user.id, user.email))


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/signup
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/signup", methods=["POST"])
def signup():
    """
    Create an account. Pending invitations for the email are accepted.

    Body: { "email": "...", "password": "...", "name": "..." }
    """
    data = validate_signup(json_body())
    user, accepted = user_service.signup(data["email"], data["password"], data["name"])
    return _session_response(user, 201, invitationsAccepted=accepted)


# ═══════════════════════════════════════════════════════════════
# POST /api/auth/login
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/login", methods=["POST"])
def login():
    data = validate_login(json_body())
    user = user_service.authenticate(data["email"], data["password"])
    return _session_response(user)


@auth_bp.route("/logout", methods=["POST"])
def logout():
    response = make_response(jsonify({"message": "Logged out successfully"}))
    return clear_auth_cookie(response)


# ═══════════════════════════════════════════════════════════════
# Current user
# ═══════════════════════════════════════════════════════════════
@auth_bp.route("/me", methods=["GET"])
@require_auth
def me():
    user = user_service.get_user_or_404(current_user_id())
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/profile", methods=["PUT"])
@require_auth
def update_profile():
    """Body: { "name"?: "...", "avatarUrl"?: "https://..." | null }"""
    fields = validate_profile_update(json_body())
    user = user_service.update_profile(current_user_id(), fields)
    return jsonify({"user": user.to_dict()})


@auth_bp.route("/me", methods=["DELETE"])
@require_auth
def delete_account():
    user_service.delete_user(current_user_id())
    response = make_response(jsonify({"message": "Account deleted successfully"}))
    return clear_auth_cookie(response)
