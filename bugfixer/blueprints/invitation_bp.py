"""
Invitation Blueprint.

  GET  /api/invitations                 — My live invitations          (auth)
  GET  /api/invitations/<token>         — Preview before accepting     (public)
  POST /api/invitations/<token>/accept  — Accept as the invited email  (auth)
"""

from flask import Blueprint, g, jsonify

from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import invitation_service

invitation_bp = Blueprint("invitation_bp", __name__, url_prefix="/api/invitations")


@invitation_bp.route("", methods=["GET"])
@require_auth
def my_invitations():
    invitations = invitation_service.list_for_email(g.current_user["email"])
    return jsonify({"invitations": [invitation_service.to_preview_dict(i) for i in invitations]})


@invitation_bp.route("/<token>", methods=["GET"])
def preview(token):
    invitation = invitation_service.get_live_invitation_by_token(token)
    return jsonify({"invitation": invitation_service.to_preview_dict(invitation)})


@invitation_bp.route("/<token>/accept", methods=["POST"])
@require_auth
def accept(token):
    result = invitation_service.accept_by_token(token, current_user_id(), g.current_user["email"])
    if result["alreadyMember"]:
        return jsonify({
            "error": "You are already a member of this project",
            "alreadyMember": True,
            "projectSlug": result["projectSlug"],
        }), 400
    return jsonify({
        "message": "Invitation accepted successfully",
        "projectId": result["projectId"],
        "projectSlug": result["projectSlug"],
    })
