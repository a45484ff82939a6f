"""
Member Blueprint — memberships and access requests.

  GET    /api/members/<project_id>                       (READ)
  POST   /api/members/<project_id>                       (ADMIN)  add or invite
  PUT    /api/members/<project_id>/<user_id>             (OWNER)  change role
  DELETE /api/members/<project_id>/<user_id>             (OWNER or self)
  POST   /api/members/<project_id>/request               (auth)   request access
  GET    /api/members/<project_id>/requests              (ADMIN, else empty list)
  POST   /api/members/requests/<request_id>/approve      (OWNER)
  POST   /api/members/requests/<request_id>/reject       (OWNER)
"""

from flask import Blueprint, jsonify

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import access_request_service, member_service
from bugfixer.utils.validators import (
    validate_access_request,
    validate_add_member,
    validate_member_role,
)

member_bp = Blueprint("member_bp", __name__, url_prefix="/api/members")


# ═══════════════════════════════════════════════════════════════
# Access requests (registered first: "requests" is not a project id)
# ═══════════════════════════════════════════════════════════════
@member_bp.route("/requests/<request_id>/approve", methods=["POST"])
@require_auth
def approve_request(request_id):
    access_request_service.approve_request(request_id, current_user_id())
    return jsonify({"message": "Access request approved"})


@member_bp.route("/requests/<request_id>/reject", methods=["POST"])
@require_auth
def reject_request(request_id):
    access_request_service.reject_request(request_id, current_user_id())
    return jsonify({"message": "Access request rejected"})


@member_bp.route("/<project_id>/request", methods=["POST"])
@require_auth
def request_access(project_id):
    data = validate_access_request(json_body() or {})
    access_request = access_request_service.create_request(
        project_id, current_user_id(), data.get("message"),
    )
    return jsonify({"accessRequest": access_request.to_dict()}), 201


@member_bp.route("/<project_id>/requests", methods=["GET"])
@require_auth
def list_requests(project_id):
    requests_ = access_request_service.list_requests(project_id, current_user_id())
    return jsonify({"accessRequests": [r.to_dict() for r in requests_]})


# ═══════════════════════════════════════════════════════════════
# Members
# ═══════════════════════════════════════════════════════════════
@member_bp.route("/<project_id>", methods=["GET"])
def list_members(project_id):
    return jsonify(member_service.list_members(project_id, current_user_id()))


@member_bp.route("/<project_id>", methods=["POST"])
@require_auth
def add_member(project_id):
    """Body: { "email": "...", "role"?: "VIEWER" | "MEMBER" | "ADMIN" }"""
    data = validate_add_member(json_body())
    result = member_service.add_member(project_id, current_user_id(), data["email"], data["role"])
    return jsonify(result), 201


@member_bp.route("/<project_id>/<member_user_id>", methods=["PUT"])
@require_auth
def change_role(project_id, member_user_id):
    data = validate_member_role(json_body())
    member_service.change_role(project_id, current_user_id(), member_user_id, data["role"])
    return jsonify({"message": "Member role updated successfully"})


@member_bp.route("/<project_id>/<member_user_id>", methods=["DELETE"])
@require_auth
def remove_member(project_id, member_user_id):
    member_service.remove_member(project_id, current_user_id(), member_user_id)
    return jsonify({"message": "Member removed successfully"})
