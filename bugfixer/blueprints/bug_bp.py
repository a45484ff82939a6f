"""
Bug Blueprint.

  GET    /api/bugs/project/<project_id>  — List, newest first     (READ)
  GET    /api/bugs/<id>                  — Detail                 (READ)
  POST   /api/bugs                       — Create                 (WRITE)
  PUT    /api/bugs/<id>                  — Edit                   (WRITE or reporter)
  PATCH  /api/bugs/<id>/status           — Change status          (WRITE)
  DELETE /api/bugs/<id>                  — Delete                 (ADMIN or reporter)
"""

from flask import Blueprint, jsonify

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import bug_service
from bugfixer.utils.validators import validate_bug_create, validate_bug_status, validate_bug_update

bug_bp = Blueprint("bug_bp", __name__, url_prefix="/api/bugs")


@bug_bp.route("/project/<project_id>", methods=["GET"])
def list_bugs(project_id):
    bugs = bug_service.list_bugs(project_id, current_user_id())
    return jsonify({"bugs": [b.to_dict() for b in bugs]})


@bug_bp.route("/<bug_id>", methods=["GET"])
def get_bug(bug_id):
    bug = bug_service.get_bug(bug_id, current_user_id())
    return jsonify({"bug": bug.to_dict(include_project=True)})


@bug_bp.route("", methods=["POST"])
@require_auth
def create_bug():
    """
    Body: { "title": "...", "projectId": "<uuid>", "description"?, "priority"?,
            "source"?, "reporterEmail"?, "screenshots"?: [url, ...] }
    """
    fields = validate_bug_create(json_body())
    bug = bug_service.create_bug(current_user_id(), fields)
    return jsonify({"bug": bug.to_dict()}), 201


@bug_bp.route("/<bug_id>", methods=["PUT"])
@require_auth
def update_bug(bug_id):
    fields = validate_bug_update(json_body())
    bug = bug_service.update_bug(bug_id, current_user_id(), fields)
    return jsonify({"bug": bug.to_dict()})


@bug_bp.route("/<bug_id>/status", methods=["PATCH"])
@require_auth
def update_status(bug_id):
    data = validate_bug_status(json_body())
    bug = bug_service.change_status(bug_id, current_user_id(), data["status"])
    return jsonify({"bug": bug.to_dict()})


@bug_bp.route("/<bug_id>", methods=["DELETE"])
@require_auth
def delete_bug(bug_id):
    bug_service.delete_bug(bug_id, current_user_id())
    return jsonify({"message": "Bug deleted successfully"})
