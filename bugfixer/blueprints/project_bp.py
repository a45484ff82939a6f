"""
Project Blueprint.

  GET    /api/projects           — Projects I own or belong to      (auth)
  GET    /api/projects/public    — Public projects                  (anonymous ok)
  GET    /api/projects/<slug>    — Project detail + userRole        (READ)
  POST   /api/projects           — Create                           (auth)
  PUT    /api/projects/<id>      — Update                           (OWNER)
  DELETE /api/projects/<id>      — Delete with cascade              (OWNER)
"""

from flask import Blueprint, jsonify

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import project_service
from bugfixer.utils.validators import validate_project_create, validate_project_update

project_bp = Blueprint("project_bp", __name__, url_prefix="/api/projects")


@project_bp.route("", methods=["GET"])
@require_auth
def my_projects():
    return jsonify({"projects": project_service.list_for_user(current_user_id())})


@project_bp.route("/public", methods=["GET"])
def public_projects():
    return jsonify({"projects": project_service.list_public()})


@project_bp.route("/<slug>", methods=["GET"])
def get_project(slug):
    return jsonify({"project": project_service.get_for_viewer(slug, current_user_id())})


@project_bp.route("", methods=["POST"])
@require_auth
def create_project():
    """Body: { "name": "...", "description"?: "...", "isPublic"?: false }"""
    data = validate_project_create(json_body())
    project = project_service.create_project(
        current_user_id(), data["name"], data.get("description"), data["is_public"],
    )
    payload = project.to_dict()
    payload.update(bugCount=0, openBugCount=0)
    return jsonify({"project": payload}), 201


@project_bp.route("/<project_id>", methods=["PUT"])
@require_auth
def update_project(project_id):
    fields = validate_project_update(json_body())
    project = project_service.update_project(project_id, current_user_id(), fields)
    return jsonify({"project": project.to_dict()})


@project_bp.route("/<project_id>", methods=["DELETE"])
@require_auth
def delete_project(project_id):
    project_service.delete_project(project_id, current_user_id())
    return jsonify({"message": "Project deleted successfully"})
