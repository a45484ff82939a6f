"""
GitHub Blueprint — per-project GitHub integration.

  GET    /api/github/auth/<project_id>              — OAuth authorize URL     (ADMIN)
  GET    /api/github/callback?code&state            — OAuth redirect target   (public)
  GET    /api/github/status/<project_id>            — Integration + repos     (member/owner)
  GET    /api/github/repos/<project_id>?page=N      — Remote repo listing     (ADMIN)
  POST   /api/github/repos/<project_id>             — Connect a repo          (ADMIN)
  DELETE /api/github/repos/<project_id>/<repo_id>   — Disconnect a repo       (ADMIN)
  DELETE /api/github/<project_id>                   — Remove integration      (ADMIN)
"""

from flask import Blueprint, current_app, jsonify, redirect, request

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import github_service
from bugfixer.utils.validators import validate_connect_repo

github_bp = Blueprint("github_bp", __name__, url_prefix="/api/github")


@github_bp.route("/auth/<project_id>", methods=["GET"])
@require_auth
def start_oauth(project_id):
    return jsonify({"url": github_service.start_oauth(project_id, current_user_id())})


@github_bp.route("/callback", methods=["GET"])
def oauth_callback():
    project_id = github_service.complete_oauth(request.args.get("code"), request.args.get("state"))
    frontend = current_app.config["FRONTEND_URL"].split(",")[0].strip().rstrip("/")
    return redirect(f"{frontend}/projects/{project_id}?tab=github&connected=true")


@github_bp.route("/status/<project_id>", methods=["GET"])
@require_auth
def status(project_id):
    return jsonify(github_service.get_status(project_id, current_user_id()))


@github_bp.route("/repos/<project_id>", methods=["GET"])
@require_auth
def list_repos(project_id):
    page = request.args.get("page", 1, type=int) or 1
    return jsonify(github_service.list_remote_repos(project_id, current_user_id(), max(page, 1)))


@github_bp.route("/repos/<project_id>", methods=["POST"])
@require_auth
def connect_repo(project_id):
    """
    Body: { "repoOwner", "repoName", "repoFullName",
            "isDefault"?, "autoCreateIssues"?, "labelSync"? }
    """
    fields = validate_connect_repo(json_body())
    repo = github_service.connect_repo(project_id, current_user_id(), fields)
    return jsonify({"repo": repo.to_dict()}), 201


@github_bp.route("/repos/<project_id>/<repo_id>", methods=["DELETE"])
@require_auth
def disconnect_repo(project_id, repo_id):
    github_service.disconnect_repo(project_id, current_user_id(), repo_id)
    return jsonify({"message": "Repo disconnected"})


@github_bp.route("/<project_id>", methods=["DELETE"])
@require_auth
def disconnect(project_id):
    github_service.disconnect(project_id, current_user_id())
    return jsonify({"message": "GitHub integration disconnected"})
