"""
Agent Config Blueprint.

  GET /api/agent-config/<project_id>  — Stored config or defaults  (member/owner)
  PUT /api/agent-config/<project_id>  — Upsert                     (ADMIN)
"""

from flask import Blueprint, jsonify

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import agent_config_service
from bugfixer.utils.validators import validate_agent_config

agent_config_bp = Blueprint("agent_config_bp", __name__, url_prefix="/api/agent-config")


@agent_config_bp.route("/<project_id>", methods=["GET"])
@require_auth
def get_config(project_id):
    return jsonify({"config": agent_config_service.get_config(project_id, current_user_id())})


@agent_config_bp.route("/<project_id>", methods=["PUT"])
@require_auth
def upsert_config(project_id):
    fields = validate_agent_config(json_body())
    return jsonify({"config": agent_config_service.upsert_config(project_id, current_user_id(), fields)})
