"""
Widget Blueprint — embeddable bug-report widget.

Public (token in path, no session):
  GET  /api/widget/embed.js?token=...     — Loader script
  GET  /api/widget/<token>/config         — Project info for the iframe
  POST /api/widget/<token>/bugs           — Anonymous bug report

Settings (ADMIN):
  GET    /api/widget/settings/<slug>
  POST   /api/widget/settings/<slug>/generate
  PUT    /api/widget/settings/<slug>
  DELETE /api/widget/settings/<slug>
"""

from flask import Blueprint, Response, jsonify, request

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import widget_service
from bugfixer.utils.validators import validate_widget_bug, validate_widget_settings

widget_bp = Blueprint("widget_bp", __name__, url_prefix="/api/widget")

_JS = "application/javascript"


def _origin_header() -> str | None:
    return request.headers.get("Origin") or request.headers.get("Referer")


# ═══════════════════════════════════════════════════════════════
# Public
# ═══════════════════════════════════════════════════════════════
@widget_bp.route("/embed.js", methods=["GET"])
def embed_js():
    token = request.args.get("token", "").strip()
    if not token:
        return Response(widget_service.MISSING_TOKEN_SCRIPT, status=400, mimetype=_JS)
    return Response(widget_service.embed_script(token), mimetype=_JS)


@widget_bp.route("/<token>/config", methods=["GET"])
def public_config(token):
    return jsonify(widget_service.get_public_config(token, _origin_header()))


@widget_bp.route("/<token>/bugs", methods=["POST"])
def submit_bug(token):
    fields = validate_widget_bug(json_body())
    bug = widget_service.create_bug_via_widget(token, fields, _origin_header())
    return jsonify({
        "bug": {
            "id": bug.id,
            "title": bug.title,
            "priority": bug.priority,
            "status": bug.status,
            "source": bug.source,
            "reporterId": bug.reporter_id,
        },
        "message": "Bug reported successfully!",
    }), 201


# ═══════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════
@widget_bp.route("/settings/<slug>", methods=["GET"])
@require_auth
def get_settings(slug):
    return jsonify({"widget": widget_service.get_settings(slug, current_user_id())})


@widget_bp.route("/settings/<slug>/generate", methods=["POST"])
@require_auth
def generate_token(slug):
    return jsonify({"widget": widget_service.generate(slug, current_user_id())})


@widget_bp.route("/settings/<slug>", methods=["PUT"])
@require_auth
def update_settings(slug):
    """Body: { "allowedOrigins"?: ["https://shop.example"], "enabled"?: true }"""
    fields = validate_widget_settings(json_body())
    return jsonify({"widget": widget_service.update_settings(slug, current_user_id(), fields)})


@widget_bp.route("/settings/<slug>", methods=["DELETE"])
@require_auth
def delete_token(slug):
    widget_service.delete(slug, current_user_id())
    return jsonify({"message": "Widget token deleted successfully"})
