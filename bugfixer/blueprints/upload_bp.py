"""
Upload Blueprint — bug screenshot images.

  GET    /api/upload/status              — Storage status + limits      (public)
  POST   /api/upload/image               — form: image, projectId, bugId?   (WRITE)
  POST   /api/upload/images              — form: images[<=5], projectId, bugId?
  DELETE /api/upload/image               — JSON { "url": ... }          (WRITE)
  GET    /api/upload/files/<name>        — Serve a stored image         (public)
"""

from flask import Blueprint, jsonify, request, send_file

from bugfixer.blueprints import json_body
from bugfixer.middleware.jwt_auth import current_user_id, require_auth
from bugfixer.services import upload_service
from bugfixer.utils.validators import validate_image_delete, validate_upload_form

upload_bp = Blueprint("upload_bp", __name__, url_prefix="/api/upload")

_PUBLIC_FIELDS = ("url", "originalName", "size", "contentType")


def _public(image: dict) -> dict:
    return {k: image[k] for k in _PUBLIC_FIELDS}


@upload_bp.route("/status", methods=["GET"])
def status():
    return jsonify(upload_service.get_status())


@upload_bp.route("/image", methods=["POST"])
@require_auth
def upload_image():
    form = validate_upload_form(request.form.to_dict())
    file = request.files.get("image")
    images = upload_service.upload_images(
        current_user_id(), form["project_id"], form.get("bug_id"), [file] if file else [],
    )
    return jsonify({"message": "Image uploaded successfully", "image": _public(images[0])}), 201


@upload_bp.route("/images", methods=["POST"])
@require_auth
def upload_many():
    form = validate_upload_form(request.form.to_dict())
    files = [f for f in request.files.getlist("images") if f]
    images = upload_service.upload_images(current_user_id(), form["project_id"], form.get("bug_id"), files)
    return jsonify({
        "message": f"{len(images)} image(s) uploaded successfully",
        "images": [_public(i) for i in images],
    }), 201


@upload_bp.route("/image", methods=["DELETE"])
@require_auth
def delete_image():
    url = validate_image_delete(json_body())["url"]
    upload_service.delete_image(current_user_id(), url)
    return jsonify({"message": "Image deleted successfully"})


@upload_bp.route("/files/<path:name>", methods=["GET"])
def serve_file(name):
    response = send_file(upload_service.image_path(name), conditional=True, max_age=31536000)
    # SVG may carry script; never render it inline as a document
    response.headers["Content-Security-Policy"] = "default-src 'none'; style-src 'unsafe-inline'; sandbox"
    return response
