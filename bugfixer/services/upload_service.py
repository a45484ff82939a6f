"""
Upload Service — screenshot images for bug reports.

Uploading needs WRITE on the target project (the same capability as
reporting a bug); when a bug id is given it must belong to that project.
Deleting needs WRITE on the project encoded in the image name.
"""

import logging

from flask import current_app

from bugfixer.core.exceptions import NotFoundError, ServiceUnavailableError, ValidationError
from bugfixer.integrations.image_storage import (
    ALLOWED_CONTENT_TYPES,
    MAX_IMAGE_BYTES,
    MAX_IMAGES_PER_UPLOAD,
    STORAGE_KEY,
    ImageStorage,
    ImageStorageError,
)
from bugfixer.models import db
from bugfixer.models.bug import Bug
from bugfixer.services import authorization
from bugfixer.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)

_MB = 1024 * 1024


def get_storage() -> ImageStorage | None:
    return current_app.extensions.get(STORAGE_KEY)


def _storage_or_503() -> ImageStorage:
    storage = get_storage()
    if storage is None:
        raise ServiceUnavailableError(
            "Image upload service is not configured",
            payload={"details": "UPLOAD_FOLDER is not set"},
        )
    return storage


def get_status() -> dict:
    storage = get_storage()
    return {
        "configured": storage is not None,
        "details": storage.status() if storage else "UPLOAD_FOLDER is not set",
        "limits": {
            "maxFileSize": f"{MAX_IMAGE_BYTES // _MB}MB",
            "maxFiles": MAX_IMAGES_PER_UPLOAD,
            "allowedTypes": list(ALLOWED_CONTENT_TYPES),
        },
    }


def _check_file(file) -> bytes:
    if file.mimetype not in ALLOWED_CONTENT_TYPES:
        raise ValidationError(details=[{
            "field": "image",
            "message": f"Invalid file type: {file.mimetype or 'unknown'}. "
                       f"Allowed: {', '.join(ALLOWED_CONTENT_TYPES)}",
        }])
    data = file.read()
    if len(data) > MAX_IMAGE_BYTES:
        raise ValidationError(details=[{
            "field": "image",
            "message": f"File too large. Maximum size is {MAX_IMAGE_BYTES // _MB}MB",
        }])
    return data


def upload_images(user_id: str, project_id: str, bug_id: str | None, files: list) -> list[dict]:
    """Validate every file first, then store them; returns one dict per file."""
    storage = _storage_or_503()
    if not files:
        raise ValidationError("No image file provided")
    if len(files) > MAX_IMAGES_PER_UPLOAD:
        raise ValidationError(f"Too many files. Maximum is {MAX_IMAGES_PER_UPLOAD} files per upload")

    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "bug.create")
    if bug_id is not None:
        bug = db.session.get(Bug, bug_id)
        if bug is None or bug.project_id != project.id:
            raise NotFoundError("Bug", bug_id)

    payloads = [(file, _check_file(file)) for file in files]
    return [
        storage.save(data, project_id=project.id, bug_id=bug_id,
                     filename=file.filename or "", content_type=file.mimetype)
        for file, data in payloads
    ]


def delete_image(user_id: str, url: str) -> None:
    storage = _storage_or_503()
    name = storage.name_from_url(url)
    if name is None:
        raise NotFoundError("Image")
    project = get_project_or_404(name.split("/", 1)[0])
    authorization.require_action(user_id, project, "bug.create")
    try:
        removed = storage.delete(name)
    except ImageStorageError:
        raise NotFoundError("Image")
    if not removed:
        raise NotFoundError("Image")
    logger.info("Image deleted: %s", name, extra={"project_id": project.id, "user_id": user_id})


def image_path(name: str):
    """Filesystem path of a stored image, for the public file route."""
    storage = _storage_or_503()
    try:
        path = storage.path_for(name)
    except ImageStorageError:
        raise NotFoundError("Image")
    if not path.is_file():
        raise NotFoundError("Image")
    return path
