"""
Image Storage — screenshot files referenced by ``Bug.screenshots``.

Files live under UPLOAD_FOLDER, laid out as

    <project_id>/<bug_id or "pending">/<unix_ms>_<sanitised name>

and are served back by GET /api/upload/files/<name>, so the URL returned
from a save is what clients put into a bug's ``screenshots`` list.

When UPLOAD_FOLDER is unset ``from_config`` returns None and the upload
endpoints answer 503.

Testability: construct ImageStorage(root=tmp_path, ...) and inject it via
``app.extensions[STORAGE_KEY]``; pass ``clock`` to pin the name prefix.
"""

import logging
import os
import re
import time
from pathlib import Path

from werkzeug.security import safe_join
from werkzeug.utils import secure_filename

logger = logging.getLogger(__name__)

STORAGE_KEY = "image_storage"

ALLOWED_CONTENT_TYPES = ("image/jpeg", "image/png", "image/gif", "image/webp", "image/svg+xml")
MAX_IMAGE_BYTES = 10 * 1024 * 1024
MAX_IMAGES_PER_UPLOAD = 5

FILES_ROUTE = "/api/upload/files/"

_UNDERSCORES = re.compile(r"_{2,}")


class ImageStorageError(Exception):
    """Raised for a file that cannot be stored or located."""


class ImageStorage:
    """Local-disk screenshot store.

    Args:
        root: Directory holding every project's images.
        public_base_url: API base used to build returned URLs.
        clock: Returns seconds since the epoch (time.time by default).
    """

    def __init__(self, root, public_base_url: str, clock=time.time) -> None:
        self.root = Path(root)
        self.public_base_url = public_base_url.rstrip("/")
        self._clock = clock

    @classmethod
    def from_config(cls, config) -> "ImageStorage | None":
        folder = config.get("UPLOAD_FOLDER")
        if not folder:
            return None
        return cls(folder, config.get("API_PUBLIC_URL", ""))

    # ── Naming ───────────────────────────────────────────────────────────
    def blob_name(self, project_id: str, bug_id: str | None, filename: str) -> str:
        cleaned = _UNDERSCORES.sub("_", secure_filename(filename or "").lower()) or "image"
        stamp = int(self._clock() * 1000)
        return f"{project_id}/{bug_id or 'pending'}/{stamp}_{cleaned}"

    def url_for(self, name: str) -> str:
        return f"{self.public_base_url}{FILES_ROUTE}{name}"

    def name_from_url(self, url: str) -> str | None:
        """Inverse of url_for; None for URLs this store did not issue."""
        prefix = f"{self.public_base_url}{FILES_ROUTE}"
        if not url or not url.startswith(prefix):
            return None
        return url[len(prefix):].split("?", 1)[0] or None

    def path_for(self, name: str) -> Path:
        joined = safe_join(str(self.root), name)
        if joined is None:
            raise ImageStorageError(f"Invalid image name: {name}")
        return Path(joined)

    # ── Operations ───────────────────────────────────────────────────────
    def save(self, data: bytes, *, project_id: str, bug_id: str | None,
             filename: str, content_type: str) -> dict:
        name = self.blob_name(project_id, bug_id, filename)
        path = self.path_for(name)
        os.makedirs(path.parent, exist_ok=True)
        path.write_bytes(data)
        logger.info("Stored image %s (%d bytes)", name, len(data), extra={"project_id": project_id})
        return {
            "url": self.url_for(name),
            "blobName": name,
            "originalName": filename,
            "size": len(data),
            "contentType": content_type,
        }

    def delete(self, name: str) -> bool:
        path = self.path_for(name)
        if not path.is_file():
            return False
        path.unlink()
        return True

    def status(self) -> dict:
        return {"backend": "local", "root": str(self.root), "baseUrl": self.public_base_url}
