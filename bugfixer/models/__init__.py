"""
BugFixer Backend
SQLAlchemy models package.

All model modules import ``db`` from here; the app factory imports every
module once so the metadata is complete before ``db.create_all()``.
"""

import uuid
from datetime import datetime, timezone

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()


def new_uuid() -> str:
    return str(uuid.uuid4())


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def iso(value: datetime | None) -> str | None:
    """Serialise a datetime for JSON responses."""
    return value.isoformat() if value else None
