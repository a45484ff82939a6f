"""
Access Request Service — "let me in" requests from non-members.

    PENDING ──approve──> APPROVED   (membership created with role MEMBER)
            └─reject───> REJECTED

Both transitions leave PENDING exactly once; reviewing a processed request
is a ConflictError. After a rejection the user may file a fresh request,
which is a new row.
"""

import logging
from datetime import datetime, timezone

from sqlalchemy.exc import IntegrityError

from bugfixer.core.exceptions import ConflictError, NotFoundError
from bugfixer.models import db
from bugfixer.models.project import AccessRequest, ProjectMember
from bugfixer.models.user import User
from bugfixer.services import authorization, notifier
from bugfixer.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)

_PENDING_MSG = "You already have a pending request for this project"


def create_request(project_id: str, user_id: str, message: str | None = None) -> AccessRequest:
    project = get_project_or_404(project_id)

    if project.owner_id == user_id:
        raise ConflictError("You are the owner of this project")
    if authorization.get_membership(project.id, user_id) is not None:
        raise ConflictError("You are already a member of this project")
    pending = AccessRequest.query.filter_by(
        project_id=project.id, user_id=user_id, status="PENDING",
    ).first()
    if pending is not None:
        raise ConflictError(_PENDING_MSG)

    access_request = AccessRequest(project_id=project.id, user_id=user_id, message=message or None)
    db.session.add(access_request)
    try:
        db.session.commit()
    except IntegrityError:
        # Partial unique index on pending (project, user)
        db.session.rollback()
        raise ConflictError(_PENDING_MSG)

    logger.info("Access request created", extra={"project_id": project.id, "user_id": user_id})
    notifier.notify_access_request(project, db.session.get(User, user_id), message)
    return access_request


def list_requests(project_id: str, user_id: str) -> list[AccessRequest]:
    """All requests, newest first. Callers below ADMIN get an empty list."""
    project = get_project_or_404(project_id)
    if not authorization.can(user_id, project, "access_request.list"):
        return []
    return (
        AccessRequest.query.filter_by(project_id=project.id)
        .order_by(AccessRequest.created_at.desc())
        .all()
    )


def _review(request_id: str, user_id: str, approve: bool) -> AccessRequest:
    access_request = db.session.get(AccessRequest, request_id)
    if access_request is None:
        raise NotFoundError("Access request", request_id)
    project = access_request.project
    authorization.require_action(user_id, project, "access_request.review")

    # Conditional update: only one reviewer can move the row out of PENDING
    moved = (
        AccessRequest.query.filter_by(id=access_request.id, status="PENDING")
        .update(
            {
                AccessRequest.status: "APPROVED" if approve else "REJECTED",
                AccessRequest.reviewed_by: user_id,
                AccessRequest.reviewed_at: datetime.now(timezone.utc),
            },
            synchronize_session=False,
        )
    )
    if not moved:
        db.session.rollback()
        raise ConflictError("Request has already been processed")

    if approve and authorization.get_membership(project.id, access_request.user_id) is None:
        db.session.add(ProjectMember(
            project_id=project.id, user_id=access_request.user_id, role="MEMBER",
        ))
    db.session.commit()
    db.session.refresh(access_request)

    logger.info("Access request %s", access_request.status.lower(),
                extra={"project_id": project.id, "user_id": access_request.user_id})
    if access_request.user is not None:
        notifier.notify_access_decision(project, access_request.user, approved=approve)
    return access_request


def approve_request(request_id: str, user_id: str) -> AccessRequest:
    return _review(request_id, user_id, approve=True)


def reject_request(request_id: str, user_id: str) -> AccessRequest:
    return _review(request_id, user_id, approve=False)
