"""
Invitation Service — email invitations for people without an account.

Lifecycle: PENDING → ACCEPTED. An invitation past ``expires_at`` is never
returned by a PENDING lookup (time predicate in every query); the EXPIRED
status exists for records an operator closes out explicitly.
"""

import logging
from datetime import datetime, timedelta, timezone

from bugfixer.core.exceptions import ConflictError, ForbiddenError, NotFoundError
from bugfixer.models import db
from bugfixer.models.project import Invitation, Project, ProjectMember
from bugfixer.services.authorization import get_membership
from bugfixer.utils.crypto import generate_token

logger = logging.getLogger(__name__)

INVITATION_TTL = timedelta(days=7)
_NOT_FOUND_MSG = "Invitation not found, expired, or already used"


def _live_pending():
    """Query of PENDING invitations that have not expired yet."""
    return Invitation.query.filter(
        Invitation.status == "PENDING",
        Invitation.expires_at > datetime.now(timezone.utc),
    )


def find_live_invitation(email: str, project_id: str) -> Invitation | None:
    return (
        _live_pending()
        .filter(db.func.lower(Invitation.email) == email.lower(),
                Invitation.project_id == project_id)
        .first()
    )


def create_invitation(project: Project, email: str, role: str, invited_by: str | None) -> Invitation:
    """Create a PENDING invitation. Caller commits."""
    if find_live_invitation(email, project.id):
        raise ConflictError("An invitation has already been sent to this email")

    invitation = Invitation(
        email=email.lower(),
        project_id=project.id,
        role=role,
        invited_by=invited_by,
        token=generate_token(32),
        expires_at=datetime.now(timezone.utc) + INVITATION_TTL,
    )
    db.session.add(invitation)
    db.session.flush()
    logger.info("Invitation created", extra={"project_id": project.id})
    return invitation


def get_live_invitation_by_token(token: str) -> Invitation:
    invitation = _live_pending().filter(Invitation.token == token).first()
    if invitation is None:
        raise NotFoundError("Invitation", message=_NOT_FOUND_MSG)
    return invitation


def accept_pending_for_user(user) -> int:
    """Accept every live invitation addressed to ``user.email``.

    Called during signup, inside the signup transaction (caller commits).
    Returns the number of invitations marked ACCEPTED.
    """
    invitations = (
        _live_pending()
        .filter(db.func.lower(Invitation.email) == user.email.lower())
        .all()
    )
    for invitation in invitations:
        if get_membership(invitation.project_id, user.id) is None:
            project = db.session.get(Project, invitation.project_id)
            if project is not None and project.owner_id != user.id:
                db.session.add(ProjectMember(
                    project_id=invitation.project_id,
                    user_id=user.id,
                    role=invitation.role,
                    invited_by=invitation.invited_by,
                ))
        invitation.status = "ACCEPTED"
    if invitations:
        db.session.flush()
    return len(invitations)


def accept_by_token(token: str, user_id: str, user_email: str) -> dict:
    """Accept one invitation on behalf of the logged-in user.

    Returns {"projectId", "projectSlug", "alreadyMember"}.

    Raises:
        NotFoundError: token unknown, expired, or already used.
        ForbiddenError: invitation addressed to another email.
    """
    invitation = get_live_invitation_by_token(token)
    if invitation.email.lower() != user_email.lower():
        raise ForbiddenError("This invitation was sent to a different email address")

    project = db.session.get(Project, invitation.project_id)
    already_member = (
        project.owner_id == user_id
        or get_membership(invitation.project_id, user_id) is not None
    )
    if not already_member:
        db.session.add(ProjectMember(
            project_id=invitation.project_id,
            user_id=user_id,
            role=invitation.role,
            invited_by=invitation.invited_by,
        ))
    invitation.status = "ACCEPTED"
    db.session.commit()

    logger.info("Invitation accepted", extra={"user_id": user_id, "project_id": project.id})
    return {
        "projectId": project.id,
        "projectSlug": project.slug,
        "alreadyMember": already_member,
    }


def list_for_email(email: str) -> list[Invitation]:
    return (
        _live_pending()
        .filter(db.func.lower(Invitation.email) == email.lower())
        .order_by(Invitation.created_at.desc())
        .all()
    )


def to_preview_dict(invitation: Invitation) -> dict:
    project = invitation.project
    inviter = invitation.inviter
    return {
        "id": invitation.id,
        "token": invitation.token,
        "email": invitation.email,
        "role": invitation.role,
        "expiresAt": invitation.to_dict()["expiresAt"],
        "project": {
            "id": project.id,
            "name": project.name,
            "slug": project.slug,
            "description": project.description,
        },
        "inviter": (
            {"id": inviter.id, "name": inviter.name, "email": inviter.email}
            if inviter else None
        ),
    }
