"""
Member Service — project membership management.

Adding someone by email creates a membership when the address belongs to a
registered user, otherwise an invitation (see invitation_service). Member
routes address members by their *user id*, not the membership row id.
"""

import logging

from sqlalchemy.exc import IntegrityError

from bugfixer.core.exceptions import ConflictError, NotFoundError
from bugfixer.models import db
from bugfixer.models.project import ProjectMember
from bugfixer.models.user import User
from bugfixer.services import authorization, invitation_service, notifier
from bugfixer.services.project_service import get_project_or_404
from bugfixer.services.user_service import get_user_by_email

logger = logging.getLogger(__name__)


def _get_member_or_404(project_id: str, member_user_id: str) -> ProjectMember:
    membership = authorization.get_membership(project_id, member_user_id)
    if membership is None:
        raise NotFoundError("Member", member_user_id)
    return membership


def list_members(project_id: str, user_id: str | None) -> dict:
    """Return {"members": [...], "owner": {...}} for a READ-level caller."""
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "member.list")
    memberships = (
        ProjectMember.query.filter_by(project_id=project.id)
        .order_by(ProjectMember.created_at.asc())
        .all()
    )
    return {
        "members": [m.to_dict() for m in memberships],
        "owner": project.owner.to_public_dict() if project.owner else None,
    }


def add_member(project_id: str, user_id: str, email: str, role: str) -> dict:
    """
    Add a registered user directly or invite an unregistered address.

    Returns {"message", "member"} or {"message", "invitation"}.

    Raises:
        ConflictError: target is the owner, already a member, or already
            holds a live invitation.
    """
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "member.add")

    target = get_user_by_email(email)
    if target is None:
        invitation = invitation_service.create_invitation(project, email, role, invited_by=user_id)
        db.session.commit()
        notifier.notify_invitation(invitation, project, db.session.get(User, user_id))
        return {"message": "Invitation sent successfully", "invitation": invitation.to_dict()}

    if target.id == project.owner_id:
        raise ConflictError("User is already the owner of this project")
    if authorization.get_membership(project.id, target.id) is not None:
        raise ConflictError("User is already a member of this project")

    membership = ProjectMember(
        project_id=project.id, user_id=target.id, role=role, invited_by=user_id,
    )
    db.session.add(membership)
    try:
        db.session.commit()
    except IntegrityError:
        # Concurrent add of the same user
        db.session.rollback()
        raise ConflictError("User is already a member of this project")

    logger.info("Member added with role %s", role, extra={"project_id": project.id, "user_id": target.id})
    return {"message": "Member added successfully", "member": membership.to_dict()}


def change_role(project_id: str, user_id: str, member_user_id: str, role: str) -> ProjectMember:
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "member.change_role")
    membership = _get_member_or_404(project.id, member_user_id)

    old_role = membership.role
    membership.role = role
    db.session.commit()

    if old_role != role:
        notifier.notify_role_changed(membership.user, project, old_role, role)
    return membership


def remove_member(project_id: str, user_id: str, member_user_id: str) -> None:
    """Owner removes anyone; a member may remove themself."""
    project = get_project_or_404(project_id)
    authorization.require_member_removal(user_id, project, member_user_id)
    membership = _get_member_or_404(project.id, member_user_id)

    removed_user = membership.user
    db.session.delete(membership)
    db.session.commit()
    logger.info("Member removed", extra={"project_id": project.id, "user_id": member_user_id})

    if member_user_id != user_id and removed_user is not None:
        notifier.notify_member_removed(removed_user, project)
