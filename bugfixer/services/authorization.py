"""
Project authorization — the single decision point for project access.

    permission_level(user_id, project) -> PermissionLevel

    NONE < READ < WRITE < ADMIN < OWNER

    - OWNER   iff user_id == project.owner_id
    - member  VIEWER -> READ, MEMBER -> WRITE, ADMIN -> ADMIN
    - public  project.is_public -> READ (anonymous callers included)
    - else    NONE

Every action maps to a minimum level in ACTION_LEVELS; a few actions also
allow the resource's own author (bug reporter, self-removal). Those
exceptions are spelled out in the require_* helpers below.

Usage:
    from bugfixer.services.authorization import require_action

    level = require_action(user_id, project, "bug.create")  # raises ForbiddenError
"""

from enum import IntEnum

from bugfixer.core.exceptions import ForbiddenError
from bugfixer.models import db
from bugfixer.models.project import ProjectMember


class PermissionLevel(IntEnum):
    NONE = 0
    READ = 1
    WRITE = 2
    ADMIN = 3
    OWNER = 4


ROLE_LEVELS = {
    "VIEWER": PermissionLevel.READ,
    "MEMBER": PermissionLevel.WRITE,
    "ADMIN": PermissionLevel.ADMIN,
}

# action -> (minimum level, denial message)
ACTION_LEVELS: dict[str, tuple[PermissionLevel, str]] = {
    "project.view": (PermissionLevel.READ, "Access denied"),
    "project.update": (PermissionLevel.OWNER, "Only the owner can update the project"),
    "project.delete": (PermissionLevel.OWNER, "Only the owner can delete the project"),
    "bug.list": (PermissionLevel.READ, "Access denied"),
    "bug.view": (PermissionLevel.READ, "Access denied"),
    "bug.create": (PermissionLevel.WRITE, "You do not have permission to create bugs in this project"),
    "bug.update": (PermissionLevel.WRITE, "You do not have permission to update this bug"),
    "bug.delete": (PermissionLevel.ADMIN, "You do not have permission to delete this bug"),
    "bug.status": (PermissionLevel.WRITE, "You do not have permission to update bug status"),
    "member.list": (PermissionLevel.READ, "Access denied"),
    "member.add": (PermissionLevel.ADMIN, "Only owner or admin can add members"),
    "member.change_role": (PermissionLevel.OWNER, "Only the owner can change member roles"),
    "member.remove": (PermissionLevel.OWNER, "Only the owner can remove members, or you can remove yourself"),
    "access_request.list": (PermissionLevel.ADMIN, "Only owner or admin can view access requests"),
    "access_request.review": (PermissionLevel.OWNER, "Only the owner can review access requests"),
    "widget.manage": (PermissionLevel.ADMIN, "Only owners and admins can manage widget settings"),
    "github.manage": (PermissionLevel.ADMIN, "Only project owners and admins can manage the GitHub integration"),
    "agent_config.manage": (PermissionLevel.ADMIN, "Only project owners and admins can configure the AI agent"),
}


def get_membership(project_id: str, user_id: str) -> ProjectMember | None:
    return (
        db.session.query(ProjectMember)
        .filter_by(project_id=project_id, user_id=user_id)
        .first()
    )


def permission_level(user_id: str | None, project) -> PermissionLevel:
    """Return the caller's effective level on a project (pure lookup)."""
    if user_id is not None:
        if user_id == project.owner_id:
            return PermissionLevel.OWNER
        membership = get_membership(project.id, user_id)
        if membership is not None:
            return ROLE_LEVELS.get(membership.role, PermissionLevel.NONE)
    if project.is_public:
        return PermissionLevel.READ
    return PermissionLevel.NONE


def role_name(user_id: str | None, project) -> str | None:
    """Return "OWNER", the member role, or None for non-members."""
    if user_id is None:
        return None
    if user_id == project.owner_id:
        return "OWNER"
    membership = get_membership(project.id, user_id)
    return membership.role if membership else None


def is_member_or_owner(user_id: str | None, project) -> bool:
    """True for the owner and for any member regardless of role.

    Unlike permission_level, public visibility does not count.
    """
    return role_name(user_id, project) is not None


def can(user_id: str | None, project, action: str) -> bool:
    required, _ = ACTION_LEVELS[action]
    return permission_level(user_id, project) >= required


def require_action(user_id: str | None, project, action: str) -> PermissionLevel:
    """Raise ForbiddenError unless the caller reaches the action's level."""
    required, message = ACTION_LEVELS[action]
    level = permission_level(user_id, project)
    if level < required:
        raise ForbiddenError(message)
    return level


def require_member_or_owner(user_id: str | None, project, message: str = "Access denied") -> None:
    if not is_member_or_owner(user_id, project):
        raise ForbiddenError(message)


# ── Actions with an author exception ─────────────────────────────────────


def require_bug_edit(user_id: str | None, project, bug) -> None:
    """WRITE, or the bug's own reporter."""
    if user_id is not None and bug.reporter_id == user_id:
        return
    require_action(user_id, project, "bug.update")


def require_bug_delete(user_id: str | None, project, bug) -> None:
    """ADMIN, or the bug's own reporter."""
    if user_id is not None and bug.reporter_id == user_id:
        return
    require_action(user_id, project, "bug.delete")


def require_member_removal(user_id: str | None, project, member_user_id: str) -> None:
    """OWNER, or a member removing themself."""
    if user_id is not None and user_id == member_user_id:
        return
    require_action(user_id, project, "member.remove")
