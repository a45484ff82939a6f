"""
User Service — signup, login, profile and account deletion.
"""

import logging

from bugfixer.core.exceptions import AuthenticationError, ConflictError, NotFoundError
from bugfixer.models import db
from bugfixer.models.bug import Bug
from bugfixer.models.integrations import GitHubIntegration
from bugfixer.models.project import AccessRequest, Invitation, Project, ProjectMember
from bugfixer.models.user import User
from bugfixer.services import invitation_service, notifier
from bugfixer.services.cache_service import invalidate_identity, invalidate_widget_origins
from bugfixer.utils.crypto import hash_password, verify_password

logger = logging.getLogger(__name__)


def get_user_by_email(email: str) -> User | None:
    return User.query.filter(db.func.lower(User.email) == email.lower()).first()


def get_user_or_404(user_id: str) -> User:
    user = db.session.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


# ═══════════════════════════════════════════════════════════════
# Signup / login
# ═══════════════════════════════════════════════════════════════
def signup(email: str, password: str, name: str) -> tuple[User, int]:
    """Create an account and accept pending invitations for its email.

    Returns:
        (user, invitations_accepted)
    """
    email = email.lower()
    if get_user_by_email(email):
        raise ConflictError("Email already in use")

    user = User(email=email, password_hash=hash_password(password), name=name)
    db.session.add(user)
    db.session.flush()

    accepted = invitation_service.accept_pending_for_user(user)
    db.session.commit()

    logger.info("User signed up", extra={"user_id": user.id})
    if accepted:
        logger.info("Auto-accepted %d invitation(s) on signup", accepted, extra={"user_id": user.id})

    notifier.notify_welcome(user)
    return user, accepted


def authenticate(email: str, password: str) -> User:
    user = get_user_by_email(email)
    # Same message for unknown email and wrong password
    if user is None or not verify_password(password, user.password_hash):
        raise AuthenticationError("Invalid email or password")
    return user


# ═══════════════════════════════════════════════════════════════
# Profile
# ═══════════════════════════════════════════════════════════════
def update_profile(user_id: str, fields: dict) -> User:
    user = get_user_or_404(user_id)
    if "name" in fields:
        user.name = fields["name"]
    if "avatar_url" in fields:
        user.avatar_url = fields["avatar_url"]
    db.session.commit()
    invalidate_identity(user_id)
    return user


def delete_user(user_id: str) -> None:
    """Delete an account and everything it exclusively owns.

    - owned projects go with their whole cascade
    - memberships and access requests are removed
    - reported bugs in other projects survive with reporter_id = NULL
    - invited_by / reviewed_by / connected_by references are cleared
    """
    user = get_user_or_404(user_id)

    had_widget = False
    for project in Project.query.filter_by(owner_id=user_id).all():
        had_widget = had_widget or project.widget_token is not None
        db.session.delete(project)
    db.session.flush()

    Bug.query.filter_by(reporter_id=user_id).update(
        {Bug.reporter_id: None}, synchronize_session=False,
    )
    ProjectMember.query.filter_by(invited_by=user_id).update(
        {ProjectMember.invited_by: None}, synchronize_session=False,
    )
    Invitation.query.filter_by(invited_by=user_id).update(
        {Invitation.invited_by: None}, synchronize_session=False,
    )
    AccessRequest.query.filter_by(reviewed_by=user_id).update(
        {AccessRequest.reviewed_by: None}, synchronize_session=False,
    )
    GitHubIntegration.query.filter_by(connected_by=user_id).update(
        {GitHubIntegration.connected_by: None}, synchronize_session=False,
    )
    ProjectMember.query.filter_by(user_id=user_id).delete(synchronize_session=False)
    AccessRequest.query.filter_by(user_id=user_id).delete(synchronize_session=False)

    db.session.delete(user)
    db.session.commit()
    # Bulk updates bypassed the identity map
    db.session.expire_all()

    invalidate_identity(user_id)
    if had_widget:
        invalidate_widget_origins()
    logger.info("User deleted", extra={"user_id": user_id})
