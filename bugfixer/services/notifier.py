"""
Side-effect dispatch: fire-and-forget emails for domain events, also used
for GitHub label sync (github_service).

Every notify_* function takes plain values (never ORM instances, which do
not survive the hop to another thread) and hands the work to ``dispatch``:

  - NOTIFICATIONS_ASYNC=True   → daemon thread inside app.app_context()
  - NOTIFICATIONS_ASYNC=False  → inline (testing), still error-swallowing

A failed notification is logged and dropped. It never fails the request
that triggered it and is never retried.
"""

import logging
import threading

from flask import current_app

from bugfixer.services.email_service import EmailService

logger = logging.getLogger(__name__)


def _run_safely(fn, kwargs) -> None:
    try:
        fn(**kwargs)
    except Exception:
        logger.exception("Notification %s failed", fn.__name__)


def dispatch(fn, **kwargs) -> None:
    """Run ``fn(**kwargs)`` without blocking or failing the caller."""
    app = current_app._get_current_object()

    if not app.config.get("NOTIFICATIONS_ASYNC", True):
        _run_safely(fn, kwargs)
        return

    def _target():
        with app.app_context():
            _run_safely(fn, kwargs)

    t = threading.Thread(target=_target, name=f"notify-{fn.__name__}", daemon=True)
    t.start()


def _frontend_url() -> str:
    return current_app.config.get("FRONTEND_URL", "").split(",")[0].strip().rstrip("/")


# ── Senders (run inside dispatch) ────────────────────────────────────────


def _send_welcome(*, to_email, user_name):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="welcome",
        context={
            "user_name": user_name,
            "dashboard_button": EmailService.button(f"{_frontend_url()}/dashboard", "Open dashboard"),
        },
    )


def _send_invitation(*, to_email, inviter_name, inviter_email, project_name,
                     project_description, role, token):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="project_invitation",
        context={
            "inviter_name": inviter_name,
            "inviter_email": inviter_email,
            "project_name": project_name,
            "project_description": project_description,
            "role": role,
            "invite_button": EmailService.button(f"{_frontend_url()}/invite/{token}", "Accept invitation"),
        },
    )


def _send_access_request(*, to_email, requester_name, requester_email, project_name,
                         project_slug, message):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="access_request",
        context={
            "requester_name": requester_name,
            "requester_email": requester_email,
            "project_name": project_name,
            "message": message,
            "project_button": EmailService.button(
                f"{_frontend_url()}/projects/{project_slug}?tab=members", "Review request",
            ),
        },
    )


def _send_access_decision(*, to_email, project_name, project_slug, approved):
    context = {"project_name": project_name}
    if approved:
        context["project_button"] = EmailService.button(
            f"{_frontend_url()}/projects/{project_slug}", "Open project",
        )
    EmailService.send_from_template(
        to_email=to_email,
        template_name="access_approved" if approved else "access_rejected",
        context=context,
    )


def _send_bug_resolved(*, to_email, reporter_name, bug_id, bug_title, project_name, project_slug):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="bug_resolved",
        context={
            "reporter_name": reporter_name,
            "bug_title": bug_title,
            "project_name": project_name,
            "bug_button": EmailService.button(
                f"{_frontend_url()}/projects/{project_slug}/bugs/{bug_id}", "View bug",
            ),
        },
    )


def _send_member_removed(*, to_email, user_name, project_name):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="member_removed",
        context={"user_name": user_name, "project_name": project_name},
    )


def _send_role_changed(*, to_email, user_name, project_name, project_slug, old_role, new_role):
    EmailService.send_from_template(
        to_email=to_email,
        template_name="role_changed",
        context={
            "user_name": user_name,
            "project_name": project_name,
            "old_role": old_role,
            "new_role": new_role,
            "project_button": EmailService.button(
                f"{_frontend_url()}/projects/{project_slug}", "Open project",
            ),
        },
    )


# ── Public API ───────────────────────────────────────────────────────────


def notify_welcome(user) -> None:
    dispatch(_send_welcome, to_email=user.email, user_name=user.name)


def notify_invitation(invitation, project, inviter) -> None:
    dispatch(
        _send_invitation,
        to_email=invitation.email,
        inviter_name=inviter.name if inviter else "A project owner",
        inviter_email=inviter.email if inviter else "",
        project_name=project.name,
        project_description=project.description or "",
        role=invitation.role,
        token=invitation.token,
    )


def notify_access_request(project, requester, message) -> None:
    dispatch(
        _send_access_request,
        to_email=project.owner.email,
        requester_name=requester.name,
        requester_email=requester.email,
        project_name=project.name,
        project_slug=project.slug,
        message=message or "",
    )


def notify_access_decision(project, requester, approved: bool) -> None:
    dispatch(
        _send_access_decision,
        to_email=requester.email,
        project_name=project.name,
        project_slug=project.slug,
        approved=approved,
    )


def notify_bug_resolved(bug, project, reporter) -> None:
    dispatch(
        _send_bug_resolved,
        to_email=reporter.email,
        reporter_name=reporter.name,
        bug_id=bug.id,
        bug_title=bug.title,
        project_name=project.name,
        project_slug=project.slug,
    )


def notify_member_removed(user, project) -> None:
    dispatch(_send_member_removed, to_email=user.email, user_name=user.name, project_name=project.name)


def notify_role_changed(user, project, old_role: str, new_role: str) -> None:
    dispatch(
        _send_role_changed,
        to_email=user.email,
        user_name=user.name,
        project_name=project.name,
        project_slug=project.slug,
        old_role=old_role,
        new_role=new_role,
    )
