"""
Bug Service — bug CRUD and status changes inside a project.

There is no transition graph: any caller with WRITE may move a bug to any
status. Moving a bug into DEPLOYED notifies its reporter.
"""

import logging

from bugfixer.core.exceptions import NotFoundError
from bugfixer.models import db
from bugfixer.models.bug import RESOLVED_STATUS, Bug
from bugfixer.services import authorization, notifier
from bugfixer.services.project_service import get_project_or_404

logger = logging.getLogger(__name__)

_EDITABLE = ("title", "description", "priority", "source", "reporter_email", "screenshots")


def _get_bug_or_404(bug_id: str) -> Bug:
    bug = db.session.get(Bug, bug_id)
    if bug is None:
        raise NotFoundError("Bug", bug_id)
    return bug


def list_bugs(project_id: str, user_id: str | None) -> list[Bug]:
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "bug.list")
    return (
        Bug.query.filter_by(project_id=project.id)
        .order_by(Bug.created_at.desc())
        .all()
    )


def get_bug(bug_id: str, user_id: str | None) -> Bug:
    bug = _get_bug_or_404(bug_id)
    authorization.require_action(user_id, bug.project, "bug.view")
    return bug


def create_bug(user_id: str, fields: dict) -> Bug:
    project = get_project_or_404(fields["project_id"])
    authorization.require_action(user_id, project, "bug.create")

    bug = Bug(
        title=fields["title"],
        description=fields.get("description") or None,
        priority=fields.get("priority", "MEDIUM"),
        status="TRIAGE",
        source=fields.get("source", "INTERNAL_QA"),
        project_id=project.id,
        reporter_id=user_id,
        reporter_email=fields.get("reporter_email"),
        screenshots=fields.get("screenshots"),
    )
    db.session.add(bug)
    db.session.commit()
    logger.info("Bug created", extra={"bug_id": bug.id, "project_id": project.id, "user_id": user_id})
    return bug


def update_bug(bug_id: str, user_id: str, fields: dict) -> Bug:
    bug = _get_bug_or_404(bug_id)
    authorization.require_bug_edit(user_id, bug.project, bug)
    for attr in _EDITABLE:
        if attr in fields:
            setattr(bug, attr, fields[attr])
    db.session.commit()
    return bug


def change_status(bug_id: str, user_id: str, status: str) -> Bug:
    """Set a bug's status; entering DEPLOYED emails the reporter."""
    bug = _get_bug_or_404(bug_id)
    project = bug.project
    authorization.require_action(user_id, project, "bug.status")

    previous = bug.status
    bug.status = status
    db.session.commit()
    logger.info("Bug status %s -> %s", previous, status,
                extra={"bug_id": bug.id, "project_id": project.id, "user_id": user_id})

    if status == RESOLVED_STATUS and previous != RESOLVED_STATUS and bug.reporter is not None:
        notifier.notify_bug_resolved(bug, project, bug.reporter)
    return bug


def delete_bug(bug_id: str, user_id: str) -> None:
    bug = _get_bug_or_404(bug_id)
    authorization.require_bug_delete(user_id, bug.project, bug)
    project_id = bug.project_id
    db.session.delete(bug)
    db.session.commit()
    logger.info("Bug deleted", extra={"bug_id": bug_id, "project_id": project_id, "user_id": user_id})
