"""
Project Service — project CRUD with slug management and bug counters.

Slugs are derived from the name once, at creation; renaming a project keeps
its slug so shared links stay valid.
"""

import logging
import re
import time

from bugfixer.core.exceptions import NotFoundError
from bugfixer.models import db
from bugfixer.models.bug import RESOLVED_STATUS, Bug
from bugfixer.models.project import Project, ProjectMember
from bugfixer.services import authorization
from bugfixer.services.cache_service import invalidate_widget_origins

logger = logging.getLogger(__name__)

_NON_ALNUM = re.compile(r"[^a-z0-9]+")


def slugify(name: str) -> str:
    """Lower-case, non-alphanumeric runs become "-", edge dashes trimmed."""
    slug = _NON_ALNUM.sub("-", name.lower()).strip("-")
    return slug or "project"


def _unique_slug(name: str) -> str:
    base = slugify(name)
    slug = base
    while Project.query.filter_by(slug=slug).first() is not None:
        slug = f"{base}-{int(time.time() * 1000)}"
    return slug


# ═══════════════════════════════════════════════════════════════
# Lookups
# ═══════════════════════════════════════════════════════════════
def get_project_or_404(project_id: str) -> Project:
    project = db.session.get(Project, project_id)
    if project is None:
        raise NotFoundError("Project", project_id)
    return project


def get_project_by_slug_or_404(slug: str) -> Project:
    project = Project.query.filter_by(slug=slug).first()
    if project is None:
        raise NotFoundError("Project", slug)
    return project


def bug_counts(project_ids: list[str]) -> dict[str, tuple[int, int]]:
    """project_id -> (bug_count, open_bug_count) in two grouped queries."""
    if not project_ids:
        return {}
    totals = dict(
        db.session.query(Bug.project_id, db.func.count(Bug.id))
        .filter(Bug.project_id.in_(project_ids))
        .group_by(Bug.project_id)
        .all()
    )
    open_counts = dict(
        db.session.query(Bug.project_id, db.func.count(Bug.id))
        .filter(Bug.project_id.in_(project_ids), Bug.status != RESOLVED_STATUS)
        .group_by(Bug.project_id)
        .all()
    )
    return {pid: (totals.get(pid, 0), open_counts.get(pid, 0)) for pid in project_ids}


def serialize_with_counts(projects: list[Project]) -> list[dict]:
    counts = bug_counts([p.id for p in projects])
    out = []
    for p in projects:
        total, open_ = counts.get(p.id, (0, 0))
        data = p.to_dict()
        data["bugCount"] = total
        data["openBugCount"] = open_
        out.append(data)
    return out


# ═══════════════════════════════════════════════════════════════
# Queries
# ═══════════════════════════════════════════════════════════════
def list_for_user(user_id: str) -> list[dict]:
    """Projects the user owns, then projects they are a member of."""
    owned = (
        Project.query.filter_by(owner_id=user_id)
        .order_by(Project.updated_at.desc())
        .all()
    )
    member_of = (
        Project.query.join(ProjectMember, ProjectMember.project_id == Project.id)
        .filter(ProjectMember.user_id == user_id, Project.owner_id != user_id)
        .order_by(Project.updated_at.desc())
        .all()
    )
    return serialize_with_counts(owned + member_of)


def list_public() -> list[dict]:
    projects = (
        Project.query.filter_by(is_public=True)
        .order_by(Project.created_at.desc())
        .all()
    )
    return serialize_with_counts(projects)


def get_for_viewer(slug: str, user_id: str | None) -> dict:
    """Project detail with counters and the caller's role."""
    project = get_project_by_slug_or_404(slug)
    authorization.require_action(user_id, project, "project.view")
    data = serialize_with_counts([project])[0]
    data["userRole"] = authorization.role_name(user_id, project)
    return data


# ═══════════════════════════════════════════════════════════════
# Mutations
# ═══════════════════════════════════════════════════════════════
def create_project(owner_id: str, name: str, description: str | None = None,
                   is_public: bool = False) -> Project:
    project = Project(
        name=name,
        description=description or None,
        slug=_unique_slug(name),
        is_public=is_public,
        owner_id=owner_id,
    )
    db.session.add(project)
    db.session.commit()
    logger.info("Project created: %s", project.slug, extra={"project_id": project.id, "user_id": owner_id})
    return project


def update_project(project_id: str, user_id: str, fields: dict) -> Project:
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "project.update")
    for attr in ("name", "description", "is_public"):
        if attr in fields:
            setattr(project, attr, fields[attr])
    db.session.commit()
    return project


def delete_project(project_id: str, user_id: str) -> None:
    """Delete a project and, by cascade, everything attached to it."""
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "project.delete")
    had_widget = project.widget_token is not None
    db.session.delete(project)
    db.session.commit()
    if had_widget:
        invalidate_widget_origins()
    logger.info("Project deleted", extra={"project_id": project_id, "user_id": user_id})
