"""
Authorization policy tests.

Covers the level lattice (NONE < READ < WRITE < ADMIN < OWNER), role
mapping, public visibility and the author exceptions for bug edit/delete
and self-removal.
"""

import pytest

from bugfixer.core.exceptions import ForbiddenError
from bugfixer.models import db
from bugfixer.models.bug import Bug
from bugfixer.models.project import Project, ProjectMember
from bugfixer.models.user import User
from bugfixer.services.authorization import (
    ACTION_LEVELS,
    PermissionLevel,
    can,
    is_member_or_owner,
    permission_level,
    require_action,
    require_bug_delete,
    require_bug_edit,
    require_member_removal,
    role_name,
)


def _user(email):
    u = User(email=email, password_hash="x", name=email.split("@")[0])
    db.session.add(u)
    db.session.flush()
    return u


@pytest.fixture()
def world():
    """Owner, one user per role, an outsider and a private project."""
    owner = _user("owner@acme.io")
    project = Project(name="Core", slug="core", owner_id=owner.id, is_public=False)
    db.session.add(project)
    db.session.flush()
    users = {"owner": owner, "outsider": _user("outsider@acme.io")}
    for role in ("VIEWER", "MEMBER", "ADMIN"):
        u = _user(f"{role.lower()}@acme.io")
        db.session.add(ProjectMember(project_id=project.id, user_id=u.id, role=role))
        users[role] = u
    db.session.commit()
    return project, users


class TestPermissionLevel:
    def test_owner_is_owner(self, world):
        project, users = world
        assert permission_level(users["owner"].id, project) == PermissionLevel.OWNER

    @pytest.mark.parametrize("role,level", [
        ("VIEWER", PermissionLevel.READ),
        ("MEMBER", PermissionLevel.WRITE),
        ("ADMIN", PermissionLevel.ADMIN),
    ])
    def test_member_roles(self, world, role, level):
        project, users = world
        assert permission_level(users[role].id, project) == level

    def test_outsider_on_private_project(self, world):
        project, users = world
        assert permission_level(users["outsider"].id, project) == PermissionLevel.NONE
        assert permission_level(None, project) == PermissionLevel.NONE

    def test_public_project_grants_read(self, world):
        project, users = world
        project.is_public = True
        db.session.commit()
        assert permission_level(users["outsider"].id, project) == PermissionLevel.READ
        assert permission_level(None, project) == PermissionLevel.READ
        # Membership still wins over public visibility
        assert permission_level(users["ADMIN"].id, project) == PermissionLevel.ADMIN

    def test_levels_are_ordered(self):
        assert (PermissionLevel.NONE < PermissionLevel.READ < PermissionLevel.WRITE
                < PermissionLevel.ADMIN < PermissionLevel.OWNER)


class TestActions:
    def test_every_action_has_a_message(self):
        for action, (level, message) in ACTION_LEVELS.items():
            assert isinstance(level, PermissionLevel)
            assert message, action

    def test_require_action_denies_with_capability_message(self, world):
        project, users = world
        with pytest.raises(ForbiddenError) as exc:
            require_action(users["MEMBER"].id, project, "member.change_role")
        assert exc.value.message == "Only the owner can change member roles"

    def test_admin_can_manage_but_not_review(self, world):
        project, users = world
        admin = users["ADMIN"].id
        assert can(admin, project, "member.add")
        assert can(admin, project, "widget.manage")
        assert can(admin, project, "access_request.list")
        assert not can(admin, project, "access_request.review")
        assert not can(admin, project, "project.delete")

    def test_viewer_reads_only(self, world):
        project, users = world
        viewer = users["VIEWER"].id
        assert can(viewer, project, "bug.list")
        assert not can(viewer, project, "bug.create")
        assert not can(viewer, project, "bug.status")

    def test_role_name_and_membership(self, world):
        project, users = world
        assert role_name(users["owner"].id, project) == "OWNER"
        assert role_name(users["VIEWER"].id, project) == "VIEWER"
        assert role_name(users["outsider"].id, project) is None
        assert role_name(None, project) is None
        project.is_public = True
        db.session.commit()
        # Public visibility is not membership
        assert not is_member_or_owner(users["outsider"].id, project)
        assert is_member_or_owner(users["VIEWER"].id, project)


class TestAuthorExceptions:
    @pytest.fixture()
    def bug(self, world):
        project, users = world
        b = Bug(title="Broken", project_id=project.id, reporter_id=users["VIEWER"].id)
        db.session.add(b)
        db.session.commit()
        return b

    def test_reporter_can_edit_and_delete_own_bug(self, world, bug):
        project, users = world
        require_bug_edit(users["VIEWER"].id, project, bug)
        require_bug_delete(users["VIEWER"].id, project, bug)

    def test_member_can_edit_but_not_delete_others_bug(self, world, bug):
        project, users = world
        require_bug_edit(users["MEMBER"].id, project, bug)
        with pytest.raises(ForbiddenError):
            require_bug_delete(users["MEMBER"].id, project, bug)
        require_bug_delete(users["ADMIN"].id, project, bug)

    def test_outsider_cannot_edit(self, world, bug):
        project, users = world
        with pytest.raises(ForbiddenError):
            require_bug_edit(users["outsider"].id, project, bug)

    def test_self_removal(self, world):
        project, users = world
        viewer = users["VIEWER"].id
        require_member_removal(viewer, project, viewer)
        with pytest.raises(ForbiddenError):
            require_member_removal(users["ADMIN"].id, project, viewer)
        require_member_removal(users["owner"].id, project, viewer)
