"""Project, membership, access-request and invitation models."""

from bugfixer.models import db, iso, new_uuid, utcnow

# ── Closed value sets ────────────────────────────────────────────────────
MEMBER_ROLES = ("VIEWER", "MEMBER", "ADMIN")
ROLE_ALIASES = {"CONTRIBUTOR": "MEMBER", "MAINTAINER": "ADMIN"}


class Project(db.Model):
    """A tenant: bugs, members and integrations hang off a project."""

    __tablename__ = "projects"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    name = db.Column(db.String(100), nullable=False)
    description = db.Column(db.Text, nullable=True)
    slug = db.Column(db.String(150), nullable=False, unique=True, index=True)
    is_public = db.Column(db.Boolean, nullable=False, default=False)
    owner_id = db.Column(
        db.String(36),
        db.ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    owner = db.relationship("User", lazy="joined")
    bugs = db.relationship(
        "Bug", backref="project",
        cascade="all, delete-orphan",
    )
    members = db.relationship(
        "ProjectMember", backref="project",
        cascade="all, delete-orphan",
    )
    access_requests = db.relationship(
        "AccessRequest", backref="project",
        cascade="all, delete-orphan",
    )
    invitations = db.relationship(
        "Invitation", backref="project",
        cascade="all, delete-orphan",
    )
    widget_token = db.relationship(
        "WidgetToken", backref="project", uselist=False,
        cascade="all, delete-orphan",
    )
    github_integration = db.relationship(
        "GitHubIntegration", backref="project", uselist=False,
        cascade="all, delete-orphan",
    )
    agent_config = db.relationship(
        "AgentConfig", backref="project", uselist=False,
        cascade="all, delete-orphan",
    )

    def to_dict(self, include_owner: bool = True) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "slug": self.slug,
            "isPublic": self.is_public,
            "ownerId": self.owner_id,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }
        if include_owner and self.owner is not None:
            data["owner"] = self.owner.to_public_dict()
        return data

    def __repr__(self):
        return f"<Project {self.slug}>"


class ProjectMember(db.Model):
    """Non-owner membership. The owner never has a row here."""

    __tablename__ = "project_members"
    __table_args__ = (
        db.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, default="MEMBER", comment="VIEWER | MEMBER | ADMIN")
    invited_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "userId": self.user_id,
            "role": self.role,
            "invitedBy": self.invited_by,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "user": self.user.to_public_dict() if self.user else None,
        }


class AccessRequest(db.Model):
    """A non-member asking to join a project. At most one PENDING per pair."""

    __tablename__ = "access_requests"
    __table_args__ = (
        db.Index(
            "uq_access_requests_pending",
            "project_id",
            "user_id",
            unique=True,
            postgresql_where=db.text("status = 'PENDING'"),
            sqlite_where=db.text("status = 'PENDING'"),
        ),
    )

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    status = db.Column(db.String(20), nullable=False, default="PENDING", comment="PENDING | APPROVED | REJECTED")
    message = db.Column(db.Text, nullable=True)
    reviewed_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    reviewed_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    user = db.relationship("User", foreign_keys=[user_id], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "userId": self.user_id,
            "status": self.status,
            "message": self.message,
            "reviewedBy": self.reviewed_by,
            "reviewedAt": iso(self.reviewed_at),
            "createdAt": iso(self.created_at),
            "user": self.user.to_public_dict() if self.user else None,
        }


class Invitation(db.Model):
    """Email invitation for someone without an account yet."""

    __tablename__ = "invitations"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    email = db.Column(db.String(255), nullable=False, index=True)
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    role = db.Column(db.String(20), nullable=False, default="MEMBER")
    status = db.Column(db.String(20), nullable=False, default="PENDING", comment="PENDING | ACCEPTED | EXPIRED")
    token = db.Column(db.String(64), nullable=False, unique=True, index=True)
    invited_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    expires_at = db.Column(db.DateTime(timezone=True), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    inviter = db.relationship("User", foreign_keys=[invited_by], lazy="joined")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "role": self.role,
            "status": self.status,
            "expiresAt": iso(self.expires_at),
            "createdAt": iso(self.created_at),
        }
