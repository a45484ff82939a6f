"""Bug report model."""

from bugfixer.models import db, iso, new_uuid, utcnow

BUG_PRIORITIES = ("LOW", "MEDIUM", "HIGH", "CRITICAL")
BUG_STATUSES = ("TRIAGE", "IN_PROGRESS", "CODE_REVIEW", "QA_TESTING", "DEPLOYED")
BUG_SOURCES = ("CUSTOMER_REPORT", "INTERNAL_QA", "AUTOMATED_TEST", "PRODUCTION_ALERT")

RESOLVED_STATUS = "DEPLOYED"


class Bug(db.Model):
    """A bug report attached to a project.

    ``reporter_id`` is NULL for widget submissions and for reports whose
    author deleted their account.
    """

    __tablename__ = "bugs"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    title = db.Column(db.String(500), nullable=False)
    description = db.Column(db.Text, nullable=True)
    priority = db.Column(db.String(20), nullable=False, default="MEDIUM", comment="LOW | MEDIUM | HIGH | CRITICAL")
    status = db.Column(
        db.String(20), nullable=False, default="TRIAGE",
        comment="TRIAGE | IN_PROGRESS | CODE_REVIEW | QA_TESTING | DEPLOYED",
    )
    source = db.Column(db.String(30), nullable=False, default="INTERNAL_QA")
    project_id = db.Column(
        db.String(36), db.ForeignKey("projects.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    reporter_id = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    reporter_email = db.Column(db.String(255), nullable=True)
    screenshots = db.Column(db.JSON, nullable=True)

    # ── GitHub / AI agent linkage ────────────────────────────────────────
    github_issue_number = db.Column(db.Integer, nullable=True)
    github_issue_url = db.Column(db.String(500), nullable=True)
    github_repo_full_name = db.Column(db.String(255), nullable=True)
    agent_pr_status = db.Column(db.String(20), nullable=True)
    agent_pr_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    reporter = db.relationship("User", foreign_keys=[reporter_id], lazy="joined")

    def to_dict(self, include_project: bool = False) -> dict:
        data = {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "priority": self.priority,
            "status": self.status,
            "source": self.source,
            "projectId": self.project_id,
            "reporterId": self.reporter_id,
            "reporterEmail": self.reporter_email,
            "screenshots": self.screenshots,
            "githubIssueNumber": self.github_issue_number,
            "githubIssueUrl": self.github_issue_url,
            "githubRepoFullName": self.github_repo_full_name,
            "agentPrStatus": self.agent_pr_status,
            "agentPrUrl": self.agent_pr_url,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
            "reporter": self.reporter.to_public_dict() if self.reporter else None,
        }
        if include_project and self.project is not None:
            data["project"] = {
                "id": self.project.id,
                "name": self.project.name,
                "slug": self.project.slug,
            }
        return data

    def __repr__(self):
        return f"<Bug {self.id} {self.status}>"
