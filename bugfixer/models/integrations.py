"""GitHub integration and AI agent configuration models."""

from bugfixer.models import db, iso, new_uuid, utcnow

AI_PROVIDERS = ("OPENAI", "ANTHROPIC", "GEMINI")

AGENT_CONFIG_DEFAULTS = {
    "enabled": False,
    "ai_provider": "OPENAI",
    "ai_model": "gpt-4o-mini",
    "system_prompt": None,
    "auto_assign": True,
    "target_branch": "main",
    "pr_branch_prefix": "bugfix/",
}


class GitHubIntegration(db.Model):
    """OAuth-linked GitHub account for a project.

    ``github_access_token`` holds Fernet ciphertext, never the raw token.
    """

    __tablename__ = "github_integrations"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    github_access_token = db.Column(db.Text, nullable=False)
    github_user_id = db.Column(db.String(50), nullable=False)
    github_username = db.Column(db.String(255), nullable=False)
    connected_by = db.Column(
        db.String(36), db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True,
    )
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    repos = db.relationship(
        "GitHubRepo", backref="integration",
        cascade="all, delete-orphan",
        order_by="GitHubRepo.created_at",
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "githubUsername": self.github_username,
            "connectedAt": iso(self.created_at),
            "repos": [r.to_dict() for r in self.repos],
        }


class GitHubRepo(db.Model):
    __tablename__ = "github_repos"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    integration_id = db.Column(
        db.String(36),
        db.ForeignKey("github_integrations.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    repo_owner = db.Column(db.String(255), nullable=False)
    repo_name = db.Column(db.String(255), nullable=False)
    repo_full_name = db.Column(db.String(511), nullable=False)
    is_default = db.Column(db.Boolean, nullable=False, default=False)
    auto_create_issues = db.Column(db.Boolean, nullable=False, default=True)
    label_sync = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "integrationId": self.integration_id,
            "repoOwner": self.repo_owner,
            "repoName": self.repo_name,
            "repoFullName": self.repo_full_name,
            "isDefault": self.is_default,
            "autoCreateIssues": self.auto_create_issues,
            "labelSync": self.label_sync,
            "createdAt": iso(self.created_at),
        }


class AgentConfig(db.Model):
    """Per-project settings for the automated bug-fix agent."""

    __tablename__ = "agent_configs"

    id = db.Column(db.String(36), primary_key=True, default=new_uuid)
    project_id = db.Column(
        db.String(36),
        db.ForeignKey("projects.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    enabled = db.Column(db.Boolean, nullable=False, default=False)
    ai_provider = db.Column(db.String(20), nullable=False, default="OPENAI", comment="OPENAI | ANTHROPIC | GEMINI")
    ai_model = db.Column(db.String(100), nullable=False, default="gpt-4o-mini")
    system_prompt = db.Column(db.Text, nullable=True)
    auto_assign = db.Column(db.Boolean, nullable=False, default=True)
    target_branch = db.Column(db.String(255), nullable=False, default="main")
    pr_branch_prefix = db.Column(db.String(100), nullable=False, default="bugfix/")
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(
        db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow,
    )

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "projectId": self.project_id,
            "enabled": self.enabled,
            "aiProvider": self.ai_provider,
            "aiModel": self.ai_model,
            "systemPrompt": self.system_prompt,
            "autoAssign": self.auto_assign,
            "targetBranch": self.target_branch,
            "prBranchPrefix": self.pr_branch_prefix,
            "createdAt": iso(self.created_at),
            "updatedAt": iso(self.updated_at),
        }

    @staticmethod
    def defaults_dict(project_id: str) -> dict:
        """Payload returned when a project has no stored config yet."""
        d = AGENT_CONFIG_DEFAULTS
        return {
            "projectId": project_id,
            "enabled": d["enabled"],
            "aiProvider": d["ai_provider"],
            "aiModel": d["ai_model"],
            "systemPrompt": d["system_prompt"],
            "autoAssign": d["auto_assign"],
            "targetBranch": d["target_branch"],
            "prBranchPrefix": d["pr_branch_prefix"],
        }
