"""initial_schema

Creates the BugFixer core tables:
  - users, projects, project_members, access_requests, invitations
  - bugs
  - widget_tokens
  - github_integrations, github_repos, agent_configs

Tables are created conditionally (IF NOT EXISTS semantics) so the revision
can be applied to a database that already received them via db.create_all().

Revision ID: 5f2c9a1e7b04
Revises:
Create Date: 2026-10-18 09:12:40.118204
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy import inspect as sa_inspect


# revision identifiers, used by Alembic.
revision = '5f2c9a1e7b04'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
    ]


def upgrade():
    bind = op.get_bind()
    existing = set(sa_inspect(bind).get_table_names())

    # ── Users ─────────────────────────────────────────────────────────────
    if "users" not in existing:
        op.create_table(
            "users",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("password_hash", sa.String(length=255), nullable=False),
            sa.Column("name", sa.String(length=255), nullable=False),
            sa.Column("avatar_url", sa.String(length=500), nullable=True),
            *_timestamps(),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_users_email", "users", ["email"], unique=True)

    # ── Projects ──────────────────────────────────────────────────────────
    if "projects" not in existing:
        op.create_table(
            "projects",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("name", sa.String(length=100), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("slug", sa.String(length=150), nullable=False),
            sa.Column("is_public", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("owner_id", sa.String(length=36), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["owner_id"], ["users.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_projects_slug", "projects", ["slug"], unique=True)
        op.create_index("ix_projects_owner_id", "projects", ["owner_id"])

    if "project_members" not in existing:
        op.create_table(
            "project_members",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="MEMBER",
                      comment="VIEWER | MEMBER | ADMIN"),
            sa.Column("invited_by", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id", "user_id", name="uq_project_members_project_user"),
        )
        op.create_index("ix_project_members_project_id", "project_members", ["project_id"])
        op.create_index("ix_project_members_user_id", "project_members", ["user_id"])

    if "access_requests" not in existing:
        op.create_table(
            "access_requests",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("user_id", sa.String(length=36), nullable=False),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING",
                      comment="PENDING | APPROVED | REJECTED"),
            sa.Column("message", sa.Text(), nullable=True),
            sa.Column("reviewed_by", sa.String(length=36), nullable=True),
            sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_access_requests_project_id", "access_requests", ["project_id"])
        op.create_index("ix_access_requests_user_id", "access_requests", ["user_id"])
        # One PENDING request per (project, user); history rows are unrestricted
        op.create_index(
            "uq_access_requests_pending", "access_requests", ["project_id", "user_id"],
            unique=True,
            postgresql_where=sa.text("status = 'PENDING'"),
            sqlite_where=sa.text("status = 'PENDING'"),
        )

    if "invitations" not in existing:
        op.create_table(
            "invitations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("email", sa.String(length=255), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("role", sa.String(length=20), nullable=False, server_default="MEMBER"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="PENDING",
                      comment="PENDING | ACCEPTED | EXPIRED"),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("invited_by", sa.String(length=36), nullable=True),
            sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["invited_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_invitations_token", "invitations", ["token"], unique=True)
        op.create_index("ix_invitations_email", "invitations", ["email"])
        op.create_index("ix_invitations_project_id", "invitations", ["project_id"])

    # ── Bugs ──────────────────────────────────────────────────────────────
    if "bugs" not in existing:
        op.create_table(
            "bugs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("title", sa.String(length=500), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("priority", sa.String(length=20), nullable=False, server_default="MEDIUM",
                      comment="LOW | MEDIUM | HIGH | CRITICAL"),
            sa.Column("status", sa.String(length=20), nullable=False, server_default="TRIAGE",
                      comment="TRIAGE | IN_PROGRESS | CODE_REVIEW | QA_TESTING | DEPLOYED"),
            sa.Column("source", sa.String(length=30), nullable=False, server_default="INTERNAL_QA"),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("reporter_id", sa.String(length=36), nullable=True),
            sa.Column("reporter_email", sa.String(length=255), nullable=True),
            sa.Column("screenshots", sa.JSON(), nullable=True),
            sa.Column("github_issue_number", sa.Integer(), nullable=True),
            sa.Column("github_issue_url", sa.String(length=500), nullable=True),
            sa.Column("github_repo_full_name", sa.String(length=255), nullable=True),
            sa.Column("agent_pr_status", sa.String(length=20), nullable=True),
            sa.Column("agent_pr_url", sa.String(length=500), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["reporter_id"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_bugs_project_id", "bugs", ["project_id"])
        op.create_index("ix_bugs_reporter_id", "bugs", ["reporter_id"])

    # ── Widget ────────────────────────────────────────────────────────────
    if "widget_tokens" not in existing:
        op.create_table(
            "widget_tokens",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("token", sa.String(length=64), nullable=False),
            sa.Column("allowed_origins", sa.JSON(), nullable=False),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.true()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )
        op.create_index("ix_widget_tokens_token", "widget_tokens", ["token"], unique=True)

    # ── GitHub + AI agent ─────────────────────────────────────────────────
    if "github_integrations" not in existing:
        op.create_table(
            "github_integrations",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("github_access_token", sa.Text(), nullable=False),
            sa.Column("github_user_id", sa.String(length=50), nullable=False),
            sa.Column("github_username", sa.String(length=255), nullable=False),
            sa.Column("connected_by", sa.String(length=36), nullable=True),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["connected_by"], ["users.id"], ondelete="SET NULL"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )

    if "github_repos" not in existing:
        op.create_table(
            "github_repos",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("integration_id", sa.String(length=36), nullable=False),
            sa.Column("repo_owner", sa.String(length=255), nullable=False),
            sa.Column("repo_name", sa.String(length=255), nullable=False),
            sa.Column("repo_full_name", sa.String(length=511), nullable=False),
            sa.Column("is_default", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("auto_create_issues", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("label_sync", sa.Boolean(), nullable=False, server_default=sa.false()),
            *_timestamps(),
            sa.ForeignKeyConstraint(["integration_id"], ["github_integrations.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
        )
        op.create_index("ix_github_repos_integration_id", "github_repos", ["integration_id"])

    if "agent_configs" not in existing:
        op.create_table(
            "agent_configs",
            sa.Column("id", sa.String(length=36), nullable=False),
            sa.Column("project_id", sa.String(length=36), nullable=False),
            sa.Column("enabled", sa.Boolean(), nullable=False, server_default=sa.false()),
            sa.Column("ai_provider", sa.String(length=20), nullable=False, server_default="OPENAI",
                      comment="OPENAI | ANTHROPIC | GEMINI"),
            sa.Column("ai_model", sa.String(length=100), nullable=False, server_default="gpt-4o-mini"),
            sa.Column("system_prompt", sa.Text(), nullable=True),
            sa.Column("auto_assign", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("target_branch", sa.String(length=255), nullable=False, server_default="main"),
            sa.Column("pr_branch_prefix", sa.String(length=100), nullable=False, server_default="bugfix/"),
            *_timestamps(),
            sa.ForeignKeyConstraint(["project_id"], ["projects.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("project_id"),
        )


def downgrade():
    for table in (
        "agent_configs",
        "github_repos",
        "github_integrations",
        "widget_tokens",
        "bugs",
        "invitations",
        "access_requests",
        "project_members",
        "projects",
        "users",
    ):
        op.drop_table(table)
