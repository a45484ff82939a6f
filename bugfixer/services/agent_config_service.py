"""Agent config service — per-project AI bug-fix agent settings."""

from bugfixer.models import db
from bugfixer.models.integrations import AGENT_CONFIG_DEFAULTS, AgentConfig
from bugfixer.services import authorization
from bugfixer.services.project_service import get_project_or_404


def get_config(project_id: str, user_id: str) -> dict:
    """Stored config, or the defaults when none was saved yet."""
    project = get_project_or_404(project_id)
    authorization.require_member_or_owner(user_id, project)
    if project.agent_config is None:
        return AgentConfig.defaults_dict(project.id)
    return project.agent_config.to_dict()


def upsert_config(project_id: str, user_id: str, fields: dict) -> dict:
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "agent_config.manage")

    config = project.agent_config
    if config is None:
        config = AgentConfig(project_id=project.id, **AGENT_CONFIG_DEFAULTS)
        db.session.add(config)
    for attr, value in fields.items():
        setattr(config, attr, value)
    db.session.commit()
    return config.to_dict()
