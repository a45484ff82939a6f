"""
GitHub Service — per-project GitHub integration.

OAuth flow:
    1. start_oauth(project_id, user)  -> authorize URL, state = signed JWT
    2. GitHub redirects to /api/github/callback?code&state
    3. complete_oauth(code, state)    -> token exchanged, encrypted, stored

The access token is stored Fernet-encrypted (utils.crypto) and only ever
decrypted right before a gateway call. Label sync after connecting a repo runs
through notifier.dispatch, off the request thread.
"""

import logging

import jwt as pyjwt
from cryptography.fernet import InvalidToken
from flask import current_app

from bugfixer.core.exceptions import (
    ConflictError,
    ExternalServiceError,
    NotFoundError,
    ValidationError,
)
from bugfixer.integrations.github_gateway import GitHubGateway, GitHubGatewayError
from bugfixer.models import db
from bugfixer.models.integrations import GitHubIntegration, GitHubRepo
from bugfixer.services import authorization, notifier
from bugfixer.services.jwt_service import decode_oauth_state, generate_oauth_state
from bugfixer.services.project_service import get_project_or_404
from bugfixer.utils.crypto import decrypt_secret, encrypt_secret

logger = logging.getLogger(__name__)

GATEWAY_KEY = "github_gateway"


def get_gateway() -> GitHubGateway:
    return current_app.extensions[GATEWAY_KEY]


def _managed_project(project_id: str, user_id: str):
    project = get_project_or_404(project_id)
    authorization.require_action(user_id, project, "github.manage")
    return project


def _integration_or_400(project_id: str) -> GitHubIntegration:
    integration = GitHubIntegration.query.filter_by(project_id=project_id).first()
    if integration is None:
        raise ConflictError("GitHub is not connected for this project")
    return integration


def _access_token(integration: GitHubIntegration) -> str:
    try:
        return decrypt_secret(integration.github_access_token)
    except InvalidToken:
        # Stored under a previous ENCRYPTION_KEY
        logger.warning("GitHub token for project %s cannot be decrypted", integration.project_id)
        raise ConflictError("GitHub connection is no longer valid, reconnect GitHub")


# ═══════════════════════════════════════════════════════════════
# OAuth
# ═══════════════════════════════════════════════════════════════
def start_oauth(project_id: str, user_id: str) -> str:
    project = _managed_project(project_id, user_id)
    state = generate_oauth_state(project.id, user_id)
    return get_gateway().build_oauth_url(state)


def complete_oauth(code: str | None, state: str | None) -> str:
    """Finish the OAuth dance; returns the connected project id.

    Raises:
        ValidationError: missing or invalid/expired state.
        ExternalServiceError: GitHub rejected the code or is unreachable.
    """
    if not code or not state:
        raise ValidationError("Missing code or state parameter")
    try:
        claims = decode_oauth_state(state)
    except pyjwt.InvalidTokenError:
        raise ValidationError("Invalid state parameter")

    project = get_project_or_404(claims["projectId"])
    user_id = claims["userId"]
    # Permissions may have changed while the user was on github.com
    authorization.require_action(user_id, project, "github.manage")

    gateway = get_gateway()
    try:
        access_token = gateway.exchange_code(code)
        gh_user = gateway.get_user(access_token)
    except GitHubGatewayError as exc:
        logger.warning("GitHub OAuth failed: %s", exc, extra={"project_id": project.id})
        raise ExternalServiceError(f"GitHub OAuth failed: {exc}")

    integration = project.github_integration
    if integration is None:
        integration = GitHubIntegration(project_id=project.id)
        db.session.add(integration)
    integration.github_access_token = encrypt_secret(access_token)
    integration.github_user_id = str(gh_user["id"])
    integration.github_username = gh_user["login"]
    integration.connected_by = user_id
    db.session.commit()

    logger.info("GitHub integration connected (%s)", gh_user["login"],
                extra={"project_id": project.id, "user_id": user_id})
    return project.id


# ═══════════════════════════════════════════════════════════════
# Integration
# ═══════════════════════════════════════════════════════════════
def get_status(project_id: str, user_id: str) -> dict:
    project = get_project_or_404(project_id)
    authorization.require_member_or_owner(user_id, project)
    integration = project.github_integration
    if integration is None:
        return {"connected": False, "integration": None}
    return {"connected": True, "integration": integration.to_dict()}


def disconnect(project_id: str, user_id: str) -> None:
    project = _managed_project(project_id, user_id)
    integration = project.github_integration
    if integration is None:
        raise NotFoundError("GitHub integration", message="No GitHub integration found")
    db.session.delete(integration)
    db.session.commit()
    logger.info("GitHub integration disconnected", extra={"project_id": project.id, "user_id": user_id})


# ═══════════════════════════════════════════════════════════════
# Repositories
# ═══════════════════════════════════════════════════════════════
def list_remote_repos(project_id: str, user_id: str, page: int = 1) -> dict:
    project = _managed_project(project_id, user_id)
    integration = _integration_or_400(project.id)
    try:
        return get_gateway().list_repos(_access_token(integration), page=page)
    except GitHubGatewayError as exc:
        raise ExternalServiceError(f"Could not list GitHub repositories: {exc}")


def connect_repo(project_id: str, user_id: str, fields: dict) -> GitHubRepo:
    project = _managed_project(project_id, user_id)
    integration = _integration_or_400(project.id)
    access_token = _access_token(integration)

    is_default = fields.get("is_default", False)
    if is_default:
        GitHubRepo.query.filter_by(integration_id=integration.id).update(
            {GitHubRepo.is_default: False}, synchronize_session=False,
        )

    repo = GitHubRepo(
        integration_id=integration.id,
        repo_owner=fields["repo_owner"],
        repo_name=fields["repo_name"],
        repo_full_name=fields["repo_full_name"],
        is_default=is_default,
        auto_create_issues=fields.get("auto_create_issues", True),
        label_sync=fields.get("label_sync", False),
    )
    db.session.add(repo)
    db.session.commit()
    db.session.expire(integration, ["repos"])

    if repo.label_sync:
        notifier.dispatch(
            _sync_repo_labels,
            access_token=access_token,
            owner=repo.repo_owner,
            name=repo.repo_name,
            project_id=project.id,
        )
    return repo


def _sync_repo_labels(*, access_token, owner, name, project_id):
    try:
        get_gateway().sync_labels(access_token, owner, name)
    except GitHubGatewayError as exc:
        logger.warning("Failed to sync labels for %s/%s: %s", owner, name, exc,
                       extra={"project_id": project_id})


def disconnect_repo(project_id: str, user_id: str, repo_id: str) -> None:
    project = _managed_project(project_id, user_id)
    integration = _integration_or_400(project.id)
    repo = GitHubRepo.query.filter_by(id=repo_id, integration_id=integration.id).first()
    if repo is None:
        raise NotFoundError("Repo", repo_id)
    db.session.delete(repo)
    db.session.commit()
