"""
GitHub integration tests — OAuth round trip against a stubbed HTTP session,
encrypted token storage, repo listing/connection and label sync.
"""

import threading
from urllib.parse import parse_qs, urlparse

import pytest
import requests

from bugfixer.integrations.github_gateway import (
    API_BASE_URL,
    BUGFIXER_LABELS,
    OAUTH_TOKEN_URL,
    GitHubGateway,
    GitHubGatewayError,
)
from bugfixer.models.integrations import GitHubIntegration, GitHubRepo
from bugfixer.utils.crypto import decrypt_secret

ACCESS_TOKEN = "gho_test_token"


def _stub_oauth(github, login="octocat"):
    github.add("POST", OAUTH_TOKEN_URL, payload={"access_token": ACCESS_TOKEN, "token_type": "bearer"})
    github.add("GET", f"{API_BASE_URL}/user", payload={"id": 583231, "login": login})


def _state_for(c, project_id):
    res = c.get(f"/api/github/auth/{project_id}")
    assert res.status_code == 200, res.get_json()
    return parse_qs(urlparse(res.get_json()["url"]).query)["state"][0]


@pytest.fixture()
def connected(owner, project, github, client):
    """Run the OAuth callback so ``project`` has an integration."""
    c, _ = owner
    _stub_oauth(github)
    state = _state_for(c, project["id"])
    res = client.get(f"/api/github/callback?code=abc&state={state}")
    assert res.status_code == 302
    return project


class TestOAuth:
    def test_authorize_url(self, owner, project):
        c, _ = owner
        url = urlparse(c.get(f"/api/github/auth/{project['id']}").get_json()["url"])
        params = parse_qs(url.query)
        assert f"{url.scheme}://{url.netloc}{url.path}" == "https://github.com/login/oauth/authorize"
        assert params["client_id"] == ["test-client-id"]
        assert params["redirect_uri"] == ["http://localhost:7070/api/github/callback"]
        assert params["scope"] == ["repo"]

    def test_member_cannot_start(self, owner, project, member_of):
        c, _ = owner
        mc, _ = member_of(c, project["id"], "mia@acme.io")
        res = mc.get(f"/api/github/auth/{project['id']}")
        assert res.status_code == 403

    def test_callback_stores_encrypted_token(self, owner, project, github, client):
        c, olivia = owner
        _stub_oauth(github)
        state = _state_for(c, project["id"])
        res = client.get(f"/api/github/callback?code=abc&state={state}")
        assert res.status_code == 302
        assert res.headers["Location"] == (
            f"http://localhost:5173/projects/{project['id']}?tab=github&connected=true"
        )

        integration = GitHubIntegration.query.filter_by(project_id=project["id"]).one()
        assert integration.github_username == "octocat"
        assert integration.github_user_id == "583231"
        assert integration.connected_by == olivia["id"]
        assert integration.github_access_token != ACCESS_TOKEN
        assert decrypt_secret(integration.github_access_token) == ACCESS_TOKEN

        token_call = github.calls[0]
        assert token_call["json"] == {"client_id": "test-client-id",
                                      "client_secret": "test-client-secret", "code": "abc"}

    def test_callback_reconnect_replaces_account(self, owner, connected, github, client):
        c, _ = owner
        _stub_oauth(github, login="hubot")
        state = _state_for(c, connected["id"])
        client.get(f"/api/github/callback?code=xyz&state={state}")
        rows = GitHubIntegration.query.filter_by(project_id=connected["id"]).all()
        assert [r.github_username for r in rows] == ["hubot"]

    def test_callback_missing_params(self, client):
        res = client.get("/api/github/callback?code=abc")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Missing code or state parameter"

    def test_callback_forged_state(self, project, client):
        res = client.get("/api/github/callback?code=abc&state=eyJhbGciOiJub25lIn0.e30.")
        assert res.status_code == 400
        assert res.get_json()["error"] == "Invalid state parameter"

    def test_callback_github_rejects_code(self, owner, project, github, client):
        c, _ = owner
        github.add("POST", OAUTH_TOKEN_URL, payload={
            "error": "bad_verification_code",
            "error_description": "The code passed is incorrect or expired.",
        })
        state = _state_for(c, project["id"])
        res = client.get(f"/api/github/callback?code=stale&state={state}")
        assert res.status_code == 502
        assert "incorrect or expired" in res.get_json()["error"]
        assert GitHubIntegration.query.count() == 0


class TestStatus:
    def test_not_connected(self, owner, project):
        c, _ = owner
        assert c.get(f"/api/github/status/{project['id']}").get_json() == {
            "connected": False, "integration": None,
        }

    def test_connected_visible_to_members(self, owner, connected, member_of):
        c, _ = owner
        vc, _ = member_of(c, connected["id"], "vic@acme.io", "VIEWER")
        data = vc.get(f"/api/github/status/{connected['id']}").get_json()
        assert data["connected"] is True
        assert data["integration"]["githubUsername"] == "octocat"
        assert "githubAccessToken" not in data["integration"]

    def test_public_visibility_is_not_enough(self, owner, register):
        c, _ = owner
        public = c.post("/api/projects", json={"name": "Open", "isPublic": True}).get_json()["project"]
        oc, _ = register("oscar@acme.io")
        res = oc.get(f"/api/github/status/{public['id']}")
        assert res.status_code == 403

    def test_disconnect(self, owner, connected):
        c, _ = owner
        res = c.delete(f"/api/github/{connected['id']}")
        assert res.status_code == 200
        assert res.get_json()["message"] == "GitHub integration disconnected"
        again = c.delete(f"/api/github/{connected['id']}")
        assert again.status_code == 404
        assert again.get_json()["error"] == "No GitHub integration found"


class TestRepos:
    def test_list_remote_repos(self, owner, connected, github):
        c, _ = owner
        github.add("GET", f"{API_BASE_URL}/user/repos", payload=[
            {"id": 1, "name": "shop", "full_name": "acme/shop", "owner": {"login": "acme"},
             "private": True, "default_branch": "main", "description": "Storefront"},
        ])
        res = c.get(f"/api/github/repos/{connected['id']}?page=2")
        assert res.status_code == 200
        data = res.get_json()
        assert data["hasMore"] is False
        assert data["repos"][0] == {
            "id": 1, "name": "shop", "fullName": "acme/shop", "owner": "acme",
            "private": True, "defaultBranch": "main", "description": "Storefront",
        }
        call = github.calls[-1]
        assert call["params"]["page"] == 2
        assert call["headers"]["Authorization"] == f"Bearer {ACCESS_TOKEN}"

    def test_list_requires_connection(self, owner, project):
        c, _ = owner
        res = c.get(f"/api/github/repos/{project['id']}")
        assert res.status_code == 400
        assert res.get_json()["error"] == "GitHub is not connected for this project"

    def test_list_github_failure(self, owner, connected, github):
        c, _ = owner
        github.add("GET", f"{API_BASE_URL}/user/repos", status_code=401, payload={"message": "Bad credentials"})
        assert c.get(f"/api/github/repos/{connected['id']}").status_code == 502

    def test_connect_and_default_is_unique(self, owner, connected):
        c, _ = owner
        url = f"/api/github/repos/{connected['id']}"
        first = c.post(url, json={"repoOwner": "acme", "repoName": "shop",
                                  "repoFullName": "acme/shop", "isDefault": True})
        assert first.status_code == 201
        repo = first.get_json()["repo"]
        assert repo["isDefault"] is True
        assert repo["autoCreateIssues"] is True
        assert repo["labelSync"] is False

        c.post(url, json={"repoOwner": "acme", "repoName": "api",
                          "repoFullName": "acme/api", "isDefault": True})
        repos = c.get(f"/api/github/status/{connected['id']}").get_json()["integration"]["repos"]
        assert [(r["repoFullName"], r["isDefault"]) for r in repos] == [
            ("acme/shop", False), ("acme/api", True),
        ]

    def test_label_sync_updates_existing(self, owner, connected, github):
        c, _ = owner
        labels_url = f"{API_BASE_URL}/repos/acme/shop/labels"
        github.add("POST", labels_url, status_code=422, payload={"message": "already_exists"})
        for label in BUGFIXER_LABELS:
            github.add("PATCH", f"{labels_url}/{label['name']}", payload={"name": label["name"]})

        res = c.post(f"/api/github/repos/{connected['id']}", json={
            "repoOwner": "acme", "repoName": "shop", "repoFullName": "acme/shop", "labelSync": True,
        })
        assert res.status_code == 201
        patched = [call["url"] for call in github.calls if call["method"] == "PATCH"]
        assert len(patched) == len(BUGFIXER_LABELS)

    def test_label_sync_failure_does_not_fail_request(self, owner, connected, github):
        c, _ = owner
        res = c.post(f"/api/github/repos/{connected['id']}", json={
            "repoOwner": "acme", "repoName": "gone", "repoFullName": "acme/gone", "labelSync": True,
        })
        assert res.status_code == 201

    def test_label_sync_runs_in_background(self, app, owner, connected, github):
        c, _ = owner
        github.add("POST", f"{API_BASE_URL}/repos/acme/shop/labels", status_code=201, payload={})
        threads = []
        passthrough = github.request

        def recording_request(method, url, **kwargs):
            if "/labels" in url:
                threads.append(threading.current_thread().name)
            return passthrough(method, url, **kwargs)

        github.request = recording_request
        app.config["NOTIFICATIONS_ASYNC"] = True
        try:
            res = c.post(f"/api/github/repos/{connected['id']}", json={
                "repoOwner": "acme", "repoName": "shop", "repoFullName": "acme/shop", "labelSync": True,
            })
            for t in threading.enumerate():
                if t.name == "notify-_sync_repo_labels":
                    t.join(timeout=5)
        finally:
            app.config["NOTIFICATIONS_ASYNC"] = False

        assert res.status_code == 201
        assert len(threads) == len(BUGFIXER_LABELS)
        assert set(threads) == {"notify-_sync_repo_labels"}

    def test_undecryptable_token_rejected_before_write(self, app, owner, connected, github):
        c, _ = owner
        original_key = app.config["ENCRYPTION_KEY"]
        app.config["ENCRYPTION_KEY"] = "rotated-key"
        try:
            res = c.post(f"/api/github/repos/{connected['id']}", json={
                "repoOwner": "acme", "repoName": "shop", "repoFullName": "acme/shop", "labelSync": True,
            })
            listing = c.get(f"/api/github/repos/{connected['id']}")
        finally:
            app.config["ENCRYPTION_KEY"] = original_key

        assert res.status_code == 400
        assert res.get_json()["error"] == "GitHub connection is no longer valid, reconnect GitHub"
        assert listing.status_code == 400
        assert GitHubRepo.query.count() == 0
        assert not [call for call in github.calls if "/labels" in call["url"]]

    def test_disconnect_repo(self, owner, connected):
        c, _ = owner
        repo = c.post(f"/api/github/repos/{connected['id']}", json={
            "repoOwner": "acme", "repoName": "shop", "repoFullName": "acme/shop",
        }).get_json()["repo"]
        res = c.delete(f"/api/github/repos/{connected['id']}/{repo['id']}")
        assert res.get_json()["message"] == "Repo disconnected"
        again = c.delete(f"/api/github/repos/{connected['id']}/{repo['id']}")
        assert again.status_code == 404
        assert again.get_json()["error"] == "Repo not found"

    def test_connect_validation(self, owner, connected):
        c, _ = owner
        res = c.post(f"/api/github/repos/{connected['id']}", json={"repoOwner": "acme"})
        assert res.status_code == 400
        fields = {d["field"] for d in res.get_json()["details"]}
        assert fields == {"repoName", "repoFullName"}


class TestGateway:
    def test_network_error_is_wrapped(self):
        class Boom:
            def request(self, *args, **kwargs):
                raise requests.ConnectionError("connection refused")

        gateway = GitHubGateway(session=Boom())
        with pytest.raises(GitHubGatewayError) as exc:
            gateway.get_user("t")
        assert "connection refused" in str(exc.value)

    def test_has_more_on_full_page(self, github):
        github.add("GET", f"{API_BASE_URL}/user/repos", payload=[
            {"id": i, "name": f"r{i}", "full_name": f"acme/r{i}"} for i in range(3)
        ])
        gateway = GitHubGateway(session=github)
        assert gateway.list_repos("t", per_page=3)["hasMore"] is True
