"""
GitHub Gateway — every outbound call to github.com goes through this class.

  - OAuth web flow: authorize URL + code -> access token exchange
  - REST v3: authenticated user, repository listing, label sync
  - Timeout on every request (OUTBOUND_HTTP_TIMEOUT, default 10 s)

Failures surface as GitHubGatewayError; services decide whether that fails
the request (OAuth callback, repo listing) or is only logged (label sync).

Testability: pass a stub ``session`` to GitHubGateway() in tests instead of
letting it create a real requests.Session.
"""

import logging
from urllib.parse import urlencode

import requests

logger = logging.getLogger(__name__)

OAUTH_AUTHORIZE_URL = "https://github.com/login/oauth/authorize"
OAUTH_TOKEN_URL = "https://github.com/login/oauth/access_token"
API_BASE_URL = "https://api.github.com"
OAUTH_SCOPE = "repo"

_DEFAULT_TIMEOUT = 10
REPOS_PER_PAGE = 30

BUGFIXER_LABELS = [
    {"name": "bugfixer:critical", "color": "B60205", "description": "Critical priority - BugFixer"},
    {"name": "bugfixer:high", "color": "D93F0B", "description": "High priority - BugFixer"},
    {"name": "bugfixer:medium", "color": "FBCA04", "description": "Medium priority - BugFixer"},
    {"name": "bugfixer:low", "color": "0E8A16", "description": "Low priority - BugFixer"},
    {"name": "bugfixer", "color": "6f42c1", "description": "Synced from BugFixer"},
]


class GitHubGatewayError(Exception):
    """Raised when GitHub answers with an error or cannot be reached."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GitHubGateway:
    """GitHub OAuth + REST client.

    Args:
        client_id / client_secret / callback_url: OAuth app credentials.
        session: Optional requests.Session (inject a stub in tests).
        timeout: Seconds per request.
    """

    def __init__(self, client_id: str = "", client_secret: str = "", callback_url: str = "",
                 session: requests.Session | None = None, timeout: float = _DEFAULT_TIMEOUT) -> None:
        self.client_id = client_id
        self.client_secret = client_secret
        self.callback_url = callback_url
        self.timeout = timeout
        self._session: requests.Session | None = session

    @classmethod
    def from_config(cls, config, session: requests.Session | None = None) -> "GitHubGateway":
        return cls(
            client_id=config.get("GITHUB_CLIENT_ID", ""),
            client_secret=config.get("GITHUB_CLIENT_SECRET", ""),
            callback_url=config.get("GITHUB_CALLBACK_URL", ""),
            session=session,
            timeout=config.get("OUTBOUND_HTTP_TIMEOUT", _DEFAULT_TIMEOUT),
        )

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    # ── Transport ────────────────────────────────────────────────────────

    def _request(self, method: str, url: str, *, token: str | None = None, **kwargs) -> requests.Response:
        headers = {"Accept": "application/vnd.github+json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        headers.update(kwargs.pop("headers", {}))
        try:
            return self.session.request(method, url, headers=headers, timeout=self.timeout, **kwargs)
        except requests.RequestException as exc:
            logger.warning("GitHub %s %s failed: %s", method, url, exc)
            raise GitHubGatewayError(f"GitHub request failed: {exc}") from exc

    def _json(self, resp: requests.Response):
        if resp.status_code >= 400:
            raise GitHubGatewayError(f"GitHub API error {resp.status_code}", resp.status_code)
        try:
            return resp.json()
        except ValueError as exc:
            raise GitHubGatewayError("GitHub returned a non-JSON response", resp.status_code) from exc

    # ── OAuth ────────────────────────────────────────────────────────────

    def build_oauth_url(self, state: str) -> str:
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.callback_url,
            "scope": OAUTH_SCOPE,
            "state": state,
        }
        return f"{OAUTH_AUTHORIZE_URL}?{urlencode(params)}"

    def exchange_code(self, code: str) -> str:
        """Trade an OAuth ``code`` for an access token."""
        resp = self._request(
            "POST", OAUTH_TOKEN_URL,
            headers={"Accept": "application/json"},
            json={"client_id": self.client_id, "client_secret": self.client_secret, "code": code},
        )
        data = self._json(resp)
        token = data.get("access_token")
        if data.get("error") or not token:
            raise GitHubGatewayError(
                data.get("error_description") or data.get("error") or "Failed to exchange code for token"
            )
        return token

    # ── REST ─────────────────────────────────────────────────────────────

    def get_user(self, token: str) -> dict:
        """Return {"id", "login"} of the token's owner."""
        data = self._json(self._request("GET", f"{API_BASE_URL}/user", token=token))
        return {"id": data["id"], "login": data["login"]}

    def list_repos(self, token: str, page: int = 1, per_page: int = REPOS_PER_PAGE) -> dict:
        """One page of the user's repositories, most recently updated first."""
        data = self._json(self._request(
            "GET", f"{API_BASE_URL}/user/repos", token=token,
            params={"sort": "updated", "direction": "desc", "per_page": per_page,
                    "page": page, "type": "all"},
        ))
        repos = [
            {
                "id": r["id"],
                "name": r["name"],
                "fullName": r["full_name"],
                "owner": (r.get("owner") or {}).get("login", ""),
                "private": r.get("private", False),
                "defaultBranch": r.get("default_branch"),
                "description": r.get("description"),
            }
            for r in data
        ]
        return {"repos": repos, "hasMore": len(data) == per_page}

    def sync_labels(self, token: str, owner: str, repo: str) -> int:
        """Create the BugFixer labels, updating any that already exist (422).

        Returns the number of labels created or updated.
        """
        base = f"{API_BASE_URL}/repos/{owner}/{repo}/labels"
        synced = 0
        for label in BUGFIXER_LABELS:
            resp = self._request("POST", base, token=token, json=label)
            if resp.status_code == 422:
                resp = self._request(
                    "PATCH", f"{base}/{label['name']}", token=token,
                    json={"color": label["color"], "description": label["description"]},
                )
            if resp.status_code < 400:
                synced += 1
            else:
                logger.warning("Label %s not synced to %s/%s (HTTP %s)",
                               label["name"], owner, repo, resp.status_code)
        return synced
