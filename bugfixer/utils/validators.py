"""
Request body validation.

One ``validate_*`` function per endpoint body. Each returns a dict of cleaned
fields (only keys present in the input are returned for partial updates) or
raises ``ValidationError`` carrying every field failure at once:

    {"error": "Validation failed",
     "details": [{"field": "title", "message": "Title must be at least 3 characters"}]}
"""

import uuid
from urllib.parse import urlparse

from email_validator import EmailNotValidError, validate_email

from bugfixer.core.exceptions import ValidationError
from bugfixer.models.bug import BUG_PRIORITIES, BUG_SOURCES, BUG_STATUSES
from bugfixer.models.integrations import AI_PROVIDERS
from bugfixer.models.project import MEMBER_ROLES, ROLE_ALIASES

_MISSING = object()


class _Checker:
    """Collects field errors while reading a JSON body."""

    def __init__(self, data):
        if not isinstance(data, dict):
            raise ValidationError(details=[{"field": "body", "message": "Expected a JSON object"}])
        self.data = data
        self.errors: list[dict] = []
        self.out: dict = {}

    def fail(self, field: str, message: str) -> None:
        self.errors.append({"field": field, "message": message})

    def get(self, field: str, required: bool = False):
        value = self.data.get(field, _MISSING)
        if value is _MISSING and required:
            self.fail(field, "Required")
        return value

    def string(self, field, *, required=False, min_len=0, max_len=None,
               nullable=False, min_msg=None, key=None):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.out[key or field] = None
            return
        if not isinstance(value, str):
            self.fail(field, "Expected string")
            return
        value = value.strip()
        if len(value) < min_len:
            self.fail(field, min_msg or f"Must be at least {min_len} characters")
            return
        if max_len is not None and len(value) > max_len:
            self.fail(field, f"Must be at most {max_len} characters")
            return
        self.out[key or field] = value

    def boolean(self, field, *, key=None):
        value = self.get(field)
        if value is _MISSING:
            return
        if not isinstance(value, bool):
            self.fail(field, "Expected boolean")
            return
        self.out[key or field] = value

    def choice(self, field, choices, *, required=False, aliases=None, key=None):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if isinstance(value, str) and aliases and value in aliases:
            value = aliases[value]
        if value not in choices:
            self.fail(field, f"Must be one of: {', '.join(choices)}")
            return
        self.out[key or field] = value

    def email(self, field, *, required=False, nullable=False, key=None):
        value = self.get(field, required)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.out[key or field] = None
            return
        normalized = normalize_email(value)
        if normalized is None:
            self.fail(field, "Invalid email address")
            return
        self.out[key or field] = normalized

    def url(self, field, *, nullable=False, key=None):
        value = self.get(field)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.out[key or field] = None
            return
        if not is_url(value):
            self.fail(field, "Invalid URL")
            return
        self.out[key or field] = value

    def url_list(self, field, *, nullable=False, key=None):
        value = self.get(field)
        if value is _MISSING:
            return
        if value is None and nullable:
            self.out[key or field] = None
            return
        if not isinstance(value, list) or not all(is_url(v) for v in value):
            self.fail(field, "Expected a list of URLs")
            return
        self.out[key or field] = list(value)

    def uuid(self, field, *, required=False, key=None):
        value = self.get(field, required)
        if value is _MISSING:
            return
        try:
            uuid.UUID(str(value))
        except ValueError:
            self.fail(field, "Invalid UUID")
            return
        self.out[key or field] = str(value)

    def done(self) -> dict:
        if self.errors:
            raise ValidationError(details=self.errors)
        return self.out


# ── Helpers ──────────────────────────────────────────────────────────────


def normalize_email(value) -> str | None:
    """Return the lower-cased address, or None when it is not an email."""
    if not isinstance(value, str):
        return None
    try:
        valid = validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return None
    return valid.normalized.lower()


def is_url(value) -> bool:
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme and parsed.netloc)


# ── Auth ─────────────────────────────────────────────────────────────────


def validate_signup(data) -> dict:
    c = _Checker(data)
    c.email("email", required=True)
    c.string("password", required=True, min_len=6, min_msg="Password must be at least 6 characters")
    c.string("name", required=True, min_len=2, min_msg="Name must be at least 2 characters")
    return c.done()


def validate_login(data) -> dict:
    c = _Checker(data)
    c.email("email", required=True)
    c.string("password", required=True, min_len=1, min_msg="Password is required")
    return c.done()


def validate_profile_update(data) -> dict:
    c = _Checker(data)
    c.string("name", min_len=2, min_msg="Name must be at least 2 characters")
    c.url("avatarUrl", nullable=True, key="avatar_url")
    return c.done()


# ── Projects ─────────────────────────────────────────────────────────────


def validate_project_create(data) -> dict:
    c = _Checker(data)
    c.string("name", required=True, min_len=2, max_len=100,
             min_msg="Name must be at least 2 characters")
    c.string("description", max_len=500)
    c.boolean("isPublic", key="is_public")
    out = c.done()
    out.setdefault("is_public", False)
    return out


def validate_project_update(data) -> dict:
    c = _Checker(data)
    c.string("name", min_len=2, max_len=100)
    c.string("description", max_len=500, nullable=True)
    c.boolean("isPublic", key="is_public")
    return c.done()


# ── Bugs ─────────────────────────────────────────────────────────────────


def validate_bug_create(data) -> dict:
    c = _Checker(data)
    c.string("title", required=True, min_len=3, max_len=500,
             min_msg="Title must be at least 3 characters")
    c.string("description", max_len=5000)
    c.choice("priority", BUG_PRIORITIES)
    c.uuid("projectId", required=True, key="project_id")
    c.choice("source", BUG_SOURCES)
    c.email("reporterEmail", nullable=True, key="reporter_email")
    c.url_list("screenshots", nullable=True)
    return c.done()


def validate_bug_update(data) -> dict:
    c = _Checker(data)
    c.string("title", min_len=3, max_len=500)
    c.string("description", max_len=5000, nullable=True)
    c.choice("priority", BUG_PRIORITIES)
    c.choice("source", BUG_SOURCES)
    c.email("reporterEmail", nullable=True, key="reporter_email")
    c.url_list("screenshots", nullable=True)
    return c.done()


def validate_bug_status(data) -> dict:
    c = _Checker(data)
    c.choice("status", BUG_STATUSES, required=True)
    return c.done()


def validate_widget_bug(data) -> dict:
    c = _Checker(data)
    c.string("title", required=True, min_len=3, max_len=500,
             min_msg="Title must be at least 3 characters")
    c.string("description", max_len=5000)
    c.choice("priority", BUG_PRIORITIES)
    c.choice("source", BUG_SOURCES)
    c.email("reporterEmail", nullable=True, key="reporter_email")
    c.url_list("screenshots", nullable=True)
    return c.done()


# ── Members & access requests ────────────────────────────────────────────


def validate_add_member(data) -> dict:
    c = _Checker(data)
    c.email("email", required=True)
    c.choice("role", MEMBER_ROLES, aliases=ROLE_ALIASES)
    out = c.done()
    out.setdefault("role", "MEMBER")
    return out


def validate_member_role(data) -> dict:
    c = _Checker(data)
    c.choice("role", MEMBER_ROLES, required=True, aliases=ROLE_ALIASES)
    return c.done()


def validate_access_request(data) -> dict:
    c = _Checker(data)
    c.string("message", max_len=500)
    return c.done()


# ── Widget settings ──────────────────────────────────────────────────────


def bare_origin(value: str) -> str | None:
    """``scheme://host[:port]`` for an http(s) origin, or None when the
    value carries a path, query or fragment."""
    parsed = urlparse(value.strip())
    if parsed.scheme not in ("http", "https") or not parsed.netloc:
        return None
    if parsed.path not in ("", "/") or parsed.params or parsed.query or parsed.fragment:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def validate_widget_settings(data) -> dict:
    c = _Checker(data)
    origins = c.get("allowedOrigins")
    if origins is not _MISSING:
        if not isinstance(origins, list) or not all(isinstance(o, str) for o in origins):
            c.fail("allowedOrigins", "Expected a list of origins")
        else:
            cleaned = []
            for entry in (o.strip() for o in origins):
                if not entry:
                    continue
                origin = "*" if entry == "*" else bare_origin(entry)
                if origin is None:
                    c.fail("allowedOrigins", f"Not an origin (scheme://host[:port]): {entry}")
                elif origin not in cleaned:
                    cleaned.append(origin)
            c.out["allowed_origins"] = cleaned
    c.boolean("enabled")
    return c.done()


# ── Integrations ─────────────────────────────────────────────────────────


def validate_connect_repo(data) -> dict:
    c = _Checker(data)
    c.string("repoOwner", required=True, min_len=1, key="repo_owner")
    c.string("repoName", required=True, min_len=1, key="repo_name")
    c.string("repoFullName", required=True, min_len=1, key="repo_full_name")
    c.boolean("isDefault", key="is_default")
    c.boolean("autoCreateIssues", key="auto_create_issues")
    c.boolean("labelSync", key="label_sync")
    return c.done()


def validate_agent_config(data) -> dict:
    c = _Checker(data)
    c.boolean("enabled")
    c.choice("aiProvider", AI_PROVIDERS, key="ai_provider")
    c.string("aiModel", min_len=1, max_len=100, key="ai_model")
    c.string("systemPrompt", max_len=10000, nullable=True, key="system_prompt")
    c.boolean("autoAssign", key="auto_assign")
    c.string("targetBranch", min_len=1, max_len=255, key="target_branch")
    c.string("prBranchPrefix", min_len=1, max_len=100, key="pr_branch_prefix")
    return c.done()


# ── Uploads ──────────────────────────────────────────────────────────────


def validate_upload_form(data) -> dict:
    """Multipart form fields; blank values count as absent."""
    c = _Checker({k: v for k, v in (data or {}).items() if v not in ("", None)})
    c.uuid("projectId", required=True, key="project_id")
    c.uuid("bugId", key="bug_id")
    return c.done()


def validate_image_delete(data) -> dict:
    c = _Checker(data)
    if c.get("url") is _MISSING:
        c.fail("url", "Image URL is required")
    else:
        c.url("url")
    return c.done()
