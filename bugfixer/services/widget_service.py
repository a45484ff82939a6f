"""
Widget Service — public bug-report widget.

Two halves:

  Settings (authenticated, ADMIN):  get / generate / update / delete the
                                     project's single WidgetToken.
  Gateway (anonymous, by token):    resolve_by_token -> project config,
                                     create_bug_via_widget -> Bug.

Gateway checks run on every request in this order:
  unknown token  -> NotFoundError  "Invalid widget token"
  disabled       -> ForbiddenError "Widget is disabled for this project"
  origin check   -> ForbiddenError "Origin not allowed"
                    (only when an Origin/Referer is sent and the allowlist
                    is non-empty; "*" in the list allows any origin)
"""

import json
import logging
from urllib.parse import urlparse

from flask import current_app

from bugfixer.core.exceptions import ForbiddenError, NotFoundError
from bugfixer.models import db
from bugfixer.models.bug import Bug
from bugfixer.models.widget import WidgetToken
from bugfixer.services import authorization
from bugfixer.services.cache_service import invalidate_widget_origins
from bugfixer.services.project_service import get_project_by_slug_or_404
from bugfixer.utils.crypto import generate_token

logger = logging.getLogger(__name__)


def origin_of(value: str | None) -> str | None:
    """Reduce an Origin or Referer header to ``scheme://host[:port]``."""
    if not value:
        return None
    parsed = urlparse(value.strip())
    if not parsed.scheme or not parsed.netloc:
        return None
    return f"{parsed.scheme}://{parsed.netloc}".lower()


def load_allowed_origins() -> set[str]:
    """Union of allowed origins across enabled widgets (origin cache loader)."""
    origins: set[str] = set()
    for (allowed,) in db.session.query(WidgetToken.allowed_origins).filter(WidgetToken.enabled.is_(True)):
        origins.update(o.rstrip("/").lower() for o in (allowed or []))
    return origins


# ═══════════════════════════════════════════════════════════════
# Public gateway
# ═══════════════════════════════════════════════════════════════
def resolve_by_token(token: str, origin_header: str | None = None) -> WidgetToken:
    widget = WidgetToken.query.filter_by(token=token).first()
    if widget is None:
        raise NotFoundError("Widget", message="Invalid widget token")
    if not widget.enabled:
        raise ForbiddenError("Widget is disabled for this project")

    allowed = [o.rstrip("/").lower() for o in (widget.allowed_origins or [])]
    if allowed and origin_header and "*" not in allowed:
        if origin_of(origin_header) not in allowed:
            logger.info("Widget origin rejected: %s", origin_header, extra={"project_id": widget.project_id})
            raise ForbiddenError("Origin not allowed")
    return widget


def get_public_config(token: str, origin_header: str | None = None) -> dict:
    project = resolve_by_token(token, origin_header).project
    return {
        "project": {
            "id": project.id,
            "name": project.name,
            "slug": project.slug,
            "description": project.description,
        },
    }


def create_bug_via_widget(token: str, fields: dict, origin_header: str | None = None) -> Bug:
    """Anonymous report: reporter_id NULL, default source CUSTOMER_REPORT."""
    widget = resolve_by_token(token, origin_header)
    bug = Bug(
        title=fields["title"],
        description=fields.get("description") or None,
        priority=fields.get("priority", "MEDIUM"),
        status="TRIAGE",
        source=fields.get("source", "CUSTOMER_REPORT"),
        project_id=widget.project_id,
        reporter_id=None,
        reporter_email=fields.get("reporter_email"),
        screenshots=fields.get("screenshots"),
    )
    db.session.add(bug)
    db.session.commit()
    logger.info("Widget bug created: %s", bug.title, extra={"bug_id": bug.id, "project_id": widget.project_id})
    return bug


# ═══════════════════════════════════════════════════════════════
# Settings
# ═══════════════════════════════════════════════════════════════
def embed_snippet(token: str) -> str:
    base = current_app.config["API_PUBLIC_URL"].rstrip("/")
    return f'<script src="{base}/api/widget/embed.js?token={token}"></script>'


def _serialize(widget: WidgetToken | None) -> dict | None:
    if widget is None:
        return None
    return widget.to_dict(embed_snippet=embed_snippet(widget.token))


def _managed_project(slug: str, user_id: str):
    project = get_project_by_slug_or_404(slug)
    authorization.require_action(user_id, project, "widget.manage")
    return project


def get_settings(slug: str, user_id: str) -> dict | None:
    project = _managed_project(slug, user_id)
    return _serialize(project.widget_token)


def generate(slug: str, user_id: str) -> dict:
    """Create the widget token, or replace it; the old token stops working at once."""
    project = _managed_project(slug, user_id)
    widget = project.widget_token
    if widget is None:
        widget = WidgetToken(project_id=project.id, token=generate_token(32), allowed_origins=[], enabled=True)
        db.session.add(widget)
    else:
        widget.token = generate_token(32)
    db.session.commit()
    invalidate_widget_origins()
    logger.info("Widget token generated", extra={"project_id": project.id, "user_id": user_id})
    return _serialize(widget)


def update_settings(slug: str, user_id: str, fields: dict) -> dict:
    project = _managed_project(slug, user_id)
    widget = project.widget_token
    if widget is None:
        raise NotFoundError("Widget", message="Widget not configured. Generate a token first.")
    if "allowed_origins" in fields:
        widget.allowed_origins = fields["allowed_origins"]
    if "enabled" in fields:
        widget.enabled = fields["enabled"]
    db.session.commit()
    invalidate_widget_origins()
    return _serialize(widget)


def delete(slug: str, user_id: str) -> None:
    project = _managed_project(slug, user_id)
    if project.widget_token is not None:
        db.session.delete(project.widget_token)
        db.session.commit()
    invalidate_widget_origins()


# ═══════════════════════════════════════════════════════════════
# Loader script
# ═══════════════════════════════════════════════════════════════
_EMBED_TEMPLATE = """(function() {
  if (window.__bugfixer_widget_loaded) return;
  window.__bugfixer_widget_loaded = true;

  var token = %(token)s;
  var baseUrl = %(base_url)s;
  var iframeUrl = baseUrl + "/widget/" + encodeURIComponent(token);

  var btn = document.createElement("button");
  btn.id = "bugfixer-widget-btn";
  btn.textContent = "Report a bug";
  btn.setAttribute("aria-label", "Report a Bug");
  btn.style.cssText = "position:fixed;bottom:24px;right:24px;z-index:2147483647;padding:12px 16px;border-radius:28px;background:#18181b;color:#fff;border:none;cursor:pointer;box-shadow:0 4px 12px rgba(0,0,0,0.15);";

  var container = document.createElement("div");
  container.id = "bugfixer-widget-container";
  container.style.cssText = "position:fixed;bottom:96px;right:24px;z-index:2147483647;width:420px;max-width:calc(100vw - 48px);height:560px;max-height:calc(100vh - 120px);border-radius:16px;overflow:hidden;box-shadow:0 25px 50px rgba(0,0,0,0.25);display:none;";

  var iframe = document.createElement("iframe");
  iframe.src = iframeUrl;
  iframe.style.cssText = "width:100%%;height:100%%;border:none;";
  iframe.setAttribute("allow", "clipboard-write");
  container.appendChild(iframe);

  document.body.appendChild(btn);
  document.body.appendChild(container);

  function setOpen(open) {
    container.style.display = open ? "block" : "none";
    btn.textContent = open ? "Close" : "Report a bug";
  }

  var isOpen = false;
  btn.onclick = function() { isOpen = !isOpen; setOpen(isOpen); };

  window.addEventListener("message", function(event) {
    if (event.origin !== baseUrl) return;
    if (event.data && event.data.type === "bugfixer:close") { isOpen = false; setOpen(false); }
  });
})();
"""

MISSING_TOKEN_SCRIPT = 'console.error("BugFixer Widget: Missing token parameter");'


def embed_script(token: str) -> str:
    frontend = current_app.config["FRONTEND_URL"].split(",")[0].strip().rstrip("/")
    # JSON string literals, "</" escaped
    return _EMBED_TEMPLATE % {
        "token": json.dumps(token).replace("</", "<\\/"),
        "base_url": json.dumps(frontend).replace("</", "<\\/"),
    }
