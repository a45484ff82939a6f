"""
Transactional mail for BugFixer (welcome, invitations, membership changes,
access-request decisions, resolved bugs).

Each template is a subject line plus an HTML fragment wrapped in a shared
layout. Context values are HTML-escaped before interpolation, except the
``*_button`` keys which callers build with EmailService.button().

Delivery goes through SMTP when MAIL_SERVER is set (MAIL_PORT, MAIL_USE_TLS,
MAIL_USERNAME, MAIL_PASSWORD, MAIL_DEFAULT_SENDER). Without it, messages are
only logged; the testing app also collects them in
``app.extensions["mail_outbox"]``.
"""

from __future__ import annotations

import logging
import re
import smtplib
from email.message import EmailMessage
from html import escape
from typing import Any

from flask import current_app

logger = logging.getLogger(__name__)

OUTBOX_KEY = "mail_outbox"

_TAGS = re.compile(r"<[^>]+>")


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_LAYOUT = """
<div style="font-family: -apple-system, 'Segoe UI', Roboto, Arial, sans-serif; max-width: 600px; margin: 0 auto;">
    <div style="background: #1B4D3E; color: white; padding: 24px 32px; border-radius: 12px 12px 0 0;">
        <h2 style="margin: 0; font-size: 22px;">BugFixer</h2>
    </div>
    <div style="background: #ffffff; padding: 32px; border: 1px solid #e8ebe9; border-top: none;">
        {body}
    </div>
    <div style="background: #f4f7f6; padding: 12px 32px; border-radius: 0 0 12px 12px;
                border: 1px solid #e8ebe9; border-top: none; text-align: center;">
        <p style="color: #94a3b8; font-size: 12px; margin: 0;">BugFixer — automated notification</p>
    </div>
</div>
"""

_BUTTON = (
    '<p><a href="{url}" style="display: inline-block; background: #2D6A4F; color: #ffffff; '
    'padding: 12px 24px; border-radius: 8px; text-decoration: none;">{label}</a></p>'
)

_TEMPLATES: dict[str, dict[str, str]] = {
    "welcome": {
        "subject": "Welcome to BugFixer, {user_name}!",
        "body": """
        <h3>Welcome aboard, {user_name}!</h3>
        <p>Your account is ready. Create a project, invite your team and start triaging bugs.</p>
        {dashboard_button}
        """,
    },
    "project_invitation": {
        "subject": "{inviter_name} invited you to join {project_name}",
        "body": """
        <h3>You're invited to {project_name}</h3>
        <p>{inviter_name} ({inviter_email}) invited you to join <strong>{project_name}</strong>
           as <strong>{role}</strong>.</p>
        <p style="color: #64748b;">{project_description}</p>
        {invite_button}
        <p style="color: #94a3b8; font-size: 13px;">This invitation expires in 7 days.</p>
        """,
    },
    "access_request": {
        "subject": "New access request for {project_name}",
        "body": """
        <h3>New access request</h3>
        <p><strong>{requester_name}</strong> ({requester_email}) asked to join
           <strong>{project_name}</strong>.</p>
        <p style="color: #64748b;">{message}</p>
        {project_button}
        """,
    },
    "access_approved": {
        "subject": "Access granted to {project_name}!",
        "body": """
        <h3>You're in!</h3>
        <p>Your request to join <strong>{project_name}</strong> was approved.</p>
        {project_button}
        """,
    },
    "access_rejected": {
        "subject": "Access request update for {project_name}",
        "body": """
        <h3>Access request update</h3>
        <p>Your request to join <strong>{project_name}</strong> was not approved at this time.</p>
        """,
    },
    "bug_resolved": {
        "subject": "Bug resolved: {bug_title}",
        "body": """
        <h3>Good news, {reporter_name}!</h3>
        <p>The bug you reported in <strong>{project_name}</strong> has been deployed as fixed:</p>
        <p><strong>{bug_title}</strong></p>
        {bug_button}
        """,
    },
    "member_removed": {
        "subject": "You've been removed from {project_name}",
        "body": """
        <h3>Project membership update</h3>
        <p>Hi {user_name}, you are no longer a member of <strong>{project_name}</strong>.</p>
        """,
    },
    "role_changed": {
        "subject": "Your role in {project_name} has been updated",
        "body": """
        <h3>Role updated</h3>
        <p>Hi {user_name}, your role in <strong>{project_name}</strong> changed
           from <strong>{old_role}</strong> to <strong>{new_role}</strong>.</p>
        {project_button}
        """,
    },
}

# Context keys that carry pre-rendered HTML and must not be escaped
_RAW_KEYS = frozenset({"dashboard_button", "invite_button", "project_button", "bug_button"})


class EmailService:
    """Template rendering + delivery. All methods are usable without an instance."""

    @staticmethod
    def is_configured() -> bool:
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        return _TEMPLATES.get(template_name)

    @staticmethod
    def button(url: str, label: str) -> str:
        return _BUTTON.format(url=escape(url, quote=True), label=escape(label))

    @classmethod
    def send(cls, *, to_email: str, subject: str, html_body: str,
             template_name: str | None = None) -> bool:
        """
        Deliver one message. Returns False on SMTP failure instead of raising,
        since every caller treats mail as best effort.
        """
        if not cls.is_configured():
            logger.info("Mail not sent (no MAIL_SERVER): %s -> %s", template_name or subject, to_email)
            outbox = current_app.extensions.get(OUTBOX_KEY)
            if outbox is not None:
                outbox.append({"to": to_email, "subject": subject,
                               "template": template_name, "html": html_body})
            return True

        try:
            _deliver(_build_message(to_email, subject, html_body))
        except (smtplib.SMTPException, OSError) as exc:
            logger.error("Mail to %s (%s) failed: %s", to_email, template_name or "-", exc)
            return False
        logger.info("Mail sent: %s -> %s", template_name or subject, to_email)
        return True

    @classmethod
    def send_from_template(cls, *, to_email: str, template_name: str,
                           context: dict[str, Any]) -> bool:
        """Render ``template_name`` with ``context`` and send it."""
        template = cls.get_template(template_name)
        if template is None:
            logger.warning("Unknown mail template %r", template_name)
            return False

        html_values = _Placeholders({
            key: value if key in _RAW_KEYS else escape("" if value is None else str(value))
            for key, value in context.items()
        })
        text_values = _Placeholders({key: "" if value is None else str(value)
                                     for key, value in context.items()})
        return cls.send(
            to_email=to_email,
            subject=template["subject"].format_map(text_values),
            html_body=_LAYOUT.format(body=template["body"].format_map(html_values)),
            template_name=template_name,
        )


def _build_message(to_email: str, subject: str, html_body: str) -> EmailMessage:
    msg = EmailMessage()
    msg["Subject"] = subject
    msg["From"] = current_app.config.get("MAIL_DEFAULT_SENDER") or "noreply@bugfixer.local"
    msg["To"] = to_email
    msg.set_content(_TAGS.sub("", html_body).strip())
    msg.add_alternative(html_body, subtype="html")
    return msg


def _deliver(msg: EmailMessage) -> None:
    cfg = current_app.config
    with smtplib.SMTP(cfg["MAIL_SERVER"], cfg.get("MAIL_PORT", 587), timeout=30) as smtp:
        if cfg.get("MAIL_USE_TLS", True):
            smtp.starttls()
        if cfg.get("MAIL_USERNAME") and cfg.get("MAIL_PASSWORD"):
            smtp.login(cfg["MAIL_USERNAME"], cfg["MAIL_PASSWORD"])
        smtp.send_message(msg)


class _Placeholders(dict):
    """format_map source that leaves unknown ``{names}`` in place."""

    def __missing__(self, key):
        return "{" + key + "}"
