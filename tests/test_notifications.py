"""
Email + notification dispatch tests (log-only mail mode).
"""

import threading

from bugfixer.services import notifier
from bugfixer.services.email_service import EmailService


class TestEmailService:
    def test_template_values_are_escaped(self, outbox):
        ok = EmailService.send_from_template(
            to_email="mia@acme.io",
            template_name="member_removed",
            context={"user_name": "<b>Mia</b>", "project_name": "Shop & Co"},
        )
        assert ok is True
        msg = outbox[-1]
        assert msg["subject"] == "You've been removed from Shop & Co"
        assert "&lt;b&gt;Mia&lt;/b&gt;" in msg["html"]
        assert "Shop &amp; Co" in msg["html"]

    def test_buttons_are_not_escaped(self, outbox):
        EmailService.send_from_template(
            to_email="mia@acme.io",
            template_name="welcome",
            context={"user_name": "Mia",
                     "dashboard_button": EmailService.button("https://app.acme.io/?a=1&b=2", "Go")},
        )
        assert 'href="https://app.acme.io/?a=1&amp;b=2"' in outbox[-1]["html"]

    def test_unknown_template(self, outbox):
        assert EmailService.send_from_template(to_email="x@acme.io", template_name="nope", context={}) is False
        assert outbox == []


class TestDispatch:
    def test_failures_are_swallowed(self, app, caplog):
        def explode():
            raise RuntimeError("smtp on fire")

        notifier.dispatch(explode)
        assert "Notification explode failed" in caplog.text

    def test_async_runs_in_background_thread(self, app):
        done = threading.Event()
        seen = {}

        def record(value):
            seen["value"] = value
            seen["thread"] = threading.current_thread().name
            done.set()

        app.config["NOTIFICATIONS_ASYNC"] = True
        try:
            notifier.dispatch(record, value=42)
            assert done.wait(timeout=5)
        finally:
            app.config["NOTIFICATIONS_ASYNC"] = False
        assert seen == {"value": 42, "thread": "notify-record"}
