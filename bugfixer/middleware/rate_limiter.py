"""
Per-blueprint request quotas (Flask-Limiter, keyed by remote address).

The Limiter itself is built in bugfixer/__init__.py with no default limits;
this module attaches a limit to each blueprint by category. Counters live in
REDIS_URL when set, in process memory otherwise.
"""

import logging

logger = logging.getLogger(__name__)

# category -> (limit, blueprints)
QUOTAS = {
    "credentials": ("20/minute", ("auth_bp",)),
    "anonymous": ("30/minute", ("widget_bp", "invitation_bp")),
    "api": ("300/minute", ("project_bp", "bug_bp", "member_bp",
                           "github_bp", "agent_config_bp", "upload_bp")),
}

EXEMPT = ("health_bp",)


def init_rate_limits(app, limiter):
    """Attach QUOTAS to the registered blueprints; no-op under TESTING."""
    if app.config.get("TESTING"):
        return

    applied = {}
    for category, (limit, names) in QUOTAS.items():
        for name in names:
            bp = app.blueprints.get(name)
            if bp is None:
                logger.warning("Rate limit for unknown blueprint %s skipped", name)
                continue
            limiter.limit(limit)(bp)
        applied[category] = limit

    for name in EXEMPT:
        if name in app.blueprints:
            limiter.exempt(app.blueprints[name])

    logger.info("Rate limits: %s", ", ".join(f"{k}={v}" for k, v in applied.items()))
