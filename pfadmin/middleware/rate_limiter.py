"""
Rate limiting configuration.

Applies per-blueprint rate limits using Flask-Limiter.
The Limiter instance is created in pfadmin/__init__.py with no default
limits; this module applies granular limits per route category.

Usage:
    from pfadmin.middleware.rate_limiter import init_rate_limits
    init_rate_limits(app, limiter)
"""

import logging

logger = logging.getLogger(__name__)

READ_LIMIT = "200/minute"


def init_rate_limits(app, limiter):
    """
    Apply rate limits to API blueprints.

    Limits (per remote IP):
        - Request lifecycle:  TRANSITION_RATE_LIMIT (default 60/minute)
        - Notifications:      200/minute
        - Health check:       exempt

    Rate limiting is disabled in testing mode.
    """
    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    transition_limit = app.config.get("TRANSITION_RATE_LIMIT", "60/minute")

    bp = app.blueprints.get("requests")
    if bp:
        limiter.limit(transition_limit)(bp)

    bp = app.blueprints.get("notifications")
    if bp:
        limiter.limit(READ_LIMIT)(bp)

    bp = app.blueprints.get("health")
    if bp:
        limiter.exempt(bp)

    app.logger.info(
        "Rate limiter configured: requests: %s, notifications: %s",
        transition_limit, READ_LIMIT,
    )
