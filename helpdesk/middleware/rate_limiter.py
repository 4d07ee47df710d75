"""
Rate limiting configuration.

The Limiter instance is created in helpdesk/__init__.py with no default
limits; this module applies limits per route group.

Limits (per remote IP):
    - Approval links (approve / reject):  20/minute  (public, token-guarded)
    - Ticket API:                         120/minute
    - Health check:                       exempt

Rate limiting is disabled in testing mode.
"""

import logging

logger = logging.getLogger(__name__)

APPROVAL_LINK_LIMIT = "20/minute"
TICKET_API_LIMIT = "120/minute"

_APPROVAL_ENDPOINTS = ("tickets.approve_ticket", "tickets.reject_ticket")


def init_rate_limits(app, limiter):
    """Apply rate limits to the registered blueprints / view functions."""

    if app.config.get("TESTING"):
        app.logger.info("Rate limiter disabled (TESTING=True)")
        return

    # Approval links are reachable without a login; keep guessing expensive
    for endpoint in _APPROVAL_ENDPOINTS:
        view = app.view_functions.get(endpoint)
        if view:
            app.view_functions[endpoint] = limiter.limit(APPROVAL_LINK_LIMIT)(view)

    bp = app.blueprints.get("tickets")
    if bp:
        limiter.limit(TICKET_API_LIMIT)(bp)

    health = app.view_functions.get("health")
    if health:
        limiter.exempt(health)

    app.logger.info(
        "Rate limiter configured: approval links: %s, ticket API: %s",
        APPROVAL_LINK_LIMIT, TICKET_API_LIMIT,
    )
