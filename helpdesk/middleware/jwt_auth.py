"""
JWT Auth Middleware — parses the Bearer token and sets ``g.actor``.

The middleware never blocks a request: a missing, expired or invalid token
leaves ``g.actor = None`` and the route decides. Ticket routes require an
actor except approve / reject, which also accept an emailed link token.
"""

import logging
from functools import wraps

import jwt as pyjwt
from flask import g, request

from helpdesk.services.jwt_service import actor_from_payload, decode_access_token
from helpdesk.utils.errors import E, api_error

logger = logging.getLogger(__name__)

# Paths that skip JWT parsing entirely
JWT_SKIP_PREFIXES = (
    "/api/v1/health",
    "/static/",
)


def init_jwt_middleware(app):
    """Register JWT middleware as a before_request hook."""

    @app.before_request
    def _jwt_auth():
        g.actor = None

        path = request.path
        if not path.startswith("/api/v1/"):
            return
        for prefix in JWT_SKIP_PREFIXES:
            if path.startswith(prefix):
                return

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            return

        token = auth_header[7:]
        try:
            payload = decode_access_token(token)
        except pyjwt.ExpiredSignatureError:
            logger.info("Expired access token on %s", path)
            return
        except pyjwt.InvalidTokenError as exc:
            logger.info("Invalid access token on %s: %s", path, exc)
            return
        g.actor = actor_from_payload(payload)


def require_actor(fn):
    """Route decorator: 401 unless the request carried a valid access token."""

    @wraps(fn)
    def wrapper(*args, **kwargs):
        if getattr(g, "actor", None) is None:
            return api_error(E.UNAUTHORIZED, "Authentication required")
        return fn(*args, **kwargs)

    return wrapper
