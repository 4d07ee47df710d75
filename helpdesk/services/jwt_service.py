"""
JWT Service — access-token generation and verification.

Login and token issuance live outside this service; it only needs to read
the tokens the auth provider hands out (and mint them for scripts and tests).

Access token:  8 hours (configurable via JWT_ACCESS_EXPIRES)
Algorithm:     HS256

Token payload:
{
    "sub": "<user_id>",
    "uid": <external uid>,
    "email": <email>,
    "name": <display name>,
    "role_id": <int>,
    "type": "access",
    "iat": <issued_at>,
    "exp": <expires_at>,
    "jti": <unique_id>
}
"""

import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app

from helpdesk.core.identity import ActorIdentity

# ─── Defaults ────────────────────────────────────────────────
DEFAULT_ACCESS_EXPIRES = 8 * 3600
ALGORITHM = "HS256"


def _get_secret():
    """Get the JWT secret key from app config."""
    return current_app.config.get("JWT_SECRET_KEY") or current_app.config["SECRET_KEY"]


def _get_access_expires():
    return current_app.config.get("JWT_ACCESS_EXPIRES", DEFAULT_ACCESS_EXPIRES)


def generate_access_token(user) -> str:
    """Mint an access token for a directory user."""
    now = datetime.now(timezone.utc)
    payload = {
        "sub": str(user.id),
        "uid": user.uid,
        "email": user.email,
        "name": user.name,
        "role_id": user.role_id,
        "type": "access",
        "iat": now,
        "exp": now + timedelta(seconds=_get_access_expires()),
        "jti": str(uuid.uuid4()),
    }
    return jwt.encode(payload, _get_secret(), algorithm=ALGORITHM)


def decode_access_token(token: str) -> dict:
    """
    Decode and verify an access token.

    Raises jwt.exceptions on failure (ExpiredSignatureError, InvalidTokenError, etc.)
    """
    payload = jwt.decode(token, _get_secret(), algorithms=[ALGORITHM])
    if payload.get("type") != "access":
        raise jwt.InvalidTokenError(f"Expected access token, got {payload.get('type')}")
    return payload


def actor_from_payload(payload: dict) -> ActorIdentity:
    sub = payload.get("sub")
    role_id = payload.get("role_id", payload.get("roleId"))
    return ActorIdentity(
        user_id=int(sub) if sub is not None and str(sub).isdigit() else None,
        uid=payload.get("uid"),
        email=payload.get("email"),
        name=payload.get("name"),
        role_id=int(role_id) if role_id is not None and str(role_id).isdigit() else None,
    )
