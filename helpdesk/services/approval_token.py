"""
Approval-token protocol.

A change-management ticket receives a single-use token at creation. The
token is embedded in the approve / reject links emailed to IT Heads, so the
holder of the link can act without logging in until the token expires or is
consumed.

    issue_token()           -> (token, expiry)
    validate_token(t, tok)  -> TokenCheck.OK | EXPIRED | MISMATCH
    consume_token_values()  -> column values that clear the token

Tokens are 32 random bytes, URL-safe base64 encoded. Comparison is
constant-time.
"""

from __future__ import annotations

import enum
import hmac
import secrets
from datetime import datetime, timedelta, timezone

DEFAULT_TTL_HOURS = 24
TOKEN_BYTES = 32


class TokenCheck(enum.Enum):
    OK = "ok"
    EXPIRED = "expired"
    MISMATCH = "mismatch"


def issue_token(now: datetime | None = None, ttl_hours: int | float = DEFAULT_TTL_HOURS) -> tuple[str, datetime]:
    now = now or datetime.now(timezone.utc)
    return secrets.token_urlsafe(TOKEN_BYTES), now + timedelta(hours=ttl_hours)


def _aware(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; stored values are always UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def validate_token(ticket, supplied: str | None, now: datetime | None = None) -> TokenCheck:
    """Check a supplied link token against the ticket's stored token."""
    stored = ticket.approval_token
    if not stored or not supplied:
        return TokenCheck.MISMATCH
    if not hmac.compare_digest(stored.encode("utf-8"), str(supplied).encode("utf-8")):
        return TokenCheck.MISMATCH
    now = now or datetime.now(timezone.utc)
    if ticket.token_expiry is None or _aware(now) > _aware(ticket.token_expiry):
        return TokenCheck.EXPIRED
    return TokenCheck.OK


def consume_token_values() -> dict:
    """Values applied in the same UPDATE that records the approval decision."""
    return {"approval_token": None, "token_expiry": None}
