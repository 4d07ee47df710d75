"""
Lifecycle events published after a successful commit.

The controller builds a ``NotificationEvent`` once the state change is
durable; the notification queue resolves recipients and dispatches emails
from it.
"""

from __future__ import annotations

from dataclasses import dataclass

from helpdesk.core.identity import ActorIdentity

TICKET_CREATED = "TICKET_CREATED"
STATUS_UPDATED = "STATUS_UPDATED"
TICKET_ASSIGNED = "TICKET_ASSIGNED"
TICKET_APPROVED = "TICKET_APPROVED"
TICKET_REJECTED = "TICKET_REJECTED"


@dataclass(frozen=True)
class NotificationEvent:
    event_type: str
    ticket_id: int
    actor: ActorIdentity | None = None
    new_status: str | None = None
    previous_status: str | None = None
    # Approval comments or rejection reason
    note: str | None = None
