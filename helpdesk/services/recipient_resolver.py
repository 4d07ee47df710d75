"""
Recipient Resolver — who gets an email for a ticket event.

Sources, merged in this order into one map keyed by lower-cased email
(last write wins on name and relationship):

    category team  ->  IT Heads  ->  assignee  ->  creator

so a creator who is also a team member receives the creator variant.
An IT Head keeps its is_it_head flag when a later source overwrites the
entry, so approval links still reach it. Entries without an email are dropped.

Event rules:
    STATUS_UPDATED -> PROCESSING   the actor is removed from the team subset
                                   (the creator is always kept)
    STATUS_UPDATED -> COMPLETED    no exclusion
    TICKET_ASSIGNED                the assignee only
    created / approved / rejected  the full merge
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace

from helpdesk.core.events import STATUS_UPDATED, TICKET_ASSIGNED
from helpdesk.core.identity import ByEmail, ById, ByName, creator_identity_for
from helpdesk.models.ticket import STATUS_PROCESSING
from helpdesk.services.directory_service import looks_like_email

logger = logging.getLogger(__name__)

REL_CREATOR = "creator"
REL_ASSIGNEE = "assignee"
REL_TEAM = "category-team-member"
REL_IT_HEAD = "it-head"


@dataclass(frozen=True)
class Recipient:
    email: str
    name: str
    relationship: str
    is_it_head: bool = False


def _key(email: str | None) -> str:
    return (email or "").strip().lower()


def _from_user(user, relationship: str) -> Recipient | None:
    if user is None or not _key(user.email):
        return None
    return Recipient(email=user.email.strip(), name=user.name or user.email.strip(), relationship=relationship)


class RecipientResolver:

    def __init__(self, directory):
        self.directory = directory

    # ── Individual sources ──────────────────────────────────────────────

    def resolve_creator(self, ticket) -> Recipient | None:
        identity = creator_identity_for(ticket)
        if identity is None:
            return None
        user = self.directory.find_user_by_identity(identity)
        if user is not None and _key(user.email):
            return _from_user(user, REL_CREATOR)

        fallback_name = ticket.full_name or ticket.created_by
        if isinstance(identity, ById) and _key(ticket.creator_email):
            return Recipient(ticket.creator_email.strip(), fallback_name, REL_CREATOR)
        if isinstance(identity, ByEmail):
            return Recipient(identity.email, fallback_name, REL_CREATOR)
        if isinstance(identity, ByName) and looks_like_email(identity.raw):
            return Recipient(identity.raw.strip(), fallback_name, REL_CREATOR)

        logger.info("Creator of ticket %s could not be resolved to an email", ticket.id,
                    extra={"ticket_id": ticket.id})
        return None

    def resolve_assignee(self, ticket) -> Recipient | None:
        return _from_user(self.directory.get_user(ticket.assigned_to_id), REL_ASSIGNEE)

    def resolve_team(self, ticket) -> list:
        return self.directory.list_active_by_category(ticket.category_id)

    def resolve_it_heads(self) -> list:
        return self.directory.list_it_heads()

    # ── Merge ───────────────────────────────────────────────────────────

    def resolve(self, ticket, event, actor=None) -> dict[str, Recipient]:
        """Map lower-cased email -> Recipient for one event on one ticket."""
        actor = actor if actor is not None else getattr(event, "actor", None)

        if event.event_type == TICKET_ASSIGNED:
            assignee = self.resolve_assignee(ticket)
            return {_key(assignee.email): assignee} if assignee else {}

        team = self.resolve_team(ticket)
        if event.event_type == STATUS_UPDATED and event.new_status == STATUS_PROCESSING and actor is not None:
            team = [u for u in team if not _is_actor(u, actor)]

        merged: dict[str, Recipient] = {}

        def put(recipient):
            if recipient is None:
                return
            key = _key(recipient.email)
            if not key:
                return
            previous = merged.get(key)
            if previous is not None and previous.is_it_head and not recipient.is_it_head:
                recipient = replace(recipient, is_it_head=True)
            merged[key] = recipient

        for user in team:
            put(_from_user(user, REL_TEAM))
        for user in self.resolve_it_heads():
            head = _from_user(user, REL_IT_HEAD)
            put(replace(head, is_it_head=True) if head else None)
        put(self.resolve_assignee(ticket))
        put(self.resolve_creator(ticket))
        return merged


def _is_actor(user, actor) -> bool:
    if actor.user_id is not None and user.id == actor.user_id:
        return True
    if actor.uid and user.uid == actor.uid:
        return True
    return bool(_key(actor.email)) and _key(user.email) == _key(actor.email)
