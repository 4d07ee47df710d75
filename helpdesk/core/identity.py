"""
Explicit identity values passed through the lifecycle.

``ActorIdentity`` is who performs an operation. The JWT middleware builds it
per request and blueprints hand it to the controller; services never read it
from request globals.

``CreatorIdentity`` is how a ticket remembers its creator. New rows carry a
user id and email; legacy rows only have a free-form ``created_by`` string
(uid, numeric id, email or display name). ``creator_identity_for`` turns a
ticket into the most precise variant available.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Union

from helpdesk.models.directory import ROLE_IT_HEAD


@dataclass(frozen=True)
class ActorIdentity:
    user_id: int | None = None
    uid: str | None = None
    email: str | None = None
    name: str | None = None
    role_id: int | None = None

    @property
    def is_it_head(self) -> bool:
        return self.role_id == ROLE_IT_HEAD

    @property
    def display_name(self) -> str:
        """Audit string written into created_by / updated_by."""
        return self.name or self.email or self.uid or (str(self.user_id) if self.user_id else "System")

    @classmethod
    def from_user(cls, user) -> "ActorIdentity":
        return cls(
            user_id=user.id, uid=user.uid, email=user.email,
            name=user.name, role_id=user.role_id,
        )


SYSTEM_ACTOR = ActorIdentity(name="System")


@dataclass(frozen=True)
class ById:
    user_id: int


@dataclass(frozen=True)
class ByEmail:
    email: str


@dataclass(frozen=True)
class ByName:
    """Legacy free-form creator string; resolved by uid, id, email shape, then name."""

    raw: str


CreatorIdentity = Union[ById, ByEmail, ByName]


def creator_identity_for(ticket) -> CreatorIdentity | None:
    if ticket.creator_user_id:
        return ById(ticket.creator_user_id)
    if ticket.creator_email and ticket.creator_email.strip():
        return ByEmail(ticket.creator_email.strip())
    raw = (ticket.created_by or "").strip()
    if raw and raw != "System":
        return ByName(raw)
    return None
