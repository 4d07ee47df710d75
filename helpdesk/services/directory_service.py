"""
Directory Store — read-only lookups over users and reference data.

Every query ignores soft-deleted rows. Missing values degrade to ``None``
rather than raising; callers decide whether absence is an error.
"""

from __future__ import annotations

import logging

from email_validator import EmailNotValidError, validate_email
from sqlalchemy import func

from helpdesk.core.identity import ByEmail, ById, ByName
from helpdesk.models import db
from helpdesk.models.directory import (
    ROLE_ADMIN,
    ROLE_AGENT,
    ROLE_IT_HEAD,
    Category,
    Company,
    Department,
    IssueType,
    RequestType,
    Role,
    User,
)

logger = logging.getLogger(__name__)


def looks_like_email(value: str | None) -> bool:
    if not value or "@" not in value:
        return False
    try:
        validate_email(value.strip(), check_deliverability=False)
    except EmailNotValidError:
        return False
    return True


class DirectoryStore:
    """Lookups the lifecycle controller and recipient resolver depend on."""

    def get_user(self, user_id) -> User | None:
        if user_id is None:
            return None
        try:
            user_id = int(user_id)
        except (TypeError, ValueError):
            return None
        user = db.session.get(User, user_id)
        if user is None or not user.is_active:
            return None
        return user

    def find_by_uid(self, uid: str | None) -> User | None:
        if not uid:
            return None
        return User.query_active().filter(User.uid == uid).first()

    def find_by_email(self, email: str | None) -> User | None:
        if not email or not email.strip():
            return None
        return (
            User.query_active()
            .filter(func.lower(User.email) == email.strip().lower())
            .order_by(User.id)
            .first()
        )

    def find_by_name(self, name: str | None) -> User | None:
        if not name or not name.strip():
            return None
        return (
            User.query_active()
            .filter(func.lower(User.name) == name.strip().lower())
            .order_by(User.id)
            .first()
        )

    def find_user_by_identity(self, identity) -> User | None:
        """
        Resolve a creator identity to a directory user.

        ``ByName`` carries whatever legacy rows stored in ``created_by``: it is
        tried as a uid, then as a numeric id, then as an email, then as a
        display name.
        """
        if identity is None:
            return None
        if isinstance(identity, ById):
            return self.get_user(identity.user_id)
        if isinstance(identity, ByEmail):
            return self.find_by_email(identity.email)
        if isinstance(identity, ByName):
            raw = identity.raw.strip()
            user = self.find_by_uid(raw)
            if user is None and raw.isdigit():
                user = self.get_user(int(raw))
            if user is None and looks_like_email(raw):
                user = self.find_by_email(raw)
            if user is None:
                user = self.find_by_name(raw)
            return user
        raise TypeError(f"Unsupported creator identity: {identity!r}")

    def list_active_by_category(self, category_id) -> list[User]:
        if category_id is None:
            return []
        return User.query_active().filter(User.category_id == category_id).order_by(User.id).all()

    def list_active_by_role(self, role_id) -> list[User]:
        return User.query_active().filter(User.role_id == role_id).order_by(User.id).all()

    def list_it_heads(self) -> list[User]:
        return self.list_active_by_role(ROLE_IT_HEAD)

    def primary_it_head(self, preferred_id=None) -> User | None:
        """Configured primary IT Head, else the lowest-id active IT Head."""
        if preferred_id is not None:
            user = self.get_user(preferred_id)
            if user is not None and user.is_it_head:
                return user
            logger.warning("Configured primary IT Head id=%s is not an active IT Head", preferred_id)
        heads = self.list_it_heads()
        return heads[0] if heads else None

    # ── Reference data ──────────────────────────────────────────────────

    def _name(self, model, row_id) -> str | None:
        if row_id is None:
            return None
        row = db.session.get(model, row_id)
        return row.name if row is not None else None

    def category_name(self, category_id) -> str | None:
        return self._name(Category, category_id)

    def department_name(self, department_id) -> str | None:
        return self._name(Department, department_id)

    def company_name(self, company_id) -> str | None:
        return self._name(Company, company_id)

    def issue_type_name(self, issue_type_id) -> str | None:
        return self._name(IssueType, issue_type_id)

    def request_type_name(self, request_type_id) -> str | None:
        return self._name(RequestType, request_type_id)

    def user_name(self, user_id) -> str | None:
        return self._name(User, user_id)


ROLE_NAMES = {ROLE_ADMIN: "Admin", ROLE_AGENT: "Agent", ROLE_IT_HEAD: "IT Head"}


def seed_roles() -> int:
    """Insert the fixed roles that role ids are matched against. Returns the number added."""
    added = 0
    for role_id, name in ROLE_NAMES.items():
        if db.session.get(Role, role_id) is None:
            db.session.add(Role(id=role_id, name=name))
            added += 1
    db.session.commit()
    return added
