"""
Directory & reference data models.

Read-only from the point of view of the ticket lifecycle: users (with role
and category), roles, and the lookup tables a ticket is classified by.

Role ids are fixed by the seed data. ``ROLE_IT_HEAD`` is the privileged
approver role; it is referenced symbolically everywhere in the code.
"""

from datetime import datetime, timezone

from helpdesk.models import db
from helpdesk.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

ROLE_ADMIN = 1
ROLE_AGENT = 2
ROLE_IT_HEAD = 3


class Role(db.Model):
    __tablename__ = "roles"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, unique=True)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Category(SoftDeleteMixin, db.Model):
    """Handling group for tickets; users sharing a category form its team."""

    __tablename__ = "categories"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Department(SoftDeleteMixin, db.Model):
    __tablename__ = "departments"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class Company(SoftDeleteMixin, db.Model):
    __tablename__ = "companies"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class IssueType(SoftDeleteMixin, db.Model):
    __tablename__ = "issue_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class RequestType(SoftDeleteMixin, db.Model):
    __tablename__ = "request_types"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(150), nullable=False)

    def to_dict(self):
        return {"id": self.id, "name": self.name}


class User(SoftDeleteMixin, db.Model):
    """
    Directory user.

    ``uid`` is the external identifier carried in access tokens; ``id`` is
    the integer key tickets reference for assignment and approval.
    """

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    uid = db.Column(db.String(64), unique=True, nullable=True, index=True)
    name = db.Column(db.String(200), nullable=False)
    email = db.Column(db.String(200), nullable=True, index=True)
    role_id = db.Column(db.Integer, db.ForeignKey("roles.id", ondelete="SET NULL"), nullable=True, index=True)
    category_id = db.Column(
        db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    created_at = db.Column(db.DateTime, default=lambda: datetime.now(timezone.utc))

    role = db.relationship("Role")
    category = db.relationship("Category")

    @property
    def is_it_head(self):
        return self.role_id == ROLE_IT_HEAD

    def to_dict(self):
        return {
            "id": self.id,
            "uid": self.uid,
            "name": self.name,
            "email": self.email,
            "role_id": self.role_id,
            "category_id": self.category_id,
            "is_active": self.is_active,
        }

    def __repr__(self):
        return f"<User {self.id}: {self.email or self.name}>"
