"""
Soft Delete Mixin.

Tickets, comments, attachments and directory rows are never removed
physically; they carry an ``is_active`` flag instead. Reads go through
``query_active()`` so inactive rows behave as if they did not exist.

Usage:
    class MyModel(SoftDeleteMixin, db.Model):
        ...

    obj.soft_delete()
    db.session.commit()

    MyModel.query_active().filter_by(...).all()
"""

from helpdesk.models import db


class SoftDeleteMixin:
    """Mixin that adds an ``is_active`` flag to any SQLAlchemy model."""

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)

    def soft_delete(self):
        """Mark this record as inactive."""
        self.is_active = False

    def restore(self):
        """Reactivate a soft-deleted record."""
        self.is_active = True

    @property
    def is_deleted(self):
        return not self.is_active

    @classmethod
    def query_active(cls):
        """Return a query that excludes soft-deleted records."""
        return cls.query.filter(cls.is_active.is_(True))
