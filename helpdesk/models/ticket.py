"""
Ticket domain models.

Models:
    - Ticket: the support-request aggregate (status + approval sub-state)
    - TicketComment: activity thread on a ticket
    - TicketAttachment: uploaded file reference

Status machine (forward only, self-loops are no-ops):
    NEW -> PROCESSING -> COMPLETED
    NEW -> COMPLETED

Approval sub-state (independent of status):
    Pending -> Approved | Rejected   (terminal once left)

Legacy status values (OPEN, IN_PROGRESS, RESOLVED, CLOSED) can still be read
from historical rows. They are never targets of new transitions; RESOLVED and
CLOSED count as completed.
"""

from datetime import datetime, timezone

from helpdesk.models import db
from helpdesk.models.soft_delete import SoftDeleteMixin

# ── Constants ────────────────────────────────────────────────────────────────

STATUS_NEW = "NEW"
STATUS_PROCESSING = "PROCESSING"
STATUS_COMPLETED = "COMPLETED"

ALLOWED_STATUSES = (STATUS_NEW, STATUS_PROCESSING, STATUS_COMPLETED)
LEGACY_COMPLETED_STATUSES = frozenset({"RESOLVED", "CLOSED"})
COMPLETED_STATUSES = frozenset({STATUS_COMPLETED}) | LEGACY_COMPLETED_STATUSES

# Statuses whose arrival is announced by email
NOTIFIED_STATUSES = frozenset({STATUS_PROCESSING, STATUS_COMPLETED})

STATUS_TRANSITIONS = {
    "NEW":         ["PROCESSING", "COMPLETED"],
    "OPEN":        ["PROCESSING", "COMPLETED"],
    "PROCESSING":  ["COMPLETED"],
    "IN_PROGRESS": ["COMPLETED"],
    "COMPLETED":   [],
    "RESOLVED":    [],
    "CLOSED":      [],
}

APPROVAL_PENDING = "Pending"
APPROVAL_APPROVED = "Approved"
APPROVAL_REJECTED = "Rejected"

CHANGE_MANAGEMENT_REQUEST_TYPE = "change management requests"

SEVERITY_LEVELS = ("LOW", "MEDIUM", "HIGH", "CRITICAL")


def validate_status_transition(old_status, new_status):
    """Return True if a Ticket status transition is valid."""
    return new_status in STATUS_TRANSITIONS.get(old_status, [])


def format_ticket_number(ticket_id, created_at):
    """Display code ``TK-<year>-<id padded to 3>``."""
    year = (created_at or datetime.now(timezone.utc)).year
    return f"TK-{year}-{ticket_id:03d}"


def _iso(value):
    return value.isoformat() if value else None


class Ticket(SoftDeleteMixin, db.Model):
    """
    Support ticket.

    Business rules:
    - approval_token and token_expiry are both set or both NULL.
    - An Approved / Rejected ticket never carries a token.
    - Status and updated_by / updated_at are always written together.
    - Rows are never hard-deleted (is_active flag only).
    """

    __tablename__ = "tickets"

    id = db.Column(db.Integer, primary_key=True)

    # Requester
    full_name = db.Column(db.String(200), nullable=False)
    contact_number = db.Column(db.String(50), nullable=True)
    description = db.Column(db.Text, nullable=False, default="")

    # Classification
    department_id = db.Column(db.Integer, db.ForeignKey("departments.id", ondelete="SET NULL"), nullable=True)
    company_id = db.Column(db.Integer, db.ForeignKey("companies.id", ondelete="SET NULL"), nullable=True)
    category_id = db.Column(
        db.Integer, db.ForeignKey("categories.id", ondelete="SET NULL"), nullable=True, index=True,
    )
    issue_type_id = db.Column(db.Integer, db.ForeignKey("issue_types.id", ondelete="SET NULL"), nullable=True)
    request_type_id = db.Column(db.Integer, db.ForeignKey("request_types.id", ondelete="SET NULL"), nullable=True)

    severity = db.Column(db.String(20), nullable=False, default="LOW", comment="LOW | MEDIUM | HIGH | CRITICAL")
    status = db.Column(db.String(20), nullable=False, default=STATUS_NEW, index=True)

    # Approval sub-state
    requires_approval = db.Column(db.Boolean, nullable=False, default=False)
    approval_status = db.Column(db.String(20), nullable=False, default=APPROVAL_PENDING)
    approval_token = db.Column(db.String(255), unique=True, nullable=True)
    token_expiry = db.Column(db.DateTime(timezone=True), nullable=True)
    actioned_by_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    actioned_at = db.Column(db.DateTime(timezone=True), nullable=True)
    action_comments = db.Column(db.Text, nullable=True)

    # Assignment
    assigned_to_id = db.Column(
        db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True, index=True,
    )

    # Audit; creator_user_id / creator_email are captured at creation,
    # created_by keeps the display string (legacy rows only have this one)
    created_by = db.Column(db.String(200), nullable=False, default="System")
    creator_user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    creator_email = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), index=True)
    updated_by = db.Column(db.String(200), nullable=True)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=True)

    department = db.relationship("Department")
    company = db.relationship("Company")
    category = db.relationship("Category")
    issue_type = db.relationship("IssueType")
    request_type = db.relationship("RequestType")
    assignee = db.relationship("User", foreign_keys=[assigned_to_id])
    actioned_by = db.relationship("User", foreign_keys=[actioned_by_id])

    comments = db.relationship(
        "TicketComment", back_populates="ticket", lazy="dynamic",
        order_by="TicketComment.created_at",
    )
    attachments = db.relationship(
        "TicketAttachment", back_populates="ticket", lazy="dynamic",
        order_by="TicketAttachment.created_at",
    )

    @property
    def ticket_number(self):
        return format_ticket_number(self.id, self.created_at)

    @property
    def has_pending_token(self):
        return self.approval_token is not None

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_number": self.ticket_number,
            "full_name": self.full_name,
            "contact_number": self.contact_number,
            "description": self.description,
            "status": self.status,
            "severity": self.severity,
            "department_id": self.department_id,
            "company_id": self.company_id,
            "category_id": self.category_id,
            "issue_type_id": self.issue_type_id,
            "request_type_id": self.request_type_id,
            "assigned_to_id": self.assigned_to_id,
            "requires_approval": self.requires_approval,
            "approval_status": self.approval_status,
            "actioned_by_id": self.actioned_by_id,
            "actioned_at": _iso(self.actioned_at),
            "action_comments": self.action_comments,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
            "updated_by": self.updated_by,
            "updated_at": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Ticket {self.id}: {self.status}/{self.approval_status}>"


class TicketComment(SoftDeleteMixin, db.Model):
    """Comment on a ticket. ``author_name`` falls back to the raw identity."""

    __tablename__ = "ticket_comments"

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    user_id = db.Column(db.Integer, db.ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    author_name = db.Column(db.String(200), nullable=False, default="Anonymous")
    comment = db.Column(db.Text, nullable=False)
    created_by = db.Column(db.String(200), nullable=False, default="System")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    ticket = db.relationship("Ticket", back_populates="comments")

    def to_dict(self):
        return {
            "id": self.id,
            "ticket_id": self.ticket_id,
            "comment": self.comment,
            "user_id": self.user_id,
            "author": self.author_name or "Anonymous",
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }


class TicketAttachment(SoftDeleteMixin, db.Model):
    """Stored file reference; ``path`` is relative (``/uploads/<name>``)."""

    __tablename__ = "ticket_attachments"

    id = db.Column(db.Integer, primary_key=True)
    ticket_id = db.Column(
        db.Integer, db.ForeignKey("tickets.id", ondelete="CASCADE"), nullable=False, index=True,
    )
    path = db.Column(db.String(500), nullable=False)
    created_by = db.Column(db.String(200), nullable=False, default="System")
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    ticket = db.relationship("Ticket", back_populates="attachments")

    @property
    def file_name(self):
        return (self.path or "").rstrip("/").split("/")[-1]

    @property
    def original_name(self):
        """Stored names are ``<millis>_<name>``; strip the prefix."""
        name = self.file_name
        prefix, sep, rest = name.partition("_")
        if sep and prefix.isdigit() and rest:
            return rest
        return name

    def to_dict(self):
        return {
            "id": self.id,
            "original_name": self.original_name,
            "file_name": self.file_name,
            "url": self.path,
            "created_by": self.created_by,
            "created_at": _iso(self.created_at),
        }
