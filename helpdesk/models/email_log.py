"""Outbound email audit log."""

from datetime import datetime, timezone

from helpdesk.models import db

EMAIL_SENT = "sent"
EMAIL_FAILED = "failed"


class EmailLog(db.Model):
    """
    One row per attempted send.

    Failed rows carry the transport error, which is the per-recipient failure
    record of a notification dispatch.
    """

    __tablename__ = "email_logs"

    id = db.Column(db.Integer, primary_key=True)
    recipient_email = db.Column(db.String(255), nullable=False, index=True)
    recipient_name = db.Column(db.String(200), nullable=True)
    subject = db.Column(db.String(500), nullable=False)
    template_name = db.Column(db.String(100), nullable=True, comment="Email template used")
    event_type = db.Column(db.String(40), nullable=True, comment="Lifecycle event that triggered this email")
    status = db.Column(db.String(20), default="queued", comment="queued, sent, failed")
    error_message = db.Column(db.Text, nullable=True)

    ticket_id = db.Column(db.Integer, db.ForeignKey("tickets.id", ondelete="SET NULL"), nullable=True, index=True)

    sent_at = db.Column(db.DateTime(timezone=True), nullable=True)
    created_at = db.Column(db.DateTime(timezone=True), default=lambda: datetime.now(timezone.utc))

    def to_dict(self):
        return {
            "id": self.id,
            "recipient_email": self.recipient_email,
            "recipient_name": self.recipient_name,
            "subject": self.subject,
            "template_name": self.template_name,
            "event_type": self.event_type,
            "status": self.status,
            "error_message": self.error_message,
            "ticket_id": self.ticket_id,
            "sent_at": self.sent_at.isoformat() if self.sent_at else None,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }
