"""
IT Help-Desk Ticket Service
Email Service — template rendering and SMTP delivery.

When SMTP is not configured, emails are logged but not sent (dev/test mode).
Every attempt is recorded in EmailLog; a transport failure records a
``failed`` row and raises ``EmailDeliveryError`` so the dispatcher can count
it.

Configuration (app config):
    MAIL_SERVER          SMTP host (default: None -> log-only mode)
    MAIL_PORT            SMTP port (default: 587)
    MAIL_USE_TLS         Use STARTTLS (default: true)
    MAIL_USERNAME        SMTP username
    MAIL_PASSWORD        SMTP password
    MAIL_DEFAULT_SENDER  From address
    MAIL_SENDER_NAME     From display name
"""

from __future__ import annotations

import logging
import smtplib
from datetime import datetime, timezone
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formataddr
from typing import Any

from flask import current_app
from markupsafe import escape

from helpdesk.core.exceptions import EmailDeliveryError
from helpdesk.models import db
from helpdesk.models.email_log import EMAIL_FAILED, EMAIL_SENT, EmailLog

logger = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
#  Email Templates
# ═══════════════════════════════════════════════════════════════════════════

_HEADER = """
        <div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
            <div style="background: {header_color}; color: white; padding: 16px 24px; border-radius: 8px 8px 0 0;">
                <h2 style="margin: 0; font-size: 18px;">IT Support</h2>
                <p style="margin: 4px 0 0; font-size: 13px;">{headline}</p>
            </div>
            <div style="background: #f8fafc; padding: 24px; border: 1px solid #e2e8f0; border-top: none;">
"""

_FOOTER = """
            </div>
            <div style="background: #f1f5f9; padding: 12px 24px; border-radius: 0 0 8px 8px;
                        border: 1px solid #e2e8f0; border-top: none; text-align: center;">
                <p style="color: #94a3b8; font-size: 12px; margin: 0;">
                    IT Support System - Automated notification
                </p>
            </div>
        </div>
"""

_DETAILS_TABLE = """
                <table style="width: 100%; border-collapse: collapse; margin: 12px 0; font-size: 14px;">
                    <tr><td style="padding: 6px; color: #64748b;">Ticket</td><td style="padding: 6px;"><strong>{ticket_number}</strong></td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Requester</td><td style="padding: 6px;">{full_name}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Contact</td><td style="padding: 6px;">{contact_number}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Category</td><td style="padding: 6px;">{category}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Department</td><td style="padding: 6px;">{department}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Company</td><td style="padding: 6px;">{company}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Issue type</td><td style="padding: 6px;">{issue_type}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Request type</td><td style="padding: 6px;">{request_type}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Severity</td><td style="padding: 6px;">{severity}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Status</td><td style="padding: 6px;">{status}</td></tr>
                    <tr><td style="padding: 6px; color: #64748b;">Assigned to</td><td style="padding: 6px;">{assignee}</td></tr>
                </table>
                <p style="color: #334155; line-height: 1.6; white-space: pre-wrap;">{description}</p>
"""

_TEMPLATES: dict[str, dict[str, str]] = {
    "operational_created": {
        "subject": "New Ticket Created - {ticket_number} ({category})",
        "html": _HEADER + """
                <p style="color: #334155;">Hello {recipient_name}, a new ticket was raised by {created_by}.</p>
""" + _DETAILS_TABLE + "{approval_actions}" + _FOOTER,
    },
    "creator_created": {
        "subject": "Ticket Created Successfully - {ticket_number} ({category})",
        "html": _HEADER + """
                <p style="color: #334155;">Hello {recipient_name},</p>
                <p style="color: #334155; line-height: 1.6;">
                    Your ticket <strong>{ticket_number}</strong> has been created and the {category} team
                    has been notified. Current status: <strong>{status}</strong>.
                </p>
                {approval_note}
""" + _FOOTER,
    },
    "operational_status": {
        "subject": "Ticket Status Update - {ticket_number} ({category}) - {status}",
        "html": _HEADER + """
                <p style="color: #334155;">
                    {updated_by} moved this ticket from <strong>{previous_status}</strong>
                    to <strong>{status}</strong>.
                </p>
""" + _DETAILS_TABLE + _FOOTER,
    },
    "creator_status": {
        "subject": "Your Ticket Update - {ticket_number} ({status})",
        "html": _HEADER + """
                <p style="color: #334155;">Hello {recipient_name},</p>
                <p style="color: #334155; line-height: 1.6;">
                    Your ticket <strong>{ticket_number}</strong> is now <strong>{status}</strong>
                    (previously {previous_status}).
                </p>
""" + _FOOTER,
    },
    "assignment": {
        "subject": "Ticket Assigned to You: {ticket_number}",
        "html": _HEADER + """
                <p style="color: #334155;">Hello {recipient_name}, {updated_by} assigned this ticket to you.</p>
""" + _DETAILS_TABLE + _FOOTER,
    },
    "approval": {
        "subject": "Ticket Approved - {ticket_number} ({category})",
        "html": _HEADER + """
                <div style="background: #f0fdf4; border: 1px solid #bbf7d0; padding: 16px; border-radius: 8px;">
                    <h3 style="color: #065f46; margin: 0 0 8px;">Ticket Approved</h3>
                    <div style="color: #065f46; font-size: 14px;"><strong>Approved by:</strong> {actioned_by}</div>
                    <div style="color: #065f46; font-size: 14px;"><strong>Comments:</strong> {note}</div>
                </div>
""" + _DETAILS_TABLE + _FOOTER,
    },
    "rejection": {
        "subject": "Ticket Rejected - {ticket_number} ({category})",
        "html": _HEADER + """
                <div style="background: #fef2f2; border: 1px solid #fecaca; padding: 16px; border-radius: 8px;">
                    <h3 style="color: #dc2626; margin: 0 0 8px;">Ticket Rejected</h3>
                    <div style="color: #dc2626; font-size: 14px;"><strong>Rejected by:</strong> {actioned_by}</div>
                    <div style="color: #92400e; font-size: 14px; white-space: pre-wrap;"><strong>Reason:</strong> {note}</div>
                </div>
""" + _DETAILS_TABLE + _FOOTER,
    },
}

_APPROVAL_ACTIONS = """
                <div style="background: #fff3cd; border: 1px solid #ffeeba; padding: 16px; border-radius: 8px; margin-top: 16px;">
                    <p style="color: #856404; margin: 0 0 12px; font-size: 14px;">
                        This is a <strong>Change Management Request</strong> that requires your approval.
                    </p>
                    <a href="{approve_url}" style="background: #16a34a; color: white; padding: 8px 16px; border-radius: 6px; text-decoration: none;">Approve Ticket</a>
                    &nbsp;
                    <a href="{reject_url}" style="background: #dc2626; color: white; padding: 8px 16px; border-radius: 6px; text-decoration: none;">Reject Ticket</a>
                </div>
"""

_APPROVAL_NOTE = """
                <p style="color: #856404; font-size: 14px;">This request needs IT Head approval before work starts.</p>
"""

HEADER_COLORS = {
    "operational_created": "#1e293b",
    "creator_created": "#1e293b",
    "operational_status": "#2563eb",
    "creator_status": "#2563eb",
    "assignment": "#7c3aed",
    "approval": "#16a34a",
    "rejection": "#dc2626",
}

# Context keys that carry pre-rendered HTML fragments
_RAW_KEYS = frozenset({"approval_actions", "approval_note"})


class EmailService:
    """
    Email sending service with template support.

    In development/test mode (no MAIL_SERVER configured), emails are
    logged to the database but not actually sent via SMTP.
    """

    @staticmethod
    def is_configured() -> bool:
        """Check if SMTP is configured."""
        return bool(current_app.config.get("MAIL_SERVER"))

    @staticmethod
    def get_template(template_name: str) -> dict[str, str] | None:
        """Get an email template by name."""
        return _TEMPLATES.get(template_name)

    @staticmethod
    def approval_actions_html(approve_url: str, reject_url: str) -> str:
        return _APPROVAL_ACTIONS.format(approve_url=escape(approve_url), reject_url=escape(reject_url))

    @staticmethod
    def approval_note_html() -> str:
        return _APPROVAL_NOTE

    @classmethod
    def render(cls, template_name: str, context: dict[str, Any]) -> tuple[str, str]:
        """Return ``(subject, html_body)``; values are HTML-escaped except fragments."""
        template = cls.get_template(template_name)
        if not template:
            raise KeyError(f"Email template not found: {template_name}")

        safe = _SafeDict()
        for key, value in context.items():
            text = "" if value is None else str(value)
            safe[key] = text if key in _RAW_KEYS else str(escape(text))
        subject = template["subject"].format_map(_SafeDict(context))
        safe.setdefault("header_color", HEADER_COLORS.get(template_name, "#1e293b"))
        safe.setdefault("headline", str(escape(subject)))
        for key in _RAW_KEYS:
            safe.setdefault(key, "")

        html_body = template["html"].format_map(safe)
        return subject, html_body

    @classmethod
    def send(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        subject: str,
        html_body: str,
        template_name: str | None = None,
        event_type: str | None = None,
        ticket_id: int | None = None,
    ) -> EmailLog:
        """
        Send an email and log it.

        Raises:
            EmailDeliveryError: SMTP transport failed (a failed EmailLog row is kept).
        """
        log = EmailLog(
            recipient_email=to_email,
            recipient_name=to_name,
            subject=subject[:500],
            template_name=template_name,
            event_type=event_type,
            status="queued",
            ticket_id=ticket_id,
        )
        db.session.add(log)
        db.session.flush()

        if not cls.is_configured():
            # Dev/test mode — log only
            log.status = EMAIL_SENT
            log.sent_at = datetime.now(timezone.utc)
            logger.info(
                "Email (dev mode): to=%s subject='%s' template=%s",
                to_email, subject, template_name,
                extra={"ticket_id": ticket_id, "event_type": event_type},
            )
            return log

        try:
            cls._send_smtp(to_email=to_email, to_name=to_name,
                           subject=subject, html_body=html_body)
        except (smtplib.SMTPException, OSError) as exc:
            log.status = EMAIL_FAILED
            log.error_message = str(exc)[:1000]
            db.session.flush()
            raise EmailDeliveryError(to_email, str(exc)) from exc

        log.status = EMAIL_SENT
        log.sent_at = datetime.now(timezone.utc)
        logger.info("Email sent: to=%s subject='%s'", to_email, subject,
                    extra={"ticket_id": ticket_id, "event_type": event_type})
        return log

    @classmethod
    def send_from_template(
        cls,
        *,
        to_email: str,
        to_name: str | None = None,
        template_name: str,
        context: dict[str, Any],
        event_type: str | None = None,
        ticket_id: int | None = None,
    ) -> EmailLog:
        """Render a named template and send it."""
        subject, html_body = cls.render(template_name, context)
        return cls.send(
            to_email=to_email,
            to_name=to_name,
            subject=subject,
            html_body=html_body,
            template_name=template_name,
            event_type=event_type,
            ticket_id=ticket_id,
        )

    @staticmethod
    def _send_smtp(*, to_email: str, to_name: str | None,
                   subject: str, html_body: str) -> None:
        """Actually send via SMTP."""
        cfg = current_app.config
        server = cfg.get("MAIL_SERVER")
        port = cfg.get("MAIL_PORT", 587)
        use_tls = cfg.get("MAIL_USE_TLS", True)
        username = cfg.get("MAIL_USERNAME")
        password = cfg.get("MAIL_PASSWORD")
        sender = cfg.get("MAIL_DEFAULT_SENDER") or f"noreply@{server}"
        sender_name = cfg.get("MAIL_SENDER_NAME")

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = formataddr((sender_name, sender)) if sender_name else sender
        msg["To"] = formataddr((to_name, to_email)) if to_name else to_email
        msg.attach(MIMEText(html_body, "html"))

        with smtplib.SMTP(server, port, timeout=30) as smtp:
            if use_tls:
                smtp.starttls()
            if username and password:
                smtp.login(username, password)
            smtp.send_message(msg)


class _SafeDict(dict):
    """Dict that returns {key} for missing keys instead of raising."""

    def __missing__(self, key):
        return f"{{{key}}}"
