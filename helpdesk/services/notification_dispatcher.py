"""
Notification dispatch for ticket lifecycle events.

    NotificationDispatcher.dispatch(event, snapshot, recipients) -> DispatchReport
        Picks a message variant per recipient, renders and sends each email
        independently. A failing recipient is logged and counted; it never
        stops the others and nothing is retried.

    NotificationQueue.publish(event)
        Called by the lifecycle controller after commit. Resolves recipients,
        dispatches and commits the email log, inline or on a daemon thread
        (NOTIFICATIONS_ASYNC). Errors are logged and swallowed so a committed
        state change is never affected.

Variants:
    approval / rejection   approval decision events, every recipient
    assignment             TICKET_ASSIGNED
    creator                the ticket creator on created / status events
    operational            everyone else (full classification fields)
"""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass, field

from flask import current_app

from helpdesk.core.events import (
    STATUS_UPDATED,
    TICKET_APPROVED,
    TICKET_ASSIGNED,
    TICKET_CREATED,
    TICKET_REJECTED,
)
from helpdesk.models import db
from helpdesk.services.email_service import EmailService
from helpdesk.services.recipient_resolver import REL_CREATOR
from helpdesk.services.severity import format_severity

logger = logging.getLogger(__name__)

VARIANT_APPROVAL = "approval"
VARIANT_REJECTION = "rejection"
VARIANT_ASSIGNMENT = "assignment"
VARIANT_CREATOR = "creator"
VARIANT_OPERATIONAL = "operational"


@dataclass
class DispatchReport:
    sent: list[str] = field(default_factory=list)
    failed: dict[str, str] = field(default_factory=dict)

    def to_dict(self):
        return {"sent": list(self.sent), "failed": dict(self.failed)}


def variant_for(event_type: str, relationship: str) -> str:
    if event_type == TICKET_APPROVED:
        return VARIANT_APPROVAL
    if event_type == TICKET_REJECTED:
        return VARIANT_REJECTION
    if event_type == TICKET_ASSIGNED:
        return VARIANT_ASSIGNMENT
    if relationship == REL_CREATOR:
        return VARIANT_CREATOR
    return VARIANT_OPERATIONAL


def template_for(event_type: str, variant: str) -> str:
    if variant in (VARIANT_APPROVAL, VARIANT_REJECTION, VARIANT_ASSIGNMENT):
        return variant
    suffix = "created" if event_type == TICKET_CREATED else "status"
    return f"{variant}_{suffix}"


def build_snapshot(ticket, directory, event=None, app_url: str = "") -> dict:
    """Display-ready ticket fields; names degrade to raw ids when unresolvable."""

    def named(lookup, row_id):
        if row_id is None:
            return "N/A"
        return lookup(row_id) or str(row_id)

    snapshot = {
        "ticket_id": ticket.id,
        "ticket_number": ticket.ticket_number,
        "full_name": ticket.full_name,
        "contact_number": ticket.contact_number or "N/A",
        "description": ticket.description or "",
        "category": named(directory.category_name, ticket.category_id),
        "department": named(directory.department_name, ticket.department_id),
        "company": named(directory.company_name, ticket.company_id),
        "issue_type": named(directory.issue_type_name, ticket.issue_type_id),
        "request_type": named(directory.request_type_name, ticket.request_type_id),
        "severity": format_severity(ticket.severity),
        "status": ticket.status,
        "previous_status": ticket.status,
        "assignee": named(directory.user_name, ticket.assigned_to_id) if ticket.assigned_to_id else "Unassigned",
        "created_by": ticket.created_by,
        "updated_by": ticket.updated_by or ticket.created_by,
        "requires_approval": bool(ticket.requires_approval),
        "approval_status": ticket.approval_status,
        "actioned_by": named(directory.user_name, ticket.actioned_by_id) if ticket.actioned_by_id else "IT Head",
        "note": ticket.action_comments or "",
        "approve_url": None,
        "reject_url": None,
    }
    if event is not None:
        if event.previous_status:
            snapshot["previous_status"] = event.previous_status
        if event.note:
            snapshot["note"] = event.note
        if event.actor is not None and event.event_type in (STATUS_UPDATED, TICKET_ASSIGNED):
            snapshot["updated_by"] = event.actor.display_name
    if ticket.approval_token:
        base = f"{app_url.rstrip('/')}/api/v1/tickets/{ticket.id}"
        snapshot["approve_url"] = f"{base}/approve?token={ticket.approval_token}"
        snapshot["reject_url"] = f"{base}/reject?token={ticket.approval_token}"
    return snapshot


class NotificationDispatcher:

    def __init__(self, sender=EmailService):
        self.sender = sender

    def _context(self, event, snapshot, recipient) -> dict:
        context = dict(snapshot)
        context["recipient_name"] = recipient.name
        if (
            event.event_type == TICKET_CREATED
            and recipient.is_it_head
            and snapshot.get("approve_url")
        ):
            context["approval_actions"] = EmailService.approval_actions_html(
                snapshot["approve_url"], snapshot["reject_url"],
            )
        if event.event_type == TICKET_CREATED and snapshot.get("requires_approval"):
            context["approval_note"] = EmailService.approval_note_html()
        return context

    def dispatch(self, event, snapshot: dict, recipients: dict) -> DispatchReport:
        report = DispatchReport()
        for key, recipient in recipients.items():
            variant = variant_for(event.event_type, recipient.relationship)
            template_name = template_for(event.event_type, variant)
            try:
                self.sender.send_from_template(
                    to_email=recipient.email,
                    to_name=recipient.name,
                    template_name=template_name,
                    context=self._context(event, snapshot, recipient),
                    event_type=event.event_type,
                    ticket_id=snapshot.get("ticket_id"),
                )
            except Exception as exc:
                logger.warning(
                    "Notification to %s failed (%s, ticket %s): %s",
                    recipient.email, event.event_type, snapshot.get("ticket_id"), exc,
                    extra={"ticket_id": snapshot.get("ticket_id"), "event_type": event.event_type},
                )
                report.failed[key] = str(exc)
                continue
            report.sent.append(key)

        logger.info(
            "Dispatched %s for ticket %s: sent=%d failed=%d",
            event.event_type, snapshot.get("ticket_id"), len(report.sent), len(report.failed),
            extra={"ticket_id": snapshot.get("ticket_id"), "event_type": event.event_type},
        )
        return report


class NotificationQueue:
    """Post-commit side effects: resolve recipients, dispatch, record logs."""

    def __init__(self, *, tickets, directory, resolver, dispatcher,
                 run_async: bool = False, app_url: str = ""):
        self.tickets = tickets
        self.directory = directory
        self.resolver = resolver
        self.dispatcher = dispatcher
        self.run_async = run_async
        self.app_url = app_url
        self.last_report: DispatchReport | None = None

    def publish(self, event) -> None:
        if not self.run_async:
            self.handle(event)
            return
        app = current_app._get_current_object()
        t = threading.Thread(target=self._handle_in_background, args=(app, event), daemon=True)
        t.start()

    def handle(self, event) -> DispatchReport | None:
        try:
            ticket = self.tickets.get_active(event.ticket_id)
            if ticket is None:
                logger.warning("Notification skipped: ticket %s no longer active", event.ticket_id,
                               extra={"ticket_id": event.ticket_id, "event_type": event.event_type})
                return None
            recipients = self.resolver.resolve(ticket, event, event.actor)
            snapshot = build_snapshot(ticket, self.directory, event, self.app_url)
            report = self.dispatcher.dispatch(event, snapshot, recipients)
            db.session.commit()
        except Exception:
            logger.exception("Notification handling failed for %s on ticket %s",
                             event.event_type, event.ticket_id,
                             extra={"ticket_id": event.ticket_id, "event_type": event.event_type})
            db.session.rollback()
            return None
        self.last_report = report
        return report

    def _handle_in_background(self, app, event) -> None:
        # Background threads need their own app context for DB access
        with app.app_context():
            self.handle(event)
            db.session.remove()
