"""
Ticket Store — persistence for the ticket aggregate.

Methods stage changes on the current session and ``flush``; the lifecycle
controller owns ``commit`` / ``rollback`` so a create-with-attachments or a
comment-with-auto-advance is one transaction.

Conditional writes (``advance_if_new``, ``decide_approval``) are single
UPDATE statements with a guard in the WHERE clause and report whether they
matched a row. That makes concurrent link clicks or comment posts race-safe
without row locks.
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timezone

from sqlalchemy import case, func, or_

from helpdesk.models import db
from helpdesk.models.ticket import (
    APPROVAL_PENDING,
    COMPLETED_STATUSES,
    STATUS_NEW,
    STATUS_PROCESSING,
    Ticket,
    TicketAttachment,
    TicketComment,
)

logger = logging.getLogger(__name__)

MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 10

SORT_COLUMNS = {
    "createdAt": Ticket.created_at,
    "created_at": Ticket.created_at,
    "updatedAt": Ticket.updated_at,
    "updated_at": Ticket.updated_at,
    "status": Ticket.status,
    "priority": Ticket.severity,
    "fullName": Ticket.full_name,
    "full_name": Ticket.full_name,
}


def _day_start(value: date) -> datetime:
    return datetime.combine(value, time.min, tzinfo=timezone.utc)


def _day_end(value: date) -> datetime:
    return datetime.combine(value, time.max, tzinfo=timezone.utc)


class TicketStore:

    # ── Reads ───────────────────────────────────────────────────────────

    def get_active(self, ticket_id) -> Ticket | None:
        try:
            ticket_id = int(ticket_id)
        except (TypeError, ValueError):
            return None
        ticket = db.session.get(Ticket, ticket_id)
        if ticket is None or not ticket.is_active:
            return None
        return ticket

    def reload(self, ticket: Ticket) -> Ticket:
        """Re-read a ticket after a bulk UPDATE bypassed the identity map."""
        db.session.refresh(ticket)
        return ticket

    def list_comments(self, ticket_id: int) -> list[TicketComment]:
        return (
            TicketComment.query_active()
            .filter(TicketComment.ticket_id == ticket_id)
            .order_by(TicketComment.created_at.asc(), TicketComment.id.asc())
            .all()
        )

    def list_attachments(self, ticket_id: int) -> list[TicketAttachment]:
        """Active attachments, oldest first, without empty or repeated paths."""
        rows = (
            TicketAttachment.query_active()
            .filter(TicketAttachment.ticket_id == ticket_id)
            .order_by(TicketAttachment.created_at.asc(), TicketAttachment.id.asc())
            .all()
        )
        seen = set()
        result = []
        for row in rows:
            path = (row.path or "").strip()
            if not path or path in seen:
                continue
            seen.add(path)
            result.append(row)
        return result

    def _filtered(self, filters: dict):
        q = Ticket.query_active()
        if filters.get("category_id") is not None:
            q = q.filter(Ticket.category_id == filters["category_id"])
        if filters.get("assigned_to_id") is not None:
            q = q.filter(Ticket.assigned_to_id == filters["assigned_to_id"])
        if filters.get("date_from") is not None:
            q = q.filter(Ticket.created_at >= _day_start(filters["date_from"]))
        if filters.get("date_to") is not None:
            q = q.filter(Ticket.created_at <= _day_end(filters["date_to"]))
        if filters.get("involving") is not None:
            user_id, identities = filters["involving"]
            clauses = [Ticket.assigned_to_id == user_id, Ticket.creator_user_id == user_id]
            if identities:
                clauses.append(Ticket.created_by.in_(identities))
            q = q.filter(or_(*clauses))
        return q

    def query(self, filters: dict, *, page: int = 1, limit: int = DEFAULT_PAGE_SIZE,
              sort: str = "createdAt", order: str = "desc") -> tuple[list[Ticket], int]:
        """Return ``(page_rows, total_matching)``."""
        column = SORT_COLUMNS.get(sort, Ticket.created_at)
        ordering = column.asc() if str(order).lower() == "asc" else column.desc()
        q = self._filtered(filters)
        total = q.count()
        rows = (
            q.order_by(ordering, Ticket.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
            .all()
        )
        return rows, total

    def summary_counts(self, filters: dict) -> dict:
        """Totals per status bucket; legacy RESOLVED / CLOSED count as completed."""
        q = self._filtered(filters).with_entities(
            func.count(Ticket.id),
            func.sum(case((Ticket.status == STATUS_NEW, 1), else_=0)),
            func.sum(case((Ticket.status == STATUS_PROCESSING, 1), else_=0)),
            func.sum(case((Ticket.status.in_(sorted(COMPLETED_STATUSES)), 1), else_=0)),
        )
        total, new, processing, completed = q.one()
        return {
            "total": int(total or 0),
            "new": int(new or 0),
            "processing": int(processing or 0),
            "completed": int(completed or 0),
        }

    # ── Writes (flush only) ─────────────────────────────────────────────

    def add_ticket(self, ticket: Ticket, attachment_paths: list[str]) -> list[TicketAttachment]:
        db.session.add(ticket)
        db.session.flush()
        attachments = []
        for path in attachment_paths:
            row = TicketAttachment(ticket_id=ticket.id, path=path, created_by=ticket.created_by)
            db.session.add(row)
            attachments.append(row)
        db.session.flush()
        return attachments

    def set_status(self, ticket: Ticket, status: str, updated_by: str, now: datetime) -> None:
        ticket.status = status
        ticket.updated_by = updated_by
        ticket.updated_at = now
        db.session.flush()

    def set_assignee(self, ticket: Ticket, assignee_id, updated_by: str, now: datetime) -> None:
        ticket.assigned_to_id = assignee_id
        ticket.updated_by = updated_by
        ticket.updated_at = now
        db.session.flush()

    def add_comment(self, ticket_id: int, *, text: str, user_id, author_name: str,
                    created_by: str) -> TicketComment:
        comment = TicketComment(
            ticket_id=ticket_id,
            user_id=user_id,
            author_name=author_name,
            comment=text,
            created_by=created_by,
        )
        db.session.add(comment)
        db.session.flush()
        return comment

    def advance_if_new(self, ticket_id: int, updated_by: str, now: datetime) -> bool:
        """NEW -> PROCESSING only if still NEW. Returns True when the row moved."""
        matched = (
            Ticket.query
            .filter(Ticket.id == ticket_id, Ticket.status == STATUS_NEW, Ticket.is_active.is_(True))
            .update(
                {"status": STATUS_PROCESSING, "updated_by": updated_by, "updated_at": now},
                synchronize_session=False,
            )
        )
        return matched == 1

    def decide_approval(self, ticket_id: int, *, decision: str, actioned_by_id, comments: str | None,
                        updated_by: str, now: datetime, clear_values: dict) -> bool:
        """
        Record an approval decision if the ticket is still Pending.

        ``clear_values`` nulls the token and expiry in the same statement.
        Returns False when another request decided first.
        """
        values = {
            "approval_status": decision,
            "actioned_by_id": actioned_by_id,
            "actioned_at": now,
            "action_comments": comments,
            "updated_by": updated_by,
            "updated_at": now,
        }
        values.update(clear_values)
        matched = (
            Ticket.query
            .filter(
                Ticket.id == ticket_id,
                Ticket.approval_status == APPROVAL_PENDING,
                Ticket.is_active.is_(True),
            )
            .update(values, synchronize_session=False)
        )
        return matched == 1

    def bulk_advance_commented(self, updated_by: str, now: datetime) -> int:
        """Move every active NEW ticket with at least one active comment to PROCESSING."""
        commented = (
            db.select(TicketComment.ticket_id)
            .where(TicketComment.is_active.is_(True))
            .distinct()
        )
        return (
            Ticket.query
            .filter(
                Ticket.status == STATUS_NEW,
                Ticket.is_active.is_(True),
                Ticket.id.in_(commented),
            )
            .update(
                {"status": STATUS_PROCESSING, "updated_by": updated_by, "updated_at": now},
                synchronize_session=False,
            )
        )
