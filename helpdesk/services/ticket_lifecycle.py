"""
Ticket Lifecycle Controller — the orchestrator behind every ticket route.

Owns the transaction boundary of each operation: it validates input, stages
writes through the Ticket Store, commits, and only then publishes a
notification event. A notification problem can never undo a committed state
change.

Design decisions:
    - Status is forward-only (NEW -> PROCESSING -> COMPLETED, NEW -> COMPLETED).
      Self-loops succeed without writing; backward moves raise
      InvalidTransitionError.
    - Only arrival at PROCESSING or COMPLETED is announced by email.
    - The approval gate (requires_approval tickets must be Approved before
      work starts) exists behind APPROVAL_GATE_ENABLED and is off by default.
    - Approve / reject is a compare-and-set on approval_status = 'Pending'
      that clears the link token in the same UPDATE. The loser of a race
      reports already_processed instead of failing.
    - The first comment on a NEW ticket moves it to PROCESSING silently.

Dependencies (tickets, directory, notifications, storage) are injected; use
``get_lifecycle()`` inside a request to build one from app config.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date, datetime, timezone
from math import ceil

from flask import current_app

from helpdesk.core.events import (
    STATUS_UPDATED,
    TICKET_APPROVED,
    TICKET_ASSIGNED,
    TICKET_CREATED,
    TICKET_REJECTED,
    NotificationEvent,
)
from helpdesk.core.exceptions import (
    ForbiddenError,
    InvalidAssigneeError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from helpdesk.core.identity import SYSTEM_ACTOR, ActorIdentity
from helpdesk.models import db
from helpdesk.models.ticket import (
    ALLOWED_STATUSES,
    APPROVAL_APPROVED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    CHANGE_MANAGEMENT_REQUEST_TYPE,
    NOTIFIED_STATUSES,
    STATUS_NEW,
    Ticket,
    validate_status_transition,
)
from helpdesk.services.approval_token import (
    DEFAULT_TTL_HOURS,
    TokenCheck,
    consume_token_values,
    issue_token,
    validate_token,
)
from helpdesk.services.attachment_storage import AttachmentStorage
from helpdesk.services.directory_service import DirectoryStore
from helpdesk.services.email_service import EmailService
from helpdesk.services.notification_dispatcher import NotificationDispatcher, NotificationQueue
from helpdesk.services.recipient_resolver import RecipientResolver
from helpdesk.services.severity import format_severity, normalize_severity
from helpdesk.services.ticket_store import DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE, SORT_COLUMNS, TicketStore

logger = logging.getLogger(__name__)


# ── Request structures ─────────────────────────────────────────────────────────


def _first(data: dict, *keys):
    for key in keys:
        if key in data and data[key] is not None:
            return data[key]
    return None


def _text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _optional_int(data: dict, field: str, *keys) -> int | None:
    value = _first(data, *keys)
    if value is None or (isinstance(value, str) and not value.strip()):
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer", details={field: value})
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be an integer", details={field: value})


def _parse_date(value, field: str) -> date | None:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value).strip()[:10])
    except ValueError:
        raise ValidationError(f"{field} must be a date (YYYY-MM-DD)", details={field: value})


@dataclass(frozen=True)
class TicketFields:
    """Validated input for ticket creation. Accepts snake_case or the form's camelCase keys."""

    full_name: str
    description: str
    category_id: int
    contact_number: str | None = None
    department_id: int | None = None
    company_id: int | None = None
    issue_type_id: int | None = None
    request_type_id: int | None = None
    assigned_to_id: int | None = None
    priority: str | None = None

    @classmethod
    def from_payload(cls, data) -> "TicketFields":
        data = dict(data or {})
        errors = {}
        full_name = _text(_first(data, "full_name", "fullName"))
        description = _text(_first(data, "description"))
        if not full_name:
            errors["full_name"] = "required"
        if not description:
            errors["description"] = "required"
        category_id = _optional_int(data, "category_id", "category_id", "categoryId", "category")
        if category_id is None:
            errors["category_id"] = "required"
        if errors:
            raise ValidationError("Missing required ticket fields", details=errors)

        return cls(
            full_name=full_name,
            description=description,
            category_id=category_id,
            contact_number=_text(_first(data, "contact_number", "contactNumber")),
            department_id=_optional_int(data, "department_id", "department_id", "departmentId", "department"),
            company_id=_optional_int(data, "company_id", "company_id", "companyId", "company"),
            issue_type_id=_optional_int(data, "issue_type_id", "issue_type_id", "issueTypeId", "issueType"),
            request_type_id=_optional_int(
                data, "request_type_id", "request_type_id", "requestTypeId", "requestType",
            ),
            assigned_to_id=_optional_int(data, "assigned_to_id", "assigned_to_id", "assignedTo", "assignToId"),
            priority=_text(_first(data, "priority", "severity")),
        )


@dataclass(frozen=True)
class TicketQuery:
    """Listing filters, paging and sort parsed from query-string args."""

    category_id: int | None = None
    assigned_to_id: int | None = None
    date_from: date | None = None
    date_to: date | None = None
    page: int = 1
    limit: int = DEFAULT_PAGE_SIZE
    sort: str = "createdAt"
    order: str = "desc"

    @classmethod
    def from_args(cls, args) -> "TicketQuery":
        args = args or {}
        try:
            page = max(1, int(args.get("page", 1)))
        except (TypeError, ValueError):
            page = 1
        try:
            limit = min(MAX_PAGE_SIZE, max(1, int(args.get("limit", DEFAULT_PAGE_SIZE))))
        except (TypeError, ValueError):
            limit = DEFAULT_PAGE_SIZE
        sort = args.get("sort", "createdAt")
        order = str(args.get("order", "desc")).lower()
        return cls(
            category_id=_optional_int(args, "category", "category", "categoryId"),
            assigned_to_id=_optional_int(args, "assignedTo", "assignedTo", "assigned_to"),
            date_from=_parse_date(args.get("dateFrom") or args.get("date_from"), "dateFrom"),
            date_to=_parse_date(args.get("dateTo") or args.get("date_to"), "dateTo"),
            page=page,
            limit=limit,
            sort=sort if sort in SORT_COLUMNS else "createdAt",
            order="asc" if order == "asc" else "desc",
        )

    def filters(self) -> dict:
        return {
            "category_id": self.category_id,
            "assigned_to_id": self.assigned_to_id,
            "date_from": self.date_from,
            "date_to": self.date_to,
        }


def is_change_management(request_type_name: str | None) -> bool:
    return (request_type_name or "").strip().lower() == CHANGE_MANAGEMENT_REQUEST_TYPE


def _iso(value):
    return value.isoformat() if value else None


def _ref(row_id, name):
    if row_id is None:
        return None
    return {"id": row_id, "name": name or str(row_id)}


# ── Controller ─────────────────────────────────────────────────────────────────


class TicketLifecycleController:

    def __init__(
        self,
        *,
        tickets: TicketStore,
        directory: DirectoryStore,
        notifications: NotificationQueue,
        storage: AttachmentStorage | None = None,
        token_ttl_hours: int | float = DEFAULT_TTL_HOURS,
        approval_gate_enabled: bool = False,
        primary_it_head_id: int | None = None,
        clock=None,
    ):
        self.tickets = tickets
        self.directory = directory
        self.notifications = notifications
        self.storage = storage
        self.token_ttl_hours = token_ttl_hours
        self.approval_gate_enabled = approval_gate_enabled
        self.primary_it_head_id = primary_it_head_id
        self.clock = clock

    def _now(self) -> datetime:
        return self.clock() if self.clock else datetime.now(timezone.utc)

    def _require_ticket(self, ticket_id) -> Ticket:
        ticket = self.tickets.get_active(ticket_id)
        if ticket is None:
            raise NotFoundError(resource="Ticket", resource_id=ticket_id)
        return ticket

    def _publish(self, event: NotificationEvent) -> None:
        # State is committed at this point; nothing here may propagate
        try:
            self.notifications.publish(event)
        except Exception:
            logger.exception("Could not publish %s for ticket %s", event.event_type, event.ticket_id,
                             extra={"ticket_id": event.ticket_id, "event_type": event.event_type})

    def _actor_user(self, actor: ActorIdentity):
        if actor is None:
            return None
        return (
            self.directory.get_user(actor.user_id)
            or self.directory.find_by_uid(actor.uid)
            or self.directory.find_by_email(actor.email)
        )

    # ── Create ──────────────────────────────────────────────────────────

    def create_ticket(self, fields: TicketFields, attachments=(), actor: ActorIdentity = SYSTEM_ACTOR) -> dict:
        """Persist a ticket and its attachments atomically, then announce it."""
        actor = actor or SYSTEM_ACTOR
        attachments = list(attachments or [])
        if attachments and self.storage is None:
            raise ValidationError("Attachments are not accepted")

        if fields.assigned_to_id is not None and self.directory.get_user(fields.assigned_to_id) is None:
            raise InvalidAssigneeError(fields.assigned_to_id)

        now = self._now()
        requires_approval = is_change_management(self.directory.request_type_name(fields.request_type_id))
        token, expiry = (None, None)
        if requires_approval:
            token, expiry = issue_token(now, self.token_ttl_hours)

        paths: list[str] = []
        if attachments:
            self.storage.validate(attachments)
            paths = self.storage.save(attachments)

        ticket = Ticket(
            full_name=fields.full_name,
            contact_number=fields.contact_number,
            description=fields.description,
            department_id=fields.department_id,
            company_id=fields.company_id,
            category_id=fields.category_id,
            issue_type_id=fields.issue_type_id,
            request_type_id=fields.request_type_id,
            assigned_to_id=fields.assigned_to_id,
            severity=normalize_severity(fields.priority),
            status=STATUS_NEW,
            requires_approval=requires_approval,
            approval_status=APPROVAL_PENDING,
            approval_token=token,
            token_expiry=expiry,
            created_by=actor.display_name,
            creator_user_id=actor.user_id,
            creator_email=(actor.email or "").strip() or None,
            created_at=now,
        )
        try:
            rows = self.tickets.add_ticket(ticket, paths)
            db.session.commit()
        except Exception:
            db.session.rollback()
            if paths:
                self.storage.remove(paths)
            logger.exception("Ticket creation failed; rolled back %d attachment(s)", len(paths))
            raise

        result = {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "status": ticket.status,
            "approval_status": ticket.approval_status,
            "requires_approval": ticket.requires_approval,
            "attachment_count": len(rows),
            "attachment_ids": [row.id for row in rows],
        }
        logger.info(
            "Ticket %s created by %s (requires_approval=%s, attachments=%d)",
            result["ticket_number"], actor.display_name, requires_approval, len(rows),
            extra={"ticket_id": ticket.id, "event_type": TICKET_CREATED},
        )
        self._publish(NotificationEvent(TICKET_CREATED, ticket.id, actor, new_status=STATUS_NEW))
        return result

    # ── Status ──────────────────────────────────────────────────────────

    def change_status(self, ticket_id, requested_status, actor: ActorIdentity = SYSTEM_ACTOR) -> dict:
        actor = actor or SYSTEM_ACTOR
        ticket = self._require_ticket(ticket_id)

        requested = str(requested_status).strip().upper() if requested_status is not None else ""
        if requested not in ALLOWED_STATUSES:
            raise InvalidStatusError(requested_status)

        previous = ticket.status
        if previous == requested:
            return self._status_result(ticket, previous, changed=False)

        if not validate_status_transition(previous, requested):
            raise InvalidTransitionError(previous, requested)

        if (
            self.approval_gate_enabled
            and ticket.requires_approval
            and ticket.approval_status != APPROVAL_APPROVED
            and requested in NOTIFIED_STATUSES
        ):
            raise ForbiddenError(
                f"Ticket {ticket.ticket_number} needs IT Head approval before moving to {requested}"
            )

        self.tickets.set_status(ticket, requested, actor.display_name, self._now())
        db.session.commit()
        result = self._status_result(ticket, previous, changed=True)
        logger.info("Ticket %s status %s -> %s by %s", result["ticket_number"], previous, requested,
                    actor.display_name, extra={"ticket_id": ticket.id, "event_type": STATUS_UPDATED})

        if requested in NOTIFIED_STATUSES:
            self._publish(NotificationEvent(
                STATUS_UPDATED, ticket.id, actor, new_status=requested, previous_status=previous,
            ))
        return result

    @staticmethod
    def _status_result(ticket: Ticket, previous: str, *, changed: bool) -> dict:
        return {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "status": ticket.status,
            "previous_status": previous,
            "changed": changed,
            "updated_by": ticket.updated_by,
            "updated_at": _iso(ticket.updated_at),
        }

    # ── Assignment ──────────────────────────────────────────────────────

    def assign_ticket(self, ticket_id, assignee_id, actor: ActorIdentity = SYSTEM_ACTOR) -> dict:
        actor = actor or SYSTEM_ACTOR
        ticket = self._require_ticket(ticket_id)
        previous = ticket.assigned_to_id

        assignee = None
        if assignee_id is not None and str(assignee_id).strip() != "":
            assignee = self.directory.get_user(assignee_id)
            if assignee is None:
                raise InvalidAssigneeError(assignee_id)
        new_id = assignee.id if assignee is not None else None

        if new_id == previous:
            return self._assign_result(ticket, previous, changed=False)

        self.tickets.set_assignee(ticket, new_id, actor.display_name, self._now())
        db.session.commit()
        result = self._assign_result(ticket, previous, changed=True)
        logger.info("Ticket %s assigned %s -> %s by %s", result["ticket_number"], previous, new_id,
                    actor.display_name, extra={"ticket_id": ticket.id, "event_type": TICKET_ASSIGNED})

        if new_id is not None:
            self._publish(NotificationEvent(TICKET_ASSIGNED, ticket.id, actor, new_status=ticket.status))
        return result

    def _assign_result(self, ticket: Ticket, previous, *, changed: bool) -> dict:
        return {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "assigned_to_id": ticket.assigned_to_id,
            "assigned_to_name": self.directory.user_name(ticket.assigned_to_id),
            "previous_assigned_to_id": previous,
            "changed": changed,
            "updated_by": ticket.updated_by,
            "updated_at": _iso(ticket.updated_at),
        }

    # ── Comments ────────────────────────────────────────────────────────

    def add_comment(self, ticket_id, text, actor: ActorIdentity = SYSTEM_ACTOR) -> dict:
        actor = actor or SYSTEM_ACTOR
        body = str(text).strip() if text is not None else ""
        if not body:
            raise ValidationError("Comment text is required", details={"comment": "required"})
        ticket = self._require_ticket(ticket_id)

        user = self._actor_user(actor)
        author = user.name if user is not None and user.name else actor.display_name
        try:
            comment = self.tickets.add_comment(
                ticket.id,
                text=body,
                user_id=user.id if user is not None else None,
                author_name=author,
                created_by=actor.display_name,
            )
            moved = self.tickets.advance_if_new(ticket.id, actor.display_name, self._now())
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise

        if moved:
            logger.info("Ticket %s auto-moved to PROCESSING by first comment", ticket.ticket_number,
                        extra={"ticket_id": ticket.id})
        return {
            "ticket_id": ticket.id,
            "comment": comment.to_dict(),
            "auto_transitioned": moved,
            "status": ticket.status,
        }

    def list_comments(self, ticket_id) -> list[dict]:
        ticket = self._require_ticket(ticket_id)
        return [c.to_dict() for c in self.tickets.list_comments(ticket.id)]

    def bulk_advance_commented(self, actor: ActorIdentity = SYSTEM_ACTOR) -> dict:
        actor = actor or SYSTEM_ACTOR
        count = self.tickets.bulk_advance_commented(actor.display_name, self._now())
        db.session.commit()
        logger.info("Bulk-advanced %d commented NEW ticket(s) to PROCESSING", count)
        return {"updated": count}

    # ── Approval ────────────────────────────────────────────────────────

    def approve(self, ticket_id, actor: ActorIdentity | None, comments=None, token=None) -> dict:
        return self._decide(ticket_id, actor, APPROVAL_APPROVED, _text(comments), token)

    def reject(self, ticket_id, actor: ActorIdentity | None, reason=None, token=None) -> dict:
        return self._decide(ticket_id, actor, APPROVAL_REJECTED, _text(reason), token)

    def _decide(self, ticket_id, actor, decision: str, note: str | None, token) -> dict:
        is_head = actor is not None and actor.is_it_head
        token = _text(token)
        if not is_head and not token:
            raise ForbiddenError("Only an IT Head or a valid approval link can decide on this ticket")
        if decision == APPROVAL_REJECTED and not note:
            raise ValidationError("A rejection reason is required", details={"reason": "required"})

        ticket = self._require_ticket(ticket_id)
        if ticket.approval_status != APPROVAL_PENDING:
            return self._already_processed(ticket, detailed=is_head)

        now = self._now()
        if is_head:
            actioned_by_id = actor.user_id
            updated_by = actor.display_name
        else:
            check = validate_token(ticket, token, now)
            if check is not TokenCheck.OK:
                logger.warning("Approval link rejected for ticket %s: %s", ticket.id, check.value,
                               extra={"ticket_id": ticket.id})
                if check is TokenCheck.EXPIRED:
                    raise ForbiddenError("This approval link has expired")
                raise ForbiddenError("This approval link is not valid")
            head = self.directory.primary_it_head(self.primary_it_head_id)
            actioned_by_id = head.id if head is not None else None
            updated_by = head.name if head is not None else "IT Head (email link)"

        won = self.tickets.decide_approval(
            ticket.id,
            decision=decision,
            actioned_by_id=actioned_by_id,
            comments=note,
            updated_by=updated_by,
            now=now,
            clear_values=consume_token_values(),
        )
        if not won:
            db.session.rollback()
            return self._already_processed(self.tickets.reload(ticket), detailed=is_head)
        db.session.commit()
        ticket = self.tickets.reload(ticket)

        event_type = TICKET_APPROVED if decision == APPROVAL_APPROVED else TICKET_REJECTED
        logger.info("Ticket %s %s by user %s", ticket.ticket_number, decision.lower(), actioned_by_id,
                    extra={"ticket_id": ticket.id, "event_type": event_type})
        result = {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "approval_status": ticket.approval_status,
            "already_processed": False,
            "actioned_by_id": ticket.actioned_by_id,
            "actioned_at": _iso(ticket.actioned_at),
            "action_comments": ticket.action_comments,
        }
        self._publish(NotificationEvent(event_type, ticket.id, actor, new_status=ticket.status, note=note))
        return result

    @staticmethod
    def _already_processed(ticket: Ticket, *, detailed: bool) -> dict:
        """Outcome of an earlier decision; who decided and why is shown to IT Heads only."""
        result = {
            "ticket_id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "approval_status": ticket.approval_status,
            "already_processed": True,
        }
        if detailed:
            result.update(
                actioned_by_id=ticket.actioned_by_id,
                actioned_at=_iso(ticket.actioned_at),
                action_comments=ticket.action_comments,
            )
        return result

    # ── Reads ───────────────────────────────────────────────────────────

    def get_ticket(self, ticket_id) -> dict:
        ticket = self._require_ticket(ticket_id)
        d = self.directory
        return {
            "id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "full_name": ticket.full_name,
            "contact_number": ticket.contact_number,
            "description": ticket.description,
            "status": ticket.status,
            "priority": format_severity(ticket.severity),
            "department": _ref(ticket.department_id, d.department_name(ticket.department_id)),
            "company": _ref(ticket.company_id, d.company_name(ticket.company_id)),
            "category": _ref(ticket.category_id, d.category_name(ticket.category_id)),
            "issue_type": _ref(ticket.issue_type_id, d.issue_type_name(ticket.issue_type_id)),
            "request_type": _ref(ticket.request_type_id, d.request_type_name(ticket.request_type_id)),
            "assigned_to": _ref(ticket.assigned_to_id, d.user_name(ticket.assigned_to_id)),
            "approval": {
                "requires_approval": ticket.requires_approval,
                "status": ticket.approval_status or APPROVAL_PENDING,
                "actioned_by": _ref(ticket.actioned_by_id, d.user_name(ticket.actioned_by_id)),
                "actioned_at": _iso(ticket.actioned_at),
                "comments": ticket.action_comments,
                "has_pending_token": ticket.has_pending_token,
            },
            "attachments": [a.to_dict() for a in self.tickets.list_attachments(ticket.id)],
            "created_by": ticket.created_by,
            "created_at": _iso(ticket.created_at),
            "updated_by": ticket.updated_by,
            "updated_at": _iso(ticket.updated_at),
        }

    def _summary_row(self, ticket: Ticket) -> dict:
        d = self.directory
        return {
            "id": ticket.id,
            "ticket_number": ticket.ticket_number,
            "full_name": ticket.full_name,
            "category": _ref(ticket.category_id, d.category_name(ticket.category_id)),
            "assigned_to": _ref(ticket.assigned_to_id, d.user_name(ticket.assigned_to_id)),
            "issue_type": _ref(ticket.issue_type_id, d.issue_type_name(ticket.issue_type_id)),
            "request_type": _ref(ticket.request_type_id, d.request_type_name(ticket.request_type_id)),
            "priority": format_severity(ticket.severity),
            "status": ticket.status,
            "approval_status": ticket.approval_status,
            "created_at": _iso(ticket.created_at),
            "updated_at": _iso(ticket.updated_at),
            "description": ticket.description,
        }

    def _page(self, query: TicketQuery, filters: dict) -> tuple[list[dict], dict]:
        rows, total = self.tickets.query(
            filters, page=query.page, limit=query.limit, sort=query.sort, order=query.order,
        )
        pagination = {
            "current_page": query.page,
            "total_pages": ceil(total / query.limit) if total else 0,
            "total_items": total,
            "items_per_page": query.limit,
        }
        return [self._summary_row(t) for t in rows], pagination

    def list_tickets(self, query: TicketQuery | None = None) -> dict:
        query = query or TicketQuery()
        filters = query.filters()
        items, pagination = self._page(query, filters)
        return {
            "tickets": items,
            "pagination": pagination,
            "summary": self.tickets.summary_counts(filters),
        }

    def list_my_tickets(self, actor: ActorIdentity, query: TicketQuery | None = None) -> dict:
        """Tickets in the actor's category; the summary covers tickets assigned to or raised by them."""
        query = query or TicketQuery()
        user = self._actor_user(actor)
        if user is None or user.category_id is None:
            raise ValidationError("User has no category assigned")

        filters = {
            "category_id": user.category_id,
            "date_from": query.date_from,
            "date_to": query.date_to,
        }
        items, pagination = self._page(query, filters)
        identities = [v for v in (user.email, user.uid, user.name) if v]
        summary = self.tickets.summary_counts({
            "category_id": user.category_id,
            "involving": (user.id, identities),
        })
        summary["team_total"] = self.tickets.summary_counts({"category_id": user.category_id})["total"]
        return {
            "tickets": items,
            "pagination": pagination,
            "summary": summary,
            "category_id": user.category_id,
        }


# ── Factory ────────────────────────────────────────────────────────────────────


def get_lifecycle() -> TicketLifecycleController:
    """Wire a controller from the current app's config (call inside an app context)."""
    cfg = current_app.config
    tickets = TicketStore()
    directory = DirectoryStore()
    notifications = NotificationQueue(
        tickets=tickets,
        directory=directory,
        resolver=RecipientResolver(directory),
        dispatcher=NotificationDispatcher(EmailService),
        run_async=bool(cfg.get("NOTIFICATIONS_ASYNC", False)),
        app_url=cfg.get("APP_URL", ""),
    )
    storage = AttachmentStorage(
        cfg["UPLOAD_FOLDER"],
        max_files=cfg.get("MAX_ATTACHMENTS", 5),
        allowed_extensions=cfg.get("ALLOWED_UPLOAD_EXTENSIONS"),
    )
    return TicketLifecycleController(
        tickets=tickets,
        directory=directory,
        notifications=notifications,
        storage=storage,
        token_ttl_hours=cfg.get("APPROVAL_TOKEN_TTL_HOURS", DEFAULT_TTL_HOURS),
        approval_gate_enabled=bool(cfg.get("APPROVAL_GATE_ENABLED", False)),
        primary_it_head_id=cfg.get("PRIMARY_IT_HEAD_USER_ID"),
    )
