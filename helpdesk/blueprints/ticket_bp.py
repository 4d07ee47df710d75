"""
Ticket Blueprint — HTTP surface of the ticket lifecycle.

Endpoints (prefix /api/v1):
    GET    /tickets                       list with filters, paging, summary
    GET    /tickets/my-tickets            tickets in the caller's category
    PUT    /tickets/bulk-update-status    advance commented NEW tickets
    POST   /tickets                       create (JSON or multipart with attachments)
    GET    /tickets/<id>                  detail
    PUT    /tickets/<id>/status           {"status": ...} or {"statusId": ...}
    PUT    /tickets/<id>/assign           {"assignToId": <int | null>}
    POST   /tickets/<id>/comments         {"comment": ...}
    GET    /tickets/<id>/comments
    PUT    /tickets/<id>/approve          JSON; IT Head or ?token=
    GET    /tickets/<id>/approve          HTML; shows a confirm form until ?confirm=yes is given
    PUT    /tickets/<id>/reject           JSON; reason required
    GET    /tickets/<id>/reject           HTML; shows a reason form until ?reason= is given

Layer contract:
    - Blueprint: parse input, take the actor from ``g.actor``, call the
      lifecycle controller, return JSON (or HTML for link clicks).
    - NO db.session calls here; the controller owns every transaction.
"""

import logging

from flask import Blueprint, g, jsonify, render_template_string, request

from helpdesk.core.exceptions import (
    ForbiddenError,
    InvalidAssigneeError,
    InvalidStatusError,
    InvalidTransitionError,
    NotFoundError,
    ValidationError,
)
from helpdesk.middleware.jwt_auth import require_actor
from helpdesk.services.ticket_lifecycle import TicketFields, TicketQuery, get_lifecycle
from helpdesk.utils.errors import E, api_error

logger = logging.getLogger(__name__)

ticket_bp = Blueprint("tickets", __name__, url_prefix="/api/v1")


# ── Error handlers ─────────────────────────────────────────────────────────────


@ticket_bp.errorhandler(NotFoundError)
def _handle_not_found(error: NotFoundError):
    return api_error(E.NOT_FOUND, str(error))


@ticket_bp.errorhandler(InvalidStatusError)
def _handle_invalid_status(error: InvalidStatusError):
    return api_error(E.INVALID_STATUS, str(error), details=error.details)


@ticket_bp.errorhandler(InvalidAssigneeError)
def _handle_invalid_assignee(error: InvalidAssigneeError):
    return api_error(E.INVALID_ASSIGNEE, str(error), details=error.details)


@ticket_bp.errorhandler(InvalidTransitionError)
def _handle_invalid_transition(error: InvalidTransitionError):
    return api_error(E.CONFLICT_STATE, str(error), details=error.details)


@ticket_bp.errorhandler(ValidationError)
def _handle_validation(error: ValidationError):
    return api_error(E.VALIDATION_INVALID, str(error), details=error.details)


@ticket_bp.errorhandler(ForbiddenError)
def _handle_forbidden(error: ForbiddenError):
    return api_error(E.FORBIDDEN, str(error))


# ── Helpers ────────────────────────────────────────────────────────────────────


def _json_body() -> dict:
    return request.get_json(silent=True) or {}


_PAGE = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>{{ title }}</title></head>
<body style="font-family: Arial, sans-serif; background: #f1f5f9; padding: 40px;">
  <div style="max-width: 520px; margin: 0 auto; background: white; border-radius: 8px; padding: 32px;
              border-top: 6px solid {{ color }};">
    <h2 style="margin-top: 0; color: #1e293b;">{{ title }}</h2>
    <p style="color: #475569; line-height: 1.6;">{{ message }}</p>
    {% if ticket_number %}<p style="color: #64748b;">Ticket: <strong>{{ ticket_number }}</strong></p>{% endif %}
  </div>
</body>
</html>
"""

_CONFIRM_FORM = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>Approve ticket</title></head>
<body style="font-family: Arial, sans-serif; background: #f1f5f9; padding: 40px;">
  <div style="max-width: 520px; margin: 0 auto; background: white; border-radius: 8px; padding: 32px;
              border-top: 6px solid #16a34a;">
    <h2 style="margin-top: 0; color: #1e293b;">Approve ticket #{{ ticket_id }}</h2>
    <form method="get" action="">
      <input type="hidden" name="token" value="{{ token }}">
      <input type="hidden" name="confirm" value="yes">
      <label for="comments" style="color: #475569;">Comments (optional)</label>
      <textarea id="comments" name="comments" rows="4"
                style="width: 100%; margin: 8px 0 16px; padding: 8px;"></textarea>
      <button type="submit" style="background: #16a34a; color: white; border: 0; padding: 10px 18px;
              border-radius: 6px;">Approve</button>
    </form>
  </div>
</body>
</html>
"""

_REASON_FORM = """<!doctype html>
<html>
<head><meta charset="utf-8"><title>Reject ticket</title></head>
<body style="font-family: Arial, sans-serif; background: #f1f5f9; padding: 40px;">
  <div style="max-width: 520px; margin: 0 auto; background: white; border-radius: 8px; padding: 32px;
              border-top: 6px solid #dc2626;">
    <h2 style="margin-top: 0; color: #1e293b;">Reject ticket #{{ ticket_id }}</h2>
    <form method="get" action="">
      <input type="hidden" name="token" value="{{ token }}">
      <label for="reason" style="color: #475569;">Reason for rejection</label>
      <textarea id="reason" name="reason" rows="5" required
                style="width: 100%; margin: 8px 0 16px; padding: 8px;"></textarea>
      <button type="submit" style="background: #dc2626; color: white; border: 0; padding: 10px 18px;
              border-radius: 6px;">Reject</button>
    </form>
  </div>
</body>
</html>
"""


def _page(title, message, *, status=200, color="#16a34a", ticket_number=None):
    html = render_template_string(
        _PAGE, title=title, message=message, color=color, ticket_number=ticket_number,
    )
    return html, status, {"Content-Type": "text/html; charset=utf-8"}


def _decision_page(result: dict, verb: str):
    if result["already_processed"]:
        return _page(
            "Already processed",
            f"This ticket was already {result['approval_status'].lower()}. No changes were made.",
            color="#f59e0b", ticket_number=result["ticket_number"],
        )
    color = "#16a34a" if verb == "approved" else "#dc2626"
    return _page(f"Ticket {verb}", f"The ticket has been {verb}. The team has been notified.",
                 color=color, ticket_number=result["ticket_number"])


def _link_decision(action, ticket_id, verb: str, **kwargs):
    """Run approve / reject for an emailed link and render the outcome as HTML."""
    try:
        result = action(ticket_id, g.actor, token=request.args.get("token"), **kwargs)
    except NotFoundError:
        return _page("Ticket not found", "This ticket does not exist or was removed.",
                     status=404, color="#64748b")
    except ForbiddenError as exc:
        return _page("Link not valid", str(exc), status=403, color="#dc2626")
    except ValidationError as exc:
        return _page("Cannot process request", str(exc), status=400, color="#dc2626")
    return _decision_page(result, verb)


# ── Collection routes ──────────────────────────────────────────────────────────


@ticket_bp.route("/tickets", methods=["GET"])
@require_actor
def list_tickets():
    query = TicketQuery.from_args(request.args)
    return jsonify(get_lifecycle().list_tickets(query)), 200


@ticket_bp.route("/tickets/my-tickets", methods=["GET"])
@require_actor
def list_my_tickets():
    query = TicketQuery.from_args(request.args)
    return jsonify(get_lifecycle().list_my_tickets(g.actor, query)), 200


@ticket_bp.route("/tickets/bulk-update-status", methods=["PUT"])
@require_actor
def bulk_update_status():
    return jsonify(get_lifecycle().bulk_advance_commented(g.actor)), 200


@ticket_bp.route("/tickets", methods=["POST"])
@require_actor
def create_ticket():
    if request.files or request.form:
        data = request.form.to_dict()
        files = [f for f in request.files.getlist("attachments") if f and f.filename]
    else:
        data = _json_body()
        files = []
    fields = TicketFields.from_payload(data)
    result = get_lifecycle().create_ticket(fields, files, g.actor)
    return jsonify(result), 201


# ── Item routes ────────────────────────────────────────────────────────────────


@ticket_bp.route("/tickets/<int:ticket_id>", methods=["GET"])
@require_actor
def get_ticket(ticket_id):
    return jsonify(get_lifecycle().get_ticket(ticket_id)), 200


@ticket_bp.route("/tickets/<int:ticket_id>/status", methods=["PUT"])
@require_actor
def update_status(ticket_id):
    data = _json_body()
    requested = data.get("status", data.get("statusId"))
    if requested is None:
        return api_error(E.VALIDATION_REQUIRED, "status is required")
    return jsonify(get_lifecycle().change_status(ticket_id, requested, g.actor)), 200


@ticket_bp.route("/tickets/<int:ticket_id>/assign", methods=["PUT"])
@require_actor
def assign_ticket(ticket_id):
    data = _json_body()
    keys = ("assignToId", "assigned_to_id", "assignedTo")
    if not any(k in data for k in keys):
        return api_error(E.VALIDATION_REQUIRED, "assignToId is required (null to unassign)")
    assignee_id = next(data[k] for k in keys if k in data)
    return jsonify(get_lifecycle().assign_ticket(ticket_id, assignee_id, g.actor)), 200


@ticket_bp.route("/tickets/<int:ticket_id>/comments", methods=["POST"])
@require_actor
def add_comment(ticket_id):
    data = _json_body()
    text = data.get("comment", data.get("text"))
    return jsonify(get_lifecycle().add_comment(ticket_id, text, g.actor)), 201


@ticket_bp.route("/tickets/<int:ticket_id>/comments", methods=["GET"])
@require_actor
def list_comments(ticket_id):
    comments = get_lifecycle().list_comments(ticket_id)
    return jsonify({"ticket_id": ticket_id, "comments": comments, "total": len(comments)}), 200


# ── Approval routes (IT Head login or emailed link token) ──────────────────────


@ticket_bp.route("/tickets/<int:ticket_id>/approve", methods=["PUT", "GET"])
def approve_ticket(ticket_id):
    lifecycle = get_lifecycle()
    if request.method == "GET":
        # Mail scanners prefetch links; only the submitted form decides
        if request.args.get("confirm") != "yes":
            html = render_template_string(
                _CONFIRM_FORM, ticket_id=ticket_id, token=request.args.get("token", ""),
            )
            return html, 200, {"Content-Type": "text/html; charset=utf-8"}
        return _link_decision(lifecycle.approve, ticket_id, "approved",
                              comments=request.args.get("comments"))

    data = _json_body()
    result = lifecycle.approve(
        ticket_id, g.actor,
        comments=data.get("comments", data.get("approvalComments")),
        token=request.args.get("token") or data.get("token"),
    )
    return jsonify(result), 200


@ticket_bp.route("/tickets/<int:ticket_id>/reject", methods=["PUT", "GET"])
def reject_ticket(ticket_id):
    lifecycle = get_lifecycle()
    if request.method == "GET":
        reason = (request.args.get("reason") or "").strip()
        if not reason:
            html = render_template_string(
                _REASON_FORM, ticket_id=ticket_id, token=request.args.get("token", ""),
            )
            return html, 200, {"Content-Type": "text/html; charset=utf-8"}
        return _link_decision(lifecycle.reject, ticket_id, "rejected", reason=reason)

    data = _json_body()
    result = lifecycle.reject(
        ticket_id, g.actor,
        reason=data.get("reason", data.get("rejectionReason")),
        token=request.args.get("token") or data.get("token"),
    )
    return jsonify(result), 200
