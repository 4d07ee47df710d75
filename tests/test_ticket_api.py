"""
Ticket API — HTTP surface tests.

Mail runs in dev mode under TestingConfig (no MAIL_SERVER), so every
notification shows up as an EmailLog row with status ``sent``.
"""

import io
import json

import pytest

from helpdesk.models import db
from helpdesk.models.email_log import EmailLog
from helpdesk.models.ticket import (
    APPROVAL_APPROVED,
    APPROVAL_PENDING,
    APPROVAL_REJECTED,
    STATUS_NEW,
    STATUS_PROCESSING,
    Ticket,
)


def _post_ticket(client, headers, directory, **overrides):
    body = {
        "fullName": "Alice Requester",
        "description": "Printer on 3rd floor is jammed",
        "category": directory.network.id,
        "requestType": directory.hardware_issue.id,
        "priority": "medium",
    }
    body.update(overrides)
    return client.post("/api/v1/tickets", json=body, headers=headers)


def _ticket(ticket_id):
    db.session.expire_all()
    return db.session.get(Ticket, ticket_id)


@pytest.fixture()
def alice(directory, auth_headers):
    return auth_headers(directory.alice)


@pytest.fixture()
def bob(directory, auth_headers):
    return auth_headers(directory.bob)


@pytest.fixture()
def dave(directory, auth_headers):
    return auth_headers(directory.dave)


@pytest.fixture()
def ticket_id(client, alice, directory):
    res = _post_ticket(client, alice, directory)
    assert res.status_code == 201
    return res.get_json()["ticket_id"]


@pytest.fixture()
def change_request(client, alice, directory):
    res = _post_ticket(client, alice, directory, requestType=directory.change_request.id)
    assert res.status_code == 201
    tid = res.get_json()["ticket_id"]
    return tid, _ticket(tid).approval_token


# ═════════════════════════════════════════════════════════════════════════════
# Auth
# ═════════════════════════════════════════════════════════════════════════════


class TestAuth:
    def test_health_is_public(self, client):
        res = client.get("/api/v1/health")
        assert res.status_code == 200
        assert res.get_json()["status"] == "ok"

    def test_missing_token(self, client, directory):
        res = client.get("/api/v1/tickets")
        assert res.status_code == 401
        assert res.get_json()["code"] == "ERR_UNAUTHORIZED"

    def test_garbage_token(self, client, directory):
        res = client.get("/api/v1/tickets", headers={"Authorization": "Bearer not.a.jwt"})
        assert res.status_code == 401

    def test_request_id_header(self, client, alice):
        res = client.get("/api/v1/tickets", headers=alice)
        assert res.headers.get("X-Request-ID")


# ═════════════════════════════════════════════════════════════════════════════
# Create / read
# ═════════════════════════════════════════════════════════════════════════════


class TestCreateTicket:
    def test_json_create(self, client, alice, directory):
        res = _post_ticket(client, alice, directory)
        assert res.status_code == 201
        data = res.get_json()
        assert data["status"] == STATUS_NEW
        assert data["ticket_number"].startswith("TK-")
        assert data["requires_approval"] is False

    def test_notifications_logged(self, client, alice, directory):
        tid = _post_ticket(client, alice, directory).get_json()["ticket_id"]
        logs = EmailLog.query.filter_by(ticket_id=tid).all()
        assert {log.recipient_email.lower() for log in logs} == {
            "alice@example.com", "bob@example.com", "carol@example.com", "dave@example.com",
        }
        by_email = {log.recipient_email.lower(): log for log in logs}
        assert by_email["alice@example.com"].template_name == "creator_created"
        assert by_email["alice@example.com"].subject.startswith("Ticket Created Successfully - TK-")
        assert by_email["bob@example.com"].subject.startswith("New Ticket Created - TK-")

    def test_multipart_with_attachments(self, client, alice, directory):
        data = {
            "fullName": "Alice Requester",
            "description": "See screenshot",
            "category": str(directory.network.id),
            "attachments": [
                (io.BytesIO(b"png-bytes"), "error screen.png"),
                (io.BytesIO(b"log-bytes"), "trace.txt"),
            ],
        }
        res = client.post("/api/v1/tickets", data=data, headers=alice, content_type="multipart/form-data")
        assert res.status_code == 201
        assert res.get_json()["attachment_count"] == 2

        detail = client.get(f"/api/v1/tickets/{res.get_json()['ticket_id']}", headers=alice).get_json()
        assert sorted(a["original_name"] for a in detail["attachments"]) == ["error_screen.png", "trace.txt"]

    def test_missing_fields(self, client, alice, directory):
        res = client.post("/api/v1/tickets", json={"description": "no name"}, headers=alice)
        assert res.status_code == 400
        body = res.get_json()
        assert body["code"] == "ERR_VALIDATION_INVALID"
        assert "full_name" in body["details"]

    def test_unknown_assignee(self, client, alice, directory):
        res = _post_ticket(client, alice, directory, assignedTo=4242)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_INVALID_ASSIGNEE"

    def test_wrong_content_type(self, client, alice, directory):
        res = client.post("/api/v1/tickets", data="x=1", headers={**alice, "Content-Type": "text/plain"})
        assert res.status_code == 415

    def test_get_detail(self, client, alice, ticket_id):
        res = client.get(f"/api/v1/tickets/{ticket_id}", headers=alice)
        assert res.status_code == 200
        data = res.get_json()
        assert data["priority"] == "Medium"
        assert data["category"]["name"] == "Network"
        assert data["approval"]["requires_approval"] is False

    def test_get_missing(self, client, alice, directory):
        res = client.get("/api/v1/tickets/999", headers=alice)
        assert res.status_code == 404
        assert res.get_json()["code"] == "ERR_NOT_FOUND"


class TestListTickets:
    def test_list_with_summary(self, client, alice, directory):
        for _ in range(3):
            _post_ticket(client, alice, directory)
        res = client.get("/api/v1/tickets?limit=2&page=2", headers=alice)
        assert res.status_code == 200
        data = res.get_json()
        assert len(data["tickets"]) == 1
        assert data["pagination"] == {"current_page": 2, "total_pages": 2, "total_items": 3, "items_per_page": 2}
        assert data["summary"]["new"] == 3

    def test_category_filter(self, client, alice, directory):
        _post_ticket(client, alice, directory)
        _post_ticket(client, alice, directory, category=directory.hardware.id)
        data = client.get(f"/api/v1/tickets?category={directory.hardware.id}", headers=alice).get_json()
        assert data["pagination"]["total_items"] == 1

    def test_my_tickets(self, client, alice, bob, directory):
        _post_ticket(client, alice, directory, assignedTo=directory.bob.id)
        _post_ticket(client, alice, directory)
        data = client.get("/api/v1/tickets/my-tickets", headers=bob).get_json()
        assert data["pagination"]["total_items"] == 2
        assert data["summary"]["total"] == 1
        assert data["summary"]["team_total"] == 2

    def test_my_tickets_without_category(self, client, dave, directory):
        res = client.get("/api/v1/tickets/my-tickets", headers=dave)
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Status / assignment / comments
# ═════════════════════════════════════════════════════════════════════════════


class TestStatus:
    def test_update_status(self, client, bob, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/status", json={"status": "processing"}, headers=bob)
        assert res.status_code == 200
        data = res.get_json()
        assert data["status"] == STATUS_PROCESSING
        assert data["changed"] is True
        assert data["updated_by"] == "Bob"

    def test_status_mail_skips_the_actor(self, client, bob, ticket_id):
        client.put(f"/api/v1/tickets/{ticket_id}/status", json={"status": "PROCESSING"}, headers=bob)
        logs = EmailLog.query.filter_by(ticket_id=ticket_id, event_type="STATUS_UPDATED").all()
        assert {log.recipient_email.lower() for log in logs} == {
            "alice@example.com", "carol@example.com", "dave@example.com",
        }

    def test_status_id_alias(self, client, bob, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/status", json={"statusId": "COMPLETED"}, headers=bob)
        assert res.get_json()["status"] == "COMPLETED"

    def test_missing_status(self, client, bob, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/status", json={}, headers=bob)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_invalid_status(self, client, bob, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/status", json={"status": "ARCHIVED"}, headers=bob)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_INVALID_STATUS"

    def test_backward_transition_conflict(self, client, bob, ticket_id):
        client.put(f"/api/v1/tickets/{ticket_id}/status", json={"status": "COMPLETED"}, headers=bob)
        res = client.put(f"/api/v1/tickets/{ticket_id}/status", json={"status": "NEW"}, headers=bob)
        assert res.status_code == 409
        assert res.get_json()["code"] == "ERR_CONFLICT_STATE"

    def test_missing_ticket(self, client, bob, directory):
        res = client.put("/api/v1/tickets/999/status", json={"status": "PROCESSING"}, headers=bob)
        assert res.status_code == 404

    def test_bulk_update(self, client, bob, ticket_id, directory):
        res = client.put("/api/v1/tickets/bulk-update-status", headers=bob)
        assert res.status_code == 200
        assert res.get_json() == {"updated": 0}


class TestAssign:
    def test_assign(self, client, dave, ticket_id, directory):
        res = client.put(f"/api/v1/tickets/{ticket_id}/assign", json={"assignToId": directory.carol.id},
                         headers=dave)
        assert res.status_code == 200
        assert res.get_json()["assigned_to_name"] == "Carol"
        logs = EmailLog.query.filter_by(ticket_id=ticket_id, event_type="TICKET_ASSIGNED").all()
        assert [log.recipient_email for log in logs] == ["carol@example.com"]
        assert logs[0].subject.startswith("Ticket Assigned to You: TK-")

    def test_unassign_with_null(self, client, dave, ticket_id, directory):
        client.put(f"/api/v1/tickets/{ticket_id}/assign", json={"assignToId": directory.carol.id}, headers=dave)
        res = client.put(f"/api/v1/tickets/{ticket_id}/assign", json={"assignToId": None}, headers=dave)
        assert res.status_code == 200
        assert res.get_json()["assigned_to_id"] is None

    def test_missing_key(self, client, dave, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/assign", json={}, headers=dave)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_VALIDATION_REQUIRED"

    def test_unknown_user(self, client, dave, ticket_id):
        res = client.put(f"/api/v1/tickets/{ticket_id}/assign", json={"assignToId": 777}, headers=dave)
        assert res.status_code == 400
        assert res.get_json()["code"] == "ERR_INVALID_ASSIGNEE"


class TestComments:
    def test_first_comment_advances(self, client, bob, ticket_id):
        res = client.post(f"/api/v1/tickets/{ticket_id}/comments", json={"comment": "On it"}, headers=bob)
        assert res.status_code == 201
        data = res.get_json()
        assert data["auto_transitioned"] is True
        assert data["status"] == STATUS_PROCESSING
        assert EmailLog.query.filter_by(ticket_id=ticket_id, event_type="STATUS_UPDATED").count() == 0

    def test_list_comments(self, client, bob, ticket_id):
        client.post(f"/api/v1/tickets/{ticket_id}/comments", json={"comment": "one"}, headers=bob)
        client.post(f"/api/v1/tickets/{ticket_id}/comments", json={"text": "two"}, headers=bob)
        data = client.get(f"/api/v1/tickets/{ticket_id}/comments", headers=bob).get_json()
        assert data["total"] == 2
        assert [c["comment"] for c in data["comments"]] == ["one", "two"]
        assert data["comments"][0]["author"] == "Bob"

    def test_empty_comment(self, client, bob, ticket_id):
        res = client.post(f"/api/v1/tickets/{ticket_id}/comments", json={"comment": " "}, headers=bob)
        assert res.status_code == 400


# ═════════════════════════════════════════════════════════════════════════════
# Approval
# ═════════════════════════════════════════════════════════════════════════════


class TestApprovalJson:
    def test_it_head_approves(self, client, dave, change_request, directory):
        tid, _ = change_request
        res = client.put(f"/api/v1/tickets/{tid}/approve", json={"comments": "fine"}, headers=dave)
        assert res.status_code == 200
        data = res.get_json()
        assert data["approval_status"] == APPROVAL_APPROVED
        assert data["actioned_by_id"] == directory.dave.id
        assert _ticket(tid).approval_token is None

    def test_agent_without_token_is_forbidden(self, client, bob, change_request):
        tid, _ = change_request
        res = client.put(f"/api/v1/tickets/{tid}/approve", json={}, headers=bob)
        assert res.status_code == 403
        assert res.get_json()["code"] == "ERR_FORBIDDEN"

    def test_anonymous_with_token(self, client, change_request):
        tid, token = change_request
        res = client.put(f"/api/v1/tickets/{tid}/approve?token={token}", json={})
        assert res.status_code == 200
        assert res.get_json()["approval_status"] == APPROVAL_APPROVED

    def test_reject_requires_reason(self, client, dave, change_request):
        tid, _ = change_request
        res = client.put(f"/api/v1/tickets/{tid}/reject", json={}, headers=dave)
        assert res.status_code == 400
        assert _ticket(tid).approval_status == APPROVAL_PENDING

    def test_reject(self, client, dave, change_request):
        tid, _ = change_request
        res = client.put(f"/api/v1/tickets/{tid}/reject", json={"reason": "No budget"}, headers=dave)
        assert res.status_code == 200
        assert res.get_json()["approval_status"] == APPROVAL_REJECTED
        logs = EmailLog.query.filter_by(ticket_id=tid, event_type="TICKET_REJECTED").all()
        assert logs
        assert all(log.subject.startswith("Ticket Rejected - TK-") for log in logs)

    def test_second_decision(self, client, dave, change_request):
        tid, _ = change_request
        client.put(f"/api/v1/tickets/{tid}/approve", json={}, headers=dave)
        res = client.put(f"/api/v1/tickets/{tid}/reject", json={"reason": "oops"}, headers=dave)
        assert res.status_code == 200
        assert res.get_json()["already_processed"] is True
        assert res.get_json()["approval_status"] == APPROVAL_APPROVED
        assert res.get_json()["action_comments"] is None

    def test_decided_ticket_hides_details_from_link_callers(self, client, dave, change_request):
        tid, _ = change_request
        client.put(f"/api/v1/tickets/{tid}/reject", json={"reason": "Vendor contract pending"}, headers=dave)
        res = client.put(f"/api/v1/tickets/{tid}/approve?token=made-up", json={})
        assert res.status_code == 200
        assert res.get_json() == {
            "ticket_id": tid,
            "ticket_number": _ticket(tid).ticket_number,
            "approval_status": APPROVAL_REJECTED,
            "already_processed": True,
        }


class TestApprovalLinks:
    def test_approve_link_shows_confirm_form(self, client, change_request):
        tid, token = change_request
        res = client.get(f"/api/v1/tickets/{tid}/approve?token={token}")
        assert res.status_code == 200
        html = res.get_data(as_text=True)
        assert 'name="confirm" value="yes"' in html
        assert f'value="{token}"' in html
        assert _ticket(tid).approval_status == APPROVAL_PENDING
        assert _ticket(tid).approval_token == token

    def test_approve_link(self, client, change_request):
        tid, token = change_request
        res = client.get(f"/api/v1/tickets/{tid}/approve?token={token}&confirm=yes")
        assert res.status_code == 200
        assert res.content_type.startswith("text/html")
        assert "Ticket approved" in res.get_data(as_text=True)
        assert _ticket(tid).approval_status == APPROVAL_APPROVED

    def test_link_reused(self, client, change_request):
        tid, token = change_request
        client.get(f"/api/v1/tickets/{tid}/approve?token={token}&confirm=yes")
        res = client.get(f"/api/v1/tickets/{tid}/reject?token={token}&reason=late")
        assert res.status_code == 200
        assert "Already processed" in res.get_data(as_text=True)
        assert _ticket(tid).approval_status == APPROVAL_APPROVED

    def test_bad_token(self, client, change_request):
        tid, _ = change_request
        res = client.get(f"/api/v1/tickets/{tid}/approve?token=forged&confirm=yes")
        assert res.status_code == 403
        assert "Link not valid" in res.get_data(as_text=True)

    def test_missing_ticket(self, client, change_request):
        _, token = change_request
        res = client.get(f"/api/v1/tickets/999/approve?token={token}&confirm=yes")
        assert res.status_code == 404
        assert "Ticket not found" in res.get_data(as_text=True)

    def test_reject_link_shows_reason_form(self, client, change_request):
        tid, token = change_request
        res = client.get(f"/api/v1/tickets/{tid}/reject?token={token}")
        assert res.status_code == 200
        html = res.get_data(as_text=True)
        assert '<textarea id="reason" name="reason"' in html
        assert f'value="{token}"' in html
        assert _ticket(tid).approval_status == APPROVAL_PENDING

    def test_reject_link_with_reason(self, client, change_request):
        tid, token = change_request
        res = client.get(f"/api/v1/tickets/{tid}/reject?token={token}&reason=Not+now")
        assert res.status_code == 200
        assert "Ticket rejected" in res.get_data(as_text=True)
        t = _ticket(tid)
        assert t.approval_status == APPROVAL_REJECTED
        assert t.action_comments == "Not now"


class TestErrorEnvelope:
    def test_json_shape(self, client, alice, directory):
        res = client.get("/api/v1/tickets/31337", headers=alice)
        body = json.loads(res.get_data(as_text=True))
        assert set(body) >= {"error", "code"}
