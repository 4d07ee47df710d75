"""Ticket model helpers: display number, status machine, attachment names."""

from datetime import datetime, timezone

import pytest

from helpdesk.models.ticket import (
    ALLOWED_STATUSES,
    STATUS_TRANSITIONS,
    TicketAttachment,
    format_ticket_number,
    validate_status_transition,
)


class TestTicketNumber:
    def test_padded_to_three_digits(self):
        assert format_ticket_number(7, datetime(2025, 12, 31, tzinfo=timezone.utc)) == "TK-2025-007"

    def test_wider_ids_are_not_truncated(self):
        assert format_ticket_number(1234, datetime(2026, 1, 1)) == "TK-2026-1234"

    def test_missing_created_at_uses_current_year(self):
        year = datetime.now(timezone.utc).year
        assert format_ticket_number(1, None) == f"TK-{year}-001"


class TestStatusTransitions:
    @pytest.mark.parametrize("old,new", [
        ("NEW", "PROCESSING"),
        ("NEW", "COMPLETED"),
        ("PROCESSING", "COMPLETED"),
        ("OPEN", "PROCESSING"),
        ("IN_PROGRESS", "COMPLETED"),
    ])
    def test_forward_moves(self, old, new):
        assert validate_status_transition(old, new)

    @pytest.mark.parametrize("old,new", [
        ("PROCESSING", "NEW"),
        ("COMPLETED", "NEW"),
        ("COMPLETED", "PROCESSING"),
        ("RESOLVED", "PROCESSING"),
        ("CLOSED", "COMPLETED"),
        ("UNKNOWN", "COMPLETED"),
    ])
    def test_backward_and_terminal_moves(self, old, new):
        assert not validate_status_transition(old, new)

    def test_no_self_loops_in_table(self):
        for status, targets in STATUS_TRANSITIONS.items():
            assert status not in targets

    def test_targets_are_current_statuses(self):
        for targets in STATUS_TRANSITIONS.values():
            assert set(targets) <= set(ALLOWED_STATUSES)


class TestAttachmentNames:
    def test_strips_millis_prefix(self):
        a = TicketAttachment(path="/uploads/1718000000000_screen_shot.png")
        assert a.file_name == "1718000000000_screen_shot.png"
        assert a.original_name == "screen_shot.png"

    def test_name_without_prefix_is_unchanged(self):
        assert TicketAttachment(path="/uploads/report_final.pdf").original_name == "report_final.pdf"

    def test_to_dict_exposes_url(self):
        d = TicketAttachment(path="/uploads/1_a.txt").to_dict()
        assert d["url"] == "/uploads/1_a.txt"
        assert d["original_name"] == "a.txt"
