"""
Help-desk exception hierarchy.

Services raise these types; blueprints register handlers against them once
and get consistent HTTP status codes everywhere.

Usage:
    from helpdesk.core.exceptions import NotFoundError, ValidationError

    raise NotFoundError(resource="Ticket", resource_id=42)
    raise ValidationError("Comment text is required", details={"comment": "blank"})
"""


class NotFoundError(Exception):
    """Raised when a ticket (or another record) is missing or soft-deleted.

    Args:
        resource: Human-readable entity name (e.g. "Ticket").
        resource_id: The PK that was looked up. Included in logs and message.
    """

    def __init__(self, resource: str, resource_id: int | str | None = None) -> None:
        self.resource = resource
        self.resource_id = resource_id
        msg = f"{resource}"
        if resource_id is not None:
            msg += f" id={resource_id}"
        msg += " not found"
        super().__init__(msg)


class ValidationError(Exception):
    """Raised when input fails validation in the service layer.

    Args:
        message: Human-readable explanation of what failed.
        details: Optional field-level breakdown for structured API responses.
    """

    def __init__(self, message: str, details: dict | None = None) -> None:
        self.details = details or {}
        super().__init__(message)


class InvalidStatusError(ValidationError):
    """Requested status is not one of NEW / PROCESSING / COMPLETED."""

    def __init__(self, requested) -> None:
        self.requested = requested
        super().__init__(
            f"Invalid status {requested!r}. Allowed: NEW, PROCESSING, COMPLETED",
            details={"status": requested},
        )


class InvalidAssigneeError(ValidationError):
    """Assignee id does not resolve to an active directory user."""

    def __init__(self, assignee_id) -> None:
        self.assignee_id = assignee_id
        super().__init__(
            f"User id={assignee_id} is not an active user",
            details={"assignToId": assignee_id},
        )


class InvalidTransitionError(ValidationError):
    """Status move that the forward-only state machine does not allow."""

    def __init__(self, current: str, requested: str) -> None:
        self.current = current
        self.requested = requested
        super().__init__(
            f"Cannot move ticket from {current} to {requested}",
            details={"from": current, "to": requested},
        )


class ForbiddenError(Exception):
    """Actor is not allowed to perform the operation (role, token or gate)."""


class EmailDeliveryError(Exception):
    """Transport failure while sending one email. Never escapes the dispatcher."""

    def __init__(self, recipient: str, reason: str) -> None:
        self.recipient = recipient
        self.reason = reason
        super().__init__(f"Email to {recipient} failed: {reason}")
