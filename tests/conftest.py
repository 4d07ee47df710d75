"""
Shared pytest fixtures for the help-desk test suite.

Provides:
    - app: Flask application (session-scoped, uploads in a temp dir)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - directory: roles, a "Network" category team, an IT Head, request types
    - auth_headers: Bearer headers for a directory user
    - recording_sender: captures outbound mail instead of sending it
    - failing_sender: factory for a recording sender that refuses some addresses
    - make_lifecycle: builds a controller wired to a recording sender
"""

from types import SimpleNamespace

import pytest

from helpdesk import create_app
from helpdesk.models import db as _db
from helpdesk.models.directory import (
    ROLE_ADMIN,
    ROLE_AGENT,
    ROLE_IT_HEAD,
    Category,
    Company,
    Department,
    IssueType,
    RequestType,
    User,
)
from helpdesk.services.attachment_storage import AttachmentStorage
from helpdesk.services.directory_service import DirectoryStore, seed_roles
from helpdesk.services.notification_dispatcher import NotificationDispatcher, NotificationQueue
from helpdesk.services.recipient_resolver import RecipientResolver
from helpdesk.services.ticket_lifecycle import TicketLifecycleController
from helpdesk.services.ticket_store import TicketStore


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app(tmp_path_factory):
    """Create the Flask application once per test session."""
    application = create_app("testing")
    application.config["UPLOAD_FOLDER"] = str(tmp_path_factory.mktemp("uploads"))
    return application


@pytest.fixture(scope="session")
def _setup_db(app):
    """Create all tables at session start, drop at end."""
    with app.app_context():
        _db.create_all()
    yield
    with app.app_context():
        _db.drop_all()


@pytest.fixture(autouse=True)
def session(app, _setup_db):
    """Per-test: open app context, rollback after test, recreate tables."""
    with app.app_context():
        yield
        _db.session.rollback()
        _db.drop_all()
        _db.create_all()


@pytest.fixture()
def client(app):
    """Flask test client."""
    return app.test_client()


# ── Directory fixtures ───────────────────────────────────────────────────


@pytest.fixture()
def directory():
    """
    Seed reference data and a small organisation.

    Network team (category) members: alice, bob, carol.
    dave is the IT Head (no category); erin is an admin in Hardware.
    """
    seed_roles()
    network = Category(name="Network")
    hardware = Category(name="Hardware")
    dept = Department(name="Finance")
    company = Company(name="Acme Ltd")
    issue = IssueType(name="Connectivity")
    change = RequestType(name="Change Management Requests")
    incident = RequestType(name="Hardware Issue")
    _db.session.add_all([network, hardware, dept, company, issue, change, incident])
    _db.session.flush()

    alice = User(uid="u-alice", name="Alice", email="Alice@Example.com", role_id=ROLE_AGENT, category_id=network.id)
    bob = User(uid="u-bob", name="Bob", email="bob@example.com", role_id=ROLE_AGENT, category_id=network.id)
    carol = User(uid="u-carol", name="Carol", email="carol@example.com", role_id=ROLE_AGENT, category_id=network.id)
    dave = User(uid="u-dave", name="Dave", email="dave@example.com", role_id=ROLE_IT_HEAD)
    erin = User(uid="u-erin", name="Erin", email="erin@example.com", role_id=ROLE_ADMIN, category_id=hardware.id)
    _db.session.add_all([alice, bob, carol, dave, erin])
    _db.session.commit()

    return SimpleNamespace(
        network=network, hardware=hardware, department=dept, company=company,
        issue_type=issue, change_request=change, hardware_issue=incident,
        alice=alice, bob=bob, carol=carol, dave=dave, erin=erin,
    )


@pytest.fixture()
def auth_headers(app):
    """Return a function building Bearer headers for a directory user."""
    from helpdesk.services.jwt_service import generate_access_token

    def _headers(user):
        return {"Authorization": f"Bearer {generate_access_token(user)}"}

    return _headers


# ── Mail capture ─────────────────────────────────────────────────────────


class RecordingSender:
    """Stands in for EmailService in dispatcher tests; fails for chosen addresses."""

    def __init__(self, fail_for=()):
        self.fail_for = {e.lower() for e in fail_for}
        self.sent = []

    def send_from_template(self, *, to_email, to_name=None, template_name, context,
                           event_type=None, ticket_id=None):
        if to_email.lower() in self.fail_for:
            raise ConnectionError(f"SMTP refused {to_email}")
        self.sent.append(SimpleNamespace(
            to_email=to_email, to_name=to_name, template_name=template_name,
            context=context, event_type=event_type, ticket_id=ticket_id,
        ))

    def templates_by_email(self):
        return {m.to_email.lower(): m.template_name for m in self.sent}


@pytest.fixture()
def recording_sender():
    return RecordingSender()


@pytest.fixture()
def failing_sender():
    """Return a factory for senders that refuse the given addresses."""
    return lambda *emails: RecordingSender(fail_for=emails)


@pytest.fixture()
def make_lifecycle(app):
    """Build a controller with real stores and a recording sender."""

    def _make(sender, **settings):
        tickets = TicketStore()
        directory_store = DirectoryStore()
        queue = NotificationQueue(
            tickets=tickets,
            directory=directory_store,
            resolver=RecipientResolver(directory_store),
            dispatcher=NotificationDispatcher(sender),
            run_async=False,
            app_url="http://helpdesk.test",
        )
        storage = AttachmentStorage(
            app.config["UPLOAD_FOLDER"],
            max_files=app.config["MAX_ATTACHMENTS"],
            allowed_extensions=app.config["ALLOWED_UPLOAD_EXTENSIONS"],
        )
        return TicketLifecycleController(
            tickets=tickets,
            directory=directory_store,
            notifications=queue,
            storage=storage,
            **settings,
        )

    return _make
