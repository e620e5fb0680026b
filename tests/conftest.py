"""
Shared pytest fixtures for the Golden Bridge Women test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / make_program: factories that write straight to the DB
    - auth_header: Bearer header for a given user
    - admin, manager, participant, program: the usual cast
"""

from datetime import date, timedelta

import pytest

from goldenbridge import create_app
from goldenbridge.models import db as _db
from goldenbridge.models.program import Program, ProgramManager, ProgramParticipant
from goldenbridge.models.user import User
from goldenbridge.services.jwt_service import generate_access_token
from goldenbridge.utils.crypto import hash_password

TEST_PASSWORD = "secret123"

# bcrypt is slow on purpose; hash the shared test password once per session.
_PASSWORD_HASH = None


def _password_hash():
    global _PASSWORD_HASH
    if _PASSWORD_HASH is None:
        _PASSWORD_HASH = hash_password(TEST_PASSWORD)
    return _PASSWORD_HASH


# ── App & DB fixtures ────────────────────────────────────────────────────


@pytest.fixture(scope="session")
def app():
    """Create the Flask application once per test session."""
    return create_app("testing")


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


# ── Factories ────────────────────────────────────────────────────────────


@pytest.fixture()
def make_user():
    seq = iter(range(1, 10_000))

    def _make(role="participant", name=None, email=None):
        n = next(seq)
        user = User(
            name=name or f"{role.replace('_', ' ').title()} {n}",
            email=email or f"{role}{n}@goldenbridge.org",
            password_hash=_password_hash(),
            role=role,
        )
        _db.session.add(user)
        _db.session.commit()
        return user

    return _make


@pytest.fixture()
def make_program():
    def _make(name="Spring Cohort", managers=(), participants=(), start=None, end=None):
        today = date.today()
        program = Program(
            name=name,
            description="",
            start_date=start or today - timedelta(days=10),
            end_date=end or today + timedelta(days=80),
        )
        _db.session.add(program)
        _db.session.flush()
        for user in managers:
            program.managers.append(ProgramManager(user=user))
        for user in participants:
            program.participants.append(ProgramParticipant(user=user, status="active"))
        _db.session.commit()
        return program

    return _make


@pytest.fixture()
def auth_header():
    def _header(user):
        return {"Authorization": f"Bearer {generate_access_token(user.id, user.role)}"}

    return _header


# ── Convenience fixtures ─────────────────────────────────────────────────


@pytest.fixture()
def admin(make_user):
    return make_user("admin", name="Sarah Admin")


@pytest.fixture()
def manager(make_user):
    return make_user("program_manager", name="Emily Manager")


@pytest.fixture()
def participant(make_user):
    return make_user("participant", name="Jessica Participant")


@pytest.fixture()
def program(make_program, manager, participant):
    """One program managed by ``manager`` with ``participant`` enrolled."""
    return make_program(managers=[manager], participants=[participant])
