"""
Shared pytest fixtures for the provident-fund back-office test suite.

Provides:
    - app: Flask application (session-scoped)
    - _setup_db: Database table creation/teardown (session-scoped)
    - session: Per-test DB cleanup w/ rollback + recreate (autouse)
    - client: Flask test client (function-scoped)
    - make_user / make_request: ORM factories for arranging a request in any state
    - staff: one active user per back-office role plus an employee
"""

from datetime import datetime, timezone
from decimal import Decimal
from itertools import count

import pytest

from pfadmin import create_app
from pfadmin.models import db as _db
from pfadmin.models.request import ProvidentRequest, RequestKind, RequestStatus
from pfadmin.models.user import Role, User

_employee_no = count(1)


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
    def _make(role: Role = Role.EMPLOYEE, name: str | None = None, is_active: bool = True) -> User:
        n = next(_employee_no)
        u = User(
            employee_no=f"EMP-{n:05d}",
            name=name or f"{role.value} {n}",
            email=f"user{n}@example.com",
            role=role,
            is_active=is_active,
        )
        _db.session.add(u)
        _db.session.commit()
        return u
    return _make


@pytest.fixture()
def make_request():
    """Insert a request directly in any status, bypassing the engine."""
    def _make(
        employee: User,
        status: RequestStatus = RequestStatus.SUBMITTED,
        *,
        assistant: User | None = None,
        officer: User | None = None,
        approver: User | None = None,
        kind: RequestKind = RequestKind.WITHDRAWAL,
        request_type: str = "Resignation",
        amount: str = "15000.00",
        created_at: datetime | None = None,
    ) -> ProvidentRequest:
        req = ProvidentRequest(
            employee_id=employee.id,
            request_kind=kind,
            request_type=request_type,
            payout_amount=Decimal(amount),
            status=status,
            assistant_id=assistant.id if assistant else None,
            officer_id=officer.id if officer else None,
            approver_id=approver.id if approver else None,
            version=1,
            created_at=created_at or datetime.now(timezone.utc),
        )
        if status == RequestStatus.RELEASED:
            req.payment_reference = "REF-SEEDED"
            req.processed_at = datetime.now(timezone.utc)
        _db.session.add(req)
        _db.session.commit()
        return req
    return _make


@pytest.fixture()
def staff(make_user):
    """One active user per role, keyed by short name."""
    return {
        "employee": make_user(Role.EMPLOYEE, name="Ana Reyes"),
        "other_employee": make_user(Role.EMPLOYEE, name="Ben Cruz"),
        "assistant": make_user(Role.HR_ASSISTANT, name="Assistant A"),
        "assistant_b": make_user(Role.HR_ASSISTANT, name="Assistant B"),
        "officer": make_user(Role.HR_OFFICER, name="Officer O"),
        "officer_2": make_user(Role.HR_OFFICER, name="Officer O2"),
        "approver": make_user(Role.HR_APPROVER, name="Approver P"),
        "treasury": make_user(Role.TREASURY, name="Treasury T"),
        "general_hr": make_user(Role.GENERAL_HR, name="General HR G"),
        "admin": make_user(Role.ADMIN, name="Admin Z"),
    }
