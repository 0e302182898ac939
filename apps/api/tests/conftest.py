"""
Test configuration and fixtures.

Provides:
- A fresh SQLite database file per test (worker threads get their own connections)
- Profile/staff/document factories
- JWT token minting for authenticated tests
- HTTPX AsyncClient with proper headers
"""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Settings are read at import; keep tests off Redis and rate limits
os.environ.setdefault("DATABASE_URL", "sqlite:///./test_panchayat.db")
os.environ["REDIS_URL"] = "memory://"
os.environ["TESTING"] = "1"
# Tests mount their own snapshot against the per-test database
os.environ["STAFF_PERFORMANCE_SNAPSHOT"] = "0"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker

from app.core.deps import COOKIE_NAME, get_db, get_session_factory
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import DocumentStatus, DocumentType, Role
from app.db.models import DocumentRequest, Profile, StaffMember
from app.main import app
from app.services.change_feed import feed, install_change_capture

install_change_capture()


# =============================================================================
# Database Fixtures
# =============================================================================


@pytest.fixture(scope="function")
def test_engine(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'portal.db'}",
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def session_factory(test_engine) -> sessionmaker:
    return sessionmaker(bind=test_engine, autoflush=False, expire_on_commit=True)


@pytest.fixture(scope="function")
def db(session_factory) -> Generator[Session, None, None]:
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def _reset_change_feed():
    yield
    feed.clear()


# =============================================================================
# Factories
# =============================================================================


_created_at_offset = 0


def make_profile(
    db: Session,
    *,
    role: Role = Role.CITIZEN,
    name: str | None = "Test Person",
) -> Profile:
    profile = Profile(
        id=uuid.uuid4(),
        name=name,
        email=f"user-{uuid.uuid4().hex[:8]}@panchayat.test",
        role=role.value,
    )
    db.add(profile)
    db.commit()
    return profile


def make_staff(
    db: Session,
    profile: Profile,
    *,
    designation: str = "Gram Sevak",
    joined_at: datetime | None = None,
) -> StaffMember:
    member = StaffMember(
        id=uuid.uuid4(),
        user_id=profile.id,
        designation=designation,
        joined_at=joined_at or datetime(2024, 1, 15, tzinfo=timezone.utc),
    )
    db.add(member)
    db.commit()
    return member


def make_document(
    db: Session,
    requester: Profile,
    *,
    document_type: str = DocumentType.BIRTH.value,
    purpose: str = "School admission",
    status: str = DocumentStatus.PENDING.value,
    verified_by: uuid.UUID | None = None,
    approved_by: uuid.UUID | None = None,
    rejection_reason: str | None = None,
    created_at: datetime | None = None,
) -> DocumentRequest:
    """Insert a document row directly (bypassing the workflow)."""
    global _created_at_offset
    _created_at_offset += 1
    document = DocumentRequest(
        id=uuid.uuid4(),
        user_id=requester.id,
        document_type=document_type,
        purpose=purpose,
        status=status,
        attachments=[],
        form_details={},
        verified_by=verified_by,
        approved_by=approved_by,
        rejection_reason=rejection_reason,
        created_at=created_at
        or datetime(2025, 1, 1, tzinfo=timezone.utc) + timedelta(minutes=_created_at_offset),
    )
    db.add(document)
    db.commit()
    return document


@pytest.fixture
def citizen(db: Session) -> Profile:
    return make_profile(db, role=Role.CITIZEN, name="Sunita Patil")


@pytest.fixture
def staff_profile(db: Session) -> Profile:
    profile = make_profile(db, role=Role.STAFF, name="Ramesh Jadhav")
    make_staff(db, profile)
    return profile


@pytest.fixture
def admin_profile(db: Session) -> Profile:
    profile = make_profile(db, role=Role.ADMIN, name="Geeta Pawar")
    make_staff(db, profile, designation="Sarpanch Office")
    return profile


# =============================================================================
# Auth / Client Fixtures
# =============================================================================


@dataclass
class TestAuth:
    """Test authentication context."""
    profile: Profile
    token: str
    cookie_name: str = COOKIE_NAME


def auth_for(profile: Profile) -> TestAuth:
    token = create_session_token(
        user_id=profile.id,
        role=profile.role,
        token_version=profile.token_version,
    )
    return TestAuth(profile=profile, token=token)


@pytest.fixture
def client_for(session_factory):
    """
    Build AsyncClients bound to the test database.

    client_for(profile) adds the session cookie and CSRF header;
    client_for(None) is anonymous.
    """
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_session_factory] = lambda: session_factory

    def build(profile: Profile | None, *, csrf: bool = True) -> AsyncClient:
        cookies = {}
        if profile is not None:
            auth = auth_for(profile)
            cookies[auth.cookie_name] = auth.token
        headers = {"X-Requested-With": "XMLHttpRequest"} if csrf else {}
        return AsyncClient(
            transport=ASGITransport(app=app),
            base_url="http://test",
            cookies=cookies,
            headers=headers,
        )

    yield build
    app.dependency_overrides.clear()


@pytest.fixture
async def citizen_client(client_for, citizen) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(citizen) as c:
        yield c


@pytest.fixture
async def staff_client(client_for, staff_profile) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(staff_profile) as c:
        yield c


@pytest.fixture
async def admin_client(client_for, admin_profile) -> AsyncGenerator[AsyncClient, None]:
    async with client_for(admin_profile) as c:
        yield c
