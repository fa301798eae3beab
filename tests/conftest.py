"""
Test Configuration and Fixtures
================================

Central configuration for pytest with all shared fixtures.

Features:
- SQLite in-memory database for testing
- TestClient setup
- Two organizations with owner, manager, staff and viewer members
- Dependency overrides for database session
"""

import os
import uuid
from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

# Set testing environment before importing app modules
os.environ["ENVIRONMENT"] = "testing"
os.environ["SECRET_KEY"] = "test-secret-key-for-testing-only-min-32-chars"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["RATE_LIMIT_ENABLED"] = "false"  # Disable rate limiting in tests
os.environ["GOOGLE_MAPS_SERVER_KEY"] = ""

from app.core.authz import Actor
from app.db.base import Base
from app.db.session import enable_sqlite_savepoints, get_db
from app.models.organization import Organization
from app.models.role import CrewMember
from app.models.user import User
from app.services.auth_service import AuthService
from app.main import app as main_app


TEST_PASSWORD = "TestPassword123!"


# =====================================
# Database Configuration
# =====================================

# StaticPool is used to maintain the same connection across tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

enable_sqlite_savepoints(engine)


# Enable foreign key constraints for SQLite
@event.listens_for(engine, "connect")
def set_sqlite_pragma(dbapi_connection, connection_record):
    """Enable foreign key constraints for SQLite."""
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


TestingSessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
    expire_on_commit=False,
)


# =====================================
# Database Fixtures
# =====================================

@pytest.fixture(scope="function")
def db_session() -> Generator[Session, None, None]:
    """
    Fresh schema and session per test.
    """
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session: Session) -> Generator[TestClient, None, None]:
    """
    TestClient bound to the test session.
    """
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    main_app.dependency_overrides[get_db] = override_get_db

    with TestClient(main_app) as test_client:
        yield test_client

    main_app.dependency_overrides.clear()


# =====================================
# Organization Fixtures
# =====================================

def _make_org(db_session: Session, name: str) -> Organization:
    org = Organization(id=uuid.uuid4(), name=name, business_type="trades")
    db_session.add(org)
    db_session.commit()
    db_session.refresh(org)
    return org


@pytest.fixture
def sample_organization(db_session: Session) -> Organization:
    return _make_org(db_session, "Test Organization")


@pytest.fixture
def second_organization(db_session: Session) -> Organization:
    """
    A second organization for cross-tenant testing.
    """
    return _make_org(db_session, "Second Organization")


@pytest.fixture
def crew_member(db_session: Session, sample_organization: Organization) -> CrewMember:
    crew = CrewMember(
        org_id=sample_organization.id,
        display_name="Crew A",
        cost_rate_cents=6000,
        cost_rate_type="hourly",
    )
    db_session.add(crew)
    db_session.commit()
    db_session.refresh(crew)
    return crew


@pytest.fixture
def other_crew(db_session: Session, sample_organization: Organization) -> CrewMember:
    crew = CrewMember(org_id=sample_organization.id, display_name="Crew B", cost_rate_cents=4000)
    db_session.add(crew)
    db_session.commit()
    db_session.refresh(crew)
    return crew


# =====================================
# User Fixtures
# =====================================

def _make_user(
    db_session: Session,
    org: Organization,
    email: str,
    role_key: str,
    crew_member_id=None,
    **fields,
) -> User:
    user = User(
        id=uuid.uuid4(),
        email=email,
        hashed_password=AuthService.hash_password(TEST_PASSWORD),
        full_name=email.split("@")[0].title(),
        role_key=role_key,
        org_id=org.id,
        crew_member_id=crew_member_id,
        **fields,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def owner_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "owner@example.com", "owner")


@pytest.fixture
def manager_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "manager@example.com", "manager")


@pytest.fixture
def staff_user(db_session: Session, sample_organization: Organization, crew_member: CrewMember) -> User:
    """
    Crew-scoped staff member working as ``crew_member``.
    """
    return _make_user(
        db_session, sample_organization, "staff@example.com", "staff", crew_member_id=crew_member.id
    )


@pytest.fixture
def viewer_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "viewer@example.com", "viewer")


@pytest.fixture
def locked_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(
        db_session, sample_organization, "locked@example.com", "staff", is_locked=True, failed_attempts=5
    )


@pytest.fixture
def inactive_user(db_session: Session, sample_organization: Organization) -> User:
    return _make_user(db_session, sample_organization, "inactive@example.com", "staff", is_active=False)


@pytest.fixture
def second_org_owner(db_session: Session, second_organization: Organization) -> User:
    return _make_user(db_session, second_organization, "owner@secondorg.example.com", "owner")


# =====================================
# Actor Fixtures
# =====================================

@pytest.fixture
def owner_actor(db_session: Session, owner_user: User) -> Actor:
    return AuthService(db_session).build_actor(owner_user)


@pytest.fixture
def staff_actor(db_session: Session, staff_user: User) -> Actor:
    return AuthService(db_session).build_actor(staff_user)


# =====================================
# Auth Header Fixtures
# =====================================

def _headers(user: User) -> dict:
    token = AuthService.create_access_token(
        user_id=user.id,
        org_id=user.org_id,
        token_version=user.token_version,
    )
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def owner_headers(owner_user: User) -> dict:
    return _headers(owner_user)


@pytest.fixture
def manager_headers(manager_user: User) -> dict:
    return _headers(manager_user)


@pytest.fixture
def staff_headers(staff_user: User) -> dict:
    return _headers(staff_user)


@pytest.fixture
def viewer_headers(viewer_user: User) -> dict:
    return _headers(viewer_user)


@pytest.fixture
def second_org_headers(second_org_owner: User) -> dict:
    return _headers(second_org_owner)
