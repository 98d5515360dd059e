"""
Startup Dashboard - Test Configuration and Fixtures

Provides the SQLite test database, a TestClient with the get_db override,
account/company factories, and the `cache_mode` parametrization that runs
every endpoint test with the cache enabled and disabled.
"""
import os
import sys
import uuid
import pytest
from typing import Generator

# Add parent directory to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

# Set test environment
os.environ['TESTING'] = 'true'
os.environ['DATABASE_URL'] = 'sqlite:///./test_startup_dashboard.db'
os.environ['DASHBOARD_CONFIG'] = os.path.join(os.path.dirname(__file__), 'no-config.toml')
os.environ.setdefault('SECRET_KEY', 'test-secret-key-for-pytest-do-not-use-in-prod')
os.environ['RATE_LIMIT_ENABLED'] = 'false'
os.environ['SCHEDULER_ENABLED'] = 'false'
os.environ.pop('ADMIN_PASSWORD', None)

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from fastapi.testclient import TestClient


# ==============================================================================
# Database Fixtures
# ==============================================================================

TEST_DATABASE_URL = "sqlite:///./test_startup_dashboard.db"
test_engine = create_engine(
    TEST_DATABASE_URL,
    connect_args={"check_same_thread": False}
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=test_engine)

TEST_PASSWORD = "correct-horse-battery"


@pytest.fixture(scope="session")
def engine():
    """Create a fresh test database for the session."""
    from database import Base
    Base.metadata.drop_all(bind=test_engine)
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)


@pytest.fixture(scope="function")
def db_session(engine) -> Generator:
    """Create a new database session for each test."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()


def override_get_db():
    """Dependency override for FastAPI's get_db."""
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture(scope="module")
def test_client(engine) -> Generator:
    """Create a test client for the FastAPI application with database override."""
    from main import app
    from database import get_db

    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()


# ==============================================================================
# Cache Modes
# ==============================================================================

@pytest.fixture(params=["cache-enabled", "cache-disabled"])
def cache_mode(request):
    """Run the requesting test once with the in-memory cache and once without."""
    from cache import reset_cache

    previous = os.environ.get("CACHE_ENABLED")
    os.environ["CACHE_ENABLED"] = "true" if request.param == "cache-enabled" else "false"
    os.environ["REDIS_ENABLED"] = "false"
    reset_cache()
    yield request.param
    if previous is None:
        os.environ.pop("CACHE_ENABLED", None)
    else:
        os.environ["CACHE_ENABLED"] = previous
    reset_cache()


@pytest.fixture
def client(test_client, cache_mode):
    """TestClient bound to the current cache mode."""
    return test_client


# ==============================================================================
# Account Factories
# ==============================================================================

def unique_email(prefix: str = "user") -> str:
    return f"{prefix}-{uuid.uuid4().hex[:10]}@example.com"


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}


class Account:
    """A signed-in test account."""

    def __init__(self, user_id: int, email: str, token: str, role: str):
        self.id = user_id
        self.email = email
        self.token = token
        self.role = role

    @property
    def headers(self) -> dict:
        return bearer(self.token)


def _user_id(email: str) -> int:
    from database import User
    session = TestingSessionLocal()
    try:
        return session.query(User).filter(User.email == email).one().id
    finally:
        session.close()


@pytest.fixture
def make_member(client):
    """Factory: sign up a startup member through the API."""
    def _make(name: str = "Member") -> Account:
        email = unique_email("member")
        response = client.post("/api/auth/user/signup", json={
            "name": name, "position": "CEO", "email": email, "password": TEST_PASSWORD,
        })
        assert response.status_code == 200, response.text
        return Account(_user_id(email), email, response.json()["token"], "user")
    return _make


@pytest.fixture
def make_vc(client):
    """Factory: sign up a VC, optionally approve it, and log in."""
    def _make(approved: bool = True) -> Account:
        from database import User
        from cache import invalidate_user

        email = unique_email("vc")
        response = client.post("/api/auth/vc/signup", json={
            "name": "Reviewer", "position": "Partner", "email": email, "password": TEST_PASSWORD,
        })
        assert response.status_code == 200, response.text
        user_id = _user_id(email)
        if not approved:
            return Account(user_id, email, "", "vc")

        session = TestingSessionLocal()
        try:
            session.query(User).filter(User.id == user_id).update({User.approved: True})
            session.commit()
        finally:
            session.close()
        invalidate_user(user_id)

        login = client.post("/api/auth/vc/login", json={"email": email, "password": TEST_PASSWORD})
        assert login.status_code == 200, login.text
        return Account(user_id, email, login.json()["token"], "vc")
    return _make


@pytest.fixture
def make_admin(client):
    """Factory: create an administrator (or moderator) directly and log in."""
    def _make(role: str = "admin") -> Account:
        from auth import auth_manager

        email = unique_email(role)
        session = TestingSessionLocal()
        try:
            user = auth_manager.create_user(
                session, name="Staff", position="", email=email,
                password=TEST_PASSWORD, role=role, approved=True,
            )
            user_id = user.id
        finally:
            session.close()

        login = client.post("/api/auth/admin/login", json={"email": email, "password": TEST_PASSWORD})
        assert login.status_code == 200, login.text
        return Account(user_id, email, login.json()["token"], role)
    return _make


@pytest.fixture
def make_company(client):
    """Factory: create a company owned by the given member; returns its id."""
    def _make(owner: Account, name: str = "Acme") -> int:
        response = client.post("/api/company/create", headers=owner.headers, json={
            "name": name,
            "contact_name": "Founder",
            "contact_email": unique_email("contact"),
            "sector": "fintech",
            "description": "Test startup",
        })
        assert response.status_code == 201, response.text
        return response.json()["company_id"]
    return _make


@pytest.fixture
def add_quarter(client):
    """Factory: add a quarter to the owner's company; returns the quarter id."""
    def _add(owner: Account, label: str = "Q1", year: int = 2025) -> int:
        response = client.post("/api/company/quarters/add", headers=owner.headers,
                               json={"quarter": label, "year": year})
        assert response.status_code == 201, response.text
        return response.json()["quarter_id"]
    return _add


@pytest.fixture
def startup(make_member, make_company, add_quarter):
    """A member owning a company with quarter (Q1, 2025)."""
    owner = make_member("Owner")
    company_id = make_company(owner)
    quarter_id = add_quarter(owner, "Q1", 2025)
    return {"owner": owner, "company_id": company_id, "quarter_id": quarter_id}


