# tests/conftest.py

"""
Pytest configuration and shared fixtures for testing.

Runs against an in-memory SQLite database with the Redis cache and the login
rate limiter switched off.
"""

import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CACHE_ENABLED"] = "false"
os.environ["DEBUG"] = "false"

import pytest
from fastapi.testclient import TestClient
from typing import Generator

from estate_access.db.base import Base
from estate_access.db.session import SessionLocal, engine
from estate_access.db.seeds.seed_roles import seed_roles
from estate_access.db.seeds.seed_menu import seed_menu
from estate_access.models.menu import MenuItem
from estate_access.models.role import Role
from estate_access.services.auth_service import auth_service
import estate_access.models  # noqa: F401

PASSWORD = "password123"


@pytest.fixture(autouse=True)
def setup_database():
    """Create all tables before each test and drop them afterwards."""
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture
def db(setup_database):
    """A session bound to the test database."""
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def seeded(db):
    """Default permissions, roles, menu and visibility rows."""
    seed_roles(db)
    seed_menu(db)
    return db


@pytest.fixture
def app():
    """The FastAPI application with rate limiting disabled."""
    from estate_access.main import app as fastapi_app
    from estate_access.core.rate_limiter import limiter

    limiter.enabled = False
    return fastapi_app


@pytest.fixture
def client(app) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI application."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def make_user(db):
    """Factory creating a user holding the named roles."""
    counter = {"n": 0}

    def _make(*role_names, email=None):
        counter["n"] += 1
        return auth_service.create_user(
            db,
            email or f"user{counter['n']}@example.com",
            PASSWORD,
            f"User {counter['n']}",
            list(role_names),
        )

    return _make


@pytest.fixture
def super_admin(seeded, make_user):
    return make_user("super_admin", email="root@example.com")


@pytest.fixture
def admin_user(seeded, make_user):
    return make_user("admin", email="admin@example.com")


@pytest.fixture
def investor(seeded, make_user):
    return make_user("investor", email="investor@example.com")


@pytest.fixture
def auth_headers(db):
    """Build a Bearer header for a user."""
    def _headers(user):
        return {"Authorization": f"Bearer {auth_service.issue_token(db, user)}"}

    return _headers


@pytest.fixture
def role_named(db):
    """Look up a role by name."""
    def _role(name) -> Role:
        return db.query(Role).filter(Role.name == name).one()

    return _role


@pytest.fixture
def item_keyed(db):
    """Look up an active menu item by key."""
    def _item(key) -> MenuItem:
        return db.query(MenuItem).filter(MenuItem.key == key, MenuItem.is_active.is_(True)).one()

    return _item
