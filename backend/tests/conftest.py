"""Pytest configuration and fixtures."""

import os

# Must be set before the app (and its engine) is imported
os.environ.setdefault("DATABASE_URL", "sqlite:///:memory:")

from typing import Generator

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from fakes import auth_headers_for, make_tenant, make_user, menu_transport
from tableorder.db.base import Base
from tableorder.db.session import get_db
from tableorder.main import app
from tableorder.models import *  # noqa: F401,F403 - register all tables
from tableorder.models.tenant import Tenant
from tableorder.models.user import AppRole, User
from tableorder.services.cart import CartStore, get_cart_store
from tableorder.services.menu_source import MenuSource, get_menu_source
from tableorder.services.payment_link import UpiPaymentLinkProvider, get_payment_link_provider

# Use in-memory SQLite for tests
TEST_DATABASE_URL = "sqlite:///:memory:"


@pytest.fixture(scope="function")
def db_engine():
    """Create a test database engine."""
    engine = create_engine(
        TEST_DATABASE_URL,
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def db_session(db_engine) -> Generator[Session, None, None]:
    """Create a test database session."""
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=db_engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def cart_store() -> CartStore:
    return CartStore()


@pytest.fixture
def menu_source() -> MenuSource:
    return MenuSource(transport=menu_transport())


@pytest.fixture(scope="function")
def client(db_session: Session, cart_store: CartStore, menu_source: MenuSource) -> Generator[TestClient, None, None]:
    """Create a test client with database, cart, menu and payment overrides."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_cart_store] = lambda: cart_store
    app.dependency_overrides[get_menu_source] = lambda: menu_source
    app.dependency_overrides[get_payment_link_provider] = UpiPaymentLinkProvider
    # Disable rate limiting during tests to avoid flaky failures
    from tableorder.core.rate_limit import limiter
    limiter.enabled = False
    # Don't raise server exceptions so we can test error status codes
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    limiter.enabled = True
    app.dependency_overrides.clear()


# ============== Fixtures ==============

@pytest.fixture
def tenant(db_session: Session) -> Tenant:
    return make_tenant(db_session)


@pytest.fixture
def other_tenant(db_session: Session) -> Tenant:
    return make_tenant(db_session, name="Curry House", merchant_upi_id="curryhouse@upi")


@pytest.fixture
def chef(db_session: Session, tenant: Tenant) -> User:
    return make_user(db_session, "chef@spicegarden.in", AppRole.CHEF, tenant.id, full_name="Ravi Kumar")


@pytest.fixture
def chef_headers(chef: User) -> dict:
    return auth_headers_for(chef)


@pytest.fixture
def waiter_headers(db_session: Session, tenant: Tenant) -> dict:
    return auth_headers_for(make_user(db_session, "waiter@spicegarden.in", AppRole.WAITER, tenant.id))


@pytest.fixture
def manager_headers(db_session: Session, tenant: Tenant) -> dict:
    return auth_headers_for(make_user(db_session, "manager@spicegarden.in", AppRole.MANAGER, tenant.id))


@pytest.fixture
def tenant_admin_headers(db_session: Session, tenant: Tenant) -> dict:
    return auth_headers_for(make_user(db_session, "owner@spicegarden.in", AppRole.TENANT_ADMIN, tenant.id))


@pytest.fixture
def admin_headers(db_session: Session) -> dict:
    return auth_headers_for(make_user(db_session, "root@tableorder.app", AppRole.ADMIN, None))


@pytest.fixture
def customer(db_session: Session) -> User:
    return make_user(db_session, "diner@example.com", full_name="Asha")


@pytest.fixture
def customer_headers(customer: User) -> dict:
    return auth_headers_for(customer)
