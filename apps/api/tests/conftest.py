"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database created per test from Base.metadata
- Factories for organizations, users (with created-by edges), customers, tickets
- The reference hierarchy: Owner -> M1 -> {A1, A2}, Owner -> M2 -> {A3}
- HTTPX AsyncClients authenticated as any user (JWT cookie + CSRF header)
"""
import os
import uuid
from contextlib import AsyncExitStack
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import AsyncGenerator, Generator

# Configure before the app (and its settings/engine) is imported.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["ENV"] = "dev"
os.environ["REDIS_URL"] = ""
os.environ["AI_API_KEY"] = ""
os.environ["RESEND_API_KEY"] = ""
os.environ["DEV_SECRET"] = "test-dev-secret"
os.environ["INBOUND_EMAIL_SECRET"] = "test-inbound-secret"

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from app.core.deps import COOKIE_NAME, get_db
from app.core.security import create_session_token
from app.db.base import Base
from app.db.enums import Role, TicketChannel, TicketPriority, TicketStatus
from app.db.models import Customer, Organization, Ticket, User
from app.db.session import SessionLocal, engine
from app.main import app
from app.schemas.auth import UserSession
from app.services import assignment_service

BASE_TIME = datetime(2026, 1, 1, tzinfo=timezone.utc)


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh schema per test; app code may commit freely."""
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def reset_rotation_cursor():
    assignment_service._local_cursor.reset()
    yield
    assignment_service._local_cursor.reset()


# =============================================================================
# Factories
# =============================================================================

class Factory:
    """Creates committed rows with deterministic creation order."""

    def __init__(self, db: Session):
        self.db = db
        self._tick = 0

    def _next_time(self) -> datetime:
        self._tick += 1
        return BASE_TIME + timedelta(seconds=self._tick)

    def org(self, slug: str | None = None) -> Organization:
        org = Organization(
            name="Test Organization",
            slug=slug or f"test-org-{uuid.uuid4().hex[:8]}",
        )
        self.db.add(org)
        self.db.commit()
        return org

    def user(
        self,
        org: Organization,
        role: Role,
        created_by: User | None = None,
        name: str | None = None,
        is_active: bool = True,
    ) -> User:
        label = name or role.value
        user = User(
            organization_id=org.id,
            email=f"{label.lower()}-{uuid.uuid4().hex[:6]}@test.com",
            display_name=label,
            role=role,
            created_by_id=created_by.id if created_by else None,
            is_active=is_active,
            created_at=self._next_time(),
        )
        self.db.add(user)
        self.db.commit()
        return user

    def customer(self, org: Organization, email: str | None = None) -> Customer:
        customer = Customer(
            organization_id=org.id,
            email=email or f"customer-{uuid.uuid4().hex[:6]}@example.com",
            name="Casey Customer",
        )
        self.db.add(customer)
        self.db.commit()
        return customer

    def ticket(
        self,
        org: Organization,
        customer: Customer,
        assignee: User | None = None,
        subject: str = "Printer on fire",
        status: TicketStatus = TicketStatus.OPEN,
        priority: TicketPriority = TicketPriority.MEDIUM,
        channel: TicketChannel = TicketChannel.PORTAL,
    ) -> Ticket:
        self._tick += 1
        ticket = Ticket(
            organization_id=org.id,
            ticket_number=f"FIX-{self._tick:05d}",
            subject=subject,
            status=status,
            priority=priority,
            channel=channel,
            assignee_id=assignee.id if assignee else None,
            customer_id=customer.id,
            created_at=self._next_time(),
        )
        self.db.add(ticket)
        self.db.commit()
        return ticket


@pytest.fixture(scope="function")
def factory(db: Session) -> Factory:
    return Factory(db)


def build_session(user: User) -> UserSession:
    """Actor context as the auth dependency would build it."""
    return UserSession(
        user_id=user.id,
        org_id=user.organization_id,
        role=user.role,
        email=user.email,
        display_name=user.display_name,
    )


@pytest.fixture
def session_for():
    """`session_for(user)` -> UserSession for service-level calls."""
    return build_session


@dataclass
class Hierarchy:
    """Owner -> M1 -> {A1, A2}; Owner -> M2 -> {A3}."""

    org: Organization
    owner: User
    m1: User
    a1: User
    a2: User
    m2: User
    a3: User


@pytest.fixture(scope="function")
def hierarchy(factory: Factory) -> Hierarchy:
    org = factory.org()
    owner = factory.user(org, Role.OWNER, name="Owner")
    m1 = factory.user(org, Role.MANAGER, created_by=owner, name="M1")
    a1 = factory.user(org, Role.AGENT, created_by=m1, name="A1")
    a2 = factory.user(org, Role.AGENT, created_by=m1, name="A2")
    m2 = factory.user(org, Role.MANAGER, created_by=owner, name="M2")
    a3 = factory.user(org, Role.AGENT, created_by=m2, name="A3")
    return Hierarchy(org=org, owner=owner, m1=m1, a1=a1, a2=a2, m2=m2, a3=a3)


# =============================================================================
# Client Fixtures
# =============================================================================

def _override_db(db: Session):
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db


@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """Unauthenticated AsyncClient for public endpoints."""
    _override_db(db)
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def client_for(db: Session):
    """
    Factory for AsyncClients authenticated as a given user.

    Usage: `owner_client = await client_for(hierarchy.owner)`
    """
    _override_db(db)
    async with AsyncExitStack() as stack:

        async def _make(user: User) -> AsyncClient:
            token = create_session_token(
                user_id=user.id,
                org_id=user.organization_id,
                role=user.role.value,
                token_version=user.token_version,
            )
            return await stack.enter_async_context(
                AsyncClient(
                    transport=ASGITransport(app=app),
                    base_url="http://test",
                    cookies={COOKIE_NAME: token},
                    headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
                )
            )

        yield _make
    app.dependency_overrides.clear()
