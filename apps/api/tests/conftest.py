"""
Test configuration and fixtures.

Provides:
- In-memory SQLite database, schema created and dropped per test
- A clinic with an admin user, plus JWT cookie minting
- HTTPX AsyncClient with proper headers
- Small factories for contacts, rules and executions
"""
import os
import uuid
from dataclasses import dataclass
from datetime import datetime
from typing import AsyncGenerator, Generator

# Must be set before clinic_api is imported (settings are read at import time)
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["TESTING"] = "1"
os.environ["FOLLOW_UP_CRON_SECRET"] = ""

import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session

from clinic_api.core.deps import COOKIE_NAME, get_db
from clinic_api.core.security import create_session_token, hash_password
from clinic_api.db.base import Base
from clinic_api.db.enums import (
    FollowUpExecutionStatus,
    FollowUpTargetType,
    FollowUpTrigger,
    LeadSource,
    Role,
)
from clinic_api.db.models import (
    Clinic,
    ClinicSettings,
    FollowUp,
    FollowUpExecution,
    Lead,
    Patient,
    User,
)
from clinic_api.db.session import SessionLocal, engine
from clinic_api.db.types import utcnow
from clinic_api.main import app

TEST_PASSWORD = "correct-horse-battery"


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """
    Fresh schema for every test.

    App code commits freely; isolation comes from dropping the tables.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def test_clinic(db: Session) -> Clinic:
    """Create a test clinic."""
    clinic = Clinic(
        id=uuid.uuid4(),
        name="Sorriso Dental",
        slug=f"sorriso-{uuid.uuid4().hex[:8]}",
    )
    db.add(clinic)
    db.commit()
    return clinic


@pytest.fixture(scope="function")
def other_clinic(db: Session) -> Clinic:
    """A second tenant, for isolation checks."""
    clinic = Clinic(
        id=uuid.uuid4(),
        name="Other Clinic",
        slug=f"other-{uuid.uuid4().hex[:8]}",
    )
    db.add(clinic)
    db.commit()
    return clinic


@pytest.fixture(scope="function")
def test_user(db: Session, test_clinic: Clinic) -> User:
    """Create an admin user in test_clinic."""
    user = User(
        id=uuid.uuid4(),
        clinic_id=test_clinic.id,
        email=f"test-{uuid.uuid4().hex[:8]}@test.com",
        display_name="Test User",
        role=Role.ADMIN.value,
        password_hash=hash_password(TEST_PASSWORD),
    )
    db.add(user)
    db.commit()
    return user


# =============================================================================
# Auth Fixtures
# =============================================================================

@dataclass
class TestAuth:
    """Test authentication context."""
    user: User
    clinic: Clinic
    token: str
    cookie_name: str = COOKIE_NAME


def make_token(user: User) -> str:
    return create_session_token(
        user_id=user.id,
        clinic_id=user.clinic_id,
        role=user.role,
        token_version=user.token_version,
    )


@pytest.fixture(scope="function")
def test_auth(test_user: User, test_clinic: Clinic) -> TestAuth:
    """Create JWT token for test user."""
    return TestAuth(user=test_user, clinic=test_clinic, token=make_token(test_user))


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(db: Session) -> AsyncGenerator[AsyncClient, None]:
    """
    Create unauthenticated AsyncClient for testing public endpoints.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test"
    ) as c:
        yield c

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def authed_client(
    db: Session,
    test_auth: TestAuth
) -> AsyncGenerator[AsyncClient, None]:
    """
    Create authenticated AsyncClient with JWT cookie and CSRF header.
    """
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
        cookies={test_auth.cookie_name: test_auth.token},
        headers={"X-Requested-With": "XMLHttpRequest"},  # CSRF header
    ) as c:
        yield c

    app.dependency_overrides.clear()


# =============================================================================
# Factories
# =============================================================================

def create_patient(db: Session, clinic: Clinic, name: str = "Maria Silva", phone: str | None = "5511999990000") -> Patient:
    patient = Patient(clinic_id=clinic.id, name=name, phone=phone)
    db.add(patient)
    db.commit()
    return patient


def create_lead(
    db: Session,
    clinic: Clinic,
    name: str = "João Souza",
    phone: str | None = "5511988880000",
    source: LeadSource = LeadSource.WHATSAPP,
) -> Lead:
    lead = Lead(clinic_id=clinic.id, name=name, phone=phone, source=source.value)
    db.add(lead)
    db.commit()
    return lead


def create_rule(
    db: Session,
    clinic: Clinic,
    trigger: FollowUpTrigger = FollowUpTrigger.PATIENT_CREATED,
    target_type: FollowUpTargetType = FollowUpTargetType.PATIENT,
    delay_days: int = 1,
    message_template: str = "Hi {name}, thanks for visiting {clinic}!",
    active: bool = True,
    name: str = "Welcome message",
) -> FollowUp:
    rule = FollowUp(
        clinic_id=clinic.id,
        name=name,
        trigger=trigger.value,
        target_type=target_type.value,
        delay_days=delay_days,
        message_template=message_template,
        active=active,
    )
    db.add(rule)
    db.commit()
    return rule


def create_execution(
    db: Session,
    rule: FollowUp,
    target_id: uuid.UUID,
    scheduled_for: datetime,
    status: FollowUpExecutionStatus = FollowUpExecutionStatus.PENDING,
    message: str = "Hi there",
) -> FollowUpExecution:
    now = utcnow()
    execution = FollowUpExecution(
        follow_up_id=rule.id,
        clinic_id=rule.clinic_id,
        target_id=target_id,
        target_type=rule.target_type,
        message=message,
        scheduled_for=scheduled_for,
        status=status.value,
        created_at=now,
        updated_at=now,
    )
    db.add(execution)
    db.commit()
    return execution


def configure_whatsapp(db: Session, clinic: Clinic) -> ClinicSettings:
    row = ClinicSettings(
        clinic_id=clinic.id,
        whatsapp_token="wa-token-123456789",
        whatsapp_phone_number_id="1029384756",
        instagram_access_token="ig-token-123456789",
    )
    db.add(row)
    db.commit()
    return row
