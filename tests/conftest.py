"""Pytest configuration and shared fixtures."""
import os
from typing import Callable, Dict, Generator

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

# Set test environment variables BEFORE any app imports
os.environ["TESTING"] = "true"
os.environ["ENVIRONMENT"] = "test"
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_BROKER_URL"] = "memory://"
os.environ["CELERY_RESULT_BACKEND"] = "cache+memory://"
os.environ["SENTRY_DSN"] = ""
# High-entropy secret that passes startup validation
os.environ.setdefault("JWT_SECRET_KEY", "kR7#pX2$vN9@mQ4&wL6*zT8!bH3^cF5%")
os.environ.setdefault("CORS_ORIGINS", "http://localhost:3000")
os.environ.setdefault("LOG_LEVEL", "warning")

from fastapi.testclient import TestClient

from app.api.middleware.auth import create_access_token
from app.config.database import Base, get_db
from app.main import app
from app.models.database import User, UserRole
from app.services.integrations.base_adapter import ClearinghouseAdapter, GatewayResult

from tests.factories import (
    ALL_FACTORIES,
    ClaimFactory,
    ClaimLineItemFactory,
    PatientInsuranceFactory,
    UserFactory,
)


# Test database setup
@pytest.fixture(scope="function")
def test_db() -> Generator[Session, None, None]:
    """Create a fresh in-memory database per test."""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    Base.metadata.create_all(bind=engine)

    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    session = TestingSessionLocal()

    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)
        engine.dispose()


@pytest.fixture(scope="function")
def db_session(test_db: Session) -> Generator[Session, None, None]:
    """Provide a database session for tests with factories bound to it."""
    for factory_class in ALL_FACTORIES:
        factory_class._meta.sqlalchemy_session = test_db

    yield test_db
    test_db.rollback()


@pytest.fixture(scope="function")
def override_get_db(db_session: Session):
    """Override the get_db dependency."""
    def _get_db():
        yield db_session

    return _get_db


@pytest.fixture(scope="function")
def client(override_get_db) -> Generator[TestClient, None, None]:
    """Create a test client for the FastAPI app."""
    app.dependency_overrides[get_db] = override_get_db
    # 500 errors come back as responses instead of raising
    with TestClient(app, raise_server_exceptions=False) as test_client:
        yield test_client
    app.dependency_overrides.clear()


# Users and authentication
@pytest.fixture
def admin_user(db_session: Session) -> User:
    return UserFactory(role=UserRole.ADMIN)


@pytest.fixture
def manager_user(db_session: Session) -> User:
    return UserFactory(role=UserRole.MANAGER)


@pytest.fixture
def biller_user(db_session: Session) -> User:
    return UserFactory(role=UserRole.BILLER)


@pytest.fixture
def collector_user(db_session: Session) -> User:
    return UserFactory(role=UserRole.COLLECTOR)


@pytest.fixture
def viewer_user(db_session: Session) -> User:
    return UserFactory(role=UserRole.VIEWER)


@pytest.fixture
def auth_headers() -> Callable[[User], Dict[str, str]]:
    """Build bearer headers for a user."""
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token({"sub": user.id})
        return {"Authorization": f"Bearer {token}"}

    return _headers


# Claims
@pytest.fixture
def coverage(db_session: Session):
    """Primary coverage with its patient and payer."""
    return PatientInsuranceFactory()


@pytest.fixture
def draft_claim(db_session: Session):
    """DRAFT claim with one 500.00 line item, ready for submission checks."""
    claim = ClaimFactory(total_charges=500)
    ClaimLineItemFactory(claim=claim, line_number=1, charge_amount=500)
    db_session.refresh(claim)
    return claim


def line_item_payload(**overrides) -> dict:
    """JSON-style line item for claim create/update requests."""
    payload = {
        "procedure_code": "99213",
        "modifiers": [],
        "diagnosis_pointers": [1],
        "service_date": "2024-01-15",
        "units": 1,
        "charge_amount": "150.00",
    }
    payload.update(overrides)
    return payload


@pytest.fixture
def claim_payload(coverage) -> Callable[..., dict]:
    """Claim create request body for the ``coverage`` fixture's patient."""
    def _payload(**overrides) -> dict:
        payload = {
            "patient_id": coverage.patient_id,
            "primary_insurance_id": coverage.id,
            "claim_type": "PROFESSIONAL",
            "service_date_from": "2024-01-15",
            "service_date_to": "2024-01-15",
            "place_of_service": "11",
            "billing_provider_npi": "1234567893",
            "rendering_provider_npi": "1245319599",
            "primary_diagnosis": "E11.9",
            "line_items": [line_item_payload()],
        }
        payload.update(overrides)
        return payload

    return _payload


class FakeClearinghouse(ClearinghouseAdapter):
    """In-memory gateway that records calls and returns canned results."""

    def __init__(self, submit_result=None, status_result=None):
        super().__init__({})
        self.submit_result = submit_result or GatewayResult(
            success=True, external_id="CH-0001", status="ACCEPTED", message="Claim received"
        )
        self.status_result = status_result or GatewayResult(
            success=True, status="IN_PROCESS", details={"payer": "reviewing"}
        )
        self.submitted = []
        self.status_checks = []
        self.disconnects = 0

    def connect(self):
        self.connected = True
        return True

    def disconnect(self):
        self.connected = False
        self.disconnects += 1

    def test_connection(self):
        return True

    def submit_claim(self, payload):
        self.submitted.append(payload)
        return self.submit_result

    def get_claim_status(self, external_id):
        self.status_checks.append(external_id)
        return self.status_result


@pytest.fixture
def fake_clearinghouse() -> FakeClearinghouse:
    return FakeClearinghouse()
