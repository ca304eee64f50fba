import os
from collections.abc import AsyncGenerator
from datetime import date, timedelta
from uuid import uuid4

# Settings are read at import time; point them at an in-memory database first
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key-for-scheduling-tests"
os.environ["CLINIC_TIMEZONE"] = "UTC"
os.environ["LOG_FORMAT"] = "console"

import pytest
import pytest_asyncio
from dotenv import load_dotenv
from httpx import ASGITransport, AsyncClient
from sqlalchemy import insert
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

# Load any remaining variables from .env without overriding the ones above
load_dotenv()

from medibook.core import clock
from medibook.core.security import create_access_token
from medibook.database import get_db
from medibook.main import app
from medibook.models import doctors, metadata, patients
from medibook.schemas.auth import Actor, Caller, CallerRole

TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

# A single shared connection keeps the in-memory database alive across sessions
test_engine = create_async_engine(
    TEST_DATABASE_URL,
    echo=False,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestSessionLocal = async_sessionmaker(
    test_engine,
    class_=AsyncSession,
    expire_on_commit=False,
)

DOCTOR_FEE = 1500

ALL_WEEK_AVAILABILITY = [
    {"day": day, "start_time": "08:00", "end_time": "18:00"} for day in clock.WEEKDAYS
]


@pytest_asyncio.fixture
async def db_session() -> AsyncGenerator[AsyncSession, None]:
    """Create a test database session on a fresh schema."""
    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)
        await conn.run_sync(metadata.create_all)

    async with TestSessionLocal() as session:
        yield session

    async with test_engine.begin() as conn:
        await conn.run_sync(metadata.drop_all)


@pytest_asyncio.fixture
async def client(db_session: AsyncSession) -> AsyncGenerator[AsyncClient, None]:
    """Create a test HTTP client."""

    async def override_get_db() -> AsyncGenerator[AsyncSession, None]:
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


async def _insert_doctor(db_session: AsyncSession, **overrides) -> dict:
    values = {
        "id": uuid4(),
        "user_id": uuid4(),
        "full_name": "Dr. Rajesh Kumar",
        "specialization": "Cardiology",
        "consultation_fee": DOCTOR_FEE,
        "availability": ALL_WEEK_AVAILABILITY,
        "is_available_for_consultation": True,
    }
    values.update(overrides)
    await db_session.execute(insert(doctors).values(**values))
    await db_session.commit()
    return values


async def _insert_patient(db_session: AsyncSession, full_name: str = "Amit Singh") -> dict:
    values = {"id": uuid4(), "user_id": uuid4(), "full_name": full_name}
    await db_session.execute(insert(patients).values(**values))
    await db_session.commit()
    return values


@pytest_asyncio.fixture
async def test_doctor(db_session: AsyncSession) -> dict:
    """Doctor available every day from 08:00 to 18:00."""
    return await _insert_doctor(db_session)


@pytest_asyncio.fixture
async def other_doctor(db_session: AsyncSession) -> dict:
    """A second doctor with the same hours."""
    return await _insert_doctor(db_session, full_name="Dr. Nisha Patel", consultation_fee=1200)


@pytest_asyncio.fixture
async def test_patient(db_session: AsyncSession) -> dict:
    """Patient profile."""
    return await _insert_patient(db_session)


@pytest_asyncio.fixture
async def other_patient(db_session: AsyncSession) -> dict:
    """Unrelated patient profile."""
    return await _insert_patient(db_session, full_name="Priya Mehta")


@pytest.fixture
def doctor_caller(test_doctor: dict) -> Caller:
    return Caller(id=test_doctor["user_id"], role=CallerRole.DOCTOR)


@pytest.fixture
def patient_caller(test_patient: dict) -> Caller:
    return Caller(id=test_patient["user_id"], role=CallerRole.PATIENT)


@pytest.fixture
def doctor_actor(test_doctor: dict) -> Actor:
    return Actor(
        user_id=test_doctor["user_id"], role=CallerRole.DOCTOR, profile_id=test_doctor["id"]
    )


@pytest.fixture
def patient_actor(test_patient: dict) -> Actor:
    return Actor(
        user_id=test_patient["user_id"], role=CallerRole.PATIENT, profile_id=test_patient["id"]
    )


@pytest.fixture
def admin_actor() -> Actor:
    return Actor(user_id=uuid4(), role=CallerRole.ADMIN)


def _auth_headers(user_id, role: str) -> dict:
    token = create_access_token({"sub": str(user_id), "role": role})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def doctor_headers(test_doctor: dict) -> dict:
    """Bearer headers for the test doctor."""
    return _auth_headers(test_doctor["user_id"], "doctor")


@pytest.fixture
def other_doctor_headers(other_doctor: dict) -> dict:
    """Bearer headers for the second doctor."""
    return _auth_headers(other_doctor["user_id"], "doctor")


@pytest.fixture
def patient_headers(test_patient: dict) -> dict:
    """Bearer headers for the test patient."""
    return _auth_headers(test_patient["user_id"], "patient")


@pytest.fixture
def other_patient_headers(other_patient: dict) -> dict:
    """Bearer headers for the unrelated patient."""
    return _auth_headers(other_patient["user_id"], "patient")


@pytest.fixture
def admin_headers() -> dict:
    """Bearer headers for an admin with no scheduling profile."""
    return _auth_headers(uuid4(), "admin")


@pytest.fixture
def future_day() -> date:
    """A date safely in the future."""
    return clock.today() + timedelta(days=30)


@pytest.fixture
def booking_data(test_doctor: dict, future_day: date) -> dict:
    """Booking request for 10:00-10:30 with the test doctor."""
    return {
        "doctor_id": str(test_doctor["id"]),
        "date": future_day.isoformat(),
        "start_time": "10:00",
        "end_time": "10:30",
        "type": "in-person",
        "reason_for_visit": "Chest pain during exercise",
        "symptoms": ["chest pain", "shortness of breath"],
    }
