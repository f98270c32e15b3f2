import pytest
from typing import AsyncGenerator, Callable, Awaitable
from httpx import AsyncClient, ASGITransport
from sqlalchemy.ext.asyncio import AsyncSession, AsyncEngine, async_sessionmaker

from mediconnect.main import app
from mediconnect.infrastructure.database import get_db, build_engine, build_sessionmaker, init_db
from mediconnect.domain.directory.models import Profile, Pharmacy, ProfileRole
from mediconnect.domain.directory.repository import DirectoryRepository
from mediconnect.domain.emr.models import MedicalHistory
from mediconnect.domain.emr.repository import MedicalHistoryRepository
from mediconnect.domain.prescriptions.models import Prescription, PrescriptionStatus
from mediconnect.domain.prescriptions.repository import PrescriptionRepository


@pytest.fixture(scope="function")
async def db_engine(tmp_path) -> AsyncGenerator[AsyncEngine, None]:
    """A fresh file-backed SQLite database per test, so separate sessions see each other's commits."""
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test_mediconnect.db'}")
    await init_db(bind=engine)
    yield engine
    await engine.dispose()


@pytest.fixture(scope="function")
def session_factory(db_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return build_sessionmaker(db_engine)


@pytest.fixture(scope="function")
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Create a fresh database session for each test."""
    async with session_factory() as session:
        yield session


@pytest.fixture(scope="function")
async def client(session_factory) -> AsyncGenerator[AsyncClient, None]:
    """Create a test client with database dependency override."""

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()


@pytest.fixture(scope="function")
async def patient(db: AsyncSession) -> Profile:
    return await DirectoryRepository(db).create_profile({
        "email": "ion.popescu@example.com",
        "full_name": "Ion Popescu",
        "role": ProfileRole.PATIENT,
        "cnp": "1900101123456"
    })


@pytest.fixture(scope="function")
async def medic(db: AsyncSession) -> Profile:
    return await DirectoryRepository(db).create_profile({
        "email": "dr.ionescu@example.com",
        "full_name": "Dr. Maria Ionescu",
        "role": ProfileRole.HOSPITAL_MEDIC,
        "department": "Cardiology"
    })


@pytest.fixture(scope="function")
async def pharmacy(db: AsyncSession) -> Pharmacy:
    return await DirectoryRepository(db).create_pharmacy({"name": "Farmacia Centrala", "address": "Str. Lunga 1"})


@pytest.fixture(scope="function")
async def pharmacist(db: AsyncSession, pharmacy: Pharmacy) -> Profile:
    return await DirectoryRepository(db).create_profile({
        "email": "ana.pharma@example.com",
        "full_name": "Ana Vasilescu",
        "role": ProfileRole.PHARMACIST,
        "pharmacy_id": pharmacy.id
    })


@pytest.fixture(scope="function")
def make_prescription(
    db: AsyncSession, patient: Profile, medic: Profile
) -> Callable[..., Awaitable[Prescription]]:
    """Factory for prescriptions in an arbitrary starting state."""

    async def _make(**overrides) -> Prescription:
        data = {
            "patient_id": patient.id,
            "medic_id": medic.id,
            "medication_name": "Amoxicillin",
            "dosage": "500mg",
            "frequency": "3 times a day",
            "duration": "7 days",
            "total_doses": 3,
            "doses_dispensed": 0,
            "status": PrescriptionStatus.ACTIVE,
            "is_invalidated": False,
        }
        data.update(overrides)
        return await PrescriptionRepository(db).create(data)

    return _make


@pytest.fixture(scope="function")
def make_visit(db: AsyncSession, patient: Profile, medic: Profile) -> Callable[..., Awaitable[MedicalHistory]]:
    """Factory for medical history records of the default patient."""

    async def _make(**overrides) -> MedicalHistory:
        data = {
            "patient_id": patient.id,
            "medic_id": medic.id,
            "diagnosis": "Hypertension",
            "symptoms": "Headache, dizziness",
            "treatment": "Lifestyle changes",
        }
        data.update(overrides)
        return await MedicalHistoryRepository(db).create(data)

    return _make


# Pytest configuration
def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "unit: mark test as a unit test"
    )
    config.addinivalue_line(
        "markers", "integration: mark test as an integration test"
    )
    config.addinivalue_line(
        "markers", "dispensation: mark test as dispensation workflow related"
    )
    config.addinivalue_line(
        "markers", "concurrency: mark test as exercising concurrent callers"
    )
    config.addinivalue_line(
        "markers", "ai: mark test as text-generation service related"
    )

