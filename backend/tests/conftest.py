import os

# Test mode must be fixed before any ``ivms`` module reads the settings.
os.environ["TESTING"] = "1"
os.environ["AUTH_DISABLED"] = "1"
os.environ["BCRYPT_ROUNDS"] = "4"

from datetime import timedelta  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import ivms.database as _db_mod  # noqa: E402
from ivms.database import Base  # noqa: E402
from ivms.database import get_db  # noqa: E402
from ivms.database import make_engine  # noqa: E402
from ivms.database import make_sessionmaker  # noqa: E402
from ivms.dependencies.auth import get_current_user  # noqa: E402
from ivms.models.enums import CarType  # noqa: E402
from ivms.models.enums import Department  # noqa: E402
from ivms.models.enums import Role  # noqa: E402
from ivms.models.enums import TrackingMode  # noqa: E402
from ivms.models.models import User  # noqa: E402
from ivms.services.cars import CarService  # noqa: E402
from ivms.services.parts import PartService  # noqa: E402
from ivms.services.rental_companies import RentalCompanyService  # noqa: E402
from ivms.utils.time import utc_now  # noqa: E402

# Create a test database - using in-memory SQLite for tests
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

test_engine = make_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,  # Use StaticPool for in-memory database
)

TestingSessionLocal = make_sessionmaker(test_engine)

# Background work (notification fan-out) opens its own sessions through
# ``db_session()``; point it at the same in-memory database.
_db_mod.default_engine = test_engine
_db_mod.default_session_factory = TestingSessionLocal

# Import app after the engine setup is in place
from ivms.main import app  # noqa: E402


@pytest.fixture
def db_session():
    """
    Creates a fresh database for each test, then tears it down after the test is done.
    """
    Base.metadata.create_all(bind=test_engine)

    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()
        Base.metadata.drop_all(bind=test_engine)


@pytest.fixture
def client(db_session):
    """
    Create a FastAPI TestClient with the test database dependency.
    """

    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db

    client = TestClient(app)
    yield client

    app.dependency_overrides = {}


# ---------------------------------------------------------------------------
# Users and acting principal
# ---------------------------------------------------------------------------


@pytest.fixture
def make_user(db_session):
    """Factory for persisted users; password hashing is skipped on purpose."""

    counter = {"n": 0}

    def _make(
        department: Department = Department.OPERATION,
        role: Role = Role.OPERATOR,
        username: str = None,
        full_name: str = None,
        is_active: bool = True,
    ) -> User:
        counter["n"] += 1
        user = User(
            username=username or f"{department.value.lower()}{counter['n']}",
            password_hash="not-a-real-hash",
            full_name=full_name or f"{department.value.title()} User {counter['n']}",
            department=department,
            role=role,
            is_active=is_active,
        )
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture
def as_user():
    """Serve every following request as the given user (bypasses the auth strategy)."""

    def _as(user: User) -> User:
        app.dependency_overrides[get_current_user] = lambda: user
        return user

    yield _as

    app.dependency_overrides.pop(get_current_user, None)


@pytest.fixture
def super_admin(make_user):
    return make_user(Department.ADMIN, Role.SUPER_ADMIN, full_name="Sam Admin")


@pytest.fixture
def operator(make_user):
    return make_user(Department.OPERATION, full_name="Olive Operator")


@pytest.fixture
def garage_user(make_user):
    return make_user(Department.GARAGE, full_name="Gus Garage")


@pytest.fixture
def maintenance_user(make_user):
    return make_user(Department.MAINTENANCE, full_name="Mia Mechanic")


# ---------------------------------------------------------------------------
# Domain rows
# ---------------------------------------------------------------------------


@pytest.fixture
def make_car(db_session):
    counter = {"n": 0}

    def _make(**overrides):
        counter["n"] += 1
        data = {
            "model": "Corolla",
            "type": CarType.SEDAN,
            "year": 2022,
            "color": "White",
            "license_plate": f"PLT-{counter['n']:03d}",
            "vin": f"VIN{counter['n']:014d}",
        }
        data.update(overrides)
        return CarService(db_session).create(data)

    return _make


@pytest.fixture
def make_part(db_session):
    def _make(**overrides):
        data = {
            "name": "Brake pad",
            "car_type": CarType.SEDAN,
            "car_model": "Corolla",
            "tracking_mode": TrackingMode.QUANTITY,
            "quantity": 10,
        }
        data.update(overrides)
        return PartService(db_session).create(data)

    return _make


@pytest.fixture
def rental_company(db_session):
    return RentalCompanyService(db_session).create({"name": "Hertz"})


@pytest.fixture
def trip_payload():
    """Valid car request body departing tomorrow."""

    def _payload(**overrides):
        departure = utc_now() + timedelta(days=1)
        data = {
            "requested_car_type": "SEDAN",
            "departure_location": "HQ",
            "destination": "Airport",
            "departure_datetime": departure.isoformat(),
            "return_datetime": (departure + timedelta(hours=6)).isoformat(),
            "description": "Client pickup",
        }
        data.update(overrides)
        return data

    return _payload
