# backend/tests/conftest.py
"""
Shared fixtures.

Each test gets its own in-memory SQLite database so commits and rollbacks made
by services behave exactly as they do against a real database.
"""

from decimal import Decimal
import os
from typing import Callable, Dict, Iterator

# Must be set before rentals.core.config is imported.
os.environ.setdefault("SITE_MODE", "test")
os.environ.setdefault("PAYMENT_MODE", "mock")
os.environ.setdefault("DATABASE_URL", "sqlite+pysqlite:///:memory:")

from fastapi.testclient import TestClient  # noqa: E402
import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import Session, sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from rentals.api.dependencies.database import get_db  # noqa: E402
from rentals.api.dependencies.services import get_payment_client  # noqa: E402
from rentals.auth import create_access_token  # noqa: E402
from rentals.core.config import Settings  # noqa: E402
from rentals.core.enums import RoleName  # noqa: E402
from rentals.core.ulid_helper import generate_ulid  # noqa: E402
from rentals.database import Base  # noqa: E402
from rentals.integrations import FakePaystackClient  # noqa: E402
from rentals.main import app  # noqa: E402
import rentals.models  # noqa: E402,F401
from rentals.models.property import BillingPeriod, Property  # noqa: E402
from rentals.models.user import User  # noqa: E402


@pytest.fixture
def db_engine():
    engine = create_engine(
        "sqlite+pysqlite:///:memory:",
        future=True,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def db(db_engine) -> Iterator[Session]:
    session = sessionmaker(bind=db_engine, expire_on_commit=False, future=True)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        _env_file=None,
        SITE_MODE="test",
        payment_mode="mock",
        price_policy="verify",
        booking_overlap_policy="reject",
        callback_base_url="http://api.test",
        frontend_url="http://app.test",
    )


@pytest.fixture
def make_user(db) -> Callable[..., User]:
    def _make(role: RoleName = RoleName.USER, email: str | None = None) -> User:
        user_id = generate_ulid()
        user = User(
            id=user_id,
            email=email or f"{role.value.lower()}-{user_id.lower()}@example.com",
            full_name=f"{role.value.title()} {user_id[-4:]}",
            role=role.value,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def make_property(db) -> Callable[..., Property]:
    def _make(
        manager: User,
        price: str = "200.00",
        billing_period: BillingPeriod = BillingPeriod.PER_NIGHT,
        title: str = "Harbour View Loft",
    ) -> Property:
        listing = Property(
            id=generate_ulid(),
            manager_id=manager.id,
            title=title,
            price=Decimal(price),
            currency="USD",
            billing_period=billing_period.value,
        )
        db.add(listing)
        db.commit()
        return listing

    return _make


@pytest.fixture
def resident(make_user) -> User:
    return make_user(RoleName.USER)


@pytest.fixture
def other_resident(make_user) -> User:
    return make_user(RoleName.USER)


@pytest.fixture
def manager(make_user) -> User:
    return make_user(RoleName.PROPERTY_MANAGER)


@pytest.fixture
def other_manager(make_user) -> User:
    return make_user(RoleName.PROPERTY_MANAGER)


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.SUPER_ADMIN)


@pytest.fixture
def listing(make_property, manager) -> Property:
    """A nightly-priced property at 200.00 managed by ``manager``."""
    return make_property(manager)


@pytest.fixture
def auth_headers_for() -> Callable[[User], Dict[str, str]]:
    def _headers(user: User) -> Dict[str, str]:
        token = create_access_token(user.id, user.role)
        return {"Authorization": f"Bearer {token}"}

    return _headers


@pytest.fixture
def client(db) -> Iterator[TestClient]:
    """API client sharing the test session, with the fake payment client."""

    def _get_test_db():
        yield db

    app.dependency_overrides[get_db] = _get_test_db
    app.dependency_overrides[get_payment_client] = FakePaystackClient
    try:
        yield TestClient(app, follow_redirects=False)
    finally:
        app.dependency_overrides.clear()
