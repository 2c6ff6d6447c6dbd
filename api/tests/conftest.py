"""Pytest fixtures for API testing."""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from visita.main import app
from visita.core.database import get_db
from visita.core.security import create_access_token
from visita.core.time import utc_now
from visita.core.workflow import ActorRole, ChurchStatus
from visita.models.base import Base
from visita.models.user import User
from visita.models.church import Church

# In-memory SQLite for testing
SQLALCHEMY_DATABASE_URL = "sqlite:///:memory:"

engine = create_engine(
    SQLALCHEMY_DATABASE_URL,
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

PARISH_ID = "baclayon"
DIOCESE = "tagbilaran"

LIVE_CONTACT = {"phone": "09171234567", "email": "parish@baclayon.ph"}


def override_get_db():
    """Override database dependency for testing."""
    try:
        db = TestingSessionLocal()
        yield db
    finally:
        db.close()


@pytest.fixture(scope="function")
def db_session():
    """Create a fresh database for each test."""
    Base.metadata.create_all(bind=engine)
    db = TestingSessionLocal()
    yield db
    db.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(scope="function")
def client(db_session):
    """Test client with database override.

    Note: db_session already created tables, so we don't need to create them again.
    """
    app.dependency_overrides[get_db] = override_get_db

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


def _make_user(db_session, email, full_name, role, diocese=None, parish_id=None):
    user = User(
        email=email,
        full_name=full_name,
        role=role,
        diocese=diocese,
        parish_id=parish_id,
        is_active=True,
    )
    db_session.add(user)
    db_session.commit()
    db_session.refresh(user)
    return user


@pytest.fixture
def parish_user(db_session):
    """Parish secretary of the Baclayon parish."""
    return _make_user(
        db_session, "secretary@baclayon.ph", "Parish Secretary",
        ActorRole.PARISH_SECRETARY.value, DIOCESE, PARISH_ID
    )


@pytest.fixture
def other_parish_user(db_session):
    """Parish secretary of a different parish in the same diocese."""
    return _make_user(
        db_session, "secretary@loboc.ph", "Loboc Secretary",
        ActorRole.PARISH_SECRETARY.value, DIOCESE, "loboc"
    )


@pytest.fixture
def chancery_user(db_session):
    return _make_user(
        db_session, "chancery@tagbilaran.ph", "Chancery Office",
        ActorRole.CHANCERY_OFFICE.value, DIOCESE
    )


@pytest.fixture
def other_chancery_user(db_session):
    """Chancery office of the other diocese."""
    return _make_user(
        db_session, "chancery@talibon.ph", "Talibon Chancery",
        ActorRole.CHANCERY_OFFICE.value, "talibon"
    )


@pytest.fixture
def museum_user(db_session):
    return _make_user(
        db_session, "researcher@museum.ph", "Museum Researcher",
        ActorRole.MUSEUM_RESEARCHER.value
    )


def headers_for(user):
    token = create_access_token(data={"sub": user.email})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def parish_headers(parish_user):
    return headers_for(parish_user)


@pytest.fixture
def chancery_headers(chancery_user):
    return headers_for(chancery_user)


@pytest.fixture
def museum_headers(museum_user):
    return headers_for(museum_user)


def _make_church(db_session, owner, church_id, status, fields):
    now = utc_now()
    church = Church(
        church_id=church_id,
        parish_id=PARISH_ID,
        diocese=DIOCESE,
        status=status,
        fields=fields,
        has_pending_changes=False,
        created_by_id=owner.user_id,
        created_at=now,
        updated_at=now,
        approved_at=now if status == ChurchStatus.APPROVED.value else None,
    )
    db_session.add(church)
    db_session.commit()
    db_session.refresh(church)
    return church


@pytest.fixture
def approved_church(db_session, parish_user):
    """A published, non-heritage church."""
    return _make_church(db_session, parish_user, "baclayon-chapel", ChurchStatus.APPROVED.value, {
        "name": "St. Joseph Chapel",
        "municipality": "Baclayon",
        "location": "Poblacion, Baclayon",
        "founding_year": 1955,
        "classification": "parish_church",
        "historical_background": "Built after the war.",
        "contact_info": dict(LIVE_CONTACT),
    })


@pytest.fixture
def heritage_church(db_session, parish_user):
    """A published church classified as an Important Cultural Property."""
    return _make_church(db_session, parish_user, "baclayon-church", ChurchStatus.APPROVED.value, {
        "name": "Immaculate Conception Parish",
        "municipality": "Baclayon",
        "location": "Poblacion, Baclayon",
        "founding_year": 1717,
        "classification": "ICP",
        "historical_background": "One of the oldest stone churches in the country.",
        "contact_info": dict(LIVE_CONTACT),
    })


@pytest.fixture
def draft_church(db_session, parish_user):
    return _make_church(db_session, parish_user, "baclayon-draft", ChurchStatus.DRAFT.value, {
        "name": "Sto. Nino Chapel",
        "municipality": "Baclayon",
        "location": "Laya, Baclayon",
    })


@pytest.fixture
def pending_church(db_session, parish_user):
    """Submitted, non-heritage church awaiting chancery review."""
    return _make_church(db_session, parish_user, "baclayon-pending", ChurchStatus.PENDING.value, {
        "name": "San Roque Chapel",
        "municipality": "Baclayon",
        "location": "Taguihon, Baclayon",
        "founding_year": 1960,
    })


@pytest.fixture
def auth_headers():
    """Factory for bearer headers of any user fixture."""
    return headers_for
