"""Pytest configuration for backend tests."""
import sys
import os
from pathlib import Path
import pytest
from sqlalchemy.orm import Session
from fastapi.testclient import TestClient

# Add backend directory to Python path
backend_dir = Path(__file__).parent.parent
sys.path.insert(0, str(backend_dir))

# Settings are read at import time, so the test environment must be in place first.
# "sqlite://" is a private in-memory database shared through a StaticPool.
os.environ["DATABASE_URL"] = "sqlite://"
os.environ["SCHEDULER_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["ENVIRONMENT"] = "test"
os.environ["ADMIN_EMAIL_ALLOWLIST"] = "boss@readowl.com"

from readowl.database import Base, SessionLocal, engine, get_db  # noqa: E402

# Import the entire models module to ensure all models are registered with Base.metadata
import readowl.models  # noqa: E402,F401
from readowl.core.security import create_access_token, get_password_hash  # noqa: E402
from readowl.main import app  # noqa: E402
from readowl.models import User, UserRole  # noqa: E402
from readowl.schemas.book import BookCreate  # noqa: E402
from readowl.services import book_service, home_service  # noqa: E402

DEFAULT_PASSWORD = "secret123"


@pytest.fixture(scope="function")
def db() -> Session:
    """
    Create a fresh schema and a database session for each test.

    Tables are dropped afterwards, so tests never see each other's rows.
    """
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()

    yield session

    session.close()
    Base.metadata.drop_all(bind=engine)


@pytest.fixture(autouse=True)
def _clear_ranking_cache():
    home_service.invalidate()
    yield
    home_service.invalidate()


@pytest.fixture
def client(db: Session):
    """TestClient whose requests share the test session."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()


@pytest.fixture
def make_user(db: Session):
    """Factory: persist a user with a known password."""
    counter = {"n": 0}

    def _make(name=None, email=None, role=UserRole.USER, password=DEFAULT_PASSWORD):
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"User {n}",
            email=email or f"user{n}@readowl.com",
            password_hash=get_password_hash(password) if password else None,
            role=role,
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make


def auth_headers(user: User) -> dict:
    token = create_access_token({"sub": str(user.id), "role": user.role.value})
    return {"Authorization": f"Bearer {token}"}


@pytest.fixture
def author(make_user) -> User:
    return make_user(name="Ana Autora", email="ana@readowl.com")


@pytest.fixture
def reader(make_user) -> User:
    return make_user(name="Rui Leitor", email="rui@readowl.com")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(name="Admin", email="admin@readowl.com", role=UserRole.ADMIN)


@pytest.fixture
def make_book(db: Session):
    """Factory: create a book through the service layer."""
    def _make(author: User, title="A Coruja Noturna", genres=("Fantasia",), **fields):
        payload = BookCreate(
            title=title,
            synopsis=fields.pop("synopsis", "Uma coruja que lê de noite."),
            genres=list(genres),
            **fields,
        )
        return book_service.create_book(db, author, payload)

    return _make


@pytest.fixture
def book(make_book, author):
    return make_book(author)
