# backend/tests/conftest.py
"""
Pytest configuration for the TutorBook backend.

Every test gets a fresh in-memory SQLite database (StaticPool, so the
TestClient's worker threads share the one connection). Time is never read
from the wall clock: services receive ``NOW`` from tests.helpers explicitly.
"""

import os

# Set BEFORE any app imports so the module-level engine never touches a file
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("ENVIRONMENT", "test")

from typing import Callable, Iterator, Optional

from fastapi.testclient import TestClient
import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from app import models  # noqa: F401
from app.api.dependencies.database import get_db
from app.core.enums import RoleName
from app.database import Base
from app.main import app
from app.models.user import User


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=test_engine)
    yield test_engine
    Base.metadata.drop_all(bind=test_engine)
    test_engine.dispose()


@pytest.fixture
def db(engine) -> Iterator[Session]:
    """A fresh session per test; services commit through it."""
    session = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_user(db: Session) -> Callable[..., User]:
    counter = {"n": 0}

    def _make(
        role: RoleName = RoleName.STUDENT,
        name: Optional[str] = None,
        email: Optional[str] = None,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        user = User(
            name=name or f"{role.value.title()} {n}",
            email=email or f"{role.value}{n}@example.com",
            role=role.value,
        )
        db.add(user)
        db.commit()
        return user

    return _make


@pytest.fixture
def student(make_user) -> User:
    return make_user(RoleName.STUDENT, name="Sam Student")


@pytest.fixture
def other_student(make_user) -> User:
    return make_user(RoleName.STUDENT, name="Olive Other")


@pytest.fixture
def tutor(make_user) -> User:
    return make_user(RoleName.TUTOR, name="Tara Tutor")


@pytest.fixture
def other_tutor(make_user) -> User:
    return make_user(RoleName.TUTOR, name="Theo Tutor")


@pytest.fixture
def admin(make_user) -> User:
    return make_user(RoleName.ADMIN, name="Ada Admin")


@pytest.fixture
def client(db: Session) -> Iterator[TestClient]:
    """Create a test client bound to the test database."""

    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    test_client = TestClient(app)
    yield test_client
    app.dependency_overrides.clear()
    test_client.close()
