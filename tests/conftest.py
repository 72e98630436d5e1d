import os
import tempfile

import pytest

os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="lostfound-uploads-"))

from fastapi.testclient import TestClient  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402
from sqlmodel import Session, SQLModel, create_engine  # noqa: E402

import store  # noqa: E402
from db import get_session  # noqa: E402
from main import app  # noqa: E402
from models import Category, ItemStatus, Role  # noqa: E402
from schemas import ItemCreate  # noqa: E402
from security import hash_password  # noqa: E402

PASSWORD = "correct horse"


@pytest.fixture
def engine():
    test_engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    SQLModel.metadata.create_all(test_engine)
    yield test_engine
    SQLModel.metadata.drop_all(test_engine)


@pytest.fixture
def session(engine):
    with Session(engine) as db:
        yield db


@pytest.fixture
def make_user(session):
    def _make_user(email: str, role: Role = Role.STUDENT, name: str | None = None):
        return store.create_user(
            session,
            email=email,
            password_hash=hash_password(PASSWORD),
            name=name,
            role=role,
        )

    return _make_user


@pytest.fixture
def make_item(session):
    def _make_item(owner, **overrides):
        data = {
            "title": "Blue umbrella",
            "description": "Folding umbrella with a wooden handle",
            "category": Category.ACCESSORIES,
            "status": ItemStatus.LOST,
            "location": "Library 2nd floor",
            "contact_number": "+1 555 0100",
        }
        data.update(overrides)
        image_url = data.pop("image_url", None)
        return store.create_item(session, owner.id, ItemCreate(**data), image_url)

    return _make_item


@pytest.fixture
def client(engine):
    def _get_session():
        with Session(engine) as db:
            yield db

    app.dependency_overrides[get_session] = _get_session
    yield TestClient(app)
    app.dependency_overrides.pop(get_session, None)
