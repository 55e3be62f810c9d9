import uuid
from datetime import datetime, timedelta

import pytest
from fastapi.testclient import TestClient

from clouddrive import config
from clouddrive.auth.passwords import hash_and_store, pwd_context
from clouddrive.db import get_db, init_db
from clouddrive.models import User
from clouddrive.models.base import utcnow
from clouddrive.services import item_service
from clouddrive.store import SqliteStore


@pytest.fixture(scope="session", autouse=True)
def fast_hashing():
    # minimum bcrypt cost keeps the suite quick
    pwd_context.update(bcrypt__rounds=4)


class FrozenClock:
    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock():
    return FrozenClock(utcnow())


@pytest.fixture
def db_path(tmp_path):
    path = tmp_path / "clouddrive-test.db"
    init_db(path)
    return path


@pytest.fixture
def store(db_path):
    s = SqliteStore(get_db(db_path))
    yield s
    s.close()


@pytest.fixture
def make_user(store):
    def _make(name="Alice", email=None, password="password123", **kwargs):
        user = User(
            id=str(uuid.uuid4()),
            name=name,
            email=email or f"{name.lower()}-{uuid.uuid4().hex[:6]}@example.com",
            password_hash=hash_and_store(password),
            created_at=utcnow(),
            **kwargs,
        )
        return store.insert_user(user)

    return _make


@pytest.fixture
def alice(make_user):
    return make_user("Alice")


@pytest.fixture
def bob(make_user):
    return make_user("Bob")


@pytest.fixture
def alice_file(store, alice):
    return item_service.register_file(store, alice, "report.pdf", "application/pdf", 1024)


@pytest.fixture
def alice_folder(store, alice):
    return item_service.create_folder(store, alice.id, "Projects")


@pytest.fixture
def client(db_path, monkeypatch):
    monkeypatch.setattr(config, "DB_PATH", db_path)

    from clouddrive.main import create_app

    with TestClient(create_app()) as c:
        yield c
