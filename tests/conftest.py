"""
Shared pytest fixtures.

Uses a file-backed SQLite database so no Postgres is required for tests.
"""
import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.db.base import Base, get_db
from app.main import app

SQLITE_URL = "sqlite:///./test_curvas.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(scope="session", autouse=True)
def create_tables():
    Base.metadata.drop_all(bind=engine)
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def client(db):
    app.dependency_overrides[get_db] = override_get_db
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def capture(client):
    """POST a snapshot and assert it was stored."""
    def _capture(project_code: str, snapshot_date: str, tasks: list[dict]) -> dict:
        r = client.post(
            f"/project/{project_code}/snapshots",
            json={"snapshot_date": snapshot_date, "tasks": tasks},
        )
        assert r.status_code == 201, r.text
        return r.json()
    return _capture
