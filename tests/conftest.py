import os
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

# Must be set before backend.app.config is imported so a developer's .env
# never points the suite at a real database.
os.environ["DISABLE_DOTENV"] = "1"
os.environ.setdefault("SECRET_KEY", "test-secret")


@pytest.fixture()
def app(tmp_path: Path) -> FastAPI:
    """
    A fresh app per test, wired to its own temporary SQLite file.
    """
    os.environ["DATABASE_URL"] = f"sqlite+pysqlite:///{tmp_path / 'default.sqlite3'}"

    from backend.app.main import create_app

    return create_app(database_url=f"sqlite+pysqlite:///{tmp_path / 'test.sqlite3'}")


@pytest.fixture()
def client(app: FastAPI) -> TestClient:
    return TestClient(app)


@pytest.fixture()
def db_session(app: FastAPI):
    """
    Direct SQLAlchemy session bound to the same temporary SQLite DB used by the test app.
    """
    db = app.state.session_factory()
    try:
        yield db
    finally:
        db.close()

