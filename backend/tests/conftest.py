"""
pytest configuration for Masjid Finder tests

Settings are read from the environment on first import, so the test
database and signing key are set before any backend module is loaded.
"""
import os
import tempfile
from pathlib import Path

TEST_DB_PATH = Path(tempfile.mkdtemp(prefix="masjid_finder_tests_")) / "test.db"
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{TEST_DB_PATH}"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["ENVIRONMENT"] = "test"
os.environ["LOG_LEVEL"] = "WARNING"

import asyncio  # noqa: E402
import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from backend.services.common.database import drop_models, init_models  # noqa: E402


@pytest.fixture
def fresh_db():
    """Empty tables for every test"""
    asyncio.run(drop_models())
    asyncio.run(init_models())
    yield TEST_DB_PATH


@pytest.fixture
def client(fresh_db):
    """HTTP client bound to the app, sharing the fresh test database"""
    from backend.services.api_service.main import app

    with TestClient(app) as client:
        yield client
