"""
Shared pytest fixtures for backend tests.
Uses a temp-file SQLite database and a stubbed model gateway for isolation.
"""
import json
import pytest
import sqlite3
import sys
import os
from unittest.mock import AsyncMock

# Add backend to path for imports
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import config
import database
import model_gateway


@pytest.fixture(autouse=True)
def settings_env(monkeypatch):
    """
    Pin settings for every test: UTC timezone, no API key, fresh caches.
    Tests that need a key set ANTHROPIC_API_KEY and call clear_settings().
    """
    monkeypatch.setenv("TIMEZONE", "UTC")
    monkeypatch.delenv("ANTHROPIC_API_KEY", raising=False)
    monkeypatch.setenv("LLM_FALLBACK_MODELS", "[]")
    config.get_settings.cache_clear()
    monkeypatch.setattr(model_gateway, "_client", None)
    yield
    config.get_settings.cache_clear()


@pytest.fixture
def clear_settings():
    return config.get_settings.cache_clear


@pytest.fixture
def stub_generate(monkeypatch):
    """
    Replace model_gateway.generate with an AsyncMock.
    Set .return_value to a dict (dumped to JSON) or a raw string, or .side_effect to an error.
    """
    mock = AsyncMock()

    async def fake_generate(prompt_text, want_json=True):
        result = await mock(prompt_text, want_json=want_json)
        return json.dumps(result) if isinstance(result, dict) else result

    monkeypatch.setattr(model_gateway, "generate", fake_generate)
    return mock


@pytest.fixture
def test_db(monkeypatch, tmp_path):
    """
    Create an isolated test database for each test.
    Uses a temp file (not :memory:) because database.py opens new connections per operation.
    """
    db_path = str(tmp_path / "test.db")
    monkeypatch.setattr(database, "DATABASE_PATH", db_path)
    monkeypatch.setattr(database, "init_db", lambda: None)

    # Create tables directly (skip alembic for tests)
    conn = sqlite3.connect(db_path)
    conn.executescript("""
        CREATE TABLE todos (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            completed INTEGER DEFAULT 0,
            parent_id TEXT,
            order_index INTEGER DEFAULT 0,
            start_time TEXT,
            end_time TEXT,
            note TEXT,
            duration_minutes INTEGER,
            should_breakdown INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );

        CREATE TABLE reminders (
            id TEXT PRIMARY KEY,
            text TEXT NOT NULL,
            completed INTEGER DEFAULT 0,
            created_at TEXT NOT NULL,
            updated_at TEXT NOT NULL
        );
    """)
    conn.commit()
    conn.close()

    yield db_path


@pytest.fixture
def app_client(test_db, monkeypatch):
    """
    Create a test client for the FastAPI app.
    Mocks init_db to skip alembic migrations.
    """
    from fastapi.testclient import TestClient
    import main

    # Skip alembic in tests - tables already created by test_db fixture
    monkeypatch.setattr(main, "init_db", lambda: None)

    with TestClient(main.app) as client:
        yield client
