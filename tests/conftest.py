"""Shared fixtures: fake platform sensors, an in-memory entity store, and an
API client backed by a throwaway SQLite file."""

from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from graftrack.config import Settings
from graftrack.main import create_app
from tests.fakes import FakeEntityStore, FakePlatform


@pytest.fixture
def platform():
    return FakePlatform()


@pytest.fixture
def fake_store():
    return FakeEntityStore()


@pytest.fixture
def test_settings(tmp_path):
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'graftrack-test.db'}",
        upload_bucket_url="https://storage.example.com/graftrack-uploads",
        upload_signing_secret="test-secret",
    )


@pytest.fixture
def client(test_settings):
    """API test client; the context manager runs the app lifespan."""
    with TestClient(create_app(test_settings)) as c:
        yield c
