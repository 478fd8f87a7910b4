"""
Fixtures for HTTP tests.

The app runs in mock mode with its storage and repository dependencies
overridden, so tests can inspect the same store and connection the
handlers use.
"""

import pytest
from fastapi.testclient import TestClient

from s3field.api.dependencies import get_owner_repository, get_storage_client, reset_mock_backends
from s3field.config.settings import get_settings
from s3field.infrastructure.snowflake.repositories.owners import OwnerRepository


@pytest.fixture
def settings_env(monkeypatch, staging_root):
    monkeypatch.setenv("S3_MOCK_MODE", "true")
    monkeypatch.setenv("SNOWFLAKE_MOCK_MODE", "true")
    monkeypatch.setenv("STAGING_DIR", str(staging_root))
    monkeypatch.setenv("FILE_FIELDS", "files,images")
    monkeypatch.setenv("PUBLIC_ROOT_URL", "")
    get_settings.cache_clear()
    reset_mock_backends()
    yield
    get_settings.cache_clear()
    reset_mock_backends()


@pytest.fixture
def app(settings_env, store, connection):
    from s3field.main import create_app

    app = create_app()
    app.dependency_overrides[get_storage_client] = lambda: store
    app.dependency_overrides[get_owner_repository] = lambda: OwnerRepository(connection)
    return app


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def owner(client) -> str:
    response = client.post("/api/v1/owners/42")
    assert response.status_code == 201
    return "42"


@pytest.fixture
def upload(client):
    def _upload(name="report.pdf", content=b"%PDF-1.4 test", owner_id="42", field="files", **form):
        return client.post(
            f"/api/v1/owners/{owner_id}/fields/{field}/files",
            files={"file": (name, content, "application/octet-stream")},
            data=form,
        )
    return _upload
