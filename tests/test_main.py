from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient

from app.main import app


def test_lifespan_starts_without_external_services(monkeypatch: pytest.MonkeyPatch) -> None:
    mongo_client = SimpleNamespace(close=MagicMock())

    async def _init_db_stub() -> object:
        return mongo_client

    monkeypatch.setattr("app.core.db.init_db", _init_db_stub)
    monkeypatch.setattr("app.main.settings.REDIS_URL", None)

    with TestClient(app) as client:
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "ok"}
        assert response.headers["X-Request-ID"]

    mongo_client.close.assert_called_once()


def test_request_id_is_echoed() -> None:
    client = TestClient(app)

    response = client.get("/health", headers={"X-Request-ID": "abc123"})

    assert response.headers["X-Request-ID"] == "abc123"
