"""Tests for API error response formats."""

from typing import Any

from fastapi.testclient import TestClient
from redis.exceptions import ConnectionError as RedisConnectionError

import crmflow.api.app as app_module
from crmflow.api.app import create_app
from crmflow.api.deps import get_engine, get_rule_store
from crmflow.core.exceptions import ConfigurationError, StorageUnavailableError
from crmflow.models.trigger import TriggerRegistry


class FakeRuleStore:
    """Minimal rule store for error response tests."""

    async def get(self, rule_id: str) -> Any | None:
        return None


class DownRuleStore:
    async def list_all(self) -> list:
        raise StorageUnavailableError("list_rules", RedisConnectionError("Connection refused"))


class CorruptRuleStore:
    async def get(self, rule_id: str) -> Any | None:
        raise ConfigurationError(f"Invalid rule {rule_id}: conditions.0.operator: bad", rule_id=rule_id)


class FakeEngine:
    triggers = TriggerRegistry()


def _make_client(monkeypatch, store: Any = None) -> TestClient:
    async def _noop() -> None:
        return None

    monkeypatch.setattr(app_module, "init_redis_pool", _noop)
    monkeypatch.setattr(app_module, "close_redis_pool", _noop)

    app = create_app()
    app.dependency_overrides[get_rule_store] = lambda: store or FakeRuleStore()
    app.dependency_overrides[get_engine] = lambda: FakeEngine()
    return TestClient(app)


def test_http_exception_response_format(monkeypatch) -> None:
    client = _make_client(monkeypatch)

    response = client.get("/api/v1/rules/missing-rule")

    assert response.status_code == 404
    payload = response.json()
    assert payload["code"] == 404
    assert payload["message"] == "Rule missing-rule not found"
    assert "data" in payload


def test_validation_error_response_format(monkeypatch) -> None:
    client = _make_client(monkeypatch)

    response = client.post("/api/v1/rules", json={"name": ""})

    assert response.status_code == 422
    payload = response.json()
    assert payload["code"] == 422
    assert payload["message"] == "Validation error"
    assert isinstance(payload["data"], list)
    assert payload["data"]


def test_storage_outage_maps_to_503(monkeypatch) -> None:
    client = _make_client(monkeypatch, DownRuleStore())

    response = client.get("/api/v1/rules")

    assert response.status_code == 503
    assert response.json() == {"code": 503, "message": "Rule storage unavailable", "data": None}


def test_malformed_stored_rule_maps_to_422(monkeypatch) -> None:
    client = _make_client(monkeypatch, CorruptRuleStore())

    response = client.get("/api/v1/rules/wf_bad")

    assert response.status_code == 422
    payload = response.json()
    assert payload["data"] == {"rule_id": "wf_bad"}
    assert "conditions.0.operator" in payload["message"]


def test_unknown_trigger_fire_is_404(monkeypatch) -> None:
    client = _make_client(monkeypatch)

    response = client.post("/api/v1/triggers/lead_teleported/fire", json={"lead_id": 1})

    assert response.status_code == 404
    assert response.json()["message"] == "Trigger lead_teleported not found"


def test_trigger_catalogue(monkeypatch) -> None:
    client = _make_client(monkeypatch)

    response = client.get("/api/v1/triggers")

    assert response.status_code == 200
    names = [item["name"] for item in response.json()["data"]]
    assert names[0] == "lead_created"
    assert len(names) == 9


def test_health_reports_degraded_without_redis(monkeypatch) -> None:
    client = _make_client(monkeypatch)

    response = client.get("/health")

    assert response.status_code == 200
    assert response.json()["status"] == "degraded"
    assert response.json()["redis"] is False
