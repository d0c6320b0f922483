"""Tests for the liveness endpoints and startup configuration checks."""

import logging

import pytest
from fastapi.testclient import TestClient

from kaibot.core.config import settings
from kaibot.main import app, log_configuration_warnings


@pytest.fixture
def client() -> TestClient:
    # Not entered as a context manager, so the lifespan (logfire setup) is skipped.
    return TestClient(app)


@pytest.mark.unit
class TestLivenessEndpoints:
    """Liveness and health endpoints."""

    def test_root(self, client):
        response = client.get("/")
        assert response.status_code == 200
        assert response.text == "ok"

    def test_health(self, client):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json() == {"status": "healthy"}

    def test_routes_registered(self):
        paths = {route.path for route in app.routes}
        assert {"/line/webhook", "/discord/interactions"} <= paths


@pytest.mark.unit
def test_startup_warns_for_unconfigured_services(monkeypatch, caplog):
    monkeypatch.setattr(settings, "discord_public_key", None)
    monkeypatch.setattr(settings, "gcp_project_id", None)

    with caplog.at_level(logging.INFO, logger="kaibot.main"):
        log_configuration_warnings()

    by_service = {record.service: record for record in caplog.records if record.message == "startup_configuration"}
    assert by_service["discord"].levelno == logging.WARNING
    assert by_service["discord"].configured is False
    assert by_service["llm"].levelno == logging.WARNING
