from unittest.mock import AsyncMock

from src.core.exceptions.handler import ServiceError, ServiceErrorCode
from src.infra.config.settings import settings


def test_health_check_contract(client):
    """Contract test for health check endpoint
    Verifies the response schema and format matches the API contract
    """
    response = client.get("/api/v1/health")

    assert response.status_code == 200
    data = response.json()

    # Schema validation
    assert isinstance(data, dict)
    assert set(data) == {"status", "timestamp", "version", "services"}

    # Value validation
    assert data["status"] == "healthy"
    assert data["version"] == settings.APP_VERSION
    assert data["services"]["challenge_store"]["status"] == "healthy"
    assert data["services"]["challenge_store"]["backend"] == settings.CHALLENGE_STORE_BACKEND


def test_health_check_reports_store_outage(app, client):
    store = AsyncMock()
    store.ping.return_value = False
    app.state.challenge_store = store

    response = client.get("/api/v1/health")

    assert response.status_code == 503
    data = response.json()
    assert data["status"] == "unhealthy"
    assert data["services"]["challenge_store"]["message"] == "Connection failed"


def test_health_check_survives_store_error(app, client):
    store = AsyncMock()
    store.ping.side_effect = ConnectionError("redis down")
    app.state.challenge_store = store

    response = client.get("/api/v1/health")

    assert response.status_code == 503
    assert response.json()["services"]["challenge_store"]["message"] == "redis down"


def test_nonce_endpoint_reports_store_outage(app, client):
    store = AsyncMock()
    store.store.side_effect = ServiceError(
        code=ServiceErrorCode.SERVICE_UNAVAILABLE,
        message="Challenge store unavailable",
        status_code=503
    )
    app.state.challenge_store = store

    response = client.get("/api/v1/auth/nonce", params={"walletAddress": "0xabc"})

    assert response.status_code == 503
    assert response.json()["error"]["code"] == "SERVICE_UNAVAILABLE"
