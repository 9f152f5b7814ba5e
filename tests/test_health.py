"""Tests for health check endpoints."""
from unittest.mock import patch

import redis


def test_health_check(client):
    """Test basic health check."""
    response = client.get("/api/v1/health/")

    assert response.status_code == 200
    assert response.json()["status"] == "healthy"


def test_root_endpoint(client):
    """Test root endpoint returns API info."""
    response = client.get("/")

    assert response.status_code == 200
    data = response.json()
    assert "name" in data
    assert "version" in data
    assert "docs" in data


def test_readiness_without_redis(client):
    """The service is ready as long as its store answers; Redis is optional."""
    with patch("app.api.health.redis_client.ping", side_effect=redis.ConnectionError("down")):
        response = client.get("/api/v1/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ready"
    assert data["backend"] == "sql"
    assert data["checks"]["store"] is True
    assert data["checks"]["redis"] is False
    assert "redis_error" in data["checks"]
