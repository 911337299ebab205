"""Test health check endpoints."""

from unittest.mock import MagicMock, patch

from fastapi.testclient import TestClient

from intel_api.main import app

client = TestClient(app)


def test_live_returns_alive():
    """Test that /health/live always reports alive."""
    response = client.get("/health/live")
    assert response.status_code == 200
    data = response.json()
    assert data["alive"] is True
    assert "timestamp" in data


def test_live_echoes_request_id():
    response = client.get("/health/live", headers={"X-Request-Id": "req-123"})
    assert response.headers["X-Request-Id"] == "req-123"


def test_ready_when_database_answers():
    with patch("intel_api.db.supabase_client.get_supabase") as mock_get_supabase:
        mock_get_supabase.return_value = MagicMock()
        response = client.get("/health/ready")

    assert response.status_code == 200
    data = response.json()
    assert data["ready"] is True
    assert data["version"] == "0.1.0"
    assert data["checks"] == {"config": True, "database": True}


def test_ready_503_when_database_fails():
    with patch("intel_api.db.supabase_client.get_supabase") as mock_get_supabase:
        mock_get_supabase.return_value.table.side_effect = RuntimeError("connection refused")
        response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["ready"] is False
    assert data["checks"]["database"] is False


def test_ready_503_when_config_missing(monkeypatch):
    monkeypatch.delenv("SUPABASE_URL")
    response = client.get("/health/ready")

    assert response.status_code == 503
    data = response.json()
    assert data["ready"] is False
    assert data["checks"] == {"config": False, "database": False}


def test_info_lists_features(monkeypatch):
    monkeypatch.setenv("FEATURE_ENABLE_LLM_NARRATIVES", "false")
    response = client.get("/health/info")

    assert response.status_code == 200
    data = response.json()
    assert data["app"] == "Pravado API"
    assert data["environment"] == "test"
    assert data["features"]["ENABLE_EXECUTIVE_COMMAND_CENTER"] is True
    assert data["features"]["ENABLE_LLM_NARRATIVES"] is False
