"""Test health check endpoint."""

from fastapi.testclient import TestClient

from refengine.main import app

client = TestClient(app)


def test_health_check():
    """Test that /health returns 200 with status ok."""
    response = client.get("/health")
    assert response.status_code == 200
    data = response.json()
    assert data["status"] == "ok"
