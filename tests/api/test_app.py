"""
API tests for the application shell: probes, headers and error handling.
"""

import pytest

from iris.config.settings import settings


@pytest.mark.api
class TestApp:

    def test_root(self, client):
        assert client.get("/").json() == {"message": "Welcome to iris-backend", "status": "healthy"}

    def test_health_and_security_headers(self, client):
        response = client.get("/health")
        assert response.json() == {"status": "healthy"}
        assert response.headers["X-Content-Type-Options"] == "nosniff"
        assert response.headers["X-Frame-Options"] == "DENY"

    def test_ready_needs_database_url(self, client, monkeypatch):
        monkeypatch.setattr(settings, "supabase_url", "")
        assert client.get("/ready").status_code == 503
        monkeypatch.setattr(settings, "supabase_url", "https://db.iris.test")
        assert client.get("/ready").json() == {"status": "ready"}

    def test_unknown_route(self, client):
        assert client.get("/api/v1/nothing-here").status_code == 404
