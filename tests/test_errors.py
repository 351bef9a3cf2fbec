from fastapi.testclient import TestClient

import services
from main import app


def test_unexpected_error_returns_generic_500(settings, store, monkeypatch):
    def broken(*args, **kwargs):
        raise RuntimeError("disk exploded at /secret/path")

    monkeypatch.setattr(services, "list_catalog", broken)
    previous = (app.state.settings, app.state.store)
    app.state.settings = settings
    app.state.store = store
    try:
        with TestClient(app, raise_server_exceptions=False) as client:
            response = client.get("/api/challenges")
    finally:
        app.state.settings, app.state.store = previous

    assert response.status_code == 500
    assert response.json() == {"detail": "Server error"}
    assert "secret" not in response.text
