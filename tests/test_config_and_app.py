import pytest
from httpx import ASGITransport, AsyncClient
from pydantic import ValidationError

from medshare import config


def test_settings_defaults_and_cache():
    settings = config.get_settings()
    second = config.get_settings()

    assert settings is second
    assert settings.app_name == "MedShare API"
    assert settings.api_prefix == "/api/v1"
    assert settings.enforce_grant_permissions is True
    assert settings.max_grant_expiry_days == 365


def test_jwt_secret_required_outside_debug(monkeypatch: pytest.MonkeyPatch):
    monkeypatch.delenv("JWT_SECRET_KEY", raising=False)

    with pytest.raises(ValidationError, match="JWT_SECRET_KEY"):
        config.Settings(debug=False, jwt_secret_key=None, _env_file=None)

    dev = config.Settings(debug=True, jwt_secret_key=None, _env_file=None)
    assert dev.jwt_secret_key


def test_main_app_metadata():
    from medshare.main import app

    paths = {route.path for route in app.routes}

    assert app.title == config.settings.app_name
    assert app.version == config.settings.app_version
    assert app.docs_url == "/docs"
    assert "/api/v1/access/requests" in paths
    assert "/api/v1/access/grants/{grant_id}/approve" in paths
    assert "/api/v1/patients/{patient_id}/comments" in paths


@pytest.mark.anyio
async def test_health_carries_request_id_and_security_headers():
    from medshare.main import create_app

    app = create_app()
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})

    assert response.status_code == 200
    assert response.json() == {"status": "healthy", "service": "medshare-api"}
    assert response.headers["X-Request-Id"] == "req-123"
    assert response.headers["X-Content-Type-Options"] == "nosniff"
    assert response.headers["X-Frame-Options"] == "DENY"
