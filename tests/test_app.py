from datetime import datetime, timedelta, timezone

import jwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa

from conftest import token_for
from foodapp.core.config import EnvironmentMode, get_settings
from foodapp.core.errors import AuthenticationError
from foodapp.core.security import decode_token
from foodapp.models import User


async def test_root(client):
    response = await client.get("/")

    assert response.status_code == 200
    assert response.json()["environment"] == "development"


async def test_health_reports_components(client):
    response = await client.get("/health")

    body = response.json()
    assert response.status_code == 200
    assert body["database"] == "healthy"
    assert body["payment"] == "healthy"
    assert body["notifications"] == "healthy"
    assert body["status"] in {"operational", "degraded"}


async def test_unknown_route_uses_error_envelope(client):
    response = await client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.json() == {"success": False, "error": "Not Found", "detail": None}


async def test_validation_errors_list_fields(client, menu, session_headers):
    response = await client.post("/api/cart/items", json={"quantity": "many"}, headers=session_headers)

    body = response.json()
    assert response.status_code == 400
    assert body["error"] == "Validation failed"
    assert {e["field"] for e in body["detail"]} == {"menu_item_id", "quantity"}


# =============================================================================
# AUTHENTICATION
# =============================================================================

async def test_missing_token(client):
    response = await client.get("/api/users/me")

    assert response.status_code == 401
    assert response.json()["error"] == "Authentication required"


async def test_expired_token(client, customer):
    token = token_for(customer, expires_in=timedelta(minutes=-5))

    response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401
    assert response.json()["error"] == "Token has expired"


async def test_forged_token(client, customer):
    token = token_for(customer)[:-4] + "AAAA"

    response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token}"})

    assert response.status_code == 401


async def test_token_for_unknown_user(client):
    ghost = User(clerk_id="user_ghost")

    response = await client.get("/api/users/me", headers={"Authorization": f"Bearer {token_for(ghost)}"})

    assert response.status_code == 401
    assert response.json()["error"] == "User is not registered"


@pytest.fixture
def production(monkeypatch):
    settings = get_settings()
    monkeypatch.setattr(settings, "env_mode", EnvironmentMode.PRODUCTION)
    return settings


def shared_secret_token(sub: str = "user_admin") -> str:
    claims = {"sub": sub, "exp": datetime.now(timezone.utc) + timedelta(hours=1)}
    return jwt.encode(claims, get_settings().auth_jwt_secret, algorithm="HS256")


def test_production_without_public_key_rejects_tokens(production):
    with pytest.raises(AuthenticationError, match="not configured"):
        decode_token(shared_secret_token())


def test_production_requires_rs256(production, monkeypatch):
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    public_pem = private_key.public_key().public_bytes(
        serialization.Encoding.PEM, serialization.PublicFormat.SubjectPublicKeyInfo
    ).decode()
    monkeypatch.setattr(production, "auth_jwt_public_key", public_pem)
    claims = {"sub": "user_2abc", "exp": datetime.now(timezone.utc) + timedelta(hours=1)}

    assert decode_token(jwt.encode(claims, private_key, algorithm="RS256"))["sub"] == "user_2abc"
    with pytest.raises(AuthenticationError):
        decode_token(shared_secret_token())
