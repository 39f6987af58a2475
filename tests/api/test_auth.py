"""Authentication endpoint tests."""

import pytest
from httpx import AsyncClient

from dropnow.models import User
from tests.conftest import AuthenticatedClient


@pytest.mark.asyncio
async def test_get_current_user(authenticated_client: AuthenticatedClient, user: User):
    """Test getting current user info."""
    response = await authenticated_client.get("/api/auth/me")
    assert response.status_code == 200
    data = response.json()
    assert data["email"] == user.email
    assert data["is_admin"] is False


@pytest.mark.asyncio
async def test_get_current_user_unauthenticated(client: AsyncClient):
    """Test getting current user without authentication."""
    response = await client.get("/api/auth/me")
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_get_current_user_bad_token(client: AsyncClient):
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer garbage"})
    assert response.status_code == 401


@pytest.mark.asyncio
async def test_refresh_token(authenticated_client: AuthenticatedClient, user: User):
    """Test refreshing an access token."""
    response = await authenticated_client.post("/api/auth/refresh")
    assert response.status_code == 200
    data = response.json()
    assert "access_token" in data
    assert data["token_type"] == "bearer"
    assert data["user"]["email"] == user.email


@pytest.mark.asyncio
async def test_mobile_credential_is_not_a_console_token(client: AsyncClient):
    response = await client.get("/api/auth/me", headers={"Authorization": "Bearer mk_abc"})
    assert response.status_code == 401
