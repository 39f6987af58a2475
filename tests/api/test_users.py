"""Staff user admin endpoint tests."""

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from dropnow.models import User
from dropnow.models.base import utcnow
from dropnow.models.mobile_device import DeviceInfo
from dropnow.services.identity import upsert_device
from tests.conftest import AuthenticatedClient


@pytest.mark.asyncio
async def test_list_users(admin_client: AuthenticatedClient, user: User):
    response = await admin_client.get("/api/users")
    assert response.status_code == 200
    assert [u["email"] for u in response.json()] == ["admin@example.com", "test@example.com"]


@pytest.mark.asyncio
async def test_user_devices(admin_client: AuthenticatedClient, session: AsyncSession, user: User):
    await upsert_device(
        session, user.identity_ref, DeviceInfo(device_id="staff-phone", platform="ios"), utcnow()
    )
    await session.commit()

    response = await admin_client.get(f"/api/users/{user.id}/devices")

    assert response.status_code == 200
    assert [d["device_id"] for d in response.json()] == ["staff-phone"]


@pytest.mark.asyncio
async def test_user_devices_not_found(admin_client: AuthenticatedClient):
    response = await admin_client.get("/api/users/missing/devices")
    assert response.status_code == 404
