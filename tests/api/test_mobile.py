"""Mobile pairing and mobile API endpoint tests."""

from datetime import timedelta

import pytest
from httpx import AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.models import ConnectionToken, Driver, IdentityRef, MobileDevice, Ride, User
from dropnow.models.base import utcnow
from dropnow.services.pairing import issue_token
from tests.conftest import AuthenticatedClient


async def _issue(session: AsyncSession, admin: User, bound: IdentityRef | None = None) -> str:
    issued = await issue_token(session, issued_by=admin.id, bound=bound)
    return issued.token


async def _expire(session: AsyncSession, token: str) -> None:
    record = (
        await session.execute(select(ConnectionToken).where(ConnectionToken.token == token))
    ).scalar_one()
    record.expires_at = utcnow() - timedelta(seconds=1)
    await session.commit()


def _mutate_last_char(value: str) -> str:
    return value[:-1] + ("y" if value.endswith("x") else "x")


def _auth(body: dict) -> tuple[dict[str, str], dict[str, str]]:
    identity = body["identity"]
    headers = {"Authorization": f"Bearer {body['connection_info']['credential']}"}
    params = {"identity_kind": identity["kind"], "identity_id": identity["id"]}
    return headers, params


class TestCheckToken:
    """GET /api/mobile/connect"""

    @pytest.mark.asyncio
    async def test_valid(self, client: AsyncClient, session: AsyncSession, admin_user: User):
        token = await _issue(session, admin_user)
        response = await client.get("/api/mobile/connect", params={"token": token})
        assert response.status_code == 200
        data = response.json()
        assert data["valid"] is True
        assert data["bound"] is False
        assert data["api_base_url"].endswith("/api")

    @pytest.mark.asyncio
    async def test_does_not_consume(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        await client.get("/api/mobile/connect", params={"token": token})

        response = await client.post("/api/mobile/connect", json={"token": token})
        assert response.status_code == 200

    @pytest.mark.asyncio
    async def test_unknown(self, client: AsyncClient):
        response = await client.get("/api/mobile/connect", params={"token": "nope"})
        assert response.status_code == 404
        assert response.json()["detail"] == {"code": "not_found", "message": "Invalid connection token"}

    @pytest.mark.asyncio
    async def test_expired(self, client: AsyncClient, session: AsyncSession, admin_user: User):
        token = await _issue(session, admin_user)
        await _expire(session, token)

        response = await client.get("/api/mobile/connect", params={"token": token})
        assert response.status_code == 410
        assert response.json()["detail"]["code"] == "expired"


class TestConnect:
    """POST /api/mobile/connect"""

    @pytest.mark.asyncio
    async def test_bound_driver(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver, ride: Ride
    ):
        token = await _issue(session, admin_user, driver.identity_ref)

        response = await client.post(
            "/api/mobile/connect",
            json={
                "token": token,
                "device_info": {"device_id": "phone-1", "device_name": "Pixel", "platform": "android"},
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["identity"]["kind"] == "external"
        assert data["identity"]["id"] == driver.id
        assert data["identity"]["external_id"] == "DRV-42"
        assert data["identity"]["first_name"] == "Dana"
        assert data["connection_info"]["credential"].startswith("mk_")
        assert data["connection_info"]["api_base_url"].endswith("/api")
        assert [r["ride_number"] for r in data["rides"]] == [ride.ride_number]

    @pytest.mark.asyncio
    async def test_bound_staff_user(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, user: User
    ):
        token = await _issue(session, admin_user, user.identity_ref)

        response = await client.post("/api/mobile/connect", json={"token": token})

        assert response.status_code == 200
        identity = response.json()["identity"]
        assert identity["kind"] == "internal"
        assert identity["id"] == user.id
        assert identity["email"] == user.email
        assert identity["first_name"] == "Test"
        assert identity["last_name"] == "User"

    @pytest.mark.asyncio
    async def test_reuse_is_conflict(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        first = await client.post("/api/mobile/connect", json={"token": token})
        assert first.status_code == 200

        second = await client.post("/api/mobile/connect", json={"token": token})
        assert second.status_code == 409
        assert second.json()["detail"]["code"] == "already_used"

    @pytest.mark.asyncio
    async def test_expired(self, client: AsyncClient, session: AsyncSession, admin_user: User):
        token = await _issue(session, admin_user)
        await _expire(session, token)

        response = await client.post(
            "/api/mobile/connect",
            json={"token": token, "driver_info": {"external_id": "EXT-1"}},
        )
        assert response.status_code == 410
        assert response.json()["detail"]["code"] == "expired"

    @pytest.mark.asyncio
    async def test_unknown(self, client: AsyncClient):
        response = await client.post("/api/mobile/connect", json={"token": "nope"})
        assert response.status_code == 404

    @pytest.mark.asyncio
    async def test_unbound_requires_driver_info(
        self, client: AsyncClient, session: AsyncSession, admin_user: User
    ):
        token = await _issue(session, admin_user)

        response = await client.post("/api/mobile/connect", json={"token": token})
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"

        # Still redeemable after the rejected attempt
        check = await client.get("/api/mobile/connect", params={"token": token})
        assert check.status_code == 200

    @pytest.mark.asyncio
    async def test_empty_external_id_rejected(
        self, client: AsyncClient, session: AsyncSession, admin_user: User
    ):
        token = await _issue(session, admin_user)
        response = await client.post(
            "/api/mobile/connect", json={"token": token, "driver_info": {"external_id": ""}}
        )
        assert response.status_code == 422


class TestMobileSession:
    """Credentialed mobile endpoints."""

    @pytest.mark.asyncio
    async def test_rides_require_credential(self, client: AsyncClient, driver: Driver):
        response = await client.get("/api/mobile/rides", params={"identity_id": driver.id})
        assert response.status_code == 401
        assert response.json()["detail"]["code"] == "unauthorized"
        assert response.headers["www-authenticate"] == "Bearer"

    @pytest.mark.asyncio
    async def test_console_jwt_is_not_a_mobile_credential(
        self, client: AsyncClient, user: User, auth_headers: dict[str, str]
    ):
        response = await client.get(
            "/api/mobile/rides",
            params={"identity_kind": "internal", "identity_id": user.id},
            headers=auth_headers,
        )
        assert response.status_code == 401

    @pytest.mark.asyncio
    async def test_update_device(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver,
        admin_client: AuthenticatedClient,
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        connect = await client.post(
            "/api/mobile/connect",
            json={"token": token, "device_info": {"device_id": "phone-1"}},
        )
        headers, params = _auth(connect.json())

        response = await client.put(
            "/api/mobile/device",
            json={"device_name": "Renamed", "platform": "ios"},
            headers=headers,
            params=params,
        )
        assert response.status_code == 200
        assert response.json()["device_id"] == "phone-1"
        assert response.json()["device_name"] == "Renamed"

        detail = await admin_client.get(f"/api/drivers/{driver.id}")
        assert [d["device_name"] for d in detail.json()["devices"]] == ["Renamed"]

    @pytest.mark.asyncio
    async def test_device_reports_without_id_reuse_one_device(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        connect = await client.post("/api/mobile/connect", json={"token": token})
        headers, params = _auth(connect.json())

        reported = []
        for _ in range(3):
            response = await client.put(
                "/api/mobile/device", json={"device_name": "Phone"}, headers=headers, params=params
            )
            assert response.status_code == 200
            reported.append(response.json()["device_id"])

        assert len(set(reported)) == 1
        devices = (
            await session.execute(select(MobileDevice).where(MobileDevice.identity_id == driver.id))
        ).scalars().all()
        assert [d.device_id for d in devices] == reported[:1]

    @pytest.mark.asyncio
    async def test_device_id_must_match_paired_device(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        connect = await client.post(
            "/api/mobile/connect", json={"token": token, "device_info": {"device_id": "phone-1"}}
        )
        headers, params = _auth(connect.json())

        response = await client.put(
            "/api/mobile/device", json={"device_id": "phone-2"}, headers=headers, params=params
        )
        assert response.status_code == 400
        assert response.json()["detail"]["code"] == "validation_error"

    @pytest.mark.asyncio
    async def test_cannot_take_over_another_identity_device(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver, user: User
    ):
        owner_token = await _issue(session, admin_user, driver.identity_ref)
        owner = await client.post(
            "/api/mobile/connect", json={"token": owner_token, "device_info": {"device_id": "phone-1"}}
        )
        owner_headers, owner_params = _auth(owner.json())

        other_token = await _issue(session, admin_user, user.identity_ref)
        other = await client.post("/api/mobile/connect", json={"token": other_token})
        headers, params = _auth(other.json())

        response = await client.put(
            "/api/mobile/device", json={"device_id": "phone-1"}, headers=headers, params=params
        )
        assert response.status_code == 409
        assert response.json()["detail"]["code"] == "conflict"

        device = (
            await session.execute(select(MobileDevice).where(MobileDevice.device_id == "phone-1"))
        ).scalar_one()
        assert device.identity_id == driver.id

        rides = await client.get("/api/mobile/rides", headers=owner_headers, params=owner_params)
        assert rides.status_code == 200

    @pytest.mark.asyncio
    async def test_disconnect_revokes_credential(
        self, client: AsyncClient, session: AsyncSession, admin_user: User, driver: Driver
    ):
        token = await _issue(session, admin_user, driver.identity_ref)
        connect = await client.post("/api/mobile/connect", json={"token": token})
        headers, params = _auth(connect.json())

        response = await client.post("/api/mobile/disconnect", headers=headers, params=params)
        assert response.status_code == 200

        rides = await client.get("/api/mobile/rides", headers=headers, params=params)
        assert rides.status_code == 401


@pytest.mark.asyncio
async def test_self_registration_end_to_end(
    client: AsyncClient,
    admin_client: AuthenticatedClient,
    session: AsyncSession,
    admin_user: User,
):
    """Unbound token -> new driver -> rides -> second token reuses the driver."""
    issued = await admin_client.post("/api/connection-tokens", json={})
    assert issued.status_code == 201
    token = issued.json()["token"]

    connect = await client.post(
        "/api/mobile/connect",
        json={
            "token": token,
            "driver_info": {"external_id": "EXT-900", "first_name": "Robin", "last_name": "Road"},
            "device_info": {"device_id": "ext-phone", "device_model": "Pixel 9"},
        },
    )
    assert connect.status_code == 200
    body = connect.json()
    driver_id = body["identity"]["id"]
    assert body["identity"]["kind"] == "external"
    assert body["identity"]["external_id"] == "EXT-900"
    assert body["rides"] == []

    # Dispatch assigns a ride to the new driver
    session.add(
        Ride(
            ride_number="R-5000",
            pickup_address="Depot",
            dropoff_address="Hotel",
            pickup_time=utcnow() + timedelta(hours=1),
            driver_id=driver_id,
        )
    )
    await session.commit()

    headers, params = _auth(body)
    rides = await client.get("/api/mobile/rides", headers=headers, params=params)
    assert rides.status_code == 200
    assert [r["ride_number"] for r in rides.json()["rides"]] == ["R-5000"]

    wrong = await client.get(
        "/api/mobile/rides",
        headers={"Authorization": _mutate_last_char(headers["Authorization"])},
        params=params,
    )
    assert wrong.status_code == 401

    drivers = await admin_client.get("/api/drivers")
    listed = [d for d in drivers.json() if d["id"] == driver_id]
    assert len(listed) == 1
    assert listed[0]["device_info"]["device_model"] == "Pixel 9"
    assert listed[0]["last_connected"] is not None

    again = await admin_client.post("/api/connection-tokens", json={})
    reconnect = await client.post(
        "/api/mobile/connect",
        json={"token": again.json()["token"], "driver_info": {"external_id": "EXT-900"}},
    )
    assert reconnect.status_code == 200
    assert reconnect.json()["identity"]["id"] == driver_id
    assert reconnect.json()["identity"]["first_name"] == "Robin"


class TestCORS:
    """Mobile routes accept any origin; the console only its configured ones."""

    @pytest.mark.asyncio
    async def test_mobile_preflight_any_origin(self, client: AsyncClient):
        response = await client.options(
            "/api/mobile/connect",
            headers={
                "Origin": "https://anywhere.example",
                "Access-Control-Request-Method": "POST",
                "Access-Control-Request-Headers": "content-type",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "*"
        assert response.headers["access-control-max-age"] == "86400"

    @pytest.mark.asyncio
    async def test_admin_preflight_rejects_unknown_origin(self, client: AsyncClient):
        response = await client.options(
            "/api/connection-tokens",
            headers={
                "Origin": "https://anywhere.example",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 400
        assert "access-control-allow-origin" not in response.headers

    @pytest.mark.asyncio
    async def test_admin_preflight_allows_console_origin(self, client: AsyncClient):
        response = await client.options(
            "/api/connection-tokens",
            headers={
                "Origin": "http://localhost:5173",
                "Access-Control-Request-Method": "POST",
            },
        )
        assert response.status_code == 200
        assert response.headers["access-control-allow-origin"] == "http://localhost:5173"
