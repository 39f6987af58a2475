"""Mobile app endpoints.

These routes are not behind admin auth. Pairing is gated by the connection
token; everything after that by the mobile credential returned at pairing.
"""

from datetime import datetime

from fastapi import APIRouter, Query
from pydantic import BaseModel, Field

from dropnow.api.deps import MobileRateLimit, MobileSessionDep, PairingRateLimit, SessionDep
from dropnow.api.utils import pairing_http_error
from dropnow.config import settings
from dropnow.models import IdentityKind, IdentityRef
from dropnow.models.base import utcnow
from dropnow.models.driver import DriverInfo
from dropnow.models.mobile_device import DeviceInfo, MobileDeviceRead
from dropnow.models.ride import RideRead
from dropnow.schemas import PAIRING_ERROR_RESPONSES, ErrorResponse, SuccessResponse
from dropnow.services.identity import (
    DeviceOwnershipError,
    Identity,
    list_assigned_rides,
    upsert_device,
)
from dropnow.services.mobile_auth import revoke_credential
from dropnow.services.pairing import (
    PairingError,
    PairingValidationError,
    peek_token,
    redeem_token,
)

router = APIRouter()

MOBILE_AUTH_RESPONSES: dict[int | str, dict] = {
    401: {"model": ErrorResponse, "description": "Invalid credentials"},
}


class MobileIdentity(BaseModel):
    """Identity as seen by the mobile app."""

    kind: IdentityKind
    id: str
    external_id: str | None = None
    first_name: str = ""
    last_name: str = ""
    email: str = ""
    phone: str = ""


def serialize_identity(ref: IdentityRef, identity: Identity) -> MobileIdentity:
    if ref.kind == IdentityKind.INTERNAL:
        first, _, last = (identity.name or "").partition(" ")
        return MobileIdentity(
            kind=ref.kind,
            id=ref.id,
            first_name=first,
            last_name=last,
            email=identity.email,
        )
    return MobileIdentity(
        kind=ref.kind,
        id=ref.id,
        external_id=identity.external_id,
        first_name=identity.first_name or "",
        last_name=identity.last_name or "",
        email=identity.email or "",
        phone=identity.phone or "",
    )


class TokenStatusResponse(BaseModel):
    valid: bool = True
    expires_at: datetime
    bound: bool
    api_base_url: str


class ConnectRequest(BaseModel):
    """Sent by the app after scanning a pairing QR code."""

    token: str = Field(min_length=1)
    driver_info: DriverInfo | None = None
    device_info: DeviceInfo | None = None


class ConnectionInfo(BaseModel):
    connected_at: datetime
    credential: str
    api_base_url: str


class ConnectResponse(BaseModel):
    identity: MobileIdentity
    connection_info: ConnectionInfo
    rides: list[RideRead]


class RidesResponse(BaseModel):
    identity: MobileIdentity
    api_base_url: str
    rides: list[RideRead]


@router.get("/connect", response_model=TokenStatusResponse, responses=PAIRING_ERROR_RESPONSES)
async def check_connection_token(
    session: SessionDep,
    _rate_limit: PairingRateLimit,
    token: str = Query(min_length=1),
):
    """Check that a scanned token is still redeemable. Does not consume it."""
    try:
        record = await peek_token(session, token)
    except PairingError as e:
        raise pairing_http_error(e) from e

    return TokenStatusResponse(
        expires_at=record.expires_at,
        bound=record.identity_ref is not None,
        api_base_url=settings.api_base_url,
    )


@router.post("/connect", response_model=ConnectResponse, responses=PAIRING_ERROR_RESPONSES)
async def connect_device(
    request: ConnectRequest,
    session: SessionDep,
    _rate_limit: PairingRateLimit,
):
    """Redeem a connection token and receive a mobile credential."""
    try:
        redemption = await redeem_token(
            session,
            request.token,
            driver_info=request.driver_info,
            device_info=request.device_info,
        )
    except PairingError as e:
        raise pairing_http_error(e) from e

    rides = await list_assigned_rides(session, redemption.identity_ref)
    return ConnectResponse(
        identity=serialize_identity(redemption.identity_ref, redemption.identity),
        connection_info=ConnectionInfo(
            connected_at=redemption.connected_at,
            credential=redemption.credential,
            api_base_url=settings.api_base_url,
        ),
        rides=[RideRead.model_validate(r) for r in rides],
    )


@router.get("/rides", response_model=RidesResponse, responses=MOBILE_AUTH_RESPONSES)
async def get_assigned_rides(
    mobile: MobileSessionDep,
    session: SessionDep,
    _rate_limit: MobileRateLimit,
):
    """Open rides assigned to the paired identity."""
    rides = await list_assigned_rides(session, mobile.ref)
    return RidesResponse(
        identity=serialize_identity(mobile.ref, mobile.identity),
        api_base_url=settings.api_base_url,
        rides=[RideRead.model_validate(r) for r in rides],
    )


@router.put("/device", response_model=MobileDeviceRead, responses=MOBILE_AUTH_RESPONSES)
async def update_device(
    info: DeviceInfo,
    mobile: MobileSessionDep,
    session: SessionDep,
    _rate_limit: MobileRateLimit,
):
    """Report device details for the paired identity.

    A credential describes one device. The first report binds the device to
    the credential, and later reports update that same device.
    """
    bound_device = mobile.credential.device_id
    if bound_device is not None and info.device_id not in (None, bound_device):
        raise pairing_http_error(
            PairingValidationError("device_id does not match the paired device")
        )
    if info.device_id is None:
        info.device_id = bound_device

    try:
        device = await upsert_device(session, mobile.ref, info, utcnow(), reassign=False)
    except DeviceOwnershipError as e:
        await session.rollback()
        raise pairing_http_error(e) from e

    if bound_device is None:
        mobile.credential.device_id = device.device_id
    await session.commit()
    return MobileDeviceRead.model_validate(device)


@router.post("/disconnect", response_model=SuccessResponse, responses=MOBILE_AUTH_RESPONSES)
async def disconnect_device(mobile: MobileSessionDep, session: SessionDep):
    """Revoke the credential used for this call."""
    await revoke_credential(session, mobile.credential)
    return SuccessResponse(message="Device disconnected")
