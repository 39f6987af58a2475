"""Lookup and provisioning of pairable identities."""

import logging
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.models import (
    ACTIVE_RIDE_STATUSES,
    Driver,
    IdentityKind,
    IdentityRef,
    MobileCredential,
    MobileDevice,
    Ride,
    User,
)
from dropnow.models.base import generate_nanoid
from dropnow.models.driver import DriverInfo
from dropnow.models.mobile_device import DeviceInfo

logger = logging.getLogger(__name__)

Identity = User | Driver


class DeviceOwnershipError(Exception):
    """Device is paired to another identity and may not be taken over here."""

    code = "conflict"


async def get_identity(session: AsyncSession, ref: IdentityRef) -> Identity | None:
    """Load the record a reference points at, or None if it is gone."""
    if ref.kind == IdentityKind.INTERNAL:
        return await session.get(User, ref.id)
    return await session.get(Driver, ref.id)


async def find_or_create_driver(session: AsyncSession, info: DriverInfo) -> tuple[Driver, bool]:
    """Look up a driver by external id, creating one on first contact.

    Contact fields on an existing driver are only overwritten with non-empty
    values. Returns ``(driver, created)``; the caller owns the transaction.
    """
    stmt = select(Driver).where(Driver.external_id == info.external_id)
    result = await session.execute(stmt)
    driver = result.scalar_one_or_none()

    if driver is None:
        driver = Driver(
            external_id=info.external_id,
            first_name=info.first_name or None,
            last_name=info.last_name or None,
            email=info.email or None,
            phone=info.phone or None,
        )
        session.add(driver)
        await session.flush()
        logger.info(f"Registered driver {driver.id} (external_id={info.external_id})")
        return driver, True

    for field in ("first_name", "last_name", "email", "phone"):
        value = getattr(info, field)
        if value:
            setattr(driver, field, value)
    return driver, False


def touch_last_connected(identity: Identity, now: datetime) -> None:
    identity.last_connected = now


async def upsert_device(
    session: AsyncSession,
    ref: IdentityRef,
    info: DeviceInfo,
    now: datetime,
    *,
    reassign: bool = True,
) -> MobileDevice:
    """Record device details for an identity.

    A device already paired to another identity is moved only when
    ``reassign`` is set (a token redemption on that device); the previous
    owner's credentials for it are revoked. Otherwise DeviceOwnershipError.
    """
    device_id = info.device_id or f"unknown_{generate_nanoid()}"

    stmt = select(MobileDevice).where(MobileDevice.device_id == device_id)
    result = await session.execute(stmt)
    device = result.scalar_one_or_none()

    if device is None:
        device = MobileDevice(
            device_id=device_id,
            identity_kind=ref.kind,
            identity_id=ref.id,
        )
        session.add(device)
    elif device.identity_ref != ref:
        previous = device.identity_ref
        if not reassign:
            raise DeviceOwnershipError("Device is paired to another account")
        await session.execute(
            update(MobileCredential)
            .where(
                MobileCredential.identity_kind == previous.kind,
                MobileCredential.identity_id == previous.id,
                MobileCredential.device_id == device_id,
                MobileCredential.revoked_at.is_(None),  # type: ignore[union-attr]
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )
        logger.info(f"Device {device_id} moved from {previous} to {ref}")
        device.identity_kind = ref.kind
        device.identity_id = ref.id

    fields = info.model_dump(exclude={"device_id"}, exclude_none=True)
    for field, value in fields.items():
        setattr(device, field, value)
    device.last_active = now
    await session.flush()
    return device


async def list_devices(session: AsyncSession, ref: IdentityRef) -> list[MobileDevice]:
    """Devices paired to an identity, most recently active first."""
    stmt = (
        select(MobileDevice)
        .where(MobileDevice.identity_kind == ref.kind, MobileDevice.identity_id == ref.id)
        .order_by(MobileDevice.last_active.desc())  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def list_assigned_rides(session: AsyncSession, ref: IdentityRef) -> list[Ride]:
    """Open rides assigned to an identity, soonest pickup first."""
    assignee = Ride.chauffeur_id if ref.kind == IdentityKind.INTERNAL else Ride.driver_id
    stmt = (
        select(Ride)
        .where(assignee == ref.id, Ride.status.in_(ACTIVE_RIDE_STATUSES))  # type: ignore[attr-defined]
        .order_by(Ride.pickup_time)
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())
