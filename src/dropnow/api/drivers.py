"""Driver (external user) admin endpoints."""

from fastapi import APIRouter, HTTPException, status
from sqlalchemy import or_
from sqlmodel import select

from dropnow.api.deps import AdminUser, SessionDep
from dropnow.models import Driver, IdentityKind, MobileDevice
from dropnow.models.driver import DriverRead
from dropnow.models.mobile_device import MobileDeviceRead
from dropnow.services.identity import list_devices

router = APIRouter()


class DriverWithDevice(DriverRead):
    """Driver plus the device it was last active on."""

    device_info: MobileDeviceRead | None = None


class DriverDetail(DriverRead):
    devices: list[MobileDeviceRead]


@router.get("", response_model=list[DriverWithDevice])
async def list_drivers(session: SessionDep, _admin: AdminUser, search: str | None = None):
    """List drivers, most recently connected first."""
    stmt = select(Driver)
    if search:
        pattern = f"%{search}%"
        stmt = stmt.where(
            or_(
                Driver.first_name.ilike(pattern),  # type: ignore[union-attr]
                Driver.last_name.ilike(pattern),  # type: ignore[union-attr]
                Driver.email.ilike(pattern),  # type: ignore[union-attr]
                Driver.external_id.ilike(pattern),  # type: ignore[attr-defined]
            )
        )
    stmt = stmt.order_by(
        Driver.last_connected.desc().nulls_last(),  # type: ignore[union-attr]
        Driver.first_name,
        Driver.last_name,
    )
    result = await session.execute(stmt)
    drivers = result.scalars().all()

    # Latest device per driver in one query
    latest: dict[str, MobileDevice] = {}
    if drivers:
        device_stmt = (
            select(MobileDevice)
            .where(
                MobileDevice.identity_kind == IdentityKind.EXTERNAL,
                MobileDevice.identity_id.in_([d.id for d in drivers]),  # type: ignore[attr-defined]
            )
            .order_by(MobileDevice.last_active.desc().nulls_last())  # type: ignore[union-attr]
        )
        device_result = await session.execute(device_stmt)
        for device in device_result.scalars():
            latest.setdefault(device.identity_id, device)

    return [
        DriverWithDevice(
            **DriverRead.model_validate(driver).model_dump(),
            device_info=(
                MobileDeviceRead.model_validate(latest[driver.id]) if driver.id in latest else None
            ),
        )
        for driver in drivers
    ]


@router.get("/{driver_id}", response_model=DriverDetail)
async def get_driver(driver_id: str, session: SessionDep, _admin: AdminUser):
    """Get a driver with all paired devices."""
    driver = await session.get(Driver, driver_id)
    if not driver:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Driver not found",
        )

    devices = await list_devices(session, driver.identity_ref)
    return DriverDetail(
        **DriverRead.model_validate(driver).model_dump(),
        devices=[MobileDeviceRead.model_validate(d) for d in devices],
    )
