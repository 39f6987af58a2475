"""Staff user admin endpoints."""

from fastapi import APIRouter, HTTPException, status
from sqlmodel import select

from dropnow.api.deps import AdminUser, SessionDep
from dropnow.models import User
from dropnow.models.mobile_device import MobileDeviceRead
from dropnow.models.user import UserRead
from dropnow.services.identity import list_devices

router = APIRouter()


@router.get("", response_model=list[UserRead])
async def list_users(session: SessionDep, _admin: AdminUser):
    """List staff users."""
    result = await session.execute(select(User).order_by(User.email))
    return [UserRead.model_validate(u) for u in result.scalars().all()]


@router.get("/{user_id}/devices", response_model=list[MobileDeviceRead])
async def list_user_devices(user_id: str, session: SessionDep, _admin: AdminUser):
    """Mobile devices paired to a staff user."""
    user = await session.get(User, user_id)
    if not user:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="User not found",
        )

    devices = await list_devices(session, user.identity_ref)
    return [MobileDeviceRead.model_validate(d) for d in devices]
