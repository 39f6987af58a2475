"""Admin console authentication endpoints.

Console sessions are JWTs minted out of band (``dropnow users token``);
these endpoints only inspect and renew them.
"""

from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel

from dropnow.api.deps import AuthRateLimit, CurrentUser, SessionDep
from dropnow.models.user import UserRead
from dropnow.services.auth import AuthError, create_token, verify_token

security = HTTPBearer()

router = APIRouter()


class RefreshResponse(BaseModel):
    """Response for token refresh."""

    access_token: str
    token_type: str = "bearer"
    user: UserRead


@router.get("/me", response_model=UserRead)
async def get_current_user_info(user: CurrentUser):
    """Get current authenticated user info."""
    return UserRead.model_validate(user)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh(
    session: SessionDep,
    credentials: Annotated[HTTPAuthorizationCredentials, Depends(security)],
    _rate_limit: AuthRateLimit,
):
    """
    Refresh JWT token.

    Validates the current token and issues a new one with fresh user data
    and extended expiration.
    """
    try:
        user = await verify_token(session, credentials.credentials)
    except AuthError as e:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=str(e),
        ) from e

    return RefreshResponse(
        access_token=create_token(user),
        user=UserRead.model_validate(user),
    )
