"""Authentication service for admin console JWTs."""

from datetime import UTC, datetime, timedelta

from jose import JWTError, jwt
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.config import settings
from dropnow.models import User


class AuthError(Exception):
    """Authentication error."""

    pass


def _encode(user_id: str, email: str, is_admin: bool) -> str:
    now = datetime.now(UTC)
    payload = {
        "sub": user_id,
        "email": email,
        "is_admin": is_admin,
        "exp": now + timedelta(days=settings.jwt_expiration_days),
        "iat": now,
    }
    return jwt.encode(payload, settings.session_secret, algorithm=settings.jwt_algorithm)


def create_token(user: User) -> str:
    """Create a JWT token for a user."""
    return _encode(str(user.id), user.email, user.is_admin)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        payload = jwt.decode(
            token,
            settings.session_secret,
            algorithms=[settings.jwt_algorithm],
        )
        return payload
    except JWTError as e:
        raise AuthError(f"Invalid token: {e}") from e


async def verify_token(session: AsyncSession, token: str) -> User:
    """Verify a JWT token and return the associated user."""
    payload = decode_token(token)

    user_id = payload.get("sub")
    if not user_id:
        raise AuthError("Invalid token: missing user ID")

    stmt = select(User).where(User.id == user_id)
    result = await session.execute(stmt)
    user = result.scalar_one_or_none()

    if not user:
        raise AuthError("User not found")

    return user
