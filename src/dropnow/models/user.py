"""User model (internal staff identity)."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, generate_nanoid
from dropnow.models.identity import IdentityRef


class User(TimestampMixin, SQLModel, table=True):
    """Staff account. Admins run the console; any user can pair a phone."""

    __tablename__ = "users"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    email: str = Field(unique=True, index=True, max_length=255)
    name: str | None = Field(default=None, max_length=255)
    is_admin: bool = Field(default=False)
    last_connected: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Last time a paired mobile device checked in",
    )

    @property
    def identity_ref(self) -> IdentityRef:
        return IdentityRef.internal(self.id)


class UserRead(SQLModel):
    """Schema for reading a user."""

    id: str
    email: str
    name: str | None
    is_admin: bool
    last_connected: datetime | None = None
