"""Driver model (external identity)."""

from datetime import datetime

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, generate_nanoid
from dropnow.models.identity import IdentityRef


class Driver(TimestampMixin, SQLModel, table=True):
    """External chauffeur, usually self-registered from the mobile app."""

    __tablename__ = "drivers"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    external_id: str = Field(
        unique=True,
        index=True,
        max_length=255,
        description="Stable identifier supplied by the driver's app",
    )
    first_name: str | None = Field(default=None, max_length=255)
    last_name: str | None = Field(default=None, max_length=255)
    email: str | None = Field(default=None, max_length=255)
    phone: str | None = Field(default=None, max_length=50)
    last_connected: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    @property
    def identity_ref(self) -> IdentityRef:
        return IdentityRef.external(self.id)


class DriverInfo(SQLModel):
    """Identifying fields a driver's app sends when scanning a code."""

    external_id: str = Field(min_length=1, max_length=255)
    first_name: str | None = None
    last_name: str | None = None
    email: str | None = None
    phone: str | None = None


class DriverRead(SQLModel):
    """Schema for reading a driver."""

    id: str
    external_id: str
    first_name: str | None
    last_name: str | None
    email: str | None
    phone: str | None
    last_connected: datetime | None = None
