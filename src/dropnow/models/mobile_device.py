"""Mobile device model."""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, generate_nanoid
from dropnow.models.identity import IdentityKind, IdentityRef, identity_pair_constraint


class MobileDevice(TimestampMixin, SQLModel, table=True):
    """A phone paired to an identity. Informational only, never a credential."""

    __tablename__ = "mobile_devices"
    __table_args__ = (
        identity_pair_constraint("mobile_devices", nullable=False),
        Index("ix_mobile_devices_identity", "identity_kind", "identity_id"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    device_id: str = Field(unique=True, index=True, max_length=255)
    identity_kind: IdentityKind
    identity_id: str = Field(max_length=21)
    device_name: str | None = Field(default=None, max_length=255)
    device_model: str | None = Field(default=None, max_length=255)
    platform: str | None = Field(default=None, max_length=50)
    last_active: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    @property
    def identity_ref(self) -> IdentityRef:
        return IdentityRef(IdentityKind(self.identity_kind), self.identity_id)


class DeviceInfo(SQLModel):
    """Device details reported by the mobile app."""

    device_id: str | None = Field(default=None, max_length=255)
    device_name: str | None = None
    device_model: str | None = None
    platform: str | None = None


class MobileDeviceRead(SQLModel):
    """Schema for reading a mobile device."""

    device_id: str
    device_name: str | None
    device_model: str | None
    platform: str | None
    last_active: datetime | None
