"""Mobile session credential model."""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, generate_nanoid
from dropnow.models.identity import IdentityKind, identity_pair_constraint


class MobileCredential(TimestampMixin, SQLModel, table=True):
    """Hashed secret a paired device presents on mobile API calls.

    The plaintext is handed to the device once at redemption; only its
    SHA-256 digest is kept.
    """

    __tablename__ = "mobile_credentials"
    __table_args__ = (
        identity_pair_constraint("mobile_credentials", nullable=False),
        Index("ix_mobile_credentials_identity", "identity_kind", "identity_id"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    identity_kind: IdentityKind
    identity_id: str = Field(max_length=21)
    device_id: str | None = Field(default=None, max_length=255)
    credential_hash: str = Field(unique=True, max_length=64, description="SHA-256 of the credential")
    last_used_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    revoked_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
