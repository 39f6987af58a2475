"""Connection token model for QR-code device pairing."""

from datetime import datetime

from sqlalchemy import DateTime, Index
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, ensure_utc, generate_nanoid
from dropnow.models.identity import IdentityKind, IdentityRef, identity_pair_constraint


class ConnectionToken(TimestampMixin, SQLModel, table=True):
    """Single-use, time-limited pairing secret.

    A token is redeemable while ``is_used`` is false and ``expires_at`` is in
    the future. Unbound tokens (no identity) are claimed by a driver at
    redemption time and bound to that driver afterwards.
    """

    __tablename__ = "connection_tokens"
    __table_args__ = (
        identity_pair_constraint("connection_tokens", nullable=True),
        Index("ix_connection_tokens_identity", "identity_kind", "identity_id"),
    )

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    token: str = Field(unique=True, index=True, max_length=255, description="Random pairing secret")
    identity_kind: IdentityKind | None = Field(default=None)
    identity_id: str | None = Field(default=None, max_length=21)
    issued_by: str | None = Field(
        default=None,
        foreign_key="users.id",
        ondelete="SET NULL",
        max_length=21,
        description="Admin who issued the token",
    )
    expires_at: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
        description="Token expiration time",
    )
    is_used: bool = Field(default=False)
    used_at: datetime | None = Field(
        default=None,
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )

    @property
    def identity_ref(self) -> IdentityRef | None:
        if self.identity_kind is None or self.identity_id is None:
            return None
        return IdentityRef(IdentityKind(self.identity_kind), self.identity_id)

    def is_expired(self, now: datetime) -> bool:
        """Expiry is inclusive: a token is dead at exactly ``expires_at``."""
        return now >= ensure_utc(self.expires_at)


class ConnectionTokenRead(SQLModel):
    """Schema for reading a connection token."""

    id: str
    token: str
    identity_kind: IdentityKind | None
    identity_id: str | None
    expires_at: datetime
    is_used: bool
    created_at: datetime
