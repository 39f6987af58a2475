"""initial_schema

Staff users, drivers, connection tokens, paired devices, mobile credentials
and rides.

Revision ID: 0001
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None

# Enums are stored by member name, matching SQLModel's default mapping
identity_kind = postgresql.ENUM("INTERNAL", "EXTERNAL", name="identitykind", create_type=False)
ride_status = postgresql.ENUM(
    "SCHEDULED", "ASSIGNED", "IN_PROGRESS", "COMPLETED", "CANCELLED",
    name="ridestatus",
    create_type=False,
)


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    bind = op.get_bind()
    identity_kind.create(bind, checkfirst=True)
    ride_status.create(bind, checkfirst=True)

    op.create_table(
        "users",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(255), nullable=True),
        sa.Column("is_admin", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("last_connected", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "drivers",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("external_id", sa.String(255), nullable=False),
        sa.Column("first_name", sa.String(255), nullable=True),
        sa.Column("last_name", sa.String(255), nullable=True),
        sa.Column("email", sa.String(255), nullable=True),
        sa.Column("phone", sa.String(50), nullable=True),
        sa.Column("last_connected", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
    )
    op.create_index("ix_drivers_external_id", "drivers", ["external_id"], unique=True)

    op.create_table(
        "connection_tokens",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("token", sa.String(255), nullable=False),
        sa.Column("identity_kind", identity_kind, nullable=True),
        sa.Column("identity_id", sa.VARCHAR(21), nullable=True),
        sa.Column(
            "issued_by",
            sa.VARCHAR(21),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("is_used", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("used_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "(identity_kind IS NULL) = (identity_id IS NULL)",
            name="ck_connection_tokens_identity_pair",
        ),
    )
    op.create_index("ix_connection_tokens_token", "connection_tokens", ["token"], unique=True)
    op.create_index(
        "ix_connection_tokens_identity", "connection_tokens", ["identity_kind", "identity_id"]
    )

    op.create_table(
        "mobile_devices",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("device_id", sa.String(255), nullable=False),
        sa.Column("identity_kind", identity_kind, nullable=False),
        sa.Column("identity_id", sa.VARCHAR(21), nullable=False),
        sa.Column("device_name", sa.String(255), nullable=True),
        sa.Column("device_model", sa.String(255), nullable=True),
        sa.Column("platform", sa.String(50), nullable=True),
        sa.Column("last_active", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "identity_kind IS NOT NULL AND identity_id IS NOT NULL",
            name="ck_mobile_devices_identity_pair",
        ),
    )
    op.create_index("ix_mobile_devices_device_id", "mobile_devices", ["device_id"], unique=True)
    op.create_index("ix_mobile_devices_identity", "mobile_devices", ["identity_kind", "identity_id"])

    op.create_table(
        "mobile_credentials",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("identity_kind", identity_kind, nullable=False),
        sa.Column("identity_id", sa.VARCHAR(21), nullable=False),
        sa.Column("device_id", sa.String(255), nullable=True),
        sa.Column("credential_hash", sa.String(64), nullable=False, unique=True),
        sa.Column("last_used_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "identity_kind IS NOT NULL AND identity_id IS NOT NULL",
            name="ck_mobile_credentials_identity_pair",
        ),
    )
    op.create_index(
        "ix_mobile_credentials_identity", "mobile_credentials", ["identity_kind", "identity_id"]
    )

    op.create_table(
        "rides",
        sa.Column("id", sa.VARCHAR(21), primary_key=True),
        sa.Column("ride_number", sa.String(50), nullable=False),
        sa.Column("status", ride_status, nullable=False),
        sa.Column("pickup_address", sa.String(512), nullable=False),
        sa.Column("dropoff_address", sa.String(512), nullable=False),
        sa.Column("pickup_time", sa.DateTime(timezone=True), nullable=False),
        sa.Column("passenger_name", sa.String(255), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column(
            "driver_id",
            sa.VARCHAR(21),
            sa.ForeignKey("drivers.id", ondelete="SET NULL"),
            nullable=True,
        ),
        sa.Column(
            "chauffeur_id",
            sa.VARCHAR(21),
            sa.ForeignKey("users.id", ondelete="SET NULL"),
            nullable=True,
        ),
        *_timestamps(),
    )
    op.create_index("ix_rides_ride_number", "rides", ["ride_number"], unique=True)
    op.create_index("ix_rides_driver_id", "rides", ["driver_id"])
    op.create_index("ix_rides_chauffeur_id", "rides", ["chauffeur_id"])


def downgrade() -> None:
    op.drop_table("rides")
    op.drop_table("mobile_credentials")
    op.drop_table("mobile_devices")
    op.drop_table("connection_tokens")
    op.drop_table("drivers")
    op.drop_table("users")

    bind = op.get_bind()
    ride_status.drop(bind, checkfirst=True)
    identity_kind.drop(bind, checkfirst=True)
