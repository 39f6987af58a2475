"""Ride model (the work items shown to paired devices)."""

from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from dropnow.models.base import TimestampMixin, generate_nanoid


class RideStatus(str, Enum):
    """Lifecycle status of a ride."""

    SCHEDULED = "scheduled"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses a chauffeur still has to act on
ACTIVE_RIDE_STATUSES = (RideStatus.SCHEDULED, RideStatus.ASSIGNED, RideStatus.IN_PROGRESS)


class Ride(TimestampMixin, SQLModel, table=True):
    """A booked ride assigned to a driver or staff chauffeur."""

    __tablename__ = "rides"

    id: str = Field(default_factory=generate_nanoid, primary_key=True, max_length=21)
    ride_number: str = Field(unique=True, index=True, max_length=50)
    status: RideStatus = Field(default=RideStatus.SCHEDULED)
    pickup_address: str = Field(max_length=512)
    dropoff_address: str = Field(max_length=512)
    pickup_time: datetime = Field(
        sa_type=DateTime(timezone=True),  # type: ignore[call-overload]
    )
    passenger_name: str | None = Field(default=None, max_length=255)
    notes: str | None = Field(default=None)

    # Assignees
    driver_id: str | None = Field(
        default=None, foreign_key="drivers.id", index=True, ondelete="SET NULL", max_length=21
    )
    chauffeur_id: str | None = Field(
        default=None, foreign_key="users.id", index=True, ondelete="SET NULL", max_length=21
    )


class RideRead(SQLModel):
    """Schema for reading a ride."""

    id: str
    ride_number: str
    status: RideStatus
    pickup_address: str
    dropoff_address: str
    pickup_time: datetime
    passenger_name: str | None
    notes: str | None
