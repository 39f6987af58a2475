"""SQLModel database models."""

from dropnow.models.base import TimestampMixin
from dropnow.models.connection_token import ConnectionToken
from dropnow.models.driver import Driver
from dropnow.models.identity import IdentityKind, IdentityRef
from dropnow.models.mobile_credential import MobileCredential
from dropnow.models.mobile_device import MobileDevice
from dropnow.models.ride import ACTIVE_RIDE_STATUSES, Ride, RideStatus
from dropnow.models.user import User

__all__ = [
    "ACTIVE_RIDE_STATUSES",
    "ConnectionToken",
    "Driver",
    "IdentityKind",
    "IdentityRef",
    "MobileCredential",
    "MobileDevice",
    "Ride",
    "RideStatus",
    "TimestampMixin",
    "User",
]
