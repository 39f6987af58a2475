"""Shared API utilities."""

from fastapi import HTTPException, status

from dropnow.models import IdentityKind, IdentityRef
from dropnow.services.identity import DeviceOwnershipError
from dropnow.services.mobile_auth import MobileUnauthorizedError
from dropnow.services.pairing import PairingError, PairingValidationError

# HTTP status per error code
ERROR_STATUS: dict[str, int] = {
    "not_found": status.HTTP_404_NOT_FOUND,
    "expired": status.HTTP_410_GONE,
    "already_used": status.HTTP_409_CONFLICT,
    "validation_error": status.HTTP_400_BAD_REQUEST,
    "conflict": status.HTTP_409_CONFLICT,
    "unauthorized": status.HTTP_401_UNAUTHORIZED,
    "internal_error": status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def pairing_http_error(
    exc: PairingError | MobileUnauthorizedError | DeviceOwnershipError,
) -> HTTPException:
    """Translate a pairing or mobile auth failure into an HTTP error.

    The body is ``{"detail": {"code": ..., "message": ...}}`` so the mobile
    app can tell an expired code from one already used elsewhere.
    """
    headers = {"WWW-Authenticate": "Bearer"} if exc.code == "unauthorized" else None
    return HTTPException(
        status_code=ERROR_STATUS.get(exc.code, status.HTTP_400_BAD_REQUEST),
        detail={"code": exc.code, "message": str(exc)},
        headers=headers,
    )


def parse_identity_ref(kind: IdentityKind | None, identity_id: str | None) -> IdentityRef | None:
    """Build an identity reference from optional request fields.

    Both halves absent means "no identity". One without the other is invalid.
    """
    if kind is None and not identity_id:
        return None
    if kind is None or not identity_id:
        raise pairing_http_error(
            PairingValidationError("identity_kind and identity_id must be given together")
        )
    return IdentityRef(kind, identity_id)
