"""Connection token lifecycle: issue, inspect, redeem.

A token moves from issued to either redeemed or expired. Expiry is derived
from ``expires_at`` and never written; redemption is the only persisted
transition and is claimed with a single conditional UPDATE, so concurrent
redeemers of one token get exactly one winner.
"""

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta
from urllib.parse import quote

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.config import settings
from dropnow.models import ConnectionToken, IdentityKind, IdentityRef, MobileDevice
from dropnow.models.base import utcnow
from dropnow.models.driver import DriverInfo
from dropnow.models.mobile_device import DeviceInfo
from dropnow.services.identity import (
    Identity,
    find_or_create_driver,
    get_identity,
    touch_last_connected,
    upsert_device,
)
from dropnow.services.mobile_auth import mint_credential
from dropnow.services.qr import QRRenderError, encode_as_scannable_image

logger = logging.getLogger(__name__)

TOKEN_BYTES = 32


class PairingError(Exception):
    """Base class for pairing failures surfaced to callers."""

    code = "pairing_error"


class TokenNotFoundError(PairingError):
    code = "not_found"


class TokenExpiredError(PairingError):
    code = "expired"


class TokenAlreadyUsedError(PairingError):
    code = "already_used"


class IdentityNotFoundError(PairingError):
    code = "not_found"


class PairingValidationError(PairingError):
    code = "validation_error"


class IdentityConflictError(PairingError):
    code = "conflict"


class PairingInternalError(PairingError):
    """Store or rendering failure. The message is safe to show clients."""

    code = "internal_error"


@dataclass
class IssuedToken:
    token: str
    expires_at: datetime
    qr_code: str
    connection_url: str
    api_base_url: str
    identity: IdentityRef | None


@dataclass
class Redemption:
    identity: Identity
    identity_ref: IdentityRef
    credential: str
    device: MobileDevice | None
    connected_at: datetime
    created_identity: bool = False


def token_hint(token: str) -> str:
    """Short prefix of a token that is safe to log."""
    return f"{token[:8]}..."


def generate_token() -> str:
    return secrets.token_urlsafe(TOKEN_BYTES)


def build_connection_url(token: str) -> str:
    """Pairing URL scanned by the app; carries the API base so it need not be hardcoded."""
    base = settings.api_base_url
    return f"{base}/mobile/connect?token={quote(token, safe='')}&baseUrl={quote(base, safe='')}"


async def issue_token(
    session: AsyncSession,
    *,
    issued_by: str,
    bound: IdentityRef | None = None,
    now: datetime | None = None,
) -> IssuedToken:
    """Create a connection token and render its QR code.

    Args:
        session: Database session
        issued_by: ID of the authenticated admin issuing the token
        bound: Identity the token pairs to; None lets a driver self-register
        now: Clock override

    Raises:
        IdentityNotFoundError: ``bound`` points at a missing identity
        PairingInternalError: the token could not be stored or rendered
    """
    now = now or utcnow()

    if bound is not None and await get_identity(session, bound) is None:
        raise IdentityNotFoundError(f"{bound.kind.value.capitalize()} identity not found")

    token = ConnectionToken(
        token=generate_token(),
        identity_kind=bound.kind if bound else None,
        identity_id=bound.id if bound else None,
        issued_by=issued_by,
        expires_at=now + timedelta(minutes=settings.connection_token_ttl_minutes),
    )

    # Render before storing so a failed render never leaves a live token behind
    connection_url = build_connection_url(token.token)
    try:
        qr_code = await encode_as_scannable_image(connection_url)
    except QRRenderError as e:
        logger.error(f"Failed to render QR code for token {token_hint(token.token)}: {e!r}")
        raise PairingInternalError("Failed to generate connection token") from e

    try:
        session.add(token)
        await session.commit()
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to store connection token (bound={bound}, issued_by={issued_by}): {e!r}")
        raise PairingInternalError("Failed to generate connection token") from e

    logger.info(
        f"Issued connection token {token_hint(token.token)} "
        f"(bound={bound or 'unbound'}, issued_by={issued_by})"
    )
    return IssuedToken(
        token=token.token,
        expires_at=token.expires_at,
        qr_code=qr_code,
        connection_url=connection_url,
        api_base_url=settings.api_base_url,
        identity=bound,
    )


async def list_active_tokens(
    session: AsyncSession,
    ref: IdentityRef,
    now: datetime | None = None,
) -> list[ConnectionToken]:
    """Unused, unexpired tokens bound to an identity, newest first."""
    now = now or utcnow()
    stmt = (
        select(ConnectionToken)
        .where(
            ConnectionToken.identity_kind == ref.kind,
            ConnectionToken.identity_id == ref.id,
            ConnectionToken.is_used == False,  # noqa: E712
            ConnectionToken.expires_at > now,
        )
        .order_by(ConnectionToken.created_at.desc())  # type: ignore[attr-defined]
    )
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def _load_token(session: AsyncSession, token: str) -> ConnectionToken | None:
    stmt = (
        select(ConnectionToken)
        .where(ConnectionToken.token == token)
        .execution_options(populate_existing=True)
    )
    result = await session.execute(stmt)
    return result.scalar_one_or_none()


def _unavailable_reason(record: ConnectionToken | None, now: datetime) -> PairingError | None:
    """Why a token cannot be redeemed, or None if it still can."""
    if record is None:
        return TokenNotFoundError("Invalid connection token")
    if record.is_used:
        return TokenAlreadyUsedError("Connection token has already been used")
    if record.is_expired(now):
        return TokenExpiredError("Connection token has expired")
    return None


async def peek_token(
    session: AsyncSession,
    token: str,
    now: datetime | None = None,
) -> ConnectionToken:
    """Check a token is redeemable without consuming it."""
    now = now or utcnow()
    record = await _load_token(session, token)
    if record is None:
        raise TokenNotFoundError("Invalid connection token")
    reason = _unavailable_reason(record, now)
    if reason is not None:
        raise reason
    return record


async def _claim(session: AsyncSession, token: str, now: datetime) -> bool:
    """Flip is_used false -> true if the token is still redeemable."""
    result = await session.execute(
        update(ConnectionToken)
        .where(
            ConnectionToken.token == token,
            ConnectionToken.is_used == False,  # noqa: E712
            ConnectionToken.expires_at > now,
        )
        .values(is_used=True, used_at=now)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1  # type: ignore[attr-defined]


async def _resolve_identity(
    session: AsyncSession,
    record: ConnectionToken,
    driver_info: DriverInfo | None,
) -> tuple[Identity, bool]:
    bound = record.identity_ref
    if bound is not None:
        identity = await get_identity(session, bound)
        if identity is None:
            raise IdentityNotFoundError("Paired identity no longer exists")
        return identity, False

    if driver_info is None:
        raise PairingValidationError("Driver information with external_id is required")

    driver, created = await find_or_create_driver(session, driver_info)
    record.identity_kind = IdentityKind.EXTERNAL
    record.identity_id = driver.id
    return driver, created


async def redeem_token(
    session: AsyncSession,
    token: str,
    *,
    driver_info: DriverInfo | None = None,
    device_info: DeviceInfo | None = None,
    now: datetime | None = None,
) -> Redemption:
    """Consume a token, resolve its identity and mint a mobile credential.

    Everything happens in one transaction: if any step fails the claim is
    rolled back and the token stays redeemable.

    Raises:
        TokenNotFoundError, TokenExpiredError, TokenAlreadyUsedError: token is
            not redeemable
        PairingValidationError: unbound token without driver information
        IdentityNotFoundError: the bound identity was deleted
        IdentityConflictError: a concurrent registration took the external id
        PairingInternalError: store failure
    """
    now = now or utcnow()
    hint = token_hint(token)

    try:
        if not await _claim(session, token, now):
            await session.rollback()
            reason = _unavailable_reason(await _load_token(session, token), now)
            # Lost a race between the claim and the re-read
            raise reason or TokenAlreadyUsedError("Connection token has already been used")

        record = await _load_token(session, token)
        if record is None:
            raise TokenNotFoundError("Invalid connection token")
        identity, created = await _resolve_identity(session, record, driver_info)
        ref = identity.identity_ref
        touch_last_connected(identity, now)

        device = None
        if device_info is not None:
            device = await upsert_device(session, ref, device_info, now)

        credential = await mint_credential(
            session, ref, device_id=device.device_id if device else None, now=now
        )
        await session.commit()
    except PairingError:
        await session.rollback()
        raise
    except IntegrityError as e:
        await session.rollback()
        logger.warning(f"Identity conflict while redeeming token {hint}: {e!r}")
        raise IdentityConflictError("Driver registration conflicted, please retry") from e
    except SQLAlchemyError as e:
        await session.rollback()
        logger.error(f"Failed to redeem connection token {hint}: {e!r}")
        raise PairingInternalError("Failed to connect mobile device") from e

    logger.info(f"Redeemed connection token {hint} for {ref} (new identity: {created})")
    return Redemption(
        identity=identity,
        identity_ref=ref,
        credential=credential,
        device=device,
        connected_at=now,
        created_identity=created,
    )
