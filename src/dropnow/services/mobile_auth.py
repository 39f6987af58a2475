"""Mobile session credentials.

After a device redeems a connection token it receives a random credential.
Later mobile calls present it together with the identity reference; the
server keeps only a SHA-256 digest and compares digests in constant time.
"""

import hashlib
import hmac
import logging
import secrets
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import update
from sqlalchemy.ext.asyncio import AsyncSession
from sqlmodel import select

from dropnow.models import IdentityRef, MobileCredential
from dropnow.models.base import utcnow
from dropnow.services.identity import Identity, get_identity, touch_last_connected

logger = logging.getLogger(__name__)

CREDENTIAL_PREFIX = "mk_"
CREDENTIAL_BYTES = 32


class MobileUnauthorizedError(Exception):
    """Credential missing, wrong, revoked, or for an unknown identity.

    Always carries the same message so callers cannot probe which identities
    exist.
    """

    code = "unauthorized"

    def __init__(self) -> None:
        super().__init__("Invalid credentials")


@dataclass
class MobileSession:
    """An authorized mobile caller."""

    ref: IdentityRef
    identity: Identity
    credential: MobileCredential


def hash_credential(credential: str) -> str:
    return hashlib.sha256(credential.encode()).hexdigest()


def generate_credential() -> str:
    return CREDENTIAL_PREFIX + secrets.token_urlsafe(CREDENTIAL_BYTES)


async def mint_credential(
    session: AsyncSession,
    ref: IdentityRef,
    device_id: str | None = None,
    now: datetime | None = None,
) -> str:
    """Create a credential for an identity and return its plaintext.

    Earlier credentials issued to the same device are revoked. The caller
    owns the transaction.
    """
    now = now or utcnow()

    if device_id is not None:
        await session.execute(
            update(MobileCredential)
            .where(
                MobileCredential.identity_kind == ref.kind,
                MobileCredential.identity_id == ref.id,
                MobileCredential.device_id == device_id,
                MobileCredential.revoked_at.is_(None),  # type: ignore[union-attr]
            )
            .values(revoked_at=now)
            .execution_options(synchronize_session=False)
        )

    credential = generate_credential()
    session.add(
        MobileCredential(
            identity_kind=ref.kind,
            identity_id=ref.id,
            device_id=device_id,
            credential_hash=hash_credential(credential),
        )
    )
    await session.flush()
    return credential


async def _match_credential(
    session: AsyncSession, ref: IdentityRef, presented: str | None
) -> MobileCredential:
    if not presented or not presented.startswith(CREDENTIAL_PREFIX):
        raise MobileUnauthorizedError()

    digest = hash_credential(presented)
    stmt = select(MobileCredential).where(
        MobileCredential.identity_kind == ref.kind,
        MobileCredential.identity_id == ref.id,
        MobileCredential.revoked_at.is_(None),  # type: ignore[union-attr]
    )
    result = await session.execute(stmt)

    match = None
    for candidate in result.scalars():
        if hmac.compare_digest(candidate.credential_hash, digest):
            match = candidate
    if match is None:
        raise MobileUnauthorizedError()
    return match


async def authorize(
    session: AsyncSession,
    ref: IdentityRef,
    presented: str | None,
    now: datetime | None = None,
) -> MobileSession:
    """Check a presented credential and refresh the identity's last contact."""
    now = now or utcnow()

    credential = await _match_credential(session, ref, presented)
    identity = await get_identity(session, ref)
    if identity is None:
        logger.warning(f"Credential {credential.id} refers to missing identity {ref}")
        raise MobileUnauthorizedError()

    touch_last_connected(identity, now)
    credential.last_used_at = now
    await session.commit()
    return MobileSession(ref=ref, identity=identity, credential=credential)


async def revoke_credential(session: AsyncSession, credential: MobileCredential) -> None:
    credential.revoked_at = utcnow()
    await session.commit()
    logger.info(f"Revoked mobile credential {credential.id}")
