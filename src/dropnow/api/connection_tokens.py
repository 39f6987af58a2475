"""Admin endpoints for issuing and listing connection tokens."""

from datetime import datetime

from fastapi import APIRouter, status
from pydantic import BaseModel

from dropnow.api.deps import AdminUser, SessionDep
from dropnow.api.utils import pairing_http_error, parse_identity_ref
from dropnow.models import IdentityKind
from dropnow.models.connection_token import ConnectionTokenRead
from dropnow.schemas import PAIRING_ERROR_RESPONSES
from dropnow.services.pairing import (
    PairingError,
    PairingValidationError,
    issue_token,
    list_active_tokens,
)

router = APIRouter()


class IssueTokenRequest(BaseModel):
    """Request body for issuing a token.

    Leave both fields empty to issue an unbound token a new driver can use
    to register themselves.
    """

    identity_kind: IdentityKind | None = None
    identity_id: str | None = None


class IssueTokenResponse(BaseModel):
    """A freshly issued token and its QR code."""

    token: str
    expires_at: datetime
    qr_code: str
    connection_url: str
    api_base_url: str
    identity_kind: IdentityKind | None = None
    identity_id: str | None = None


class ActiveTokensResponse(BaseModel):
    connection_tokens: list[ConnectionTokenRead]


@router.post(
    "",
    response_model=IssueTokenResponse,
    status_code=status.HTTP_201_CREATED,
    responses=PAIRING_ERROR_RESPONSES,
)
async def create_connection_token(
    request: IssueTokenRequest,
    session: SessionDep,
    admin: AdminUser,
):
    """Issue a connection token and QR code (admin only)."""
    bound = parse_identity_ref(request.identity_kind, request.identity_id)

    try:
        issued = await issue_token(session, issued_by=admin.id, bound=bound)
    except PairingError as e:
        raise pairing_http_error(e) from e

    return IssueTokenResponse(
        token=issued.token,
        expires_at=issued.expires_at,
        qr_code=issued.qr_code,
        connection_url=issued.connection_url,
        api_base_url=issued.api_base_url,
        identity_kind=bound.kind if bound else None,
        identity_id=bound.id if bound else None,
    )


@router.get("", response_model=ActiveTokensResponse, responses=PAIRING_ERROR_RESPONSES)
async def get_active_connection_tokens(
    session: SessionDep,
    _admin: AdminUser,
    identity_kind: IdentityKind | None = None,
    identity_id: str | None = None,
):
    """List unused, unexpired tokens bound to an identity, newest first."""
    ref = parse_identity_ref(identity_kind, identity_id)
    if ref is None:
        raise pairing_http_error(PairingValidationError("An identity reference is required"))

    tokens = await list_active_tokens(session, ref)
    return ActiveTokensResponse(
        connection_tokens=[ConnectionTokenRead.model_validate(t) for t in tokens]
    )
