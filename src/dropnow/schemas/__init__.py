"""Pydantic schemas for API requests/responses."""

from dropnow.schemas.common import (
    PAIRING_ERROR_RESPONSES,
    ErrorDetail,
    ErrorResponse,
    SuccessResponse,
)

__all__ = [
    "PAIRING_ERROR_RESPONSES",
    "ErrorDetail",
    "ErrorResponse",
    "SuccessResponse",
]
