"""Common schemas used across the API."""

from pydantic import BaseModel


class ErrorDetail(BaseModel):
    """Machine-readable error."""

    code: str
    message: str


class ErrorResponse(BaseModel):
    """Error body returned by pairing and mobile endpoints."""

    detail: ErrorDetail


class SuccessResponse(BaseModel):
    """Standard success response."""

    message: str


# OpenAPI documentation for pairing failures
PAIRING_ERROR_RESPONSES: dict[int | str, dict] = {
    400: {"model": ErrorResponse, "description": "Missing or inconsistent input"},
    404: {"model": ErrorResponse, "description": "Unknown token or identity"},
    409: {"model": ErrorResponse, "description": "Token already used or identity conflict"},
    410: {"model": ErrorResponse, "description": "Token expired"},
}
