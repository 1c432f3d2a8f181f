"""Error types shared by the access-control layer.

`ApiError` is what callers see: a stable machine-readable code and a short detail.
The remaining exceptions are internal and are always translated (usually to a
generic message) before they reach a caller.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from fastapi import HTTPException, status


class ErrorCode(str, Enum):
    """Stable error codes returned in API error bodies."""

    UNAUTHORIZED = "UNAUTHORIZED"
    TOKEN_EXPIRED = "TOKEN_EXPIRED"
    FORBIDDEN = "FORBIDDEN"
    TENANT_REQUIRED = "TENANT_REQUIRED"
    TENANT_NOT_FOUND = "TENANT_NOT_FOUND"
    TENANT_SUSPENDED = "TENANT_SUSPENDED"
    INVALID_STATUS_TRANSITION = "INVALID_STATUS_TRANSITION"
    CONFLICT = "CONFLICT"
    SIGN_IN_BLOCKED = "SIGN_IN_BLOCKED"
    INTERNAL_ERROR = "INTERNAL_ERROR"


@dataclass(frozen=True)
class ErrorBody:
    detail: str
    code: str

    def to_dict(self) -> dict[str, str]:
        # No timestamps or request ids: identical failures must render identical bodies.
        return {"detail": self.detail, "code": self.code}


class ApiError(HTTPException):
    """HTTPException with a stable error code."""

    def __init__(
        self,
        *,
        status_code: int,
        detail: str,
        code: ErrorCode,
        headers: dict[str, str] | None = None,
    ) -> None:
        super().__init__(status_code=status_code, detail=detail, headers=headers)
        self.code = code

    def to_payload(self) -> dict[str, str]:
        return ErrorBody(detail=str(self.detail), code=self.code.value).to_dict()


def unauthorized(detail: str, code: ErrorCode = ErrorCode.UNAUTHORIZED) -> ApiError:
    return ApiError(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        code=code,
        headers={"WWW-Authenticate": "Bearer"},
    )


def forbidden(detail: str, code: ErrorCode = ErrorCode.FORBIDDEN) -> ApiError:
    return ApiError(status_code=status.HTTP_403_FORBIDDEN, detail=detail, code=code)


def internal_error_payload() -> dict[str, str]:
    return ErrorBody(detail="Internal server error", code=ErrorCode.INTERNAL_ERROR.value).to_dict()


class ConfigurationError(RuntimeError):
    """Required configuration is missing; raised on first use, never defaulted."""


class SigningKeyError(RuntimeError):
    """The signing key set could not be fetched, parsed, or did not contain the key."""


class TokenVerificationError(Exception):
    """A bearer token failed verification."""


class ExpiredTokenError(TokenVerificationError):
    """The token is well-formed and correctly signed but past its expiry."""


class InvalidTokenError(TokenVerificationError):
    """Any defect other than expiry: malformed, bad signature, wrong issuer or algorithm."""


class DirectoryError(RuntimeError):
    """The account directory could not answer a lookup."""


class SignInBlockedError(Exception):
    """Raised by the sign-in gate to block an authentication attempt.

    The message is surfaced to the signing-in user by the identity provider.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class RecordNotFoundError(LookupError):
    """A single-record update or delete matched nothing."""


class DuplicateRecordError(ValueError):
    """A create collided with an existing record id."""


class WriteConflictError(RuntimeError):
    """The stored row changed between the read and the conditional write."""
