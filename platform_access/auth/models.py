"""Authentication models and types."""

from datetime import UTC, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

from platform_access.auth.role_mapping import normalize_group_memberships


class TokenClass(str, Enum):
    """The `token_use` of an identity token."""

    ACCESS = "access"
    ID = "id"


class IdentityClaimSet(BaseModel):
    """Verified, decoded payload of an identity token."""

    # Durable, never-reused account identifier; the identity key for everything downstream.
    subject: str | None = None
    token_class: str | None = None
    group_memberships: list[str] = Field(default_factory=list)
    # Display only.
    email: str | None = None
    issuer: str | None = None
    expiry: datetime | None = None

    @classmethod
    def from_claims(cls, payload: dict[str, Any]) -> "IdentityClaimSet":
        exp = payload.get("exp")
        return cls(
            subject=payload.get("sub") or None,
            token_class=payload.get("token_use"),
            group_memberships=normalize_group_memberships(payload),
            email=payload.get("email"),
            issuer=payload.get("iss"),
            expiry=datetime.fromtimestamp(exp, UTC) if isinstance(exp, int | float) else None,
        )

    @property
    def is_access_token(self) -> bool:
        return self.token_class == TokenClass.ACCESS.value

    def is_member_of(self, group: str) -> bool:
        return group in self.group_memberships


class AdminPrincipal(BaseModel):
    """Identity of an authorized platform administrator for the current request."""

    subject: str
    email: str = ""
