"""Tenant data models."""

import re
from enum import Enum
from typing import ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from platform_access.data.entities import Entity

_SLUG_PATTERN = re.compile(r"^[a-z][a-z0-9-]*[a-z0-9]$")
_EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


class TenantStatus(str, Enum):
    """Tenant lifecycle status."""

    ACTIVE = "ACTIVE"
    SUSPENDED = "SUSPENDED"
    OFFBOARDED = "OFFBOARDED"  # Terminal

    def can_transition_to(self, target: "TenantStatus") -> bool:
        """Check whether an administrator may move a tenant from this status to `target`."""
        if self is TenantStatus.OFFBOARDED or self is target:
            return False
        return True


class TenantPlan(str, Enum):
    """Subscription tier."""

    STARTER = "STARTER"
    GROWTH = "GROWTH"
    ENTERPRISE = "ENTERPRISE"


def is_valid_slug(slug: str) -> bool:
    return 3 <= len(slug) <= 63 and bool(_SLUG_PATTERN.match(slug))


def _require_valid_slug(value: str) -> str:
    if not is_valid_slug(value):
        raise ValueError(
            "Slug must be 3-63 characters of lowercase letters, digits and hyphens, "
            "starting with a letter"
        )
    return value


class Tenant(Entity):
    """An isolated customer organization."""

    entity_name: ClassVar[str] = "tenant"

    slug: str = Field(..., description="URL-safe unique identifier, immutable")
    name: str = Field(..., min_length=1, max_length=200)
    status: TenantStatus = TenantStatus.ACTIVE
    plan: TenantPlan = TenantPlan.STARTER
    contact_name: str | None = Field(default=None, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255, pattern=_EMAIL_PATTERN)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, value: str) -> str:
        return _require_valid_slug(value)


class TenantSlugClaim(Entity):
    """Reserves a slug. The id is the slug itself, so a second claim fails on insert."""

    entity_name: ClassVar[str] = "tenant_slug"

    tenant_id: str


class TenantSummary(BaseModel):
    """Public view of the resolved tenant."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"id": "6f1c...", "slug": "acme", "name": "Acme Movers"}}
    )

    id: str
    slug: str
    name: str


class TenantCreate(BaseModel):
    """Request model for onboarding a tenant."""

    model_config = ConfigDict(
        json_schema_extra={"example": {"slug": "acme", "name": "Acme Movers", "plan": "GROWTH"}}
    )

    slug: str
    name: str = Field(..., min_length=1, max_length=200)
    plan: TenantPlan = TenantPlan.STARTER
    contact_name: str | None = Field(default=None, min_length=1, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255, pattern=_EMAIL_PATTERN)

    @field_validator("slug")
    @classmethod
    def validate_slug(cls, value: str) -> str:
        return _require_valid_slug(value)


class TenantUpdate(BaseModel):
    """Partial update of a tenant's editable fields. Slug and status are not editable here."""

    model_config = ConfigDict(extra="forbid")

    name: str | None = Field(default=None, min_length=1, max_length=200)
    plan: TenantPlan | None = None
    contact_name: str | None = Field(default=None, min_length=1, max_length=255)
    contact_email: str | None = Field(default=None, max_length=255, pattern=_EMAIL_PATTERN)

    @field_validator("name", "plan")
    @classmethod
    def reject_null(cls, value):
        # Only the contact fields can be cleared.
        if value is None:
            raise ValueError("Field cannot be null")
        return value


class TenantStatusUpdate(BaseModel):
    """Request model for a tenant lifecycle transition."""

    status: TenantStatus


class TenantListResponse(BaseModel):
    """Response model for the admin tenant listing."""

    tenants: list[Tenant]
    total_count: int
    limit: int
    offset: int
