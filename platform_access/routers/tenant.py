"""Tenant-facing routes."""

from fastapi import APIRouter

from platform_access.tenancy.dependencies import RequireTenant
from platform_access.tenancy.models import TenantSummary
from platform_access.tenancy.resolver import TenantContext

router = APIRouter()


@router.get("", response_model=TenantSummary)
async def current_tenant(context: TenantContext = RequireTenant) -> TenantSummary:
    """Return the tenant the request resolved to."""
    tenant = context.tenant
    return TenantSummary(id=tenant.id, slug=tenant.slug, name=tenant.name)
