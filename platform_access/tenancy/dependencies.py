"""FastAPI dependencies for tenant-facing routes."""

from typing import Annotated

import structlog
from fastapi import Depends, Request

from platform_access.tenancy.resolver import TenantContext, TenantResolver


def get_tenant_resolver(request: Request) -> TenantResolver:
    return request.app.state.tenant_resolver


async def require_tenant(
    request: Request,
    resolver: Annotated[TenantResolver, Depends(get_tenant_resolver)],
) -> TenantContext:
    """Resolve the caller's tenant before the handler runs.

    Publishes `tenant_id`, `tenant` and the tenant-bound data client `db` on
    `request.state`. Handlers should only ever use `db` for tenant data.
    """
    context = await resolver.resolve(request)
    request.state.tenant_id = context.tenant_id
    request.state.tenant = context.tenant
    request.state.db = context.scoped
    structlog.contextvars.bind_contextvars(tenant_slug=context.tenant.slug)
    return context


RequireTenant = Depends(require_tenant)
