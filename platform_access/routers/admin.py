"""
Platform administration routes.

Every route requires a platform administrator. Handlers use the unscoped data
client: administrators work across tenants by definition.
"""

from fastapi import APIRouter, Query, Request, status

from platform_access.auth.dependencies import RequirePlatformAdmin
from platform_access.auth.models import AdminPrincipal
from platform_access.data.client import DataClient
from platform_access.errors import (
    ApiError,
    DuplicateRecordError,
    ErrorCode,
    RecordNotFoundError,
)
from platform_access.logger import get_logger
from platform_access.tenancy.models import (
    Tenant,
    TenantCreate,
    TenantListResponse,
    TenantSlugClaim,
    TenantStatus,
    TenantStatusUpdate,
    TenantUpdate,
)

logger = get_logger(__name__)

router = APIRouter()


def _data_client(request: Request) -> DataClient:
    return request.app.state.data_client


def _tenant_not_found() -> ApiError:
    return ApiError(
        status_code=status.HTTP_404_NOT_FOUND,
        detail="Tenant not found",
        code=ErrorCode.TENANT_NOT_FOUND,
    )


def _slug_taken() -> ApiError:
    return ApiError(
        status_code=status.HTTP_409_CONFLICT,
        detail="A tenant with that slug already exists",
        code=ErrorCode.CONFLICT,
    )


def _invalid_transition(current: TenantStatus, target: TenantStatus) -> ApiError:
    return ApiError(
        status_code=status.HTTP_409_CONFLICT,
        detail=f"Cannot change tenant status from {current.value} to {target.value}",
        code=ErrorCode.INVALID_STATUS_TRANSITION,
    )


async def _get_tenant(db: DataClient, tenant_id: str) -> Tenant:
    tenant = await db.find_unique(Tenant, {"id": tenant_id})
    if tenant is None:
        raise _tenant_not_found()
    return tenant


@router.get("/me", response_model=AdminPrincipal)
async def who_am_i(principal: AdminPrincipal = RequirePlatformAdmin) -> AdminPrincipal:
    """Return the authenticated platform administrator."""
    return principal


@router.get("/tenants", response_model=TenantListResponse)
async def list_tenants(
    request: Request,
    status_filter: TenantStatus | None = Query(default=None, alias="status"),
    include_offboarded: bool = Query(default=False),
    limit: int = Query(default=50, ge=1, le=100),
    offset: int = Query(default=0, ge=0),
    principal: AdminPrincipal = RequirePlatformAdmin,
) -> TenantListResponse:
    """List tenants; offboarded tenants are hidden unless asked for."""
    where: dict = {}
    if status_filter is not None:
        where["status"] = status_filter
    elif not include_offboarded:
        where["status"] = {"not": TenantStatus.OFFBOARDED}

    db = _data_client(request)
    tenants = await db.find_many(
        Tenant, where, limit=limit, offset=offset, order_by=("slug", "asc")
    )
    total = await db.count(Tenant, where)
    return TenantListResponse(tenants=tenants, total_count=total, limit=limit, offset=offset)


@router.post("/tenants", response_model=Tenant, status_code=status.HTTP_201_CREATED)
async def create_tenant(
    body: TenantCreate,
    request: Request,
    principal: AdminPrincipal = RequirePlatformAdmin,
) -> Tenant:
    """Onboard a tenant. Slugs are unique and cannot be changed afterwards."""
    db = _data_client(request)
    if await db.find_first(Tenant, {"slug": body.slug}) is not None:
        raise _slug_taken()

    tenant = Tenant(**body.model_dump())
    try:
        await db.create(TenantSlugClaim, {"id": tenant.slug, "tenant_id": tenant.id})
    except DuplicateRecordError as exc:
        raise _slug_taken() from exc

    try:
        created = await db.create(Tenant, tenant.model_dump())
    except Exception:
        await db.delete_many(TenantSlugClaim, {"id": tenant.slug, "tenant_id": tenant.id})
        raise

    logger.info(
        "tenant_created",
        tenant_id=created.id,
        slug=created.slug,
        plan=created.plan.value,
        admin_subject=principal.subject,
    )
    return created


@router.get("/tenants/{tenant_id}", response_model=Tenant)
async def get_tenant(
    tenant_id: str,
    request: Request,
    principal: AdminPrincipal = RequirePlatformAdmin,
) -> Tenant:
    """Return one tenant, whatever its status."""
    return await _get_tenant(_data_client(request), tenant_id)


@router.patch("/tenants/{tenant_id}", response_model=Tenant)
async def update_tenant(
    tenant_id: str,
    body: TenantUpdate,
    request: Request,
    principal: AdminPrincipal = RequirePlatformAdmin,
) -> Tenant:
    """Change a tenant's editable fields; omitted fields are left as they are."""
    changes = body.model_dump(exclude_unset=True)
    db = _data_client(request)
    try:
        updated = await db.update(Tenant, {"id": tenant_id}, changes)
    except RecordNotFoundError as exc:
        raise _tenant_not_found() from exc

    logger.info(
        "tenant_updated",
        tenant_id=tenant_id,
        slug=updated.slug,
        fields=sorted(changes),
        admin_subject=principal.subject,
    )
    return updated


@router.post("/tenants/{tenant_id}/status", response_model=Tenant)
async def change_tenant_status(
    tenant_id: str,
    body: TenantStatusUpdate,
    request: Request,
    principal: AdminPrincipal = RequirePlatformAdmin,
) -> Tenant:
    """Apply a tenant lifecycle transition."""
    db = _data_client(request)
    tenant = await _get_tenant(db, tenant_id)
    if not tenant.status.can_transition_to(body.status):
        raise _invalid_transition(tenant.status, body.status)

    # Only lands if nobody changed the status since it was read.
    try:
        updated = await db.update(
            Tenant, {"id": tenant_id, "status": tenant.status}, {"status": body.status}
        )
    except RecordNotFoundError as exc:
        current = await _get_tenant(db, tenant_id)
        logger.warning(
            "tenant_status_change_lost_race",
            tenant_id=tenant_id,
            read_status=tenant.status.value,
            current_status=current.status.value,
            requested_status=body.status.value,
            admin_subject=principal.subject,
        )
        raise _invalid_transition(current.status, body.status) from exc

    logger.info(
        "tenant_status_changed",
        tenant_id=tenant_id,
        slug=tenant.slug,
        from_status=tenant.status.value,
        to_status=updated.status.value,
        admin_subject=principal.subject,
    )
    return updated
