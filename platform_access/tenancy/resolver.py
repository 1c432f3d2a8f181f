"""
Tenant resolution for tenant-facing requests.

The tenant slug comes from an explicit override header or from the leftmost label of
the request host. The slug is looked up, the tenant's lifecycle status is enforced,
and a data client bound to the tenant is handed back for the rest of the request.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass

from fastapi import Request, status

from platform_access.data.client import DataClient
from platform_access.errors import ApiError, ErrorCode
from platform_access.logger import get_logger
from platform_access.observability.access_metrics import AccessMetrics
from platform_access.tenancy.models import Tenant, TenantStatus
from platform_access.tenancy.scoped import ScopedDataAccess

logger = get_logger(__name__)

DEFAULT_RESERVED_SUBDOMAINS = frozenset({"www", "api", "app", "mail", "admin"})

_TENANT_NOT_FOUND = "Tenant not found"


@dataclass(frozen=True)
class TenantContext:
    """The resolved tenant and a data client bound to it."""

    tenant: Tenant
    scoped: ScopedDataAccess

    @property
    def tenant_id(self) -> str:
        return self.tenant.id


def slug_from_host(
    host: str | None, reserved: Iterable[str] = DEFAULT_RESERVED_SUBDOMAINS
) -> str | None:
    """Derive a tenant slug from a host like ``acme.movers.example.com:8443``."""
    if not host:
        return None
    hostname = host.split(":", 1)[0].strip().lower()
    labels = hostname.split(".")
    if len(labels) < 3 or not labels[0] or labels[0] in reserved:
        return None
    return labels[0]


def extract_slug(
    headers: Mapping[str, str],
    *,
    slug_header: str = "X-Tenant-Slug",
    reserved: Iterable[str] = DEFAULT_RESERVED_SUBDOMAINS,
) -> str | None:
    """Return the override header value when present, else the host-derived slug."""
    override = (headers.get(slug_header) or "").strip().lower()
    if override:
        return override
    return slug_from_host(headers.get("host"), reserved)


class TenantResolver:
    """Resolves the caller's tenant and enforces its lifecycle status."""

    def __init__(
        self,
        data_client: DataClient,
        *,
        slug_header: str = "X-Tenant-Slug",
        reserved_subdomains: Iterable[str] = DEFAULT_RESERVED_SUBDOMAINS,
        metrics: AccessMetrics | None = None,
    ) -> None:
        self._data = data_client
        self._slug_header = slug_header
        self._reserved = frozenset(s.lower() for s in reserved_subdomains)
        self._metrics = metrics

    async def resolve(self, request: Request) -> TenantContext:
        try:
            context = await self._resolve(request)
        except ApiError as exc:
            self._record(exc.code.value)
            raise
        self._record("resolved")
        return context

    async def _resolve(self, request: Request) -> TenantContext:
        slug = extract_slug(request.headers, slug_header=self._slug_header, reserved=self._reserved)
        if not slug:
            logger.info("tenant_slug_missing", host=request.headers.get("host"))
            raise ApiError(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="Tenant could not be determined from the request",
                code=ErrorCode.TENANT_REQUIRED,
            )

        # Lookup failures propagate; an unreachable store is not a missing tenant.
        tenant = await self._data.find_unique(Tenant, {"slug": slug})
        if tenant is None:
            logger.info("tenant_not_found", slug=slug)
            raise self._not_found()

        if tenant.status is TenantStatus.SUSPENDED:
            logger.info("tenant_suspended", slug=slug, tenant_id=tenant.id)
            raise ApiError(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="This account has been suspended. Please contact support.",
                code=ErrorCode.TENANT_SUSPENDED,
            )

        if tenant.status is TenantStatus.OFFBOARDED:
            # Same response as an unknown slug so former tenants cannot be probed.
            logger.info("tenant_offboarded", slug=slug, tenant_id=tenant.id)
            raise self._not_found()

        logger.debug("tenant_resolved", slug=slug, tenant_id=tenant.id)
        return TenantContext(tenant=tenant, scoped=ScopedDataAccess(self._data, tenant.id))

    @staticmethod
    def _not_found() -> ApiError:
        return ApiError(
            status_code=status.HTTP_404_NOT_FOUND,
            detail=_TENANT_NOT_FOUND,
            code=ErrorCode.TENANT_NOT_FOUND,
        )

    def _record(self, outcome: str) -> None:
        if self._metrics is not None:
            self._metrics.inc_tenant_resolution(outcome=outcome)
