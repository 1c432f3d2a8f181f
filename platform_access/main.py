"""
FastAPI application for the Platform Access API.

Tenant resolution and isolation for tenant routes, platform administrator
authorization for admin routes, and the step-up MFA sign-in hook.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from platform_access.auth.authorizer import AdministratorAuthorizer
from platform_access.auth.keys import SigningKeyCache
from platform_access.auth.verifier import IdentityTokenVerifier
from platform_access.config import Settings, settings
from platform_access.data.client import DataClient
from platform_access.data.cosmos import CosmosDataClient
from platform_access.data.memory import InMemoryDataClient
from platform_access.errors import ApiError, internal_error_payload
from platform_access.http_client import close_http_client, configure_http_client
from platform_access.logger import get_logger, setup_logging
from platform_access.middleware.request_context import RequestContextMiddleware
from platform_access.observability.access_metrics import AccessMetrics
from platform_access.routers import admin_api_router, api_router, hooks_api_router
from platform_access.signin.directory import AccountDirectory, KeycloakAccountDirectory
from platform_access.signin.gate import StepUpMfaGate
from platform_access.tenancy.resolver import TenantResolver

logger = get_logger(__name__)


def _build_data_client(config: Settings) -> DataClient:
    if config.data_backend == "cosmos":
        return CosmosDataClient(config)
    if config.data_backend == "memory":
        return InMemoryDataClient()
    raise ValueError(f"Unknown DATA_BACKEND: {config.data_backend!r}")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Application lifespan handler for startup and shutdown."""
    logger.info("Starting up Platform Access API", data_backend=app.state.settings.data_backend)

    yield

    logger.info("Shutting down Platform Access API")
    data_client = app.state.data_client
    if isinstance(data_client, CosmosDataClient):
        await data_client.close()
    await close_http_client()
    logger.info("Platform Access API shutdown complete")


def create_app(
    *,
    config: Settings | None = None,
    data_client: DataClient | None = None,
    key_cache: SigningKeyCache | None = None,
    account_directory: AccountDirectory | None = None,
    metrics: AccessMetrics | None = None,
) -> FastAPI:
    """Create and configure the FastAPI application.

    Any component can be supplied by the caller; the rest are built from `config`.
    """
    config = config or settings
    setup_logging(config)
    configure_http_client(config.http_timeout_seconds)

    app = FastAPI(
        title=config.app_name,
        description="Tenant isolation and platform administrator access control",
        version="0.1.0",
        lifespan=lifespan,
    )

    metrics = metrics or AccessMetrics()
    data_client = data_client or _build_data_client(config)
    key_cache = key_cache or SigningKeyCache(
        config.identity_jwks_url,
        ttl_seconds=config.jwks_cache_ttl_seconds,
        refresh_cooldown_seconds=config.jwks_refresh_cooldown_seconds,
    )
    verifier = IdentityTokenVerifier(key_cache, issuer_provider=config.expected_issuer)
    account_directory = account_directory or KeycloakAccountDirectory(
        config.directory_url,
        client_id=config.directory_client_id,
        client_secret=config.directory_client_secret,
        auth_realm=config.directory_auth_realm,
    )

    app.state.settings = config
    app.state.metrics = metrics
    app.state.data_client = data_client
    app.state.key_cache = key_cache
    app.state.admin_authorizer = AdministratorAuthorizer(
        verifier, admin_group=config.platform_admin_group, metrics=metrics
    )
    app.state.tenant_resolver = TenantResolver(
        data_client,
        slug_header=config.tenant_slug_header,
        reserved_subdomains=config.reserved_subdomains,
        metrics=metrics,
    )
    app.state.signin_gate = StepUpMfaGate(
        account_directory, admin_group=config.platform_admin_group, metrics=metrics
    )

    @app.exception_handler(ApiError)
    async def _api_error_handler(_request: Request, exc: ApiError):
        return JSONResponse(
            status_code=exc.status_code,
            content=exc.to_payload(),
            headers=exc.headers,
        )

    @app.exception_handler(Exception)
    async def _unhandled_error_handler(request: Request, exc: Exception):
        logger.exception(
            "unhandled_error",
            path=request.url.path,
            error_type=type(exc).__name__,
        )
        return JSONResponse(status_code=500, content=internal_error_payload())

    app.add_middleware(RequestContextMiddleware)

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    app.include_router(api_router, prefix="/api/v1")
    app.include_router(admin_api_router, prefix="/api/admin")
    app.include_router(hooks_api_router, prefix="/hooks")

    return app


app = create_app()
