"""Main API routers."""

from fastapi import APIRouter

from platform_access.routers.admin import router as admin_router
from platform_access.routers.hooks import router as hooks_router
from platform_access.routers.metrics import router as metrics_router
from platform_access.routers.tenant import router as tenant_router

api_router = APIRouter()
api_router.include_router(tenant_router, prefix="/tenant", tags=["tenant"])
api_router.include_router(metrics_router, prefix="/access", tags=["observability"])

admin_api_router = APIRouter()
admin_api_router.include_router(admin_router, tags=["admin"])

hooks_api_router = APIRouter()
hooks_api_router.include_router(hooks_router, tags=["hooks"])
