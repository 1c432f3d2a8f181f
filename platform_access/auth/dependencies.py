"""FastAPI dependencies for administrator authentication."""

from typing import Annotated

import structlog
from fastapi import Depends, Request

from platform_access.auth.authorizer import AdministratorAuthorizer
from platform_access.auth.models import AdminPrincipal


def get_admin_authorizer(request: Request) -> AdministratorAuthorizer:
    """Return the authorizer constructed by the application factory."""
    return request.app.state.admin_authorizer


async def require_platform_admin(
    request: Request,
    authorizer: Annotated[AdministratorAuthorizer, Depends(get_admin_authorizer)],
) -> AdminPrincipal:
    """Authorize the caller as a platform administrator.

    On success the principal is published on `request.state.admin`; handlers attribute
    actions to `principal.subject`, never to the display-only email.
    """
    principal = await authorizer.authorize(request.headers.get("Authorization"))
    request.state.admin = principal
    structlog.contextvars.bind_contextvars(admin_subject=principal.subject)
    return principal


RequirePlatformAdmin = Depends(require_platform_admin)
