"""Platform administrator authorization for the admin API surface."""

import time

from platform_access.auth.models import AdminPrincipal
from platform_access.auth.verifier import IdentityTokenVerifier
from platform_access.errors import (
    ApiError,
    ErrorCode,
    ExpiredTokenError,
    InvalidTokenError,
    forbidden,
    unauthorized,
)
from platform_access.logger import get_logger
from platform_access.observability.access_metrics import AccessMetrics

logger = get_logger(__name__)


class AdministratorAuthorizer:
    """Admits a request only when it carries a valid platform administrator access token.

    Checks run in a fixed order and each failure is distinct:
      1. bearer token present and well-formed          -> 401 UNAUTHORIZED
      2. token verifies (expired is reported apart)     -> 401 TOKEN_EXPIRED / UNAUTHORIZED
      3. token is an access token, not an ID token      -> 401 UNAUTHORIZED
      4. caller belongs to the platform admin group     -> 403 FORBIDDEN
      5. token carries a subject                        -> 401 UNAUTHORIZED
    """

    def __init__(
        self,
        verifier: IdentityTokenVerifier,
        *,
        admin_group: str,
        metrics: AccessMetrics | None = None,
    ) -> None:
        self._verifier = verifier
        self._admin_group = admin_group
        self._metrics = metrics

    async def authorize(self, authorization: str | None) -> AdminPrincipal:
        start = time.perf_counter()
        try:
            principal = await self._authorize(authorization)
        except ApiError as exc:
            self._record(exc.code.value, start)
            logger.warning("admin_auth_failed", code=exc.code.value, error=str(exc.detail))
            raise
        self._record("allowed", start)
        logger.info("admin_auth_success", subject=principal.subject)
        return principal

    async def _authorize(self, authorization: str | None) -> AdminPrincipal:
        token = self._extract_bearer_token(authorization)

        try:
            claims = await self._verifier.verify(token)
        except ExpiredTokenError as exc:
            raise unauthorized("Token has expired", ErrorCode.TOKEN_EXPIRED) from exc
        except InvalidTokenError as exc:
            raise unauthorized("Invalid or unverifiable token") from exc

        # ID tokens describe the user to the client app; they are never API credentials.
        if not claims.is_access_token:
            raise unauthorized("Invalid token: access token required")

        if not claims.is_member_of(self._admin_group):
            raise forbidden("Forbidden: platform administrator access required")

        if not claims.subject:
            raise unauthorized("Invalid token: missing subject claim")

        return AdminPrincipal(subject=claims.subject, email=claims.email or "")

    @staticmethod
    def _extract_bearer_token(authorization: str | None) -> str:
        if not authorization:
            raise unauthorized("Missing or malformed Authorization header")

        parts = authorization.split()
        if len(parts) != 2 or parts[0].lower() != "bearer":
            raise unauthorized("Missing or malformed Authorization header")
        return parts[1]

    def _record(self, outcome: str, start: float) -> None:
        if self._metrics is None:
            return
        duration_ms = (time.perf_counter() - start) * 1000
        self._metrics.inc_admin_auth(outcome=outcome)
        self._metrics.observe_admin_auth_duration_ms(outcome=outcome, duration_ms=duration_ms)
