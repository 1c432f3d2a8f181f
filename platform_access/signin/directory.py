"""
Account directory lookups used by the sign-in gate.

The production directory is Keycloak, queried through its Admin REST API with a
service-account token obtained via the client-credentials grant.
"""

from __future__ import annotations

import time
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from typing import Any, Protocol

import httpx

from platform_access.auth.role_mapping import normalize_group_memberships
from platform_access.errors import ConfigurationError, DirectoryError
from platform_access.http_client import get_http_client
from platform_access.logger import get_logger
from platform_access.signin.decision import AccountStatus

logger = get_logger(__name__)

HttpClientProvider = Callable[[], Awaitable[httpx.AsyncClient]]

MFA_CREDENTIAL_TYPES = frozenset({"otp", "webauthn"})
_TOKEN_EXPIRY_MARGIN_SECONDS = 30


@dataclass(frozen=True)
class AccountSecurityState:
    account_status: AccountStatus
    enrolled_mfa_methods: frozenset[str]


class AccountDirectory(Protocol):
    async def get_security_state(self, realm_id: str, account_id: str) -> AccountSecurityState: ...

    async def list_groups(self, realm_id: str, account_id: str) -> list[str]: ...


class KeycloakAccountDirectory:
    """Reads account status, MFA enrollment and group membership from Keycloak."""

    def __init__(
        self,
        base_url: str,
        *,
        client_id: str,
        client_secret: str,
        auth_realm: str = "master",
        http_client_provider: HttpClientProvider = get_http_client,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._client_id = client_id
        self._client_secret = client_secret
        self._auth_realm = auth_realm
        self._get_client = http_client_provider
        self._access_token: str | None = None
        self._token_expires_at: float = 0.0

    def _require_config(self) -> None:
        if not self._base_url or not self._client_id or not self._client_secret:
            raise ConfigurationError(
                "DIRECTORY_URL, DIRECTORY_CLIENT_ID and DIRECTORY_CLIENT_SECRET must be configured"
            )

    async def _service_token(self) -> str:
        if self._access_token and time.monotonic() < self._token_expires_at:
            return self._access_token

        url = f"{self._base_url}/realms/{self._auth_realm}/protocol/openid-connect/token"
        payload = await self._request(
            "POST",
            url,
            data={
                "grant_type": "client_credentials",
                "client_id": self._client_id,
                "client_secret": self._client_secret,
            },
        )
        token = payload.get("access_token") if isinstance(payload, dict) else None
        if not token:
            raise DirectoryError("Directory token response did not include an access token")

        expires_in = int(payload.get("expires_in", 60))
        self._access_token = token
        lifetime = max(expires_in - _TOKEN_EXPIRY_MARGIN_SECONDS, 0)
        self._token_expires_at = time.monotonic() + lifetime
        return token

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        try:
            client = await self._get_client()
            response = await client.request(method, url, **kwargs)
            response.raise_for_status()
            return response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error(
                "directory_request_failed",
                method=method,
                url=url,
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise DirectoryError(f"Directory request failed: {method} {url}") from exc

    async def _admin_get(self, realm_id: str, path: str) -> Any:
        self._require_config()
        token = await self._service_token()
        url = f"{self._base_url}/admin/realms/{realm_id}{path}"
        return await self._request("GET", url, headers={"Authorization": f"Bearer {token}"})

    async def get_security_state(self, realm_id: str, account_id: str) -> AccountSecurityState:
        user = await self._admin_get(realm_id, f"/users/{account_id}")
        credentials = await self._admin_get(realm_id, f"/users/{account_id}/credentials")
        if not isinstance(user, dict) or not isinstance(credentials, list):
            raise DirectoryError("Directory returned an unexpected account document")

        return AccountSecurityState(
            account_status=_account_status(user),
            enrolled_mfa_methods=frozenset(
                c["type"]
                for c in credentials
                if isinstance(c, dict) and c.get("type") in MFA_CREDENTIAL_TYPES
            ),
        )

    async def list_groups(self, realm_id: str, account_id: str) -> list[str]:
        groups = await self._admin_get(realm_id, f"/users/{account_id}/groups")
        if not isinstance(groups, list):
            raise DirectoryError("Directory returned an unexpected group listing")
        names = [g.get("name") for g in groups if isinstance(g, dict)]
        return normalize_group_memberships({"groups": [n for n in names if n]})


def _account_status(user: dict[str, Any]) -> AccountStatus:
    if "UPDATE_PASSWORD" in (user.get("requiredActions") or []):
        return AccountStatus.FORCE_CHANGE_PASSWORD
    if user.get("enabled") is False:
        return AccountStatus.DISABLED
    return AccountStatus.CONFIRMED
