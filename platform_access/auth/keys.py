"""Signing key cache for identity token verification."""

from __future__ import annotations

import asyncio
import time
from collections.abc import Awaitable, Callable
from typing import Any

import httpx

from platform_access.errors import ConfigurationError, SigningKeyError
from platform_access.http_client import get_http_client
from platform_access.logger import get_logger

logger = get_logger(__name__)

HttpClientProvider = Callable[[], Awaitable[httpx.AsyncClient]]


class SigningKeyCache:
    """Fetches and caches the identity provider's JWKS document.

    One instance is constructed per application and handed to the token verifier.
    The key set is fetched on first use and kept for the process lifetime unless a
    TTL is configured. An unknown key id triggers exactly one refresh before the
    lookup fails, which covers key rotation. Forced refreshes are rate limited: within
    `refresh_cooldown_seconds` of the last one, an unknown key id fails without a fetch.
    """

    def __init__(
        self,
        jwks_url: str,
        *,
        http_client_provider: HttpClientProvider = get_http_client,
        ttl_seconds: int = 0,
        refresh_cooldown_seconds: float = 30.0,
    ) -> None:
        self._jwks_url = jwks_url
        self._get_client = http_client_provider
        self._ttl_seconds = ttl_seconds
        self._key_set: dict[str, Any] | None = None
        self._fetched_at: float = 0.0
        self._refresh_cooldown_seconds = refresh_cooldown_seconds
        self._last_forced_refresh: float | None = None
        # Only collapses concurrent fetches; callers racing past it still get a valid set.
        self._lock = asyncio.Lock()

    @property
    def jwks_url(self) -> str:
        if not self._jwks_url:
            raise ConfigurationError("IDENTITY_JWKS_URL must be configured")
        return self._jwks_url

    def _is_fresh(self) -> bool:
        if self._key_set is None:
            return False
        if self._ttl_seconds <= 0:
            return True
        return (time.monotonic() - self._fetched_at) < self._ttl_seconds

    async def get_key_set(self, *, force_refresh: bool = False) -> dict[str, Any]:
        """Return the cached key set, fetching it when absent, stale, or forced."""
        if not force_refresh and self._is_fresh():
            return self._key_set  # type: ignore[return-value]

        seen_fetch = self._fetched_at
        async with self._lock:
            # Another caller refreshed while we waited.
            if self._fetched_at != seen_fetch and self._key_set is not None:
                return self._key_set
            if not force_refresh and self._is_fresh():
                return self._key_set  # type: ignore[return-value]

            key_set = await self._fetch()
            self._key_set = key_set
            self._fetched_at = time.monotonic()
            logger.debug(
                "jwks_cache_refreshed",
                forced=force_refresh,
                keys_count=len(key_set["keys"]),
            )
            return key_set

    async def get_signing_key(self, kid: str) -> dict[str, Any]:
        """Return the JWK whose `kid` matches, refreshing once on a miss."""
        key = self._find(await self.get_key_set(), kid)
        if key is not None:
            return key

        if self._in_refresh_cooldown():
            # Wait out a refresh in flight and look again, without fetching.
            async with self._lock:
                key = self._find(self._key_set or {"keys": []}, kid)
            if key is not None:
                return key
            logger.warning("jwks_key_not_found_refresh_suppressed", kid=kid)
            raise SigningKeyError(f"No signing key matches kid {kid!r}")

        logger.info("jwks_key_not_found_refreshing", kid=kid)
        self._last_forced_refresh = time.monotonic()
        key = self._find(await self.get_key_set(force_refresh=True), kid)
        if key is not None:
            return key

        logger.warning("jwks_key_not_found_after_refresh", kid=kid)
        raise SigningKeyError(f"No signing key matches kid {kid!r}")

    def _in_refresh_cooldown(self) -> bool:
        if self._last_forced_refresh is None:
            return False
        return (time.monotonic() - self._last_forced_refresh) < self._refresh_cooldown_seconds

    @staticmethod
    def _find(key_set: dict[str, Any], kid: str) -> dict[str, Any] | None:
        for key_data in key_set["keys"]:
            if key_data.get("kid") == kid:
                return key_data
        return None

    async def _fetch(self) -> dict[str, Any]:
        url = self.jwks_url
        try:
            client = await self._get_client()
            response = await client.get(url)
            response.raise_for_status()
            document = response.json()
        except (httpx.HTTPError, ValueError) as exc:
            logger.error("jwks_fetch_failed", url=url, error_type=type(exc).__name__)
            raise SigningKeyError("Unable to fetch signing keys") from exc

        keys = document.get("keys") if isinstance(document, dict) else None
        if not isinstance(keys, list) or not all(isinstance(k, dict) for k in keys):
            logger.error("jwks_malformed", url=url)
            raise SigningKeyError("Signing key document is malformed")
        return {"keys": keys}
