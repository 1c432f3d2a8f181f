"""
Process-wide outbound HTTP client.

JWKS downloads and account directory calls share one pooled
httpx.AsyncClient. It is built on first use and torn down by the
application lifespan.
"""

from __future__ import annotations

import httpx

from platform_access.config import settings
from platform_access.logger import get_logger

logger = get_logger(__name__)

_POOL = httpx.Limits(max_connections=50, max_keepalive_connections=10, keepalive_expiry=30.0)

_client: httpx.AsyncClient | None = None
_timeout_seconds: float = settings.http_timeout_seconds


def configure_http_client(timeout_seconds: float) -> None:
    """Set the timeout used when the shared client is next opened."""
    global _timeout_seconds
    _timeout_seconds = timeout_seconds


async def get_http_client() -> httpx.AsyncClient:
    """Return the shared client, opening a new one if none is usable."""
    global _client
    if _client is None or _client.is_closed:
        _client = httpx.AsyncClient(
            timeout=httpx.Timeout(_timeout_seconds, connect=5.0), limits=_POOL
        )
        logger.info(
            "outbound_client_opened",
            pool_size=_POOL.max_connections,
            timeout_seconds=_timeout_seconds,
        )
    return _client


async def close_http_client() -> None:
    """Close the shared client; the next get_http_client() call opens a fresh one."""
    global _client
    client, _client = _client, None
    if client is not None and not client.is_closed:
        await client.aclose()
        logger.info("outbound_client_closed")
