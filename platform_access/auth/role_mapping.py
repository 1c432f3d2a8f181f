"""Group membership extraction and normalization.

This module provides a single group list regardless of how the identity provider
lays the claim out.
"""

from __future__ import annotations

from typing import Any


def _as_list(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, list):
        return [str(v) for v in value if v is not None]
    return []


def normalize_group_memberships(payload: dict[str, Any]) -> list[str]:
    """Extract group memberships from a verified token payload.

    Supports common layouts:
    - `cognito:groups` (Cognito user pools)
    - `groups` (Keycloak group mapper, generic OIDC)
    - `realm_access.roles` (Keycloak realm roles)
    """

    groups: list[str] = []

    groups.extend(_as_list(payload.get("cognito:groups")))
    groups.extend(_as_list(payload.get("groups")))

    realm_access = payload.get("realm_access")
    if isinstance(realm_access, dict):
        groups.extend(_as_list(realm_access.get("roles")))

    # Keycloak group paths look like "/PLATFORM_ADMIN"
    seen: set[str] = set()
    normalized: list[str] = []
    for group in groups:
        group = group.lstrip("/")
        if not group or group in seen:
            continue
        seen.add(group)
        normalized.append(group)

    return normalized
