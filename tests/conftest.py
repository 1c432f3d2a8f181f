"""Test fixtures and configuration."""

import json
import time
from collections.abc import Callable
from typing import Any
from unittest.mock import AsyncMock

import jwt as pyjwt
import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwt as jose_jwt

from platform_access.auth.keys import SigningKeyCache
from platform_access.config import Settings
from platform_access.data.memory import InMemoryDataClient
from platform_access.errors import DirectoryError
from platform_access.main import create_app
from platform_access.observability.access_metrics import AccessMetrics
from platform_access.signin.decision import AccountStatus
from platform_access.signin.directory import AccountSecurityState

ISSUER = "https://idp.example.com/us-east-1_pool"
JWKS_URL = f"{ISSUER}/.well-known/jwks.json"
KID = "test-kid"
HOOK_SECRET = "hook-secret-value"
ADMIN_GROUP = "PLATFORM_ADMIN"


class FakeResponse:
    def __init__(self, payload: Any):
        self._payload = payload

    def raise_for_status(self) -> None:
        return None

    def json(self) -> Any:
        return self._payload


class FakeHttpClient:
    """Serves JWKS documents in sequence, repeating the last one."""

    def __init__(self, *jwks_sequence: dict):
        self._jwks_sequence = list(jwks_sequence)
        self.get_calls: list[str] = []

    async def get(self, url: str):
        self.get_calls.append(url)
        index = min(len(self.get_calls), len(self._jwks_sequence)) - 1
        return FakeResponse(self._jwks_sequence[index])


class FakeDirectory:
    """In-memory account directory keyed by account id."""

    def __init__(self) -> None:
        self.accounts: dict[str, AccountSecurityState] = {}
        self.groups: dict[str, list[str]] = {}
        self.error: Exception | None = None
        self.calls: list[tuple[str, str, str]] = []

    def add(
        self,
        account_id: str,
        *,
        status: AccountStatus = AccountStatus.CONFIRMED,
        mfa: frozenset[str] = frozenset(),
        groups: list[str] | None = None,
    ) -> None:
        self.accounts[account_id] = AccountSecurityState(
            account_status=status, enrolled_mfa_methods=mfa
        )
        self.groups[account_id] = groups or []

    async def get_security_state(self, realm_id: str, account_id: str) -> AccountSecurityState:
        self.calls.append(("state", realm_id, account_id))
        if self.error is not None:
            raise self.error
        if account_id not in self.accounts:
            raise DirectoryError(f"unknown account {account_id}")
        return self.accounts[account_id]

    async def list_groups(self, realm_id: str, account_id: str) -> list[str]:
        self.calls.append(("groups", realm_id, account_id))
        if self.error is not None:
            raise self.error
        return self.groups.get(account_id, [])


def make_rsa_keys_and_jwks(*, kid: str = KID) -> tuple[str, dict]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")

    jwk = json.loads(pyjwt.algorithms.RSAAlgorithm.to_jwk(private_key.public_key()))
    jwk["kid"] = kid
    jwk["use"] = "sig"
    jwk["alg"] = "RS256"

    return private_pem, {"keys": [jwk]}


@pytest.fixture(scope="session")
def rsa_keys() -> tuple[str, dict]:
    return make_rsa_keys_and_jwks()


@pytest.fixture
def private_pem(rsa_keys) -> str:
    return rsa_keys[0]


@pytest.fixture
def jwks(rsa_keys) -> dict:
    return rsa_keys[1]


@pytest.fixture
def make_token(private_pem) -> Callable[..., str]:
    """Sign an access token for the test issuer; keyword args override claims."""

    def _make(*, kid: str = KID, key: str | None = None, **overrides: Any) -> str:
        now = int(time.time())
        claims = {
            "iss": ISSUER,
            "sub": "admin-sub-1",
            "token_use": "access",
            "cognito:groups": [ADMIN_GROUP],
            "email": "admin@example.com",
            "iat": now - 10,
            "exp": now + 600,
        }
        claims.update(overrides)
        claims = {k: v for k, v in claims.items() if v is not None}
        return jose_jwt.encode(
            claims, key or private_pem, algorithm="RS256", headers={"kid": kid}
        )

    return _make


@pytest.fixture
def fake_http(jwks) -> FakeHttpClient:
    return FakeHttpClient(jwks)


@pytest.fixture
def key_cache(fake_http) -> SigningKeyCache:
    return SigningKeyCache(JWKS_URL, http_client_provider=AsyncMock(return_value=fake_http))


@pytest.fixture
def test_settings() -> Settings:
    return Settings(
        identity_jwks_url=JWKS_URL,
        platform_admin_group=ADMIN_GROUP,
        hook_shared_secret=HOOK_SECRET,
        data_backend="memory",
    )


@pytest.fixture
def data_client() -> InMemoryDataClient:
    return InMemoryDataClient()


@pytest.fixture
def directory() -> FakeDirectory:
    return FakeDirectory()


@pytest.fixture
def metrics() -> AccessMetrics:
    return AccessMetrics()


@pytest.fixture
def app(test_settings, data_client, key_cache, directory, metrics):
    return create_app(
        config=test_settings,
        data_client=data_client,
        key_cache=key_cache,
        account_directory=directory,
        metrics=metrics,
    )


@pytest.fixture
def client(app) -> TestClient:
    return TestClient(app)


@pytest.fixture
def admin_headers(make_token) -> dict[str, str]:
    return {"Authorization": f"Bearer {make_token()}"}
