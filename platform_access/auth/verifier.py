"""Identity token verification against the cached signing key set."""

from collections.abc import Callable

from jose import ExpiredSignatureError, JWTError, jwt
from pydantic import ValidationError

from platform_access.auth.keys import SigningKeyCache
from platform_access.auth.models import IdentityClaimSet
from platform_access.errors import (
    ConfigurationError,
    ExpiredTokenError,
    InvalidTokenError,
    SigningKeyError,
)
from platform_access.logger import get_logger

logger = get_logger(__name__)

ALLOWED_ALGORITHMS: tuple[str, ...] = ("RS256",)


class IdentityTokenVerifier:
    """Verifies signature, algorithm, issuer and expiry of bearer tokens.

    Expiry is reported separately (`ExpiredTokenError`) because the caller can recover
    by signing in again; every other defect is an `InvalidTokenError`. Exception
    messages are for logs only and never reach an API response.
    """

    def __init__(
        self,
        key_cache: SigningKeyCache,
        *,
        issuer_provider: Callable[[], str],
    ) -> None:
        self._key_cache = key_cache
        self._issuer_provider = issuer_provider

    async def verify(self, token: str, expected_issuer: str | None = None) -> IdentityClaimSet:
        """Verify a compact JWS and return its claim set."""
        try:
            header = jwt.get_unverified_header(token)
        except JWTError as exc:
            logger.info("token_rejected", reason="malformed", error_type=type(exc).__name__)
            raise InvalidTokenError("Token is malformed") from exc

        kid = header.get("kid")
        if not kid:
            logger.info("token_rejected", reason="missing_kid")
            raise InvalidTokenError("Token missing key ID")

        if header.get("alg") not in ALLOWED_ALGORITHMS:
            logger.info("token_rejected", reason="algorithm_not_allowed", alg=header.get("alg"))
            raise InvalidTokenError("Token algorithm is not allowed")

        try:
            issuer = expected_issuer or self._issuer_provider()
            signing_key = await self._key_cache.get_signing_key(str(kid))
        except (SigningKeyError, ConfigurationError) as exc:
            # Infrastructure failure: fail closed, detail stays in the log.
            logger.error(
                "token_verification_unavailable",
                kid=str(kid),
                error_type=type(exc).__name__,
                error=str(exc),
            )
            raise InvalidTokenError("Unable to verify token signature") from exc

        try:
            payload = jwt.decode(
                token,
                signing_key,
                algorithms=list(ALLOWED_ALGORITHMS),
                issuer=issuer,
                # Access tokens carry client_id rather than aud.
                options={"verify_aud": False, "verify_exp": True},
            )
        except ExpiredSignatureError as exc:
            logger.info("token_rejected", reason="expired", kid=str(kid))
            raise ExpiredTokenError("Token has expired") from exc
        except JWTError as exc:
            logger.info(
                "token_rejected", reason="verification_failed", error_type=type(exc).__name__
            )
            raise InvalidTokenError("Token verification failed") from exc

        try:
            return IdentityClaimSet.from_claims(payload)
        except ValidationError as exc:
            logger.info("token_rejected", reason="malformed_claims")
            raise InvalidTokenError("Token claims are malformed") from exc
