"""Application settings using pydantic-settings."""

from pydantic_settings import BaseSettings, SettingsConfigDict

from platform_access.errors import ConfigurationError

_JWKS_SUFFIX = "/.well-known/jwks.json"


class Settings(BaseSettings):
    """Application configuration loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application settings
    app_name: str = "Platform Access API"
    debug: bool = False
    environment: str = "local"  # local, development, production
    log_format: str = "console"  # console, json

    # Identity provider token verification
    # Blank until configured; verification fails on first use without it.
    identity_jwks_url: str = ""
    identity_issuer: str = ""  # Derived from identity_jwks_url when blank
    jwks_cache_ttl_seconds: int = 0  # 0 keeps the key set for the process lifetime
    jwks_refresh_cooldown_seconds: float = 30.0  # Minimum gap between unknown-kid refreshes
    platform_admin_group: str = "PLATFORM_ADMIN"

    # Tenant resolution
    tenant_slug_header: str = "X-Tenant-Slug"
    reserved_subdomains: list[str] = ["www", "api", "app", "mail", "admin"]

    # Data backend: "memory" for local development and tests, "cosmos" otherwise
    data_backend: str = "memory"
    cosmos_db_endpoint: str = ""
    cosmos_db_key: str = ""  # Optional if using managed identity
    cosmos_db_database_name: str = "platform"
    cosmos_db_container_name: str = "records"

    # Account directory (Keycloak Admin REST API) used by the sign-in hook
    directory_url: str = ""
    directory_auth_realm: str = "master"
    directory_client_id: str = ""
    directory_client_secret: str = ""

    # Shared secret the identity provider presents when calling the sign-in hook
    hook_shared_secret: str = ""

    # Outbound HTTP
    http_timeout_seconds: float = 10.0

    @property
    def use_managed_identity(self) -> bool:
        """Use managed identity for Azure services in non-local environments."""
        return self.environment != "local"

    def require_jwks_url(self) -> str:
        """Return the JWKS URL or fail if it was never configured."""
        if not self.identity_jwks_url:
            raise ConfigurationError("IDENTITY_JWKS_URL must be configured")
        return self.identity_jwks_url

    def expected_issuer(self) -> str:
        """Issuer the identity provider stamps on its tokens.

        Example:
          https://cognito-idp.ca-central-1.amazonaws.com/ca-central-1_abc/.well-known/jwks.json
          -> https://cognito-idp.ca-central-1.amazonaws.com/ca-central-1_abc
        """
        if self.identity_issuer:
            return self.identity_issuer
        jwks_url = self.require_jwks_url()
        if jwks_url.endswith(_JWKS_SUFFIX):
            return jwks_url[: -len(_JWKS_SUFFIX)]
        raise ConfigurationError(
            "IDENTITY_ISSUER must be configured when IDENTITY_JWKS_URL is not a "
            "well-known JWKS location"
        )


settings = Settings()
