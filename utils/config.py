"""
Service Configuration

This module loads the gateway configuration from environment variables once
at process start. The resulting AppConfig is immutable and is passed into the
collaborator constructors by create_app(); nothing in the pipeline reads the
environment directly.

Environment Variables:
    KEYCLOAK_AUTH_SERVER_URL: Identity provider base URL
    KEYCLOAK_REALM: Realm the tokens are issued by
    KEYCLOAK_CLIENT_ID: Client identifier of this service
    KEYCLOAK_PUBLIC: Whether the client is public (default: true)
    KEYCLOAK_CLIENT_SECRET: Client secret, only for confidential clients
    CACHE_STORE: Token cache backend, 'memory' or 'redis' (default: memory)
    CACHE_TTL: Token cache time-to-live in seconds (default: 1800)
    REDIS_URL: Redis connection URL for the redis cache store
    CONTENT_SERVICE_BASE_URL: Base URL of the upstream content API
    CONTENT_SERVICE_API_KEY: Optional API key for the upstream content API
    UPSTREAM_TIMEOUT_SECONDS: Timeout for identity and content calls (default: 10)
    LOG_LEVEL: Root log level (default: INFO)
"""

import os
import logging
from dataclasses import dataclass, field
from typing import Optional

logger = logging.getLogger(__name__)

DEFAULT_AUTH_SERVER_URL = "https://staging.open-sunbird.org/auth"
DEFAULT_REALM = "sunbird"
DEFAULT_CLIENT_ID = "portal"
DEFAULT_CACHE_STORE = "memory"
DEFAULT_CACHE_TTL = 1800
DEFAULT_REDIS_URL = "redis://localhost:6379"
DEFAULT_CONTENT_SERVICE_URL = "http://localhost:8080"
DEFAULT_UPSTREAM_TIMEOUT = 10.0
DEFAULT_LOG_LEVEL = "INFO"

CACHE_STORES = {"memory", "redis"}
LOG_LEVELS = {"CRITICAL", "ERROR", "WARNING", "INFO", "DEBUG"}


@dataclass(frozen=True)
class KeycloakConfig:
    """
    Identity provider settings.

    Attributes:
        auth_server_url: Base URL of the Keycloak server (without /realms)
        realm: Realm name
        client_id: Client identifier registered for this service
        public: True for public clients (userinfo), False for confidential
            clients (token introspection with client credentials)
        client_secret: Client secret for confidential clients
    """
    auth_server_url: str = DEFAULT_AUTH_SERVER_URL
    realm: str = DEFAULT_REALM
    client_id: str = DEFAULT_CLIENT_ID
    public: bool = True
    client_secret: Optional[str] = None

    @property
    def realm_url(self) -> str:
        return f"{self.auth_server_url.rstrip('/')}/realms/{self.realm}"

    @property
    def userinfo_url(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/userinfo"

    @property
    def introspection_url(self) -> str:
        return f"{self.realm_url}/protocol/openid-connect/token/introspect"


@dataclass(frozen=True)
class CacheConfig:
    """Token cache settings used by the identity validator."""
    store: str = DEFAULT_CACHE_STORE
    ttl: int = DEFAULT_CACHE_TTL
    redis_url: str = DEFAULT_REDIS_URL


@dataclass(frozen=True)
class ContentServiceConfig:
    """Upstream content API settings."""
    base_url: str = DEFAULT_CONTENT_SERVICE_URL
    api_key: Optional[str] = None


@dataclass(frozen=True)
class AppConfig:
    keycloak: KeycloakConfig = field(default_factory=KeycloakConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    content_service: ContentServiceConfig = field(default_factory=ContentServiceConfig)
    upstream_timeout: float = DEFAULT_UPSTREAM_TIMEOUT
    log_level: str = DEFAULT_LOG_LEVEL


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default

    value = raw.strip().lower()
    if value in ("true", "1", "yes", "on"):
        return True
    if value in ("false", "0", "no", "off"):
        return False

    logger.warning(f"Invalid boolean for {name}: {raw!r}. Using default {default}")
    return default


def _env_number(name: str, default, cast):
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default

    try:
        value = cast(raw)
    except ValueError:
        logger.warning(f"Invalid value for {name}: {raw!r}. Using default {default}")
        return default

    if value <= 0:
        logger.warning(f"Non-positive value for {name}: {raw!r}. Using default {default}")
        return default

    return value


def load_config() -> AppConfig:
    """
    Build the AppConfig from environment variables.

    Absent or malformed values fall back to the module defaults. Call this
    once at startup and share the result.

    Returns:
        AppConfig with all sections populated
    """
    cache_store = os.getenv("CACHE_STORE", DEFAULT_CACHE_STORE).strip().lower()
    if cache_store not in CACHE_STORES:
        logger.warning(
            f"Unknown CACHE_STORE {cache_store!r}, expected one of {sorted(CACHE_STORES)}. "
            f"Using {DEFAULT_CACHE_STORE}"
        )
        cache_store = DEFAULT_CACHE_STORE

    log_level = os.getenv("LOG_LEVEL", DEFAULT_LOG_LEVEL).strip().upper()
    if log_level not in LOG_LEVELS:
        logger.warning(f"Unknown LOG_LEVEL {log_level!r}. Using {DEFAULT_LOG_LEVEL}")
        log_level = DEFAULT_LOG_LEVEL

    config = AppConfig(
        keycloak=KeycloakConfig(
            auth_server_url=os.getenv("KEYCLOAK_AUTH_SERVER_URL", DEFAULT_AUTH_SERVER_URL),
            realm=os.getenv("KEYCLOAK_REALM", DEFAULT_REALM),
            client_id=os.getenv("KEYCLOAK_CLIENT_ID", DEFAULT_CLIENT_ID),
            public=_env_bool("KEYCLOAK_PUBLIC", True),
            client_secret=os.getenv("KEYCLOAK_CLIENT_SECRET") or None,
        ),
        cache=CacheConfig(
            store=cache_store,
            ttl=_env_number("CACHE_TTL", DEFAULT_CACHE_TTL, int),
            redis_url=os.getenv("REDIS_URL", DEFAULT_REDIS_URL),
        ),
        content_service=ContentServiceConfig(
            base_url=os.getenv("CONTENT_SERVICE_BASE_URL", DEFAULT_CONTENT_SERVICE_URL),
            api_key=os.getenv("CONTENT_SERVICE_API_KEY") or None,
        ),
        upstream_timeout=_env_number("UPSTREAM_TIMEOUT_SECONDS", DEFAULT_UPSTREAM_TIMEOUT, float),
        log_level=log_level,
    )

    if not config.keycloak.public and not config.keycloak.client_secret:
        logger.warning(
            "KEYCLOAK_PUBLIC is false but KEYCLOAK_CLIENT_SECRET is not set. "
            "Token introspection will be rejected by the identity provider"
        )

    return config
