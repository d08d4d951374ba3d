"""
Identity Validator

Exchanges a bearer token for a caller identity against the Keycloak realm
configured for this service.

Validation steps:
1. Offline pre-check: the token must decode as a JWT and must not be past
   its exp claim (signature is verified by the identity provider, not here)
2. Token cache lookup
3. Identity provider call:
   - public clients: OpenID Connect userinfo endpoint with the bearer token
   - confidential clients: token introspection with client credentials
4. Cache the resolved caller id for CACHE_TTL, never beyond the token's exp

Security:
- Never logs tokens
- Any failure, including transport errors and timeouts, raises
  TokenValidationError; callers treat every failure as an invalid token
"""

import time
import logging
from typing import Optional, Protocol

import httpx
import jwt
from jwt.exceptions import InvalidTokenError

from services.token_cache import MemoryTokenCache, TokenCache
from utils.config import KeycloakConfig

logger = logging.getLogger(__name__)

# Clock skew tolerance in seconds (for exp validation)
CLOCK_SKEW_LEEWAY = 30


class TokenValidationError(Exception):
    """
    Raised when a token cannot be exchanged for an identity.

    Attributes:
        message: Human-readable error description
        code: Machine-readable error code for logging
    """
    def __init__(self, message: str, code: str = "TOKEN_INVALID"):
        self.message = message
        self.code = code
        super().__init__(message)


class IdentityValidator(Protocol):
    async def validate(self, token: str) -> str:
        """Return the caller id for a valid token or raise TokenValidationError."""
        ...


def decode_unverified_claims(token: str, now: Optional[float] = None) -> dict:
    """
    Decode a JWT without verifying its signature and check its expiry.

    Args:
        token: The raw bearer token
        now: Current unix time, defaults to time.time()

    Returns:
        The token's claims

    Raises:
        TokenValidationError: If the token is malformed or expired
    """
    try:
        claims = jwt.decode(token, options={"verify_signature": False})
    except InvalidTokenError as e:
        logger.warning(f"Token pre-check failed: {type(e).__name__}")
        raise TokenValidationError("Malformed token", code="TOKEN_MALFORMED")

    exp = claims.get("exp")
    if exp is not None:
        current = time.time() if now is None else now
        if not isinstance(exp, (int, float)) or exp + CLOCK_SKEW_LEEWAY <= current:
            logger.warning("Token has expired")
            raise TokenValidationError("Token has expired", code="TOKEN_EXPIRED")

    return claims


class KeycloakTokenValidator:
    """
    Validates bearer tokens against a Keycloak realm.

    The httpx client is created once and reused for every request; pass one
    in to share a connection pool or to use a mock transport in tests.
    """

    def __init__(
        self,
        config: KeycloakConfig,
        cache: Optional[TokenCache] = None,
        cache_ttl: int = 1800,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.cache = cache if cache is not None else MemoryTokenCache()
        self.cache_ttl = cache_ttl
        self.http_client = http_client or httpx.AsyncClient(timeout=timeout)

        logger.info(
            f"KeycloakTokenValidator initialized: realm_url={config.realm_url}, "
            f"client_id={config.client_id}, public={config.public}"
        )

    async def validate(self, token: str) -> str:
        claims = decode_unverified_claims(token)

        cached = await self.cache.get(token)
        if cached:
            logger.debug("Token validated from cache")
            return cached

        if self.config.public:
            caller_id = await self._userinfo(token)
        else:
            caller_id = await self._introspect(token)

        await self.cache.set(token, caller_id, self._cache_ttl_for(claims))
        return caller_id

    def _cache_ttl_for(self, claims: dict) -> int:
        exp = claims.get("exp")
        if exp is None:
            return self.cache_ttl
        return max(0, min(self.cache_ttl, int(exp - time.time())))

    async def _userinfo(self, token: str) -> str:
        try:
            response = await self.http_client.get(
                self.config.userinfo_url,
                headers={"Authorization": f"Bearer {token}"},
            )
        except httpx.HTTPError as e:
            logger.error(f"Identity provider unreachable: {type(e).__name__}: {e}")
            raise TokenValidationError("Identity provider unavailable", code="IDP_UNAVAILABLE")

        if response.status_code != 200:
            logger.warning(f"Userinfo rejected token: status={response.status_code}")
            raise TokenValidationError("Token rejected by identity provider")

        return self._subject(response)

    async def _introspect(self, token: str) -> str:
        try:
            response = await self.http_client.post(
                self.config.introspection_url,
                data={
                    "token": token,
                    "client_id": self.config.client_id,
                    "client_secret": self.config.client_secret or "",
                },
            )
        except httpx.HTTPError as e:
            logger.error(f"Identity provider unreachable: {type(e).__name__}: {e}")
            raise TokenValidationError("Identity provider unavailable", code="IDP_UNAVAILABLE")

        if response.status_code != 200:
            logger.warning(f"Token introspection failed: status={response.status_code}")
            raise TokenValidationError("Token introspection failed")

        payload = self._json(response)
        if payload.get("active") is not True:
            logger.warning("Token introspection reported inactive token")
            raise TokenValidationError("Token is not active", code="TOKEN_INACTIVE")

        return self._subject(response, payload)

    def _subject(self, response: httpx.Response, payload: Optional[dict] = None) -> str:
        payload = payload if payload is not None else self._json(response)
        subject = payload.get("sub")
        if not subject or not isinstance(subject, str):
            logger.warning("Identity provider response missing sub claim")
            raise TokenValidationError("Missing subject", code="TOKEN_MISSING_SUBJECT")
        return subject

    @staticmethod
    def _json(response: httpx.Response) -> dict:
        try:
            payload = response.json()
        except ValueError:
            raise TokenValidationError("Malformed identity provider response", code="IDP_BAD_RESPONSE")
        if not isinstance(payload, dict):
            raise TokenValidationError("Malformed identity provider response", code="IDP_BAD_RESPONSE")
        return payload

    async def close(self) -> None:
        await self.http_client.aclose()
