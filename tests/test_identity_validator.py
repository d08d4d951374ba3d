"""Tests for the Keycloak identity validator and the token caches."""

import time
import pytest
import httpx
import jwt as pyjwt
import fakeredis.aioredis
import redis.asyncio as redis
from unittest.mock import AsyncMock

from services.identity_validator import (
    KeycloakTokenValidator,
    TokenValidationError,
    decode_unverified_claims,
)
from services.token_cache import MemoryTokenCache, RedisTokenCache, build_token_cache, token_cache_key
from utils.config import CacheConfig, KeycloakConfig

AUTH_URL = "https://idp.example.org/auth"


def generate_test_token(sub: str = "user-A", exp_offset: int = 300, **claims) -> str:
    """Generate a signed test token with configurable claims."""
    now = int(time.time())
    payload = {"sub": sub, "iat": now, "exp": now + exp_offset, **claims}
    return pyjwt.encode(payload, "test-signing-key-that-is-long-enough-for-hs256", algorithm="HS256")


def keycloak_config(public: bool = True) -> KeycloakConfig:
    return KeycloakConfig(
        auth_server_url=AUTH_URL,
        realm="sunbird",
        client_id="portal",
        public=public,
        client_secret=None if public else "s3cret",
    )


def mock_idp(handler):
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


class TestUnverifiedPreCheck:

    def test_valid_token_claims_returned(self):
        claims = decode_unverified_claims(generate_test_token(sub="user-X"))

        assert claims["sub"] == "user-X"

    def test_malformed_token_rejected(self):
        with pytest.raises(TokenValidationError) as exc_info:
            decode_unverified_claims("not-a-jwt")

        assert exc_info.value.code == "TOKEN_MALFORMED"

    def test_expired_token_rejected(self):
        with pytest.raises(TokenValidationError) as exc_info:
            decode_unverified_claims(generate_test_token(exp_offset=-600))

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_expiry_within_leeway_accepted(self):
        decode_unverified_claims(generate_test_token(exp_offset=-5))


class TestPublicClientValidation:

    @pytest.mark.asyncio
    async def test_userinfo_subject_returned(self):
        token = generate_test_token()
        seen = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"sub": "user-A", "email": "a@example.org"})

        validator = KeycloakTokenValidator(keycloak_config(), http_client=mock_idp(handler))

        assert await validator.validate(token) == "user-A"
        assert str(seen[0].url) == f"{AUTH_URL}/realms/sunbird/protocol/openid-connect/userinfo"
        assert seen[0].headers["Authorization"] == f"Bearer {token}"

    @pytest.mark.asyncio
    async def test_rejected_token_raises(self):
        validator = KeycloakTokenValidator(
            keycloak_config(),
            http_client=mock_idp(lambda request: httpx.Response(401, json={"error": "invalid_token"})),
        )

        with pytest.raises(TokenValidationError):
            await validator.validate(generate_test_token())

    @pytest.mark.asyncio
    async def test_transport_error_raises(self):
        def handler(request):
            raise httpx.ConnectError("connection refused")

        validator = KeycloakTokenValidator(keycloak_config(), http_client=mock_idp(handler))

        with pytest.raises(TokenValidationError) as exc_info:
            await validator.validate(generate_test_token())

        assert exc_info.value.code == "IDP_UNAVAILABLE"

    @pytest.mark.asyncio
    async def test_response_without_sub_raises(self):
        validator = KeycloakTokenValidator(
            keycloak_config(),
            http_client=mock_idp(lambda request: httpx.Response(200, json={"email": "a@example.org"})),
        )

        with pytest.raises(TokenValidationError) as exc_info:
            await validator.validate(generate_test_token())

        assert exc_info.value.code == "TOKEN_MISSING_SUBJECT"

    @pytest.mark.asyncio
    async def test_malformed_token_skips_network(self):
        calls = []
        validator = KeycloakTokenValidator(
            keycloak_config(),
            http_client=mock_idp(lambda request: calls.append(request) or httpx.Response(200, json={"sub": "x"})),
        )

        with pytest.raises(TokenValidationError):
            await validator.validate("garbage")

        assert calls == []

    @pytest.mark.asyncio
    async def test_validated_token_cached(self):
        calls = []

        def handler(request):
            calls.append(request)
            return httpx.Response(200, json={"sub": "user-A"})

        validator = KeycloakTokenValidator(keycloak_config(), cache=MemoryTokenCache(), http_client=mock_idp(handler))
        token = generate_test_token()

        assert await validator.validate(token) == "user-A"
        assert await validator.validate(token) == "user-A"
        assert len(calls) == 1

    @pytest.mark.asyncio
    async def test_failed_validation_not_cached(self):
        responses = [httpx.Response(401), httpx.Response(200, json={"sub": "user-A"})]
        validator = KeycloakTokenValidator(
            keycloak_config(),
            http_client=mock_idp(lambda request: responses.pop(0)),
        )
        token = generate_test_token()

        with pytest.raises(TokenValidationError):
            await validator.validate(token)
        assert await validator.validate(token) == "user-A"


class TestConfidentialClientValidation:

    @pytest.mark.asyncio
    async def test_active_token_introspected(self):
        seen = []

        def handler(request):
            seen.append(request)
            return httpx.Response(200, json={"active": True, "sub": "user-C"})

        validator = KeycloakTokenValidator(keycloak_config(public=False), http_client=mock_idp(handler))

        assert await validator.validate(generate_test_token()) == "user-C"
        assert seen[0].method == "POST"
        assert str(seen[0].url).endswith("/protocol/openid-connect/token/introspect")
        assert b"client_id=portal" in seen[0].content

    @pytest.mark.asyncio
    async def test_inactive_token_rejected(self):
        validator = KeycloakTokenValidator(
            keycloak_config(public=False),
            http_client=mock_idp(lambda request: httpx.Response(200, json={"active": False})),
        )

        with pytest.raises(TokenValidationError) as exc_info:
            await validator.validate(generate_test_token())

        assert exc_info.value.code == "TOKEN_INACTIVE"


class TestTokenCaches:

    @pytest.mark.asyncio
    async def test_memory_cache_expires_entries(self):
        now = [1000.0]
        cache = MemoryTokenCache(clock=lambda: now[0])

        await cache.set("tok", "user-A", ttl=10)
        assert await cache.get("tok") == "user-A"

        now[0] += 11
        assert await cache.get("tok") is None

    @pytest.mark.asyncio
    async def test_memory_cache_sweeps_expired_entries_on_write(self):
        now = [0.0]
        cache = MemoryTokenCache(clock=lambda: now[0])

        for i in range(1000):
            await cache.set(f"tok-{i}", "user-A", ttl=10)
        assert len(cache) == 1000

        now[0] = 10000.0
        await cache.set("fresh", "user-B", ttl=10)

        assert len(cache) == 1
        assert await cache.get("fresh") == "user-B"

    @pytest.mark.asyncio
    async def test_memory_cache_keeps_live_entries_when_sweeping(self):
        now = [0.0]
        cache = MemoryTokenCache(clock=lambda: now[0])

        await cache.set("short", "user-A", ttl=5)
        await cache.set("long", "user-B", ttl=60)

        now[0] = 30.0
        await cache.set("new", "user-C", ttl=60)

        assert len(cache) == 2
        assert await cache.get("long") == "user-B"

    @pytest.mark.asyncio
    async def test_memory_cache_ignores_non_positive_ttl(self):
        cache = MemoryTokenCache()

        await cache.set("tok", "user-A", ttl=0)

        assert await cache.get("tok") is None

    @pytest.mark.asyncio
    async def test_redis_cache_round_trip_with_expiry(self):
        fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
        cache = RedisTokenCache("redis://unused", redis_client=fake)

        await cache.set("tok", "user-A", ttl=60)

        assert await cache.get("tok") == "user-A"
        assert 0 < await fake.ttl(token_cache_key("tok")) <= 60

    @pytest.mark.asyncio
    async def test_redis_cache_never_stores_raw_token(self):
        fake = fakeredis.aioredis.FakeRedis(decode_responses=True)
        cache = RedisTokenCache("redis://unused", redis_client=fake)

        await cache.set("raw-token-value", "user-A", ttl=60)

        keys = await fake.keys("*")
        assert all("raw-token-value" not in key for key in keys)

    @pytest.mark.asyncio
    async def test_redis_errors_become_cache_miss(self):
        broken = AsyncMock()
        broken.get.side_effect = redis.ConnectionError("down")
        broken.set.side_effect = redis.ConnectionError("down")
        cache = RedisTokenCache("redis://unused", redis_client=broken)

        await cache.set("tok", "user-A", ttl=60)

        assert await cache.get("tok") is None

    def test_build_token_cache_selects_store(self):
        assert isinstance(build_token_cache(CacheConfig(store="memory")), MemoryTokenCache)
        assert isinstance(build_token_cache(CacheConfig(store="redis")), RedisTokenCache)
