from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from dotenv import load_dotenv
import logging

from middleware.authenticator import Authenticator
from middleware.errors import (
    CORRELATION_HEADER,
    PipelineError,
    pipeline_error_handler,
    validation_error_handler,
)
from middleware.ownership import OwnershipResolver
from routers import content
from services.content_service import ContentMetadataClient
from services.identity_validator import IdentityValidator, KeycloakTokenValidator
from services.token_cache import build_token_cache
from utils.config import AppConfig, load_config

load_dotenv()

app_config = load_config()

logging.basicConfig(
    level=app_config.log_level,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)


def log_configuration(config: AppConfig):
    """Log the effective configuration at startup (secrets omitted)."""
    logger.info("=" * 60)
    logger.info("Content access gateway configuration")
    logger.info(f"  Identity provider: {config.keycloak.realm_url}")
    logger.info(f"  Client: {config.keycloak.client_id} (public={config.keycloak.public})")
    logger.info(f"  Token cache: {config.cache.store}, ttl={config.cache.ttl}s")
    logger.info(f"  Content service: {config.content_service.base_url}")
    logger.info(f"  Upstream timeout: {config.upstream_timeout}s")
    logger.info(f"  Log level: {config.log_level}")
    logger.info("=" * 60)


def create_app(
    config: Optional[AppConfig] = None,
    identity_validator: Optional[IdentityValidator] = None,
    content_client: Optional[ContentMetadataClient] = None,
) -> FastAPI:
    """
    Build the gateway application.

    Collaborators are constructed once from the configuration unless they
    are passed in, and are shared read-only by every request.
    """
    config = config or load_config()
    log_configuration(config)

    if identity_validator is None:
        identity_validator = KeycloakTokenValidator(
            config.keycloak,
            cache=build_token_cache(config.cache),
            cache_ttl=config.cache.ttl,
            timeout=config.upstream_timeout,
        )
    if content_client is None:
        content_client = ContentMetadataClient(config.content_service, timeout=config.upstream_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        for collaborator in (identity_validator, getattr(identity_validator, "cache", None), content_client):
            close = getattr(collaborator, "close", None)
            if close is not None:
                await close()
        logger.info("Collaborator clients closed")

    app = FastAPI(lifespan=lifespan)

    app.state.config = config
    app.state.content_client = content_client
    app.state.authenticator = Authenticator(identity_validator, timeout=config.upstream_timeout)
    app.state.ownership_resolver = OwnershipResolver(content_client, timeout=config.upstream_timeout)

    app.add_exception_handler(PipelineError, pipeline_error_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)

    @app.middleware("http")
    async def correlation_header(request: Request, call_next):
        response = await call_next(request)
        pipeline = getattr(request.state, "pipeline", None)
        if pipeline is not None and CORRELATION_HEADER not in response.headers:
            response.headers[CORRELATION_HEADER] = pipeline.context.correlation_id
        return response

    app.include_router(content.router)

    @app.get("/health")
    def health():
        return {"status": "ok"}

    return app


app = create_app(app_config)
