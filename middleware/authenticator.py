"""
Authenticator

Second stage of the authorization pipeline. Exchanges the bearer token in
the x-authenticated-user-token header for a caller identity.

- Missing token: TOKEN_MISSING (401)
- Validator failure, including timeouts: TOKEN_INVALID (401)
- Success: any caller-supplied identity headers are discarded and
  x-authenticated-userid is set to the resolved caller id
"""

import asyncio
import logging

from fastapi import Depends, Request

from middleware.errors import PipelineError
from middleware.request_context import build_pipeline_request
from models.messages import ErrorKind
from models.request_context import AuthenticatedIdentity, PipelineRequest
from services.identity_validator import IdentityValidator, TokenValidationError

logger = logging.getLogger(__name__)

TOKEN_HEADER = "x-authenticated-user-token"
USER_ID_HEADER = "x-authenticated-userid"


class Authenticator:
    """
    Validates the request's bearer token through an IdentityValidator.

    Args:
        validator: Identity collaborator
        timeout: Upper bound in seconds for one validation call
    """

    def __init__(self, validator: IdentityValidator, timeout: float = 10.0):
        self.validator = validator
        self.timeout = timeout

    async def authenticate(self, pipeline: PipelineRequest) -> AuthenticatedIdentity:
        context = pipeline.context
        token = pipeline.headers.get(TOKEN_HEADER)

        if not token:
            logger.error(
                f"API failed due to missing token: correlation_id={context.correlation_id}, "
                f"path={context.route_path}"
            )
            raise PipelineError(ErrorKind.TOKEN_MISSING, context)

        try:
            caller_id = await asyncio.wait_for(self.validator.validate(token), self.timeout)
        except TokenValidationError as e:
            logger.error(
                f"Invalid token: correlation_id={context.correlation_id}, "
                f"path={context.route_path}, code={e.code}"
            )
            raise PipelineError(ErrorKind.TOKEN_INVALID, context)
        except asyncio.TimeoutError:
            logger.error(
                f"Token validation timed out: correlation_id={context.correlation_id}, "
                f"path={context.route_path}, timeout={self.timeout}s"
            )
            raise PipelineError(ErrorKind.TOKEN_INVALID, context)

        pipeline.headers.pop(USER_ID_HEADER, None)
        pipeline.headers.pop(TOKEN_HEADER, None)
        pipeline.headers[USER_ID_HEADER] = caller_id

        identity = AuthenticatedIdentity(caller_id=caller_id)
        pipeline.identity = identity

        logger.info(
            f"Token validated: correlation_id={context.correlation_id}, caller_id={caller_id}"
        )
        return identity


async def authenticate_request(
    request: Request,
    pipeline: PipelineRequest = Depends(build_pipeline_request),
) -> PipelineRequest:
    """FastAPI dependency: run the Authenticator configured on the app."""
    authenticator: Authenticator = request.app.state.authenticator
    await authenticator.authenticate(pipeline)
    return pipeline
