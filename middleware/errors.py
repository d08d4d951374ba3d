"""
Pipeline Errors

PipelineError is the single way a pipeline stage terminates a request. The
stage that detects the failure logs it and raises; the exception handlers
registered by main.create_app render the failed envelope. Since stages run
as route dependencies, a raised PipelineError means the route handler never
executes.
"""

import logging
from typing import Optional

from fastapi import Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from middleware.request_context import context_for_request
from models.envelope import error_response
from models.messages import ErrorKind
from models.request_context import RequestContext

logger = logging.getLogger(__name__)

CORRELATION_HEADER = "x-correlation-id"


class PipelineError(Exception):
    """
    Terminal failure of a pipeline stage.

    Populates the error fields of the request context so the envelope and
    any later log entry see the same values.

    Attributes:
        kind: ErrorKind of the failure
        context: RequestContext of the failed request
        status_code: HTTP status of the response
    """
    def __init__(
        self,
        kind: ErrorKind,
        context: RequestContext,
        status_code: Optional[int] = None,
        code: Optional[str] = None,
        message: Optional[str] = None,
        response_code: Optional[str] = None,
    ):
        definition = kind.definition
        self.kind = kind
        self.context = context
        self.status_code = status_code or definition.status_code

        context.error_code = code or definition.code
        context.error_message = message or definition.message
        context.response_code = response_code or definition.response_code.value

        super().__init__(f"{kind.value}: {context.error_code}")


def render_error(error: PipelineError) -> JSONResponse:
    envelope = error_response(error.context)
    return JSONResponse(
        status_code=error.status_code,
        content=envelope.model_dump(mode="json"),
        headers={CORRELATION_HEADER: error.context.correlation_id},
    )


async def pipeline_error_handler(request: Request, exc: PipelineError) -> JSONResponse:
    return render_error(exc)


async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """
    Render FastAPI request validation failures as the failed envelope.

    The content routes take only string path parameters, so this fires only
    for routes that declare a typed body or parameter.
    """
    context = context_for_request(request)
    logger.error(
        f"Request validation failed: correlation_id={context.correlation_id}, "
        f"path={context.route_path}, errors={exc.errors()}"
    )
    return render_error(PipelineError(ErrorKind.REQUEST_INVALID, context))
