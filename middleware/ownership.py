"""
Ownership Resolver

Fetches the authoritative owner (createdBy) of a content resource from the
content service, forwarding the sanitized request headers. The record is
fetched fresh for every decision.

Failure rule, applied in upstream_failure():
- error code/message: upstream params.err/params.errmsg when the upstream
  sent params, else the generic fetch-failed code and message
- envelope responseCode: upstream responseCode when present, else
  SERVER_ERROR
- HTTP status: upstream status when within 100-599, else 500
"""

import asyncio
import logging
from typing import Optional

from middleware.errors import PipelineError
from models.messages import ErrorKind
from models.request_context import ContentOwnershipRecord, PipelineRequest, RequestContext
from services.content_service import ContentFetchError, ContentMetadataClient

logger = logging.getLogger(__name__)

OWNERSHIP_FIELDS = frozenset({"createdBy"})
DEFAULT_ERROR_STATUS = 500


def clamp_status(status: Optional[int], default: int = DEFAULT_ERROR_STATUS) -> int:
    """Return status if it is a valid HTTP status code, else default."""
    if isinstance(status, int) and not isinstance(status, bool) and 100 <= status < 600:
        return status
    return default


def upstream_failure(kind: ErrorKind, context: RequestContext, error: ContentFetchError) -> PipelineError:
    definition = kind.definition
    response = error.response

    code = message = response_code = None
    if response is not None:
        if response.params is not None:
            code = response.params.err
            message = response.params.errmsg
        response_code = response.responseCode

    return PipelineError(
        kind,
        context,
        status_code=clamp_status(error.status_code),
        code=code or definition.code,
        message=message or definition.message,
        response_code=response_code or definition.response_code.value,
    )


class OwnershipResolver:
    """
    Resolves content ownership through the content service.

    Args:
        client: Content service client
        timeout: Upper bound in seconds for one lookup
    """

    def __init__(self, client: ContentMetadataClient, timeout: float = 10.0):
        self.client = client
        self.timeout = timeout

    async def resolve(self, content_id: str, pipeline: PipelineRequest) -> ContentOwnershipRecord:
        """
        Fetch the owner of content_id.

        Raises:
            PipelineError: CONTENT_FETCH_FAILED on any upstream failure
        """
        context = pipeline.context
        caller_id = pipeline.identity.caller_id if pipeline.identity is not None else None

        try:
            response = await asyncio.wait_for(
                self.client.get_content_with_fields(content_id, OWNERSHIP_FIELDS, pipeline.headers),
                self.timeout,
            )
        except asyncio.TimeoutError:
            logger.error(
                f"Getting error from content service: correlation_id={context.correlation_id}, "
                f"content_id={content_id}, caller_id={caller_id}, error=timed out after {self.timeout}s"
            )
            raise upstream_failure(ErrorKind.CONTENT_FETCH_FAILED, context, ContentFetchError("timed out"))
        except ContentFetchError as e:
            logger.error(
                f"Getting error from content service: correlation_id={context.correlation_id}, "
                f"content_id={content_id}, caller_id={caller_id}, error={e.message}, status={e.status_code}, "
                f"upstream={e.response.model_dump(exclude_none=True) if e.response else None}"
            )
            raise upstream_failure(ErrorKind.CONTENT_FETCH_FAILED, context, e)

        content = response.content
        if content is None:
            logger.error(
                f"Content service response has no content record: "
                f"correlation_id={context.correlation_id}, content_id={content_id}, caller_id={caller_id}"
            )
            raise upstream_failure(
                ErrorKind.CONTENT_FETCH_FAILED, context, ContentFetchError("missing content record")
            )

        return ContentOwnershipRecord(content_id=content_id, created_by=content.created_by)
