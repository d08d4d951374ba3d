"""
Content router for ownership-guarded content operations.

Every route runs the authorization pipeline as a dependency chain:
request context -> authentication -> (hierarchy root) -> ownership policy.
Approved requests are forwarded to the upstream content API with the
sanitized headers, and the upstream result is returned in the success
envelope.
"""

import logging
from fastapi import APIRouter, Depends, Request

from middleware.access_policy import (
    require_creator_access,
    require_hierarchy_creator_access,
    require_reviewer_access,
)
from middleware.ownership import upstream_failure
from models.envelope import ResponseEnvelope, success_response
from models.messages import ErrorKind
from models.request_context import PipelineRequest
from services.content_service import ContentFetchError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/content", tags=["content"])


async def _forward(request: Request, pipeline: PipelineRequest, method: str, upstream_path: str) -> ResponseEnvelope:
    """Forward an authorized request upstream and wrap the result."""
    context = pipeline.context
    content_client = request.app.state.content_client

    try:
        upstream = await content_client.forward(
            method, upstream_path, pipeline.headers, pipeline.body, content=pipeline.raw_body
        )
    except ContentFetchError as e:
        logger.error(
            f"Content service call failed: correlation_id={context.correlation_id}, "
            f"upstream_path={upstream_path}, caller_id={pipeline.identity.caller_id}, "
            f"error={e.message}, status={e.status_code}"
        )
        raise upstream_failure(ErrorKind.UPSTREAM_FAILED, context, e)

    logger.info(
        f"Content request completed: correlation_id={context.correlation_id}, "
        f"upstream_path={upstream_path}, caller_id={pipeline.identity.caller_id}"
    )
    return success_response(context, upstream.result)


@router.patch("/update/{contentId}", response_model=ResponseEnvelope)
async def update_content(
    contentId: str,
    request: Request,
    pipeline: PipelineRequest = Depends(require_creator_access),
):
    return await _forward(request, pipeline, "PATCH", f"/content/v3/update/{contentId}")


@router.post("/upload/{contentId}", response_model=ResponseEnvelope)
async def upload_content(
    contentId: str,
    request: Request,
    pipeline: PipelineRequest = Depends(require_creator_access),
):
    return await _forward(request, pipeline, "POST", f"/content/v3/upload/{contentId}")


@router.post("/review/{contentId}", response_model=ResponseEnvelope)
async def review_content(
    contentId: str,
    request: Request,
    pipeline: PipelineRequest = Depends(require_creator_access),
):
    return await _forward(request, pipeline, "POST", f"/content/v3/review/{contentId}")


@router.post("/publish/{contentId}", response_model=ResponseEnvelope)
async def publish_content(
    contentId: str,
    request: Request,
    pipeline: PipelineRequest = Depends(require_reviewer_access),
):
    return await _forward(request, pipeline, "POST", f"/content/v3/publish/{contentId}")


@router.post("/reject/{contentId}", response_model=ResponseEnvelope)
async def reject_content(
    contentId: str,
    request: Request,
    pipeline: PipelineRequest = Depends(require_reviewer_access),
):
    return await _forward(request, pipeline, "POST", f"/content/v3/reject/{contentId}")


@router.patch("/hierarchy/update", response_model=ResponseEnvelope)
async def update_hierarchy(
    request: Request,
    pipeline: PipelineRequest = Depends(require_hierarchy_creator_access),
):
    return await _forward(request, pipeline, "PATCH", "/content/v3/hierarchy/update")
