"""
Authorization Policy Engine

Ownership-based access policies for content routes. Each policy resolves the
content's owner and compares it to the authenticated caller:

- CREATOR: only the content's creator may proceed (mutation routes)
- REVIEWER: anyone but the creator may proceed (review workflows)
- HIERARCHY_CREATOR: CREATOR, with the content id taken from the root node
  of the request's hierarchy map

A denial is TOKEN_INVALID (401) and is logged with both identities.
"""

import enum
import logging
from typing import Callable, Dict, Optional

from fastapi import Depends, Request

from middleware.authenticator import authenticate_request
from middleware.errors import PipelineError
from middleware.hierarchy import extract_hierarchy_root
from middleware.ownership import OwnershipResolver
from models.messages import ErrorKind
from models.request_context import ContentOwnershipRecord, PipelineRequest

logger = logging.getLogger(__name__)

CONTENT_ID_PARAM = "contentId"


class AccessPolicy(str, enum.Enum):
    CREATOR = "creator"
    REVIEWER = "reviewer"
    HIERARCHY_CREATOR = "hierarchy_creator"


def creator_allowed(caller_id: str, created_by: Optional[str]) -> bool:
    return created_by == caller_id


def reviewer_allowed(caller_id: str, created_by: Optional[str]) -> bool:
    return created_by != caller_id


POLICY_DECISIONS: Dict[AccessPolicy, Callable[[str, Optional[str]], bool]] = {
    AccessPolicy.CREATOR: creator_allowed,
    AccessPolicy.REVIEWER: reviewer_allowed,
    AccessPolicy.HIERARCHY_CREATOR: creator_allowed,
}


def is_allowed(policy: AccessPolicy, caller_id: str, created_by: Optional[str]) -> bool:
    return POLICY_DECISIONS[policy](caller_id, created_by)


async def authorize(
    policy: AccessPolicy,
    content_id: str,
    pipeline: PipelineRequest,
    resolver: OwnershipResolver,
) -> ContentOwnershipRecord:
    """
    Resolve the owner of content_id and apply policy.

    Args:
        policy: Policy to apply
        content_id: Content being accessed
        pipeline: Authenticated request state
        resolver: Ownership resolver

    Returns:
        The ownership record the decision was made on

    Raises:
        PipelineError: CONTENT_FETCH_FAILED from the resolver, or
            TOKEN_INVALID when the policy denies access
    """
    if pipeline.identity is None:
        raise RuntimeError("authorize() called before the request was authenticated")

    context = pipeline.context
    caller_id = pipeline.identity.caller_id

    record = await resolver.resolve(content_id, pipeline)

    if not is_allowed(policy, caller_id, record.created_by):
        logger.error(
            f"Access denied: policy={policy.value}, correlation_id={context.correlation_id}, "
            f"content_id={content_id}, created_by={record.created_by}, caller_id={caller_id}"
        )
        raise PipelineError(ErrorKind.TOKEN_INVALID, context)

    logger.info(
        f"Access granted: policy={policy.value}, correlation_id={context.correlation_id}, "
        f"content_id={content_id}, caller_id={caller_id}"
    )
    return record


def _content_id_param(pipeline: PipelineRequest) -> str:
    return str(pipeline.path_params[CONTENT_ID_PARAM])


async def require_creator_access(
    request: Request,
    pipeline: PipelineRequest = Depends(authenticate_request),
) -> PipelineRequest:
    await authorize(
        AccessPolicy.CREATOR,
        _content_id_param(pipeline),
        pipeline,
        request.app.state.ownership_resolver,
    )
    return pipeline


async def require_reviewer_access(
    request: Request,
    pipeline: PipelineRequest = Depends(authenticate_request),
) -> PipelineRequest:
    await authorize(
        AccessPolicy.REVIEWER,
        _content_id_param(pipeline),
        pipeline,
        request.app.state.ownership_resolver,
    )
    return pipeline


async def require_hierarchy_creator_access(
    request: Request,
    pipeline: PipelineRequest = Depends(authenticate_request),
) -> PipelineRequest:
    content_id = extract_hierarchy_root(pipeline)
    await authorize(
        AccessPolicy.HIERARCHY_CREATOR,
        content_id,
        pipeline,
        request.app.state.ownership_resolver,
    )
    return pipeline
