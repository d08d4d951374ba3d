"""Data models for the content access gateway."""
from .messages import ErrorKind, ErrorDefinition, ResponseCode, API_VERSION_V1
from .request_context import (
    RequestContext,
    AuthenticatedIdentity,
    ContentOwnershipRecord,
    PipelineRequest,
)
from .envelope import ResponseEnvelope, ResponseParams, error_response, success_response
from .content import ContentReadResponse, ContentMetadata, UpstreamParams

__all__ = [
    # Error taxonomy
    "ErrorKind",
    "ErrorDefinition",
    "ResponseCode",
    "API_VERSION_V1",
    # Per-request state
    "RequestContext",
    "AuthenticatedIdentity",
    "ContentOwnershipRecord",
    "PipelineRequest",
    # Envelopes
    "ResponseEnvelope",
    "ResponseParams",
    "error_response",
    "success_response",
    # Upstream content responses
    "ContentReadResponse",
    "ContentMetadata",
    "UpstreamParams",
]
