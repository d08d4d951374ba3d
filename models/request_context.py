"""
Request Context Data Models

This module defines the per-request values threaded through the
authorization pipeline: the RequestContext used for logging and response
envelopes, the authenticated identity, and the PipelineRequest that carries
both together with the sanitized headers and parsed body.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional


@dataclass
class RequestContext:
    """
    Response-shaping context derived once per request.

    Attributes:
        correlation_id: Caller-supplied msgid or a generated UUID; the join key
            for every log entry and error response of this request
        route_path: Route template the request matched
        api_id: Envelope id derived from the route path (e.g. 'api.v1.content')
        api_version: Envelope version
        source_url: Full URL the request was made to
        timestamp: Creation time (UTC)
        error_code: Application error code, set only on failure
        error_message: Human-readable error, set only on failure
        response_code: Envelope responseCode, set only on failure
    """
    correlation_id: str
    route_path: str
    api_id: str
    api_version: str
    source_url: str
    timestamp: datetime
    error_code: Optional[str] = None
    error_message: Optional[str] = None
    response_code: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.error_code is not None


@dataclass(frozen=True)
class AuthenticatedIdentity:
    """Caller identity resolved from a validated bearer token."""
    caller_id: str


@dataclass(frozen=True)
class ContentOwnershipRecord:
    """Owner of a content resource as reported by the content service."""
    content_id: str
    created_by: Optional[str]


@dataclass
class PipelineRequest:
    """
    Per-request state passed explicitly from stage to stage.

    Attributes:
        context: RequestContext for logging and envelopes
        headers: Lowercased, mutable copy of the request headers with
            transport-only headers removed
        body: Parsed JSON body (always a dict, 'params' always present)
        path_params: Route path parameters
        identity: Set by the Authenticator once the token is validated
        raw_body: Original request bytes when the body is not a JSON object
            (e.g. a multipart upload); forwarded upstream unchanged
    """
    context: RequestContext
    headers: Dict[str, str]
    body: Dict[str, Any]
    path_params: Dict[str, Any] = field(default_factory=dict)
    identity: Optional[AuthenticatedIdentity] = None
    raw_body: Optional[bytes] = None
