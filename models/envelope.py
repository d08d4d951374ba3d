"""
Response Envelope Models

This module defines the standardized envelope returned by every content API
route, for both success and failure. The correlation id travels in
params.msgid so callers can cross-reference server logs.
"""

import uuid
from datetime import datetime, timezone
from typing import Any, Dict, Optional
from pydantic import BaseModel, Field, field_serializer

from models.messages import ResponseCode
from models.request_context import RequestContext


class ResponseParams(BaseModel):
    """Status block of the envelope."""
    resmsgid: str = Field(
        default_factory=lambda: str(uuid.uuid4()),
        description="Unique identifier of this response"
    )
    msgid: Optional[str] = Field(
        None,
        description="Correlation identifier of the request"
    )
    status: str = Field(
        ...,
        description="'successful' or 'failed'"
    )
    err: Optional[str] = Field(
        None,
        description="Application error code"
    )
    errmsg: Optional[str] = Field(
        None,
        description="Human-readable error message"
    )


class ResponseEnvelope(BaseModel):
    """
    Envelope returned by every content API route.

    Structure:
    - id/ver/path: Identify the logical endpoint
    - ts: Response timestamp (UTC)
    - params: Correlation id and error details
    - responseCode: Envelope-level outcome
    - result: Payload, empty on failure
    """
    id: str = Field(..., description="API identifier, e.g. 'api.v1.content'")
    ver: str = Field(..., description="API version")
    ts: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Response timestamp (UTC)"
    )
    path: Optional[str] = Field(None, description="Route path")
    params: ResponseParams
    responseCode: str = Field(..., description="Envelope outcome code")
    result: Dict[str, Any] = Field(default_factory=dict)

    @field_serializer('ts')
    def serialize_timestamp(self, value: datetime) -> str:
        """Serialize datetime to ISO 8601 format with Z suffix for UTC."""
        iso_str = value.isoformat()
        if iso_str.endswith('+00:00'):
            return iso_str[:-6] + 'Z'
        elif not iso_str.endswith('Z'):
            return iso_str + 'Z'
        return iso_str


def error_response(context: RequestContext) -> ResponseEnvelope:
    """Build the failure envelope from a context whose error fields are set."""
    return ResponseEnvelope(
        id=context.api_id,
        ver=context.api_version,
        path=context.route_path,
        params=ResponseParams(
            msgid=context.correlation_id,
            status="failed",
            err=context.error_code,
            errmsg=context.error_message,
        ),
        responseCode=context.response_code or ResponseCode.SERVER_ERROR.value,
        result={},
    )


def success_response(context: RequestContext, result: Optional[Dict[str, Any]] = None) -> ResponseEnvelope:
    return ResponseEnvelope(
        id=context.api_id,
        ver=context.api_version,
        path=context.route_path,
        params=ResponseParams(msgid=context.correlation_id, status="successful"),
        responseCode=ResponseCode.SUCCESS.value,
        result=result or {},
    )
