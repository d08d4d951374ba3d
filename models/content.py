"""
Content Service Response Models

Pydantic models for the responses of the upstream content API. Every field
the gateway reads is optional so that partial or error responses still parse;
the fallback values applied on failure live in middleware.ownership.
"""

from typing import Any, Dict, Optional
from pydantic import BaseModel, ConfigDict, Field


class UpstreamParams(BaseModel):
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    err: Optional[str] = None
    errmsg: Optional[str] = None


class ContentMetadata(BaseModel):
    """Subset of content metadata used for authorization."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    identifier: Optional[str] = None
    created_by: Optional[str] = Field(None, alias="createdBy")


class ContentResult(BaseModel):
    model_config = ConfigDict(extra="allow")

    content: Optional[ContentMetadata] = None


class ContentReadResponse(BaseModel):
    """
    Envelope returned by the upstream content API.

    Attributes:
        responseCode: 'OK' on success
        params: Upstream status block, carries err/errmsg on failure
        result: Payload; result.content holds the requested fields on reads
        status_code: HTTP status of the upstream response (not part of the
            upstream body, filled in by the client)
    """
    model_config = ConfigDict(extra="allow")

    id: Optional[str] = None
    ver: Optional[str] = None
    responseCode: Optional[str] = None
    params: Optional[UpstreamParams] = None
    result: Dict[str, Any] = Field(default_factory=dict)
    status_code: Optional[int] = None

    @property
    def content(self) -> Optional[ContentMetadata]:
        return ContentResult.model_validate(self.result).content
