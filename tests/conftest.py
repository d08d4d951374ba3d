"""Shared fixtures: in-memory collaborators and request builders."""

from datetime import datetime, timezone
from typing import Dict, Optional

import pytest
from fastapi.testclient import TestClient

from models.content import ContentReadResponse
from models.request_context import PipelineRequest, RequestContext
from services.content_service import ContentFetchError
from services.identity_validator import TokenValidationError
from utils.config import AppConfig


class FakeIdentityValidator:
    """Resolves tokens from a fixed table; unknown tokens are invalid."""

    def __init__(self, tokens: Optional[Dict[str, str]] = None):
        self.tokens = dict(tokens or {})
        self.calls = []

    async def validate(self, token: str) -> str:
        self.calls.append(token)
        if token not in self.tokens:
            raise TokenValidationError("Unknown token")
        return self.tokens[token]


class FakeContentClient:
    """
    Content service stand-in.

    owners maps content id -> createdBy. failures maps content id -> the
    ContentFetchError to raise for reads of that id.
    """

    def __init__(self, owners: Optional[Dict[str, str]] = None):
        self.owners = dict(owners or {})
        self.failures: Dict[str, ContentFetchError] = {}
        self.reads = []
        self.forwarded = []

    async def get_content_with_fields(self, content_id, fields, headers):
        self.reads.append({"content_id": content_id, "fields": set(fields), "headers": dict(headers)})
        if content_id in self.failures:
            raise self.failures[content_id]
        if content_id not in self.owners:
            raise ContentFetchError(
                "not found",
                response=ContentReadResponse(
                    responseCode="RESOURCE_NOT_FOUND",
                    params={"status": "failed", "err": "NOT_FOUND", "errmsg": f"Content {content_id} not found"},
                ),
                status_code=404,
            )
        return ContentReadResponse(
            responseCode="OK",
            result={"content": {"identifier": content_id, "createdBy": self.owners[content_id]}},
            status_code=200,
        )

    async def forward(self, method, path, headers, body=None, content=None):
        self.forwarded.append(
            {"method": method, "path": path, "headers": dict(headers), "body": body, "content": content}
        )
        return ContentReadResponse(responseCode="OK", result={"node_id": path.rsplit("/", 1)[-1]}, status_code=200)


def build_pipeline(headers=None, body=None, path_params=None, correlation_id="corr-1") -> PipelineRequest:
    context = RequestContext(
        correlation_id=correlation_id,
        route_path="/v1/content/update/{contentId}",
        api_id="api.v1.content",
        api_version="1.0",
        source_url="http://testserver/v1/content/update/C1",
        timestamp=datetime.now(timezone.utc),
    )
    return PipelineRequest(
        context=context,
        headers=dict(headers or {}),
        body=dict(body or {"params": {}}),
        path_params=dict(path_params or {}),
    )


@pytest.fixture
def identity_validator():
    return FakeIdentityValidator({"T1": "user-A", "T2": "user-B"})


@pytest.fixture
def content_client():
    return FakeContentClient({"C1": "user-A", "n2": "user-A", "C2": "user-B"})


@pytest.fixture
def pipeline_factory():
    return build_pipeline


@pytest.fixture
def client(identity_validator, content_client):
    """Test client for an app wired to the in-memory collaborators."""
    from main import create_app

    app = create_app(
        config=AppConfig(upstream_timeout=2.0),
        identity_validator=identity_validator,
        content_client=content_client,
    )
    return TestClient(app)
