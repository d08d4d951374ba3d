"""Tests for the Ownership Resolver and its upstream failure rule."""

import asyncio
import pytest
from hypothesis import given, strategies as st, settings

from middleware.errors import PipelineError
from middleware.ownership import OwnershipResolver, clamp_status, upstream_failure
from models.content import ContentReadResponse
from models.messages import ErrorKind
from services.content_service import ContentFetchError


@pytest.mark.parametrize("status", [0, 42, 99, 600, 700, None, -1])
def test_invalid_status_clamped_to_500(status):
    assert clamp_status(status) == 500


@pytest.mark.parametrize("status", [100, 400, 404, 503, 599])
def test_valid_status_kept(status):
    assert clamp_status(status) == status


@given(st.one_of(st.none(), st.integers()))
@settings(max_examples=200)
def test_clamp_status_always_valid(status):
    result = clamp_status(status)

    assert 100 <= result < 600
    if status is not None and 100 <= status < 600:
        assert result == status
    else:
        assert result == 500


class TestUpstreamFailure:

    def test_upstream_params_surfaced(self, pipeline_factory):
        pipeline = pipeline_factory()
        error = ContentFetchError(
            "not found",
            response=ContentReadResponse(
                responseCode="RESOURCE_NOT_FOUND",
                params={"err": "NOT_FOUND", "errmsg": "Content C9 not found"},
            ),
            status_code=404,
        )

        failure = upstream_failure(ErrorKind.CONTENT_FETCH_FAILED, pipeline.context, error)

        assert failure.status_code == 404
        assert pipeline.context.error_code == "NOT_FOUND"
        assert pipeline.context.error_message == "Content C9 not found"
        assert pipeline.context.response_code == "RESOURCE_NOT_FOUND"

    def test_transport_error_uses_generic_fallbacks(self, pipeline_factory):
        pipeline = pipeline_factory()

        failure = upstream_failure(
            ErrorKind.CONTENT_FETCH_FAILED, pipeline.context, ContentFetchError("connection refused")
        )

        assert failure.status_code == 500
        assert pipeline.context.error_code == "ERR_CONTENT_GET_FAILED"
        assert pipeline.context.error_message == "Get content failed"
        assert pipeline.context.response_code == "SERVER_ERROR"

    @pytest.mark.parametrize("status", [0, 42, 600, None])
    def test_out_of_range_upstream_status_becomes_500(self, pipeline_factory, status):
        pipeline = pipeline_factory()
        error = ContentFetchError(
            "bad",
            response=ContentReadResponse(responseCode="SERVER_ERROR"),
            status_code=status,
        )

        failure = upstream_failure(ErrorKind.CONTENT_FETCH_FAILED, pipeline.context, error)

        assert failure.status_code == 500
        assert pipeline.context.response_code == "SERVER_ERROR"
        assert pipeline.context.error_code == "ERR_CONTENT_GET_FAILED"


class SlowContentClient:
    async def get_content_with_fields(self, content_id, fields, headers):
        await asyncio.sleep(5)


class TestOwnershipResolver:

    @pytest.mark.asyncio
    async def test_resolves_created_by(self, content_client, pipeline_factory):
        resolver = OwnershipResolver(content_client)

        record = await resolver.resolve("C2", pipeline_factory(headers={"x-authenticated-userid": "user-A"}))

        assert record.content_id == "C2"
        assert record.created_by == "user-B"

    @pytest.mark.asyncio
    async def test_fetched_fresh_every_time(self, content_client, pipeline_factory):
        resolver = OwnershipResolver(content_client)

        await resolver.resolve("C1", pipeline_factory())
        content_client.owners["C1"] = "user-Z"
        record = await resolver.resolve("C1", pipeline_factory())

        assert record.created_by == "user-Z"
        assert len(content_client.reads) == 2

    @pytest.mark.asyncio
    async def test_upstream_404_propagated(self, content_client, pipeline_factory):
        resolver = OwnershipResolver(content_client)
        pipeline = pipeline_factory()

        with pytest.raises(PipelineError) as exc_info:
            await resolver.resolve("unknown", pipeline)

        assert exc_info.value.kind == ErrorKind.CONTENT_FETCH_FAILED
        assert exc_info.value.status_code == 404
        assert pipeline.context.error_code == "NOT_FOUND"

    @pytest.mark.asyncio
    async def test_timeout_is_fetch_failure(self, pipeline_factory):
        resolver = OwnershipResolver(SlowContentClient(), timeout=0.05)
        pipeline = pipeline_factory()

        with pytest.raises(PipelineError) as exc_info:
            await resolver.resolve("C1", pipeline)

        assert exc_info.value.status_code == 500
        assert pipeline.context.error_code == "ERR_CONTENT_GET_FAILED"

    @pytest.mark.asyncio
    async def test_response_without_content_is_fetch_failure(self, pipeline_factory):

        class EmptyResultClient:
            async def get_content_with_fields(self, content_id, fields, headers):
                return ContentReadResponse(responseCode="OK", result={}, status_code=200)

        with pytest.raises(PipelineError) as exc_info:
            await OwnershipResolver(EmptyResultClient()).resolve("C1", pipeline_factory())

        assert exc_info.value.status_code == 500
