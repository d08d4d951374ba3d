"""
Request Context Builder

First stage of the authorization pipeline. It normalizes the inbound request
into a PipelineRequest:

1. Parses the JSON body and defaults body.params to an empty mapping. A
   body that is not a JSON object (e.g. a multipart upload) is parsed as
   empty and its raw bytes are kept for forwarding
2. Resolves the correlation id: msgid header, then body.params.msgid, then a
   generated UUID; the result is written back to body.params.msgid
3. Removes transport-only headers from a lowercased copy of the headers
4. Logs the normalized request once, tagged with the correlation id

This stage has no failure path.
"""

import json
import uuid
import logging
from datetime import datetime, timezone
from typing import Any, Dict, MutableMapping, Optional

from fastapi import Request

from models.messages import API_VERSION_V1
from models.request_context import PipelineRequest, RequestContext

logger = logging.getLogger(__name__)

CORRELATION_ID_HEADER = "msgid"

TRANSPORT_HEADERS = (
    "host",
    "origin",
    "accept",
    "referer",
    "content-length",
    "user-agent",
    "accept-encoding",
    "accept-language",
    "accept-charset",
    "cookie",
    "dnt",
    "postman-token",
    "cache-control",
    "connection",
)

# Header values replaced before the request is logged
REDACTED_HEADERS = ("x-authenticated-user-token", "authorization")


def api_id_for_path(route_path: str) -> str:
    """
    Derive the envelope id from a route path.

    '/v1/content/update/{contentId}' -> 'api.v1.content'
    """
    segments = [s for s in route_path.split("{")[0].split("/") if s]
    if not segments:
        return "api"
    return "api." + ".".join(segments[:2])


def resolve_correlation_id(headers: Dict[str, str], params: Dict[str, Any]) -> str:
    """Header value, then body params value, then a fresh UUID."""
    header_value = headers.get(CORRELATION_ID_HEADER)
    if header_value:
        return header_value

    body_value = params.get("msgid")
    if body_value:
        return str(body_value)

    return str(uuid.uuid4())


def strip_transport_headers(headers: MutableMapping[str, str]) -> None:
    for name in TRANSPORT_HEADERS:
        headers.pop(name, None)


def _route_path(request: Request) -> str:
    route = request.scope.get("route")
    return getattr(route, "path", None) or request.url.path


def _redacted(headers: Dict[str, str]) -> Dict[str, str]:
    return {k: ("***" if k in REDACTED_HEADERS else v) for k, v in headers.items()}


def _parse_json_object(raw: bytes, path: str) -> Optional[Dict[str, Any]]:
    """Parse raw as a JSON object; None when it is anything else."""
    if not raw:
        return {}

    try:
        body = json.loads(raw)
    except ValueError:
        logger.debug(f"Request body is not JSON, forwarding it unchanged: path={path}")
        return None

    if not isinstance(body, dict):
        logger.debug(f"Request body is not a JSON object, forwarding it unchanged: path={path}")
        return None

    return body


def new_request_context(request: Request, correlation_id: str) -> RequestContext:
    route_path = _route_path(request)
    return RequestContext(
        correlation_id=correlation_id,
        route_path=route_path,
        api_id=api_id_for_path(route_path),
        api_version=API_VERSION_V1,
        source_url=str(request.url),
        timestamp=datetime.now(timezone.utc),
    )


def context_for_request(request: Request) -> RequestContext:
    """
    Return the context of a request, building a bare one if the pipeline
    never ran (e.g. the request failed validation before any stage).
    """
    pipeline = getattr(request.state, "pipeline", None)
    if pipeline is not None:
        return pipeline.context

    correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
    return new_request_context(request, correlation_id)


async def build_pipeline_request(request: Request) -> PipelineRequest:
    """
    FastAPI dependency: normalize the request and create its context.

    Args:
        request: FastAPI Request object

    Returns:
        PipelineRequest with a non-empty correlation id
    """
    raw = await request.body()
    body = _parse_json_object(raw, request.url.path)
    raw_body = None
    if body is None:
        body = {}
        raw_body = raw

    params = body.get("params")
    if not isinstance(params, dict):
        params = {}
    body["params"] = params

    headers = {k.lower(): v for k, v in request.headers.items()}
    correlation_id = resolve_correlation_id(headers, params)
    params["msgid"] = correlation_id

    strip_transport_headers(headers)

    context = new_request_context(request, correlation_id)
    pipeline = PipelineRequest(
        context=context,
        headers=headers,
        body=body,
        path_params=dict(request.path_params),
        raw_body=raw_body,
    )
    request.state.pipeline = pipeline

    logger.info(
        f"API request received: correlation_id={correlation_id}, "
        f"path={context.route_path}, headers={_redacted(headers)}, "
        f"body={body}, params={params}"
    )

    return pipeline
