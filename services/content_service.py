"""
Content Metadata Client

Async client for the upstream content API. It serves two purposes:
- reading a content record restricted to a set of fields (ownership lookups)
- forwarding approved mutation requests once authorization has passed

Both calls forward the sanitized request headers so the upstream service can
apply its own authorization. Failures never return partially; they raise
ContentFetchError carrying whatever the upstream reported.
"""

import logging
from typing import Any, Dict, Iterable, Mapping, Optional

import httpx
from pydantic import ValidationError

from models.content import ContentReadResponse
from models.messages import ResponseCode
from utils.config import ContentServiceConfig

logger = logging.getLogger(__name__)

CONTENT_READ_PATH = "/content/v3/read/{content_id}"

# Headers httpx computes itself and must not be forwarded verbatim
HOP_BY_HOP_HEADERS = {"content-length", "host", "transfer-encoding", "connection"}


class ContentFetchError(Exception):
    """
    Raised when the content API call fails or reports a non-success result.

    Attributes:
        message: Human-readable description for logs
        response: Parsed upstream response, None for transport errors
        status_code: Upstream HTTP status, None for transport errors
    """
    def __init__(
        self,
        message: str,
        response: Optional[ContentReadResponse] = None,
        status_code: Optional[int] = None,
    ):
        self.message = message
        self.response = response
        self.status_code = status_code
        super().__init__(message)


class ContentMetadataClient:
    """Client for the upstream content API."""

    def __init__(
        self,
        config: ContentServiceConfig,
        timeout: float = 10.0,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.config = config
        self.http_client = http_client or httpx.AsyncClient(
            base_url=config.base_url,
            timeout=timeout,
        )

        logger.info(
            f"ContentMetadataClient initialized: base_url={config.base_url}, "
            f"timeout={timeout}s"
        )

    def _outbound_headers(self, headers: Mapping[str, str]) -> Dict[str, str]:
        outbound = {k: v for k, v in headers.items() if k.lower() not in HOP_BY_HOP_HEADERS}
        if self.config.api_key:
            outbound["authorization"] = f"Bearer {self.config.api_key}"
        return outbound

    async def get_content_with_fields(
        self,
        content_id: str,
        fields: Iterable[str],
        headers: Mapping[str, str],
    ) -> ContentReadResponse:
        """
        Read a content record restricted to the given fields.

        Args:
            content_id: Content identifier
            fields: Field projection, e.g. {"createdBy"}
            headers: Sanitized request headers to forward

        Returns:
            ContentReadResponse with responseCode 'OK'

        Raises:
            ContentFetchError: On transport error, timeout, unparseable body,
                or a response that does not report success
        """
        path = CONTENT_READ_PATH.format(content_id=content_id)
        params = {"fields": ",".join(sorted(fields))}

        logger.debug(f"Reading content: content_id={content_id}, fields={params['fields']}")
        return await self._send("GET", path, headers, params=params)

    async def forward(
        self,
        method: str,
        path: str,
        headers: Mapping[str, str],
        body: Optional[Dict[str, Any]] = None,
        content: Optional[bytes] = None,
    ) -> ContentReadResponse:
        """
        Forward an authorized request to the content API.

        content, when given, is sent as-is under the caller's own
        content-type (file uploads); otherwise body is sent as JSON.
        """
        if content is not None:
            logger.debug(f"Forwarding raw request: method={method}, path={path}, bytes={len(content)}")
            return await self._send(method, path, headers, content=content)

        logger.debug(f"Forwarding request: method={method}, path={path}")
        return await self._send(method, path, headers, json=body)

    async def _send(self, method: str, path: str, headers: Mapping[str, str], **kwargs) -> ContentReadResponse:
        try:
            response = await self.http_client.request(
                method,
                path,
                headers=self._outbound_headers(headers),
                **kwargs
            )
        except httpx.HTTPError as e:
            logger.error(f"Content service request failed: path={path}, error={type(e).__name__}: {e}")
            raise ContentFetchError(f"Content service unreachable: {type(e).__name__}")

        try:
            parsed = ContentReadResponse.model_validate(response.json())
        except (ValueError, ValidationError):
            logger.error(
                f"Content service returned an unparseable body: path={path}, "
                f"status={response.status_code}"
            )
            raise ContentFetchError("Unparseable content service response", status_code=response.status_code)

        parsed.status_code = response.status_code

        if parsed.responseCode != ResponseCode.SUCCESS.value:
            raise ContentFetchError(
                f"Content service reported {parsed.responseCode}",
                response=parsed,
                status_code=response.status_code,
            )

        return parsed

    async def close(self) -> None:
        await self.http_client.aclose()
