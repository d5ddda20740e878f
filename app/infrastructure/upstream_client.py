"""
Infrastructure layer: shared HTTP request handling for upstream services.
"""
import logging
from typing import Any, Optional

import httpx
from tenacity import (
    retry,
    stop_after_attempt,
    wait_exponential,
    retry_if_exception_type,
)

from app.config import settings
from app.domain.errors import UpstreamError

logger = logging.getLogger(__name__)


class UpstreamClient:
    """
    Base client for a remote HTTP service.

    Non-success statuses become ``UpstreamError`` straight away. Only
    transport failures are retried, and only when ``max_retry_attempts`` > 1.
    """

    service_name = "upstream"
    error_code = "upstream_failed"

    def __init__(
        self,
        base_url: str,
        timeout: float = settings.http_timeout,
        headers: Optional[dict[str, str]] = None,
    ):
        """Initialize the client with its base URL."""
        self.base_url = base_url.rstrip("/")
        self.client = httpx.AsyncClient(
            base_url=self.base_url,
            headers=headers or {},
            timeout=timeout,
        )

    async def close(self):
        """Close the HTTP client."""
        await self.client.aclose()

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        await self.close()

    @retry(
        stop=stop_after_attempt(settings.max_retry_attempts),
        wait=wait_exponential(
            multiplier=settings.retry_backoff_multiplier,
            min=settings.retry_min_wait,
            max=settings.retry_max_wait,
        ),
        retry=retry_if_exception_type(httpx.TransportError),
        reraise=True,
    )
    async def _send(self, method: str, url: str, **kwargs) -> httpx.Response:
        return await self.client.request(method, url, **kwargs)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        """
        Send a request and require a success status.

        Args:
            method: HTTP method
            url: Path relative to the base URL, or an absolute URL
            **kwargs: Passed through to httpx

        Returns:
            The successful response

        Raises:
            UpstreamError: On transport failure or non-success status
        """
        try:
            response = await self._send(method, url, **kwargs)
        except httpx.RequestError as e:
            logger.warning(f"{self.service_name} request error: {e!r}")
            raise UpstreamError(
                f"{self.service_name} request error: {e}",
                code=self.error_code,
            )

        if response.is_error:
            logger.warning(
                f"{self.service_name} returned {response.status_code} for {method} {url}"
            )
            raise UpstreamError(
                f"{self.service_name} request failed with status {response.status_code}",
                code=self.error_code,
                detail=response.text,
                upstream_status=response.status_code,
            )
        return response

    async def _request_json(self, method: str, url: str, **kwargs) -> Any:
        response = await self._request(method, url, **kwargs)
        try:
            return response.json()
        except ValueError:
            raise UpstreamError(
                f"{self.service_name} returned a non-JSON body",
                code=self.error_code,
                detail=response.text[:1000],
                upstream_status=response.status_code,
            )
