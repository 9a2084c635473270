"""Shared HTTP client for the platform APIs."""

import logging
from typing import Any

import httpx

from luxbridge.config import Settings
from luxbridge.core.constants import Platform

logger = logging.getLogger(__name__)


class PlatformClient:
    """Issues requests to ``{platform_api_base_url}/{platform}{endpoint}``.

    One ``httpx.AsyncClient`` is created lazily and shared by every caller;
    each request is bounded by ``platform_request_timeout``.
    """

    def __init__(
        self,
        settings: Settings,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.base_url = settings.platform_api_base_url
        self.timeout = settings.platform_request_timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout),
                transport=self._transport,
            )
        return self._client

    def url_for(self, platform: Platform, endpoint: str) -> str:
        if not endpoint.startswith("/"):
            endpoint = f"/{endpoint}"
        return f"{self.base_url}/{platform}{endpoint}"

    async def request(
        self,
        method: str,
        platform: Platform,
        endpoint: str,
        access_token: str | None = None,
        json: Any = None,
        params: dict[str, Any] | None = None,
        headers: dict[str, str] | None = None,
    ) -> httpx.Response:
        """
        Send one request to a platform API.

        Raises:
            httpx.HTTPError: On timeouts and transport failures
        """
        request_headers = dict(headers or {})
        if access_token:
            request_headers["Authorization"] = f"Bearer {access_token}"
        request_headers["Content-Type"] = "application/json"

        url = self.url_for(platform, endpoint)
        logger.debug("%s %s", method.upper(), url)
        return await self._get_client().request(
            method.upper(),
            url,
            json=json,
            params=params,
            headers=request_headers,
        )

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None
