"""HTTP transport for the v2 keys API."""

import logging
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

import httpx

from etcdv2._internal.request import KeysRequest
from etcdv2.errors import ClientClosedError
from etcdv2.types import ClientConfig


class KeysTransport:
    """Sends requests to a cluster member and follows redirects to the leader."""

    def __init__(
        self,
        config: ClientConfig,
        http_transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._logger = logging.getLogger("etcdv2.transport")
        self._base_url = config.base_url
        self._client = httpx.AsyncClient(
            base_url=config.base_url,
            timeout=config.timeout / 1000.0,
            follow_redirects=True,
            max_redirects=config.max_redirects,
            transport=http_transport,
        )
        self._closed = False

    @asynccontextmanager
    async def stream(
        self, request: KeysRequest, timeout: Any = httpx.USE_CLIENT_DEFAULT
    ) -> AsyncIterator[httpx.Response]:
        """Send a request and yield the final response with its body unread.

        `timeout` overrides the client timeout for this request only.
        Transport failures (connection errors, timeouts, too many redirects)
        propagate unchanged.
        """
        if self._closed:
            raise ClientClosedError()

        self._logger.debug(
            "etcd_request",
            extra={
                "event": {"category": ["etcd"], "action": "request"},
                "etcd": {
                    "method": request.method,
                    "url": f"{self._base_url}{request.target}",
                },
            },
        )

        http_request = self._client.build_request(
            request.method,
            request.target,
            content=request.body,
            headers=request.headers,
            timeout=timeout,
        )
        response = await self._client.send(http_request, stream=True)
        try:
            self._logger.debug(
                "etcd_response",
                extra={
                    "event": {"category": ["etcd"], "action": "response"},
                    "etcd": {
                        "method": request.method,
                        "status": response.status_code,
                        "url": str(response.url),
                        "redirects": len(response.history),
                    },
                },
            )
            yield response
        finally:
            await response.aclose()

    async def close(self) -> None:
        """Close the underlying connection pool."""
        if self._closed:
            return

        self._closed = True
        await self._client.aclose()

    def is_closed(self) -> bool:
        """Check if the transport is closed."""
        return self._closed
