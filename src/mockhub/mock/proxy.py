"""
MockHub Proxy Forwarder

Forwards a mocked route to an upstream server and mirrors its response.
"""

from __future__ import annotations

import logging
from typing import AsyncIterator, Tuple
from urllib.parse import urlsplit

import httpx
from fastapi import Request, Response
from fastapi.responses import PlainTextResponse, StreamingResponse
from starlette.background import BackgroundTask

from ..errors import UpstreamForwardingFailure
from .entry import ProxyOptions

logger = logging.getLogger("mockhub.proxy")

# Hop-by-hop headers that should not be forwarded
HOP_BY_HOP_HEADERS = {
    'connection', 'keep-alive', 'proxy-authenticate', 'proxy-authorization',
    'te', 'trailers', 'transfer-encoding', 'upgrade'
}


class ProxyForwarder:
    """
    Forward requests to a single upstream target.

    The request keeps its method, path, query string and body. The target's
    own path, if any, is prepended to the request path.

    Example:
        forwarder = ProxyForwarder(ProxyOptions(target='http://localhost:9000/api'))
        response = await forwarder.forward(request)   # GET /users -> /api/users
    """

    def __init__(self, options: ProxyOptions):
        self.options = options
        target = urlsplit(options.target)
        self._origin = f"{target.scheme}://{target.netloc}"
        self._prefix = target.path.rstrip('/')

    def build_url(self, path: str, query: str = '') -> str:
        """Upstream URL for an inbound path and query string."""
        url = f"{self._origin}{self._prefix}{path}"
        if query:
            url = f"{url}?{query}"
        return url

    def build_headers(self, request: Request) -> list:
        headers = [
            (k, v) for k, v in request.headers.items()
            if k.lower() not in HOP_BY_HOP_HEADERS and k.lower() != 'content-length'
        ]
        if self.options.change_origin:
            headers = [(k, v) for k, v in headers if k.lower() != 'host']
        headers.extend(self.options.headers.items())
        return headers

    async def send_upstream(self, request: Request) -> Tuple[httpx.AsyncClient, httpx.Response]:
        """
        Send the request to the target and wait for the response headers.

        The body is left unread; the caller owns the returned client and
        response and must close both.

        Raises:
            UpstreamForwardingFailure: On any transport error before the headers arrive
        """
        url = self.build_url(request.url.path, request.url.query)
        body = await request.body()

        client = httpx.AsyncClient(
            timeout=self.options.timeout,
            verify=self.options.verify,
            follow_redirects=self.options.follow_redirects
        )
        try:
            upstream_request = client.build_request(
                method=request.method,
                url=url,
                headers=self.build_headers(request),
                content=body
            )
            upstream = await client.send(upstream_request, stream=True)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            await client.aclose()
            raise UpstreamForwardingFailure(str(e) or e.__class__.__name__) from e
        return client, upstream

    async def relay(self, client: httpx.AsyncClient, upstream: httpx.Response) -> AsyncIterator[bytes]:
        """Yield the upstream body as it arrives, then release the connection."""
        try:
            async for chunk in upstream.aiter_raw():
                yield chunk
        except httpx.HTTPError as e:
            # Headers are already sent; the body just ends early
            logger.warning(f"Proxy body from {self.options.target} interrupted: {e!r}")
        finally:
            await self.close(client, upstream)

    @staticmethod
    async def close(client: httpx.AsyncClient, upstream: httpx.Response):
        await upstream.aclose()
        await client.aclose()

    async def forward(self, request: Request) -> Response:
        """
        Forward the request and mirror the upstream response.

        Status and headers are sent once the upstream answers; the body is
        relayed chunk by chunk, so streaming upstreams stream through.
        Transport failures before the upstream answers (refused connection,
        timeout, DNS) produce a 500 with the error message as a plain-text
        body.

        Args:
            request: Inbound request

        Returns:
            Streaming mirror of the upstream response, or the 500 failure response
        """
        try:
            client, upstream = await self.send_upstream(request)
        except UpstreamForwardingFailure as e:
            logger.error(f"Proxy {request.method} {request.url.path} -> {self.options.target} failed: {e}")
            return PlainTextResponse(str(e), status_code=500)

        response = StreamingResponse(
            self.relay(client, upstream),
            status_code=upstream.status_code,
            background=BackgroundTask(self.close, client, upstream)
        )
        for key, value in upstream.headers.multi_items():
            if key.lower() not in HOP_BY_HOP_HEADERS:
                response.headers.append(key, value)
        return response
