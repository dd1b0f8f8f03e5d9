"""
MockHub Mock Handlers

The four response strategies a mock can resolve to, and the resolver that
picks one from a MockOptions snapshot.
"""

from __future__ import annotations

import inspect
import json
from typing import Any, Callable, Dict, Optional

from fastapi import Request, Response
from starlette.concurrency import run_in_threadpool

from .entry import MockEntry, MockOptions, ProxyOptions, StaticResponse
from .proxy import ProxyForwarder
from .request_log import RequestLog, get_request_id
from .streaming import ChunkStream


def render_body(
    body: Any,
    status_code: int = 200,
    headers: Optional[Dict[str, str]] = None
) -> Response:
    """
    Build a response for a mock body.

    Strings default to text/html, bytes to application/octet-stream and any
    other value is JSON encoded. An explicit Content-Type header wins.
    """
    if isinstance(body, str):
        content, media_type = body, 'text/html'
    elif isinstance(body, (bytes, bytearray)):
        content, media_type = bytes(body), 'application/octet-stream'
    elif body is None:
        content, media_type = b'', None
    else:
        content, media_type = json.dumps(body), 'application/json'

    return Response(
        content=content,
        status_code=status_code,
        headers=headers or None,
        media_type=media_type
    )


class MockHandler:
    """Base class for mock strategies."""

    kind = ''

    def __init__(self, options: MockOptions, request_log: Optional[RequestLog] = None):
        self.options = options
        self.request_log = request_log or RequestLog()

    def classify(self, request: Request):
        self.request_log.on_classify(get_request_id(request), self.kind)

    async def __call__(self, request: Request, entry: MockEntry) -> Response:
        raise NotImplementedError

    def __repr__(self):
        return f"{self.__class__.__name__}({self.options.method} {self.options.uri})"


class StaticHandler(MockHandler):
    """Serves the configured response, whatever the request."""

    kind = 'static'

    def __init__(self, options: MockOptions, request_log: Optional[RequestLog] = None):
        super().__init__(options, request_log)
        self.response: StaticResponse = options.response

    async def __call__(self, request: Request, entry: MockEntry) -> Response:
        self.classify(request)
        return render_body(
            self.response.body,
            status_code=self.response.status_code,
            headers=self.response.headers
        )


class DynamicHandler(MockHandler):
    """
    Hands the request to a user-supplied responder.

    The responder receives the Request and may be sync (run in the thread
    pool) or async. A Response it returns is sent untouched; None becomes an
    empty 200 and other values are rendered like a static body.
    """

    kind = 'dynamic'

    def __init__(self, options: MockOptions, request_log: Optional[RequestLog] = None):
        super().__init__(options, request_log)
        self.func: Callable = options.handler

    async def __call__(self, request: Request, entry: MockEntry) -> Response:
        self.classify(request)
        if inspect.iscoroutinefunction(self.func):
            result = await self.func(request)
        else:
            result = await run_in_threadpool(self.func, request)
        if inspect.isawaitable(result):
            result = await result

        if isinstance(result, Response):
            return result
        return render_body(result)


class ProxyHandler(MockHandler):
    """Forwards to the configured upstream target."""

    kind = 'proxy'

    def __init__(self, options: MockOptions, request_log: Optional[RequestLog] = None):
        super().__init__(options, request_log)
        self.proxy: ProxyOptions = options.proxy
        self.forwarder = ProxyForwarder(options.proxy)

    async def __call__(self, request: Request, entry: MockEntry) -> Response:
        self.classify(request)
        return await self.forwarder.forward(request)


class StreamingHandler(MockHandler):
    """Keeps the connection open and attaches it to the entry's broadcaster."""

    kind = 'streaming'

    async def __call__(self, request: Request, entry: MockEntry) -> Response:
        self.classify(request)
        return ChunkStream(entry.stream)


HANDLERS = {
    'static': StaticHandler,
    'dynamic': DynamicHandler,
    'proxy': ProxyHandler,
    'streaming': StreamingHandler,
}


def resolve_handler(options: MockOptions, request_log: Optional[RequestLog] = None) -> MockHandler:
    """
    Pick and build the strategy for a mock.

    Resolution happens once per registration; the handler is reused for
    every matching request.

    Args:
        options: Mock configuration
        request_log: Sink notified of each request's classification

    Returns:
        Handler for ``options.kind``
    """
    return HANDLERS[options.kind](options, request_log)
