"""
MockHub Route Registry

Maps (uri, method) to the current MockEntry of a listener.

The FastAPI route for a key is added once, the first time the key is
registered. It dispatches through a trampoline that looks the entry up at
request time, so re-registering a key swaps the mock without touching the
router.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, List, Optional, Set, Tuple

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse

from .entry import MockEntry, MockOptions
from .handlers import resolve_handler
from .request_log import RequestLog
from .streaming import Broadcaster

logger = logging.getLogger("mockhub.registry")


def describe_route(method: str, port: Any, uri: str) -> str:
    return f"{method.upper()} http://localhost:{port}{uri}"


class RouteRegistry:
    """
    Registered mocks of one listener.

    Example:
        registry = RouteRegistry(app, port=8080)
        registry.add(MockOptions(uri='/users', response=StaticResponse(body='[]')))
        registry.get('/users', 'GET').handler.kind   # 'static'
    """

    def __init__(self, app: FastAPI, port: Any = None, request_log: Optional[RequestLog] = None):
        """
        Initialize the registry.

        Args:
            app: FastAPI application the routes are wired into
            port: Listener port, used in log lines
            request_log: Sink handed to every resolved handler
        """
        self.app = app
        self.port = port
        self.request_log = request_log or RequestLog()
        self._mocks: Dict[str, Dict[str, MockEntry]] = {}
        self._wired: Set[Tuple[str, str]] = set()
        self._lock = threading.Lock()

    def add(self, options: MockOptions) -> MockEntry:
        """
        Register a mock, replacing any previous one for the same (uri, method).

        A replaced mock's streaming clients are closed and its chunk buffer is
        dropped; the new entry starts empty.

        Args:
            options: Mock configuration

        Returns:
            The new entry
        """
        uri, method = options.uri, options.method
        handler = resolve_handler(options, self.request_log)
        entry = MockEntry(
            options=options,
            handler=handler,
            stream=Broadcaster(f"{method} {uri}")
        )

        with self._lock:
            previous = self._mocks.setdefault(uri, {}).get(method)
            self._mocks[uri][method] = entry
            # Register route if it hasn't been registered before
            if (uri, method) not in self._wired:
                self._wire(uri, method)
                self._wired.add((uri, method))

        if previous is not None:
            closed = previous.stream.close_all()
            if closed:
                logger.debug(f"Closed {closed} streaming clients of replaced mock {method} {uri}")

        route = describe_route(method, self.port, uri)
        if options.proxy is not None:
            target = describe_route(method, options.proxy.target_port, uri)
            logger.info(f"{route} -> {target} ({handler.kind})")
        else:
            logger.info(f"{route} ({handler.kind})")
        return entry

    def _wire(self, uri: str, method: str):
        async def dispatch(request: Request):
            entry = self.get(uri, method)
            if entry is None:
                return PlainTextResponse("Mock removed", status_code=404)
            return await entry.handler(request, entry)

        dispatch.__name__ = f"mock_{method.lower()}_{len(self._wired)}"
        self.app.add_api_route(uri, dispatch, methods=[method], include_in_schema=False)

    def get(self, uri: str, method: str) -> Optional[MockEntry]:
        """Current entry for (uri, method), or None."""
        with self._lock:
            return self._mocks.get(uri, {}).get(method.upper())

    def entries(self) -> List[MockEntry]:
        with self._lock:
            return [entry for mocks in self._mocks.values() for entry in mocks.values()]

    def clear(self) -> int:
        """
        Drop every entry and close their streams.

        Routes stay wired and answer 404 until their key is registered again.

        Returns:
            Number of entries dropped
        """
        with self._lock:
            entries = [entry for mocks in self._mocks.values() for entry in mocks.values()]
            self._mocks.clear()
        for entry in entries:
            entry.stream.close_all()
        return len(entries)

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """Debug view: uri -> method -> entry dict (clients only as a count)."""
        with self._lock:
            mocks = {uri: dict(methods) for uri, methods in self._mocks.items()}
        return {
            uri: {method: entry.to_dict() for method, entry in methods.items()}
            for uri, methods in mocks.items()
        }

    def __len__(self) -> int:
        with self._lock:
            return sum(len(methods) for methods in self._mocks.values())
