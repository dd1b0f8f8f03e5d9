"""
MockHub Request Log

Request lifecycle notifications. Listeners report every inbound request to a
RequestLog before routing, again when a mock handler classifies it
(static, dynamic, proxy, streaming) and when the response starts.
"""

from __future__ import annotations

import logging
import threading
import time
import uuid
from collections import deque
from datetime import datetime
from typing import Any, Deque, Dict, List, Optional

from starlette.requests import Request
from starlette.types import ASGIApp, Message, Receive, Scope, Send


class RequestLog:
    """
    Interface for request log sinks.

    Subclass it (or pass any object with the same methods) to capture request
    events elsewhere; every method is a no-op here.
    """

    def on_request(self, request_id: str, request: Request):
        pass

    def on_classify(self, request_id: Optional[str], kind: str):
        pass

    def on_response(self, request_id: str, status_code: int):
        pass


class RequestLogService(RequestLog):
    """
    In-memory request log with FIFO eviction.

    Example:
        log = RequestLogService(limit=100)
        listener = Listener(8080, request_log=log)
        ...
        for entry in log.entries():
            print(entry['method'], entry['path'], entry['kind'], entry['status'])
    """

    def __init__(self, limit: int = 1000):
        """
        Initialize the request log.

        Args:
            limit: Maximum entries kept, oldest evicted first (0 = unlimited)
        """
        self.limit = limit
        self._entries: Deque[Dict[str, Any]] = deque(maxlen=limit or None)
        self._by_id: Dict[str, Dict[str, Any]] = {}
        self._started: Dict[str, float] = {}
        self._lock = threading.Lock()
        self.logger = logging.getLogger("mockhub.requests")

    def on_request(self, request_id: str, request: Request):
        entry = {
            'id': request_id,
            'timestamp': datetime.now().isoformat(),
            'port': request.url.port,
            'method': request.method,
            'path': request.url.path,
            'query': request.url.query,
            'kind': None,
            'status': None,
            'duration_ms': None
        }
        with self._lock:
            if self._entries.maxlen is not None and len(self._entries) == self._entries.maxlen:
                evicted = self._entries[0]
                self._by_id.pop(evicted['id'], None)
                self._started.pop(evicted['id'], None)
            self._entries.append(entry)
            self._by_id[request_id] = entry
            self._started[request_id] = time.monotonic()
        self.logger.debug(f"Incoming: {request.method} {request.url}")

    def on_classify(self, request_id: Optional[str], kind: str):
        with self._lock:
            entry = self._by_id.get(request_id)
            if entry is not None:
                entry['kind'] = kind

    def on_response(self, request_id: str, status_code: int):
        with self._lock:
            entry = self._by_id.get(request_id)
            if entry is None:
                return
            entry['status'] = status_code
            started = self._started.pop(request_id, None)
            if started is not None:
                entry['duration_ms'] = round((time.monotonic() - started) * 1000, 2)
            line = f"{entry['method']} {entry['path']} {status_code} ({entry['kind'] or '-'})"
        self.logger.info(line)

    def get(self, request_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            entry = self._by_id.get(request_id)
            return dict(entry) if entry is not None else None

    def entries(self) -> List[Dict[str, Any]]:
        """Snapshot of the kept entries, oldest first."""
        with self._lock:
            return [dict(e) for e in self._entries]

    def clear(self) -> int:
        with self._lock:
            count = len(self._entries)
            self._entries.clear()
            self._by_id.clear()
            self._started.clear()
        return count


def get_request_id(request: Request) -> Optional[str]:
    """Correlation id assigned by RequestLogMiddleware, if any."""
    return getattr(request.state, 'request_id', None)


class RequestLogMiddleware:
    """
    ASGI middleware that tags every HTTP request with a correlation id and
    reports it to the request log before routing happens.
    """

    def __init__(self, app: ASGIApp, request_log: RequestLog):
        self.app = app
        self.request_log = request_log

    async def __call__(self, scope: Scope, receive: Receive, send: Send) -> None:
        if scope["type"] != "http":
            await self.app(scope, receive, send)
            return

        request_id = uuid.uuid4().hex[:12]
        scope.setdefault("state", {})["request_id"] = request_id
        self.request_log.on_request(request_id, Request(scope))

        async def send_wrapper(message: Message) -> None:
            if message["type"] == "http.response.start":
                self.request_log.on_response(request_id, message["status"])
            await send(message)

        await self.app(scope, receive, send_wrapper)
