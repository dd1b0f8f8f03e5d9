"""
MockHub Listener Pool

Listeners for several ports sharing one request log.
"""

from __future__ import annotations

import logging
import threading
from typing import Any, Dict, Optional, Union

from ..config import ListenerConfig
from ..errors import RouteNotFound
from .entry import MockEntry, MockOptions
from .listener import Listener
from .request_log import RequestLog, RequestLogService
from .streaming import Chunk

logger = logging.getLogger("mockhub.pool")


class ListenerPool:
    """
    One Listener per port, created on first use.

    Example:
        with ListenerPool() as pool:
            pool.add(8080, {'uri': '/users', 'response': {'body': '[]'}})
            pool.add(8081, {'uri': '/events'})
            pool.send_chunk(8081, '/events', 'tick')
    """

    def __init__(self, config: Optional[ListenerConfig] = None, request_log: Optional[RequestLog] = None):
        self.config = config or ListenerConfig()
        if request_log is None:
            request_log = RequestLogService(limit=self.config.request_log_limit)
        self.request_log = request_log
        self._listeners: Dict[int, Listener] = {}
        self._lock = threading.Lock()

    def listener(self, port: int) -> Listener:
        """
        Listener for ``port``, binding it if needed.

        Port 0 always binds a new listener on a free port, kept under the
        port it actually got.
        """
        with self._lock:
            listener = self._listeners.get(port) if port else None
            if listener is None:
                listener = Listener(port, config=self.config, request_log=self.request_log)
                self._listeners[listener.port] = listener
            return listener

    @property
    def ports(self):
        with self._lock:
            return sorted(self._listeners)

    def add(self, port: int, options: Union[MockOptions, Dict[str, Any]]) -> MockEntry:
        return self.listener(port).add(options)

    def get(self, port: int, uri: str, method: str = 'GET') -> Optional[MockEntry]:
        with self._lock:
            listener = self._listeners.get(port)
        if listener is None:
            return None
        return listener.get(uri, method)

    def send_chunk(self, port: int, uri: str, chunk: Chunk) -> int:
        """
        Publish a chunk to the GET mock at ``uri`` on ``port``.

        Raises:
            RouteNotFound: If the port has no listener or no such mock
        """
        with self._lock:
            listener = self._listeners.get(port)
        if listener is None:
            raise RouteNotFound(uri, 'GET', port=port)
        return listener.send_chunk(uri, chunk)

    def load(self, mock_file) -> int:
        """
        Register every mock of a MockFile and pre-publish its chunks.

        Returns:
            Number of mocks registered
        """
        count = 0
        for definition in mock_file.listeners:
            listener = self.listener(definition.port)
            for mock in definition.mocks:
                listener.add(mock.options)
                for chunk in mock.chunks:
                    listener.send_chunk(mock.options.uri, chunk)
                count += 1
        logger.info(f"Loaded {count} mocks on {len(mock_file.listeners)} listeners")
        return count

    def snapshot(self) -> Dict[int, Dict[str, Any]]:
        with self._lock:
            listeners = dict(self._listeners)
        return {port: listener.snapshot() for port, listener in sorted(listeners.items())}

    def destroy(self):
        """Destroy every listener."""
        with self._lock:
            listeners = list(self._listeners.values())
            self._listeners.clear()
        for listener in listeners:
            listener.destroy()

    def __len__(self) -> int:
        with self._lock:
            return len(self._listeners)

    def __enter__(self) -> 'ListenerPool':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
