"""
MockHub Listener

One listening port serving a table of programmable mocks.

Features:
- Static, dynamic, proxy and streaming mocks under one routing table
- Re-registering a route swaps its behavior without restarting anything
- Streaming clients replay every chunk published before they joined
- Request log notified of every request and its mock kind
- Admin API for runtime inspection and chunk publishing
"""

from __future__ import annotations

import json
import logging
import socket
import threading
import time
from typing import Any, Dict, Optional, Union

import uvicorn
from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from ..config import ListenerConfig
from ..errors import RouteNotFound
from .entry import MockEntry, MockOptions
from .registry import RouteRegistry, describe_route
from .request_log import RequestLog, RequestLogMiddleware, RequestLogService
from .streaming import CHUNK_TYPES, Chunk


def bind_socket(host: str, port: int) -> socket.socket:
    """
    Bind and listen on host:port (port 0 picks a free port).

    Raises:
        OSError: If the address cannot be bound
    """
    family = socket.AF_INET6 if ':' in host else socket.AF_INET
    sock = socket.socket(family, socket.SOCK_STREAM)
    sock.setsockopt(socket.SOL_SOCKET, socket.SO_REUSEADDR, 1)
    try:
        sock.bind((host, port))
        sock.listen()
    except OSError:
        sock.close()
        raise
    return sock


class Listener:
    """
    Mock HTTP server bound to a single port.

    The socket is bound in the constructor and the server is accepting
    connections by the time it returns. Requests are served by uvicorn on a
    background thread; every method here is safe to call from any thread.

    Example:
        listener = Listener(8080)
        listener.add({'uri': '/users', 'response': {'status_code': 200, 'body': '[]'}})
        listener.add({'uri': '/events'})          # streaming
        listener.send_chunk('/events', 'data: hello\\n\\n')
        print(listener)                           # debug snapshot
        listener.destroy()
    """

    def __init__(
        self,
        port: int = 0,
        config: Optional[ListenerConfig] = None,
        request_log: Optional[RequestLog] = None
    ):
        """
        Bind the port and start serving.

        Args:
            port: Port to bind (0 = pick a free port, see ``self.port``)
            config: Optional ListenerConfig
            request_log: Request log sink (defaults to an in-memory RequestLogService)

        Raises:
            OSError: If the port cannot be bound
            RuntimeError: If the server does not come up within the startup timeout
        """
        self.config = config or ListenerConfig()
        self.logger = logging.getLogger("mockhub.listener")
        self.logger.setLevel(getattr(logging, self.config.log_level.upper()))

        if request_log is None:
            request_log = RequestLogService(limit=self.config.request_log_limit)
        self.request_log = request_log

        self._socket = bind_socket(self.config.host, port)
        self.port: int = self._socket.getsockname()[1]
        self._destroyed = False

        self.app = self._create_app()
        self.registry = RouteRegistry(self.app, self.port, self.request_log)

        self._server = uvicorn.Server(uvicorn.Config(
            self.app,
            log_level=self.config.log_level,
            access_log=self.config.access_log,
            log_config=None,
            lifespan="off"
        ))
        self._thread = threading.Thread(
            target=self._server.run,
            kwargs={'sockets': [self._socket]},
            name=f"mockhub-listener-{self.port}",
            daemon=True
        )
        self._thread.start()
        self._wait_until_started()

        self.logger.info(f"Added listener on port {self.port}")

    def _wait_until_started(self):
        deadline = time.monotonic() + self.config.startup_timeout
        while not self._server.started:
            if not self._thread.is_alive():
                self._socket.close()
                raise RuntimeError(f"Listener on port {self.port} failed to start")
            if time.monotonic() > deadline:
                self.destroy()
                raise RuntimeError(f"Listener on port {self.port} did not start within {self.config.startup_timeout}s")
            time.sleep(0.01)

    def _create_app(self) -> FastAPI:
        """Create FastAPI application with the request log hook and admin routes."""
        app = FastAPI(
            title="MockHub Listener",
            description="Programmable mock HTTP endpoints",
            version="1.0.0",
            docs_url=None,
            redoc_url=None,
            openapi_url=None
        )
        app.add_middleware(RequestLogMiddleware, request_log=self.request_log)

        if not self.config.admin_enabled:
            return app

        prefix = self.config.admin_prefix

        @app.get(f"{prefix}/mocks")
        async def get_mocks():
            """Snapshot of all registered mocks."""
            return JSONResponse(content=self.snapshot())

        @app.post(f"{prefix}/mocks")
        async def add_mock(request: Request):
            """Register a static, proxy or streaming mock from JSON."""
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(content={'error': 'Body must be JSON'}, status_code=400)

            if not isinstance(body, dict):
                return JSONResponse(content={'error': 'Body must be a JSON object'}, status_code=400)
            if body.get('handler') is not None:
                return JSONResponse(
                    content={'error': 'Dynamic mocks cannot be registered over HTTP'},
                    status_code=400
                )

            try:
                entry = self.add(body)
            except ValueError as e:
                return JSONResponse(content={'error': str(e)}, status_code=400)

            return JSONResponse(content={
                'status': 'registered',
                'uri': entry.options.uri,
                'method': entry.options.method,
                'kind': entry.handler.kind
            }, status_code=201)

        @app.post(f"{prefix}/chunks")
        async def publish_chunk(request: Request):
            """Publish a chunk to the GET streaming mock at ``uri``."""
            try:
                body = await request.json()
            except ValueError:
                return JSONResponse(content={'error': 'Body must be JSON'}, status_code=400)

            if not isinstance(body, dict) or not body.get('uri'):
                return JSONResponse(content={'error': "'uri' is required"}, status_code=400)

            chunk = body.get('chunk', '')
            if not isinstance(chunk, str):
                chunk = json.dumps(chunk)

            try:
                delivered = self.send_chunk(body['uri'], chunk)
            except RouteNotFound as e:
                return JSONResponse(content={'error': str(e)}, status_code=404)

            return JSONResponse(content={'status': 'sent', 'clients': delivered})

        if isinstance(self.request_log, RequestLogService):
            request_log = self.request_log

            @app.get(f"{prefix}/requests")
            async def get_requests():
                """Get logged requests, most recent first."""
                entries = request_log.entries()
                return JSONResponse(content={
                    'total': len(entries),
                    'limit': request_log.limit,
                    'requests': list(reversed(entries))
                })

            @app.delete(f"{prefix}/requests")
            async def clear_requests():
                """Clear the request log."""
                count = request_log.clear()
                return JSONResponse(content={
                    'status': 'cleared',
                    'cleared_count': count
                })

        return app

    @property
    def url(self) -> str:
        host = self.config.host
        if ':' in host:
            host = f"[{host}]"
        return f"http://{host}:{self.port}"

    def add(self, options: Union[MockOptions, Dict[str, Any]]) -> MockEntry:
        """
        Register or replace a mock.

        Args:
            options: MockOptions, or a mapping accepted by MockOptions.from_dict

        Returns:
            The registered entry

        Raises:
            ValueError: If a mapping is not a valid mock definition
        """
        if not isinstance(options, MockOptions):
            options = MockOptions.from_dict(options)
        return self.registry.add(options)

    def get(self, uri: str, method: str = 'GET') -> Optional[MockEntry]:
        """Current mock for (uri, method), or None."""
        return self.registry.get(uri, method)

    def send_chunk(self, uri: str, chunk: Chunk) -> int:
        """
        Publish a chunk to the GET mock at ``uri``.

        The chunk is buffered for clients that attach later and written to
        every client attached now.

        Args:
            uri: Mock uri
            chunk: Data to send (str is sent UTF-8 encoded)

        Returns:
            Number of clients the chunk was delivered to

        Raises:
            TypeError: If the chunk is not str or bytes
            RouteNotFound: If no GET mock exists for ``uri``
        """
        if not isinstance(chunk, CHUNK_TYPES):
            raise TypeError(f"chunk must be str or bytes, got {type(chunk).__name__}")
        if isinstance(chunk, (bytearray, memoryview)):
            chunk = bytes(chunk)

        mock = self.get(uri, 'GET')
        if mock is None:
            raise RouteNotFound(uri, 'GET', port=self.port)

        delivered = mock.stream.publish(chunk)
        self.logger.info(f"Chunk sent to {describe_route('GET', self.port, uri)} ({delivered} clients)")
        return delivered

    def destroy(self):
        """
        Stop serving and release the port.

        Streaming clients are ended, the server is shut down (forced if it does
        not stop within the shutdown timeout) and every mock is dropped.
        Calling it again is a no-op.
        """
        if self._destroyed:
            return
        self._destroyed = True

        self.registry.clear()
        self._server.should_exit = True
        self._thread.join(self.config.shutdown_timeout)
        if self._thread.is_alive():
            self.logger.warning(f"Listener on port {self.port} did not stop gracefully, forcing exit")
            self._server.force_exit = True
            self._thread.join(self.config.shutdown_timeout)

        self._socket.close()
        self.logger.info(f"Destroyed listener on port {self.port}")

    @property
    def destroyed(self) -> bool:
        return self._destroyed

    def snapshot(self) -> Dict[str, Dict[str, Dict[str, Any]]]:
        """
        Debug view of every mock.

        Returns:
            uri -> method -> {options, chunks, handler, clients_count}
        """
        return self.registry.snapshot()

    def __str__(self) -> str:
        return json.dumps(self.snapshot(), indent=2, default=str)

    def __repr__(self) -> str:
        return f"Listener(port={self.port}, mocks={len(self.registry)})"

    def __enter__(self) -> 'Listener':
        return self

    def __exit__(self, exc_type, exc, tb):
        self.destroy()
