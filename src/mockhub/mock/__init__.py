"""
MockHub Mock Module

Programmable mock HTTP listeners.

This module provides:
- FastAPI-based listener per port
- Route registry with in-place mock replacement
- Static, dynamic, proxy and streaming mock handlers
- Chunk broadcasting with replay for late-joining clients
- Request log collaborator
"""

from .entry import MockEntry, MockOptions, ProxyOptions, StaticResponse, import_handler
from .handlers import (
    MockHandler,
    StaticHandler,
    DynamicHandler,
    ProxyHandler,
    StreamingHandler,
    resolve_handler
)
from .listener import Listener
from .pool import ListenerPool
from .proxy import ProxyForwarder
from .registry import RouteRegistry
from .request_log import RequestLog, RequestLogService, RequestLogMiddleware
from .streaming import Broadcaster, ChunkStream, QueueClient

__all__ = [
    # Entries
    'MockEntry',
    'MockOptions',
    'ProxyOptions',
    'StaticResponse',
    'import_handler',

    # Handlers
    'MockHandler',
    'StaticHandler',
    'DynamicHandler',
    'ProxyHandler',
    'StreamingHandler',
    'resolve_handler',

    # Listeners
    'Listener',
    'ListenerPool',
    'RouteRegistry',
    'ProxyForwarder',

    # Request log
    'RequestLog',
    'RequestLogService',
    'RequestLogMiddleware',

    # Streaming
    'Broadcaster',
    'ChunkStream',
    'QueueClient',
]
