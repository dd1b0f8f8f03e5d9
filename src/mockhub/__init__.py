"""
MockHub

Programmable mock HTTP endpoints: static, scripted, proxied and streaming
responses per listening port.
"""

from .config import ListenerConfig
from .errors import MockHubError, RouteNotFound, UpstreamForwardingFailure, ClientWriteFailure
from .mock import Listener, ListenerPool, MockOptions, ProxyOptions, StaticResponse
from .mockfile import MockFile

__all__ = [
    'ListenerConfig',
    'MockHubError',
    'RouteNotFound',
    'UpstreamForwardingFailure',
    'ClientWriteFailure',
    'Listener',
    'ListenerPool',
    'MockOptions',
    'ProxyOptions',
    'StaticResponse',
    'MockFile',
]

__version__ = '1.0.0'
