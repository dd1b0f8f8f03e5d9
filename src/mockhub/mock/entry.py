"""
MockHub Mock Entries

Configuration snapshots for registered mocks and the per-route record the
registry keeps for each of them.
"""

from __future__ import annotations

import importlib
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional, TYPE_CHECKING
from urllib.parse import urlparse

if TYPE_CHECKING:
    from .handlers import MockHandler
    from .streaming import Broadcaster


MOCK_KINDS = ('static', 'dynamic', 'proxy', 'streaming')


def import_handler(path: str) -> Callable:
    """
    Import a dynamic handler from a ``"package.module:function"`` string.

    Args:
        path: Import path with the attribute after a colon

    Returns:
        The referenced callable

    Raises:
        ValueError: If the path is malformed or does not name a callable
    """
    module_name, _, attr = path.partition(':')
    if not module_name or not attr:
        raise ValueError(f"Handler must look like 'module:function', got {path!r}")

    try:
        module = importlib.import_module(module_name)
    except ImportError as e:
        raise ValueError(f"Cannot import handler module {module_name!r}: {e}") from e

    target = module
    for part in attr.split('.'):
        target = getattr(target, part, None)
        if target is None:
            raise ValueError(f"Handler {path!r} not found")

    if not callable(target):
        raise ValueError(f"Handler {path!r} is not callable")
    return target


@dataclass(frozen=True)
class StaticResponse:
    """Canned response served by a static mock."""

    status_code: int = 200
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = ""

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'StaticResponse':
        """Create StaticResponse from dictionary (accepts statusCode or status_code)."""
        if not isinstance(data, dict):
            raise ValueError("response must be a mapping")

        status_code = data.get('status_code', data.get('statusCode', 200))
        headers = data.get('headers') or {}
        if not isinstance(headers, dict):
            raise ValueError("response.headers must be a mapping")

        try:
            status_code = int(status_code)
        except (TypeError, ValueError) as e:
            raise ValueError(f"response.status_code must be an integer, got {status_code!r}") from e

        return cls(
            status_code=status_code,
            headers={str(k): str(v) for k, v in headers.items()},
            body=data.get('body', '')
        )

    def to_dict(self) -> Dict[str, Any]:
        body = self.body
        if isinstance(body, bytes):
            body = body.decode('utf-8', errors='replace')
        return {
            'status_code': self.status_code,
            'headers': dict(self.headers),
            'body': body
        }


@dataclass(frozen=True)
class ProxyOptions:
    """Upstream target and transport options for a proxy mock."""

    target: str
    timeout: float = 30.0
    headers: Dict[str, str] = field(default_factory=dict)  # Added to every forwarded request
    change_origin: bool = False  # Rewrite Host to the target's host
    verify: bool = True
    follow_redirects: bool = False

    @classmethod
    def from_dict(cls, data: Any) -> 'ProxyOptions':
        """Create ProxyOptions from a dictionary or a bare target URL."""
        if isinstance(data, str):
            data = {'target': data}
        if not isinstance(data, dict) or not data.get('target'):
            raise ValueError("proxy requires a target URL")

        headers = data.get('headers') or {}
        if not isinstance(headers, dict):
            raise ValueError("proxy.headers must be a mapping")

        timeout = data.get('timeout', 30.0)
        try:
            timeout = float(timeout)
        except (TypeError, ValueError) as e:
            raise ValueError(f"proxy.timeout must be a number, got {timeout!r}") from e

        return cls(
            target=str(data['target']),
            timeout=timeout,
            headers={str(k): str(v) for k, v in headers.items()},
            change_origin=bool(data.get('change_origin', data.get('changeOrigin', False))),
            verify=bool(data.get('verify', True)),
            follow_redirects=bool(data.get('follow_redirects', False))
        )

    @property
    def target_port(self) -> str:
        """Port of the target URL, for log lines only."""
        parsed = urlparse(self.target)
        if parsed.port:
            return str(parsed.port)
        return '443' if parsed.scheme == 'https' else '80'

    def to_dict(self) -> Dict[str, Any]:
        return {
            'target': self.target,
            'timeout': self.timeout,
            'headers': dict(self.headers),
            'change_origin': self.change_origin,
            'verify': self.verify,
            'follow_redirects': self.follow_redirects
        }


@dataclass(frozen=True)
class MockOptions:
    """
    Immutable configuration of a single mock.

    At most one of ``response``, ``handler`` and ``proxy`` is expected. They are
    checked in that order; a mock with none of them is a streaming mock.

    Example:
        MockOptions(uri='/users', response=StaticResponse(body='[]'))
        MockOptions(uri='/echo', method='POST', handler=echo)
        MockOptions(uri='/api', proxy=ProxyOptions(target='http://localhost:9000'))
        MockOptions(uri='/events')  # streaming
    """

    uri: str
    method: str = "GET"
    response: Optional[StaticResponse] = None
    handler: Optional[Callable] = None
    proxy: Optional[ProxyOptions] = None

    def __post_init__(self):
        if not self.uri or not self.uri.startswith('/'):
            raise ValueError(f"uri must start with '/', got {self.uri!r}")
        object.__setattr__(self, 'method', self.method.upper())

    @property
    def kind(self) -> str:
        """Strategy this mock resolves to."""
        if self.response is not None:
            return 'static'
        elif self.handler is not None:
            return 'dynamic'
        elif self.proxy is not None:
            return 'proxy'
        else:
            return 'streaming'

    @property
    def key(self):
        return (self.uri, self.method)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'MockOptions':
        """
        Create MockOptions from a plain mapping (YAML, JSON or keyword style).

        Args:
            data: Mapping with uri, method and optionally response/handler/proxy

        Returns:
            MockOptions instance

        Raises:
            ValueError: If the mapping is not a valid mock definition
        """
        if not isinstance(data, dict):
            raise ValueError("mock definition must be a mapping")
        if 'uri' not in data:
            raise ValueError("mock definition requires a 'uri'")

        response = data.get('response')
        if response is not None and not isinstance(response, StaticResponse):
            response = StaticResponse.from_dict(response)

        handler = data.get('handler')
        if isinstance(handler, str):
            handler = import_handler(handler)
        elif handler is not None and not callable(handler):
            raise ValueError("handler must be callable or a 'module:function' string")

        proxy = data.get('proxy')
        if proxy is not None and not isinstance(proxy, ProxyOptions):
            proxy = ProxyOptions.from_dict(proxy)

        return cls(
            uri=str(data['uri']),
            method=str(data.get('method', 'GET')),
            response=response,
            handler=handler,
            proxy=proxy
        )

    def to_dict(self) -> Dict[str, Any]:
        """JSON-friendly view of the options."""
        data: Dict[str, Any] = {'uri': self.uri, 'method': self.method}
        if self.response is not None:
            data['response'] = self.response.to_dict()
        if self.handler is not None:
            data['handler'] = f"{self.handler.__module__}:{getattr(self.handler, '__qualname__', repr(self.handler))}"
        if self.proxy is not None:
            data['proxy'] = self.proxy.to_dict()
        return data


@dataclass
class MockEntry:
    """
    Registry record for one (uri, method) pair.

    Holds the options snapshot, the handler resolved from them and the
    broadcaster that owns the attached streaming clients and the chunk buffer.
    """

    options: MockOptions
    handler: 'MockHandler'
    stream: 'Broadcaster'

    @property
    def clients(self) -> List[Any]:
        return self.stream.clients

    @property
    def chunks(self) -> List[Any]:
        return self.stream.chunks

    def to_dict(self) -> Dict[str, Any]:
        """Debug view; attached clients appear only as a count."""
        chunks = [
            c.decode('utf-8', errors='replace') if isinstance(c, bytes) else c
            for c in self.stream.chunks
        ]
        return {
            'options': self.options.to_dict(),
            'chunks': chunks,
            'handler': self.handler.kind,
            'clients_count': self.stream.client_count
        }
