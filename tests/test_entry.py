"""
Tests for MockHub Mock Entries

Tests mock configuration parsing and the entry debug view:
- Strategy resolution order (static, dynamic, proxy, streaming)
- Parsing from plain mappings
- Handler import strings
- Proxy target parsing
- Snapshot never exposing attached clients
"""

import json

import pytest

from src.mockhub.mock.entry import (
    MockEntry,
    MockOptions,
    ProxyOptions,
    StaticResponse,
    import_handler
)
from src.mockhub.mock.handlers import resolve_handler
from src.mockhub.mock.streaming import Broadcaster


def echo(request):
    return None


class SilentClient:
    def write(self, chunk):
        pass


class TestMockOptionsKind:
    """Test which strategy a configuration resolves to."""

    def test_response_is_static(self):
        options = MockOptions(uri='/s', response=StaticResponse(body='ok'))
        assert options.kind == 'static'

    def test_handler_is_dynamic(self):
        options = MockOptions(uri='/d', handler=echo)
        assert options.kind == 'dynamic'

    def test_proxy_is_proxy(self):
        options = MockOptions(uri='/p', proxy=ProxyOptions(target='http://localhost:9000'))
        assert options.kind == 'proxy'

    def test_nothing_is_streaming(self):
        options = MockOptions(uri='/events')
        assert options.kind == 'streaming'

    def test_first_match_wins(self):
        """Test that response beats handler, and handler beats proxy."""
        options = MockOptions(
            uri='/x',
            response=StaticResponse(),
            handler=echo,
            proxy=ProxyOptions(target='http://localhost:9000')
        )
        assert options.kind == 'static'

        options = MockOptions(uri='/x', handler=echo, proxy=ProxyOptions(target='http://localhost:9000'))
        assert options.kind == 'dynamic'


class TestMockOptions:
    """Test MockOptions construction and parsing."""

    def test_method_upper_cased(self):
        assert MockOptions(uri='/a', method='post').method == 'POST'

    def test_default_method_is_get(self):
        assert MockOptions(uri='/a').method == 'GET'

    def test_uri_must_start_with_slash(self):
        with pytest.raises(ValueError):
            MockOptions(uri='users')

    def test_options_are_immutable(self):
        options = MockOptions(uri='/a')
        with pytest.raises(AttributeError):
            options.uri = '/b'

    def test_from_dict_static(self):
        """Test parsing a static mock with camelCase status code."""
        options = MockOptions.from_dict({
            'uri': '/static',
            'method': 'GET',
            'response': {'statusCode': 201, 'headers': {'X-Test': 1}, 'body': 'ok'}
        })

        assert options.kind == 'static'
        assert options.response.status_code == 201
        assert options.response.headers == {'X-Test': '1'}
        assert options.response.body == 'ok'

    def test_from_dict_snake_case_status(self):
        options = MockOptions.from_dict({'uri': '/s', 'response': {'status_code': 404}})
        assert options.response.status_code == 404

    def test_from_dict_default_status(self):
        options = MockOptions.from_dict({'uri': '/s', 'response': {'body': 'x'}})
        assert options.response.status_code == 200

    def test_from_dict_proxy_string(self):
        """Test that a bare proxy target string is accepted."""
        options = MockOptions.from_dict({'uri': '/p', 'proxy': 'http://localhost:1'})
        assert options.proxy.target == 'http://localhost:1'

    def test_from_dict_proxy_options(self):
        options = MockOptions.from_dict({
            'uri': '/p',
            'proxy': {'target': 'http://upstream:9000', 'timeout': 2, 'changeOrigin': True}
        })

        assert options.proxy.timeout == 2.0
        assert options.proxy.change_origin is True

    def test_from_dict_proxy_requires_target(self):
        with pytest.raises(ValueError):
            MockOptions.from_dict({'uri': '/p', 'proxy': {'timeout': 1}})

    def test_from_dict_handler_callable(self):
        options = MockOptions.from_dict({'uri': '/d', 'handler': echo})
        assert options.handler is echo

    def test_from_dict_handler_import_string(self):
        options = MockOptions.from_dict({'uri': '/d', 'handler': 'json:dumps'})
        assert options.handler is json.dumps

    def test_from_dict_handler_not_callable(self):
        with pytest.raises(ValueError):
            MockOptions.from_dict({'uri': '/d', 'handler': 42})

    def test_from_dict_requires_uri(self):
        with pytest.raises(ValueError):
            MockOptions.from_dict({'method': 'GET'})

    def test_from_dict_streaming(self):
        options = MockOptions.from_dict({'uri': '/events'})
        assert options.kind == 'streaming'

    def test_to_dict(self):
        options = MockOptions.from_dict({
            'uri': '/d',
            'method': 'post',
            'handler': echo,
        })
        data = options.to_dict()

        assert data['uri'] == '/d'
        assert data['method'] == 'POST'
        assert data['handler'].endswith(':echo')
        assert 'response' not in data

    def test_static_to_dict_decodes_bytes(self):
        data = StaticResponse(body=b'raw').to_dict()
        assert data['body'] == 'raw'


class TestImportHandler:
    """Test resolving handler import strings."""

    def test_nested_attribute(self):
        assert import_handler('json:JSONDecoder.decode') is json.JSONDecoder.decode

    def test_malformed(self):
        with pytest.raises(ValueError):
            import_handler('json.dumps')

    def test_missing_module(self):
        with pytest.raises(ValueError):
            import_handler('no_such_module_xyz:func')

    def test_missing_attribute(self):
        with pytest.raises(ValueError):
            import_handler('json:no_such_function')

    def test_not_callable(self):
        with pytest.raises(ValueError):
            import_handler('json:__name__')


class TestProxyOptions:
    """Test ProxyOptions."""

    def test_target_port(self):
        assert ProxyOptions(target='http://localhost:9000').target_port == '9000'

    def test_target_port_defaults(self):
        assert ProxyOptions(target='http://example.com').target_port == '80'
        assert ProxyOptions(target='https://example.com').target_port == '443'

    def test_headers_must_be_mapping(self):
        with pytest.raises(ValueError, match="headers"):
            ProxyOptions.from_dict({'target': 'http://h', 'headers': ['X-A: 1']})

    def test_timeout_must_be_number(self):
        with pytest.raises(ValueError, match="timeout"):
            ProxyOptions.from_dict({'target': 'http://h', 'timeout': 'soon'})
        with pytest.raises(ValueError, match="timeout"):
            ProxyOptions.from_dict({'target': 'http://h', 'timeout': None})


class TestStaticResponse:
    """Test StaticResponse parsing."""

    def test_status_code_null(self):
        with pytest.raises(ValueError, match="status_code"):
            StaticResponse.from_dict({'statusCode': None})

    def test_status_code_not_a_number(self):
        with pytest.raises(ValueError, match="status_code"):
            StaticResponse.from_dict({'status_code': 'ok'})

    def test_status_code_string_number(self):
        assert StaticResponse.from_dict({'statusCode': '201'}).status_code == 201


class TestMockEntry:
    """Test MockEntry debug view."""

    def test_to_dict_counts_clients(self):
        """Test the snapshot shows a client count and no client objects."""
        options = MockOptions(uri='/events')
        stream = Broadcaster()
        entry = MockEntry(options=options, handler=resolve_handler(options), stream=stream)

        client = SilentClient()
        stream.attach(client)
        stream.publish(b'chunk')

        data = entry.to_dict()

        assert data['clients_count'] == 1
        assert 'clients' not in data
        assert data['chunks'] == ['chunk']
        assert data['handler'] == 'streaming'
        assert data['options'] == {'uri': '/events', 'method': 'GET'}
        json.dumps(data)

    def test_entry_views(self):
        options = MockOptions(uri='/events')
        stream = Broadcaster()
        entry = MockEntry(options=options, handler=resolve_handler(options), stream=stream)

        stream.publish('a')

        assert entry.chunks == ['a']
        assert entry.clients == []
