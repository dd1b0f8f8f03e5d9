"""
Tests for the MockHub request log.
"""

from unittest.mock import Mock

import httpx
from starlette.requests import Request

from src.mockhub.mock.listener import Listener
from src.mockhub.mock.request_log import RequestLog, RequestLogService, get_request_id


def make_request(method='GET', path='/users', query=b''):
    return Request({
        'type': 'http',
        'method': method,
        'path': path,
        'raw_path': path.encode(),
        'query_string': query,
        'headers': [(b'host', b'localhost:8080')],
        'state': {}
    })


class TestRequestLogService:
    """Test the in-memory request log."""

    def test_records_lifecycle(self):
        log = RequestLogService()

        log.on_request('r1', make_request('POST', '/users', b'x=1'))
        log.on_classify('r1', 'static')
        log.on_response('r1', 201)

        entry = log.get('r1')
        assert entry['method'] == 'POST'
        assert entry['path'] == '/users'
        assert entry['query'] == 'x=1'
        assert entry['port'] == 8080
        assert entry['kind'] == 'static'
        assert entry['status'] == 201
        assert entry['duration_ms'] >= 0

    def test_unknown_ids_are_ignored(self):
        log = RequestLogService()

        log.on_classify('nope', 'proxy')
        log.on_classify(None, 'proxy')
        log.on_response('nope', 200)

        assert log.entries() == []

    def test_eviction(self):
        """Test the oldest entries are dropped once the limit is reached."""
        log = RequestLogService(limit=2)

        for i in range(3):
            log.on_request(f"r{i}", make_request(path=f"/{i}"))

        assert [e['path'] for e in log.entries()] == ['/1', '/2']
        assert log.get('r0') is None
        log.on_response('r0', 200)
        assert all(e['status'] is None for e in log.entries())

    def test_unlimited(self):
        log = RequestLogService(limit=0)
        for i in range(50):
            log.on_request(f"r{i}", make_request())
        assert len(log.entries()) == 50

    def test_entries_are_copies(self):
        log = RequestLogService()
        log.on_request('r1', make_request())

        log.entries()[0]['kind'] = 'tampered'

        assert log.get('r1')['kind'] is None

    def test_clear(self):
        log = RequestLogService()
        log.on_request('r1', make_request())
        log.on_request('r2', make_request())

        assert log.clear() == 2
        assert log.entries() == []
        assert log.get('r1') is None


class TestRequestLogInterface:
    """Test the no-op base class."""

    def test_methods_are_noops(self):
        log = RequestLog()
        log.on_request('r1', make_request())
        log.on_classify('r1', 'static')
        log.on_response('r1', 200)

    def test_get_request_id(self):
        request = make_request()
        assert get_request_id(request) is None
        request.state.request_id = 'abc'
        assert get_request_id(request) == 'abc'


class TestRequestLogMiddleware:
    """Test request log notifications from a live listener."""

    def test_kinds_and_statuses(self, listener, client, request_log):
        listener.add({'uri': '/static', 'response': {'statusCode': 201, 'body': 'ok'}})
        listener.add({'uri': '/proxy', 'proxy': {'target': 'http://localhost:1'}})

        client.get('/static')
        client.get('/proxy')
        client.get('/unknown')

        entries = {e['path']: e for e in request_log.entries() if not e['path'].startswith('/__admin__')}
        assert entries['/static']['kind'] == 'static'
        assert entries['/static']['status'] == 201
        assert entries['/proxy']['kind'] == 'proxy'
        assert entries['/proxy']['status'] == 500
        assert entries['/unknown']['kind'] is None
        assert entries['/unknown']['status'] == 404
        assert len({e['id'] for e in entries.values()}) == 3

    def test_streaming_is_classified(self, listener, client, request_log, wait_for):
        listener.add({'uri': '/s'})

        with client.stream('GET', '/s') as response:
            assert response.status_code == 200

        assert wait_for(lambda: request_log.entries()[-1]['kind'] == 'streaming')

    def test_custom_sink(self, listener_config):
        """Test any RequestLog implementation receives the notifications."""
        sink = Mock(spec=RequestLog)

        with Listener(0, config=listener_config, request_log=sink) as listener:
            listener.add({'uri': '/static', 'response': {'body': 'ok'}})
            response = httpx.get(f"{listener.url}/static", timeout=5.0)

        assert response.status_code == 200
        assert sink.on_request.call_count == 1
        request_id = sink.on_request.call_args[0][0]
        sink.on_classify.assert_called_once_with(request_id, 'static')
        sink.on_response.assert_called_once_with(request_id, 200)

    def test_custom_sink_has_no_requests_endpoint(self, listener_config):
        with Listener(0, config=listener_config, request_log=RequestLog()) as listener:
            response = httpx.get(f"{listener.url}/__admin__/requests", timeout=5.0)

        assert response.status_code == 404
