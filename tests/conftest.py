"""
Shared fixtures for MockHub tests.
"""

import time

import httpx
import pytest

from src.mockhub.config import ListenerConfig
from src.mockhub.mock.listener import Listener
from src.mockhub.mock.request_log import RequestLogService


@pytest.fixture
def listener_config():
    """Quiet listener configuration."""
    return ListenerConfig(log_level='warning', shutdown_timeout=5.0)


@pytest.fixture
def request_log():
    """In-memory request log."""
    return RequestLogService(limit=100)


@pytest.fixture
def listener(listener_config, request_log):
    """Listener on a free port, destroyed after the test."""
    listener = Listener(0, config=listener_config, request_log=request_log)
    yield listener
    listener.destroy()


@pytest.fixture
def upstream(listener_config):
    """Second listener used as a proxy target."""
    upstream = Listener(0, config=listener_config)
    yield upstream
    upstream.destroy()


@pytest.fixture
def client(listener):
    """HTTP client bound to the listener."""
    with httpx.Client(base_url=listener.url, timeout=5.0) as client:
        yield client


@pytest.fixture
def wait_for():
    """Poll a predicate until it holds or the timeout expires."""
    def _wait_for(predicate, timeout=5.0, interval=0.01):
        deadline = time.monotonic() + timeout
        while time.monotonic() < deadline:
            if predicate():
                return True
            time.sleep(interval)
        return predicate()
    return _wait_for


@pytest.fixture
def read_exactly():
    """Read ``size`` bytes from a raw byte iterator of a streaming response."""
    def _read_exactly(chunks, size):
        data = b''
        while len(data) < size:
            data += next(chunks)
        return data
    return _read_exactly
