"""
MockHub Errors

Exception types raised (or translated) by the mock listener core.
"""


class MockHubError(Exception):
    """Base class for MockHub errors."""


class RouteNotFound(MockHubError, KeyError):
    """No mock is registered for the requested route."""

    def __init__(self, uri: str, method: str = 'GET', port=None):
        self.uri = uri
        self.method = method
        self.port = port
        location = f"{port}{uri}" if port is not None else uri
        super().__init__(f"Mock does not exist {method} {location}")

    def __str__(self) -> str:
        # KeyError would quote the message
        return self.args[0]


class UpstreamForwardingFailure(MockHubError):
    """The proxy target could not be reached."""


class ClientWriteFailure(MockHubError):
    """A chunk could not be handed to an attached streaming client."""
