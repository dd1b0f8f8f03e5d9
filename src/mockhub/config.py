"""
MockHub Configuration

Runtime settings shared by every listener.
"""

from dataclasses import dataclass


@dataclass
class ListenerConfig:
    """Configuration for listener behavior."""

    # Server options
    host: str = "127.0.0.1"
    log_level: str = "info"
    access_log: bool = False  # uvicorn access log; the request log covers this

    # Admin API
    admin_enabled: bool = True
    admin_prefix: str = "/__admin__"

    # Request log
    request_log_limit: int = 1000  # Maximum entries kept (0 = unlimited)

    # Lifecycle
    startup_timeout: float = 5.0  # Seconds to wait for the server to accept connections
    shutdown_timeout: float = 5.0  # Seconds to wait for a graceful stop before forcing it
