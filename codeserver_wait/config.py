"""Endpoint and retry configuration for the code server readiness probe."""

import os
from dataclasses import dataclass
from typing import Optional

MAX_CONNECT_ERRORS = 100
READY_MARKER = "The code server is ready"

DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 9876

ENV_HOST = "CODESERVER_WAIT_HOST"
ENV_PORT = "CODESERVER_WAIT_PORT"
ENV_SOCKET = "CODESERVER_WAIT_SOCKET"
ENV_RETRY_DELAY = "CODESERVER_WAIT_RETRY_DELAY"


class ConfigError(ValueError):
    """Raised when an endpoint or retry setting cannot be parsed."""


@dataclass(frozen=True)
class Endpoint:
    """Address of the code server status endpoint.

    Either a TCP host/port pair or, when ``path`` is set, a Unix domain socket.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    path: Optional[str] = None

    @property
    def address(self):
        """Socket path, or the ``(host, port)`` pair for a TCP endpoint."""
        if self.path is not None:
            return self.path
        return (self.host, self.port)

    def __str__(self) -> str:
        if self.path is not None:
            return self.path
        if ":" in self.host:
            return f"[{self.host}]:{self.port}"
        return f"{self.host}:{self.port}"


def parse_port(value: str) -> int:
    try:
        port = int(value)
    except ValueError:
        raise ConfigError(f"invalid port: {value!r}") from None
    if not 0 < port < 65536:
        raise ConfigError(f"port out of range: {port}")
    return port


def parse_endpoint(spec: str) -> Endpoint:
    """Parse ``host:port``, ``[ipv6]:port``, ``:port``, ``port`` or a Unix socket path."""
    if "/" in spec:
        return Endpoint(path=spec)
    host, sep, port = spec.rpartition(":")
    if not sep:
        return Endpoint(port=parse_port(spec))
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    return Endpoint(host=host or DEFAULT_HOST, port=parse_port(port))


def endpoint_from_env(environ=None) -> Endpoint:
    """Build the endpoint from the environment, falling back to the defaults."""
    env = os.environ if environ is None else environ
    path = env.get(ENV_SOCKET)
    if path:
        return Endpoint(path=path)
    host = env.get(ENV_HOST) or DEFAULT_HOST
    port = env.get(ENV_PORT)
    return Endpoint(host=host, port=parse_port(port) if port else DEFAULT_PORT)


def retry_delay_from_env(environ=None) -> float:
    """Seconds to sleep between connection attempts (0 retries immediately)."""
    env = os.environ if environ is None else environ
    value = env.get(ENV_RETRY_DELAY)
    if not value:
        return 0.0
    try:
        delay = float(value)
    except ValueError:
        raise ConfigError(f"invalid {ENV_RETRY_DELAY}: {value!r}") from None
    if delay < 0:
        raise ConfigError(f"{ENV_RETRY_DELAY} must not be negative")
    return delay
