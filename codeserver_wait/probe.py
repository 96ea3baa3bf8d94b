"""Readiness probe for the code server.

Connects to the status endpoint, retrying on connection errors, and reads
the first line as a JSON status record. If the record says the server is
ready the probe is done; otherwise every following line is echoed to stdout
until one contains the readiness marker.
"""

import enum
import json
import sys
import time
from collections.abc import Callable
from typing import Any, Iterator, TextIO

from codeserver_wait.config import MAX_CONNECT_ERRORS, READY_MARKER, Endpoint
from codeserver_wait.status_client import StatusConnection

EXIT_READY = 0
EXIT_GAVE_UP = 1
EXIT_BAD_STATUS = 2


class StatusDecodeError(ValueError):
    """Raised when the first status line is not a JSON object."""


class ProbeState(enum.Enum):
    CONNECTING = "connecting"
    AWAITING_FIRST_LINE = "awaiting-first-line"
    FOLLOWING = "following"
    READY = "ready"
    FAILED = "failed"


def parse_status(line: str) -> dict[str, Any]:
    """Decode the status record sent as the first line of a connection."""
    try:
        status = json.loads(line)
    except ValueError as e:
        raise StatusDecodeError(f"Malformed status line {line!r}: {e}") from e
    if not isinstance(status, dict):
        raise StatusDecodeError(f"Status line is not a JSON object: {line!r}")
    return status


class ReadinessProbe:
    """Waits for the code server to report that it is ready."""

    def __init__(
        self,
        endpoint: Endpoint,
        max_errors: int = MAX_CONNECT_ERRORS,
        retry_delay: float = 0.0,
        connection_factory: Callable[[Endpoint], StatusConnection] = StatusConnection,
        output: TextIO | None = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.endpoint = endpoint
        self.max_errors = max_errors
        self.retry_delay = retry_delay
        self.errors = 0
        self.state = ProbeState.CONNECTING
        self._connection_factory = connection_factory
        self._output = output
        self._sleep = sleep

    def run(self) -> int:
        """Connect and wait until the server is ready.

        Only failures to connect or to read from the connection count against
        the retry budget; errors writing the echoed lines propagate.

        Returns:
            EXIT_READY once readiness is seen, EXIT_GAVE_UP once more than
            ``max_errors`` connection errors have occurred.

        Raises:
            StatusDecodeError: if the first line of a connection is malformed.
        """
        while True:
            self.state = ProbeState.CONNECTING
            connection = self._connection_factory(self.endpoint)
            try:
                if self._open(connection) and self._watch(connection):
                    self.state = ProbeState.READY
                    return EXIT_READY
            finally:
                connection.close()

            # A stream that ends before readiness counts as a connection error.
            self.errors += 1
            if self.errors > self.max_errors:
                self.state = ProbeState.FAILED
                print(
                    f"Gave up waiting for the code server at {self.endpoint} "
                    f"after {self.errors} connection errors",
                    file=sys.stderr,
                )
                return EXIT_GAVE_UP
            if self.retry_delay > 0:
                self._sleep(self.retry_delay)

    def _open(self, connection: StatusConnection) -> bool:
        try:
            connection.connect()
        except OSError:
            return False
        self.state = ProbeState.AWAITING_FIRST_LINE
        return True

    def _receive(self, connection: StatusConnection) -> Iterator[str]:
        """Yield lines from the connection, stopping quietly on a read error."""
        lines = connection.lines()
        while True:
            try:
                line = next(lines)
            except (StopIteration, OSError):
                return
            yield line

    def _watch(self, connection: StatusConnection) -> bool:
        """Read lines from an open connection.

        ``ready`` is tested for Python truthiness, so ``[]`` and ``{}`` count
        as not ready.

        Returns True when readiness is seen, False if the stream ended first.
        """
        output = self._output if self._output is not None else sys.stdout
        for line in self._receive(connection):
            if self.state is ProbeState.AWAITING_FIRST_LINE:
                if parse_status(line).get("ready"):
                    return True
                self.state = ProbeState.FOLLOWING
                continue

            print(line, file=output, flush=True)
            if READY_MARKER in line:
                return True
        return False
