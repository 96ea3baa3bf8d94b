"""Line-oriented client for the code server status endpoint."""

import re
import socket
from typing import Iterator, Optional

from codeserver_wait.config import Endpoint

RECV_SIZE = 4096

_LINE_END = re.compile(rb"\r\n?|\n")


class LineSplitter:
    """Incrementally splits a byte stream into decoded text lines.

    ``\\r\\n``, ``\\n`` and a lone ``\\r`` each end a line. A ``\\r`` in the
    last byte fed so far is held back until the next chunk shows whether a
    ``\\n`` follows. Only newly fed bytes are scanned, so an unterminated line
    of any length costs time proportional to its size.
    """

    def __init__(self):
        self._buffer = bytearray()
        self._scanned = 0

    @property
    def pending(self) -> bytes:
        """Bytes received but not yet part of a complete line."""
        return bytes(self._buffer)

    def feed(self, data: bytes) -> list[str]:
        """Add received bytes and return the lines they complete."""
        self._buffer += data
        return self._split(final=False)

    def finish(self) -> list[str]:
        """Flush the trailing unterminated line at end of stream."""
        lines = self._split(final=True)
        if self._buffer:
            lines.append(_decode(self._buffer))
            self._buffer.clear()
        self._scanned = 0
        return lines

    def _split(self, final: bool) -> list[str]:
        buffer = self._buffer
        lines = []
        start = 0
        resume = len(buffer)
        match = _LINE_END.search(buffer, self._scanned)
        while match is not None:
            if match.end() == len(buffer) and match.group() == b"\r" and not final:
                resume = match.start()
                break
            lines.append(_decode(buffer[start:match.start()]))
            start = match.end()
            match = _LINE_END.search(buffer, start)

        del buffer[:start]
        self._scanned = max(resume - start, 0)
        return lines


def _decode(data) -> str:
    return bytes(data).decode("utf-8", errors="replace")


class StatusConnection:
    """A single connection to the code server status endpoint."""

    def __init__(self, endpoint: Endpoint):
        self.endpoint = endpoint
        self._socket: Optional[socket.socket] = None

    def connect(self) -> None:
        """Open the connection.

        TCP endpoints go through ``socket.create_connection`` so that host
        names resolving to IPv6 addresses work as well as IPv4 ones.

        Raises:
            OSError: if the endpoint refused or could not be reached.
        """
        if self.endpoint.path is None:
            self._socket = socket.create_connection(self.endpoint.address)
            return

        sock = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
        try:
            sock.connect(self.endpoint.path)
        except OSError:
            sock.close()
            raise
        self._socket = sock

    def lines(self) -> Iterator[str]:
        """Yield text lines until the server closes the stream.

        Raises:
            OSError: if the connection fails while reading.
        """
        if self._socket is None:
            raise RuntimeError("Not connected")
        splitter = LineSplitter()
        while True:
            data = self._socket.recv(RECV_SIZE)
            if not data:
                break
            yield from splitter.feed(data)
        yield from splitter.finish()

    def close(self) -> None:
        sock, self._socket = self._socket, None
        if sock is not None:
            sock.close()
