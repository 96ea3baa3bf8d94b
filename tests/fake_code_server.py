"""TCP server that plays back scripted status output like the code server."""

import socket
import threading
from typing import Optional, Sequence


class FakeCodeServer:
    """Serves a scripted payload to each connecting client.

    The n-th connection receives ``payloads[n]``; connections past the end of
    the list receive the last payload. After sending, the server closes the
    connection unless ``hold_open`` is set, in which case the connection stays
    open until the server is stopped.
    """

    def __init__(self, payloads: Sequence[bytes], hold_open: bool = False, host: str = "127.0.0.1"):
        self._payloads = list(payloads)
        self._hold_open = hold_open
        self._host = host
        self._listener: Optional[socket.socket] = None
        self._clients: list[socket.socket] = []
        self._lock = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stopped = threading.Event()

    @property
    def port(self) -> int:
        if self._listener is None:
            raise RuntimeError("Server not started")
        return self._listener.getsockname()[1]

    @property
    def connection_count(self) -> int:
        with self._lock:
            return len(self._clients)

    def start(self) -> None:
        family = socket.AF_INET6 if ":" in self._host else socket.AF_INET
        self._listener = socket.create_server((self._host, 0), family=family)
        self._listener.settimeout(0.2)
        self._thread = threading.Thread(target=self._play, daemon=True)
        self._thread.start()

    def _play(self) -> None:
        while not self._stopped.is_set():
            try:
                client, _ = self._listener.accept()
            except socket.timeout:
                continue
            except OSError:
                return
            with self._lock:
                payload = self._payloads[min(len(self._clients), len(self._payloads) - 1)]
                self._clients.append(client)
            try:
                client.sendall(payload)
            except OSError:
                pass
            if not self._hold_open:
                client.close()

    def stop(self) -> None:
        """Stop accepting and hang up on every held connection."""
        self._stopped.set()
        if self._thread:
            self._thread.join(timeout=2.0)
        if self._listener:
            self._listener.close()
        with self._lock:
            for client in self._clients:
                client.close()

    def __enter__(self) -> "FakeCodeServer":
        self.start()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self.stop()
