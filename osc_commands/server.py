"""
Command Server

Owns the listening UDP socket. A dedicated thread reads datagrams and
hands each one, with its own copy of the configuration, to the worker
pool; it never resolves or runs commands itself, so a slow command never
delays the next read.
"""

import logging
import socket
import threading
from typing import Optional, Tuple

from .config import Configuration
from .dispatcher import handle_datagram
from .pool import DEFAULT_WORKERS, WorkerPool

logger = logging.getLogger(__name__)

# Datagrams larger than this are truncated by the receive buffer
MAX_DATAGRAM_SIZE = 64 * 1024
RECV_TIMEOUT = 0.5


class CommandServer:
    """
    UDP receive loop feeding a bounded worker pool.

    Usage:
        server = CommandServer(config, workers=4)
        server.start()
        ...
        server.stop()
    """

    def __init__(self, config: Configuration, workers: int = DEFAULT_WORKERS):
        self._config = config
        self._pool = WorkerPool(size=workers)
        self._sock: Optional[socket.socket] = None
        self._thread: Optional[threading.Thread] = None
        self._running = threading.Event()

    @property
    def is_running(self) -> bool:
        return self._running.is_set()

    @property
    def address(self) -> Tuple[str, int]:
        """Bound (host, port); the real port when configured with 0."""
        if self._sock is None:
            return self._config.bind, self._config.port
        host, port = self._sock.getsockname()[:2]
        return host, port

    @property
    def pool(self) -> WorkerPool:
        return self._pool

    def start(self) -> None:
        """
        Bind the socket and start receiving.

        Raises:
            OSError: If the socket cannot be bound
        """
        if self.is_running:
            return

        family = socket.AF_INET6 if ":" in self._config.bind else socket.AF_INET
        sock = socket.socket(family, socket.SOCK_DGRAM)
        try:
            sock.bind((self._config.bind, self._config.port))
        except OSError:
            sock.close()
            raise
        sock.settimeout(RECV_TIMEOUT)
        self._sock = sock

        self._pool.start()
        self._running.set()
        self._thread = threading.Thread(
            target=self._receive_loop,
            name="OscCommandsReceiver",
            daemon=True,
        )
        self._thread.start()

        host, port = self.address
        logger.info(f"Listening for OSC on {host}:{port} with {self._pool.size} workers")

    def stop(self, timeout: Optional[float] = 5.0) -> None:
        """Stop receiving, then let queued tasks finish."""
        if not self.is_running:
            return

        logger.info("Stopping...")
        self._running.clear()
        if self._thread:
            self._thread.join(timeout=RECV_TIMEOUT * 4)
            self._thread = None
        if self._sock:
            self._sock.close()
            self._sock = None

        self._pool.stop(drain=True, timeout=timeout)
        logger.info("Stopped")

    def _receive_loop(self) -> None:
        sock = self._sock
        while self._running.is_set():
            try:
                data, src = sock.recvfrom(MAX_DATAGRAM_SIZE)
            except socket.timeout:
                continue
            except OSError as exc:
                if not self._running.is_set() or sock.fileno() == -1:
                    break
                logger.error(f"Failed to receive message on UDP port {self.address[1]}: {exc}")
                continue

            self._pool.submit(handle_datagram, self._config.model_copy(deep=True), data, src)
