"""Connection interface shared by both transport modes.

A :class:`Connection` owns at most one socket. It is *active* exactly when
that socket exists; every read or write on an inactive connection fails with
:class:`~beanstalk_mcp.exceptions.TransportConnectionError` before any I/O.

Subclasses only supply the mode-specific primitives (``_attach``,
``_detach``, ``_send``, ``_recv``, ``_recv_line``). Write retry, reconnect
and error mapping live here, so both modes behave the same to callers.
"""

from __future__ import annotations

import logging
import socket
from abc import ABC, abstractmethod
from contextlib import contextmanager
from typing import Callable, Iterator

from ..config import DEFAULT_CONNECT_TIMEOUT, DEFAULT_HOST, DEFAULT_PORT, ConnectionConfig
from ..exceptions import (
    ProtocolError,
    SocketError,
    TransportConnectionError,
    TransportTimeout,
)

logger = logging.getLogger(__name__)

WRITE_RETRIES = 8
CHUNK_SIZE = 8192
MAX_PACKAGE_LENGTH = 2 * 1024 * 1024

SocketFactory = Callable[[tuple, float], socket.socket]
ReconnectListener = Callable[["Connection"], None]


class Connection(ABC):
    """A single blocking connection to a beanstalkd server.

    Usage::

        conn = SocketConnection("localhost", 11300)
        conn.connect()
        conn.write(b"stats\\r\\n")
        status = conn.read_line()
        conn.disconnect()
    """

    mode = ""
    write_retries = WRITE_RETRIES

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        port: int = DEFAULT_PORT,
        timeout: float = DEFAULT_CONNECT_TIMEOUT,
        read_timeout: float | None = None,
        persistent: bool = True,
        socket_factory: SocketFactory | None = None,
    ) -> None:
        self._host = host
        self._port = port
        self._timeout = timeout
        self._read_timeout = read_timeout
        self._persistent = persistent
        self._socket_factory = socket_factory or socket.create_connection
        self._sock: socket.socket | None = None
        self._reconnected = False
        self._listeners: list[ReconnectListener] = []

    @classmethod
    def from_config(
        cls, config: ConnectionConfig, socket_factory: SocketFactory | None = None
    ) -> Connection:
        return cls(
            host=config.host,
            port=config.port,
            timeout=config.timeout,
            read_timeout=config.read_timeout,
            persistent=config.persistent,
            socket_factory=socket_factory,
        )

    def __repr__(self) -> str:
        state = "active" if self.is_active() else "inactive"
        return f"{type(self).__name__}({self.target}, {state})"

    def __enter__(self) -> Connection:
        self.connect()
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    # ─── INTROSPECTION ───────────────────────────────────────────────

    @property
    def host(self) -> str:
        return self._host

    @property
    def port(self) -> int:
        return self._port

    @property
    def timeout(self) -> float:
        return self._timeout

    @property
    def read_timeout(self) -> float | None:
        return self._read_timeout

    @property
    def target(self) -> str:
        return f"{self._host}:{self._port}"

    def is_active(self) -> bool:
        return self._sock is not None

    def is_persistent(self) -> bool:
        return self._persistent

    # ─── LIFECYCLE ───────────────────────────────────────────────────

    def connect(self) -> None:
        """Open the connection if it is not open yet.

        Raises:
            TransportConnectionError: With the OS error code and message.
        """
        if self.is_active():
            return
        try:
            self._open()
        except OSError as e:
            self._sock = None
            raise TransportConnectionError(
                e.errno or 0, f"Unable to connect to {self.target}: {e.strerror or e}"
            ) from e
        logger.info("Connected to %s (%s mode)", self.target, self.mode)

    def disconnect(self) -> bool:
        """Close the connection. Safe to call repeatedly.

        Returns:
            Whether the connection is now inactive.
        """
        if self._sock is not None:
            self._drop()
            logger.info("Disconnected from %s", self.target)
        return not self.is_active()

    def reconnect(self) -> bool:
        """Replace the socket with a fresh one to the same host and port.

        Raises:
            SocketError: If the new connection cannot be opened.
        """
        self._drop()
        try:
            self._open()
        except OSError as e:
            raise SocketError(f"Reconnect to {self.target} failed: {e}") from e

        self._reconnected = True
        logger.info("Reconnected to %s", self.target)
        for listener in list(self._listeners):
            listener(self)
        return True

    def is_reconnected(self) -> bool:
        """Whether a reconnect happened since the last call. Clears the flag."""
        reconnected, self._reconnected = self._reconnected, False
        return reconnected

    def add_reconnect_listener(self, listener: ReconnectListener) -> None:
        """Call ``listener(connection)`` after every successful reconnect."""
        self._listeners.append(listener)

    # ─── I/O ─────────────────────────────────────────────────────────

    def write(self, data: bytes) -> bool:
        """Write all of ``data``.

        A failed attempt (send error, or :attr:`write_retries` low-level
        sends without finishing) is followed by exactly one reconnect and
        one full resend.

        Returns:
            True if the data went out over a new connection, in which case
            the server may have seen the request twice.

        Raises:
            TransportConnectionError: If the connection is not active.
            SocketError: If the resend after the reconnect fails too.
        """
        self._require_active("write into")
        try:
            self._write_all(data)
            return False
        except SocketError as e:
            logger.warning("Write to %s failed (%s), reconnecting", self.target, e)

        self.reconnect()
        try:
            self._write_all(data)
        except SocketError as e:
            self._drop()
            raise SocketError(
                f"Unable to write to {self.target} after reconnect "
                f"(retry budget {self.write_retries}): {e}"
            ) from e
        return True

    def read(self, size: int | None = None) -> bytes:
        """Read the next available chunk, at most ``size`` bytes."""
        self._require_active("read from")
        with self._read_guard():
            return self._recv(size or CHUNK_SIZE)

    def read_line(self, max_length: int | None = None) -> str:
        """Read up to the next CRLF and return the line without it.

        Args:
            max_length: Stop after this many bytes (delimiter included) even
                if no delimiter was seen.

        Raises:
            RemoteClosedError: The peer hung up before a delimiter arrived.
        """
        self._require_active("read from")
        with self._read_guard():
            line = self._recv_line(max_length)
        return line.decode("utf-8", errors="replace")

    def read_exact(self, length: int) -> bytes:
        """Read exactly ``length`` bytes."""
        buf = bytearray()
        while len(buf) < length:
            buf += self.read(length - len(buf))
        return bytes(buf)

    # ─── INTERNALS ───────────────────────────────────────────────────

    def _open(self) -> None:
        sock = self._socket_factory((self._host, self._port), self._timeout)
        try:
            if self._persistent:
                sock.setsockopt(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)
            self._attach(sock)
        except OSError:
            sock.close()
            raise
        self._sock = sock

    def _drop(self) -> None:
        if self._sock is None:
            return
        try:
            self._detach()
            self._sock.close()
        except OSError as e:
            logger.warning("Error closing connection to %s: %s", self.target, e)
        finally:
            self._sock = None

    def _require_active(self, action: str) -> None:
        if self._sock is None:
            raise TransportConnectionError(0, f"Unable to {action} closed connection to {self.target}")

    def _write_all(self, data: bytes) -> None:
        view = memoryview(data)
        total = len(view)
        sent = 0
        attempts = 0
        while sent < total:
            if attempts >= self.write_retries:
                raise SocketError(
                    f"Gave up writing to {self.target} after {attempts} retries "
                    f"({sent}/{total} bytes sent)"
                )
            attempts += 1
            try:
                sent += self._send(view[sent:])
            except OSError as e:
                raise SocketError(f"Send to {self.target} failed: {e}") from e

    @contextmanager
    def _read_guard(self) -> Iterator[None]:
        # A failed read leaves the stream at an unknown position.
        try:
            yield
        except (SocketError, ProtocolError):
            self._drop()
            raise
        except socket.timeout as e:
            self._drop()
            raise TransportTimeout(
                f"Read from {self.target} timed out after {self._read_timeout}s"
            ) from e
        except OSError as e:
            self._drop()
            raise SocketError(f"Read from {self.target} failed: {e}") from e

    @abstractmethod
    def _attach(self, sock: socket.socket) -> None:
        """Prepare mode-specific state for a freshly opened socket."""

    @abstractmethod
    def _detach(self) -> None:
        """Release mode-specific state before the socket is closed."""

    @abstractmethod
    def _send(self, data: memoryview) -> int:
        """One low-level send; returns the number of bytes accepted.

        Blocks until the peer accepts the data, at most the connect timeout
        (raising ``socket.timeout``). A short count uses up one retry.
        """

    @abstractmethod
    def _recv(self, size: int) -> bytes:
        """Return 1 to ``size`` bytes, blocking until at least one arrives."""

    @abstractmethod
    def _recv_line(self, max_length: int | None) -> bytes:
        """Return the next line without its CRLF."""
