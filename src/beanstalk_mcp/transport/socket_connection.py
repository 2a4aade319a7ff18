"""Framed, event-driven socket mode.

The socket is non-blocking and waited on through a :mod:`selectors`
selector. Incoming bytes collect in a buffer that is split on CRLF, so a
status line and the body that follows it may arrive in any chunking.
"""

from __future__ import annotations

import selectors
import socket
import time

from ..exceptions import ProtocolError, RemoteClosedError, TransportTimeout
from ..protocol.framing import CRLF
from .base import CHUNK_SIZE, MAX_PACKAGE_LENGTH, Connection


class SocketConnection(Connection):
    """Connection that reads through a delimiter-aware receive buffer."""

    mode = "socket"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._selector: selectors.BaseSelector | None = None
        self._buffer = bytearray()

    def _attach(self, sock: socket.socket) -> None:
        sock.setblocking(False)
        self._selector = selectors.DefaultSelector()
        self._selector.register(sock, selectors.EVENT_READ)
        self._buffer = bytearray()

    def _detach(self) -> None:
        if self._selector is not None:
            self._selector.close()
            self._selector = None
        self._buffer = bytearray()

    def _wait(self, events: int, timeout: float | None) -> bool:
        self._selector.modify(self._sock, events)
        return bool(self._selector.select(timeout))

    def _send(self, data: memoryview) -> int:
        deadline = time.monotonic() + self._timeout
        sent = 0
        while sent < len(data):
            try:
                sent += self._sock.send(data[sent:])
            except BlockingIOError:
                remaining = deadline - time.monotonic()
                if remaining <= 0 or not self._wait(selectors.EVENT_WRITE, remaining):
                    raise socket.timeout(
                        f"{self.target} not writable within {self._timeout}s"
                    ) from None
        return sent

    def _fill(self) -> None:
        while True:
            if not self._wait(selectors.EVENT_READ, self._read_timeout):
                raise TransportTimeout(
                    f"No data from {self.target} within {self._read_timeout}s"
                )
            try:
                chunk = self._sock.recv(CHUNK_SIZE)
            except BlockingIOError:
                continue
            if not chunk:
                raise RemoteClosedError(
                    f"Connection closed by remote {self.target} "
                    f"({len(self._buffer)} unread bytes)"
                )
            self._buffer += chunk
            return

    def _recv(self, size: int) -> bytes:
        if not self._buffer:
            self._fill()
        chunk = bytes(self._buffer[:size])
        del self._buffer[:size]
        return chunk

    def _take(self, length: int, skip: int = 0) -> bytes:
        chunk = bytes(self._buffer[:length])
        del self._buffer[: length + skip]
        return chunk

    def _recv_line(self, max_length: int | None) -> bytes:
        scanned = 0
        while True:
            # CR may be the last byte of the previous chunk
            index = self._buffer.find(CRLF, max(scanned - 1, 0))
            if index != -1 and (max_length is None or index + len(CRLF) <= max_length):
                return self._take(index, skip=len(CRLF))
            if max_length is not None and len(self._buffer) >= max_length:
                return self._take(max_length)
            if len(self._buffer) > MAX_PACKAGE_LENGTH:
                raise ProtocolError(
                    f"No line delimiter from {self.target} within {MAX_PACKAGE_LENGTH} bytes"
                )
            scanned = len(self._buffer)
            self._fill()
