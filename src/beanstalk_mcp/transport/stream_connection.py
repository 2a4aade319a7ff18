"""Classic blocking-stream mode.

The socket stays in blocking mode with the read timeout applied, and reads
go through a buffered file object. Lines are read with ``readline`` and
retried until the CRLF delimiter or end of stream.
"""

from __future__ import annotations

import io
import socket

from ..exceptions import ProtocolError, RemoteClosedError
from ..protocol.framing import CRLF
from .base import MAX_PACKAGE_LENGTH, Connection


class StreamConnection(Connection):
    """Connection that reads through ``socket.makefile``."""

    mode = "stream"

    def __init__(self, *args, **kwargs) -> None:
        super().__init__(*args, **kwargs)
        self._reader: io.BufferedIOBase | None = None

    def _attach(self, sock: socket.socket) -> None:
        sock.settimeout(self._read_timeout)
        self._reader = sock.makefile("rb")

    def _detach(self) -> None:
        if self._reader is not None:
            self._reader.close()
            self._reader = None

    def _send(self, data: memoryview) -> int:
        # writes are bounded by the connect timeout, reads by the read timeout
        self._sock.settimeout(self._timeout)
        try:
            self._sock.sendall(data)
        finally:
            self._sock.settimeout(self._read_timeout)
        return len(data)

    def _recv(self, size: int) -> bytes:
        chunk = self._reader.read1(size)
        if not chunk:
            raise RemoteClosedError(f"Connection closed by remote {self.target}")
        return chunk

    def _recv_line(self, max_length: int | None) -> bytes:
        limit = MAX_PACKAGE_LENGTH if max_length is None else max_length
        line = b""
        # readline stops at LF; a bare LF inside the line is not the delimiter
        while not line.endswith(CRLF):
            remaining = limit - len(line)
            if remaining <= 0:
                if max_length is None:
                    raise ProtocolError(
                        f"No line delimiter from {self.target} within {MAX_PACKAGE_LENGTH} bytes"
                    )
                return line
            chunk = self._reader.readline(remaining)
            if not chunk:
                raise RemoteClosedError(
                    f"Connection closed by remote {self.target} before line delimiter "
                    f"({len(line)} bytes read)"
                )
            line += chunk
        return line[: -len(CRLF)]
