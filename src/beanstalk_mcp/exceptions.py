"""Error taxonomy for the beanstalk client.

Callers branch on these to decide between retrying and giving up:

- :class:`InvalidArgumentError` is raised before any I/O happens.
- :class:`TransportError` subclasses come from the connection layer.
- :class:`ProtocolError` means the stream may be out of sync.
- :class:`ServerError` means the server is refusing work for now.
"""

from __future__ import annotations


class BeanstalkError(Exception):
    """Base class for every error raised by this package."""


class InvalidArgumentError(BeanstalkError, ValueError):
    """A command argument violates its precondition."""


class TransportError(BeanstalkError):
    """Base class for connection-layer errors."""


class TransportConnectionError(TransportError):
    """No live connection: either closed, or the connect itself failed."""

    def __init__(self, code: int, message: str) -> None:
        super().__init__(f"[{code}] {message}" if code else message)
        self.code = code
        self.message = message


class SocketError(TransportError):
    """An I/O operation on a live connection failed."""


class RemoteClosedError(SocketError):
    """The peer closed the connection in the middle of a read."""


class TransportTimeout(SocketError):
    """A read did not complete within the read timeout."""


class ProtocolError(BeanstalkError):
    """The server answered with something the command did not expect."""

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


class CommandError(ProtocolError):
    """The server rejected the request itself (bad format, job too big...)."""


class PayloadDecodeError(ProtocolError):
    """A job body could not be decoded.

    The job is reserved (or was peeked) all the same, so ``job_id`` and the
    raw ``data`` are kept for the caller to delete, bury or release it.
    """

    def __init__(self, message: str, job_id: int, data: bytes, status: str | None = None) -> None:
        super().__init__(message, status=status)
        self.job_id = job_id
        self.data = data


class ServerError(BeanstalkError):
    """The server cannot serve the request in its current state."""

    def __init__(self, message: str, status: str) -> None:
        super().__init__(message)
        self.status = status
