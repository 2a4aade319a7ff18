"""Request and response line framing.

Wire layout::

    request:   VERB[ ARG]*\\r\\n[BODY\\r\\n]
    response:  STATUS[ PARAM]*\\r\\n[BODY\\r\\n]

Tokens are separated by single spaces. When a body follows a response line,
its byte length is one of the line's parameters (see
:data:`~.responses.BODY_LENGTH_PARAM`). A body never contains the delimiter.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from ..exceptions import InvalidArgumentError, ProtocolError
from .responses import BODY_LENGTH_PARAM, Status, is_known

CRLF = b"\r\n"
SEPARATOR = " "


@dataclass
class Request:
    """A request split back into its parts."""

    verb: str
    args: list[str] = field(default_factory=list)
    body: bytes | None = None


@dataclass
class StatusLine:
    """A parsed response line."""

    status: str
    params: tuple[str, ...] = ()

    def __str__(self) -> str:
        return SEPARATOR.join((self.status,) + self.params)


def _check_token(value: str, what: str) -> str:
    if not value:
        raise InvalidArgumentError(f"{what} must not be empty")
    if any(ch.isspace() for ch in value):
        raise InvalidArgumentError(f"{what} must not contain whitespace or line breaks: {value!r}")
    return value


def build_request(verb: str, args: Iterable[object] = (), body: bytes | None = None) -> bytes:
    """Render a request line, plus the body line if there is one.

    Args:
        verb: Protocol keyword, e.g. ``put``.
        args: Arguments in wire order; rendered with ``str()``.
        body: Raw body bytes, sent after the header line.
    """
    tokens = [_check_token(verb, "Verb")]
    tokens.extend(_check_token(str(arg), f"Argument of {verb}") for arg in args)
    request = SEPARATOR.join(tokens).encode("ascii") + CRLF
    if body is not None:
        if CRLF in body:
            raise InvalidArgumentError(f"Body of {verb} must not contain CRLF")
        request += body + CRLF
    return request


def parse_request(data: bytes) -> Request:
    """Split rendered request bytes back into verb, arguments and body."""
    head, sep, rest = data.partition(CRLF)
    if not sep:
        raise ProtocolError("Request is not terminated by CRLF")
    verb, *args = head.decode("ascii").split(SEPARATOR)
    body = None
    if rest:
        if not rest.endswith(CRLF):
            raise ProtocolError("Request body is not terminated by CRLF")
        body = rest[: -len(CRLF)]
    return Request(verb=verb, args=args, body=body)


def parse_status_line(line: str) -> StatusLine:
    """Split a response line (delimiter already stripped) into status and params."""
    if not line or not line.strip():
        raise ProtocolError("Got an empty status line")
    status, *params = line.rstrip("\r\n").split(SEPARATOR)
    if not status:
        raise ProtocolError(f"Malformed status line {line!r}")
    return StatusLine(status=status, params=tuple(params))


def body_length(status_line: StatusLine) -> int | None:
    """Byte length of the body announced by ``status_line``, or None."""
    if not is_known(status_line.status):
        return None
    index = BODY_LENGTH_PARAM.get(Status(status_line.status))
    if index is None:
        return None
    try:
        length = int(status_line.params[index])
    except (IndexError, ValueError) as e:
        raise ProtocolError(
            f"Status line {str(status_line)!r} does not declare a body length",
            status=status_line.status,
        ) from e
    if length < 0:
        raise ProtocolError(
            f"Negative body length in {str(status_line)!r}", status=status_line.status
        )
    return length
