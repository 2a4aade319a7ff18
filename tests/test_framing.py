"""Tests for request/response line framing."""

import pytest

from beanstalk_mcp.exceptions import InvalidArgumentError, ProtocolError
from beanstalk_mcp.protocol.framing import (
    CRLF,
    StatusLine,
    body_length,
    build_request,
    parse_request,
    parse_status_line,
)


def test_build_request_without_body():
    """Verb and arguments are joined by single spaces and end with CRLF."""
    assert build_request("release", (42, 10, 0)) == b"release 42 10 0\r\n"


def test_build_request_no_arguments():
    assert build_request("stats") == b"stats\r\n"


def test_build_request_with_body():
    """The body follows the header line and has its own CRLF."""
    request = build_request("put", (0, 0, 60, 5), b"hello")
    assert request == b"put 0 0 60 5\r\nhello\r\n"


def test_build_request_empty_body():
    """An empty body still gets its terminating CRLF."""
    assert build_request("put", (0, 0, 60, 0), b"") == b"put 0 0 60 0\r\n\r\n"


def test_build_request_rejects_whitespace_in_argument():
    """An argument with a space would shift every following token."""
    with pytest.raises(InvalidArgumentError):
        build_request("use", ("two words",))


def test_build_request_rejects_crlf_in_argument():
    with pytest.raises(InvalidArgumentError):
        build_request("use", ("tube\r\nstats",))


def test_build_request_rejects_crlf_in_body():
    with pytest.raises(InvalidArgumentError):
        build_request("put", (0, 0, 60, 7), b"a\r\nb")


def test_build_request_rejects_empty_argument():
    with pytest.raises(InvalidArgumentError):
        build_request("use", ("",))


def test_parse_request_keeps_order():
    """Parsing a rendered request gives back the same verb and argument order."""
    parsed = parse_request(build_request("release", (7, 3, 1)))
    assert parsed.verb == "release"
    assert parsed.args == ["7", "3", "1"]
    assert parsed.body is None


def test_parse_request_with_body():
    parsed = parse_request(b"put 1 2 3 2\r\nhi\r\n")
    assert parsed.verb == "put"
    assert parsed.args == ["1", "2", "3", "2"]
    assert parsed.body == b"hi"


def test_parse_request_unterminated():
    with pytest.raises(ProtocolError):
        parse_request(b"stats")


def test_parse_status_line():
    line = parse_status_line("RESERVED 12 5")
    assert line.status == "RESERVED"
    assert line.params == ("12", "5")


def test_parse_status_line_without_params():
    line = parse_status_line("TIMED_OUT")
    assert line.status == "TIMED_OUT"
    assert line.params == ()


def test_parse_status_line_empty():
    with pytest.raises(ProtocolError):
        parse_status_line("")


def test_status_line_str():
    assert str(StatusLine("USING", ("emails",))) == "USING emails"


def test_body_length_for_body_statuses():
    """RESERVED and FOUND carry the length second, OK first."""
    assert body_length(parse_status_line("RESERVED 3 11")) == 11
    assert body_length(parse_status_line("FOUND 3 0")) == 0
    assert body_length(parse_status_line("OK 128")) == 128


def test_body_length_for_plain_statuses():
    assert body_length(parse_status_line("INSERTED 4")) is None
    assert body_length(parse_status_line("NOT_FOUND")) is None
    assert body_length(parse_status_line("SOMETHING_NEW 4")) is None


def test_body_length_missing_or_malformed():
    with pytest.raises(ProtocolError):
        body_length(parse_status_line("OK"))
    with pytest.raises(ProtocolError):
        body_length(parse_status_line("RESERVED 3 lots"))
    with pytest.raises(ProtocolError):
        body_length(parse_status_line("OK -1"))


def test_crlf_constant():
    assert CRLF == b"\r\n"
