"""Tests for the client orchestration against a mocked connection."""

from unittest.mock import MagicMock, call

import pytest

from beanstalk_mcp.client import Client
from beanstalk_mcp.exceptions import (
    CommandError,
    InvalidArgumentError,
    PayloadDecodeError,
    ProtocolError,
    ServerError,
    SocketError,
)
from beanstalk_mcp.protocol.commands import MAX_PAYLOAD_SIZE, MAX_PRIORITY
from beanstalk_mcp.protocol.encoders import JsonEncoder
from beanstalk_mcp.protocol.parser import Job, PutResult
from beanstalk_mcp.transport import Connection


def _connection(*lines: str, chunks: tuple[bytes, ...] = (), active: bool = True) -> MagicMock:
    """A connection mock answering read_line with ``lines`` and read_exact with ``chunks``."""
    conn = MagicMock(spec=Connection)
    conn.is_active.return_value = active
    conn.write.return_value = False
    conn.read_line.side_effect = list(lines)
    conn.read_exact.side_effect = list(chunks)
    return conn


def _assert_no_io(conn: MagicMock) -> None:
    conn.write.assert_not_called()
    conn.read_line.assert_not_called()
    conn.read_exact.assert_not_called()


def test_put():
    conn = _connection("INSERTED 1", "BURIED 2")
    client = Client(conn)

    assert client.put("test") == PutResult(id=1, status="INSERTED")
    assert client.put("test") == PutResult(id=2, status="BURIED")
    assert conn.write.call_args_list == [call(b"put 1024 0 60 4\r\ntest\r\n")] * 2


def test_put_expected_crlf():
    """Server says the CRLF after the body is missing."""
    client = Client(_connection("EXPECTED_CRLF"))
    with pytest.raises(CommandError):
        client.put("test")


def test_put_job_too_big():
    client = Client(_connection("JOB_TOO_BIG"))
    with pytest.raises(CommandError):
        client.put("test")


def test_put_draining():
    """Draining is a server-state error, not a protocol error."""
    client = Client(_connection("DRAINING"))
    with pytest.raises(ServerError):
        client.put("test")


@pytest.mark.parametrize(
    "args",
    [
        ("test", -1),
        ("test", 0, -1),
        ("test", 0, 0, 0),
        ("test", MAX_PRIORITY + 1),
        ([1, 2, 3],),
        ("", ""),
    ],
)
def test_put_invalid_arguments_do_no_io(args):
    conn = _connection("INSERTED 1")
    client = Client(conn)
    with pytest.raises(InvalidArgumentError):
        client.put(*args)
    _assert_no_io(conn)


def test_put_payload_too_big_with_encoder():
    conn = _connection("INSERTED 1")
    client = Client(conn, JsonEncoder())
    with pytest.raises(InvalidArgumentError):
        client.put("a" * (MAX_PAYLOAD_SIZE + 1))
    _assert_no_io(conn)


def test_put_missing_job_id():
    client = Client(_connection("INSERTED"), JsonEncoder())
    with pytest.raises(ProtocolError):
        client.put("")


def test_invalid_job_id_and_tube_do_no_io():
    conn = _connection()
    client = Client(conn)
    with pytest.raises(InvalidArgumentError):
        client.release(0)
    with pytest.raises(InvalidArgumentError):
        client.use("   ")
    with pytest.raises(InvalidArgumentError):
        client.release(1, delay=-3)
    _assert_no_io(conn)


def test_release():
    client = Client(_connection("RELEASED", "BURIED", "NOT_FOUND"))
    assert client.release(1) == "RELEASED"
    assert client.release(1) == "BURIED"
    assert client.release(1) is None


def test_use():
    conn = _connection("USING emails")
    client = Client(conn)
    assert client.use("emails") == "emails"
    conn.write.assert_called_once_with(b"use emails\r\n")


def test_reserve_reads_body_and_trailer():
    conn = _connection("RESERVED 5 5", chunks=(b"hello", b"\r\n"))
    job = Client(conn).reserve()

    assert isinstance(job, Job)
    assert job.id == 5
    assert job.payload == "hello"
    assert conn.read_exact.call_args_list == [call(5), call(2)]


def test_reserve_with_encoder():
    conn = _connection("RESERVED 8 9", chunks=(b'{"n": 42}', b"\r\n"))
    job = Client(conn, JsonEncoder()).reserve_with_timeout(3)
    assert job.payload == {"n": 42}
    conn.write.assert_called_once_with(b"reserve-with-timeout 3\r\n")


def test_reserve_timed_out():
    conn = _connection("TIMED_OUT")
    assert Client(conn).reserve_with_timeout(0) is None
    conn.read_exact.assert_not_called()


def test_body_without_trailing_crlf():
    conn = _connection("FOUND 2 3", chunks=(b"abc", b"xx"))
    with pytest.raises(ProtocolError, match="CRLF"):
        Client(conn).peek(2)


def test_stats():
    body = b"---\ncurrent-jobs-ready: 3\ntotal-jobs: 10\n"
    conn = _connection(f"OK {len(body)}", chunks=(body, b"\r\n"))
    assert Client(conn).stats() == {"current-jobs-ready": 3, "total-jobs": 10}


def test_stats_empty_body():
    conn = _connection("OK 0", chunks=(b"", b"\r\n"))
    with pytest.raises(ProtocolError):
        Client(conn).stats()


def test_list_tubes():
    body = b"---\n- default\n- emails\n"
    conn = _connection(f"OK {len(body)}", chunks=(body, b"\r\n"))
    assert Client(conn).list_tubes() == ["default", "emails"]


def test_stats_tube_not_found():
    assert Client(_connection("NOT_FOUND")).stats_tube("missing") is None


def test_worker_verbs():
    conn = _connection("DELETED", "TOUCHED", "BURIED", "WATCHING 2", "NOT_IGNORED", "KICKED 4")
    client = Client(conn)
    assert client.delete(3) is True
    assert client.touch(3) is True
    assert client.bury(3) is True
    assert client.watch("emails") == 2
    assert client.ignore("default") is None
    assert client.kick(10) == 4


def test_unexpected_status():
    with pytest.raises(ProtocolError):
        Client(_connection("DELETED")).use("emails")


def test_connects_inactive_connection():
    conn = _connection(active=False)
    Client(conn)
    conn.connect.assert_called_once_with()


def test_does_not_reconnect_active_connection():
    conn = _connection()
    Client(conn)
    conn.connect.assert_not_called()


def test_socket_errors_propagate():
    """A failed write is not retried by the client."""
    conn = _connection()
    conn.write.side_effect = SocketError("boom")
    client = Client(conn)
    with pytest.raises(SocketError):
        client.stats()
    conn.read_line.assert_not_called()


def test_is_reconnected_is_forwarded():
    conn = _connection("INSERTED 1")
    conn.is_reconnected.side_effect = [True, False]
    client = Client(conn)
    client.put("x")
    assert client.is_reconnected() is True
    assert client.is_reconnected() is False


def test_context_manager_disconnects():
    conn = _connection()
    with Client(conn) as client:
        assert client.connection is conn
    conn.disconnect.assert_called_once_with()


def test_reserve_undecodable_body_can_be_buried():
    conn = _connection("RESERVED 21 3", "BURIED", chunks=(b"{{{", b"\r\n"))
    client = Client(conn, JsonEncoder())

    with pytest.raises(PayloadDecodeError) as excinfo:
        client.reserve()
    assert client.bury(excinfo.value.job_id) is True
    assert conn.write.call_args_list[-1] == call(b"bury 21 1024\r\n")
