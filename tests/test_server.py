"""Tests for the MCP tool layer over a mocked client."""

from __future__ import annotations

import sys
from unittest.mock import MagicMock, patch

import pytest

from beanstalk_mcp.client import Client
from beanstalk_mcp.protocol.parser import Job, PutResult


def _get_server_module():
    """Import server module with FastMCP mocked to avoid init issues."""
    mock_fastmcp_cls = MagicMock()
    mock_fastmcp_instance = MagicMock()
    # Make the @mcp.tool() decorator a no-op that returns the function unchanged
    mock_fastmcp_instance.tool.return_value = lambda fn: fn
    mock_fastmcp_instance.resource.return_value = lambda fn: fn
    mock_fastmcp_instance.prompt.return_value = lambda fn: fn
    mock_fastmcp_cls.return_value = mock_fastmcp_instance

    with patch.dict(sys.modules, {}):
        with patch("mcp.server.fastmcp.FastMCP", mock_fastmcp_cls):
            # Remove cached server module so it re-imports with our mock
            sys.modules.pop("beanstalk_mcp.server", None)
            import beanstalk_mcp.server as server_mod

    return server_mod


def _mock_client(reconnected: bool = False) -> MagicMock:
    client = MagicMock(spec=Client)
    client.is_active.return_value = True
    client.is_reconnected.return_value = reconnected
    return client


def test_tools_require_connection():
    server = _get_server_module()
    server._client = None
    with pytest.raises(RuntimeError, match="connect"):
        server.put_job("hello")


def test_put_job_uses_tube_first():
    server = _get_server_module()
    client = _mock_client()
    client.put.return_value = PutResult(id=4, status="INSERTED")

    with patch.object(server, "_get_client", return_value=client):
        result = server.put_job("hello", tube="emails", priority=5)

    client.use.assert_called_once_with("emails")
    client.put.assert_called_once_with("hello", priority=5, delay=0, ttr=60)
    assert result == {"id": 4, "status": "INSERTED", "reconnected": False}


def test_release_job_reports_reconnect():
    """A request resent over a new connection is flagged to the caller."""
    server = _get_server_module()
    client = _mock_client(reconnected=True)
    client.release.return_value = "RELEASED"

    with patch.object(server, "_get_client", return_value=client):
        result = server.release_job(9)

    assert result == {"released": True, "status": "RELEASED", "reconnected": True}


def test_release_job_not_found():
    server = _get_server_module()
    client = _mock_client()
    client.release.return_value = None

    with patch.object(server, "_get_client", return_value=client):
        result = server.release_job(9)

    assert result["released"] is False


def test_reserve_job():
    server = _get_server_module()
    client = _mock_client()
    client.reserve_with_timeout.return_value = Job(id=3, data=b"abc", payload="abc")

    with patch.object(server, "_get_client", return_value=client):
        assert server.reserve_job(5) == {"found": True, "id": 3, "payload": "abc", "bytes": 3}
        client.reserve_with_timeout.return_value = None
        assert server.reserve_job() == {"found": False}

    client.reserve_with_timeout.assert_called_with(0)


def test_peek_kinds():
    server = _get_server_module()
    client = _mock_client()
    client.peek_buried.return_value = None

    with patch.object(server, "_get_client", return_value=client):
        assert server.peek("buried") == {"found": False}
        assert "error" in server.peek("sideways")

    client.peek_buried.assert_called_once_with()


def test_ignore_last_tube():
    server = _get_server_module()
    client = _mock_client()
    client.ignore.return_value = None

    with patch.object(server, "_get_client", return_value=client):
        assert "error" in server.ignore_tube("default")


def test_kick_single_job():
    server = _get_server_module()
    client = _mock_client()
    client.kick_job.return_value = True

    with patch.object(server, "_get_client", return_value=client):
        assert server.kick(job_id=12) == {"kicked": 1, "reconnected": False}

    client.kick.assert_not_called()


def test_get_stats_dispatch():
    server = _get_server_module()
    client = _mock_client()
    client.stats_tube.return_value = None
    client.stats_job.return_value = {"id": 2, "state": "ready"}

    with patch.object(server, "_get_client", return_value=client):
        assert server.get_stats(tube="nope") == {"error": "Not found"}
        assert server.get_stats(job_id=2) == {"id": 2, "state": "ready"}

    client.stats.assert_not_called()


def test_connect_applies_overrides(monkeypatch):
    server = _get_server_module()
    server._client = None
    monkeypatch.setenv("BEANSTALK_HOST", "queue-1")
    monkeypatch.delenv("BEANSTALK_TRANSPORT", raising=False)

    with patch.object(server, "Client") as client_cls:
        client_cls.return_value.host = "queue-1"
        client_cls.return_value.port = 11301
        server.connect(port=11301, transport="stream")

    config = client_cls.call_args.kwargs["config"]
    assert config.host == "queue-1"
    assert config.port == 11301
    assert config.mode == "stream"
    server._client = None


def test_disconnect_clears_client():
    server = _get_server_module()
    client = _mock_client()
    server._client = client

    assert server.disconnect() == {"disconnected": True}
    client.disconnect.assert_called_once_with()
    assert server._client is None
