"""MCP server entry point for a beanstalkd work queue.

Exposes tools, resources, and prompts via the Model Context Protocol
using the official Python MCP SDK with stdio transport.
"""

from __future__ import annotations

import json
import logging
from dataclasses import replace
from typing import Any

from mcp.server.fastmcp import FastMCP

from .client import Client
from .config import ConnectionConfig
from .protocol.commands import DEFAULT_DELAY, DEFAULT_PRIORITY, DEFAULT_TTR
from .protocol.parser import Job

logger = logging.getLogger(__name__)

mcp = FastMCP(
    "beanstalk",
    instructions="MCP server for producing, consuming and inspecting beanstalkd jobs",
)

# Global connection state
_client: Client | None = None

PEEK_KINDS = ("ready", "delayed", "buried")


def _get_client() -> Client:
    """Get the active client, raising if not connected."""
    if _client is None or not _client.is_active():
        raise RuntimeError(
            "Not connected to beanstalkd. Use the 'connect' tool first."
        )
    return _client


def _job_dict(job: Job | None) -> dict[str, Any]:
    if job is None:
        return {"found": False}
    return {"found": True, "id": job.id, "payload": job.payload, "bytes": len(job.data)}


def _written(client: Client, result: dict[str, Any]) -> dict[str, Any]:
    # A request resent over a new connection may have been applied twice.
    result["reconnected"] = client.is_reconnected()
    return result


# ─── CONNECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def connect(
    host: str | None = None,
    port: int | None = None,
    transport: str | None = None,
) -> dict[str, Any]:
    """Connect to a beanstalkd server.

    Unset arguments fall back to BEANSTALK_HOST, BEANSTALK_PORT and
    BEANSTALK_TRANSPORT, then to localhost:11300 in socket mode.
    """
    global _client
    if _client is not None and _client.is_active():
        return {
            "connected": True,
            "message": "Already connected",
            "host": _client.host,
            "port": _client.port,
        }

    overrides = {"host": host, "port": port, "mode": transport}
    config = replace(
        ConnectionConfig.from_env(),
        **{key: value for key, value in overrides.items() if value is not None},
    )

    _client = Client(config=config)
    return {
        "connected": True,
        "host": _client.host,
        "port": _client.port,
        "transport": _client.connection.mode,
        "persistent": _client.is_persistent(),
    }


@mcp.tool()
def disconnect() -> dict[str, bool]:
    """Close the connection to beanstalkd."""
    global _client
    if _client is None:
        return {"disconnected": True}
    _client.disconnect()
    _client = None
    return {"disconnected": True}


# ─── PRODUCER TOOLS ───────────────────────────────────────────────────

@mcp.tool()
def use_tube(tube: str) -> dict[str, str]:
    """Select the tube that put_job inserts into."""
    return {"using": _get_client().use(tube)}


@mcp.tool()
def put_job(
    payload: str,
    tube: str | None = None,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
    ttr: int = DEFAULT_TTR,
) -> dict[str, Any]:
    """Insert a job.

    Args:
        payload: Job body text.
        tube: Optional tube to use first; otherwise the tube currently in use.
        priority: 0 is most urgent, up to 4294967295.
        delay: Seconds before the job becomes ready.
        ttr: Seconds a worker may hold the job before it is released again.
    """
    client = _get_client()
    if tube is not None:
        client.use(tube)
    result = client.put(payload, priority=priority, delay=delay, ttr=ttr)
    return _written(client, {"id": result.id, "status": result.status})


# ─── WORKER TOOLS ─────────────────────────────────────────────────────

@mcp.tool()
def watch_tube(tube: str) -> dict[str, int]:
    """Add a tube to the watch list used by reserve_job."""
    return {"watching": _get_client().watch(tube)}


@mcp.tool()
def ignore_tube(tube: str) -> dict[str, Any]:
    """Remove a tube from the watch list. The last watched tube cannot be ignored."""
    count = _get_client().ignore(tube)
    if count is None:
        return {"error": f"Cannot ignore {tube!r}: it is the only watched tube"}
    return {"watching": count}


@mcp.tool()
def reserve_job(timeout: int = 0) -> dict[str, Any]:
    """Reserve the next ready job from the watched tubes.

    Args:
        timeout: Seconds to wait for a job (0 returns immediately).
    """
    return _job_dict(_get_client().reserve_with_timeout(timeout))


@mcp.tool()
def delete_job(job_id: int) -> dict[str, Any]:
    """Delete a job."""
    client = _get_client()
    return _written(client, {"deleted": bool(client.delete(job_id))})


@mcp.tool()
def release_job(
    job_id: int,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
) -> dict[str, Any]:
    """Release a reserved job back to the ready (or delayed) queue."""
    client = _get_client()
    status = client.release(job_id, priority=priority, delay=delay)
    return _written(client, {"released": status is not None, "status": status})


@mcp.tool()
def bury_job(job_id: int, priority: int = DEFAULT_PRIORITY) -> dict[str, Any]:
    """Bury a reserved job so it is kept aside until kicked."""
    client = _get_client()
    return _written(client, {"buried": bool(client.bury(job_id, priority))})


@mcp.tool()
def touch_job(job_id: int) -> dict[str, Any]:
    """Ask for more time to work on a reserved job."""
    client = _get_client()
    return _written(client, {"touched": bool(client.touch(job_id))})


# ─── INSPECTION TOOLS ─────────────────────────────────────────────────

@mcp.tool()
def peek(kind: str = "ready", job_id: int | None = None) -> dict[str, Any]:
    """Look at a job without reserving it.

    Args:
        kind: ready, delayed or buried, in the tube currently used.
        job_id: Peek this job instead; ``kind`` is then ignored.
    """
    client = _get_client()
    if job_id is not None:
        return _job_dict(client.peek(job_id))
    if kind not in PEEK_KINDS:
        return {"error": f"Unknown peek kind {kind!r}. Valid: {list(PEEK_KINDS)}"}
    return _job_dict(getattr(client, f"peek_{kind}")())


@mcp.tool()
def kick(bound: int = 1, job_id: int | None = None) -> dict[str, Any]:
    """Move buried or delayed jobs back to the ready queue.

    Args:
        bound: Maximum number of jobs to kick in the tube currently used.
        job_id: Kick only this job.
    """
    client = _get_client()
    if job_id is not None:
        return _written(client, {"kicked": 1 if client.kick_job(job_id) else 0})
    return _written(client, {"kicked": client.kick(bound)})


@mcp.tool()
def pause_tube(tube: str, delay: int) -> dict[str, Any]:
    """Stop jobs in a tube from being reserved for ``delay`` seconds."""
    client = _get_client()
    return _written(client, {"paused": bool(client.pause_tube(tube, delay))})


@mcp.tool()
def list_tubes() -> dict[str, Any]:
    """List existing tubes, the tube in use and the watched tubes."""
    client = _get_client()
    return {
        "tubes": client.list_tubes(),
        "using": client.list_tube_used(),
        "watching": client.list_tubes_watched(),
    }


@mcp.tool()
def get_stats(tube: str | None = None, job_id: int | None = None) -> dict[str, Any]:
    """Server, tube or job statistics.

    Args:
        tube: Return statistics for this tube.
        job_id: Return statistics for this job.
    """
    client = _get_client()
    if job_id is not None:
        stats = client.stats_job(job_id)
    elif tube is not None:
        stats = client.stats_tube(tube)
    else:
        stats = client.stats()
    if stats is None:
        return {"error": "Not found"}
    return stats


# ─── RESOURCES ────────────────────────────────────────────────────────

@mcp.resource("beanstalk://stats")
def server_stats() -> str:
    """Server-wide statistics as JSON."""
    return json.dumps(_get_client().stats(), indent=2, default=str)


# ─── PROMPTS ──────────────────────────────────────────────────────────

@mcp.prompt()
def triage_buried(tube: str) -> str:
    """Inspect buried jobs in a tube and decide what to do with them.

    Args:
        tube: Tube to triage.
    """
    return f"""Use the use_tube tool to select {tube!r}, then get_stats with tube={tube!r}
to see how many jobs are buried.

For each buried job (peek with kind="buried"):
- Read the payload and decide whether it failed for a transient reason
- Kick transient failures back to the ready queue with kick(job_id=...)
- Delete jobs that can never succeed with delete_job
- Leave anything unclear buried and summarize it

If any tool reports reconnected=true, check with peek or get_stats before
repeating that action: the server may already have applied it."""


# ─── ENTRY POINT ─────────────────────────────────────────────────────

def main():
    """Run the MCP server with stdio transport."""
    logging.basicConfig(level=logging.INFO)
    mcp.run(transport="stdio")


if __name__ == "__main__":
    main()
