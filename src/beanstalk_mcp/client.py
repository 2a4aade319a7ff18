"""Blocking beanstalkd client.

Each call builds a :class:`~.protocol.commands.Command`, writes it, reads
the status line and any body the status announces, and lets the command
turn that into a result. One request is in flight at a time; callers that
share a client between threads must serialize calls themselves.
"""

from __future__ import annotations

import logging
from typing import Any

from .config import ConnectionConfig
from .exceptions import ProtocolError
from .protocol import commands
from .protocol.commands import Command, DEFAULT_DELAY, DEFAULT_PRIORITY, DEFAULT_TTR
from .protocol.encoders import Encoder
from .protocol.framing import CRLF, body_length, parse_status_line
from .protocol.parser import Job, PutResult
from .transport import Connection, create_connection

logger = logging.getLogger(__name__)


class Client:
    """One protocol verb per method.

    Usage::

        with Client(config=ConnectionConfig(host="queue.local")) as client:
            client.use("emails")
            result = client.put("hello")
            job = client.reserve_with_timeout(5)

    After any call, :meth:`is_reconnected` tells whether the request went out
    over a new connection and so may have been applied twice.
    """

    def __init__(
        self,
        connection: Connection | None = None,
        encoder: Encoder | None = None,
        config: ConnectionConfig | None = None,
    ) -> None:
        self._connection = connection if connection is not None else create_connection(config)
        self._encoder = encoder
        if not self._connection.is_active():
            self._connection.connect()

    def __enter__(self) -> Client:
        return self

    def __exit__(self, *exc_info) -> None:
        self.disconnect()

    @property
    def connection(self) -> Connection:
        return self._connection

    @property
    def encoder(self) -> Encoder | None:
        return self._encoder

    # ─── CONNECTION ──────────────────────────────────────────────────

    @property
    def host(self) -> str:
        return self._connection.host

    @property
    def port(self) -> int:
        return self._connection.port

    @property
    def timeout(self) -> float:
        return self._connection.timeout

    def is_active(self) -> bool:
        return self._connection.is_active()

    def is_persistent(self) -> bool:
        return self._connection.is_persistent()

    def is_reconnected(self) -> bool:
        """Whether the connection was re-established since the last check."""
        return self._connection.is_reconnected()

    def reconnect(self) -> bool:
        return self._connection.reconnect()

    def disconnect(self) -> bool:
        return self._connection.disconnect()

    # ─── ORCHESTRATION ───────────────────────────────────────────────

    def execute(self, command: Command) -> Any:
        """Send ``command`` and return its parsed result.

        Errors propagate unchanged; a failed call is never retried here.
        """
        request = command.render()
        logger.debug("-> %s (%d bytes)", command.verb, len(request))
        self._connection.write(request)

        status_line = parse_status_line(self._connection.read_line())
        logger.debug("<- %s", status_line)

        body = None
        length = body_length(status_line)
        if length is not None:
            body = self._connection.read_exact(length)
            trailer = self._connection.read_exact(len(CRLF))
            if trailer != CRLF:
                raise ProtocolError(
                    f"{command.verb}: body of {length} bytes not followed by CRLF",
                    status=status_line.status,
                )
            logger.debug("<- body (%d bytes)", length)

        return command.parse(status_line.status, status_line.params, body)

    # ─── PRODUCER ────────────────────────────────────────────────────

    def put(
        self,
        payload: Any,
        priority: int = DEFAULT_PRIORITY,
        delay: int = DEFAULT_DELAY,
        ttr: int = DEFAULT_TTR,
    ) -> PutResult:
        """Put a job into the tube in use.

        Returns:
            ``PutResult`` with the job id and ``INSERTED`` or ``BURIED``
            (the server ran out of memory growing its priority queue).
        """
        return self.execute(commands.build_put(payload, priority, delay, ttr, self._encoder))

    def use(self, tube: str) -> str:
        """Use ``tube`` for subsequent puts; returns the confirmed name."""
        return self.execute(commands.build_use(tube))

    # ─── WORKER ──────────────────────────────────────────────────────

    def reserve(self) -> Job | None:
        """Block until a job is ready; ``None`` on a deadline-soon notice."""
        return self.execute(commands.build_reserve(self._encoder))

    def reserve_with_timeout(self, timeout: int) -> Job | None:
        """Reserve, waiting at most ``timeout`` seconds; ``None`` if none came."""
        return self.execute(commands.build_reserve_with_timeout(timeout, self._encoder))

    def reserve_job(self, job_id: int) -> Job | None:
        return self.execute(commands.build_reserve_job(job_id, self._encoder))

    def delete(self, job_id: int) -> bool | None:
        return self.execute(commands.build_delete(job_id))

    def release(
        self, job_id: int, priority: int = DEFAULT_PRIORITY, delay: int = DEFAULT_DELAY
    ) -> str | None:
        """Release a reserved job.

        Returns:
            ``RELEASED`` or ``BURIED``, or ``None`` if the job no longer exists.
        """
        return self.execute(commands.build_release(job_id, priority, delay))

    def bury(self, job_id: int, priority: int = DEFAULT_PRIORITY) -> bool | None:
        return self.execute(commands.build_bury(job_id, priority))

    def touch(self, job_id: int) -> bool | None:
        return self.execute(commands.build_touch(job_id))

    def watch(self, tube: str) -> int:
        """Add ``tube`` to the watch list; returns the number of watched tubes."""
        return self.execute(commands.build_watch(tube))

    def ignore(self, tube: str) -> int | None:
        """Drop ``tube`` from the watch list; ``None`` if it is the last one."""
        return self.execute(commands.build_ignore(tube))

    # ─── INSPECTION ──────────────────────────────────────────────────

    def peek(self, job_id: int) -> Job | None:
        return self.execute(commands.build_peek(job_id, self._encoder))

    def peek_ready(self) -> Job | None:
        return self.execute(commands.build_peek_ready(self._encoder))

    def peek_delayed(self) -> Job | None:
        return self.execute(commands.build_peek_delayed(self._encoder))

    def peek_buried(self) -> Job | None:
        return self.execute(commands.build_peek_buried(self._encoder))

    def kick(self, bound: int) -> int:
        """Kick up to ``bound`` jobs in the used tube; returns how many moved."""
        return self.execute(commands.build_kick(bound))

    def kick_job(self, job_id: int) -> bool | None:
        return self.execute(commands.build_kick_job(job_id))

    def stats(self) -> dict:
        return self.execute(commands.build_stats())

    def stats_job(self, job_id: int) -> dict | None:
        return self.execute(commands.build_stats_job(job_id))

    def stats_tube(self, tube: str) -> dict | None:
        return self.execute(commands.build_stats_tube(tube))

    def list_tubes(self) -> list[str]:
        return self.execute(commands.build_list_tubes())

    def list_tube_used(self) -> str:
        return self.execute(commands.build_list_tube_used())

    def list_tubes_watched(self) -> list[str]:
        return self.execute(commands.build_list_tubes_watched())

    def pause_tube(self, tube: str, delay: int) -> bool | None:
        return self.execute(commands.build_pause_tube(tube, delay))
