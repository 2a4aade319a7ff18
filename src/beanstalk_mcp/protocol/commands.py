"""Protocol verbs and the command builders.

Every command is an instance of the generic :class:`Command`, configured by
a :class:`CommandSpec` that maps the status words the verb may receive to
an outcome. Arguments are validated by the ``build_*`` functions, so an
invalid argument never reaches the wire.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Iterable, Mapping

from ..exceptions import (
    CommandError,
    InvalidArgumentError,
    PayloadDecodeError,
    ProtocolError,
    ServerError,
)
from .encoders import Encoder
from .framing import build_request
from .parser import Job, PutResult, parse_int, parse_yaml
from .responses import BODY_LENGTH_PARAM, CLIENT_ERRORS, SERVER_ERRORS, Status, is_known

logger = logging.getLogger(__name__)

MAX_PRIORITY = 2**32 - 1
DEFAULT_PRIORITY = 1024
DEFAULT_DELAY = 0
DEFAULT_TTR = 60
MAX_PAYLOAD_SIZE = 65535
MAX_TUBE_NAME_LENGTH = 200

_TUBE_NAME = re.compile(r"^[A-Za-z0-9+/;.$_()][A-Za-z0-9\-+/;.$_()]*$")


class Verb(str, Enum):
    """Protocol keywords."""

    PUT = "put"
    USE = "use"
    RESERVE = "reserve"
    RESERVE_WITH_TIMEOUT = "reserve-with-timeout"
    RESERVE_JOB = "reserve-job"
    DELETE = "delete"
    RELEASE = "release"
    BURY = "bury"
    TOUCH = "touch"
    WATCH = "watch"
    IGNORE = "ignore"
    PEEK = "peek"
    PEEK_READY = "peek-ready"
    PEEK_DELAYED = "peek-delayed"
    PEEK_BURIED = "peek-buried"
    KICK = "kick"
    KICK_JOB = "kick-job"
    STATS = "stats"
    STATS_JOB = "stats-job"
    STATS_TUBE = "stats-tube"
    LIST_TUBES = "list-tubes"
    LIST_TUBE_USED = "list-tube-used"
    LIST_TUBES_WATCHED = "list-tubes-watched"
    PAUSE_TUBE = "pause-tube"

    def __str__(self) -> str:
        return self.value


@dataclass
class Reply:
    """What a handler gets to build its result from."""

    status: Status
    params: tuple[str, ...]
    body: bytes | None
    decoder: Encoder | None = None

    def param(self, index: int, what: str) -> str:
        try:
            return self.params[index]
        except IndexError:
            raise ProtocolError(
                f"Missing {what} in [{self.status}] response", status=self.status.value
            ) from None


Handler = Callable[[Reply], Any]


# ─── OUTCOME HANDLERS ────────────────────────────────────────────────

def _put_result(reply: Reply) -> PutResult:
    job_id = parse_int(reply.param(0, "job id"), "job id", reply.status.value)
    return PutResult(id=job_id, status=reply.status.value)


def _status_word(reply: Reply) -> str:
    return reply.status.value


def _tube_name(reply: Reply) -> str:
    return reply.param(0, "tube name")


def _count(reply: Reply) -> int:
    return parse_int(reply.param(0, "count"), "count", reply.status.value)


def _done(reply: Reply) -> bool:
    return True


def _job(reply: Reply) -> Job:
    job_id = parse_int(reply.param(0, "job id"), "job id", reply.status.value)
    data = reply.body or b""
    if reply.decoder is None:
        return Job(id=job_id, data=data, payload=data.decode("utf-8", errors="replace"))
    try:
        payload = reply.decoder.decode(data)
    except ProtocolError as e:
        raise PayloadDecodeError(
            f"Body of job {job_id} could not be decoded: {e}",
            job_id=job_id,
            data=data,
            status=reply.status.value,
        ) from e
    return Job(id=job_id, data=data, payload=payload)


def _yaml_body(reply: Reply) -> str:
    if not reply.body:
        raise ProtocolError("Got unexpected empty response", status=reply.status.value)
    return reply.body.decode("utf-8", errors="replace")


def _mapping(reply: Reply) -> dict:
    return parse_yaml(_yaml_body(reply), is_list=False)


def _sequence(reply: Reply) -> list:
    return parse_yaml(_yaml_body(reply), is_list=True)


# ─── DESCRIPTORS ─────────────────────────────────────────────────────

@dataclass(frozen=True)
class CommandSpec:
    """Declarative description of one verb.

    Attributes:
        verb: The protocol keyword.
        outcomes: Status words that produce a result, and how.
        empty: Status words that are a normal "nothing there" outcome and
            produce ``None``.
    """

    verb: Verb
    outcomes: Mapping[Status, Handler]
    empty: frozenset[Status] = field(default_factory=frozenset)


_JOB_OR_NOTHING = dict(outcomes={Status.FOUND: _job}, empty=frozenset({Status.NOT_FOUND}))
_RESERVED = {Status.RESERVED: _job}
_RESERVE_EMPTY = frozenset({Status.TIMED_OUT, Status.DEADLINE_SOON})
_NOT_FOUND = frozenset({Status.NOT_FOUND})

SPECS: dict[Verb, CommandSpec] = {
    spec.verb: spec
    for spec in (
        CommandSpec(Verb.PUT, {Status.INSERTED: _put_result, Status.BURIED: _put_result}),
        CommandSpec(Verb.USE, {Status.USING: _tube_name}),
        CommandSpec(Verb.RESERVE, _RESERVED, _RESERVE_EMPTY),
        CommandSpec(Verb.RESERVE_WITH_TIMEOUT, _RESERVED, _RESERVE_EMPTY),
        CommandSpec(Verb.RESERVE_JOB, _RESERVED, _NOT_FOUND),
        CommandSpec(Verb.DELETE, {Status.DELETED: _done}, _NOT_FOUND),
        CommandSpec(
            Verb.RELEASE,
            {Status.RELEASED: _status_word, Status.BURIED: _status_word},
            _NOT_FOUND,
        ),
        CommandSpec(Verb.BURY, {Status.BURIED: _done}, _NOT_FOUND),
        CommandSpec(Verb.TOUCH, {Status.TOUCHED: _done}, _NOT_FOUND),
        CommandSpec(Verb.WATCH, {Status.WATCHING: _count}),
        CommandSpec(Verb.IGNORE, {Status.WATCHING: _count}, frozenset({Status.NOT_IGNORED})),
        CommandSpec(Verb.PEEK, **_JOB_OR_NOTHING),
        CommandSpec(Verb.PEEK_READY, **_JOB_OR_NOTHING),
        CommandSpec(Verb.PEEK_DELAYED, **_JOB_OR_NOTHING),
        CommandSpec(Verb.PEEK_BURIED, **_JOB_OR_NOTHING),
        CommandSpec(Verb.KICK, {Status.KICKED: _count}),
        CommandSpec(Verb.KICK_JOB, {Status.KICKED: _done}, _NOT_FOUND),
        CommandSpec(Verb.STATS, {Status.OK: _mapping}),
        CommandSpec(Verb.STATS_JOB, {Status.OK: _mapping}, _NOT_FOUND),
        CommandSpec(Verb.STATS_TUBE, {Status.OK: _mapping}, _NOT_FOUND),
        CommandSpec(Verb.LIST_TUBES, {Status.OK: _sequence}),
        CommandSpec(Verb.LIST_TUBE_USED, {Status.USING: _tube_name}),
        CommandSpec(Verb.LIST_TUBES_WATCHED, {Status.OK: _sequence}),
        CommandSpec(Verb.PAUSE_TUBE, {Status.PAUSED: _done}, _NOT_FOUND),
    )
}


class Command:
    """One request/response exchange.

    Usage::

        cmd = build_release(42, priority=10, delay=0)
        conn.write(cmd.render())
        ...
        result = cmd.parse("RELEASED", (), None)
    """

    def __init__(
        self,
        spec: CommandSpec,
        args: Iterable[object] = (),
        body: bytes | None = None,
        decoder: Encoder | None = None,
    ) -> None:
        self.spec = spec
        self.args = tuple(args)
        self.body = body
        self.decoder = decoder
        self._request = build_request(spec.verb.value, self.args, body)

    @property
    def verb(self) -> Verb:
        return self.spec.verb

    def __repr__(self) -> str:
        body = f", body_len={len(self.body)}" if self.body is not None else ""
        return f"Command({self.verb.value!r}, args={self.args!r}{body})"

    def render(self) -> bytes:
        """The request exactly as it goes on the wire."""
        return self._request

    def parse(self, status: str, params: Iterable[str] = (), body: bytes | None = None) -> Any:
        """Turn a response into the verb's result.

        Args:
            status: The status word.
            params: Remaining tokens of the status line.
            body: The response body, if one was read.

        Returns:
            The verb-specific result, or ``None`` for a "nothing there" status.

        Raises:
            CommandError: The server rejected the request.
            ServerError: The server is draining or out of resources.
            ProtocolError: Unexpected status word or inconsistent framing.
        """
        verb = self.verb.value
        if not is_known(status):
            raise ProtocolError(f"{verb}: got unknown status code [{status}]", status=status)

        word = Status(status)
        if word in CLIENT_ERRORS:
            raise CommandError(f"{verb}: request rejected by server [{word}]", status=status)
        if word in SERVER_ERRORS:
            raise ServerError(f"{verb}: server unable to serve request [{word}]", status=status)

        announces_body = word in BODY_LENGTH_PARAM
        if announces_body and body is None:
            raise ProtocolError(f"{verb}: expected response data after [{word}]", status=status)
        if not announces_body and body is not None:
            raise ProtocolError(f"{verb}: unexpected response data passed", status=status)

        if word in self.spec.empty:
            logger.debug("%s: no result [%s]", verb, word)
            return None

        handler = self.spec.outcomes.get(word)
        if handler is None:
            raise ProtocolError(f"{verb}: got unexpected status code [{word}]", status=status)
        return handler(Reply(status=word, params=tuple(params), body=body, decoder=self.decoder))


# ─── VALIDATION ──────────────────────────────────────────────────────

def _is_int(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _job_id(job_id: object) -> int:
    if not _is_int(job_id) or job_id <= 0:
        raise InvalidArgumentError(f"Job id must be a positive integer, got {job_id!r}")
    return job_id


def _priority(priority: object) -> int:
    if not _is_int(priority):
        raise InvalidArgumentError(
            f"Job priority must be an integer, got {type(priority).__name__}"
        )
    if not 0 <= priority <= MAX_PRIORITY:
        raise InvalidArgumentError(f"Job priority must be between 0 and {MAX_PRIORITY}")
    return priority


def _non_negative(value: object, what: str) -> int:
    if not _is_int(value) or value < 0:
        raise InvalidArgumentError(f"{what} must be a non-negative integer, got {value!r}")
    return value


def _positive(value: object, what: str) -> int:
    if not _is_int(value) or value <= 0:
        raise InvalidArgumentError(f"{what} must be a positive integer, got {value!r}")
    return value


def _tube(tube: object) -> str:
    if not isinstance(tube, str):
        raise InvalidArgumentError(f"Tube name must be a string, got {type(tube).__name__}")
    name = tube.strip()
    if not name:
        raise InvalidArgumentError("Tube name must be a non-empty string after trimming whitespace")
    size = len(name.encode("utf-8"))
    if size > MAX_TUBE_NAME_LENGTH:
        raise InvalidArgumentError(
            f"Tube name must be at most {MAX_TUBE_NAME_LENGTH} bytes, got {size}"
        )
    if not _TUBE_NAME.match(name):
        raise InvalidArgumentError(f"Tube name contains invalid characters: {name!r}")
    return name


def _payload(payload: object, encoder: Encoder | None) -> bytes:
    if isinstance(payload, (bytes, bytearray)):
        data = bytes(payload)
    elif encoder is not None:
        data = encoder.encode(payload)
    elif isinstance(payload, str):
        data = payload.encode("utf-8")
    else:
        raise InvalidArgumentError(
            f"Payload must be str or bytes when no encoder is set, got {type(payload).__name__}"
        )
    if len(data) > MAX_PAYLOAD_SIZE:
        raise InvalidArgumentError(
            f"Serialized payload must be at most {MAX_PAYLOAD_SIZE} bytes, got {len(data)}"
        )
    return data


# ─── BUILDERS ────────────────────────────────────────────────────────

def build_command(
    verb: Verb,
    args: Iterable[object] = (),
    body: bytes | None = None,
    decoder: Encoder | None = None,
) -> Command:
    """Build a command from already-validated arguments."""
    return Command(SPECS[verb], args, body, decoder)


def build_put(
    payload: Any,
    priority: int = DEFAULT_PRIORITY,
    delay: int = DEFAULT_DELAY,
    ttr: int = DEFAULT_TTR,
    encoder: Encoder | None = None,
) -> Command:
    """Build a ``put`` into the currently used tube.

    Args:
        payload: ``str`` or ``bytes``; anything else needs ``encoder``.
        priority: 0 (most urgent) to :data:`MAX_PRIORITY`.
        delay: Seconds before the job becomes ready.
        ttr: Seconds a worker may hold the job, at least 1.
        encoder: Serializer for the payload.
    """
    priority = _priority(priority)
    delay = _non_negative(delay, "Job delay")
    ttr = _positive(ttr, "Job ttr")
    data = _payload(payload, encoder)
    return build_command(Verb.PUT, (priority, delay, ttr, len(data)), data)


def build_use(tube: str) -> Command:
    return build_command(Verb.USE, (_tube(tube),))


def build_reserve(decoder: Encoder | None = None) -> Command:
    return build_command(Verb.RESERVE, decoder=decoder)


def build_reserve_with_timeout(timeout: int, decoder: Encoder | None = None) -> Command:
    """Build a ``reserve-with-timeout``; a timeout of 0 polls."""
    return build_command(
        Verb.RESERVE_WITH_TIMEOUT, (_non_negative(timeout, "Reserve timeout"),), decoder=decoder
    )


def build_reserve_job(job_id: int, decoder: Encoder | None = None) -> Command:
    return build_command(Verb.RESERVE_JOB, (_job_id(job_id),), decoder=decoder)


def build_delete(job_id: int) -> Command:
    return build_command(Verb.DELETE, (_job_id(job_id),))


def build_release(job_id: int, priority: int = DEFAULT_PRIORITY, delay: int = DEFAULT_DELAY) -> Command:
    """Build a ``release`` of a reserved job back into the ready queue."""
    job_id = _job_id(job_id)
    priority = _priority(priority)
    delay = _non_negative(delay, "Job delay")
    return build_command(Verb.RELEASE, (job_id, priority, delay))


def build_bury(job_id: int, priority: int = DEFAULT_PRIORITY) -> Command:
    return build_command(Verb.BURY, (_job_id(job_id), _priority(priority)))


def build_touch(job_id: int) -> Command:
    return build_command(Verb.TOUCH, (_job_id(job_id),))


def build_watch(tube: str) -> Command:
    return build_command(Verb.WATCH, (_tube(tube),))


def build_ignore(tube: str) -> Command:
    return build_command(Verb.IGNORE, (_tube(tube),))


def build_peek(job_id: int, decoder: Encoder | None = None) -> Command:
    return build_command(Verb.PEEK, (_job_id(job_id),), decoder=decoder)


def build_peek_ready(decoder: Encoder | None = None) -> Command:
    return build_command(Verb.PEEK_READY, decoder=decoder)


def build_peek_delayed(decoder: Encoder | None = None) -> Command:
    return build_command(Verb.PEEK_DELAYED, decoder=decoder)


def build_peek_buried(decoder: Encoder | None = None) -> Command:
    return build_command(Verb.PEEK_BURIED, decoder=decoder)


def build_kick(bound: int) -> Command:
    """Build a ``kick`` of up to ``bound`` buried or delayed jobs."""
    return build_command(Verb.KICK, (_positive(bound, "Kick bound"),))


def build_kick_job(job_id: int) -> Command:
    return build_command(Verb.KICK_JOB, (_job_id(job_id),))


def build_stats() -> Command:
    return build_command(Verb.STATS)


def build_stats_job(job_id: int) -> Command:
    return build_command(Verb.STATS_JOB, (_job_id(job_id),))


def build_stats_tube(tube: str) -> Command:
    return build_command(Verb.STATS_TUBE, (_tube(tube),))


def build_list_tubes() -> Command:
    return build_command(Verb.LIST_TUBES)


def build_list_tube_used() -> Command:
    return build_command(Verb.LIST_TUBE_USED)


def build_list_tubes_watched() -> Command:
    return build_command(Verb.LIST_TUBES_WATCHED)


def build_pause_tube(tube: str, delay: int) -> Command:
    """Build a ``pause-tube``: no job is reserved from ``tube`` for ``delay`` seconds."""
    return build_command(Verb.PAUSE_TUBE, (_tube(tube), _non_negative(delay, "Pause delay")))
