"""Status words the server may answer with, and how they are classified."""

from __future__ import annotations

from enum import Enum


class Status(str, Enum):
    """First token of every response line."""

    INSERTED = "INSERTED"
    BURIED = "BURIED"
    EXPECTED_CRLF = "EXPECTED_CRLF"
    JOB_TOO_BIG = "JOB_TOO_BIG"
    DRAINING = "DRAINING"
    USING = "USING"
    DEADLINE_SOON = "DEADLINE_SOON"
    TIMED_OUT = "TIMED_OUT"
    RESERVED = "RESERVED"
    DELETED = "DELETED"
    NOT_FOUND = "NOT_FOUND"
    RELEASED = "RELEASED"
    TOUCHED = "TOUCHED"
    WATCHING = "WATCHING"
    NOT_IGNORED = "NOT_IGNORED"
    FOUND = "FOUND"
    KICKED = "KICKED"
    OK = "OK"
    PAUSED = "PAUSED"
    OUT_OF_MEMORY = "OUT_OF_MEMORY"
    INTERNAL_ERROR = "INTERNAL_ERROR"
    BAD_FORMAT = "BAD_FORMAT"
    UNKNOWN_COMMAND = "UNKNOWN_COMMAND"

    def __str__(self) -> str:
        return self.value


# The request was at fault; resending it unchanged will fail again.
CLIENT_ERRORS = frozenset({
    Status.EXPECTED_CRLF,
    Status.JOB_TOO_BIG,
    Status.BAD_FORMAT,
    Status.UNKNOWN_COMMAND,
})

# The server is unable to serve anyone right now; retry later.
SERVER_ERRORS = frozenset({
    Status.DRAINING,
    Status.OUT_OF_MEMORY,
    Status.INTERNAL_ERROR,
})

# Statuses followed by a body, and the index (within the parameters after
# the status word) of the body's byte length.
BODY_LENGTH_PARAM: dict[Status, int] = {
    Status.RESERVED: 1,
    Status.FOUND: 1,
    Status.OK: 0,
}


def is_known(word: str) -> bool:
    """Whether ``word`` belongs to the protocol vocabulary."""
    return word in Status.__members__
