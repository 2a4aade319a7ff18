"""Protocol layer: status vocabulary, line framing, command builders, and response parsing."""

from .framing import CRLF, build_request, parse_status_line
from .commands import Command, CommandSpec, Verb, build_command
from .responses import Status
