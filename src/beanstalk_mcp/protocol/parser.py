"""Typed results and body parsers for command responses."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import yaml

from ..exceptions import ProtocolError


@dataclass
class PutResult:
    """Outcome of a ``put``: the new job id and whether it was buried."""

    id: int
    status: str


@dataclass
class Job:
    """A job read back from the server.

    ``data`` is the raw body; ``payload`` is that body decoded through the
    client's encoder, or as UTF-8 text when there is none.
    """

    id: int
    data: bytes
    payload: Any = None

    def __repr__(self) -> str:
        return f"Job(id={self.id}, data_len={len(self.data)})"


def parse_int(value: str, what: str, status: str | None = None) -> int:
    """Parse a numeric status-line parameter."""
    try:
        return int(value)
    except (TypeError, ValueError) as e:
        raise ProtocolError(f"Expected {what} to be an integer, got {value!r}", status=status) from e


def parse_yaml(text: str, is_list: bool = False) -> Any:
    """Parse a YAML document returned by the stats and list commands.

    Stats mappings are loaded with the safe loader, so counters come back as
    ``int`` and quoted fields (such as ``version``) stay strings. Lists hold
    tube names and are loaded with the base loader so every entry is a
    ``str``.

    Args:
        text: The response body.
        is_list: Whether the document is a sequence instead of a mapping.

    Raises:
        ProtocolError: If the document is not valid YAML or has the wrong shape.
    """
    loader = yaml.BaseLoader if is_list else yaml.SafeLoader
    try:
        document = yaml.load(text, Loader=loader)
    except yaml.YAMLError as e:
        raise ProtocolError(f"Malformed YAML response body: {e}") from e

    expected = list if is_list else dict
    if not isinstance(document, expected):
        raise ProtocolError(
            f"Expected a YAML {expected.__name__}, got {type(document).__name__}"
        )
    return document
