"""Payload encoders for job bodies that are not plain strings."""

from __future__ import annotations

import json
from typing import Any, Protocol, runtime_checkable

from ..exceptions import InvalidArgumentError, ProtocolError


@runtime_checkable
class Encoder(Protocol):
    """Turns job payloads into body bytes and back."""

    def encode(self, value: Any) -> bytes: ...

    def decode(self, data: bytes) -> Any: ...


class JsonEncoder:
    """JSON bodies, UTF-8 encoded, compact separators."""

    def encode(self, value: Any) -> bytes:
        try:
            text = json.dumps(value, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise InvalidArgumentError(f"Payload is not JSON serializable: {e}") from e
        return text.encode("utf-8")

    def decode(self, data: bytes) -> Any:
        try:
            return json.loads(data.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise ProtocolError(f"Job body is not valid JSON: {e}") from e
