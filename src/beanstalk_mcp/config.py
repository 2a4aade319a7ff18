"""Connection settings, from keyword arguments or the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Mapping

from .exceptions import InvalidArgumentError

DEFAULT_HOST = "localhost"
DEFAULT_PORT = 11300
DEFAULT_CONNECT_TIMEOUT = 60
TRANSPORT_MODES = ("socket", "stream")

_TRUE = {"1", "true", "yes", "on"}
_FALSE = {"0", "false", "no", "off"}


@dataclass
class ConnectionConfig:
    """Where and how to connect.

    ``read_timeout`` of ``None`` blocks reads indefinitely, which is what a
    plain ``reserve`` needs.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    timeout: float = DEFAULT_CONNECT_TIMEOUT
    read_timeout: float | None = None
    persistent: bool = True
    mode: str = "socket"

    def __post_init__(self) -> None:
        if not isinstance(self.host, str) or not self.host.strip():
            raise InvalidArgumentError("Host must be a non-empty string")
        if not 0 < self.port < 65536:
            raise InvalidArgumentError(f"Port must be 1-65535, got {self.port}")
        if self.timeout <= 0:
            raise InvalidArgumentError(f"Connect timeout must be positive, got {self.timeout}")
        if self.read_timeout is not None and self.read_timeout <= 0:
            raise InvalidArgumentError(
                f"Read timeout must be positive or None, got {self.read_timeout}"
            )
        if self.mode not in TRANSPORT_MODES:
            raise InvalidArgumentError(
                f"Unknown transport mode {self.mode!r}. Valid: {list(TRANSPORT_MODES)}"
            )

    @classmethod
    def from_env(cls, environ: Mapping[str, str] | None = None) -> ConnectionConfig:
        """Build a config from ``BEANSTALK_*`` environment variables."""
        env = os.environ if environ is None else environ

        read_timeout = env.get("BEANSTALK_READ_TIMEOUT", "").strip()
        return cls(
            host=env.get("BEANSTALK_HOST", DEFAULT_HOST),
            port=_number(env, "BEANSTALK_PORT", DEFAULT_PORT, int),
            timeout=_number(env, "BEANSTALK_TIMEOUT", DEFAULT_CONNECT_TIMEOUT, float),
            read_timeout=_number(env, "BEANSTALK_READ_TIMEOUT", None, float) if read_timeout else None,
            persistent=_flag(env, "BEANSTALK_PERSISTENT", True),
            mode=env.get("BEANSTALK_TRANSPORT", "socket").strip().lower(),
        )


def _number(env: Mapping[str, str], name: str, default, kind):
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    try:
        return kind(raw)
    except ValueError as e:
        raise InvalidArgumentError(f"{name} must be a number, got {raw!r}") from e


def _flag(env: Mapping[str, str], name: str, default: bool) -> bool:
    raw = env.get(name)
    if raw is None or not raw.strip():
        return default
    value = raw.strip().lower()
    if value in _TRUE:
        return True
    if value in _FALSE:
        return False
    raise InvalidArgumentError(f"{name} must be a boolean flag, got {raw!r}")
