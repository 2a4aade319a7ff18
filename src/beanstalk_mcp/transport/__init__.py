"""Transport layer: one connection interface, two interchangeable I/O modes."""

from __future__ import annotations

from ..config import ConnectionConfig
from .base import WRITE_RETRIES, Connection, SocketFactory
from .socket_connection import SocketConnection
from .stream_connection import StreamConnection

CONNECTION_CLASSES: dict[str, type[Connection]] = {
    SocketConnection.mode: SocketConnection,
    StreamConnection.mode: StreamConnection,
}


def create_connection(
    config: ConnectionConfig | None = None,
    socket_factory: SocketFactory | None = None,
) -> Connection:
    """Build an unconnected connection of the configured mode.

    Without a config the ``BEANSTALK_*`` environment variables are used;
    ``BEANSTALK_TRANSPORT`` picks ``socket`` (default) or ``stream``.
    """
    if config is None:
        config = ConnectionConfig.from_env()
    return CONNECTION_CLASSES[config.mode].from_config(config, socket_factory)
