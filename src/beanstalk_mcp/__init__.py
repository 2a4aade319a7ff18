"""Blocking client and MCP server for the beanstalkd work-queue protocol."""

from .client import Client
from .config import ConnectionConfig
from .exceptions import (
    BeanstalkError,
    CommandError,
    InvalidArgumentError,
    PayloadDecodeError,
    ProtocolError,
    RemoteClosedError,
    ServerError,
    SocketError,
    TransportConnectionError,
    TransportError,
    TransportTimeout,
)
from .protocol.encoders import JsonEncoder
from .protocol.parser import Job, PutResult
from .transport import Connection, SocketConnection, StreamConnection, create_connection

__version__ = "0.1.0"
