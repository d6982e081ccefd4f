"""An asyncio client for key-value stores speaking the RESP wire protocol."""

import collections.abc

from respire.client import Redis
from respire.command import Command
from respire.connection import Connection
from respire.error import (
    ConnectionError,  # noqa: A004
    NotFoundError,
    ProtocolError,
    RedisError,
    ResponseError,
    StateError,
)
from respire.pool import ConnectionPool
from respire.pubsub import PubSubSession
from respire.reply import Reply, Status
from respire.transform import Message

__all__: collections.abc.Sequence[str] = (
    "Command",
    "Connection",
    "ConnectionError",
    "ConnectionPool",
    "Message",
    "NotFoundError",
    "ProtocolError",
    "PubSubSession",
    "Redis",
    "RedisError",
    "Reply",
    "ResponseError",
    "StateError",
    "Status",
)
