"""Module containing the connection pool implementation."""

import asyncio
import collections.abc
import dataclasses
import typing

import structlog

from respire import protocol

__all__: collections.abc.Sequence[str] = ("ConnectionPool", "DEFAULT_CAPACITY")


_LOGGER = structlog.get_logger(__name__)

DEFAULT_CAPACITY: typing.Final = 100

ConnectionT = typing.TypeVar("ConnectionT", bound=protocol.ConnectionProto)


@dataclasses.dataclass(slots=True)
class ConnectionPool(typing.Generic[ConnectionT]):
    """A bounded pool of idle connections.

    Neither ``acquire`` nor ``release`` waits for capacity: an empty pool
    dials a new connection and a full pool closes the released one. A
    connection taken from the pool belongs to the caller until it is
    released or discarded.
    """

    dial: typing.Callable[[], collections.abc.Awaitable[ConnectionT]]
    capacity: int = DEFAULT_CAPACITY
    _idle: asyncio.Queue[ConnectionT] = dataclasses.field(init=False, repr=False)
    _closed: bool = dataclasses.field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.capacity < 1:
            msg = f"Pool capacity must be at least 1, got {self.capacity}."
            raise ValueError(msg)

        self._idle = asyncio.Queue(maxsize=self.capacity)

    def __len__(self) -> int:
        return self._idle.qsize()

    async def connect(self) -> ConnectionT:
        """Dial a new connection, bypassing idle ones."""
        return await self.dial()

    async def acquire(self) -> ConnectionT:
        """Take an idle connection, or dial a new one if there is none."""
        try:
            return self._idle.get_nowait()
        except asyncio.QueueEmpty:
            return await self.connect()

    async def release(self, connection: ConnectionT) -> None:
        """Return a connection to the pool.

        Closed connections are dropped. If the pool is full or has been
        closed, the connection is closed instead of retained.
        """
        if not connection.is_alive():
            return

        if self._closed:
            await connection.close()
            return

        try:
            self._idle.put_nowait(connection)
        except asyncio.QueueFull:
            _LOGGER.debug("pool full, closing connection", capacity=self.capacity)
            await connection.close()

    async def discard(self, connection: ConnectionT) -> None:
        """Close a connection without returning it to the pool."""
        await connection.close()

    async def close(self) -> None:
        """Close all idle connections.

        Connections released afterwards are closed rather than pooled.
        """
        self._closed = True
        connections = []
        while not self._idle.empty():
            connections.append(self._idle.get_nowait())

        await asyncio.gather(*[connection.close() for connection in connections])
