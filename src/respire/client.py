"""Module containing Redis client implementation."""

import asyncio
import collections.abc
import dataclasses
import types
import typing

import structlog

from respire import command, commands, connection, error, pool, protocol, pubsub

if typing.TYPE_CHECKING:
    import typing_extensions

    from respire import reply

__all__: collections.abc.Sequence[str] = ("Redis", "DEFAULT_HOST", "DEFAULT_PORT")


_LOGGER = structlog.get_logger(__name__)

DEFAULT_HOST: typing.Final = "127.0.0.1"
DEFAULT_PORT: typing.Final = 7379


@dataclasses.dataclass(slots=True)
class Redis(commands.CommandsMixin):
    """Redis client implementation.

    Commands are dispatched over pooled connections, one request and one
    reply at a time per connection. No connection is made until the first
    command is sent.
    """

    host: str = DEFAULT_HOST
    port: int = DEFAULT_PORT
    db: int = 0
    password: str | None = dataclasses.field(default=None, repr=False)
    pool_size: int = pool.DEFAULT_CAPACITY
    connection_class: type[protocol.ConnectionProto] = dataclasses.field(
        default=connection.Connection,
        repr=False,
    )

    _pool: pool.ConnectionPool[protocol.ConnectionProto] = dataclasses.field(init=False, repr=False)
    _closed: bool = dataclasses.field(default=False, init=False, repr=False)

    def __post_init__(self) -> None:
        if self.db < 0:
            msg = f"Database index must be non-negative, got {self.db}."
            raise ValueError(msg)

        self._pool = pool.ConnectionPool(self._dial, self.pool_size)

    @classmethod
    def from_url(cls, url: str, **kwargs: typing.Any) -> "typing_extensions.Self":  # noqa: ANN401
        """Create a Redis client from a Redis url.

        Urls take the form ``redis://[:password@]host[:port][/db]``. This
        performs URL validation, but does *not* make any connections.
        """
        parsed = connection.parse_url(url, default_port=DEFAULT_PORT)
        return cls(parsed.host, parsed.port, parsed.db, parsed.password, **kwargs)

    async def _dial(self) -> protocol.ConnectionProto:
        return await self.connection_class.from_host_port(
            self.host,
            self.port,
            db=self.db,
            password=self.password,
        )

    async def _exchange(
        self,
        con: protocol.ConnectionProto,
        cmd: command.Command,
    ) -> "reply.Reply":
        # Only a connection that completed its exchange goes back to the pool.
        try:
            result = await cmd.execute(con)

        except error.ResponseError:
            await self._pool.release(con)
            raise

        except BaseException:
            await self._pool.discard(con)
            raise

        await self._pool.release(con)
        return result

    async def send(self, name: str | bytes, *args: str | bytes | int | float) -> "reply.Reply":
        """Send a command and return its decoded reply.

        A transient connection failure is retried once on a freshly dialed
        connection; a failure on that retry is raised. Error replies and
        protocol errors are raised without retrying.
        """
        if self._closed:
            msg = "Cannot send commands with a disconnected client."
            raise error.StateError(msg)

        cmd = command.Command(name, *args)
        con = await self._pool.acquire()

        try:
            return await self._exchange(con, cmd)

        except error.ConnectionError as exc:
            if not exc.transient:
                raise

            _LOGGER.warning("command failed, retrying", command=cmd.name, reason=str(exc))

        return await self._exchange(await self._pool.connect(), cmd)

    async def subscribe(
        self,
        messages: asyncio.Queue[pubsub.Message],
        *,
        subscribe: pubsub.ChannelStream | None = None,
        unsubscribe: pubsub.ChannelStream | None = None,
        psubscribe: pubsub.ChannelStream | None = None,
        punsubscribe: pubsub.ChannelStream | None = None,
    ) -> None:
        """Run a publish/subscribe session until it ends.

        Channel names arriving on ``subscribe``/``unsubscribe`` are (un)
        subscribed exactly; ``psubscribe``/``punsubscribe`` take glob
        patterns. Published messages are put on ``messages``.

        This blocks until an empty name or ``None`` arrives on any stream, all
        streams are exhausted, or the connection fails, in which case the
        failure is raised.
        """
        if self._closed:
            msg = "Cannot subscribe with a disconnected client."
            raise error.StateError(msg)

        session = pubsub.PubSubSession(
            self._pool,
            messages,
            subscribe=subscribe,
            unsubscribe=unsubscribe,
            psubscribe=psubscribe,
            punsubscribe=punsubscribe,
        )
        await session.run()

    async def disconnect(self) -> None:
        """Close all idle connections and refuse further commands."""
        self._closed = True
        await self._pool.close()

    async def __aenter__(self) -> "typing_extensions.Self":
        return self

    async def __aexit__(
        self,
        _exc_type: type[BaseException] | None,
        _exc_value: BaseException | None,
        _exc_tb: types.TracebackType | None,
    ) -> None:
        await self.disconnect()
