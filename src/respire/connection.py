"""Module containing the connection implementation."""

import asyncio
import collections.abc
import contextlib
import dataclasses
import socket
import typing
import urllib.parse

import structlog

from respire import codec, command, error, protocol, reply

if typing.TYPE_CHECKING:
    import typing_extensions

__all__: collections.abc.Sequence[str] = ("Connection", "parse_url")


_LOGGER = structlog.get_logger(__name__)

# Failures after which a fresh connection is expected to succeed.
_TRANSIENT_ERRORS: typing.Final = (
    asyncio.IncompleteReadError,
    BrokenPipeError,
    ConnectionAbortedError,
    ConnectionResetError,
)

ConnectHook: typing.TypeAlias = typing.Callable[
    ["Connection"],
    typing.Coroutine[typing.Any, typing.Any, None],
]


class ParsedURL(typing.NamedTuple):
    host: str
    port: int
    db: int
    password: str | None


def parse_url(url: str, /, *, default_port: int) -> ParsedURL:
    """Parse a url of the form ``redis://[:password@]host[:port][/db]``."""
    parsed = urllib.parse.urlparse(url)
    if not parsed.hostname or parsed.scheme != "redis":
        msg = "Only urls of scheme 'redis://host:port' are supported"
        raise ValueError(msg)

    path = parsed.path.strip("/")
    if path and not path.isdigit():
        msg = f"Database index must be a non-negative integer, got {path!r}."
        raise ValueError(msg)

    password = urllib.parse.unquote(parsed.password) if parsed.password else None
    return ParsedURL(parsed.hostname, parsed.port or default_port, int(path or 0), password)


async def _auth(con: "Connection") -> None:
    assert con.password is not None
    await command.Command(b"AUTH", con.password).execute(con)


async def _select(con: "Connection") -> None:
    await command.Command(b"SELECT", con.db).execute(con)


@dataclasses.dataclass(slots=True)
class Connection:
    """A single TCP connection to Redis.

    This connection can send commands and read their replies one at a time.
    It does not implement any higher-level commands, and it must never be used
    by two concurrent exchanges.

    Any transport failure closes the connection, so ``is_alive`` reports
    whether it is still safe to reuse.
    """

    host: str
    port: int
    db: int = 0
    password: str | None = dataclasses.field(default=None, repr=False)
    buffer_limit: int = 2**16
    _post_connect_hooks: dict[str, ConnectHook] = dataclasses.field(
        default_factory=dict,
        repr=False,
    )
    _reader: asyncio.StreamReader | None = dataclasses.field(default=None, repr=False)
    _writer: asyncio.StreamWriter | None = dataclasses.field(default=None, repr=False)

    @classmethod
    async def from_url(cls, url: str, /) -> "typing_extensions.Self":
        """Connect to the provided Redis url."""
        parsed = parse_url(url, default_port=6379)
        return await cls.from_host_port(
            parsed.host,
            parsed.port,
            db=parsed.db,
            password=parsed.password,
        )

    @classmethod
    async def from_host_port(
        cls,
        host: str,
        port: int,
        /,
        *,
        db: int = 0,
        password: str | None = None,
    ) -> "typing_extensions.Self":
        """Connect to Redis at the provided host and port.

        If a password is given it is sent with ``AUTH`` before anything else;
        a non-default database is then selected with ``SELECT``.
        """
        self = cls(host=host, port=port, db=db, password=password)

        if password is not None:
            self._post_connect_hooks["AUTH"] = _auth

        if db != 0:
            self._post_connect_hooks["SELECT"] = _select

        await self.connect()
        return self

    def __del__(self) -> None:
        if getattr(self, "_writer", None):
            self._close()

    def _close(self) -> asyncio.StreamWriter:
        assert self._writer

        writer = self._writer
        writer.close()
        self._writer = self._reader = None

        _LOGGER.debug("connection closed", host=self.host, port=self.port)
        return writer

    def _abort(self) -> None:
        if self.is_alive():
            self._close()

    def _connection_error(self, action: str, exc: BaseException) -> error.ConnectionError:
        if isinstance(exc, asyncio.IncompleteReadError):
            detail = "connection closed by remote"
        elif exc.args:
            detail = str(exc.args[-1])
        else:
            detail = type(exc).__name__

        msg = f"{action} '{self.host}:{self.port}' failed: {detail}"
        return error.ConnectionError(msg, transient=isinstance(exc, _TRANSIENT_ERRORS))

    def is_alive(self) -> bool:
        """Check whether this connection has an active redis connection."""
        return self._reader is not None and self._writer is not None

    async def connect(self) -> None:
        """Connect to Redis with the connection parameters provided at instantiation."""
        try:
            reader, writer = await asyncio.open_connection(
                self.host,
                self.port,
                limit=self.buffer_limit,
            )
            sock: socket.socket | None = writer.transport.get_extra_info("socket")
            if sock is not None:
                sock.setsockopt(socket.IPPROTO_TCP, socket.TCP_NODELAY, 1)

        except OSError as exc:
            msg = f"Failed to connect to '{self.host}:{self.port}'."
            raise error.ConnectionError(msg) from exc

        self._reader = reader
        self._writer = writer
        _LOGGER.debug("connection opened", host=self.host, port=self.port, db=self.db)

        try:
            for hook in self._post_connect_hooks.values():
                await hook(self)

        except BaseException:
            self._abort()
            raise

    async def disconnect(self) -> None:
        """Close the connection with Redis."""
        if not self.is_alive():
            msg = "The connection is already closed."
            raise error.StateError(msg)

        closing_writer = self._close()
        # The socket may already be reset by the remote; it is closed either way.
        with contextlib.suppress(OSError):
            await closing_writer.wait_closed()

    async def close(self) -> None:
        """Close the connection with Redis, if it is still open."""
        if self.is_alive():
            await self.disconnect()

    async def write_command(self, command: protocol.CommandProto, /) -> None:
        """Write a command to the connected Redis instance.

        This requires this connection to be alive.

        ``read_reply`` *must* be called after this.
        """
        if not self.is_alive():
            msg = "Cannot send commands to a closed connection."
            raise error.StateError(msg)

        assert self._writer is not None

        try:
            self._writer.write(command.encode())
            await self._writer.drain()

        except OSError as exc:
            self._abort()
            raise self._connection_error("Writing to", exc) from exc

        except BaseException:
            self._abort()
            raise

    async def read_reply(self) -> reply.Reply:
        """Read the reply to a previously written command.

        This requires this connection to be alive. Error replies are raised
        as ``ResponseError`` and leave the connection usable; every other
        failure closes it.
        """
        if not self.is_alive():
            msg = "Cannot read replies from a closed connection."
            raise error.StateError(msg)

        assert self._reader is not None

        try:
            return await codec.decode(self._reader)

        except error.ResponseError:
            raise

        except asyncio.LimitOverrunError as exc:
            self._abort()
            msg = f"Reply line from '{self.host}:{self.port}' exceeds {self.buffer_limit} bytes."
            raise error.ProtocolError(msg) from exc

        except (asyncio.IncompleteReadError, OSError) as exc:
            self._abort()
            raise self._connection_error("Reading from", exc) from exc

        except BaseException:
            # The stream position is unknown after a malformed or interrupted read.
            self._abort()
            raise
