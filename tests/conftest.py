"""Shared fixtures: an in-process stub store and scripted fake connections."""

import asyncio
import collections.abc
import dataclasses
import fnmatch
import typing

import pytest

import respire
from respire import codec


def _bulk(value: bytes | None) -> bytes:
    if value is None:
        return b"$-1\r\n"

    return b"$%i\r\n%s\r\n" % (len(value), value)


def _array(*values: bytes | None) -> bytes:
    return b"*%i\r\n" % len(values) + b"".join(map(_bulk, values))


@dataclasses.dataclass
class StubStore:
    """A tiny store speaking just enough of the protocol for the tests.

    Requests are parsed with the client's own codec, so every command the
    stub understands has also round-tripped through ``encode``/``decode``.
    """

    password: str | None = None
    port: int = 0
    data: dict[bytes, bytes] = dataclasses.field(default_factory=dict)
    received: list[list[bytes]] = dataclasses.field(default_factory=list)
    accepted: int = 0
    closed: int = 0
    writers: set[asyncio.StreamWriter] = dataclasses.field(default_factory=set)
    channels: dict[bytes, set[asyncio.StreamWriter]] = dataclasses.field(default_factory=dict)
    patterns: dict[bytes, set[asyncio.StreamWriter]] = dataclasses.field(default_factory=dict)

    def commands(self, name: bytes) -> list[list[bytes]]:
        return [cmd for cmd in self.received if cmd[0].upper() == name]

    async def wait_until(self, predicate: typing.Callable[[], bool], timeout: float = 2.0) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + timeout
        while not predicate():
            if loop.time() > deadline:
                msg = "condition not reached in time"
                raise AssertionError(msg)

            await asyncio.sleep(0.01)

    def kill_connections(self) -> None:
        """Close every open connection from the store's side."""
        for writer in list(self.writers):
            writer.close()

    async def handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        self.accepted += 1
        self.writers.add(writer)

        try:
            while True:
                request = await codec.decode(reader)
                assert isinstance(request, list)
                self.received.append(typing.cast(list[bytes], request))

                writer.write(self._dispatch(typing.cast(list[bytes], request), writer))
                await writer.drain()

        except (asyncio.IncompleteReadError, OSError):
            pass

        finally:
            self.closed += 1
            self.writers.discard(writer)
            for subscribers in (*self.channels.values(), *self.patterns.values()):
                subscribers.discard(writer)

            writer.close()

    def _dispatch(self, request: list[bytes], writer: asyncio.StreamWriter) -> bytes:  # noqa: C901, PLR0911
        name, *args = request
        name = name.upper()

        if name == b"PING":
            return b"+PONG\r\n"

        if name == b"ECHO":
            return _bulk(args[0])

        if name == b"SELECT":
            return b"+OK\r\n"

        if name == b"AUTH":
            if args[0].decode() == self.password:
                return b"+OK\r\n"

            return b"-ERR invalid password\r\n"

        if name == b"SET":
            self.data[args[0]] = args[1]
            return b"+OK\r\n"

        if name == b"GET":
            return _bulk(self.data.get(args[0]))

        if name == b"INCR":
            value = int(self.data.get(args[0], b"0")) + 1
            self.data[args[0]] = b"%i" % value
            return b":%i\r\n" % value

        if name == b"DEL":
            return b":%i\r\n" % sum(self.data.pop(key, None) is not None for key in args)

        if name in (b"SUBSCRIBE", b"PSUBSCRIBE"):
            registry = self.channels if name == b"SUBSCRIBE" else self.patterns
            registry.setdefault(args[0], set()).add(writer)
            return b"*3\r\n" + _bulk(name.lower()) + _bulk(args[0]) + b":1\r\n"

        if name in (b"UNSUBSCRIBE", b"PUNSUBSCRIBE"):
            registry = self.channels if name == b"UNSUBSCRIBE" else self.patterns
            registry.get(args[0], set()).discard(writer)
            return b"*3\r\n" + _bulk(name.lower()) + _bulk(args[0]) + b":0\r\n"

        if name == b"PUBLISH":
            channel, payload = args
            receivers = 0

            for subscriber in self.channels.get(channel, ()):
                subscriber.write(_array(b"message", channel, payload))
                receivers += 1

            for pattern, subscribers in self.patterns.items():
                if fnmatch.fnmatchcase(channel.decode(), pattern.decode()):
                    for subscriber in subscribers:
                        subscriber.write(_array(b"pmessage", pattern, channel, payload))
                        receivers += 1

            return b":%i\r\n" % receivers

        return b"-ERR unknown command '%s'\r\n" % name.lower()


@pytest.fixture
async def store() -> collections.abc.AsyncIterator[StubStore]:
    stub = StubStore()
    server = await asyncio.start_server(stub.handle, "127.0.0.1", 0)
    stub.port = server.sockets[0].getsockname()[1]

    yield stub

    stub.kill_connections()
    server.close()
    await server.wait_closed()


@pytest.fixture
async def client(store: StubStore) -> collections.abc.AsyncIterator[respire.Redis]:
    async with respire.Redis("127.0.0.1", store.port) as redis:
        yield redis


class FakeConnection:
    """In-memory connection replaying scripted replies.

    Replies are shared by every connection of the class and consumed in
    order; an exception in the script is raised instead of returned. Once
    the replies run out, reads block until cancelled.

    ``dials`` scripts successive dial attempts the same way: ``None`` dials
    a connection, an exception fails the attempt. When it runs out,
    ``dial_error`` applies to every further attempt. ``writes`` scripts
    successive writes.
    """

    dialed: typing.ClassVar[list["FakeConnection"]]
    replies: typing.ClassVar[list[object]]
    dials: typing.ClassVar[list[BaseException | None]]
    dial_error: typing.ClassVar[BaseException | None]
    writes: typing.ClassVar[list[BaseException | None]]

    def __init__(self, db: int = 0, password: str | None = None) -> None:
        self.db = db
        self.password = password
        self.alive = True
        self.closes = 0
        self.written: list[list[bytes]] = []

    @classmethod
    async def from_host_port(
        cls,
        host: str,
        port: int,
        /,
        *,
        db: int = 0,
        password: str | None = None,
    ) -> "FakeConnection":
        failure = cls.dials.pop(0) if cls.dials else cls.dial_error
        if failure is not None:
            raise failure

        con = cls(db, password)
        cls.dialed.append(con)
        return con

    def is_alive(self) -> bool:
        return self.alive

    async def close(self) -> None:
        if self.alive:
            self.alive = False
            self.closes += 1

    async def write_command(self, command: respire.Command, /) -> None:
        failure = self.writes.pop(0) if self.writes else None
        if failure is not None:
            self.alive = False
            raise failure

        self.written.append(list(command))

    async def read_reply(self) -> respire.Reply:
        if not self.replies:
            await asyncio.Event().wait()

        item = self.replies.pop(0)
        if isinstance(item, BaseException):
            if not isinstance(item, respire.ResponseError):
                self.alive = False

            raise item

        return typing.cast(respire.Reply, item)


@pytest.fixture
def fake_connection_class() -> typing.Callable[..., type[FakeConnection]]:
    def factory(
        *replies: object,
        dials: collections.abc.Iterable[BaseException | None] = (),
        dial_error: BaseException | None = None,
        writes: collections.abc.Iterable[BaseException | None] = (),
    ) -> type[FakeConnection]:
        return type(
            "ScriptedConnection",
            (FakeConnection,),
            {
                "dialed": [],
                "replies": list(replies),
                "dials": list(dials),
                "dial_error": dial_error,
                "writes": list(writes),
            },
        )

    return factory
