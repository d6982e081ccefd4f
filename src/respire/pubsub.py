"""Module containing the publish/subscribe session implementation.

A session owns one connection for its whole lifetime. A writer task turns
channel names arriving on the four request streams into (un)subscribe
commands, while a reader task decodes the pushes the server sends back and
delivers published messages to the caller's queue.
"""

import asyncio
import collections.abc
import dataclasses
import typing

import structlog

from respire import command, error, pool, protocol, reply, transform

__all__: collections.abc.Sequence[str] = ("PubSubSession", "Message")


_LOGGER = structlog.get_logger(__name__)

Message = transform.Message

ChannelStream: typing.TypeAlias = collections.abc.AsyncIterable[str | bytes | None]

# Returned in place of a channel name once a request stream is exhausted.
_EXHAUSTED: typing.Final = object()


async def _next_channel(stream: collections.abc.AsyncIterator[str | bytes | None]) -> object:
    try:
        return await anext(stream)
    except StopAsyncIteration:
        return _EXHAUSTED


@dataclasses.dataclass(slots=True)
class PubSubSession:
    """A subscribe/publish session over one dedicated connection.

    Each request stream yields channel names (or glob patterns for the
    ``p`` variants). An empty name or ``None`` ends the session, as does
    exhausting every stream. Published messages are put on ``messages``.
    """

    connections: pool.ConnectionPool[typing.Any]
    messages: asyncio.Queue[transform.Message]
    subscribe: ChannelStream | None = None
    unsubscribe: ChannelStream | None = None
    psubscribe: ChannelStream | None = None
    punsubscribe: ChannelStream | None = None

    def _streams(self) -> list[tuple[bytes, ChannelStream]]:
        streams = (
            (b"SUBSCRIBE", self.subscribe),
            (b"UNSUBSCRIBE", self.unsubscribe),
            (b"PSUBSCRIBE", self.psubscribe),
            (b"PUNSUBSCRIBE", self.punsubscribe),
        )
        return [(name, stream) for name, stream in streams if stream is not None]

    async def _open(self) -> protocol.ConnectionProto:
        con = await self.connections.acquire()

        try:
            pong = await command.Command(b"PING").execute(con)

        except error.ConnectionError as exc:
            await con.close()
            if not exc.transient:
                raise

            # The remote closed this connection while it sat idle.
            _LOGGER.debug("pubsub connection stale, reconnecting", reason=str(exc))
            return await self.connections.connect()

        except BaseException:
            await con.close()
            raise

        if not isinstance(pong, reply.Status) or pong != "PONG":
            await con.close()
            msg = f"Unexpected response to PING: {pong!r}"
            raise error.ProtocolError(msg)

        return con

    async def _write(self, con: protocol.ConnectionProto) -> None:
        pending: dict[asyncio.Future[object], tuple[bytes, collections.abc.AsyncIterator[typing.Any]]] = {}
        for name, stream in self._streams():
            iterator = aiter(stream)
            pending[asyncio.ensure_future(_next_channel(iterator))] = (name, iterator)

        try:
            while pending:
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)

                for task in done:
                    name, iterator = pending.pop(task)
                    channel = task.result()

                    if channel is _EXHAUSTED:
                        continue

                    if not channel:
                        return

                    await con.write_command(command.Command(name, typing.cast(str | bytes, channel)))
                    pending[asyncio.ensure_future(_next_channel(iterator))] = (name, iterator)

        finally:
            for task in pending:
                task.cancel()

            await asyncio.gather(*pending, return_exceptions=True)

    async def _read(self, con: protocol.ConnectionProto) -> None:
        while True:
            data = await con.read_reply()
            message = transform.transform_message(data)

            if message is not None:
                await self.messages.put(message)

            elif not transform.is_acknowledgement(data):
                _LOGGER.debug("ignoring unrecognised push", reply=repr(data))

    async def run(self) -> None:
        """Run the session until it ends.

        Returns once the request streams end the session; raises the first
        failure of either direction otherwise. The connection is closed on
        every exit.
        """
        con = await self._open()
        _LOGGER.debug("pubsub session started")

        writer = asyncio.create_task(self._write(con), name="respire-pubsub-writer")
        reader = asyncio.create_task(self._read(con), name="respire-pubsub-reader")
        tasks = (writer, reader)

        try:
            done, _ = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)

        finally:
            for task in tasks:
                task.cancel()

            await asyncio.gather(*tasks, return_exceptions=True)
            await con.close()

        failures = [
            (task, exc)
            for task in tasks
            if task in done and not task.cancelled() and (exc := task.exception()) is not None
        ]
        if failures:
            # A StateError in one task follows from the other task closing the connection.
            task, exc = min(failures, key=lambda failure: isinstance(failure[1], error.StateError))
            _LOGGER.warning("pubsub session failed", task=task.get_name(), reason=str(exc))
            raise exc

        _LOGGER.debug("pubsub session ended")
