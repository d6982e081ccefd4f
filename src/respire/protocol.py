"""Module containing protocols that prescribe respire implementations."""

import collections.abc
import typing

if typing.TYPE_CHECKING:
    import typing_extensions

    from respire import reply

__all__: collections.abc.Sequence[str] = (
    "CommandProto",
    "ConnectionProto",
    "ReaderProto",
    "RecordProto",
)


class ReaderProto(typing.Protocol):
    """Byte stream protocol consumed by the codec.

    ``asyncio.StreamReader`` implements this.
    """

    async def readuntil(self, separator: bytes = ..., /) -> bytes: ...

    async def readexactly(self, n: int, /) -> bytes: ...


class CommandProto(typing.Protocol):
    """Redis command protocol."""

    def arg(self, value: str | bytes | int | float) -> "CommandProto":
        """Add an argument to this command."""
        ...

    def encode(self) -> bytes:
        """Encode this command into a request frame."""
        ...

    def __iter__(self) -> typing.Iterator[bytes]: ...

    def __len__(self) -> int: ...


class ConnectionProto(typing.Protocol):
    """Redis connection protocol."""

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
        """Connect to Redis at the provided host and port."""
        ...

    def is_alive(self) -> bool:
        """Check whether this connection has an active redis connection."""
        ...

    async def close(self) -> None:
        """Close the connection with Redis, if it is still open."""
        ...

    async def write_command(self, command: "CommandProto", /) -> None:
        """Write a command to the connected Redis instance.

        This requires this connection to be alive.
        """
        ...

    async def read_reply(self) -> "reply.Reply":
        """Read one reply from the connected Redis instance.

        This requires this connection to be alive.
        """
        ...


class RecordProto(typing.Protocol):
    """A record that can be stored as a Redis hash."""

    def to_fields(self) -> collections.abc.Mapping[str, str | bytes | int | float]:
        """Flatten this record into hash fields."""
        ...

    @classmethod
    def from_fields(cls, fields: collections.abc.Mapping[bytes, bytes]) -> "typing_extensions.Self":
        """Build a record from the fields of a hash."""
        ...
