"""Module containing command implementation."""

import collections.abc
import dataclasses
import typing

from respire import codec, protocol

if typing.TYPE_CHECKING:
    import typing_extensions

    from respire import reply

__all__: collections.abc.Sequence[str] = ("Command",)


@dataclasses.dataclass(slots=True)
class Command:
    """A Redis command.

    This class handles encoding of arguments before they're accepted by a
    ``Connection``.
    """

    arguments: list[bytes]

    def __init__(self, name: str | bytes, *args: str | bytes | int | float) -> None:
        self.arguments = []
        self.arg(name)
        for arg in args:
            self.arg(arg)

    @property
    def name(self) -> str:
        return self.arguments[0].decode("utf-8", errors="replace").upper()

    def arg(self, value: str | bytes | int | float) -> "typing_extensions.Self":
        """Add an argument to this command."""
        self.arguments.append(codec.to_bytes(value))
        return self

    def encode(self) -> bytes:
        """Encode this command into a request frame."""
        return codec.encode(*self.arguments)

    async def execute(self, con: protocol.ConnectionProto) -> "reply.Reply":
        """Execute this command on a given connection.

        Exactly one reply is read for every command written.
        """
        await con.write_command(self)
        return await con.read_reply()

    def __str__(self) -> str:
        return " ".join(arg.decode("utf-8", errors="replace") for arg in self.arguments)

    def __len__(self) -> int:
        return len(self.arguments)

    def __iter__(self) -> collections.abc.Iterator[bytes]:
        return iter(self.arguments)
