"""Module containing the decoded reply types."""

import collections.abc
import typing

__all__: collections.abc.Sequence[str] = ("Status", "Reply", "BulkValue")


class Status(str):
    """A status reply (``+OK``, ``+PONG``).

    Compares equal to its text, but is distinguishable from bulk values by
    type.
    """

    __slots__ = ()

    def __repr__(self) -> str:
        return f"Status({str.__repr__(self)})"


# ``None`` is an absent value ($-1), never an empty one.
BulkValue: typing.TypeAlias = bytes | None

Reply: typing.TypeAlias = Status | int | BulkValue | list[BulkValue]
