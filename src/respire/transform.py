"""Module containing data transformers for decoded replies."""

import collections.abc
import typing

from respire import error

if typing.TYPE_CHECKING:
    from respire import reply

__all__: collections.abc.Sequence[str] = (
    "Message",
    "is_acknowledgement",
    "pairwise_to_dict",
    "transform_bpop",
    "transform_float",
    "transform_message",
)


_ACKNOWLEDGEMENTS: typing.Final = frozenset((b"subscribe", b"unsubscribe", b"psubscribe", b"punsubscribe"))


class Message(typing.NamedTuple):
    """A message published on a channel this session is subscribed to.

    For exact subscriptions ``channel_matched`` equals ``channel``; for
    pattern subscriptions it is the pattern that matched.
    """

    channel_matched: str
    channel: str
    message: bytes


def pairwise_to_dict(arg: collections.abc.Iterable["reply.BulkValue"]) -> dict[bytes, bytes]:
    """Turn ``[key 1, value 1, key 2, value 2, ...]`` into a dict."""
    arg_iter = iter(arg)
    return {
        key or b"": value or b""
        for key, value in zip(arg_iter, arg_iter, strict=True)
    }


def transform_bpop(data: "reply.Reply") -> tuple[str, bytes] | None:
    """Transform BLPOP/BRPOP output into ``(key, value)``, or None on timeout."""
    if not isinstance(data, list) or len(data) != 2:
        return None

    key, value = data
    if key is None or value is None:
        return None

    return key.decode("utf-8", errors="replace"), value


def transform_float(data: "reply.Reply") -> float:
    """Transform a bulk reply holding a score into a float."""
    if not isinstance(data, bytes):
        msg = f"expected a bulk reply holding a number, got {data!r}"
        raise error.ProtocolError(msg)

    try:
        return float(data)
    except ValueError as exc:
        msg = f"bulk reply is not a number: {data!r}"
        raise error.ProtocolError(msg) from exc


def transform_message(data: "reply.Reply") -> Message | None:
    """Transform a pub/sub push into a Message.

    Subscription acknowledgements and unrecognised pushes yield None.
    """
    # Pushes are of shape
    #
    # [b"message", channel, payload]
    # [b"pmessage", pattern, channel, payload]
    # [b"subscribe" | b"unsubscribe" | ..., channel, count]
    if not isinstance(data, list) or not data:
        return None

    kind, *rest = data

    if kind == b"message" and len(rest) == 2 and None not in rest:
        channel, payload = typing.cast(list[bytes], rest)
        name = channel.decode("utf-8", errors="replace")
        return Message(name, name, payload)

    if kind == b"pmessage" and len(rest) == 3 and None not in rest:
        pattern, channel, payload = typing.cast(list[bytes], rest)
        return Message(
            pattern.decode("utf-8", errors="replace"),
            channel.decode("utf-8", errors="replace"),
            payload,
        )

    return None


def is_acknowledgement(data: "reply.Reply") -> bool:
    """Check whether a pub/sub push acknowledges a (un)subscribe request."""
    return isinstance(data, list) and bool(data) and data[0] in _ACKNOWLEDGEMENTS
