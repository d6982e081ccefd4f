"""Module containing the RESP wire codec.

Requests are always arrays of bulk strings. Replies are one of the five RESP2
types, decoded into the values described in ``respire.reply``.
"""

import collections.abc
import enum

from respire import error, protocol, reply

__all__: collections.abc.Sequence[str] = ("ByteResponse", "encode", "decode", "to_bytes")


_INT64_MIN: int = -(2**63)
_INT64_MAX: int = 2**63 - 1


class ByteResponse(bytes, enum.Enum):
    # https://redis.io/docs/latest/develop/reference/protocol-spec/#resp-protocol-description

    SIMPLE_STRING = b"+"
    SIMPLE_ERROR = b"-"
    NUMBER = b":"
    BLOB_STRING = b"$"
    ARRAY = b"*"


def to_bytes(value: str | bytes | int | float) -> bytes:
    """Convert a command argument to its wire bytes."""
    if isinstance(value, bytes):
        return value

    if isinstance(value, str):
        return value.encode()

    return str(value).encode()


def encode(name: str | bytes, *args: str | bytes | int | float) -> bytes:
    """Encode a command name and its arguments into a request frame.

    Arguments are length-prefixed, so they may contain any bytes, including
    whitespace and line terminators.
    """
    parts = [to_bytes(name), *map(to_bytes, args)]

    frame = bytearray(b"*%i\r\n" % len(parts))
    for part in parts:
        frame += b"$%i\r\n" % len(part)
        frame += part
        frame += b"\r\n"

    return bytes(frame)


def _parse_number(data: bytes, msg: str) -> int:
    text = data.strip()
    digits = text[1:] if text[:1] in (b"+", b"-") else text
    if not digits.isdigit():
        raise error.ProtocolError(msg)

    return int(text)


def _parse_integer(data: bytes) -> int:
    number = _parse_number(data, "integer reply is not a number")
    if not _INT64_MIN <= number <= _INT64_MAX:
        msg = "integer reply is not a number"
        raise error.ProtocolError(msg)

    return number


async def _read_line(reader: protocol.ReaderProto) -> bytes:
    return (await reader.readuntil(b"\n")).strip()


async def _decode_bulk(reader: protocol.ReaderProto, head: bytes | None = None) -> reply.BulkValue:
    if head is None:
        head = await _read_line(reader)

    byte, response = head[:1], head[1:]

    if byte == ByteResponse.NUMBER:
        return response.strip()

    if byte == ByteResponse.BLOB_STRING:
        size = _parse_number(response, "bulk reply expected a length")
        if size == -1:
            return None

        if size < 0:
            msg = f"bulk reply has an invalid length: {size}"
            raise error.ProtocolError(msg)

        data = await reader.readexactly(size)
        # Consume the line terminator following the payload.
        await reader.readuntil(b"\n")
        return data

    msg = "expected prefix $ or :"
    raise error.ProtocolError(msg)


async def decode(reader: protocol.ReaderProto) -> reply.Reply:
    """Read exactly one reply from ``reader``.

    Transport failures raised by the reader propagate unchanged. Error replies
    are raised as ``ResponseError``; malformed frames as ``ProtocolError``.
    """
    line = await _read_line(reader)
    while not line:
        line = await _read_line(reader)

    # First character is a symbol that determines the data type,
    # the rest is the actual data.
    byte, response = line[:1], line[1:]

    if byte == ByteResponse.SIMPLE_STRING:
        return reply.Status(response.strip().decode("utf-8", errors="replace"))

    if byte == ByteResponse.SIMPLE_ERROR:
        raise error.ResponseError.from_response(response)

    if byte == ByteResponse.NUMBER:
        return _parse_integer(response)

    if byte == ByteResponse.ARRAY:
        count = _parse_number(response, "multibulk reply expected a number")
        if count <= 0:
            return []

        # Array elements are always bulk values, possibly absent.
        return [await _decode_bulk(reader) for _ in range(count)]

    return await _decode_bulk(reader, line)
