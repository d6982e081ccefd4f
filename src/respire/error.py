"""Module containing the exceptions raised by respire."""

import collections.abc
import dataclasses

__all__: collections.abc.Sequence[str] = (
    "RedisError",
    "ConnectionError",
    "ProtocolError",
    "StateError",
    "ResponseError",
    "NotFoundError",
)


class RedisError(Exception):
    ...


class ConnectionError(RedisError):  # noqa: A001
    """The transport failed.

    ``transient`` failures (reset, broken pipe, remote close) are retried once
    by the client on a fresh connection. Everything else is fatal.
    """

    transient: bool

    def __init__(self, *args: object, transient: bool = False) -> None:
        super().__init__(*args)
        self.transient = transient


class ProtocolError(RedisError):
    ...


class StateError(RedisError):
    ...


class NotFoundError(RedisError, LookupError):
    ...


@dataclasses.dataclass
class ResponseError(RedisError):
    code: str
    message: str

    def __str__(self) -> str:
        return self.message

    @classmethod
    def from_response(cls, response: bytes) -> "ResponseError":
        text = response.decode("utf-8", errors="replace").strip()
        code = text.split(" ", 1)[0]

        if text.startswith("ERR "):
            return cls(code, text[4:].strip())

        return cls(code, text)
