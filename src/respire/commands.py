"""Module containing typed wrappers for Redis commands.

Each wrapper translates its arguments into a command sent with ``send`` and
checks the type of the decoded reply.
"""

import abc
import builtins
import collections.abc
import typing

from respire import error, protocol, reply, transform

__all__: collections.abc.Sequence[str] = ("CommandsMixin",)


Value: typing.TypeAlias = str | bytes | int | float
RecordT = typing.TypeVar("RecordT", bound=protocol.RecordProto)


def _expect_int(data: reply.Reply) -> int:
    if not isinstance(data, int):
        msg = f"expected an integer reply, got {data!r}"
        raise error.ProtocolError(msg)

    return data


def _expect_bool(data: reply.Reply) -> bool:
    return _expect_int(data) == 1


def _expect_ok(data: reply.Reply) -> None:
    if not isinstance(data, reply.Status):
        msg = f"expected a status reply, got {data!r}"
        raise error.ProtocolError(msg)


def _expect_bulk(data: reply.Reply, key: Value) -> bytes:
    if data is None:
        msg = f"Key `{key!s}` does not exist"
        raise error.NotFoundError(msg)

    if not isinstance(data, bytes):
        msg = f"expected a bulk reply, got {data!r}"
        raise error.ProtocolError(msg)

    return data


def _expect_list(data: reply.Reply) -> list[reply.BulkValue]:
    if not isinstance(data, list):
        msg = f"expected a multibulk reply, got {data!r}"
        raise error.ProtocolError(msg)

    return data


def _expect_values(data: reply.Reply) -> list[bytes]:
    return [value for value in _expect_list(data) if value is not None]


def _decode_all(data: reply.Reply) -> list[str]:
    return [value.decode("utf-8", errors="replace") for value in _expect_values(data)]


class CommandsMixin(abc.ABC):
    """Typed command wrappers on top of ``send``."""

    __slots__ = ()

    @abc.abstractmethod
    async def send(self, name: str | bytes, *args: Value) -> reply.Reply:
        """Send one command and return its decoded reply."""

    # Keys and server

    async def ping(self) -> bool:
        """Check that the server is reachable."""
        return await self.send("PING") == "PONG"

    async def auth(self, password: str) -> None:
        _expect_ok(await self.send("AUTH", password))

    async def exists(self, key: str) -> bool:
        return _expect_bool(await self.send("EXISTS", key))

    async def delete(self, *keys: str) -> int:
        """Delete keys, returning how many existed."""
        return _expect_int(await self.send("DEL", *keys))

    async def type(self, key: str) -> str:
        data = await self.send("TYPE", key)
        _expect_ok(data)
        return str(data)

    async def keys(self, pattern: str = "*") -> list[str]:
        return _decode_all(await self.send("KEYS", pattern))

    async def randomkey(self) -> str | None:
        data = await self.send("RANDOMKEY")
        if data is None:
            return None

        return _expect_bulk(data, "*").decode("utf-8", errors="replace")

    async def rename(self, src: str, dst: str) -> None:
        _expect_ok(await self.send("RENAME", src, dst))

    async def renamenx(self, src: str, dst: str) -> bool:
        return _expect_bool(await self.send("RENAMENX", src, dst))

    async def dbsize(self) -> int:
        return _expect_int(await self.send("DBSIZE"))

    async def expire(self, key: str, seconds: int) -> bool:
        return _expect_bool(await self.send("EXPIRE", key, seconds))

    async def ttl(self, key: str) -> int:
        return _expect_int(await self.send("TTL", key))

    async def move(self, key: str, db: int) -> bool:
        return _expect_bool(await self.send("MOVE", key, db))

    async def flush(self, *, all_dbs: bool = False) -> None:
        """Remove every key of the selected database, or of all databases."""
        _expect_ok(await self.send("FLUSHALL" if all_dbs else "FLUSHDB"))

    async def save(self) -> None:
        _expect_ok(await self.send("SAVE"))

    async def bgsave(self) -> None:
        _expect_ok(await self.send("BGSAVE"))

    async def lastsave(self) -> int:
        return _expect_int(await self.send("LASTSAVE"))

    async def bgrewriteaof(self) -> None:
        _expect_ok(await self.send("BGREWRITEAOF"))

    # Strings

    async def set(self, key: str, value: Value) -> None:
        _expect_ok(await self.send("SET", key, value))

    async def get(self, key: str) -> bytes:
        """Get the value of a key.

        Raises ``NotFoundError`` if the key does not exist.
        """
        return _expect_bulk(await self.send("GET", key), key)

    async def getset(self, key: str, value: Value) -> bytes | None:
        """Set a key, returning its previous value if it had one."""
        data = await self.send("GETSET", key, value)
        if data is None:
            return None

        return _expect_bulk(data, key)

    async def mget(self, *keys: str) -> list[bytes | None]:
        """Get the values of several keys; missing keys yield None."""
        return _expect_list(await self.send("MGET", *keys))

    async def setnx(self, key: str, value: Value) -> bool:
        return _expect_bool(await self.send("SETNX", key, value))

    async def setex(self, key: str, seconds: int, value: Value) -> None:
        _expect_ok(await self.send("SETEX", key, seconds, value))

    async def mset(self, mapping: collections.abc.Mapping[str, Value]) -> None:
        args = [part for item in mapping.items() for part in item]
        _expect_ok(await self.send("MSET", *args))

    async def msetnx(self, mapping: collections.abc.Mapping[str, Value]) -> bool:
        args = [part for item in mapping.items() for part in item]
        return _expect_bool(await self.send("MSETNX", *args))

    async def incr(self, key: str) -> int:
        return _expect_int(await self.send("INCR", key))

    async def incrby(self, key: str, amount: int) -> int:
        return _expect_int(await self.send("INCRBY", key, amount))

    async def decr(self, key: str) -> int:
        return _expect_int(await self.send("DECR", key))

    async def decrby(self, key: str, amount: int) -> int:
        return _expect_int(await self.send("DECRBY", key, amount))

    async def append(self, key: str, value: Value) -> int:
        """Append to a string, returning its new length."""
        return _expect_int(await self.send("APPEND", key, value))

    async def getrange(self, key: str, start: int, end: int) -> bytes:
        return _expect_bulk(await self.send("GETRANGE", key, start, end), key)

    # Lists

    async def rpush(self, key: str, *values: Value) -> int:
        return _expect_int(await self.send("RPUSH", key, *values))

    async def lpush(self, key: str, *values: Value) -> int:
        return _expect_int(await self.send("LPUSH", key, *values))

    async def llen(self, key: str) -> int:
        return _expect_int(await self.send("LLEN", key))

    async def lrange(self, key: str, start: int, end: int) -> list[bytes]:
        return _expect_values(await self.send("LRANGE", key, start, end))

    async def ltrim(self, key: str, start: int, end: int) -> None:
        _expect_ok(await self.send("LTRIM", key, start, end))

    async def lindex(self, key: str, index: int) -> bytes:
        return _expect_bulk(await self.send("LINDEX", key, index), key)

    async def lset(self, key: str, index: int, value: Value) -> None:
        _expect_ok(await self.send("LSET", key, index, value))

    async def lrem(self, key: str, count: int, value: Value) -> int:
        """Remove ``count`` occurrences of ``value``, returning how many were removed."""
        return _expect_int(await self.send("LREM", key, count, value))

    async def lpop(self, key: str) -> bytes:
        return _expect_bulk(await self.send("LPOP", key), key)

    async def rpop(self, key: str) -> bytes:
        return _expect_bulk(await self.send("RPOP", key), key)

    async def _bpop(self, name: str, keys: collections.abc.Sequence[str], timeout: int) -> tuple[str, bytes] | None:
        if timeout < 0:
            msg = f"Timeout must be non-negative, got {timeout}."
            raise ValueError(msg)

        data = await self.send(name, *keys, timeout)
        if data is not None:
            _expect_list(data)

        return transform.transform_bpop(data)

    async def blpop(self, keys: collections.abc.Sequence[str], timeout: int = 0) -> tuple[str, bytes] | None:
        """Pop from the first non-empty list, waiting up to ``timeout`` seconds.

        The timeout is enforced by the server; 0 waits indefinitely. Returns
        ``(key, value)``, or None if the timeout expired.
        """
        return await self._bpop("BLPOP", keys, timeout)

    async def brpop(self, keys: collections.abc.Sequence[str], timeout: int = 0) -> tuple[str, bytes] | None:
        """Like ``blpop``, popping from the tail."""
        return await self._bpop("BRPOP", keys, timeout)

    async def rpoplpush(self, src: str, dst: str) -> bytes:
        return _expect_bulk(await self.send("RPOPLPUSH", src, dst), src)

    # Sets

    async def sadd(self, key: str, value: Value) -> bool:
        return _expect_bool(await self.send("SADD", key, value))

    async def srem(self, key: str, value: Value) -> bool:
        return _expect_bool(await self.send("SREM", key, value))

    async def spop(self, key: str) -> bytes:
        return _expect_bulk(await self.send("SPOP", key), key)

    async def smove(self, src: str, dst: str, value: Value) -> bool:
        return _expect_bool(await self.send("SMOVE", src, dst, value))

    async def scard(self, key: str) -> int:
        return _expect_int(await self.send("SCARD", key))

    async def sismember(self, key: str, value: Value) -> bool:
        return _expect_bool(await self.send("SISMEMBER", key, value))

    async def sinter(self, *keys: str) -> builtins.set[bytes]:
        return set(_expect_values(await self.send("SINTER", *keys)))

    async def sinterstore(self, dst: str, *keys: str) -> int:
        return _expect_int(await self.send("SINTERSTORE", dst, *keys))

    async def sunion(self, *keys: str) -> builtins.set[bytes]:
        return set(_expect_values(await self.send("SUNION", *keys)))

    async def sunionstore(self, dst: str, *keys: str) -> int:
        return _expect_int(await self.send("SUNIONSTORE", dst, *keys))

    async def sdiff(self, key: str, *keys: str) -> builtins.set[bytes]:
        return set(_expect_values(await self.send("SDIFF", key, *keys)))

    async def sdiffstore(self, dst: str, key: str, *keys: str) -> int:
        return _expect_int(await self.send("SDIFFSTORE", dst, key, *keys))

    async def smembers(self, key: str) -> builtins.set[bytes]:
        return set(_expect_values(await self.send("SMEMBERS", key)))

    async def srandmember(self, key: str) -> bytes:
        return _expect_bulk(await self.send("SRANDMEMBER", key), key)

    # Sorted sets

    async def zadd(self, key: str, member: Value, score: float) -> bool:
        return _expect_bool(await self.send("ZADD", key, score, member))

    async def zrem(self, key: str, member: Value) -> bool:
        return _expect_bool(await self.send("ZREM", key, member))

    async def zincrby(self, key: str, member: Value, amount: float) -> float:
        """Increment the score of a member, returning its new score."""
        return transform.transform_float(await self.send("ZINCRBY", key, amount, member))

    async def zrank(self, key: str, member: Value) -> int:
        data = await self.send("ZRANK", key, member)
        if data is None:
            msg = f"Member {member!r} of `{key}` does not exist"
            raise error.NotFoundError(msg)

        return _expect_int(data)

    async def zrevrank(self, key: str, member: Value) -> int:
        data = await self.send("ZREVRANK", key, member)
        if data is None:
            msg = f"Member {member!r} of `{key}` does not exist"
            raise error.NotFoundError(msg)

        return _expect_int(data)

    async def zrange(self, key: str, start: int, end: int) -> list[bytes]:
        return _expect_values(await self.send("ZRANGE", key, start, end))

    async def zrevrange(self, key: str, start: int, end: int) -> list[bytes]:
        return _expect_values(await self.send("ZREVRANGE", key, start, end))

    async def zrangebyscore(self, key: str, low: float, high: float) -> list[bytes]:
        return _expect_values(await self.send("ZRANGEBYSCORE", key, low, high))

    async def zcard(self, key: str) -> int:
        return _expect_int(await self.send("ZCARD", key))

    async def zscore(self, key: str, member: Value) -> float:
        data = await self.send("ZSCORE", key, member)
        if data is None:
            msg = f"Member {member!r} of `{key}` does not exist"
            raise error.NotFoundError(msg)

        return transform.transform_float(data)

    async def zremrangebyrank(self, key: str, start: int, end: int) -> int:
        return _expect_int(await self.send("ZREMRANGEBYRANK", key, start, end))

    async def zremrangebyscore(self, key: str, low: float, high: float) -> int:
        return _expect_int(await self.send("ZREMRANGEBYSCORE", key, low, high))

    # Hashes

    async def hset(self, key: str, field: str, value: Value) -> bool:
        """Set a hash field, returning whether the field is new."""
        return _expect_bool(await self.send("HSET", key, field, value))

    async def hget(self, key: str, field: str) -> bytes:
        return _expect_bulk(await self.send("HGET", key, field), f"{key}.{field}")

    async def hmset(self, key: str, mapping: collections.abc.Mapping[str, Value]) -> None:
        if not mapping:
            msg = "HMSET requires at least one field."
            raise ValueError(msg)

        args = [part for item in mapping.items() for part in item]
        _expect_ok(await self.send("HMSET", key, *args))

    async def hincrby(self, key: str, field: str, amount: int) -> int:
        return _expect_int(await self.send("HINCRBY", key, field, amount))

    async def hexists(self, key: str, field: str) -> bool:
        return _expect_bool(await self.send("HEXISTS", key, field))

    async def hdel(self, key: str, field: str) -> bool:
        return _expect_bool(await self.send("HDEL", key, field))

    async def hlen(self, key: str) -> int:
        return _expect_int(await self.send("HLEN", key))

    async def hkeys(self, key: str) -> list[str]:
        return _decode_all(await self.send("HKEYS", key))

    async def hvals(self, key: str) -> list[bytes]:
        return _expect_values(await self.send("HVALS", key))

    async def hgetall(self, key: str) -> dict[bytes, bytes]:
        return transform.pairwise_to_dict(_expect_list(await self.send("HGETALL", key)))

    async def hmset_record(self, key: str, record: protocol.RecordProto) -> None:
        """Store a record as the fields of a hash."""
        await self.hmset(key, record.to_fields())

    async def hgetall_record(self, key: str, record_class: builtins.type[RecordT]) -> RecordT:
        """Load a record from the fields of a hash.

        Raises ``NotFoundError`` if the hash is missing or empty.
        """
        fields = await self.hgetall(key)
        if not fields:
            msg = f"Key `{key}` does not exist"
            raise error.NotFoundError(msg)

        return record_class.from_fields(fields)

    # Pub/sub

    async def publish(self, channel: str, message: Value) -> int:
        """Publish a message, returning how many subscribers received it."""
        return _expect_int(await self.send("PUBLISH", channel, message))
