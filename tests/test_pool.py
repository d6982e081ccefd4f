import pytest

from respire import pool


@pytest.fixture
def connection_class(fake_connection_class):
    return fake_connection_class()


@pytest.fixture
def connections(connection_class):
    return pool.ConnectionPool(lambda: connection_class.from_host_port("127.0.0.1", 7379), capacity=2)


async def test_acquire_dials_when_empty(connections, connection_class):
    con = await connections.acquire()

    assert connection_class.dialed == [con]
    assert len(connections) == 0


async def test_released_connection_is_reused(connections, connection_class):
    con = await connections.acquire()
    await connections.release(con)

    assert len(connections) == 1
    assert await connections.acquire() is con
    assert len(connection_class.dialed) == 1


async def test_release_into_full_pool_closes(connections, connection_class):
    cons = [await connections.acquire() for _ in range(3)]
    for con in cons:
        await connections.release(con)

    assert len(connections) == 2
    assert [con.closes for con in cons] == [0, 0, 1]


async def test_dead_connection_is_not_pooled(connections):
    con = await connections.acquire()
    await con.close()
    await connections.release(con)

    assert len(connections) == 0
    assert con.closes == 1


async def test_connect_bypasses_idle_connections(connections, connection_class):
    idle = await connections.acquire()
    await connections.release(idle)

    fresh = await connections.connect()

    assert fresh is not idle
    assert len(connections) == 1
    assert len(connection_class.dialed) == 2


async def test_discard_closes(connections):
    con = await connections.acquire()
    await connections.discard(con)

    assert not con.is_alive()
    assert len(connections) == 0


async def test_close_closes_idle_connections(connections):
    cons = [await connections.acquire() for _ in range(2)]
    for con in cons:
        await connections.release(con)

    await connections.close()

    assert len(connections) == 0
    assert all(con.closes == 1 for con in cons)


async def test_release_after_close_closes(connections):
    con = await connections.acquire()
    await connections.close()

    await connections.release(con)

    assert len(connections) == 0
    assert con.closes == 1


async def test_dial_failure_propagates(fake_connection_class):
    connection_class = fake_connection_class(dial_error=ConnectionRefusedError("refused"))
    connections = pool.ConnectionPool(lambda: connection_class.from_host_port("127.0.0.1", 7379))

    with pytest.raises(ConnectionRefusedError):
        await connections.acquire()


def test_capacity_must_be_positive(connection_class):
    with pytest.raises(ValueError, match="capacity"):
        pool.ConnectionPool(lambda: connection_class.from_host_port("127.0.0.1", 7379), capacity=0)


def test_default_capacity(connection_class):
    connections = pool.ConnectionPool(lambda: connection_class.from_host_port("127.0.0.1", 7379))
    assert connections.capacity == 100
