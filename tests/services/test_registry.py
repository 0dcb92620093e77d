import pytest

from hyprvisor.domain.topics import Topic


@pytest.mark.asyncio
async def test_register_and_count(shared, make_connection):
    conn = make_connection()

    async with shared.lock:
        superseded = shared.registry.register(Topic.WORKSPACE, 1, conn)
        assert shared.registry.count(Topic.WORKSPACE) == 1
        assert shared.registry.subscribers(Topic.WORKSPACE) == [(1, conn)]
        assert shared.registry.topics() == [Topic.WORKSPACE]

    assert superseded is None


@pytest.mark.asyncio
async def test_register_same_pid_replaces_connection(shared, make_connection):
    first, second = make_connection(), make_connection()

    async with shared.lock:
        shared.registry.register(Topic.WINDOW, 7, first)
        superseded = shared.registry.register(Topic.WINDOW, 7, second)

        assert shared.registry.count(Topic.WINDOW) == 1
        assert shared.registry.subscribers(Topic.WINDOW) == [(7, second)]

    assert superseded is first


@pytest.mark.asyncio
async def test_same_pid_on_different_topics(shared, make_connection):
    async with shared.lock:
        shared.registry.register(Topic.SINK_VOLUME, 7, make_connection())
        shared.registry.register(Topic.SOURCE_VOLUME, 7, make_connection())

        assert shared.registry.count(Topic.SINK_VOLUME) == 1
        assert shared.registry.count(Topic.SOURCE_VOLUME) == 1


@pytest.mark.asyncio
async def test_evict_is_idempotent(shared, make_connection):
    conn = make_connection()

    async with shared.lock:
        shared.registry.register(Topic.WORKSPACE, 1, conn)
        assert shared.registry.evict(Topic.WORKSPACE, 1) is conn
        assert shared.registry.evict(Topic.WORKSPACE, 1) is None
        assert shared.registry.evict(Topic.WINDOW, 99) is None
        assert shared.registry.count(Topic.WORKSPACE) == 0


@pytest.mark.asyncio
async def test_evict_with_stale_connection_keeps_newer_one(shared, make_connection):
    stale, fresh = make_connection(), make_connection()

    async with shared.lock:
        shared.registry.register(Topic.WORKSPACE, 1, stale)
        shared.registry.register(Topic.WORKSPACE, 1, fresh)

        assert shared.registry.evict(Topic.WORKSPACE, 1, stale) is None
        assert shared.registry.subscribers(Topic.WORKSPACE) == [(1, fresh)]


@pytest.mark.asyncio
async def test_for_each_subscriber(shared, make_connection):
    seen = []

    async with shared.lock:
        shared.registry.register(Topic.WORKSPACE, 1, make_connection())
        shared.registry.register(Topic.WORKSPACE, 2, make_connection())
        shared.registry.for_each_subscriber(Topic.WORKSPACE, lambda pid, _: seen.append(pid))
        shared.registry.for_each_subscriber(Topic.WINDOW, lambda pid, _: seen.append(pid))

    assert seen == [1, 2]


@pytest.mark.asyncio
async def test_drain_empties_registry(shared, make_connection):
    a, b = make_connection(), make_connection()

    async with shared.lock:
        shared.registry.register(Topic.WORKSPACE, 1, a)
        shared.registry.register(Topic.WINDOW, 2, b)
        drained = shared.registry.drain()
        assert shared.registry.topics() == []

    assert set(map(id, drained)) == {id(a), id(b)}


def test_requires_shared_lock(shared, make_connection):
    with pytest.raises(RuntimeError):
        shared.registry.register(Topic.WORKSPACE, 1, make_connection())
