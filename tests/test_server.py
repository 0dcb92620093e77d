import asyncio
import contextlib
import os
import socket
import stat

import pytest

from hyprvisor.domain.errors import HyprvisorError, SocketInUseError
from hyprvisor.domain.topics import Topic
from hyprvisor.protocol import decode_payload
from hyprvisor.server import HyprvisorServer, is_socket_alive
from hyprvisor.services.broadcast import BroadcastLoop
from hyprvisor.services.handshake import ConnectionHandler
from hyprvisor.services.shared import SharedState


def make_server(socket_path, shared, interval=0.05):
    return HyprvisorServer(
        socket_path,
        shared,
        ConnectionHandler(shared, write_timeout=1.0),
        BroadcastLoop(shared, interval_seconds=interval),
    )


@contextlib.asynccontextmanager
async def running(server):
    await server.bind()
    task = asyncio.create_task(server.run())
    try:
        yield server
    finally:
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task


async def wait_for_count(shared, topic, expected, timeout=2.0):
    loop = asyncio.get_running_loop()
    deadline = loop.time() + timeout
    while True:
        async with shared.lock:
            current = shared.registry.count(topic)
        if current == expected or loop.time() > deadline:
            return current
        await asyncio.sleep(0.01)


@pytest.mark.asyncio
async def test_subscribe_receive_and_evict_on_disconnect(socket_path):
    shared = SharedState()

    async with running(make_server(socket_path, shared)):
        reader, writer = await asyncio.open_unix_connection(socket_path)
        writer.write(b'{"pid":1,"name":"workspace"}')
        await writer.drain()

        ack = await asyncio.wait_for(reader.readline(), 2.0)
        assert ack.strip()

        payload = await asyncio.wait_for(reader.readline(), 2.0)
        assert decode_payload(payload) == (
            Topic.WORKSPACE,
            ["active"] + ["empty"] * 9,
        )
        assert await wait_for_count(shared, Topic.WORKSPACE, 1) == 1

        writer.close()
        await writer.wait_closed()

        assert await wait_for_count(shared, Topic.WORKSPACE, 0) == 0


@pytest.mark.asyncio
async def test_updates_reach_subscribers(socket_path):
    shared = SharedState()

    async with running(make_server(socket_path, shared)):
        reader, writer = await asyncio.open_unix_connection(socket_path)
        writer.write(b'{"pid":2,"name":"window"}')
        await writer.drain()
        await asyncio.wait_for(reader.readline(), 2.0)

        await shared.store.set_window_title("kitty")

        async def wait_for_title():
            while True:
                _, title = decode_payload(await reader.readline())
                if title == "kitty":
                    return title

        assert await asyncio.wait_for(wait_for_title(), 2.0) == "kitty"
        writer.close()


@pytest.mark.asyncio
async def test_rejected_handshake_gets_no_ack(socket_path):
    shared = SharedState()

    async with running(make_server(socket_path, shared)):
        reader, writer = await asyncio.open_unix_connection(socket_path)
        writer.write(b'{"pid":123,"name":"bogus"}')
        await writer.drain()

        assert await asyncio.wait_for(reader.read(), 2.0) == b""
        writer.close()

    async with shared.lock:
        assert all(shared.registry.count(topic) == 0 for topic in Topic)


@pytest.mark.asyncio
async def test_concurrent_clients(socket_path):
    shared = SharedState()
    clients = 20

    async with running(make_server(socket_path, shared, interval=10)):

        async def subscribe(pid):
            reader, writer = await asyncio.open_unix_connection(socket_path)
            writer.write(f'{{"pid":{pid},"name":"sink_volume"}}'.encode())
            await writer.drain()
            await asyncio.wait_for(reader.readline(), 2.0)
            return writer

        writers = await asyncio.gather(*(subscribe(pid) for pid in range(clients)))

        assert await wait_for_count(shared, Topic.SINK_VOLUME, clients) == clients
        for writer in writers:
            writer.close()


@pytest.mark.asyncio
async def test_socket_permissions_and_cleanup(socket_path):
    server = make_server(socket_path, SharedState())

    async with running(server):
        assert stat.S_IMODE(os.stat(socket_path).st_mode) == 0o600

    assert not os.path.exists(socket_path)
    assert not server.is_bound


@pytest.mark.asyncio
async def test_refuses_to_start_when_socket_is_live(socket_path):
    async with running(make_server(socket_path, SharedState())):
        assert await is_socket_alive(socket_path)

        with pytest.raises(SocketInUseError):
            await make_server(socket_path, SharedState()).bind()


@pytest.mark.asyncio
async def test_removes_stale_socket(socket_path):
    stale = socket.socket(socket.AF_UNIX, socket.SOCK_STREAM)
    stale.bind(socket_path)
    stale.close()
    assert os.path.exists(socket_path)
    assert not await is_socket_alive(socket_path)

    server = make_server(socket_path, SharedState())
    await server.bind()
    try:
        assert server.is_bound
        assert await is_socket_alive(socket_path)
    finally:
        await server.close()


@pytest.mark.asyncio
async def test_refuses_to_replace_regular_file(socket_path):
    with open(socket_path, "w") as f:
        f.write("not a socket")

    with pytest.raises(HyprvisorError, match="not a socket"):
        await make_server(socket_path, SharedState()).bind()

    assert os.path.exists(socket_path)
