from __future__ import annotations

import asyncio
import os
import sys
from typing import Any, AsyncIterator

import click
import structlog

from hyprvisor.domain.errors import HyprvisorError
from hyprvisor.domain.topics import Topic
from hyprvisor.infrastructure.config import Config
from hyprvisor.infrastructure.logging import configure_logging
from hyprvisor.protocol import decode_payload, encode_handshake

logger = structlog.get_logger(__name__)

ACK_TIMEOUT_SECONDS = 5.0


async def subscribe(
    topic: Topic, socket_path: str, pid: int | None = None
) -> AsyncIterator[tuple[Topic, Any]]:
    """Subscribes to ``topic`` and yields ``(topic, value)`` for every push.

    Ends when the server closes the connection.
    """
    if not os.path.exists(socket_path):
        raise HyprvisorError(f"Socket not found: {socket_path}")

    reader, writer = await asyncio.open_unix_connection(socket_path)
    try:
        writer.write(encode_handshake(os.getpid() if pid is None else pid, topic))
        await writer.drain()

        ack = await asyncio.wait_for(reader.readline(), timeout=ACK_TIMEOUT_SECONDS)
        if not ack:
            raise HyprvisorError(f"Server rejected subscription to {topic.wire_name}")
        logger.debug("subscribed", topic=topic.wire_name)

        while line := await reader.readline():
            yield decode_payload(line)
        logger.info("server closed the connection")
    finally:
        writer.close()


async def _print_updates(topic: Topic, socket_path: str) -> None:
    async for _, value in subscribe(topic, socket_path):
        click.echo(value if isinstance(value, str) else _render(value))


def _render(value: Any) -> str:
    if value is None:
        return "muted"
    if isinstance(value, list):
        return " ".join(str(item) for item in value)
    return str(value)


@click.command()
@click.argument("topic", type=click.Choice(Topic.names()))
@click.option("--socket", "socket_path", default=None, help="Path to the hyprvisor socket")
def main(topic: str, socket_path: str | None) -> None:
    """Subscribe to TOPIC and print every update hyprvisor pushes."""
    config = Config()
    configure_logging(config.log_level, config.log_to_console)
    try:
        asyncio.run(_print_updates(Topic.from_wire(topic), socket_path or config.socket_path))
    except (HyprvisorError, OSError) as e:
        click.echo(f"Error: {e}", err=True)
        sys.exit(1)
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
