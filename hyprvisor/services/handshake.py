from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

import structlog

from hyprvisor.domain.errors import HandshakeError
from hyprvisor.infrastructure.connection import StreamConnection
from hyprvisor.protocol import decode_handshake, encode_acknowledgement

if TYPE_CHECKING:
    from hyprvisor.domain.ports import SubscriberConnection
    from hyprvisor.services.shared import SharedState

logger = structlog.get_logger(__name__)


class ConnectionHandler:
    """Performs the subscription handshake for freshly accepted connections.

    The whole handshake must arrive in a single read. A connection is registered
    only after its acknowledgement was written successfully; every failure is
    logged and ends with the connection closed, without affecting anyone else.
    """

    def __init__(
        self,
        shared: SharedState,
        read_buffer_size: int = 1024,
        handshake_timeout: float | None = 5.0,
        write_timeout: float | None = 5.0,
    ) -> None:
        self._shared = shared
        self._read_buffer_size = read_buffer_size
        self._handshake_timeout = handshake_timeout
        self._write_timeout = write_timeout

    async def __call__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        try:
            await self.handle(reader, StreamConnection(writer, self._write_timeout))
        except asyncio.CancelledError:
            writer.close()
            raise

    async def handle(
        self, reader: asyncio.StreamReader, connection: SubscriberConnection
    ) -> bool:
        try:
            raw = await asyncio.wait_for(
                reader.read(self._read_buffer_size), timeout=self._handshake_timeout
            )
        except (TimeoutError, ConnectionError, OSError) as e:
            logger.error("failed to read data from client", error=repr(e))
            await connection.close()
            return False

        try:
            record = decode_handshake(raw)
            topic = record.resolve_topic()
        except HandshakeError as e:
            logger.error("invalid subscription", error=str(e), received=len(raw))
            await connection.close()
            return False

        async with self._shared.lock:
            self._shared.registry.ensure_topic(topic)

        try:
            await connection.send(encode_acknowledgement(record.pid, topic))
        except (TimeoutError, ConnectionError, OSError) as e:
            logger.error(
                "failed to acknowledge subscription",
                pid=record.pid,
                topic=topic.wire_name,
                error=repr(e),
            )
            await connection.close()
            return False

        async with self._shared.lock:
            superseded = self._shared.registry.register(topic, record.pid, connection)
        if superseded is not None:
            await superseded.close()
        logger.info("new client subscribed", pid=record.pid, topic=topic.wire_name)
        return True
