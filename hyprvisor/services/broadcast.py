from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

import structlog

from hyprvisor.protocol import encode_payload

if TYPE_CHECKING:
    from hyprvisor.domain.ports import SubscriberConnection
    from hyprvisor.domain.topics import Topic
    from hyprvisor.services.shared import SharedState

logger = structlog.get_logger(__name__)


@dataclass(kw_only=True)
class TickReport:
    delivered: int = 0
    evicted: list[tuple[Topic, int]] = field(default_factory=list)


class BroadcastLoop:
    """Pushes every topic's current value to its subscribers on a fixed interval.

    The push doubles as the liveness probe: a subscriber whose write fails is evicted
    at the end of that tick and never retried. Writes happen outside the shared lock,
    so a slow subscriber delays its own tick but not registrations or producers.
    """

    def __init__(self, shared: SharedState, interval_seconds: float = 2.0) -> None:
        self._shared = shared
        self._interval = interval_seconds

    async def run(self) -> None:
        logger.info("broadcast loop started", interval_seconds=self._interval)
        while True:
            await self.tick()
            await asyncio.sleep(self._interval)

    async def tick(self) -> TickReport:
        async with self._shared.lock:
            snapshot = self._shared.store.read()
            targets = {
                topic: self._shared.registry.subscribers(topic)
                for topic in self._shared.registry.topics()
            }

        report = TickReport()
        failed: list[tuple[Topic, int, SubscriberConnection]] = []
        for topic, subscribers in targets.items():
            if not subscribers:
                continue
            try:
                payload = encode_payload(topic, snapshot)
            except (TypeError, ValueError) as e:
                logger.error("failed to serialize payload", topic=topic.wire_name, error=str(e))
                continue
            for pid, connection in subscribers:
                try:
                    await connection.send(payload)
                except (TimeoutError, ConnectionError, OSError) as e:
                    logger.info(
                        "client is no longer alive",
                        pid=pid,
                        topic=topic.wire_name,
                        error=repr(e),
                    )
                    failed.append((topic, pid, connection))
                else:
                    report.delivered += 1

        if failed:
            await self._evict(failed, report)
        logger.debug("broadcast tick", delivered=report.delivered, evicted=len(report.evicted))
        return report

    async def _evict(
        self, failed: list[tuple[Topic, int, SubscriberConnection]], report: TickReport
    ) -> None:
        removed: list[SubscriberConnection] = []
        async with self._shared.lock:
            for topic, pid, connection in failed:
                if self._shared.registry.evict(topic, pid, connection) is not None:
                    report.evicted.append((topic, pid))
                    removed.append(connection)
        for connection in removed:
            await connection.close()
