from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Callable

import structlog

if TYPE_CHECKING:
    from hyprvisor.domain.ports import SubscriberConnection
    from hyprvisor.domain.topics import Topic

logger = structlog.get_logger(__name__)


class SubscriberRegistry:
    """Maps each topic to its subscribers, keyed by client pid.

    Every method must be called while holding the shared lock; the registry does not
    acquire it itself so that a caller can combine a state read and registry changes
    in one critical section.
    """

    def __init__(self, lock: asyncio.Lock) -> None:
        self._lock = lock
        self._subscribers: dict[Topic, dict[int, SubscriberConnection]] = {}

    def _require_lock(self) -> None:
        if not self._lock.locked():
            raise RuntimeError("SubscriberRegistry used without holding the shared lock")

    def ensure_topic(self, topic: Topic) -> None:
        self._require_lock()
        self._subscribers.setdefault(topic, {})

    def register(
        self, topic: Topic, pid: int, connection: SubscriberConnection
    ) -> SubscriberConnection | None:
        """Adds or replaces the subscriber for ``(topic, pid)``.

        Returns the superseded connection, if any. It is no longer reachable through
        the registry and the caller is responsible for closing it.
        """
        self._require_lock()
        subscribers = self._subscribers.setdefault(topic, {})
        previous = subscribers.get(pid)
        subscribers[pid] = connection
        if previous is connection:
            return None
        if previous is not None:
            logger.info("subscriber replaced", topic=topic.wire_name, pid=pid)
        return previous

    def evict(
        self, topic: Topic, pid: int, connection: SubscriberConnection | None = None
    ) -> SubscriberConnection | None:
        """Removes the subscriber for ``(topic, pid)``. Missing entries are ignored.

        When ``connection`` is given, the entry is only removed if it still refers to
        that connection, so a newer subscription from the same pid survives.
        """
        self._require_lock()
        subscribers = self._subscribers.get(topic)
        if not subscribers or pid not in subscribers:
            return None
        if connection is not None and subscribers[pid] is not connection:
            return None
        return subscribers.pop(pid)

    def for_each_subscriber(
        self, topic: Topic, fn: Callable[[int, SubscriberConnection], None]
    ) -> None:
        self._require_lock()
        for pid, connection in list(self._subscribers.get(topic, {}).items()):
            fn(pid, connection)

    def subscribers(self, topic: Topic) -> list[tuple[int, SubscriberConnection]]:
        self._require_lock()
        return list(self._subscribers.get(topic, {}).items())

    def topics(self) -> list[Topic]:
        self._require_lock()
        return list(self._subscribers)

    def count(self, topic: Topic) -> int:
        self._require_lock()
        return len(self._subscribers.get(topic, {}))

    def drain(self) -> list[SubscriberConnection]:
        """Empties the registry, returning every connection it held."""
        self._require_lock()
        connections = [conn for subs in self._subscribers.values() for conn in subs.values()]
        self._subscribers.clear()
        return connections
