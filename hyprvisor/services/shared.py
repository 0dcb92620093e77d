from __future__ import annotations

import asyncio

from hyprvisor.domain.models import DEFAULT_WORKSPACE_COUNT
from hyprvisor.services.registry import SubscriberRegistry
from hyprvisor.services.state import StateStore


class SharedState:
    """The state store and subscriber registry behind one lock.

    Built once at startup and handed to every task that needs it.
    """

    def __init__(self, workspace_count: int = DEFAULT_WORKSPACE_COUNT) -> None:
        self.lock = asyncio.Lock()
        self.store = StateStore(self.lock, workspace_count)
        self.registry = SubscriberRegistry(self.lock)
