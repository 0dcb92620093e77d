from __future__ import annotations

from typing import Any


class HyprvisorError(Exception):
    """Base class for all hyprvisor errors."""


class SocketInUseError(HyprvisorError):
    def __init__(self, socket_path: str) -> None:
        super().__init__(f"A running server is already bound on {socket_path}")
        self.socket_path = socket_path


class HandshakeError(HyprvisorError):
    """A subscription request was rejected. Terminal for that connection only."""


class ShortReadError(HandshakeError):
    def __init__(self, received: int) -> None:
        super().__init__(f"Handshake too short: received {received} bytes")
        self.received = received


class MalformedHandshakeError(HandshakeError):
    pass


class UnknownTopicError(HandshakeError):
    def __init__(self, name: Any) -> None:
        super().__init__(f"Unknown subscription: {name!r}")
        self.name = name


class HyprlandError(HyprvisorError):
    """The window manager's control socket could not be queried."""
