from __future__ import annotations

import asyncio
import json
import os
import re
from typing import Any

import structlog

from hyprvisor.domain.errors import HyprlandError
from hyprvisor.domain.models import Workspace

logger = structlog.get_logger(__name__)

READ_CHUNK_SIZE = 8192
_WORKSPACE_HEADER = re.compile(r"^workspace ID (-?\d+) \((.*)\) on monitor (.*):$")


def find_hyprland_socket(instance_signature: str) -> str:
    """Returns the control socket of a Hyprland instance.

    Newer releases keep it under ``$XDG_RUNTIME_DIR/hypr``, older ones under ``/tmp/hypr``.
    """
    candidates = []
    runtime_dir = os.environ.get("XDG_RUNTIME_DIR")
    if runtime_dir:
        candidates.append(os.path.join(runtime_dir, "hypr", instance_signature, ".socket.sock"))
    candidates.append(os.path.join("/tmp/hypr", instance_signature, ".socket.sock"))
    for candidate in candidates:
        if os.path.exists(candidate):
            return candidate
    raise HyprlandError(f"No Hyprland socket found for instance {instance_signature}")


def parse_workspaces(reply: str) -> list[Workspace]:
    """Parses the plain-text reply of the ``workspaces`` command."""
    workspaces: list[Workspace] = []
    current: dict[str, Any] | None = None

    for raw_line in reply.splitlines():
        line = raw_line.strip()
        header = _WORKSPACE_HEADER.match(line)
        if header:
            if current is not None:
                workspaces.append(Workspace(**current))
            current = {
                "id": int(header.group(1)),
                "name": header.group(2),
                "monitor": header.group(3),
            }
            continue
        if current is None or ":" not in line:
            continue

        key, _, value = line.partition(":")
        value = value.strip()
        match key:
            case "monitorID":
                current["monitor_id"] = _parse_int(value)
            case "windows":
                current["windows"] = _parse_int(value)
            case "hasfullscreen":
                current["has_fullscreen"] = value == "1"
            case "lastwindow":
                current["last_window"] = value
            case "lastwindowtitle":
                current["last_window_title"] = value

    if current is not None:
        workspaces.append(Workspace(**current))
    return workspaces


def _parse_int(value: str) -> int:
    try:
        return int(value)
    except ValueError:
        return 0


class HyprlandClient:
    """Request/response client for Hyprland's control socket.

    Hyprland answers one command per connection and closes it afterwards.
    """

    def __init__(self, socket_path: str, timeout: float = 2.0) -> None:
        self._socket_path = socket_path
        self._timeout = timeout

    @classmethod
    def from_signature(cls, instance_signature: str | None) -> HyprlandClient:
        if not instance_signature:
            raise HyprlandError("HYPRLAND_INSTANCE_SIGNATURE not set (is hyprland running?)")
        return cls(find_hyprland_socket(instance_signature))

    async def request(self, command: str) -> str:
        try:
            return await asyncio.wait_for(self._request(command), timeout=self._timeout)
        except (TimeoutError, OSError) as e:
            raise HyprlandError(f"Hyprland request {command!r} failed: {e!r}") from e

    async def _request(self, command: str) -> str:
        reader, writer = await asyncio.open_unix_connection(self._socket_path)
        try:
            writer.write(command.encode())
            await writer.drain()
            chunks = []
            while chunk := await reader.read(READ_CHUNK_SIZE):
                chunks.append(chunk)
        finally:
            writer.close()
        return b"".join(chunks).decode(errors="replace")

    async def request_json(self, command: str) -> Any:
        reply = await self.request(f"j/{command}")
        try:
            return json.loads(reply)
        except json.JSONDecodeError as e:
            raise HyprlandError(f"Unexpected reply to {command!r}: {reply[:80]!r}") from e

    async def workspaces(self) -> list[Workspace]:
        return parse_workspaces(await self.request("workspaces"))

    async def active_workspace_id(self) -> int | None:
        data = await self.request_json("activeworkspace")
        workspace_id = data.get("id") if isinstance(data, dict) else None
        return workspace_id if isinstance(workspace_id, int) else None

    async def active_window_title(self) -> str:
        data = await self.request_json("activewindow")
        if not isinstance(data, dict):
            return ""
        return str(data.get("title") or "")
