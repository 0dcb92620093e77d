from __future__ import annotations

import asyncio
import shutil
import sys

import structlog

from hyprvisor.adapters.hyprland import HyprlandClient
from hyprvisor.adapters.wireplumber import WirePlumberVolume
from hyprvisor.common.aio import create_logged_task
from hyprvisor.domain.errors import HyprlandError, HyprvisorError, SocketInUseError
from hyprvisor.domain.ports import VolumeSource, WindowManager
from hyprvisor.infrastructure.config import Config
from hyprvisor.infrastructure.logging import configure_logging
from hyprvisor.server import HyprvisorServer
from hyprvisor.services.broadcast import BroadcastLoop
from hyprvisor.services.handshake import ConnectionHandler
from hyprvisor.services.producer import StatePoller
from hyprvisor.services.shared import SharedState

logger = structlog.get_logger(__name__)


def build_server(config: Config, shared: SharedState) -> HyprvisorServer:
    handler = ConnectionHandler(
        shared,
        read_buffer_size=config.read_buffer_size,
        handshake_timeout=config.handshake_timeout_seconds,
        write_timeout=config.write_timeout_seconds,
    )
    broadcast_loop = BroadcastLoop(shared, interval_seconds=config.broadcast_interval_seconds)
    return HyprvisorServer(config.socket_path, shared, handler, broadcast_loop)


def build_poller(config: Config, shared: SharedState) -> StatePoller:
    window_manager: WindowManager | None
    try:
        window_manager = HyprlandClient.from_signature(config.hyprland_instance_signature)
    except HyprlandError as e:
        logger.warning("window manager state unavailable", error=str(e))
        window_manager = None

    volume_source: VolumeSource | None = None
    if shutil.which("wpctl"):
        volume_source = WirePlumberVolume()
    else:
        logger.warning("wpctl not found, volume topics stay muted")

    return StatePoller(
        shared.store, window_manager, volume_source, interval_seconds=config.poll_interval_seconds
    )


async def main(config: Config) -> None:
    shared = SharedState(workspace_count=config.workspace_count)
    server = build_server(config, shared)
    poller = build_poller(config, shared)

    await server.bind()
    poller_task = create_logged_task(poller.run(), name="state_poller")
    try:
        await server.run()
    finally:
        poller_task.cancel()


def run() -> None:
    config = Config()
    configure_logging(config.log_level, config.log_to_console)
    try:
        logger.info("starting hyprvisor", socket_path=config.socket_path)
        asyncio.run(main(config))
    except SocketInUseError as e:
        logger.error("cannot start hyprvisor", error=str(e))
        sys.exit(1)
    except HyprvisorError as e:
        logger.error("cannot prepare server", error=str(e))
        sys.exit(1)
    except KeyboardInterrupt:
        pass
    logger.info("hyprvisor stopped")
