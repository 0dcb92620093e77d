from __future__ import annotations

import asyncio
import re

DEFAULT_SINK = "@DEFAULT_AUDIO_SINK@"
DEFAULT_SOURCE = "@DEFAULT_AUDIO_SOURCE@"

_VOLUME_LINE = re.compile(r"^Volume:\s*(\d+(?:\.\d+)?)(.*)$")


def parse_volume(output: str) -> int | None:
    """Turns ``wpctl get-volume`` output into a percentage. Muted reads as None."""
    match = _VOLUME_LINE.match(output.strip())
    if match is None:
        raise ValueError(f"Unexpected wpctl output: {output!r}")
    if "[MUTED]" in match.group(2):
        return None
    return min(100, max(0, round(float(match.group(1)) * 100)))


class WirePlumberVolume:
    def __init__(self, wpctl: str = "wpctl", timeout: float = 2.0) -> None:
        self._wpctl = wpctl
        self._timeout = timeout

    async def read_volume(self, target: str) -> int | None:
        proc = await asyncio.create_subprocess_exec(
            self._wpctl,
            "get-volume",
            target,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        try:
            stdout, stderr = await asyncio.wait_for(proc.communicate(), timeout=self._timeout)
        except TimeoutError:
            proc.kill()
            await proc.wait()
            raise
        if proc.returncode != 0:
            raise OSError(f"wpctl exited with {proc.returncode}: {stderr.decode().strip()}")
        return parse_volume(stdout.decode())

    async def sink_volume(self) -> int | None:
        return await self.read_volume(DEFAULT_SINK)

    async def source_volume(self) -> int | None:
        return await self.read_volume(DEFAULT_SOURCE)
