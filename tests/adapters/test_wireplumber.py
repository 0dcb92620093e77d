import os
import stat

import pytest

from hyprvisor.adapters.wireplumber import WirePlumberVolume, parse_volume


@pytest.mark.parametrize(
    "output,expected",
    [
        ("Volume: 0.45\n", 45),
        ("Volume: 1.00", 100),
        ("Volume: 1.50", 100),
        ("Volume: 0.00", 0),
        ("Volume: 0.30 [MUTED]\n", None),
    ],
)
def test_parse_volume(output, expected):
    assert parse_volume(output) == expected


def test_parse_volume_rejects_garbage():
    with pytest.raises(ValueError):
        parse_volume("Translate ID: not found")


def write_script(path: str, body: str) -> str:
    with open(path, "w") as f:
        f.write("#!/bin/sh\n" + body)
    os.chmod(path, os.stat(path).st_mode | stat.S_IEXEC)
    return path


@pytest.mark.asyncio
async def test_read_volume_runs_wpctl(socket_path):
    script = write_script(
        os.path.join(os.path.dirname(socket_path), "wpctl"),
        'if [ "$2" = "@DEFAULT_AUDIO_SINK@" ]; then echo "Volume: 0.72"; '
        'else echo "Volume: 0.10 [MUTED]"; fi\n',
    )
    volume = WirePlumberVolume(wpctl=script)

    assert await volume.sink_volume() == 72
    assert await volume.source_volume() is None


@pytest.mark.asyncio
async def test_read_volume_failure(socket_path):
    script = write_script(
        os.path.join(os.path.dirname(socket_path), "wpctl"), "echo nope >&2\nexit 1\n"
    )

    with pytest.raises(OSError, match="nope"):
        await WirePlumberVolume(wpctl=script).sink_volume()
