import os
import shutil
import tempfile

import pytest

from hyprvisor.services.shared import SharedState


class FakeConnection:
    def __init__(self, fail_with: Exception | None = None) -> None:
        self.sent: list[bytes] = []
        self.closed = False
        self.fail_with = fail_with

    async def send(self, payload: bytes) -> None:
        if self.closed:
            raise ConnectionResetError("closed")
        if self.fail_with is not None:
            raise self.fail_with
        self.sent.append(payload)

    def is_closing(self) -> bool:
        return self.closed

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def make_connection():
    return FakeConnection


@pytest.fixture
def shared():
    return SharedState()


@pytest.fixture
def socket_path():
    # AF_UNIX paths are limited to ~108 bytes, so stay clear of pytest's long tmp_path
    directory = tempfile.mkdtemp(prefix="hv")
    yield os.path.join(directory, "hyprvisor.sock")
    shutil.rmtree(directory, ignore_errors=True)
